from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ('ledger', '0001_initial'),
    ]

    operations = [
        migrations.AddField(
            model_name='event',
            name='photos',
            field=models.JSONField(blank=True, default=list),
        ),
    ]
