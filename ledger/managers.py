from django.db import models
from django.db.models import F
from django.utils import timezone


class DonorQuerySet(models.QuerySet):
    def by_identity(self, national_id):
        return self.filter(national_id=national_id)

    def linked_to(self, user):
        return self.filter(user=user)

    def consenting(self):
        return self.filter(donate_consent='Yes')

    def ranked(self):
        """Most donations first; ties keep registration order."""
        return self.order_by('-total_donations', 'id')


class DonationQuerySet(models.QuerySet):
    def for_donor(self, donor):
        return self.filter(donor=donor).order_by('-date', '-id')

    def on_day(self, day):
        """Donations whose timestamp falls on `day` in the current time zone."""
        return self.filter(date__date=day).order_by('-date', '-id')


class InventoryQuerySet(models.QuerySet):
    def increment(self, blood_group, units):
        return self.filter(blood_group=blood_group).update(
            units=F('units') + units,
            last_updated=timezone.now(),
        )

    def decrement(self, blood_group, units):
        """
        Check-and-decrement in a single UPDATE. Returns the number of rows
        changed: 0 means the entry is missing or holds fewer than `units`.
        """
        return self.filter(blood_group=blood_group, units__gte=units).update(
            units=F('units') - units,
            last_updated=timezone.now(),
        )


class BloodRequestQuerySet(models.QuerySet):
    def with_status(self, status):
        return self.filter(status=status)

    def newest_first(self):
        return self.order_by('-request_date', '-id')
