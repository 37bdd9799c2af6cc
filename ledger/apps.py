from django.apps import AppConfig


class LedgerConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'ledger'
    verbose_name = 'Blood bank ledger'

    def ready(self):
        from .services import Ledger
        self.ledger = Ledger()
