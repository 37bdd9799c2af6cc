import logging

from ..exceptions import InsufficientStock, InvalidArgument
from ..models import BLOOD_GROUPS, InventoryEntry
from ..transactions import atomic_with_retry

logger = logging.getLogger(__name__)


def validate_blood_group(blood_group):
    if blood_group not in BLOOD_GROUPS:
        raise InvalidArgument(f"Unknown blood group {blood_group!r}.")
    return blood_group


def validate_units(units):
    if isinstance(units, bool) or not isinstance(units, int) or units <= 0:
        raise InvalidArgument("Units must be a positive whole number.")
    return units


class InventoryStock:
    """One non-negative unit counter per blood group."""

    def get(self, blood_group):
        """The stored entry, or an unsaved zero entry if none exists yet."""
        validate_blood_group(blood_group)
        entry = InventoryEntry.objects.filter(blood_group=blood_group).first()
        if entry is None:
            entry = InventoryEntry(blood_group=blood_group, units=0)
        return entry

    def list_all(self):
        return sorted(InventoryEntry.objects.all(), key=lambda entry: entry.blood_group)

    def add(self, blood_group, units):
        validate_blood_group(blood_group)
        validate_units(units)
        return self._add(blood_group, units)

    def remove(self, blood_group, units):
        validate_blood_group(blood_group)
        validate_units(units)
        return self._remove(blood_group, units)

    def decrement(self, blood_group, units):
        """
        Take `units` from the blood group's stock or raise InsufficientStock
        without touching it. Runs inside the caller's transaction.
        """
        if InventoryEntry.objects.decrement(blood_group, units):
            return
        available = (
            InventoryEntry.objects.filter(blood_group=blood_group)
            .values_list('units', flat=True)
            .first()
        ) or 0
        logger.warning(
            "Refused to take %d unit(s) of %s: only %d in stock", units, blood_group, available,
        )
        raise InsufficientStock(
            f"Not enough {blood_group} stock: {available} available, {units} requested."
        )

    @atomic_with_retry
    def _add(self, blood_group, units):
        InventoryEntry.objects.get_or_create(blood_group=blood_group)
        InventoryEntry.objects.increment(blood_group, units)
        entry = InventoryEntry.objects.get(blood_group=blood_group)
        logger.info("Added %d unit(s) of %s, now %d", units, blood_group, entry.units)
        return entry

    @atomic_with_retry
    def _remove(self, blood_group, units):
        self.decrement(blood_group, units)
        entry = InventoryEntry.objects.get(blood_group=blood_group)
        logger.info("Removed %d unit(s) of %s, now %d", units, blood_group, entry.units)
        return entry
