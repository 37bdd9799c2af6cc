import logging
from datetime import date, datetime, time

from dateutil import parser as date_parser
from django.utils import timezone

from ..eligibility import apply_donation, as_local_date, parse_date
from ..exceptions import Conflict, InvalidArgument, NotFound, StaleWrite
from ..models import Donation, Donor
from ..transactions import atomic_with_retry

logger = logging.getLogger(__name__)


def validate_amount(amount):
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise InvalidArgument("Amount is required and must be greater than 0.")
    return amount


def donation_timestamp(value=None):
    """Normalise a donation date (date, datetime or ISO string) to an aware datetime."""
    if value is None:
        return timezone.now()
    if isinstance(value, str):
        try:
            value = date_parser.parse(value)
        except (ValueError, OverflowError) as exc:
            raise InvalidArgument(f"Unreadable donation date {value!r}.") from exc
    if isinstance(value, datetime):
        return value if timezone.is_aware(value) else timezone.make_aware(value)
    if isinstance(value, date):
        return timezone.make_aware(datetime.combine(value, time.min))
    raise InvalidArgument(f"Unsupported donation date {value!r}.")


class DonationLedger:
    """
    Appends donations and keeps each donor's counters in step with them.

    The donation row and the donor update commit together or not at all.
    """

    def __init__(self, registry):
        self.registry = registry

    def record_donation(self, donor_id, amount, date=None):
        """Record a donation for an existing donor. Returns (donor, donation)."""
        amount = validate_amount(amount)
        return self._record(donor_id, amount, donation_timestamp(date))

    def record_walk_in(self, national_id, amount=1, date=None, **profile):
        """
        Record a donation for a donor identified by national ID, registering
        them first if they are not on file. Returns (donor, donation, created).
        """
        if not national_id:
            raise InvalidArgument("national_id is required.")
        amount = validate_amount(amount)
        return self._record_walk_in(national_id, amount, donation_timestamp(date), profile)

    def list_donations(self, donor_id):
        donor = self.registry.get(donor_id)
        return Donation.objects.for_donor(donor)

    def list_donations_for_owner(self, user):
        donor = self.registry.find_by_owner(user)
        if donor is None:
            return Donation.objects.none()
        return Donation.objects.for_donor(donor)

    def list_donations_on(self, day):
        day = parse_date(day)
        if day is None:
            raise InvalidArgument("A calendar date is required.")
        return Donation.objects.on_day(day)

    def _lock_donor(self, donor_id):
        try:
            donor = Donor.objects.select_for_update().filter(pk=donor_id).first()
        except (ValueError, TypeError):
            donor = None
        if donor is None:
            raise NotFound(f"Donor {donor_id} not found.")
        return donor

    @atomic_with_retry
    def _record(self, donor_id, amount, when):
        return self._append(self._lock_donor(donor_id), amount, when)

    @atomic_with_retry
    def _record_walk_in(self, national_id, amount, when, profile):
        donor = Donor.objects.select_for_update().by_identity(national_id).first()
        created = donor is None
        if created:
            try:
                donor = self.registry.create(national_id=national_id, **profile)
            except Conflict as exc:
                # registered concurrently; the retry will find them
                raise StaleWrite(str(exc)) from exc
        elif profile:
            donor = self.registry.update(donor.pk, **profile)
        donor, donation = self._append(donor, amount, when)
        return donor, donation, created

    def _append(self, donor, amount, when):
        changes = apply_donation(donor.total_donations, as_local_date(when))
        updated = Donor.objects.filter(
            pk=donor.pk, total_donations=donor.total_donations,
        ).update(updated_at=timezone.now(), **changes)
        if not updated:
            raise StaleWrite(f"Donor {donor.pk} changed while recording a donation.")

        donation = Donation.objects.create(
            donor=donor,
            donor_name=donor.name,
            amount=amount,
            date=when,
        )
        donor.refresh_from_db()
        logger.info(
            "Recorded donation %s for donor %s: total=%d next_eligible=%s",
            donation.pk, donor.pk, donor.total_donations, donor.next_eligible_date,
        )
        return donor, donation
