"""
Donor eligibility rules.

Everything here is a pure function of its arguments: the donation ledger
feeds it the donor's current counters and the donation date, and the read
projections use it to derive badges and the potential-donor predicate.
"""
from datetime import date, datetime

from dateutil import parser as date_parser
from dateutil.relativedelta import relativedelta
from django.utils import timezone

ELIGIBILITY_MONTHS = 6
POINTS_PER_DONATION = 100

ELIGIBLE = 'Eligible'
INELIGIBLE = 'Ineligible'
NEVER = 'Never'

# (minimum donations, tier), highest first
BADGE_TIERS = (
    (20, 'Gold'),
    (10, 'Silver'),
    (5, 'Bronze'),
)
DEFAULT_BADGE = 'Beginner'


def as_local_date(value):
    """Calendar date of a date or datetime, read in the current time zone."""
    if isinstance(value, datetime):
        if timezone.is_aware(value):
            return timezone.localdate(value)
        return value.date()
    return value


def parse_date(value):
    """Return `value` as a date, or None if it cannot be read as one."""
    if value is None:
        return None
    if isinstance(value, (date, datetime)):
        return as_local_date(value)
    try:
        return as_local_date(date_parser.parse(str(value)))
    except (ValueError, OverflowError):
        return None


def next_eligible_date(donation_date):
    # relativedelta clips to the last day of shorter months (Aug 31 -> Feb 28)
    return donation_date + relativedelta(months=ELIGIBILITY_MONTHS)


def points_for(total_donations):
    return total_donations * POINTS_PER_DONATION


def apply_donation(total_donations, donation_date):
    """Donor field values after one more donation on `donation_date`."""
    total = total_donations + 1
    return {
        'total_donations': total,
        'points': points_for(total),
        'last_donation_date': donation_date,
        'next_eligible_date': next_eligible_date(donation_date),
        'status': INELIGIBLE,
    }


def badge_tier(total_donations):
    for minimum, tier in BADGE_TIERS:
        if total_donations >= minimum:
            return tier
    return DEFAULT_BADGE


def effective_status(status, next_eligible, today=None):
    """Stored status, lifted back to Eligible once the window has lapsed."""
    today = today or timezone.localdate()
    if status == INELIGIBLE and next_eligible is not None and next_eligible <= today:
        return ELIGIBLE
    return status


def is_potential_donor(consent, last_donation, next_eligible, today=None):
    """
    A consenting donor who has never donated, whose last donation date can't
    be read, whose next eligible date has passed, or who last donated at
    least ELIGIBILITY_MONTHS ago.
    """
    if consent != 'Yes':
        return False
    if last_donation in (None, '', NEVER):
        return True
    last = parse_date(last_donation)
    if last is None:
        return True

    today = today or timezone.localdate()
    if next_eligible is not None:
        upcoming = parse_date(next_eligible)
        if upcoming is not None and upcoming <= today:
            return True
    return last <= today - relativedelta(months=ELIGIBILITY_MONTHS)
