"""Read-only views over the donor registry. Nothing here writes."""
from django.utils import timezone

from ..eligibility import badge_tier, is_potential_donor, points_for
from ..models import BLOOD_GROUPS


class PotentialDonorAggregator:
    """
    Counts donors who could donate again, per blood group.

    The rows look like an inventory listing but count people, not units.
    """

    def __init__(self, registry):
        self.registry = registry

    def aggregate(self, today=None):
        today = today or timezone.localdate()
        counts = dict.fromkeys(BLOOD_GROUPS, 0)
        donors = self.registry.list().consenting().only(
            'blood_group', 'donate_consent', 'last_donation_date', 'next_eligible_date',
        )
        for donor in donors:
            if is_potential_donor(donor.donate_consent, donor.last_donation_date,
                                  donor.next_eligible_date, today):
                counts[donor.blood_group] = counts.get(donor.blood_group, 0) + 1

        snapshot = timezone.now()
        return [
            {'blood_group': blood_group, 'available_donors': counts[blood_group], 'updated_at': snapshot}
            for blood_group in sorted(counts)
        ]


class LeaderboardProjector:
    def __init__(self, registry):
        self.registry = registry

    def rank(self, limit=None):
        donors = self.registry.list().ranked()
        if limit:
            donors = donors[:limit]
        return [
            {
                'rank': position,
                'donor': donor,
                'total_donations': donor.total_donations,
                'points': points_for(donor.total_donations),
                'badge': badge_tier(donor.total_donations),
            }
            for position, donor in enumerate(donors, start=1)
        ]
