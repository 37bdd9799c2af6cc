import logging

from django.db import IntegrityError, transaction

from ..exceptions import Conflict, InvalidArgument, NotFound
from ..models import BLOOD_GROUPS, Donor

logger = logging.getLogger(__name__)

PROFILE_FIELDS = (
    'national_id', 'name', 'email', 'phone', 'blood_group',
    'address', 'age', 'weight', 'donate_consent', 'profile_photo_url',
)
REQUIRED_FIELDS = ('national_id', 'name', 'blood_group')


class DonorRegistry:
    """
    Owns donor records: identity uniqueness and profile edits.

    Donation-derived fields (counters, dates, status) are never accepted
    here; only DonationLedger writes them.
    """

    def get(self, donor_id):
        try:
            return Donor.objects.get(pk=donor_id)
        except (Donor.DoesNotExist, ValueError, TypeError):
            raise NotFound(f"Donor {donor_id} not found.")

    def list(self):
        return Donor.objects.all()

    def find_by_identity(self, national_id):
        return Donor.objects.by_identity(national_id).first()

    def find_by_owner(self, user):
        """
        The donor profile linked to `user`. Older donors were created without
        a user link, so fall back to an unlinked donor with the same email.
        """
        donor = Donor.objects.linked_to(user).first()
        if donor is None and user.email:
            donor = Donor.objects.filter(user__isnull=True, email__iexact=user.email).first()
        return donor

    def create(self, *, user=None, **fields):
        data = self._clean(fields)
        missing = [name for name in REQUIRED_FIELDS if not data.get(name)]
        if missing:
            raise InvalidArgument(f"Missing required donor fields: {', '.join(missing)}.")
        # admin-registered donors consent by default, self-service ones opt in
        data.setdefault('donate_consent', 'Yes' if user is None else 'No')

        if Donor.objects.by_identity(data['national_id']).exists():
            raise Conflict(f"Donor with national ID {data['national_id']} already exists.")
        try:
            with transaction.atomic():
                donor = Donor.objects.create(user=user, **data)
        except IntegrityError as exc:
            raise Conflict(f"Donor with national ID {data['national_id']} already exists.") from exc

        logger.info("Registered donor %s (%s)", donor.pk, donor.blood_group)
        return donor

    def update(self, donor_id, **patch):
        donor = self.get(donor_id)
        return self._apply(donor, self._clean(patch))

    def delete(self, donor_id):
        donor = self.get(donor_id)
        donation_count = donor.donations.count()
        # Donation rows cascade with the donor
        donor.delete()
        logger.info("Deleted donor %s and %d donation(s)", donor_id, donation_count)

    def save_owner_profile(self, user, **fields):
        """Create or update the caller's own donor profile, linking it to them."""
        donor = self.find_by_owner(user)
        if donor is None:
            return self.create(user=user, **fields)
        return self._apply(donor, self._clean(fields), owner=user)

    def attach_photo(self, user, reference):
        if not reference:
            raise InvalidArgument("A photo reference is required.")
        donor = self.find_by_owner(user)
        if donor is None:
            raise NotFound("Create a donor profile before adding a photo.")
        return self._apply(donor, {'profile_photo_url': reference}, owner=user)

    def _apply(self, donor, data, owner=None):
        national_id = data.get('national_id')
        if national_id and national_id != donor.national_id:
            if Donor.objects.by_identity(national_id).exclude(pk=donor.pk).exists():
                raise Conflict(f"National ID {national_id} is already in use by another donor.")

        for name, value in data.items():
            setattr(donor, name, value)
        update_fields = list(data)
        if owner is not None and donor.user_id is None:
            donor.user = owner
            update_fields.append('user')
        if not update_fields:
            return donor

        try:
            with transaction.atomic():
                # update_fields keeps concurrent counter writes intact
                donor.save(update_fields=update_fields + ['updated_at'])
        except IntegrityError as exc:
            raise Conflict(f"National ID {national_id} is already in use by another donor.") from exc
        return donor

    def _clean(self, fields):
        unknown = sorted(set(fields) - set(PROFILE_FIELDS))
        if unknown:
            raise InvalidArgument(f"Fields not editable on a donor profile: {', '.join(unknown)}.")
        if 'blood_group' in fields and fields['blood_group'] not in BLOOD_GROUPS:
            raise InvalidArgument(f"Unknown blood group {fields['blood_group']!r}.")
        if 'donate_consent' in fields and fields['donate_consent'] not in ('Yes', 'No'):
            raise InvalidArgument("donate_consent must be 'Yes' or 'No'.")
        if 'national_id' in fields and not fields['national_id']:
            raise InvalidArgument("national_id cannot be blank.")
        return dict(fields)
