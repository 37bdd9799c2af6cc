import pytest

from ledger.exceptions import Conflict, InvalidArgument, NotFound
from ledger.models import Donor

pytestmark = pytest.mark.django_db


def test_admin_create_defaults_consent_yes(ledger):
    donor = ledger.donors.create(national_id='NAT-1', name='Meera Das', blood_group='A+')

    assert donor.donate_consent == 'Yes'
    assert donor.user is None
    assert donor.total_donations == 0
    assert donor.status == 'Eligible'


def test_duplicate_identity_conflicts(ledger, make_donor):
    make_donor(national_id='NAT-1')

    with pytest.raises(Conflict):
        ledger.donors.create(national_id='NAT-1', name='Someone Else', blood_group='B-')
    assert Donor.objects.count() == 1


def test_create_requires_core_fields(ledger):
    with pytest.raises(InvalidArgument):
        ledger.donors.create(national_id='NAT-1', name='No Group')


def test_update_cannot_take_another_donors_identity(ledger, make_donor):
    make_donor(national_id='NAT-1')
    other = make_donor(national_id='NAT-2')

    with pytest.raises(Conflict):
        ledger.donors.update(other.pk, national_id='NAT-1')

    other.refresh_from_db()
    assert other.national_id == 'NAT-2'


def test_update_keeping_own_identity(ledger, make_donor):
    donor = make_donor(national_id='NAT-1')

    updated = ledger.donors.update(donor.pk, national_id='NAT-1', phone='555-0101', age=31)

    assert updated.phone == '555-0101'
    assert Donor.objects.get(pk=donor.pk).age == 31


@pytest.mark.parametrize('field, value', [
    ('total_donations', 9),
    ('points', 900),
    ('status', 'Eligible'),
    ('last_donation_date', '2024-01-01'),
    ('next_eligible_date', '2024-07-01'),
])
def test_donation_fields_are_not_editable(ledger, make_donor, field, value):
    donor = make_donor()

    with pytest.raises(InvalidArgument):
        ledger.donors.update(donor.pk, **{field: value})


@pytest.mark.parametrize('patch', [
    {'blood_group': 'Q+'},
    {'donate_consent': 'Maybe'},
    {'national_id': ''},
])
def test_update_validates_values(ledger, make_donor, patch):
    donor = make_donor()
    with pytest.raises(InvalidArgument):
        ledger.donors.update(donor.pk, **patch)


def test_delete_unknown_donor(ledger):
    with pytest.raises(NotFound):
        ledger.donors.delete(31337)


def test_find_by_identity(ledger, make_donor):
    donor = make_donor(national_id='NAT-5')
    assert ledger.donors.find_by_identity('NAT-5') == donor
    assert ledger.donors.find_by_identity('NAT-6') is None


class TestOwnerProfile:
    def test_linked_profile_is_found(self, ledger, make_donor, member):
        donor = make_donor(user=member, email='elsewhere@bloodbank.test')
        assert ledger.donors.find_by_owner(member) == donor

    def test_falls_back_to_unlinked_email_match(self, ledger, make_donor, member):
        donor = make_donor(email='MEMBER@bloodbank.test')
        assert ledger.donors.find_by_owner(member) == donor

    def test_email_fallback_skips_donors_linked_to_someone_else(self, ledger, make_donor, member, admin_user):
        make_donor(email=member.email, user=admin_user)
        assert ledger.donors.find_by_owner(member) is None

    def test_first_save_creates_profile_without_consent(self, ledger, member):
        donor = ledger.donors.save_owner_profile(
            member, national_id='NAT-20', name='Member One', blood_group='O-',
        )

        assert donor.user == member
        assert donor.donate_consent == 'No'

    def test_save_links_legacy_profile(self, ledger, make_donor, member):
        legacy = make_donor(email=member.email, phone='000')

        donor = ledger.donors.save_owner_profile(member, phone='999', donate_consent='Yes')

        assert donor.pk == legacy.pk
        legacy.refresh_from_db()
        assert legacy.user == member
        assert legacy.phone == '999'
        assert legacy.donate_consent == 'Yes'

    def test_profile_edit_keeps_donation_counters(self, ledger, make_donor, member):
        donor = make_donor(user=member)
        ledger.donations.record_donation(donor.pk, 1, '2024-03-01')

        ledger.donors.save_owner_profile(member, address='12 Lake Road')

        donor.refresh_from_db()
        assert donor.total_donations == 1
        assert donor.points == 100
        assert donor.address == '12 Lake Road'

    def test_attach_photo(self, ledger, make_donor, member):
        make_donor(user=member)
        donor = ledger.donors.attach_photo(member, 'photos/member.jpg')
        assert Donor.objects.get(pk=donor.pk).profile_photo_url == 'photos/member.jpg'

    def test_attach_photo_needs_profile(self, ledger, member):
        with pytest.raises(NotFound):
            ledger.donors.attach_photo(member, 'photos/member.jpg')


@pytest.mark.parametrize('donor_id', ['abc', None, ''])
def test_malformed_donor_id_is_not_found(ledger, donor_id):
    with pytest.raises(NotFound):
        ledger.donors.get(donor_id)
    with pytest.raises(NotFound):
        ledger.donors.update(donor_id, phone='555')
    with pytest.raises(NotFound):
        ledger.donors.delete(donor_id)
