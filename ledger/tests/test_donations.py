from datetime import date, datetime, time
from unittest import mock

import pytest
from django.db import OperationalError
from django.utils import timezone

from ledger import eligibility
from ledger.exceptions import InvalidArgument, NotFound, Transient
from ledger.models import Donation, Donor


def aware(day, at=time.min):
    return timezone.make_aware(datetime.combine(day, at))


def assert_counters_consistent(donor):
    donor.refresh_from_db()
    assert donor.points == donor.total_donations * 100
    assert donor.total_donations == Donation.objects.filter(donor=donor).count()


@pytest.mark.django_db
class TestRecordDonation:
    def test_first_donation(self, ledger, make_donor):
        donor = make_donor()

        donor, donation = ledger.donations.record_donation(donor.pk, 1, '2024-01-10')

        assert donor.total_donations == 1
        assert donor.points == 100
        assert donor.last_donation_date == date(2024, 1, 10)
        assert donor.next_eligible_date == date(2024, 7, 10)
        assert donor.status == 'Ineligible'
        assert donation.donor_name == donor.name
        assert donation.amount == 1
        assert_counters_consistent(donor)

    def test_accepts_date_objects(self, ledger, make_donor):
        donor = make_donor()
        donor, _ = ledger.donations.record_donation(donor.pk, 2, date(2024, 8, 31))
        assert donor.next_eligible_date == date(2025, 2, 28)

    def test_defaults_to_now(self, ledger, make_donor):
        donor = make_donor()
        donor, donation = ledger.donations.record_donation(donor.pk, 1)
        assert donor.last_donation_date == timezone.localdate()
        assert donation.date <= timezone.now()

    @pytest.mark.parametrize('amount', [0, -1, None, '1', True])
    def test_invalid_amount_mutates_nothing(self, ledger, make_donor, amount):
        donor = make_donor()

        with pytest.raises(InvalidArgument):
            ledger.donations.record_donation(donor.pk, amount)

        assert not Donation.objects.exists()
        donor.refresh_from_db()
        assert donor.total_donations == 0

    def test_unreadable_date(self, ledger, make_donor):
        donor = make_donor()
        with pytest.raises(InvalidArgument):
            ledger.donations.record_donation(donor.pk, 1, 'yesterday-ish')

    def test_unknown_donor(self, ledger):
        with pytest.raises(NotFound):
            ledger.donations.record_donation(12345, 1)

    def test_stale_instances_do_not_lose_updates(self, ledger, make_donor):
        donor = make_donor()
        first_view = Donor.objects.get(pk=donor.pk)
        second_view = Donor.objects.get(pk=donor.pk)

        ledger.donations.record_donation(first_view.pk, 1, '2024-01-10')
        ledger.donations.record_donation(second_view.pk, 1, '2024-02-10')

        donor.refresh_from_db()
        assert donor.total_donations == 2
        assert donor.last_donation_date == date(2024, 2, 10)
        assert_counters_consistent(donor)

    def test_failed_append_rolls_back_donor_update(self, ledger, make_donor):
        donor = make_donor()

        with mock.patch.object(Donation.objects, 'create', side_effect=RuntimeError('disk full')):
            with pytest.raises(RuntimeError):
                ledger.donations.record_donation(donor.pk, 1, '2024-01-10')

        donor.refresh_from_db()
        assert donor.total_donations == 0
        assert donor.points == 0
        assert donor.last_donation_date is None
        assert donor.status == 'Eligible'
        assert not Donation.objects.exists()

    def test_stale_counter_read_is_retried(self, ledger, make_donor):
        donor = make_donor()
        ledger.donations.record_donation(donor.pk, 1, '2024-01-10')
        real_lock = ledger.donations._lock_donor
        reads = []

        def lock_with_stale_first_read(donor_id):
            locked = real_lock(donor_id)
            if not reads:
                # snapshot taken before the earlier donation committed
                locked.total_donations -= 1
                locked.points -= 100
            reads.append(locked.total_donations)
            return locked

        with mock.patch.object(ledger.donations, '_lock_donor', side_effect=lock_with_stale_first_read):
            donor, _ = ledger.donations.record_donation(donor.pk, 1, '2024-03-10')

        assert reads == [0, 1]
        assert donor.total_donations == 2
        assert donor.points == 200
        assert_counters_consistent(donor)

    @pytest.mark.parametrize('donor_id', ['abc', None, '1.5'])
    def test_malformed_donor_id_is_not_found(self, ledger, donor_id):
        with pytest.raises(NotFound):
            ledger.donations.record_donation(donor_id, 1)
        with pytest.raises(NotFound):
            ledger.donations.list_donations(donor_id)

    def test_persistent_store_errors_become_transient(self, ledger, make_donor, settings):
        settings.LEDGER_RETRY_ATTEMPTS = 3
        donor = make_donor()

        with mock.patch('ledger.services.donations.apply_donation',
                        side_effect=OperationalError('database is locked')) as apply_mock, \
                mock.patch('ledger.transactions.time.sleep') as sleep_mock:
            with pytest.raises(Transient):
                ledger.donations.record_donation(donor.pk, 1)

        assert apply_mock.call_count == 3
        assert sleep_mock.call_count == 2
        assert not Donation.objects.exists()

    def test_retry_backoff_is_exponential(self, ledger, make_donor, settings):
        settings.LEDGER_RETRY_ATTEMPTS = 3
        settings.LEDGER_RETRY_BACKOFF = 0.1
        donor = make_donor()
        real_apply = eligibility.apply_donation
        outcomes = [OperationalError('timeout'), OperationalError('timeout')]

        def flaky(total, day):
            if outcomes:
                raise outcomes.pop(0)
            return real_apply(total, day)

        with mock.patch('ledger.services.donations.apply_donation', side_effect=flaky), \
                mock.patch('ledger.transactions.time.sleep') as sleep_mock:
            donor, _ = ledger.donations.record_donation(donor.pk, 1)

        assert [c.args[0] for c in sleep_mock.call_args_list] == pytest.approx([0.1, 0.2])
        assert donor.total_donations == 1


@pytest.mark.django_db
class TestWalkIn:
    def test_registers_new_donor_with_first_donation(self, ledger):
        donor, donation, created = ledger.donations.record_walk_in(
            'NAT-77', name='Ravi Kumar', blood_group='B+', email='ravi@bloodbank.test',
        )

        assert created
        assert donor.national_id == 'NAT-77'
        assert donor.donate_consent == 'Yes'
        assert donor.total_donations == 1
        assert donation.amount == 1
        assert_counters_consistent(donor)

    def test_existing_donor_is_refreshed(self, ledger, make_donor):
        existing = make_donor(national_id='NAT-88', phone='111')

        donor, _, created = ledger.donations.record_walk_in('NAT-88', amount=2, phone='222')

        assert not created
        assert donor.pk == existing.pk
        assert donor.phone == '222'
        assert donor.total_donations == 1
        assert Donor.objects.count() == 1

    def test_new_donor_needs_profile_fields(self, ledger):
        with pytest.raises(InvalidArgument):
            ledger.donations.record_walk_in('NAT-99')
        assert not Donor.objects.exists()
        assert not Donation.objects.exists()


@pytest.mark.django_db
class TestListings:
    def test_donor_donations_newest_first(self, ledger, make_donor):
        donor = make_donor()
        for day in ('2024-01-10', '2024-09-01', '2024-05-05'):
            ledger.donations.record_donation(donor.pk, 1, day)

        dates = [d.date.date() for d in ledger.donations.list_donations(donor.pk)]
        assert dates == [date(2024, 9, 1), date(2024, 5, 5), date(2024, 1, 10)]

    def test_list_for_missing_donor(self, ledger):
        with pytest.raises(NotFound):
            ledger.donations.list_donations(404)

    def test_donations_on_a_day_are_inclusive(self, ledger, make_donor):
        donor = make_donor()
        day = date(2024, 6, 14)
        ledger.donations.record_donation(donor.pk, 1, aware(day, time(0, 0, 0)))
        ledger.donations.record_donation(donor.pk, 1, aware(day, time(23, 59, 59)))
        ledger.donations.record_donation(donor.pk, 1, aware(date(2024, 6, 15)))
        ledger.donations.record_donation(donor.pk, 1, aware(date(2024, 6, 13), time(23, 59, 59)))

        matched = list(ledger.donations.list_donations_on(day))

        assert len(matched) == 2
        assert all(timezone.localtime(d.date).date() == day for d in matched)

    def test_owner_without_profile_has_no_donations(self, ledger, member):
        assert list(ledger.donations.list_donations_for_owner(member)) == []

    def test_deleting_donor_removes_donations(self, ledger, make_donor):
        donor = make_donor()
        ledger.donations.record_donation(donor.pk, 1)
        ledger.donations.record_donation(donor.pk, 1)

        ledger.donors.delete(donor.pk)

        assert not Donation.objects.exists()


@pytest.mark.django_db(transaction=True)
def test_parallel_donations_for_one_donor(ledger, make_donor, run_concurrently):
    donor = make_donor()

    results, errors = run_concurrently(lambda _: ledger.donations.record_donation(donor.pk, 1))

    # contention may exhaust retries, but never loses an update
    assert all(isinstance(exc, Transient) for exc in errors)
    donor.refresh_from_db()
    assert donor.total_donations == len(results) >= 1
    assert_counters_consistent(donor)
