import threading

import pytest
from django.db import connection
from rest_framework.test import APIClient

from ledger.models import Donor, User
from ledger.services import Ledger


@pytest.fixture(autouse=True)
def fast_retries(settings):
    settings.LEDGER_RETRY_BACKOFF = 0


@pytest.fixture
def ledger():
    return Ledger()


@pytest.fixture
def admin_user(db):
    return User.objects.create_user(username='admin', email='admin@bloodbank.test', password='pass12345!', role='admin')


@pytest.fixture
def member(db):
    return User.objects.create_user(username='member', email='member@bloodbank.test', password='pass12345!')


@pytest.fixture
def admin_client(admin_user):
    client = APIClient()
    client.force_authenticate(user=admin_user)
    return client


@pytest.fixture
def member_client(member):
    client = APIClient()
    client.force_authenticate(user=member)
    return client


@pytest.fixture
def make_donor(db):
    counter = {'n': 0}

    def make(**fields):
        counter['n'] += 1
        n = counter['n']
        fields.setdefault('national_id', f'ID-{n:04d}')
        fields.setdefault('name', f'Donor {n}')
        fields.setdefault('email', f'donor{n}@bloodbank.test')
        fields.setdefault('blood_group', 'O+')
        fields.setdefault('donate_consent', 'Yes')
        return Donor.objects.create(**fields)

    return make


@pytest.fixture
def run_concurrently(settings):
    """
    Run `func` in `workers` threads released together. Returns the results
    and the exceptions raised, one list each.
    """
    settings.LEDGER_RETRY_ATTEMPTS = 10
    settings.LEDGER_RETRY_BACKOFF = 0.01

    def run(func, workers=4):
        barrier = threading.Barrier(workers)
        results, errors = [], []
        lock = threading.Lock()

        def worker(index):
            try:
                barrier.wait()
                outcome = func(index)
            except Exception as exc:
                with lock:
                    errors.append(exc)
            else:
                with lock:
                    results.append(outcome)
            finally:
                connection.close()

        threads = [threading.Thread(target=worker, args=(index,)) for index in range(workers)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        return results, errors

    return run
