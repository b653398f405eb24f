import pytest
from django.utils import timezone
from rest_framework.test import APIClient

from bloodbank import services
from bloodbank.models import BloodInventory, BloodUnit, User

PASSWORD = 'Plasma-Bag-42'


@pytest.fixture
def password():
    return PASSWORD


@pytest.fixture
def today():
    return timezone.localdate()


@pytest.fixture
def admin_user(db):
    return User.objects.create_user(
        username='head.nurse', password=PASSWORD, name='Head Nurse', role='admin'
    )


@pytest.fixture
def staff_user(db):
    return User.objects.create_user(
        username='desk.clerk', password=PASSWORD, name='Desk Clerk', role='staff'
    )


@pytest.fixture
def admin_client(admin_user):
    client = APIClient()
    client.force_authenticate(user=admin_user)
    return client


@pytest.fixture
def staff_client(staff_user):
    client = APIClient()
    client.force_authenticate(user=staff_user)
    return client


@pytest.fixture
def anon_client():
    return APIClient()


@pytest.fixture
def donor(db):
    return services.add_donor(
        name='Asha Rao', age=30, gender='Female', blood_group='O+', contact='555-0101'
    )


@pytest.fixture
def hospital(db):
    return services.add_hospital(name='City General', location='Downtown')


@pytest.fixture
def patient(hospital):
    return services.add_patient(
        name='Ravi Kumar', blood_group='O+', gender='Male', contact='555-0199', hospital=hospital
    )


@pytest.fixture
def inventory():
    """Current stored Available count for a blood group."""
    def count(group):
        return BloodInventory.objects.get(blood_group=group).total_quantity
    return count


@pytest.fixture
def assert_inventory_consistent():
    def check():
        for row in BloodInventory.objects.all():
            actual = BloodUnit.objects.filter(
                blood_group=row.blood_group, status=BloodUnit.STATUS_AVAILABLE
            ).count()
            assert row.total_quantity == actual, row.blood_group
        for unit in BloodUnit.objects.all():
            if unit.status == BloodUnit.STATUS_ISSUED:
                assert unit.patient_id is not None
            else:
                assert unit.patient_id is None
    return check


@pytest.fixture
def interleave(monkeypatch):
    """Run ``competing()`` once, just before the next inventory lock is taken."""
    def install(competing):
        real_lock = services._lock_inventory
        pending = [competing]

        def lock_after_competitor(groups):
            if pending:
                pending.pop()()
            return real_lock(groups)

        monkeypatch.setattr(services, '_lock_inventory', lock_after_competitor)
    return install
