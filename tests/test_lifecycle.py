from datetime import timedelta

import pytest
from rest_framework.exceptions import NotFound, ValidationError

from bloodbank import services
from bloodbank.exceptions import InvalidStateError
from bloodbank.models import BLOOD_GROUPS, BloodUnit

pytestmark = pytest.mark.django_db


def make_unit(group, donation_date, expiry_date, donor=None):
    return services.create_blood_unit(
        blood_group=group, donation_date=donation_date, expiry_date=expiry_date, donor=donor
    )


def test_donate_then_issue_moves_unit_and_inventory(donor, patient, today, inventory,
                                                     assert_inventory_consistent):
    before = inventory('O+')
    unit = make_unit('O+', today, today + timedelta(days=30), donor=donor)

    assert unit.status == BloodUnit.STATUS_AVAILABLE
    assert unit.donor == donor
    assert inventory('O+') == before + 1

    issued = services.issue_blood_unit(unit.id, patient.id)

    assert issued.status == BloodUnit.STATUS_ISSUED
    assert issued.patient_id == patient.id
    assert inventory('O+') == before
    assert_inventory_consistent()


def test_issue_requires_available_unit(patient, today, inventory, assert_inventory_consistent):
    unit = make_unit('B+', today - timedelta(days=40), today - timedelta(days=1))
    services.expire_blood_units(today=today)
    before = inventory('B+')

    with pytest.raises(InvalidStateError):
        services.issue_blood_unit(unit.id, patient.id)

    unit.refresh_from_db()
    assert unit.status == BloodUnit.STATUS_EXPIRED
    assert unit.patient is None
    assert inventory('B+') == before
    assert_inventory_consistent()


def test_issue_twice_fails_second_time(patient, today, inventory):
    unit = make_unit('A+', today, today + timedelta(days=20))
    services.issue_blood_unit(unit.id, patient.id)
    after_first = inventory('A+')

    with pytest.raises(InvalidStateError):
        services.issue_blood_unit(unit.id, patient.id)
    assert inventory('A+') == after_first


def test_issue_unknown_unit_or_patient(patient, today):
    unit = make_unit('A+', today, today + timedelta(days=20))

    with pytest.raises(NotFound):
        services.issue_blood_unit('BU19990001', patient.id)
    with pytest.raises(NotFound):
        services.issue_blood_unit(unit.id, 'PAT9999')

    unit.refresh_from_db()
    assert unit.status == BloodUnit.STATUS_AVAILABLE


def test_create_rejects_bad_dates_and_unknown_donor(today, inventory):
    before = inventory('AB-')
    with pytest.raises(ValidationError):
        make_unit('AB-', today, today)
    with pytest.raises(ValidationError):
        make_unit('AB-', today, today - timedelta(days=1))
    with pytest.raises(NotFound):
        make_unit('AB-', today, today + timedelta(days=10), donor=987654)
    assert inventory('AB-') == before
    assert not BloodUnit.objects.exists()


def test_expiry_sweep_is_idempotent(today, inventory, assert_inventory_consistent):
    stale = make_unit('A-', today - timedelta(days=35), today - timedelta(days=1))
    fresh = make_unit('A-', today, today + timedelta(days=35))
    assert inventory('A-') == 2

    assert services.expire_blood_units(today=today) == 1
    stale.refresh_from_db()
    fresh.refresh_from_db()
    assert stale.status == BloodUnit.STATUS_EXPIRED
    assert fresh.status == BloodUnit.STATUS_AVAILABLE
    assert inventory('A-') == 1

    snapshot = list(BloodUnit.objects.order_by('id').values_list('id', 'status', 'patient_id'))
    assert services.expire_blood_units(today=today) == 0
    assert list(BloodUnit.objects.order_by('id').values_list('id', 'status', 'patient_id')) == snapshot
    assert inventory('A-') == 1
    assert_inventory_consistent()


def test_expiry_sweep_keeps_units_expiring_today(today):
    unit = make_unit('O-', today - timedelta(days=42), today)
    assert services.expire_blood_units(today=today) == 0
    unit.refresh_from_db()
    assert unit.status == BloodUnit.STATUS_AVAILABLE


def test_expiry_sweep_never_touches_issued_units(patient, today, assert_inventory_consistent):
    unit = make_unit('O+', today - timedelta(days=10), today + timedelta(days=1))
    services.issue_blood_unit(unit.id, patient.id)

    services.expire_blood_units(today=today + timedelta(days=100))

    unit.refresh_from_db()
    assert unit.status == BloodUnit.STATUS_ISSUED
    assert unit.patient_id == patient.id
    assert_inventory_consistent()


def test_update_unit_moves_count_between_groups(today, inventory, assert_inventory_consistent):
    unit = make_unit('B-', today, today + timedelta(days=30))
    assert inventory('B-') == 1

    services.update_blood_unit(unit, blood_group='AB+')

    assert unit.blood_group == 'AB+'
    assert inventory('B-') == 0
    assert inventory('AB+') == 1
    assert_inventory_consistent()


def test_update_rejected_once_issued(patient, today):
    unit = make_unit('B+', today, today + timedelta(days=30))
    services.issue_blood_unit(unit.id, patient.id)
    unit.refresh_from_db()

    with pytest.raises(InvalidStateError):
        services.update_blood_unit(unit, expiry_date=today + timedelta(days=40))


def test_donor_of_unit_is_immutable(donor, today):
    unit = make_unit('O+', today, today + timedelta(days=30), donor=donor)
    other = services.add_donor(name='Ben Cole', age=41, gender='Male', blood_group='O+')

    with pytest.raises(ValidationError):
        services.update_blood_unit(unit, donor=other)


def test_delete_unit_keeps_inventory_in_step(patient, today, inventory, assert_inventory_consistent):
    available = make_unit('A+', today, today + timedelta(days=30))
    issued = make_unit('A+', today, today + timedelta(days=30))
    services.issue_blood_unit(issued.id, patient.id)
    assert inventory('A+') == 1

    services.delete_blood_unit(available)
    assert inventory('A+') == 0

    issued.refresh_from_db()
    with pytest.raises(InvalidStateError):
        services.delete_blood_unit(issued)
    assert_inventory_consistent()


def test_inventory_lists_every_group_including_empty(today):
    make_unit('O+', today, today + timedelta(days=30))
    rows = services.get_inventory()

    assert [row['blood_group'] for row in rows] == BLOOD_GROUPS
    counts = {row['blood_group']: row['total_quantity'] for row in rows}
    assert counts['O+'] == 1
    assert counts['AB-'] == 0


def test_critical_groups_sorted_ascending(today):
    for _ in range(3):
        make_unit('O+', today, today + timedelta(days=30))
    for _ in range(2):
        make_unit('A-', today, today + timedelta(days=30))
    make_unit('B+', today, today + timedelta(days=30))

    critical = services.get_critical_groups(threshold=2)
    groups = [row['blood_group'] for row in critical]
    quantities = [row['total_quantity'] for row in critical]

    assert 'O+' not in groups
    assert groups[-2:] == ['B+', 'A-']
    assert quantities == sorted(quantities)
    assert len(critical) == 7


def test_near_expiry_window_and_order(patient, today):
    in_three = make_unit('A+', today - timedelta(days=30), today + timedelta(days=3))
    today_unit = make_unit('B+', today - timedelta(days=30), today)
    in_seven = make_unit('O+', today - timedelta(days=30), today + timedelta(days=7))
    make_unit('O+', today - timedelta(days=30), today + timedelta(days=8))
    make_unit('O-', today - timedelta(days=30), today - timedelta(days=1))
    issued = make_unit('AB+', today - timedelta(days=30), today + timedelta(days=1))
    services.issue_blood_unit(issued.id, patient.id)

    units = services.get_near_expiry(7, today=today)

    assert [u.id for u in units] == [today_unit.id, in_three.id, in_seven.id]
    assert [u.days_until_expiry for u in units] == [0, 3, 7]
    assert [u.severity for u in units] == ['critical', 'warning', 'notice']


@pytest.mark.parametrize('days, severity', [
    (0, 'critical'), (2, 'critical'), (3, 'warning'), (5, 'warning'), (6, 'notice'), (7, 'notice'),
])
def test_expiry_severity_buckets(days, severity):
    assert services.expiry_severity(days) == severity


def test_delete_from_stale_copy_recounts_current_group(today, inventory, assert_inventory_consistent):
    unit = make_unit('A+', today, today + timedelta(days=30))
    stale = BloodUnit.objects.get(pk=unit.pk)

    services.update_blood_unit(unit, blood_group='B+')
    services.delete_blood_unit(stale)

    assert not BloodUnit.objects.filter(pk=unit.pk).exists()
    assert inventory('A+') == 0
    assert inventory('B+') == 0
    assert_inventory_consistent()


def test_delete_from_stale_copy_refuses_issued_unit(patient, today, assert_inventory_consistent):
    unit = make_unit('O+', today, today + timedelta(days=30))
    stale = BloodUnit.objects.get(pk=unit.pk)
    services.issue_blood_unit(unit.id, patient.id)

    with pytest.raises(InvalidStateError):
        services.delete_blood_unit(stale)

    assert BloodUnit.objects.get(pk=unit.pk).status == BloodUnit.STATUS_ISSUED
    assert_inventory_consistent()


def test_update_from_stale_copy_checks_current_state(patient, today):
    unit = make_unit('AB+', today, today + timedelta(days=30))
    stale = BloodUnit.objects.get(pk=unit.pk)
    services.issue_blood_unit(unit.id, patient.id)

    with pytest.raises(InvalidStateError):
        services.update_blood_unit(stale, blood_group='AB-')
    assert BloodUnit.objects.get(pk=unit.pk).blood_group == 'AB+'


def test_concurrent_issues_of_one_unit_only_one_succeeds(patient, hospital, today, inventory,
                                                          interleave, assert_inventory_consistent):
    unit = make_unit('B-', today, today + timedelta(days=30))
    rival = services.add_patient(name='Second Patient', blood_group='B-', gender='Male',
                                 hospital=hospital)
    interleave(lambda: services.issue_blood_unit(unit.id, rival.id))

    with pytest.raises(InvalidStateError):
        services.issue_blood_unit(unit.id, patient.id)

    unit.refresh_from_db()
    assert unit.status == BloodUnit.STATUS_ISSUED
    assert unit.patient_id == rival.id
    assert inventory('B-') == 0
    assert_inventory_consistent()


def test_delete_follows_unit_moved_to_another_group(today, inventory, interleave,
                                                    assert_inventory_consistent):
    unit = make_unit('A-', today, today + timedelta(days=30))
    interleave(lambda: services.update_blood_unit(BloodUnit.objects.get(pk=unit.pk), blood_group='O-'))

    services.delete_blood_unit(unit)

    assert not BloodUnit.objects.filter(pk=unit.pk).exists()
    assert inventory('A-') == 0
    assert inventory('O-') == 0
    assert_inventory_consistent()
