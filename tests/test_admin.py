from datetime import timedelta
from types import SimpleNamespace

import pytest
from django.contrib import admin

from bloodbank import services
from bloodbank.admin import BloodUnitAdmin
from bloodbank.exceptions import InvalidStateError
from bloodbank.models import BloodUnit

pytestmark = pytest.mark.django_db


@pytest.fixture
def unit_admin():
    return BloodUnitAdmin(BloodUnit, admin.site)


def test_donor_is_never_editable(unit_admin, donor, today):
    unit = services.create_blood_unit('O+', today, today + timedelta(days=30), donor=donor)
    readonly = unit_admin.get_readonly_fields(None, unit)
    assert 'donor' in readonly
    assert 'donation_date' not in readonly


def test_dates_locked_once_unit_leaves_available(unit_admin, patient, today):
    unit = services.create_blood_unit('O+', today, today + timedelta(days=30))
    services.issue_blood_unit(unit.id, patient.id)
    unit.refresh_from_db()

    readonly = unit_admin.get_readonly_fields(None, unit)
    assert {'donation_date', 'expiry_date', 'status', 'patient'} <= set(readonly)


def test_admin_save_goes_through_lifecycle_rules(unit_admin, patient, today):
    unit = services.create_blood_unit('B+', today, today + timedelta(days=30))
    later = today + timedelta(days=35)
    form = SimpleNamespace(changed_data=['expiry_date'], cleaned_data={'expiry_date': later})

    unit_admin.save_model(None, unit, form, change=True)
    assert BloodUnit.objects.get(pk=unit.pk).expiry_date == later

    services.issue_blood_unit(unit.id, patient.id)
    with pytest.raises(InvalidStateError):
        unit_admin.save_model(None, unit, form, change=True)
