"""
Blood-unit lifecycle and inventory consistency.

Every write that can change how many units of a blood group are Available runs
inside one ``transaction.atomic`` block that

1. locks the inventory rows of the affected groups,
2. applies the unit writes,
3. recomputes the locked groups' counts from the unit rows.

so ``BloodInventory.total_quantity`` always equals the number of Available units
of that group, and concurrent writers to the same group are serialized on the
inventory row.
"""
import logging
import math
from datetime import timedelta

from django.conf import settings
from django.db import transaction
from django.db.models import Count, F
from django.utils import timezone
from rest_framework.exceptions import NotFound, ValidationError

from .exceptions import InvalidStateError, ReferentialGuardError
from .models import (
    BLOOD_GROUPS, BloodInventory, BloodUnit, Donor, Hospital, IdentifierSequence,
    Patient, Staff, User,
)

logger = logging.getLogger(__name__)

SEVERITY_CRITICAL = 'critical'
SEVERITY_WARNING = 'warning'
SEVERITY_NOTICE = 'notice'

LOCK_ATTEMPTS = 3


# -------------------------------
# Identifier generation
# -------------------------------
def next_identifier(scope, prefix, width, initial=0):
    """
    Return the next ``prefix`` + zero-padded number for ``scope``.

    The counter row is incremented with a single UPDATE, which holds the row lock
    until the surrounding transaction ends, so two creates in the same scope never
    receive the same number. ``initial`` seeds a scope the first time it is used.
    """
    with transaction.atomic():
        IdentifierSequence.objects.get_or_create(scope=scope, defaults={'last_value': initial})
        IdentifierSequence.objects.filter(scope=scope).update(last_value=F('last_value') + 1)
        value = IdentifierSequence.objects.get(scope=scope).last_value
    return f"{prefix}{value:0{width}d}"


def next_patient_id():
    return next_identifier('patient', 'PAT', 4, initial=lambda: Patient.objects.count())


def next_staff_id():
    return next_identifier('staff', 'STF', 3, initial=lambda: Staff.objects.count())


def next_blood_unit_id(year=None):
    year = year or timezone.localdate().year
    prefix = f"BU{year}"
    return next_identifier(
        f"blood_unit:{year}", prefix, 4,
        initial=lambda: BloodUnit.objects.filter(id__startswith=prefix).count(),
    )


# -------------------------------
# Inventory bookkeeping
# -------------------------------
def _lock_inventory(groups):
    groups = sorted(set(groups))
    if not groups:
        return []
    BloodInventory.objects.bulk_create(
        [BloodInventory(blood_group=g) for g in groups], ignore_conflicts=True
    )
    # Fixed lock order keeps concurrent sweeps and issues from deadlocking.
    return list(BloodInventory.objects.select_for_update().filter(blood_group__in=groups)
                .order_by('blood_group'))


def _recount(rows):
    counts = dict(
        BloodUnit.objects.filter(status=BloodUnit.STATUS_AVAILABLE,
                                 blood_group__in=[row.blood_group for row in rows])
        .order_by().values_list('blood_group').annotate(n=Count('id'))
    )
    for row in rows:
        row.total_quantity = counts.get(row.blood_group, 0)
        row.save(update_fields=['total_quantity', 'updated_at'])


def get_inventory():
    """One row per blood group, zero-count groups included."""
    stored = {row.blood_group: row for row in BloodInventory.objects.all()}
    rows = []
    for group in BLOOD_GROUPS:
        row = stored.get(group)
        rows.append({
            'blood_group': group,
            'total_quantity': row.total_quantity if row else 0,
            'updated_at': row.updated_at if row else None,
        })
    return rows


def get_critical_groups(threshold=None):
    if threshold is None:
        threshold = settings.CRITICAL_STOCK_THRESHOLD
    critical = [row for row in get_inventory() if row['total_quantity'] <= threshold]
    return sorted(critical, key=lambda row: row['total_quantity'])


def expiry_severity(days_until_expiry):
    if days_until_expiry <= 2:
        return SEVERITY_CRITICAL
    if days_until_expiry <= 5:
        return SEVERITY_WARNING
    return SEVERITY_NOTICE


def get_near_expiry(window_days=None, today=None):
    """Available units expiring within ``[today, today + window_days]``, soonest first."""
    if window_days is None:
        window_days = settings.EXPIRY_ALERT_WINDOW_DAYS
    today = today or timezone.localdate()
    units = list(
        BloodUnit.objects.select_related('donor')
        .filter(status=BloodUnit.STATUS_AVAILABLE,
                expiry_date__range=(today, today + timedelta(days=window_days)))
        .order_by('expiry_date', 'id')
    )
    for unit in units:
        unit.days_until_expiry = (unit.expiry_date - today).days
        unit.severity = expiry_severity(unit.days_until_expiry)
    return units


# -------------------------------
# Blood unit lifecycle
# -------------------------------
def _get_or_404(model, pk, label):
    try:
        return model.objects.get(pk=pk)
    except (model.DoesNotExist, ValueError, TypeError):
        raise NotFound(f"{label} not found")


def _check_dates(donation_date, expiry_date):
    if expiry_date <= donation_date:
        raise ValidationError({'expiry_date': ['Expiry date must be after donation date.']})


def create_blood_unit(blood_group, donation_date, expiry_date, donor=None):
    if blood_group not in BLOOD_GROUPS:
        raise ValidationError({'blood_group': [f'"{blood_group}" is not a valid blood group.']})
    _check_dates(donation_date, expiry_date)
    if donor is not None and not isinstance(donor, Donor):
        donor = _get_or_404(Donor, donor, 'Donor')

    with transaction.atomic():
        rows = _lock_inventory([blood_group])
        unit = BloodUnit.objects.create(
            id=next_blood_unit_id(),
            blood_group=blood_group,
            donation_date=donation_date,
            expiry_date=expiry_date,
            donor=donor,
            status=BloodUnit.STATUS_AVAILABLE,
        )
        _recount(rows)
    logger.info("Blood unit %s (%s) added", unit.id, unit.blood_group)
    return unit


def _locked_write(unit_id, write, groups=()):
    """
    Run ``write(unit)`` with the unit re-read under the inventory locks of its group.

    Any write that moves a unit between groups holds both groups' rows, so once the
    group read under the lock matches the one that was locked it cannot change
    before commit. A unit that moved in between is looked up again.
    """
    for _ in range(LOCK_ATTEMPTS):
        group = BloodUnit.objects.filter(pk=unit_id).values_list('blood_group', flat=True).first()
        if group is None:
            raise NotFound("Blood unit not found")
        with transaction.atomic():
            rows = _lock_inventory([group, *groups])
            unit = BloodUnit.objects.select_for_update().filter(pk=unit_id).first()
            if unit is None:
                raise NotFound("Blood unit not found")
            if unit.blood_group == group:
                result = write(unit)
                _recount(rows)
                return result
        logger.debug("Blood unit %s changed group while locking, retrying", unit_id)
    raise InvalidStateError(f"Blood unit {unit_id} is being modified concurrently, try again")


def update_blood_unit(unit, **fields):
    """Edit group or dates of an Available unit. Donor, patient and status are not editable here."""
    new_group = fields.get('blood_group')
    if new_group is not None and new_group not in BLOOD_GROUPS:
        raise ValidationError({'blood_group': [f'"{new_group}" is not a valid blood group.']})

    def write(locked):
        if not locked.is_available:
            raise InvalidStateError(f"Blood unit {locked.id} is {locked.status} and can no longer be edited")
        if 'donor' in fields and getattr(fields['donor'], 'pk', fields['donor']) != locked.donor_id:
            raise ValidationError({'donor': ['Donor of a blood unit cannot be changed.']})
        locked.blood_group = new_group or locked.blood_group
        locked.donation_date = fields.get('donation_date', locked.donation_date)
        locked.expiry_date = fields.get('expiry_date', locked.expiry_date)
        _check_dates(locked.donation_date, locked.expiry_date)
        locked.save(update_fields=['blood_group', 'donation_date', 'expiry_date'])

    _locked_write(unit.pk, write, groups=[new_group] if new_group else [])
    unit.refresh_from_db()
    return unit


def delete_blood_unit(unit):
    unit_id = unit.pk

    def write(locked):
        if locked.status == BloodUnit.STATUS_ISSUED:
            raise InvalidStateError(f"Blood unit {unit_id} has been issued and cannot be deleted")
        locked.delete()

    _locked_write(unit_id, write)
    logger.info("Blood unit %s deleted", unit_id)


def issue_blood_unit(unit_id, patient_id):
    """Available -> Issued, paired with the inventory decrement for the unit's group."""
    if not BloodUnit.objects.filter(pk=unit_id).exists():
        raise NotFound("Blood unit not found")
    patient = _get_or_404(Patient, patient_id, 'Patient')

    def write(locked):
        if not locked.is_available:
            raise InvalidStateError(
                f"Blood unit {locked.id} is {locked.status}, only Available units can be issued"
            )
        # Conditional write: of two concurrent issues only one sees the unit Available.
        return BloodUnit.objects.filter(pk=locked.pk, status=BloodUnit.STATUS_AVAILABLE).update(
            status=BloodUnit.STATUS_ISSUED, patient=patient
        )

    if not _locked_write(unit_id, write):
        raise InvalidStateError(f"Blood unit {unit_id} is no longer Available")
    unit = BloodUnit.objects.select_related('donor', 'patient__hospital').get(pk=unit_id)
    logger.info("Blood unit %s issued to patient %s", unit.id, patient.id)
    return unit


def expire_blood_units(today=None):
    """
    Sweep: every Available unit whose expiry date is before ``today`` becomes Expired.

    Issued units are never touched. Running it again on the same day changes nothing.
    Returns the number of units transitioned.
    """
    today = today or timezone.localdate()
    with transaction.atomic():
        rows = _lock_inventory(BLOOD_GROUPS)
        expired = BloodUnit.objects.filter(status=BloodUnit.STATUS_AVAILABLE, expiry_date__lt=today)
        count = expired.update(status=BloodUnit.STATUS_EXPIRED)
        _recount(rows)
    if count:
        logger.info("Expired %d blood unit(s) as of %s", count, today)
    return count


# -------------------------------
# Entity operations
# -------------------------------
def _apply(instance, fields):
    for attr, value in fields.items():
        setattr(instance, attr, value)
    instance.save()
    return instance


def add_donor(**fields):
    donor = Donor.objects.create(**fields)
    logger.info("Donor %s added", donor.pk)
    return donor


def update_donor(donor, **fields):
    with transaction.atomic():
        _apply(donor, fields)
    logger.info("Donor %s updated", donor.pk)
    return donor


def delete_donor(donor):
    """Remove a donor. Their blood units stay and lose the donor link."""
    donor_id = donor.pk
    with transaction.atomic():
        donor.delete()
    logger.info("Donor %s deleted", donor_id)


def add_hospital(**fields):
    return Hospital.objects.create(**fields)


def update_hospital(hospital, **fields):
    with transaction.atomic():
        return _apply(hospital, fields)


def delete_hospital(hospital):
    with transaction.atomic():
        if Patient.objects.filter(hospital=hospital).exists():
            logger.warning("Refused to delete hospital %s with patients attached", hospital.pk)
            raise ReferentialGuardError(
                'Cannot delete hospital. There are patients associated with this hospital.'
            )
        hospital.delete()


def add_patient(**fields):
    with transaction.atomic():
        patient = Patient.objects.create(id=next_patient_id(), **fields)
    logger.info("Patient %s added", patient.id)
    return patient


def update_patient(patient, **fields):
    with transaction.atomic():
        _apply(patient, fields)
    logger.info("Patient %s updated", patient.id)
    return patient


def delete_patient(patient):
    with transaction.atomic():
        if BloodUnit.objects.filter(patient=patient).exists():
            raise ReferentialGuardError(
                'Cannot delete patient. Blood units have been issued to this patient.'
            )
        patient.delete()


def add_staff(**fields):
    with transaction.atomic():
        staff = Staff.objects.create(id=next_staff_id(), **fields)
    logger.info("Staff %s added", staff.id)
    return staff


def update_staff(staff, **fields):
    with transaction.atomic():
        return _apply(staff, fields)


def register_user(username, password, name, email='', role='staff'):
    return User.objects.create_user(
        username=username, password=password, name=name, email=email, role=role,
        is_staff=(role == 'admin'),
    )


def seed_default_admin():
    """Create the configured admin account when the user table is empty."""
    if User.objects.exists():
        return None
    user = register_user(
        username=settings.DEFAULT_ADMIN_USERNAME,
        password=settings.DEFAULT_ADMIN_PASSWORD,
        name=settings.DEFAULT_ADMIN_NAME,
        email=settings.DEFAULT_ADMIN_EMAIL,
        role='admin',
    )
    logger.info("Default admin user created: %s", user.username)
    return user


# -------------------------------
# Reporting
# -------------------------------
def paginate(queryset, page=1, limit=10):
    try:
        page = max(int(page), 1)
        limit = max(int(limit), 1)
    except (TypeError, ValueError):
        raise ValidationError({'pagination': ['page and limit must be integers.']})
    total = queryset.count()
    offset = (page - 1) * limit
    items = list(queryset[offset:offset + limit])
    return items, {
        'page': page,
        'limit': limit,
        'total': total,
        'pages': math.ceil(total / limit),
    }


def dashboard_analytics(today=None):
    today = today or timezone.localdate()
    inventory = get_inventory()
    units = BloodUnit.objects.all()
    status_counts = dict(units.order_by().values_list('status').annotate(n=Count('id')))
    top_donors = (
        Donor.objects.annotate(donations=Count('blood_units'))
        .order_by('-donations', 'id')
        .values('id', 'name', 'blood_group', 'donations')[:5]
    )
    return {
        'overview': {
            'donors': Donor.objects.count(),
            'patients': Patient.objects.count(),
            'total_blood_units': units.count(),
            'available_blood_units': status_counts.get(BloodUnit.STATUS_AVAILABLE, 0),
            'expired_blood_units': status_counts.get(BloodUnit.STATUS_EXPIRED, 0),
            'issued_blood_units': status_counts.get(BloodUnit.STATUS_ISSUED, 0),
            'total_inventory': sum(row['total_quantity'] for row in inventory),
            'near_expiry_units': len(get_near_expiry(today=today)),
            'recent_donations': units.filter(donation_date__gte=today - timedelta(days=30)).count(),
        },
        'blood_inventory': inventory,
        'top_donors': list(top_donors),
        'last_updated': timezone.now(),
    }
