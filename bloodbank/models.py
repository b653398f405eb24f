from django.db import models
from django.db.models import Q
from django.contrib.auth.models import AbstractUser
from django.core.validators import MinValueValidator, MaxValueValidator

BLOOD_GROUP_CHOICES = [
    ('A+', 'A+'), ('A-', 'A-'),
    ('B+', 'B+'), ('B-', 'B-'),
    ('O+', 'O+'), ('O-', 'O-'),
    ('AB+', 'AB+'), ('AB-', 'AB-'),
]
BLOOD_GROUPS = [value for value, _ in BLOOD_GROUP_CHOICES]

ROLE_CHOICES = [
    ('admin', 'Admin'),
    ('staff', 'Staff'),
]

GENDER_CHOICES = [
    ('Male', 'Male'),
    ('Female', 'Female'),
    ('Other', 'Other'),
]

MIN_DONOR_AGE = 18
MAX_DONOR_AGE = 65


class User(AbstractUser):
    role = models.CharField(max_length=10, choices=ROLE_CHOICES, default='staff')
    name = models.CharField(max_length=100)

    @property
    def is_admin(self):
        return self.role == 'admin'

    def __str__(self):
        return f"{self.username} ({self.role})"


class Donor(models.Model):
    name = models.CharField(max_length=100)
    age = models.PositiveIntegerField(
        validators=[MinValueValidator(MIN_DONOR_AGE), MaxValueValidator(MAX_DONOR_AGE)]
    )
    gender = models.CharField(max_length=10, choices=GENDER_CHOICES)
    contact = models.CharField(max_length=20, blank=True)
    address = models.TextField(blank=True)
    blood_group = models.CharField(max_length=3, choices=BLOOD_GROUP_CHOICES)
    medical_history = models.TextField(blank=True, default='')

    class Meta:
        ordering = ['-id']

    def __str__(self):
        return f"{self.name} - {self.blood_group}"


class Hospital(models.Model):
    name = models.CharField(max_length=200)
    location = models.CharField(max_length=200, blank=True)

    class Meta:
        ordering = ['name']

    def __str__(self):
        return self.name


class Patient(models.Model):
    id = models.CharField(max_length=12, primary_key=True, editable=False)
    name = models.CharField(max_length=100)
    blood_group = models.CharField(max_length=3, choices=BLOOD_GROUP_CHOICES)
    gender = models.CharField(max_length=10, choices=GENDER_CHOICES)
    contact = models.CharField(max_length=20, blank=True)
    # Deletion of a hospital is guarded in the service layer; PROTECT is the backstop.
    hospital = models.ForeignKey(
        Hospital, on_delete=models.PROTECT, null=True, blank=True, related_name='patients'
    )

    class Meta:
        ordering = ['-id']

    def __str__(self):
        return f"{self.id} - {self.name}"


class Staff(models.Model):
    ROLE_MANAGER = 'Manager'
    ROLE_CLINICAL_ANALYST = 'Clinical Analyst'
    ROLE_REGISTRATION_TEAM = 'Registration Team'
    ROLE_CHOICES = [
        (ROLE_MANAGER, 'Manager'),
        (ROLE_CLINICAL_ANALYST, 'Clinical Analyst'),
        (ROLE_REGISTRATION_TEAM, 'Registration Team'),
    ]

    id = models.CharField(max_length=12, primary_key=True, editable=False)
    name = models.CharField(max_length=100)
    role = models.CharField(max_length=20, choices=ROLE_CHOICES)

    class Meta:
        ordering = ['role', 'name']
        constraints = [
            models.UniqueConstraint(fields=['name', 'role'], name='unique_staff_name_role'),
        ]
        verbose_name_plural = 'staff'

    def __str__(self):
        return f"{self.name} ({self.role})"


class BloodUnit(models.Model):
    STATUS_AVAILABLE = 'Available'
    STATUS_ISSUED = 'Issued'
    STATUS_EXPIRED = 'Expired'
    STATUS_CHOICES = [
        (STATUS_AVAILABLE, 'Available'),
        (STATUS_ISSUED, 'Issued'),
        (STATUS_EXPIRED, 'Expired'),
    ]

    id = models.CharField(max_length=16, primary_key=True, editable=False)
    blood_group = models.CharField(max_length=3, choices=BLOOD_GROUP_CHOICES)
    donation_date = models.DateField()
    expiry_date = models.DateField()
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default=STATUS_AVAILABLE)
    donor = models.ForeignKey(
        Donor, on_delete=models.SET_NULL, null=True, blank=True, related_name='blood_units'
    )
    patient = models.ForeignKey(
        Patient, on_delete=models.PROTECT, null=True, blank=True, related_name='blood_units'
    )

    class Meta:
        ordering = ['-donation_date', '-id']
        constraints = [
            models.CheckConstraint(
                condition=Q(expiry_date__gt=models.F('donation_date')),
                name='blood_unit_expiry_after_donation',
            ),
            models.CheckConstraint(
                condition=(
                    Q(status='Issued', patient__isnull=False)
                    | (~Q(status='Issued') & Q(patient__isnull=True))
                ),
                name='blood_unit_patient_iff_issued',
            ),
        ]
        indexes = [
            models.Index(fields=['status', 'expiry_date'], name='blood_unit_status_expiry'),
            models.Index(fields=['blood_group', 'status'], name='blood_unit_group_status'),
        ]

    @property
    def is_available(self):
        return self.status == self.STATUS_AVAILABLE

    def __str__(self):
        return f"{self.id} - {self.blood_group} ({self.status})"


class BloodInventory(models.Model):
    """Available-unit count per blood group, kept in step with BloodUnit rows."""
    blood_group = models.CharField(max_length=3, choices=BLOOD_GROUP_CHOICES, primary_key=True)
    total_quantity = models.PositiveIntegerField(default=0)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name_plural = 'blood inventory'

    def __str__(self):
        return f"{self.blood_group}: {self.total_quantity}"


class IdentifierSequence(models.Model):
    """Last issued number for an identifier scope such as ``patient`` or ``blood_unit:2026``."""
    scope = models.CharField(max_length=32, primary_key=True)
    last_value = models.PositiveIntegerField(default=0)

    def __str__(self):
        return f"{self.scope}={self.last_value}"
