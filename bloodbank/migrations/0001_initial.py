import django.contrib.auth.models
import django.contrib.auth.validators
import django.core.validators
import django.db.models.deletion
import django.utils.timezone
from django.db import migrations, models

BLOOD_GROUP_CHOICES = [
    ('A+', 'A+'), ('A-', 'A-'),
    ('B+', 'B+'), ('B-', 'B-'),
    ('O+', 'O+'), ('O-', 'O-'),
    ('AB+', 'AB+'), ('AB-', 'AB-'),
]
GENDER_CHOICES = [('Male', 'Male'), ('Female', 'Female'), ('Other', 'Other')]


def seed_inventory(apps, schema_editor):
    BloodInventory = apps.get_model('bloodbank', 'BloodInventory')
    for group, _ in BLOOD_GROUP_CHOICES:
        BloodInventory.objects.get_or_create(blood_group=group, defaults={'total_quantity': 0})


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('auth', '0012_alter_user_first_name_max_length'),
    ]

    operations = [
        migrations.CreateModel(
            name='User',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('password', models.CharField(max_length=128, verbose_name='password')),
                ('last_login', models.DateTimeField(blank=True, null=True, verbose_name='last login')),
                ('is_superuser', models.BooleanField(default=False, help_text='Designates that this user has all permissions without explicitly assigning them.', verbose_name='superuser status')),
                ('username', models.CharField(error_messages={'unique': 'A user with that username already exists.'}, help_text='Required. 150 characters or fewer. Letters, digits and @/./+/-/_ only.', max_length=150, unique=True, validators=[django.contrib.auth.validators.UnicodeUsernameValidator()], verbose_name='username')),
                ('first_name', models.CharField(blank=True, max_length=150, verbose_name='first name')),
                ('last_name', models.CharField(blank=True, max_length=150, verbose_name='last name')),
                ('email', models.EmailField(blank=True, max_length=254, verbose_name='email address')),
                ('is_staff', models.BooleanField(default=False, help_text='Designates whether the user can log into this admin site.', verbose_name='staff status')),
                ('is_active', models.BooleanField(default=True, help_text='Designates whether this user should be treated as active. Unselect this instead of deleting accounts.', verbose_name='active')),
                ('date_joined', models.DateTimeField(default=django.utils.timezone.now, verbose_name='date joined')),
                ('role', models.CharField(choices=[('admin', 'Admin'), ('staff', 'Staff')], default='staff', max_length=10)),
                ('name', models.CharField(max_length=100)),
                ('groups', models.ManyToManyField(blank=True, help_text='The groups this user belongs to. A user will get all permissions granted to each of their groups.', related_name='user_set', related_query_name='user', to='auth.group', verbose_name='groups')),
                ('user_permissions', models.ManyToManyField(blank=True, help_text='Specific permissions for this user.', related_name='user_set', related_query_name='user', to='auth.permission', verbose_name='user permissions')),
            ],
            options={
                'verbose_name': 'user',
                'verbose_name_plural': 'users',
                'abstract': False,
            },
            managers=[
                ('objects', django.contrib.auth.models.UserManager()),
            ],
        ),
        migrations.CreateModel(
            name='Donor',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=100)),
                ('age', models.PositiveIntegerField(validators=[django.core.validators.MinValueValidator(18), django.core.validators.MaxValueValidator(65)])),
                ('gender', models.CharField(choices=GENDER_CHOICES, max_length=10)),
                ('contact', models.CharField(blank=True, max_length=20)),
                ('address', models.TextField(blank=True)),
                ('blood_group', models.CharField(choices=BLOOD_GROUP_CHOICES, max_length=3)),
                ('medical_history', models.TextField(blank=True, default='')),
            ],
            options={
                'ordering': ['-id'],
            },
        ),
        migrations.CreateModel(
            name='Hospital',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=200)),
                ('location', models.CharField(blank=True, max_length=200)),
            ],
            options={
                'ordering': ['name'],
            },
        ),
        migrations.CreateModel(
            name='Patient',
            fields=[
                ('id', models.CharField(editable=False, max_length=12, primary_key=True, serialize=False)),
                ('name', models.CharField(max_length=100)),
                ('blood_group', models.CharField(choices=BLOOD_GROUP_CHOICES, max_length=3)),
                ('gender', models.CharField(choices=GENDER_CHOICES, max_length=10)),
                ('contact', models.CharField(blank=True, max_length=20)),
                ('hospital', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='patients', to='bloodbank.hospital')),
            ],
            options={
                'ordering': ['-id'],
            },
        ),
        migrations.CreateModel(
            name='Staff',
            fields=[
                ('id', models.CharField(editable=False, max_length=12, primary_key=True, serialize=False)),
                ('name', models.CharField(max_length=100)),
                ('role', models.CharField(choices=[('Manager', 'Manager'), ('Clinical Analyst', 'Clinical Analyst'), ('Registration Team', 'Registration Team')], max_length=20)),
            ],
            options={
                'verbose_name_plural': 'staff',
                'ordering': ['role', 'name'],
                'constraints': [models.UniqueConstraint(fields=('name', 'role'), name='unique_staff_name_role')],
            },
        ),
        migrations.CreateModel(
            name='BloodUnit',
            fields=[
                ('id', models.CharField(editable=False, max_length=16, primary_key=True, serialize=False)),
                ('blood_group', models.CharField(choices=BLOOD_GROUP_CHOICES, max_length=3)),
                ('donation_date', models.DateField()),
                ('expiry_date', models.DateField()),
                ('status', models.CharField(choices=[('Available', 'Available'), ('Issued', 'Issued'), ('Expired', 'Expired')], default='Available', max_length=10)),
                ('donor', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='blood_units', to='bloodbank.donor')),
                ('patient', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='blood_units', to='bloodbank.patient')),
            ],
            options={
                'ordering': ['-donation_date', '-id'],
                'indexes': [
                    models.Index(fields=['status', 'expiry_date'], name='blood_unit_status_expiry'),
                    models.Index(fields=['blood_group', 'status'], name='blood_unit_group_status'),
                ],
                'constraints': [
                    models.CheckConstraint(condition=models.Q(('expiry_date__gt', models.F('donation_date'))), name='blood_unit_expiry_after_donation'),
                    models.CheckConstraint(condition=models.Q(models.Q(('patient__isnull', False), ('status', 'Issued')), models.Q(models.Q(('status', 'Issued'), _negated=True), ('patient__isnull', True)), _connector='OR'), name='blood_unit_patient_iff_issued'),
                ],
            },
        ),
        migrations.CreateModel(
            name='BloodInventory',
            fields=[
                ('blood_group', models.CharField(choices=BLOOD_GROUP_CHOICES, max_length=3, primary_key=True, serialize=False)),
                ('total_quantity', models.PositiveIntegerField(default=0)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'verbose_name_plural': 'blood inventory',
            },
        ),
        migrations.CreateModel(
            name='IdentifierSequence',
            fields=[
                ('scope', models.CharField(max_length=32, primary_key=True, serialize=False)),
                ('last_value', models.PositiveIntegerField(default=0)),
            ],
        ),
        migrations.RunPython(seed_inventory, migrations.RunPython.noop),
    ]
