from rest_framework import serializers
from rest_framework.validators import UniqueTogetherValidator
from django.contrib.auth import get_user_model
from django.contrib.auth.password_validation import validate_password
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer

from .models import Donor, Patient, Hospital, Staff, BloodUnit, BloodInventory
from . import services

User = get_user_model()


class UserSerializer(serializers.ModelSerializer):
    class Meta:
        model = User
        fields = ['id', 'username', 'role', 'name', 'email']


class RegisterSerializer(serializers.ModelSerializer):
    password = serializers.CharField(write_only=True, required=True, validators=[validate_password])

    class Meta:
        model = User
        fields = ['username', 'password', 'name', 'email', 'role']
        extra_kwargs = {'name': {'required': True}}

    def validate_username(self, value):
        if User.objects.filter(username=value).exists():
            raise serializers.ValidationError("A user with that username already exists.")
        return value

    def create(self, validated_data):
        return services.register_user(**validated_data)


class LoginSerializer(TokenObtainPairSerializer):
    """Issues a JWT carrying the principal the API attaches to every request."""

    @classmethod
    def get_token(cls, user):
        token = super().get_token(user)
        token['username'] = user.username
        token['role'] = user.role
        token['name'] = user.name
        return token

    def validate(self, attrs):
        data = super().validate(attrs)
        return {
            'message': 'Login successful',
            'token': data['access'],
            'refresh': data['refresh'],
            'user': UserSerializer(self.user).data,
        }


class DonorSerializer(serializers.ModelSerializer):
    donations = serializers.IntegerField(read_only=True, required=False)

    class Meta:
        model = Donor
        fields = ['id', 'name', 'age', 'gender', 'contact', 'address', 'blood_group',
                  'medical_history', 'donations']

    def create(self, validated_data):
        return services.add_donor(**validated_data)

    def update(self, instance, validated_data):
        return services.update_donor(instance, **validated_data)


class HospitalSerializer(serializers.ModelSerializer):
    class Meta:
        model = Hospital
        fields = ['id', 'name', 'location']

    def create(self, validated_data):
        return services.add_hospital(**validated_data)

    def update(self, instance, validated_data):
        return services.update_hospital(instance, **validated_data)


class PatientSerializer(serializers.ModelSerializer):
    hospital_name = serializers.CharField(source='hospital.name', read_only=True, default=None)

    class Meta:
        model = Patient
        fields = ['id', 'name', 'blood_group', 'gender', 'contact', 'hospital', 'hospital_name']
        read_only_fields = ['id']

    def create(self, validated_data):
        return services.add_patient(**validated_data)

    def update(self, instance, validated_data):
        return services.update_patient(instance, **validated_data)


class StaffSerializer(serializers.ModelSerializer):
    class Meta:
        model = Staff
        fields = ['id', 'name', 'role']
        read_only_fields = ['id']
        validators = [
            UniqueTogetherValidator(
                queryset=Staff.objects.all(),
                fields=['name', 'role'],
                message='Staff member with this name and role already exists',
            )
        ]

    def create(self, validated_data):
        return services.add_staff(**validated_data)

    def update(self, instance, validated_data):
        return services.update_staff(instance, **validated_data)


class BloodUnitSerializer(serializers.ModelSerializer):
    donor_name = serializers.CharField(source='donor.name', read_only=True, default=None)
    patient_name = serializers.CharField(source='patient.name', read_only=True, default=None)
    hospital_name = serializers.CharField(source='patient.hospital.name', read_only=True, default=None)

    class Meta:
        model = BloodUnit
        fields = ['id', 'blood_group', 'donation_date', 'expiry_date', 'status',
                  'donor', 'donor_name', 'patient', 'patient_name', 'hospital_name']
        read_only_fields = ['id', 'status', 'patient']

    def validate(self, attrs):
        donation_date = attrs.get('donation_date', getattr(self.instance, 'donation_date', None))
        expiry_date = attrs.get('expiry_date', getattr(self.instance, 'expiry_date', None))
        if donation_date and expiry_date and expiry_date <= donation_date:
            raise serializers.ValidationError({'expiry_date': 'Expiry date must be after donation date.'})
        return attrs

    def create(self, validated_data):
        return services.create_blood_unit(**validated_data)

    def update(self, instance, validated_data):
        return services.update_blood_unit(instance, **validated_data)


class NearExpiryUnitSerializer(BloodUnitSerializer):
    days_until_expiry = serializers.IntegerField(read_only=True)
    severity = serializers.CharField(read_only=True)

    class Meta(BloodUnitSerializer.Meta):
        fields = BloodUnitSerializer.Meta.fields + ['days_until_expiry', 'severity']


class BloodInventorySerializer(serializers.ModelSerializer):
    class Meta:
        model = BloodInventory
        fields = ['blood_group', 'total_quantity', 'updated_at']


class IssueBloodSerializer(serializers.Serializer):
    blood_unit_id = serializers.CharField()
    patient_id = serializers.CharField()

    # The browser client posts {BloodUnitID, PatientID}
    aliases = {'BloodUnitID': 'blood_unit_id', 'PatientID': 'patient_id'}

    def to_internal_value(self, data):
        if hasattr(data, 'items'):
            data = {self.aliases.get(key, key): value for key, value in data.items()}
        return super().to_internal_value(data)
