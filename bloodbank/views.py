import logging

from django.db.models import Count
from django.http import HttpResponse
from django.utils import timezone

from rest_framework import viewsets, permissions, status
from rest_framework.decorators import action
from rest_framework.response import Response
from rest_framework.views import APIView
from rest_framework_simplejwt.tokens import RefreshToken
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.views import TokenObtainPairView

from .models import User, Donor, Patient, Hospital, Staff, BloodUnit
from .serializers import (
    UserSerializer, RegisterSerializer, LoginSerializer, DonorSerializer,
    PatientSerializer, HospitalSerializer, StaffSerializer, BloodUnitSerializer,
    NearExpiryUnitSerializer, BloodInventorySerializer, IssueBloodSerializer,
)
from . import reports, services

logger = logging.getLogger(__name__)


def query_param(request, *names):
    """First non-empty query parameter among ``names`` (snake_case or the client's camelCase)."""
    for name in names:
        value = request.query_params.get(name)
        if value:
            return value
    return None


# -------------------------------
# Custom Permission Classes
# -------------------------------
class IsAdmin(permissions.BasePermission):
    """Allow access only to admin users"""
    message = 'Admin access required'

    def has_permission(self, request, view):
        return request.user.is_authenticated and request.user.role == 'admin'


class IsAdminOrReadOnly(IsAdmin):
    """Any authenticated user may read; only admins may write"""

    def has_permission(self, request, view):
        if request.method in permissions.SAFE_METHODS:
            return request.user.is_authenticated
        return super().has_permission(request, view)


# -------------------------------
# Authentication & User APIs
# -------------------------------
class LoginView(TokenObtainPairView):
    permission_classes = [permissions.AllowAny]
    serializer_class = LoginSerializer


class RegisterAPI(APIView):
    """User registration (admin only)"""
    permission_classes = [permissions.IsAuthenticated, IsAdmin]

    def post(self, request):
        serializer = RegisterSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = serializer.save()
        logger.info("User %s registered by %s", user.username, request.user.username)
        return Response({
            'message': 'User registered successfully',
            'user': UserSerializer(user).data,
        }, status=status.HTTP_201_CREATED)


class MeAPI(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request):
        user = request.user
        return Response({'user': {
            'user_id': user.pk,
            'username': user.username,
            'role': user.role,
            'name': user.name,
        }})


class LogoutAPI(APIView):
    """User Logout with JWT token blacklisting"""
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request):
        refresh_token = request.data.get("refresh")
        if not refresh_token:
            return Response({"error": "Refresh token is required."}, status=status.HTTP_400_BAD_REQUEST)
        try:
            RefreshToken(refresh_token).blacklist()
        except TokenError:
            return Response({"error": "Invalid token or already blacklisted."}, status=status.HTTP_400_BAD_REQUEST)
        return Response({"message": "Successfully logged out."}, status=status.HTTP_200_OK)


class UserViewSet(viewsets.ModelViewSet):
    """User Management (Admin only)"""
    queryset = User.objects.all().order_by('id')
    serializer_class = UserSerializer
    permission_classes = [permissions.IsAuthenticated, IsAdmin]


# -------------------------------
# Entity ViewSets
# -------------------------------
class DonorViewSet(viewsets.ModelViewSet):
    queryset = Donor.objects.annotate(donations=Count('blood_units')).order_by('-id')
    serializer_class = DonorSerializer
    permission_classes = [permissions.IsAuthenticated]

    def perform_destroy(self, instance):
        services.delete_donor(instance)

    @action(detail=False, methods=['get'])
    def search(self, request):
        """Paginated donor search by name and blood group"""
        qs = self.get_queryset()
        name = request.query_params.get('name')
        blood_group = query_param(request, 'blood_group', 'bloodGroup')
        if name:
            qs = qs.filter(name__icontains=name)
        if blood_group:
            qs = qs.filter(blood_group=blood_group)

        donors, pagination = services.paginate(
            qs, request.query_params.get('page', 1), request.query_params.get('limit', 10)
        )
        return Response({
            'donors': self.get_serializer(donors, many=True).data,
            'pagination': pagination,
        })


class PatientViewSet(viewsets.ModelViewSet):
    queryset = Patient.objects.select_related('hospital').order_by('-id')
    serializer_class = PatientSerializer
    permission_classes = [permissions.IsAuthenticated]

    def perform_destroy(self, instance):
        services.delete_patient(instance)


class HospitalViewSet(viewsets.ModelViewSet):
    """Hospital Management (admin writes)"""
    queryset = Hospital.objects.all().order_by('name')
    serializer_class = HospitalSerializer
    permission_classes = [IsAdminOrReadOnly]

    def perform_destroy(self, instance):
        services.delete_hospital(instance)


class StaffViewSet(viewsets.ModelViewSet):
    """Staff Management (admin writes)"""
    queryset = Staff.objects.all().order_by('role', 'name')
    serializer_class = StaffSerializer
    permission_classes = [IsAdminOrReadOnly]


class BloodUnitViewSet(viewsets.ModelViewSet):
    """Blood units; creating, editing and deleting units changes inventory so it is admin only"""
    queryset = BloodUnit.objects.select_related('donor', 'patient__hospital').order_by('-donation_date', '-id')
    serializer_class = BloodUnitSerializer
    permission_classes = [IsAdminOrReadOnly]

    def perform_destroy(self, instance):
        services.delete_blood_unit(instance)

    @action(detail=False, methods=['get'])
    def filter(self, request):
        qs = self.get_queryset()
        blood_group = query_param(request, 'blood_group', 'bloodGroup')
        unit_status = request.query_params.get('status')
        donor_name = query_param(request, 'donor_name', 'donorName')
        if blood_group:
            qs = qs.filter(blood_group=blood_group)
        if unit_status:
            qs = qs.filter(status=unit_status)
        if donor_name:
            qs = qs.filter(donor__name__icontains=donor_name)

        units, _ = services.paginate(
            qs, request.query_params.get('page', 1), request.query_params.get('limit', 10)
        )
        return Response(self.get_serializer(units, many=True).data)


# -------------------------------
# Inventory, Alerts & Lifecycle Operations
# -------------------------------
class BloodInventoryAPI(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request):
        return Response(BloodInventorySerializer(services.get_inventory(), many=True).data)


class ExpiryAlertsAPI(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request):
        near_expiry = services.get_near_expiry()
        critical = services.get_critical_groups()
        return Response({
            'nearExpiry': NearExpiryUnitSerializer(near_expiry, many=True).data,
            'criticalInventory': BloodInventorySerializer(critical, many=True).data,
            'alertCount': len(near_expiry) + len(critical),
        })


class IssueBloodAPI(APIView):
    permission_classes = [permissions.IsAuthenticated, IsAdmin]

    def post(self, request):
        serializer = IssueBloodSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        unit = services.issue_blood_unit(
            serializer.validated_data['blood_unit_id'], serializer.validated_data['patient_id']
        )
        return Response({
            'message': 'Blood unit issued successfully',
            'blood_unit': BloodUnitSerializer(unit).data,
        })


class RemoveExpiredBloodAPI(APIView):
    permission_classes = [permissions.IsAuthenticated, IsAdmin]

    def post(self, request):
        count = services.expire_blood_units()
        return Response({
            'message': 'Expired blood units removed successfully',
            'expired_count': count,
        })


class DashboardAnalyticsAPI(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request):
        data = services.dashboard_analytics()
        data['blood_inventory'] = BloodInventorySerializer(data['blood_inventory'], many=True).data
        return Response(data)


# -------------------------------
# Exports
# -------------------------------
class DonorsCsvExportAPI(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request):
        content = reports.donors_csv(Donor.objects.order_by('id'))
        response = HttpResponse(content, content_type='text/csv')
        response['Content-Disposition'] = (
            f'attachment; filename="donors_export_{timezone.localdate().isoformat()}.csv"'
        )
        return response


class InventoryPdfExportAPI(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request):
        today = timezone.localdate()
        content = reports.inventory_pdf(services.get_inventory(), today)
        response = HttpResponse(content, content_type='application/pdf')
        response['Content-Disposition'] = (
            f'attachment; filename="blood_inventory_{today.isoformat()}.pdf"'
        )
        return response


class HealthAPI(APIView):
    permission_classes = [permissions.AllowAny]
    authentication_classes = []

    def get(self, request):
        return Response({
            'status': 'OK',
            'database': 'Connected',
            'total_donors': Donor.objects.count(),
            'timestamp': timezone.now(),
        })
