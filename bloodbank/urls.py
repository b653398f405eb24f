from django.urls import path, include
from rest_framework import routers
from rest_framework_simplejwt.views import TokenRefreshView

from .views import (
    LoginView, RegisterAPI, MeAPI, LogoutAPI, UserViewSet,
    DonorViewSet, PatientViewSet, HospitalViewSet, StaffViewSet, BloodUnitViewSet,
    BloodInventoryAPI, ExpiryAlertsAPI, IssueBloodAPI, RemoveExpiredBloodAPI,
    DashboardAnalyticsAPI, DonorsCsvExportAPI, InventoryPdfExportAPI, HealthAPI,
)

# Router for API endpoints
router = routers.DefaultRouter(trailing_slash=False)
router.register('users', UserViewSet)
router.register('donors', DonorViewSet)
router.register('patients', PatientViewSet)
router.register('hospitals', HospitalViewSet)
router.register('staff', StaffViewSet)
router.register('blood-units', BloodUnitViewSet)

urlpatterns = [
    # Authentication endpoints
    path('auth/login', LoginView.as_view(), name='login'),
    path('auth/register', RegisterAPI.as_view(), name='register'),
    path('auth/me', MeAPI.as_view(), name='me'),
    path('auth/token/refresh', TokenRefreshView.as_view(), name='token_refresh'),
    path('auth/logout', LogoutAPI.as_view(), name='logout'),

    # Inventory, alerts and lifecycle operations
    path('dashboard/analytics', DashboardAnalyticsAPI.as_view(), name='dashboard_analytics'),
    path('blood-inventory', BloodInventoryAPI.as_view(), name='blood_inventory'),
    path('alerts/expiry', ExpiryAlertsAPI.as_view(), name='expiry_alerts'),
    path('issue-blood', IssueBloodAPI.as_view(), name='issue_blood'),
    path('remove-expired-blood', RemoveExpiredBloodAPI.as_view(), name='remove_expired_blood'),

    # Reports
    path('export/donors/csv', DonorsCsvExportAPI.as_view(), name='export_donors_csv'),
    path('export/inventory/pdf', InventoryPdfExportAPI.as_view(), name='export_inventory_pdf'),

    path('health', HealthAPI.as_view(), name='health'),
    path('', include(router.urls)),
]
