from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from .models import User, Donor, Hospital, Patient, Staff, BloodUnit, BloodInventory
from . import services

class UserAdmin(BaseUserAdmin):
    fieldsets = BaseUserAdmin.fieldsets + (
        ('Additional', {'fields': ('role', 'name')}),
    )
    list_display = ('username', 'name', 'email', 'role', 'is_active')
    list_filter = ('role', 'is_active')
    search_fields = ('username', 'name', 'email')
    ordering = ('username',)

class DonorAdmin(admin.ModelAdmin):
    list_display = ('id', 'name', 'age', 'gender', 'blood_group', 'contact')
    list_filter = ('blood_group', 'gender')
    search_fields = ('name', 'contact', 'address')

class HospitalAdmin(admin.ModelAdmin):
    list_display = ('id', 'name', 'location')
    search_fields = ('name', 'location')

class PatientAdmin(admin.ModelAdmin):
    list_display = ('id', 'name', 'blood_group', 'gender', 'hospital')
    list_filter = ('blood_group', 'hospital')
    search_fields = ('id', 'name', 'contact')
    raw_id_fields = ('hospital',)

    def has_add_permission(self, request):
        return False

class StaffAdmin(admin.ModelAdmin):
    list_display = ('id', 'name', 'role')
    list_filter = ('role',)
    search_fields = ('name',)

    def has_add_permission(self, request):
        return False

class BloodUnitAdmin(admin.ModelAdmin):
    # Status and patient only change through the lifecycle operations, donor never
    list_display = ('id', 'blood_group', 'donation_date', 'expiry_date', 'status', 'donor', 'patient')
    list_filter = ('status', 'blood_group', 'expiry_date')
    search_fields = ('id', 'donor__name', 'patient__name')
    readonly_fields = ('id', 'blood_group', 'status', 'donor', 'patient')

    def get_readonly_fields(self, request, obj=None):
        if obj is not None and not obj.is_available:
            return self.readonly_fields + ('donation_date', 'expiry_date')
        return self.readonly_fields

    def save_model(self, request, obj, form, change):
        services.update_blood_unit(obj, **{f: form.cleaned_data[f] for f in form.changed_data})

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False

class BloodInventoryAdmin(admin.ModelAdmin):
    list_display = ('blood_group', 'total_quantity', 'updated_at')
    readonly_fields = ('blood_group', 'total_quantity', 'updated_at')

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False

admin.site.register(User, UserAdmin)
admin.site.register(Donor, DonorAdmin)
admin.site.register(Hospital, HospitalAdmin)
admin.site.register(Patient, PatientAdmin)
admin.site.register(Staff, StaffAdmin)
admin.site.register(BloodUnit, BloodUnitAdmin)
admin.site.register(BloodInventory, BloodInventoryAdmin)
