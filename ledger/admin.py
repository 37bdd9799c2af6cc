from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from .models import User, Donor, Donation, InventoryEntry, BloodRequest, Event

LEDGER_FIELDS = ('last_donation_date', 'status', 'next_eligible_date', 'total_donations', 'points')


class UserAdmin(BaseUserAdmin):
    fieldsets = BaseUserAdmin.fieldsets + (
        ('Additional', {'fields': ('role',)}),
    )
    list_display = ('email', 'username', 'role', 'is_staff', 'is_active')
    list_filter = ('role', 'is_staff', 'is_active')
    search_fields = ('email', 'username')
    ordering = ('email',)


class DonationInline(admin.TabularInline):
    model = Donation
    extra = 0
    can_delete = False
    readonly_fields = ('donor_name', 'amount', 'date', 'created_at')

    def has_add_permission(self, request, obj=None):
        return False


class DonorAdmin(admin.ModelAdmin):
    list_display = ('name', 'national_id', 'blood_group', 'donate_consent', 'status', 'total_donations', 'points')
    list_filter = ('blood_group', 'status', 'donate_consent')
    search_fields = ('name', 'national_id', 'email', 'phone')
    raw_id_fields = ('user',)
    # counters are owned by the donation ledger
    readonly_fields = LEDGER_FIELDS + ('created_at', 'updated_at')
    inlines = [DonationInline]


class DonationAdmin(admin.ModelAdmin):
    list_display = ('donor_name', 'amount', 'date', 'created_at')
    list_filter = ('date',)
    search_fields = ('donor_name', 'donor__national_id')
    raw_id_fields = ('donor',)
    readonly_fields = ('donor', 'donor_name', 'amount', 'date', 'created_at')

    def has_add_permission(self, request):
        return False


class InventoryEntryAdmin(admin.ModelAdmin):
    list_display = ('blood_group', 'units', 'last_updated')
    # stock moves only through the inventory API
    readonly_fields = ('blood_group', 'units', 'last_updated')

    def has_add_permission(self, request):
        return False


class BloodRequestAdmin(admin.ModelAdmin):
    list_display = ('patient_name', 'requester_ref', 'blood_group', 'units', 'urgency', 'status', 'request_date')
    list_filter = ('status', 'blood_group', 'urgency')
    search_fields = ('patient_name', 'requester_ref')
    raw_id_fields = ('requested_by',)
    readonly_fields = ('status', 'request_date')


class EventAdmin(admin.ModelAdmin):
    list_display = ('title', 'date', 'location', 'organizer')
    search_fields = ('title', 'location', 'organizer')


# Register your models with custom admin classes
admin.site.register(User, UserAdmin)
admin.site.register(Donor, DonorAdmin)
admin.site.register(Donation, DonationAdmin)
admin.site.register(InventoryEntry, InventoryEntryAdmin)
admin.site.register(BloodRequest, BloodRequestAdmin)
admin.site.register(Event, EventAdmin)
