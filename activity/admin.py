"""
Activity Admin
Read-only; activity lines are never edited.
"""
from django.contrib import admin
from .models import ActivityLog


@admin.register(ActivityLog)
class ActivityLogAdmin(admin.ModelAdmin):
    list_display = ['id', 'activity_type', 'description', 'actor_code', 'state', 'city', 'branch', 'created_at']
    list_filter = ['activity_type', 'state', 'created_at']
    search_fields = ['description', 'actor_code', 'actor_name', 'target_id']
    readonly_fields = [
        'activity_type', 'description', 'amount', 'actor_role', 'actor_code', 'actor_name',
        'branch', 'city', 'state', 'target_type', 'target_id', 'metadata',
        'performed_by', 'created_at'
    ]
    ordering = ['-created_at']

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
