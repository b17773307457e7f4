from django.contrib import admin
from .models import State, City, Branch, StateAdmin, AreaSalesManager, BranchAdmin, Agent


@admin.register(State)
class StateModelAdmin(admin.ModelAdmin):
    list_display = ['id', 'name', 'created_at']
    search_fields = ['name']


@admin.register(City)
class CityModelAdmin(admin.ModelAdmin):
    list_display = ['id', 'name', 'state', 'created_at']
    list_filter = ['state']
    search_fields = ['name', 'state__name']


@admin.register(Branch)
class BranchModelAdmin(admin.ModelAdmin):
    list_display = ['id', 'name', 'city', 'created_at']
    list_filter = ['city__state']
    search_fields = ['name', 'city__name']

    def get_queryset(self, request):
        return super().get_queryset(request).select_related('city__state')


class ActorAdmin(admin.ModelAdmin):
    """Shared admin layout for the four actor tables"""

    search_fields = ['referral_code', 'first_name', 'last_name', 'email']
    readonly_fields = ['created_at', 'updated_at']
    list_filter = ['is_active']

    def get_list_display(self, request):
        return ['referral_code', 'first_name', 'last_name', 'email', self.placement_field, 'is_active']


@admin.register(StateAdmin)
class StateAdminAdmin(ActorAdmin):
    placement_field = 'state'


@admin.register(AreaSalesManager)
class AreaSalesManagerAdmin(ActorAdmin):
    placement_field = 'city'


@admin.register(BranchAdmin)
class BranchAdminAdmin(ActorAdmin):
    placement_field = 'branch'


@admin.register(Agent)
class AgentAdmin(ActorAdmin):
    placement_field = 'branch'
