from django.contrib import admin
from .models import CommissionRate, ProductCommission, CommissionLedgerEntry


@admin.register(CommissionRate)
class CommissionRateAdmin(admin.ModelAdmin):
    list_display = ['role_type', 'percentage', 'updated_at', 'updated_by']
    readonly_fields = ['updated_at', 'updated_by']

    def save_model(self, request, obj, form, change):
        obj.updated_by = request.user
        super().save_model(request, obj, form, change)


@admin.register(ProductCommission)
class ProductCommissionAdmin(admin.ModelAdmin):
    list_display = ['id', 'scope', 'commission_rate', 'is_active', 'updated_at']
    list_filter = ['is_active']
    search_fields = ['product_id', 'category_id', 'collection_id', 'product_type_id']


@admin.register(CommissionLedgerEntry)
class CommissionLedgerEntryAdmin(admin.ModelAdmin):
    """Ledger rows are append-only; the admin is a viewer."""
    list_display = [
        'id', 'order_id', 'commission_source', 'entry_kind', 'affiliate_code',
        'seller_code', 'affiliate_commission', 'status', 'created_at'
    ]
    list_filter = ['commission_source', 'entry_kind', 'status', 'created_at']
    search_fields = ['order_id', 'affiliate_code', 'seller_code', 'product_name', 'customer_email']

    fieldsets = (
        ('Attribution', {
            'fields': (
                'order_id', 'affiliate_code', 'seller_code',
                'commission_source', 'entry_kind', 'status'
            )
        }),
        ('Order Line', {
            'fields': ('product_id', 'product_name', 'quantity', 'order_amount')
        }),
        ('Financial Details', {
            'fields': (
                'commission_rate', 'commission_amount',
                'affiliate_rate', 'affiliate_commission'
            )
        }),
        ('Customer', {
            'fields': ('customer_id', 'customer_name', 'customer_email'),
            'classes': ('collapse',)
        }),
        ('Audit Trail', {
            'fields': ('created_at', 'credited_at'),
        }),
    )

    def get_readonly_fields(self, request, obj=None):
        return [f.name for f in self.model._meta.fields]

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
