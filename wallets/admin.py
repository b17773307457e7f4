from django.contrib import admin
from .models import Wallet, WithdrawalRequest


@admin.register(Wallet)
class WalletAdmin(admin.ModelAdmin):
    list_display = ['actor_role', 'referral_code', 'balance', 'total_withdrawn', 'updated_at']
    list_filter = ['actor_role']
    search_fields = ['referral_code']
    readonly_fields = ['balance', 'total_withdrawn', 'updated_at']


@admin.register(WithdrawalRequest)
class WithdrawalRequestAdmin(admin.ModelAdmin):
    """Status changes go through the API so balances are rechecked."""
    list_display = [
        'id', 'affiliate_code', 'actor_role', 'withdrawal_amount',
        'net_payable', 'payment_method', 'status', 'requested_at'
    ]
    list_filter = ['status', 'payment_method', 'actor_role']
    search_fields = ['affiliate_code', 'affiliate_name', 'affiliate_email', 'transaction_id']
    exclude = ['account_number_encrypted', 'upi_id_encrypted']

    fieldsets = (
        ('Requester', {
            'fields': ('actor_role', 'affiliate_code', 'affiliate_name', 'affiliate_email')
        }),
        ('Amounts', {
            'fields': ('withdrawal_amount', 'gst_percentage', 'gst_amount', 'net_payable')
        }),
        ('Destination', {
            'fields': ('payment_method', 'bank_name', 'bank_branch', 'ifsc_code', 'account_name')
        }),
        ('Review', {
            'fields': ('status', 'reviewed_at', 'reviewed_by', 'admin_notes', 'wallet_balance_before')
        }),
        ('Payment', {
            'fields': ('payment_date', 'transaction_id', 'payment_details', 'paid_at')
        }),
    )

    def get_readonly_fields(self, request, obj=None):
        return [f.name for f in self.model._meta.fields]

    def has_add_permission(self, request):
        return False
