from decimal import Decimal

from rest_framework import serializers

from .encryption import EncryptionService
from .models import WithdrawalRequest


class BankDetailsSerializer(serializers.Serializer):
    bank_name = serializers.CharField(max_length=255, required=False, allow_blank=True, default='')
    bank_branch = serializers.CharField(max_length=255, required=False, allow_blank=True, default='')
    ifsc_code = serializers.CharField(max_length=20)
    account_name = serializers.CharField(max_length=255)
    account_number = serializers.CharField(max_length=34)


class WithdrawalCreateSerializer(serializers.Serializer):
    """
    Validation only - minimum, pending and balance rules live in WithdrawalService.
    """
    withdrawal_amount = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal('0.01'))
    payment_method = serializers.ChoiceField(choices=WithdrawalRequest.PaymentMethod.choices)
    bank_details = BankDetailsSerializer(required=False)
    upi_id = serializers.CharField(max_length=255, required=False, allow_blank=True, default='')

    def validate(self, data):
        method = data['payment_method']
        if method == WithdrawalRequest.PaymentMethod.BANK_TRANSFER and not data.get('bank_details'):
            raise serializers.ValidationError({'bank_details': "Required for bank transfer."})
        if method == WithdrawalRequest.PaymentMethod.UPI and not data.get('upi_id'):
            raise serializers.ValidationError({'upi_id': "Required for UPI."})
        return data


class WithdrawalSerializer(serializers.ModelSerializer):
    """Read view; payout destination is masked."""
    account_number = serializers.SerializerMethodField()
    upi_id = serializers.SerializerMethodField()
    reviewed_by = serializers.CharField(source='reviewed_by.username', read_only=True, default=None)

    class Meta:
        model = WithdrawalRequest
        fields = [
            'id', 'actor_role', 'affiliate_code', 'affiliate_name', 'affiliate_email',
            'withdrawal_amount', 'gst_percentage', 'gst_amount', 'net_payable',
            'payment_method', 'bank_name', 'bank_branch', 'ifsc_code', 'account_name',
            'account_number', 'upi_id',
            'status', 'requested_at', 'reviewed_at', 'reviewed_by', 'admin_notes',
            'wallet_balance_before', 'payment_date', 'transaction_id', 'payment_details', 'paid_at',
        ]
        read_only_fields = fields

    def get_account_number(self, obj):
        if not obj.account_number_encrypted:
            return None
        return EncryptionService.mask_account_number(obj.account_number_encrypted)

    def get_upi_id(self, obj):
        if not obj.upi_id_encrypted:
            return None
        return EncryptionService.mask_upi_id(obj.upi_id_encrypted)


class ReviewSerializer(serializers.Serializer):
    notes = serializers.CharField(required=False, allow_blank=True, default='')


class MarkPaidSerializer(serializers.Serializer):
    transaction_id = serializers.CharField(max_length=100)
    payment_date = serializers.DateField(required=False, allow_null=True, default=None)
    payment_details = serializers.CharField(required=False, allow_blank=True, default='')


class WithdrawalQuerySerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=WithdrawalRequest.Status.choices, required=False)
    affiliate_code = serializers.CharField(required=False)
