from decimal import Decimal

from rest_framework import serializers

from .models import CommissionRate, CommissionLedgerEntry, LedgerStatus, EntryKind
from .services import OrderEvent


class OrderWebhookSerializer(serializers.Serializer):
    """
    Payload of one paid order line.

    Validation only - attribution happens in CommissionProcessingService.
    """
    order_id = serializers.CharField(max_length=100)
    affiliate_code = serializers.CharField(max_length=50)
    product_id = serializers.CharField(max_length=100)
    product_name = serializers.CharField(max_length=255, required=False, allow_blank=True, default='')
    category_id = serializers.CharField(max_length=100, required=False, allow_blank=True, allow_null=True, default='')
    collection_id = serializers.CharField(max_length=100, required=False, allow_blank=True, allow_null=True, default='')
    product_type_id = serializers.CharField(max_length=100, required=False, allow_blank=True, allow_null=True, default='')
    quantity = serializers.IntegerField(min_value=1, required=False, default=1)
    item_price = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, default=Decimal('0.00'))
    order_amount = serializers.DecimalField(max_digits=12, decimal_places=2)
    commission_amount = serializers.DecimalField(
        max_digits=12, decimal_places=2, required=False, allow_null=True, default=None
    )
    status = serializers.CharField(max_length=20, required=False, allow_blank=True, default='')
    customer_id = serializers.CharField(max_length=100, required=False, allow_blank=True, allow_null=True, default='')
    customer_name = serializers.CharField(max_length=255, required=False, allow_blank=True, allow_null=True, default='')
    customer_email = serializers.EmailField(required=False, allow_blank=True, allow_null=True, default='')

    # Statuses that mean the line is already delivered
    DELIVERED_STATUSES = ('CREDITED', 'COMPLETED', 'DELIVERED')

    def validate_order_amount(self, value):
        if value < 0:
            raise serializers.ValidationError("Order amount cannot be negative.")
        return value

    def validate_commission_amount(self, value):
        if value is not None and value < 0:
            raise serializers.ValidationError("Commission amount cannot be negative.")
        return value

    def to_event(self) -> OrderEvent:
        data = self.validated_data
        return OrderEvent(
            order_id=data['order_id'].strip(),
            referral_code=data['affiliate_code'],
            order_amount=data['order_amount'],
            quantity=data['quantity'],
            item_price=data['item_price'],
            product_id=data['product_id'],
            product_name=data.get('product_name') or '',
            category_id=data.get('category_id') or '',
            collection_id=data.get('collection_id') or '',
            product_type_id=data.get('product_type_id') or '',
            commission_amount=data.get('commission_amount'),
            customer_id=data.get('customer_id') or '',
            customer_name=data.get('customer_name') or '',
            customer_email=data.get('customer_email') or '',
            delivered=(data.get('status') or '').upper() in self.DELIVERED_STATUSES,
        )


class DeliveryWebhookSerializer(serializers.Serializer):
    order_id = serializers.CharField(max_length=100)


class CommissionRateSerializer(serializers.ModelSerializer):
    updated_by = serializers.CharField(source='updated_by.username', read_only=True, default=None)

    class Meta:
        model = CommissionRate
        fields = ['role_type', 'percentage', 'updated_at', 'updated_by']
        read_only_fields = ['role_type', 'updated_at', 'updated_by']


class RateUpdateSerializer(serializers.Serializer):
    percentage = serializers.DecimalField(
        max_digits=5, decimal_places=2, min_value=Decimal('0'), max_value=Decimal('100')
    )


class LedgerEntrySerializer(serializers.ModelSerializer):
    class Meta:
        model = CommissionLedgerEntry
        fields = [
            'id', 'order_id', 'affiliate_code', 'seller_code',
            'commission_source', 'entry_kind',
            'product_id', 'product_name', 'quantity', 'order_amount',
            'commission_rate', 'commission_amount',
            'affiliate_rate', 'affiliate_commission',
            'status', 'customer_name', 'created_at', 'credited_at',
        ]
        read_only_fields = fields


class LedgerQuerySerializer(serializers.Serializer):
    """Query params for ledger listing."""
    status = serializers.ChoiceField(choices=LedgerStatus.choices, required=False)
    entry_kind = serializers.ChoiceField(choices=EntryKind.choices, required=False)
    order_id = serializers.CharField(required=False)
    affiliate_code = serializers.CharField(required=False)
