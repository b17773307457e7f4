"""
API Views for the Commission Engine.

Webhooks, rate registry and ledger listing.
All business logic delegated to services layer.
"""
import hmac

from django.conf import settings
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes, authentication_classes
from rest_framework.response import Response
from rest_framework.pagination import PageNumberPagination
from rest_framework.permissions import IsAuthenticated, IsAdminUser, BasePermission

from hierarchy.exceptions import ActorNotFound
from hierarchy.services import HierarchyResolver

from .exceptions import CommissionError
from .models import CommissionRate, CommissionLedgerEntry
from .serializers import (
    OrderWebhookSerializer,
    DeliveryWebhookSerializer,
    CommissionRateSerializer,
    RateUpdateSerializer,
    LedgerEntrySerializer,
    LedgerQuerySerializer,
)
from .services import (
    RateRegistry,
    CommissionProcessingService,
    DeliveryConfirmationService,
)

WEBHOOK_SECRET_HEADER = 'HTTP_X_WEBHOOK_SECRET'


class HasWebhookSecret(BasePermission):
    """
    Permission: request carries the shared webhook secret.
    An empty COMMISSION_WEBHOOK_SECRET disables the check.
    """
    message = "Invalid webhook secret."

    def has_permission(self, request, view):
        expected = getattr(settings, 'COMMISSION_WEBHOOK_SECRET', '')
        if not expected:
            return True
        provided = request.META.get(WEBHOOK_SECRET_HEADER, '')
        return hmac.compare_digest(provided.encode(), expected.encode())


@api_view(['POST'])
@authentication_classes([])
@permission_classes([HasWebhookSecret])
def order_webhook(request):
    """
    POST /api/commissions/webhook/order/

    Attribute one paid order line. Always 200 for a valid payload, even
    when the referral code is unknown; replays are acknowledged the same.
    """
    serializer = OrderWebhookSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    result = CommissionProcessingService.process_order(serializer.to_event())

    response_data = {
        "order_id": result.order_id,
        "affiliate_code": result.referral_code,
        "attributed": result.attributed,
    }
    if result.attributed:
        response_data.update({
            "role": result.role,
            "commission_pool": str(result.pool.amount),
            "pool_source": result.pool.source,
            "created": LedgerEntrySerializer(result.write.created, many=True).data,
            "skipped": [d.commission_source for d in result.write.skipped],
            "credited": result.credited,
        })
    else:
        response_data["message"] = "Referral code not found; order recorded without commission."
    return Response(response_data, status=status.HTTP_200_OK)


@api_view(['POST'])
@authentication_classes([])
@permission_classes([HasWebhookSecret])
def delivery_webhook(request):
    """
    POST /api/commissions/webhook/delivery/

    Credit every pending ledger row of a delivered order.
    """
    serializer = DeliveryWebhookSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    order_id = serializer.validated_data['order_id'].strip()
    credited = DeliveryConfirmationService.confirm_delivery(order_id)
    return Response({"order_id": order_id, "credited": credited})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def list_rates(request):
    """
    GET /api/commissions/rates/

    Every role type with its effective percentage (defaults filled in).
    """
    stored = {r.role_type: r for r in CommissionRate.objects.select_related('updated_by')}
    rates = []
    for role_type, percentage in RateRegistry.get_rates().items():
        if role_type in stored:
            data = CommissionRateSerializer(stored[role_type]).data
            data['is_default'] = False
        else:
            data = {"role_type": role_type, "percentage": str(percentage),
                    "updated_at": None, "updated_by": None, "is_default": True}
        rates.append(data)
    return Response(rates)


@api_view(['PUT'])
@permission_classes([IsAdminUser])
def update_rate(request, role_type):
    """
    PUT /api/commissions/rates/<role_type>/

    Applies to orders processed after the change.
    """
    serializer = RateUpdateSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    try:
        rate = RateRegistry.set_rate(
            role_type,
            serializer.validated_data['percentage'],
            updated_by=request.user
        )
    except CommissionError as e:
        return Response(e.to_dict(), status=e.status_code)

    return Response(CommissionRateSerializer(rate).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def ledger(request):
    """
    GET /api/commissions/ledger/

    Admin: all rows. Actor: rows credited to its own code.
    """
    params = LedgerQuerySerializer(data=request.query_params)
    params.is_valid(raise_exception=True)
    filters = params.validated_data

    queryset = CommissionLedgerEntry.objects.all()
    if not request.user.is_staff:
        try:
            resolved = HierarchyResolver.resolve_for_user(request.user)
        except ActorNotFound as e:
            return Response(e.to_dict(), status=e.status_code)
        queryset = queryset.filter(affiliate_code__iexact=resolved.referral_code)
    elif filters.get('affiliate_code'):
        queryset = queryset.filter(affiliate_code__iexact=filters['affiliate_code'].strip())

    for name in ('status', 'entry_kind', 'order_id'):
        if filters.get(name):
            queryset = queryset.filter(**{name: filters[name]})

    paginator = PageNumberPagination()
    page = paginator.paginate_queryset(queryset, request)
    return paginator.get_paginated_response(LedgerEntrySerializer(page, many=True).data)
