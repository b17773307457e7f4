"""
Wallet API: balances and the withdrawal lifecycle.
All business logic delegated to services layer.
"""
from rest_framework import viewsets, status, permissions, decorators, mixins
from rest_framework.response import Response

from hierarchy.exceptions import ActorNotFound
from hierarchy.services import HierarchyResolver

from .aggregation import BalanceAggregator
from .exceptions import WalletError, ForbiddenError
from .models import WithdrawalRequest
from .serializers import (
    WithdrawalCreateSerializer, WithdrawalSerializer, ReviewSerializer,
    MarkPaidSerializer, WithdrawalQuerySerializer,
)
from .services import WithdrawalService


class IsFinanceAdmin(permissions.BasePermission):
    """
    Check if user is Admin or part of Finance group.
    """
    def has_permission(self, request, view):
        return (
            request.user.is_staff or
            request.user.groups.filter(name__in=['Admins', 'Finance']).exists()
        )


@decorators.api_view(['GET'])
@decorators.permission_classes([permissions.IsAuthenticated])
def my_balance(request):
    """
    GET /api/wallets/balance/

    Caller's earnings, paid out and withdrawable balance.
    """
    try:
        resolved = HierarchyResolver.resolve_for_user(request.user)
    except ActorNotFound as e:
        return Response(e.to_dict(), status=e.status_code)

    return Response(BalanceAggregator.balance_for(resolved).as_dict())


@decorators.api_view(['GET'])
@decorators.permission_classes([permissions.IsAuthenticated, IsFinanceAdmin])
def actor_balance(request, role, referral_code):
    """
    GET /api/wallets/balance/<role>/<code>/

    Finance view of any actor's balance.
    """
    try:
        balance = BalanceAggregator.balance(role, referral_code)
    except ActorNotFound as e:
        return Response(e.to_dict(), status=e.status_code)
    return Response(balance.as_dict())


class WithdrawalViewSet(mixins.ListModelMixin,
                        mixins.RetrieveModelMixin,
                        viewsets.GenericViewSet):
    """
    Actors see and create their own requests; finance reviews everyone's.
    """
    serializer_class = WithdrawalSerializer
    permission_classes = [permissions.IsAuthenticated]

    def handle_exception(self, exc):
        if isinstance(exc, (WalletError, ActorNotFound)):
            return Response(exc.to_dict(), status=exc.status_code)
        return super().handle_exception(exc)

    def _is_finance(self):
        return IsFinanceAdmin().has_permission(self.request, self)

    def _require_finance(self):
        if not self._is_finance():
            raise ForbiddenError("Finance or admin role required")

    def get_queryset(self):
        qs = WithdrawalRequest.objects.select_related('reviewed_by')
        params = WithdrawalQuerySerializer(data=self.request.query_params)
        params.is_valid(raise_exception=True)
        filters = params.validated_data

        if self._is_finance():
            if filters.get('affiliate_code'):
                qs = qs.filter(affiliate_code__iexact=filters['affiliate_code'].strip())
        else:
            resolved = HierarchyResolver.resolve_for_user(self.request.user)
            qs = qs.filter(actor_role=resolved.role, affiliate_code__iexact=resolved.referral_code)

        if filters.get('status'):
            qs = qs.filter(status=filters['status'])
        return qs

    def create(self, request, *args, **kwargs):
        """
        POST /api/wallets/withdrawals/
        New PENDING request for the caller.
        """
        resolved = HierarchyResolver.resolve_for_user(request.user)
        serializer = WithdrawalCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        withdrawal = WithdrawalService.request_withdrawal(
            resolved,
            amount=data['withdrawal_amount'],
            payment_method=data['payment_method'],
            bank_details=data.get('bank_details'),
            upi_id=data.get('upi_id', ''),
            requested_by=request.user,
        )
        return Response(WithdrawalSerializer(withdrawal).data, status=status.HTTP_201_CREATED)

    @decorators.action(detail=True, methods=['post'])
    def approve(self, request, pk=None):
        """
        POST /api/wallets/withdrawals/{id}/approve/
        PENDING -> APPROVED (balance recomputed under lock)
        """
        self._require_finance()
        serializer = ReviewSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        withdrawal = WithdrawalService.approve(
            self.get_object(), reviewed_by=request.user, notes=serializer.validated_data['notes']
        )
        return Response(WithdrawalSerializer(withdrawal).data)

    @decorators.action(detail=True, methods=['post'])
    def reject(self, request, pk=None):
        """
        POST /api/wallets/withdrawals/{id}/reject/
        PENDING -> REJECTED
        """
        self._require_finance()
        serializer = ReviewSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        withdrawal = WithdrawalService.reject(
            self.get_object(), reviewed_by=request.user, notes=serializer.validated_data['notes']
        )
        return Response(WithdrawalSerializer(withdrawal).data)

    @decorators.action(detail=True, methods=['post'], url_path='mark-paid')
    def mark_paid(self, request, pk=None):
        """
        POST /api/wallets/withdrawals/{id}/mark-paid/
        APPROVED -> PAID
        """
        self._require_finance()
        serializer = MarkPaidSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        withdrawal = WithdrawalService.mark_paid(
            self.get_object(),
            transaction_id=data['transaction_id'],
            paid_by=request.user,
            payment_date=data.get('payment_date'),
            payment_details=data.get('payment_details', ''),
        )
        return Response(WithdrawalSerializer(withdrawal).data)

    @decorators.action(detail=True, methods=['post'])
    def cancel(self, request, pk=None):
        """
        POST /api/wallets/withdrawals/{id}/cancel/
        Requester cancels its own PENDING request.
        """
        withdrawal = self.get_object()
        if not self._is_finance():
            resolved = HierarchyResolver.resolve_for_user(request.user)
            if withdrawal.actor_role != resolved.role or \
                    withdrawal.affiliate_code.lower() != resolved.referral_code.lower():
                raise ForbiddenError("You can only cancel your own withdrawal requests")

        serializer = ReviewSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        withdrawal = WithdrawalService.cancel(
            withdrawal, cancelled_by=request.user, notes=serializer.validated_data['notes']
        )
        return Response(WithdrawalSerializer(withdrawal).data)
