"""
Withdrawal lifecycle services.

PENDING → APPROVED → PAID
PENDING → REJECTED

Approval is the only step that needs a consistency guarantee: the actor's
Wallet row and the request row are locked, the balance is recomputed from
the ledger, and the request is approved only if it still fits.
"""
import logging
from decimal import Decimal, ROUND_HALF_UP

from django.conf import settings
from django.db import IntegrityError, transaction
from django.utils import timezone

from activity.events import (
    WithdrawalRequested, WithdrawalApproved, WithdrawalApprovalFailed, WithdrawalRejected,
    WithdrawalCancelled, WithdrawalPaid,
)
from activity.services import ActivityService
from hierarchy.services import HierarchyResolver, ResolvedActor

from .aggregation import BalanceAggregator
from .encryption import EncryptionService
from .exceptions import (
    InsufficientBalance, InvalidStateTransition, WithdrawalValidationError,
)
from .models import Wallet, WithdrawalRequest

logger = logging.getLogger(__name__)

TWO_PLACES = Decimal('0.01')


class WalletService:
    """Per-actor wallet counter rows."""

    @staticmethod
    def lock(role, referral_code) -> Wallet:
        """
        Wallet row for the actor, locked until the surrounding transaction ends.
        Must be called inside transaction.atomic.
        """
        wallet, created = Wallet.objects.get_or_create(
            actor_role=role,
            referral_code=referral_code,
        )
        if created:
            logger.info(f"Wallet created for {role}:{referral_code}")
        return Wallet.objects.select_for_update().get(pk=wallet.pk)


class WithdrawalService:
    """
    State machine for withdrawal requests.
    """

    ALLOWED_TRANSITIONS = {
        WithdrawalRequest.Status.PENDING: [
            WithdrawalRequest.Status.APPROVED,
            WithdrawalRequest.Status.REJECTED,
        ],
        WithdrawalRequest.Status.APPROVED: [WithdrawalRequest.Status.PAID],
        WithdrawalRequest.Status.REJECTED: [],
        WithdrawalRequest.Status.PAID: [],
    }

    @classmethod
    def can_transition(cls, from_status, to_status):
        return to_status in cls.ALLOWED_TRANSITIONS.get(from_status, [])

    @classmethod
    def _check_transition(cls, withdrawal, to_status):
        if not cls.can_transition(withdrawal.status, to_status):
            logger.warning(
                f"Withdrawal {withdrawal.id}: refused {withdrawal.status} → {to_status}"
            )
            raise InvalidStateTransition(withdrawal.status, to_status)

    @staticmethod
    def _lock_request(withdrawal) -> WithdrawalRequest:
        return WithdrawalRequest.objects.select_for_update().get(pk=withdrawal.pk)

    @staticmethod
    def calculate_gst(amount):
        """
        Flat deduction on every withdrawal.

        Returns:
            tuple: (gst_percentage, gst_amount, net_payable)
        """
        percentage = Decimal(str(settings.WITHDRAWAL_GST_PERCENTAGE))
        gst_amount = (amount * percentage / Decimal('100')).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)
        return percentage, gst_amount, amount - gst_amount

    @staticmethod
    def _event_kwargs(withdrawal, **extra):
        return dict(
            amount=withdrawal.withdrawal_amount,
            actor_role=withdrawal.actor_role,
            actor_code=withdrawal.affiliate_code,
            actor_name=withdrawal.affiliate_name,
            withdrawal_id=withdrawal.id,
            **extra
        )

    # -------------------------------------------------------------------------
    # Request
    # -------------------------------------------------------------------------

    @classmethod
    @transaction.atomic
    def request_withdrawal(
        cls,
        resolved: ResolvedActor,
        amount,
        payment_method,
        bank_details=None,
        upi_id='',
        requested_by=None,
    ) -> WithdrawalRequest:
        """
        Create a PENDING request for an actor.

        Raises:
            WithdrawalValidationError: below minimum, pending request exists,
                missing payment details
            InsufficientBalance: amount exceeds the current available balance
        """
        amount = Decimal(str(amount)).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)
        minimum = Decimal(str(settings.WITHDRAWAL_MIN_AMOUNT))
        if amount < minimum:
            raise WithdrawalValidationError(
                f"Minimum withdrawal is ₹{minimum}",
                {'withdrawal_amount': str(amount), 'minimum': str(minimum)}
            )

        bank_details = bank_details or {}
        if payment_method == WithdrawalRequest.PaymentMethod.BANK_TRANSFER:
            missing = [
                key for key in ('account_name', 'account_number', 'ifsc_code')
                if not (bank_details.get(key) or '').strip()
            ]
            if missing:
                raise WithdrawalValidationError(
                    "Bank transfer requires account name, account number and IFSC code",
                    {'missing': missing}
                )
        elif payment_method == WithdrawalRequest.PaymentMethod.UPI:
            if '@' not in (upi_id or ''):
                raise WithdrawalValidationError("A valid UPI id is required", {'upi_id': upi_id})
        else:
            raise WithdrawalValidationError(
                f"Unsupported payment method '{payment_method}'",
                {'allowed': WithdrawalRequest.PaymentMethod.values}
            )

        # Serializes concurrent requests from the same actor
        WalletService.lock(resolved.role, resolved.referral_code)

        if WithdrawalRequest.objects.filter(
            actor_role=resolved.role,
            affiliate_code__iexact=resolved.referral_code,
            status=WithdrawalRequest.Status.PENDING
        ).exists():
            raise WithdrawalValidationError("You already have a pending withdrawal request")

        balance = BalanceAggregator.balance_for(resolved)
        if amount > balance.available:
            raise InsufficientBalance(amount, balance.available)

        gst_percentage, gst_amount, net_payable = cls.calculate_gst(amount)
        is_bank = payment_method == WithdrawalRequest.PaymentMethod.BANK_TRANSFER

        try:
            with transaction.atomic():
                withdrawal = WithdrawalRequest.objects.create(
                    actor_role=resolved.role,
                    affiliate_code=resolved.referral_code,
                    affiliate_name=resolved.name,
                    affiliate_email=resolved.actor.email,
                    withdrawal_amount=amount,
                    gst_percentage=gst_percentage,
                    gst_amount=gst_amount,
                    net_payable=net_payable,
                    payment_method=payment_method,
                    bank_name=bank_details.get('bank_name', '') if is_bank else '',
                    bank_branch=bank_details.get('bank_branch', '') if is_bank else '',
                    ifsc_code=bank_details.get('ifsc_code', '').strip().upper() if is_bank else '',
                    account_name=bank_details.get('account_name', '') if is_bank else '',
                    account_number_encrypted=(
                        EncryptionService.encrypt(bank_details['account_number'].strip()) if is_bank else ''
                    ),
                    upi_id_encrypted='' if is_bank else EncryptionService.encrypt(upi_id.strip()),
                    wallet_balance_before=balance.available,
                )
        except IntegrityError as e:
            raise WithdrawalValidationError("You already have a pending withdrawal request") from e

        logger.info(
            f"Withdrawal {withdrawal.id} requested by {resolved.role}:{resolved.referral_code} "
            f"₹{amount} (net ₹{net_payable})"
        )
        ActivityService.record(
            WithdrawalRequested(**cls._event_kwargs(withdrawal)),
            resolved=resolved,
            performed_by=requested_by,
        )
        return withdrawal

    # -------------------------------------------------------------------------
    # Review
    # -------------------------------------------------------------------------

    @classmethod
    def approve(cls, withdrawal, reviewed_by, notes='') -> WithdrawalRequest:
        """
        PENDING → APPROVED.

        A refusal for lack of balance leaves the request PENDING and is
        logged to the requester's activity feed.

        Raises:
            InvalidStateTransition: not PENDING
            InsufficientBalance: amount exceeds the balance recomputed now
        """
        try:
            return cls._approve_locked(withdrawal, reviewed_by, notes)
        except InsufficientBalance as e:
            resolved = HierarchyResolver.get_actor(
                withdrawal.actor_role, withdrawal.affiliate_code, include_inactive=True
            )
            ActivityService.record(
                WithdrawalApprovalFailed(**cls._event_kwargs(
                    withdrawal, notes=e.message, available=e.available
                )),
                resolved=resolved,
                performed_by=reviewed_by,
            )
            raise

    @classmethod
    @transaction.atomic
    def _approve_locked(cls, withdrawal, reviewed_by, notes='') -> WithdrawalRequest:
        wallet = WalletService.lock(withdrawal.actor_role, withdrawal.affiliate_code)
        withdrawal = cls._lock_request(withdrawal)
        cls._check_transition(withdrawal, WithdrawalRequest.Status.APPROVED)

        resolved = HierarchyResolver.get_actor(
            withdrawal.actor_role, withdrawal.affiliate_code, include_inactive=True
        )
        balance = BalanceAggregator.balance_for(resolved)
        available = balance.available
        if withdrawal.withdrawal_amount > available:
            logger.warning(
                f"Withdrawal {withdrawal.id} not approved: "
                f"₹{withdrawal.withdrawal_amount} > available ₹{available}"
            )
            raise InsufficientBalance(withdrawal.withdrawal_amount, available)

        withdrawal.status = WithdrawalRequest.Status.APPROVED
        withdrawal.reviewed_at = timezone.now()
        withdrawal.reviewed_by = reviewed_by
        withdrawal.admin_notes = notes or ''
        withdrawal.wallet_balance_before = available
        withdrawal.save()

        wallet.balance = available - withdrawal.withdrawal_amount
        wallet.total_withdrawn += withdrawal.withdrawal_amount
        wallet.save()

        logger.info(
            f"Withdrawal {withdrawal.id} approved by {reviewed_by}: "
            f"₹{withdrawal.withdrawal_amount}, balance ₹{available} → ₹{wallet.balance}"
        )
        ActivityService.record(
            WithdrawalApproved(**cls._event_kwargs(withdrawal, notes=notes or '', balance_before=available)),
            resolved=resolved,
            performed_by=reviewed_by,
        )
        return withdrawal

    @classmethod
    @transaction.atomic
    def reject(cls, withdrawal, reviewed_by, notes='') -> WithdrawalRequest:
        """PENDING → REJECTED. No balance change."""
        withdrawal = cls._lock_request(withdrawal)
        cls._check_transition(withdrawal, WithdrawalRequest.Status.REJECTED)

        withdrawal.status = WithdrawalRequest.Status.REJECTED
        withdrawal.reviewed_at = timezone.now()
        withdrawal.reviewed_by = reviewed_by
        withdrawal.admin_notes = notes or ''
        withdrawal.save()

        logger.info(f"Withdrawal {withdrawal.id} rejected by {reviewed_by}")
        ActivityService.record(
            WithdrawalRejected(**cls._event_kwargs(withdrawal, notes=notes or '')),
            performed_by=reviewed_by,
        )
        return withdrawal

    @classmethod
    @transaction.atomic
    def cancel(cls, withdrawal, cancelled_by=None, notes='') -> WithdrawalRequest:
        """Requester withdraws a PENDING request; stored as REJECTED."""
        withdrawal = cls._lock_request(withdrawal)
        cls._check_transition(withdrawal, WithdrawalRequest.Status.REJECTED)

        withdrawal.status = WithdrawalRequest.Status.REJECTED
        withdrawal.reviewed_at = timezone.now()
        withdrawal.admin_notes = notes or 'Cancelled by requester'
        withdrawal.save()

        logger.info(f"Withdrawal {withdrawal.id} cancelled by requester")
        ActivityService.record(
            WithdrawalCancelled(**cls._event_kwargs(withdrawal, notes=withdrawal.admin_notes)),
            performed_by=cancelled_by,
        )
        return withdrawal

    @classmethod
    @transaction.atomic
    def mark_paid(cls, withdrawal, transaction_id, paid_by=None, payment_date=None, payment_details='') -> WithdrawalRequest:
        """
        APPROVED → PAID. Already deducted at approval; no balance change.

        Raises:
            WithdrawalValidationError: transaction_id missing
            InvalidStateTransition: not APPROVED
        """
        transaction_id = (transaction_id or '').strip()
        if not transaction_id:
            raise WithdrawalValidationError("Transaction ID is required to mark a withdrawal paid")

        withdrawal = cls._lock_request(withdrawal)
        cls._check_transition(withdrawal, WithdrawalRequest.Status.PAID)

        withdrawal.status = WithdrawalRequest.Status.PAID
        withdrawal.transaction_id = transaction_id
        withdrawal.payment_date = payment_date or timezone.localdate()
        withdrawal.payment_details = payment_details or ''
        withdrawal.paid_at = timezone.now()
        withdrawal.save()

        logger.info(f"Withdrawal {withdrawal.id} paid, transaction {transaction_id}")
        ActivityService.record(
            WithdrawalPaid(**cls._event_kwargs(withdrawal, transaction_id=transaction_id)),
            performed_by=paid_by,
        )
        return withdrawal
