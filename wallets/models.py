from decimal import Decimal

from django.db import models
from django.conf import settings
from django.db.models import Q


class Wallet(models.Model):
    """
    Per-actor counter row.

    Locked (select_for_update) while a withdrawal is approved so two
    approvals for the same actor serialize. The ledger stays the source
    of truth; balance/total_withdrawn are refreshed on every approval.
    """
    actor_role = models.CharField(max_length=20)
    referral_code = models.CharField(max_length=50)
    balance = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal('0.00'),
        help_text="Available balance after the last approval"
    )
    total_withdrawn = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'wallets_wallet'
        constraints = [
            models.UniqueConstraint(fields=['actor_role', 'referral_code'], name='unique_wallet_per_actor'),
        ]

    def __str__(self):
        return f"{self.actor_role}:{self.referral_code} ₹{self.balance}"


class WithdrawalRequest(models.Model):
    """
    A payout request against an actor's available balance.

    Lifecycle:
    PENDING → APPROVED → PAID
    PENDING → REJECTED (also used when the requester cancels)
    """

    class Status(models.TextChoices):
        PENDING = 'PENDING', 'Pending'
        APPROVED = 'APPROVED', 'Approved'
        REJECTED = 'REJECTED', 'Rejected'
        PAID = 'PAID', 'Paid'

    class PaymentMethod(models.TextChoices):
        BANK_TRANSFER = 'BANK_TRANSFER', 'Bank Transfer'
        UPI = 'UPI', 'UPI'

    # Requester
    actor_role = models.CharField(max_length=20)
    affiliate_code = models.CharField(max_length=50, db_index=True)
    affiliate_name = models.CharField(max_length=200)
    affiliate_email = models.EmailField(blank=True)

    # Amounts
    withdrawal_amount = models.DecimalField(max_digits=12, decimal_places=2)
    gst_percentage = models.DecimalField(max_digits=5, decimal_places=2)
    gst_amount = models.DecimalField(max_digits=12, decimal_places=2)
    net_payable = models.DecimalField(max_digits=12, decimal_places=2)

    # Destination (account number and UPI id stored encrypted)
    payment_method = models.CharField(max_length=20, choices=PaymentMethod.choices)
    bank_name = models.CharField(max_length=255, blank=True)
    bank_branch = models.CharField(max_length=255, blank=True)
    ifsc_code = models.CharField(max_length=20, blank=True)
    account_name = models.CharField(max_length=255, blank=True)
    account_number_encrypted = models.TextField(blank=True)
    upi_id_encrypted = models.TextField(blank=True)

    status = models.CharField(max_length=10, choices=Status.choices, default=Status.PENDING, db_index=True)
    requested_at = models.DateTimeField(auto_now_add=True)

    # Review
    reviewed_at = models.DateTimeField(null=True, blank=True)
    reviewed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='reviewed_withdrawals'
    )
    admin_notes = models.TextField(blank=True)
    wallet_balance_before = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        null=True,
        blank=True,
        help_text="Available balance recomputed at approval"
    )

    # Payment
    payment_date = models.DateField(null=True, blank=True)
    transaction_id = models.CharField(max_length=100, blank=True)
    payment_details = models.TextField(blank=True)
    paid_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = 'wallets_withdrawal_request'
        ordering = ['-requested_at', '-id']
        indexes = [
            models.Index(fields=['actor_role', 'affiliate_code', 'status'], name='idx_withdrawal_actor_status'),
        ]
        constraints = [
            models.CheckConstraint(condition=Q(withdrawal_amount__gt=0), name='withdrawal_amount_positive'),
            models.UniqueConstraint(
                fields=['actor_role', 'affiliate_code'],
                condition=Q(status='PENDING'),
                name='one_pending_withdrawal_per_actor'
            ),
        ]

    def __str__(self):
        return f"Withdrawal {self.id} {self.affiliate_code} ₹{self.withdrawal_amount} ({self.status})"
