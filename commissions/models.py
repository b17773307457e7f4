from decimal import Decimal

from django.db import models
from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator, MaxValueValidator
from django.db.models import Q


PERCENTAGE_VALIDATORS = [MinValueValidator(Decimal('0')), MaxValueValidator(Decimal('100'))]


class RoleType(models.TextChoices):
    """Keys of the rate registry"""
    AFFILIATE = 'affiliate', 'Affiliate (base)'
    BRANCH_DIRECT = 'branch_direct', 'Branch Admin direct bonus'
    BRANCH = 'branch', 'Branch Admin override'
    AREA = 'area', 'Area Sales Manager'
    STATE = 'state', 'State Admin'


class CommissionSource(models.TextChoices):
    """Discriminator of a ledger row: which hierarchy level it pays"""
    AFFILIATE = 'affiliate', 'Agent sale'
    BRANCH_ADMIN_DIRECT = 'branch_admin_direct', 'Branch Admin direct sale'
    ASM_DIRECT = 'asm_direct', 'ASM direct sale'
    STATE_ADMIN_DIRECT = 'state_admin_direct', 'State Admin direct sale'
    BRANCH_ADMIN = 'branch_admin', 'Branch Admin override'
    AREA_MANAGER = 'area_manager', 'ASM override'
    STATE_ADMIN = 'state_admin', 'State Admin override'


class EntryKind(models.TextChoices):
    DIRECT = 'direct', 'Direct sale'
    OVERRIDE = 'override', 'Override'


class LedgerStatus(models.TextChoices):
    PENDING = 'PENDING', 'Pending delivery'
    CREDITED = 'CREDITED', 'Credited'


class CommissionRate(models.Model):
    """
    Current commission percentage per role type.

    Business Rules:
    - Exactly one row per role_type
    - Changes apply to orders processed afterwards (no retroactive recompute)
    """
    role_type = models.CharField(
        max_length=20,
        choices=RoleType.choices,
        unique=True,
    )
    percentage = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        validators=PERCENTAGE_VALIDATORS,
        help_text="Percentage of the commission pool (e.g., 70.00)"
    )
    updated_at = models.DateTimeField(auto_now=True)
    updated_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='commission_rate_updates',
    )

    class Meta:
        db_table = 'commissions_rate'
        ordering = ['role_type']

    def __str__(self):
        return f"{self.get_role_type_display()}: {self.percentage}%"


class ProductCommission(models.Model):
    """
    Percentage of an order line that forms the commission pool.

    Exactly one of product/category/collection/product type identifies the
    rule. Most specific wins: product > category > collection > product type.
    """
    product_id = models.CharField(max_length=100, blank=True, db_index=True)
    category_id = models.CharField(max_length=100, blank=True, db_index=True)
    collection_id = models.CharField(max_length=100, blank=True, db_index=True)
    product_type_id = models.CharField(max_length=100, blank=True, db_index=True)

    commission_rate = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        validators=PERCENTAGE_VALIDATORS,
        help_text="Pool percentage of the order amount"
    )
    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'commissions_product_commission'
        ordering = ['-updated_at']

    def __str__(self):
        return f"{self.scope}: {self.commission_rate}%"

    @property
    def scope(self):
        for label, value in (
            ('product', self.product_id),
            ('category', self.category_id),
            ('collection', self.collection_id),
            ('product_type', self.product_type_id),
        ):
            if value:
                return f"{label}:{value}"
        return 'unscoped'

    def clean(self):
        targets = [self.product_id, self.category_id, self.collection_id, self.product_type_id]
        if sum(1 for t in targets if t) != 1:
            raise ValidationError(
                "Exactly one of product, category, collection or product type must be set."
            )

    def save(self, *args, **kwargs):
        self.full_clean()
        super().save(*args, **kwargs)


class CommissionLedgerEntry(models.Model):
    """
    One immutable earnings credit for one hierarchy level on one order.

    Business Rules:
    - (order_id, product_id, commission_source) is unique; replays never
      duplicate rows, separate line items of one order each get their own rows
    - Only status/credited_at change after insert (PENDING → CREDITED once)
    - affiliate_code is the code credited by this row; seller_code is the
      code that was used on the order
    - commission_amount is the pool; affiliate_commission = pool * affiliate_rate / 100
    """
    order_id = models.CharField(max_length=100, db_index=True)
    affiliate_code = models.CharField(
        max_length=50,
        db_index=True,
        help_text="Referral code credited by this row"
    )
    seller_code = models.CharField(
        max_length=50,
        db_index=True,
        help_text="Referral code used on the order"
    )
    commission_source = models.CharField(
        max_length=30,
        choices=CommissionSource.choices,
        db_index=True,
    )
    entry_kind = models.CharField(
        max_length=10,
        choices=EntryKind.choices,
        null=True,
        blank=True,
        db_index=True,
        help_text="NULL only on legacy rows written before the column existed"
    )

    # Order line
    product_id = models.CharField(max_length=100, blank=True)
    product_name = models.CharField(max_length=255, blank=True)
    quantity = models.PositiveIntegerField(default=1)
    order_amount = models.DecimalField(max_digits=12, decimal_places=2)

    # Pool and share
    commission_rate = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        default=Decimal('0.00'),
        help_text="Pool percentage of the order amount"
    )
    commission_amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        help_text="Total commission pool of the order line"
    )
    affiliate_rate = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        help_text="Percentage of the pool applied to produce this row"
    )
    affiliate_commission = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        help_text="Credited amount"
    )

    status = models.CharField(
        max_length=10,
        choices=LedgerStatus.choices,
        default=LedgerStatus.PENDING,
        db_index=True,
    )

    customer_id = models.CharField(max_length=100, blank=True)
    customer_name = models.CharField(max_length=255, blank=True)
    customer_email = models.EmailField(blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    credited_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = 'commissions_ledger_entry'
        ordering = ['-created_at', '-id']
        verbose_name = 'Commission Ledger Entry'
        verbose_name_plural = 'Commission Ledger Entries'
        indexes = [
            models.Index(fields=['affiliate_code', 'status'], name='idx_ledger_code_status'),
            models.Index(fields=['seller_code', 'entry_kind', 'status'], name='idx_ledger_seller_kind_status'),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=['order_id', 'product_id', 'commission_source'],
                name='unique_order_line_commission_source'
            ),
            models.CheckConstraint(
                condition=Q(affiliate_rate__gte=0) & Q(affiliate_commission__gte=0),
                name='ledger_amounts_non_negative'
            ),
        ]

    def __str__(self):
        return f"{self.order_id} {self.commission_source} ₹{self.affiliate_commission} ({self.status})"
