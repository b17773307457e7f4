"""
Balance aggregation over the commission ledger.

Direct earnings use the stored affiliate_commission (historical rate kept).
Override earnings depend on COMMISSION_OVERRIDE_MODE:
- live: recompute from subordinates' stored pools with today's level rate
- snapshot: sum stored override rows credited to the actor
Available balance = credited earnings - approved/paid withdrawals.
"""
import logging
from dataclasses import dataclass, field
from decimal import Decimal

from django.conf import settings
from django.db.models import Sum
from django.db.models.functions import Lower

from commissions.models import CommissionLedgerEntry, EntryKind, LedgerStatus, RoleType
from commissions.services import RateRegistry, infer_entry_kind, percent_of
from hierarchy.models import Role
from hierarchy.services import HierarchyResolver, ResolvedActor

from .models import WithdrawalRequest

logger = logging.getLogger(__name__)

ZERO = Decimal('0.00')

OVERRIDE_MODE_LIVE = 'live'
OVERRIDE_MODE_SNAPSHOT = 'snapshot'

# Rate key of the override each supervising role earns
OVERRIDE_RATE_KEYS = {
    Role.BRANCH_ADMIN: RoleType.BRANCH,
    Role.AREA_SALES_MANAGER: RoleType.AREA,
    Role.STATE_ADMIN: RoleType.STATE,
}


@dataclass
class StatusTotals:
    pending: Decimal = ZERO
    credited: Decimal = ZERO

    def add(self, status, amount):
        if status == LedgerStatus.CREDITED:
            self.credited += amount
        else:
            self.pending += amount

    @property
    def total(self):
        return self.pending + self.credited


@dataclass
class Balance:
    role: str
    referral_code: str
    override_mode: str
    direct: StatusTotals = field(default_factory=StatusTotals)
    override: StatusTotals = field(default_factory=StatusTotals)
    override_rate: Decimal = None
    paid_out: Decimal = ZERO
    pending_withdrawal: Decimal = ZERO

    @property
    def pending_amount(self):
        return self.direct.pending + self.override.pending

    @property
    def credited_amount(self):
        return self.direct.credited + self.override.credited

    @property
    def lifetime_earnings(self):
        return self.pending_amount + self.credited_amount

    @property
    def available(self):
        return self.credited_amount - self.paid_out

    def as_dict(self):
        return {
            'role': self.role,
            'referral_code': self.referral_code,
            'lifetime_earnings': self.lifetime_earnings,
            'pending_amount': self.pending_amount,
            'credited_amount': self.credited_amount,
            'paid_out': self.paid_out,
            'available': self.available,
            'pending_withdrawal': self.pending_withdrawal,
            'breakdown': {
                'direct': {'pending': self.direct.pending, 'credited': self.direct.credited},
                'override': {
                    'pending': self.override.pending,
                    'credited': self.override.credited,
                    'mode': self.override_mode,
                    'rate': self.override_rate,
                },
            },
        }


class BalanceAggregator:
    """
    Computes an actor's balance on demand. Read-only and lock-free.
    """

    @staticmethod
    def override_mode():
        mode = getattr(settings, 'COMMISSION_OVERRIDE_MODE', OVERRIDE_MODE_LIVE)
        if mode not in (OVERRIDE_MODE_LIVE, OVERRIDE_MODE_SNAPSHOT):
            logger.warning(f"Unknown COMMISSION_OVERRIDE_MODE '{mode}', using '{OVERRIDE_MODE_LIVE}'")
            return OVERRIDE_MODE_LIVE
        return mode

    @staticmethod
    def _rows_for_codes(codes):
        lowered = [c.lower() for c in codes]
        return CommissionLedgerEntry.objects.annotate(
            code_ci=Lower('affiliate_code')
        ).filter(code_ci__in=lowered)

    @staticmethod
    def _totals(queryset, kind, amount_field) -> StatusTotals:
        """
        Sum amount_field by status over rows of the given kind.
        Legacy rows without entry_kind are classified by rate magnitude.
        """
        totals = StatusTotals()
        grouped = queryset.filter(entry_kind=kind).values('status').annotate(total=Sum(amount_field))
        for row in grouped:
            totals.add(row['status'], row['total'] or ZERO)

        legacy = queryset.filter(entry_kind__isnull=True).values_list(
            'commission_source', 'affiliate_rate', 'status', amount_field
        )
        for source, rate, status, amount in legacy:
            if infer_entry_kind(source, rate) == kind:
                totals.add(status, amount)
        return totals

    @classmethod
    def direct_earnings(cls, resolved: ResolvedActor) -> StatusTotals:
        rows = cls._rows_for_codes([resolved.referral_code])
        return cls._totals(rows, EntryKind.DIRECT, 'affiliate_commission')

    @classmethod
    def override_earnings(cls, resolved: ResolvedActor, mode=None):
        """
        Returns:
            tuple: (StatusTotals, level rate or None)
        """
        rate_key = OVERRIDE_RATE_KEYS.get(resolved.role)
        if rate_key is None:
            return StatusTotals(), None

        mode = mode or cls.override_mode()
        if mode == OVERRIDE_MODE_SNAPSHOT:
            rows = cls._rows_for_codes([resolved.referral_code])
            return cls._totals(rows, EntryKind.OVERRIDE, 'affiliate_commission'), None

        rate = RateRegistry.get_rate(rate_key)
        codes = [
            code
            for _, group in HierarchyResolver.subordinate_codes(resolved)
            for code in group
        ]
        if not codes:
            return StatusTotals(), rate

        pools = cls._totals(cls._rows_for_codes(codes), EntryKind.DIRECT, 'commission_amount')
        return StatusTotals(
            pending=percent_of(pools.pending, rate),
            credited=percent_of(pools.credited, rate),
        ), rate

    @staticmethod
    def withdrawals(role, referral_code):
        """
        Returns:
            tuple: (paid_out, pending) where paid_out covers APPROVED and PAID
        """
        qs = WithdrawalRequest.objects.filter(actor_role=role, affiliate_code__iexact=referral_code)
        paid_out = qs.filter(
            status__in=[WithdrawalRequest.Status.APPROVED, WithdrawalRequest.Status.PAID]
        ).aggregate(total=Sum('withdrawal_amount'))['total'] or ZERO
        pending = qs.filter(
            status=WithdrawalRequest.Status.PENDING
        ).aggregate(total=Sum('withdrawal_amount'))['total'] or ZERO
        return paid_out, pending

    @classmethod
    def balance_for(cls, resolved: ResolvedActor, mode=None) -> Balance:
        mode = mode or cls.override_mode()
        override, rate = cls.override_earnings(resolved, mode=mode)
        paid_out, pending_withdrawal = cls.withdrawals(resolved.role, resolved.referral_code)

        balance = Balance(
            role=resolved.role,
            referral_code=resolved.referral_code,
            override_mode=mode,
            direct=cls.direct_earnings(resolved),
            override=override,
            override_rate=rate,
            paid_out=paid_out,
            pending_withdrawal=pending_withdrawal,
        )
        logger.debug(
            f"Balance {resolved.role}:{resolved.referral_code} "
            f"credited ₹{balance.credited_amount} paid ₹{paid_out} available ₹{balance.available}"
        )
        return balance

    @classmethod
    def balance(cls, role, referral_code, mode=None) -> Balance:
        """
        Raises:
            ActorNotFound: no active actor with this code in the role's table
        """
        return cls.balance_for(HierarchyResolver.get_actor(role, referral_code), mode=mode)
