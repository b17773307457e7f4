"""
Business logic services for the Commission Attribution Engine.

This layer handles:
- Rate registry reads with configured fallbacks
- Commission pool lookup (product > category > collection > product type)
- Attribution of one order line to every hierarchy level
- Idempotent ledger writes
- Delivery confirmation (PENDING → CREDITED)

No API views or URL routing here - pure business logic.
"""
import logging
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional

from django.conf import settings
from django.db import IntegrityError, transaction
from django.utils import timezone

from hierarchy.exceptions import ActorNotFound
from hierarchy.models import Role
from hierarchy.services import HierarchyResolver, ResolvedActor

from .exceptions import CommissionError, RateNotConfigured, DuplicateLedgerEntry
from .models import (
    RoleType, CommissionSource, EntryKind, LedgerStatus,
    CommissionRate, ProductCommission, CommissionLedgerEntry,
)

logger = logging.getLogger(__name__)

TWO_PLACES = Decimal('0.01')
HUNDRED = Decimal('100')


def to_decimal(value) -> Decimal:
    return Decimal(str(value))


def percent_of(amount, rate) -> Decimal:
    """amount * rate / 100, rounded to paise"""
    return (to_decimal(amount) * to_decimal(rate) / HUNDRED).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


# Source tag of a direct sale, per seller role
DIRECT_SOURCES = {
    Role.AGENT: CommissionSource.AFFILIATE,
    Role.BRANCH_ADMIN: CommissionSource.BRANCH_ADMIN_DIRECT,
    Role.AREA_SALES_MANAGER: CommissionSource.ASM_DIRECT,
    Role.STATE_ADMIN: CommissionSource.STATE_ADMIN_DIRECT,
}

# Override level → (ledger source, rate registry key)
OVERRIDE_LEVELS = {
    HierarchyResolver.LEVEL_BRANCH: (CommissionSource.BRANCH_ADMIN, RoleType.BRANCH),
    HierarchyResolver.LEVEL_AREA: (CommissionSource.AREA_MANAGER, RoleType.AREA),
    HierarchyResolver.LEVEL_STATE: (CommissionSource.STATE_ADMIN, RoleType.STATE),
}

DIRECT_SOURCE_VALUES = {str(s) for s in DIRECT_SOURCES.values()}


def infer_entry_kind(commission_source, affiliate_rate) -> str:
    """
    Classify a legacy ledger row that has no entry_kind.

    Rows written before entry_kind existed used 'branch_admin' for both a
    branch admin's own sale (cumulative rate, e.g. 85%) and its override on
    an agent's sale (e.g. 15%). Only the rate magnitude tells them apart.
    """
    if str(commission_source) in DIRECT_SOURCE_VALUES:
        return EntryKind.DIRECT
    threshold = to_decimal(settings.COMMISSION_LEGACY_DIRECT_RATE_THRESHOLD)
    if to_decimal(affiliate_rate) > threshold:
        return EntryKind.DIRECT
    return EntryKind.OVERRIDE


class RateRegistry:
    """
    Current commission percentage per role type.

    Reads never fail: a missing row falls back to COMMISSION_DEFAULT_RATES
    with a warning, so an unconfigured registry cannot block an order.
    """

    # Rate keys summed for a direct sale by each role
    CUMULATIVE_KEYS = {
        Role.AGENT: [RoleType.AFFILIATE],
        Role.BRANCH_ADMIN: [RoleType.AFFILIATE, RoleType.BRANCH_DIRECT],
        Role.AREA_SALES_MANAGER: [RoleType.AFFILIATE, RoleType.BRANCH_DIRECT, RoleType.AREA],
        Role.STATE_ADMIN: [RoleType.AFFILIATE, RoleType.BRANCH_DIRECT, RoleType.AREA, RoleType.STATE],
    }

    @staticmethod
    def default_rate(role_type) -> Decimal:
        return to_decimal(settings.COMMISSION_DEFAULT_RATES[role_type])

    @staticmethod
    def get_rate_strict(role_type) -> Decimal:
        """
        Raises:
            RateNotConfigured: no row for role_type
        """
        percentage = CommissionRate.objects.filter(
            role_type=role_type
        ).values_list('percentage', flat=True).first()
        if percentage is None:
            raise RateNotConfigured(role_type)
        return percentage

    @classmethod
    def get_rate(cls, role_type) -> Decimal:
        try:
            return cls.get_rate_strict(role_type)
        except RateNotConfigured as e:
            default = cls.default_rate(role_type)
            logger.warning(f"{e.message}; using default {default}%")
            return default

    @classmethod
    def get_rates(cls) -> dict:
        """Every role type's percentage, read in one query."""
        stored = dict(CommissionRate.objects.values_list('role_type', 'percentage'))
        rates = {}
        for role_type in RoleType.values:
            if role_type in stored:
                rates[role_type] = stored[role_type]
            else:
                rates[role_type] = cls.default_rate(role_type)
                logger.warning(
                    f"No commission rate configured for '{role_type}'; "
                    f"using default {rates[role_type]}%"
                )
        return rates

    @staticmethod
    @transaction.atomic
    def set_rate(role_type, percentage, updated_by=None) -> CommissionRate:
        """
        Create or replace the rate for role_type.
        Applies to orders processed afterwards; stored ledger rows keep
        the rate they were written with.
        """
        if role_type not in RoleType.values:
            raise CommissionError(
                f"Unknown role type '{role_type}'",
                {'role_type': role_type, 'allowed': RoleType.values}
            )
        percentage = to_decimal(percentage)
        if percentage < 0 or percentage > HUNDRED:
            raise CommissionError(
                "Percentage must be between 0 and 100",
                {'percentage': str(percentage)}
            )

        rate, created = CommissionRate.objects.update_or_create(
            role_type=role_type,
            defaults={'percentage': percentage, 'updated_by': updated_by}
        )
        logger.info(
            f"Commission rate {'created' if created else 'updated'}: "
            f"{role_type}={percentage}% by {getattr(updated_by, 'username', None)}"
        )
        return rate

    @classmethod
    def cumulative_direct_rate(cls, role, rates=None) -> Decimal:
        """
        Rate credited to a seller selling under its own code:
        the affiliate base plus every bonus at or below its tier.
        """
        rates = rates if rates is not None else cls.get_rates()
        return sum((to_decimal(rates[key]) for key in cls.CUMULATIVE_KEYS[role]), Decimal('0'))


# =============================================================================
# Order events and drafts
# =============================================================================

@dataclass
class OrderEvent:
    """One paid order line as delivered by the order webhook."""
    order_id: str
    referral_code: str
    order_amount: Decimal
    quantity: int = 1
    item_price: Decimal = Decimal('0.00')
    product_id: str = ''
    product_name: str = ''
    category_id: str = ''
    collection_id: str = ''
    product_type_id: str = ''
    commission_amount: Optional[Decimal] = None
    customer_id: str = ''
    customer_name: str = ''
    customer_email: str = ''
    delivered: bool = False


@dataclass
class Pool:
    amount: Decimal
    rate: Decimal
    source: str


@dataclass
class LedgerEntryDraft:
    """A ledger row computed for one hierarchy level, not yet persisted."""
    order_id: str
    affiliate_code: str
    seller_code: str
    commission_source: str
    entry_kind: str
    order_amount: Decimal
    commission_rate: Decimal
    commission_amount: Decimal
    affiliate_rate: Decimal
    affiliate_commission: Decimal
    actor_role: str = ''
    actor_name: str = ''
    product_id: str = ''
    product_name: str = ''
    quantity: int = 1
    customer_id: str = ''
    customer_name: str = ''
    customer_email: str = ''

    MODEL_FIELDS = (
        'order_id', 'affiliate_code', 'seller_code', 'commission_source', 'entry_kind',
        'order_amount', 'commission_rate', 'commission_amount', 'affiliate_rate',
        'affiliate_commission', 'product_id', 'product_name', 'quantity',
        'customer_id', 'customer_name', 'customer_email',
    )

    def to_model(self) -> CommissionLedgerEntry:
        return CommissionLedgerEntry(**{name: getattr(self, name) for name in self.MODEL_FIELDS})


@dataclass
class WriteResult:
    created: List[CommissionLedgerEntry] = field(default_factory=list)
    skipped: List[LedgerEntryDraft] = field(default_factory=list)

    @property
    def created_count(self):
        return len(self.created)

    @property
    def skipped_count(self):
        return len(self.skipped)


@dataclass
class ProcessingResult:
    order_id: str
    referral_code: str
    attributed: bool
    role: Optional[str] = None
    pool: Optional[Pool] = None
    write: WriteResult = field(default_factory=WriteResult)
    credited: int = 0


# =============================================================================
# Services
# =============================================================================

class CommissionPoolService:
    """Resolves the commission pool of an order line."""

    # Most specific first
    PRECEDENCE = ['product_id', 'category_id', 'collection_id', 'product_type_id']

    UNCATEGORIZED = 'uncategorized'
    EXPLICIT = 'explicit'

    @classmethod
    def resolve_rate(cls, product_id='', category_id='', collection_id='', product_type_id=''):
        """
        Pool percentage for an order line.

        Returns:
            tuple: (percentage, source) where source is 'product', 'category',
                'collection', 'product_type' or 'uncategorized'
        """
        values = {
            'product_id': product_id,
            'category_id': category_id,
            'collection_id': collection_id,
            'product_type_id': product_type_id,
        }
        active = ProductCommission.objects.filter(is_active=True)
        for field_name in cls.PRECEDENCE:
            value = values[field_name]
            if not value:
                continue
            rule = active.filter(**{field_name: value}).order_by('-updated_at', '-pk').first()
            if rule is not None:
                return rule.commission_rate, field_name[:-len('_id')]

        logger.info(f"No product commission rule for product '{product_id}'; pool is 0")
        return Decimal('0.00'), cls.UNCATEGORIZED

    @classmethod
    def pool_for(cls, event: OrderEvent) -> Pool:
        if event.commission_amount is not None:
            return Pool(
                amount=to_decimal(event.commission_amount).quantize(TWO_PLACES, rounding=ROUND_HALF_UP),
                rate=Decimal('0.00'),
                source=cls.EXPLICIT,
            )

        rate, source = cls.resolve_rate(
            event.product_id, event.category_id, event.collection_id, event.product_type_id
        )
        return Pool(amount=percent_of(event.order_amount, rate), rate=rate, source=source)


class AttributionEngine:
    """
    Computes ledger drafts for one order line.

    Pure computation: reads the hierarchy, rate registry and product rules,
    writes nothing.
    """

    @staticmethod
    def _draft(event, pool, resolved_seller, actor, actor_role, source, kind, rate):
        return LedgerEntryDraft(
            order_id=event.order_id,
            affiliate_code=actor.referral_code,
            seller_code=resolved_seller.referral_code,
            commission_source=source,
            entry_kind=kind,
            order_amount=to_decimal(event.order_amount),
            commission_rate=pool.rate,
            commission_amount=pool.amount,
            affiliate_rate=rate,
            affiliate_commission=percent_of(pool.amount, rate),
            actor_role=actor_role,
            actor_name=actor.full_name,
            product_id=event.product_id,
            product_name=event.product_name,
            quantity=event.quantity,
            customer_id=event.customer_id,
            customer_name=event.customer_name,
            customer_email=event.customer_email,
        )

    @staticmethod
    def _settle_rounding(pool, overrides):
        """
        Rows are rounded one by one, so their sum can drift a paisa from
        pool * combined rate. The largest row absorbs the difference.
        """
        total = percent_of(pool.amount, sum(d.affiliate_rate for d in overrides))
        drift = total - sum(d.affiliate_commission for d in overrides)
        if drift:
            largest = max(overrides, key=lambda d: d.affiliate_commission)
            logger.debug(
                f"Order {largest.order_id}: {drift} rounding drift settled on "
                f"{largest.commission_source}"
            )
            largest.affiliate_commission += drift

    @classmethod
    def attribute(cls, event: OrderEvent, resolved: ResolvedActor = None, pool: Pool = None):
        """
        Drafts for the direct seller and every supervisor above it.

        Overrides are computed on the same pool as the direct share; they
        are not deducted from it.

        Raises:
            ActorNotFound: referral code matches no active actor
        """
        resolved = resolved or HierarchyResolver.resolve(event.referral_code)
        pool = pool or CommissionPoolService.pool_for(event)
        rates = RateRegistry.get_rates()

        drafts = [cls._draft(
            event, pool, resolved, resolved.actor, resolved.role,
            source=DIRECT_SOURCES[resolved.role],
            kind=EntryKind.DIRECT,
            rate=RateRegistry.cumulative_direct_rate(resolved.role, rates),
        )]

        for ancestor in HierarchyResolver.ancestors(resolved):
            source, rate_key = OVERRIDE_LEVELS[ancestor.level]
            drafts.append(cls._draft(
                event, pool, resolved, ancestor.actor, ancestor.actor.role,
                source=source,
                kind=EntryKind.OVERRIDE,
                rate=to_decimal(rates[rate_key]),
            ))
        if len(drafts) > 1:
            cls._settle_rounding(pool, drafts[1:])
        return drafts


class LedgerWriter:
    """
    Persists drafts with at-most-once semantics per
    (order_id, product_id, commission_source).
    """

    @staticmethod
    def _insert(draft: LedgerEntryDraft) -> CommissionLedgerEntry:
        """
        Raises:
            DuplicateLedgerEntry: row for (order_id, product_id, commission_source) exists
        """
        try:
            with transaction.atomic():
                entry = draft.to_model()
                entry.save()
                return entry
        except IntegrityError as e:
            exists = CommissionLedgerEntry.objects.filter(
                order_id=draft.order_id,
                product_id=draft.product_id,
                commission_source=draft.commission_source
            ).exists()
            if not exists:
                raise
            raise DuplicateLedgerEntry(draft.order_id, draft.commission_source, draft.product_id) from e

    @classmethod
    @transaction.atomic
    def write(cls, drafts: List[LedgerEntryDraft]) -> WriteResult:
        """
        Insert all drafts of one order in one transaction.

        Conflicting rows count as skipped. Any other failure rolls back the
        whole order so a redelivery recomputes and rewrites every level.
        """
        result = WriteResult()
        for draft in drafts:
            try:
                entry = cls._insert(draft)
            except DuplicateLedgerEntry as e:
                logger.debug(f"Idempotent replay: {e.message}")
                result.skipped.append(draft)
                continue

            logger.info(
                f"Ledger entry {entry.id}: order {entry.order_id} "
                f"{entry.commission_source} → {entry.affiliate_code} "
                f"₹{entry.affiliate_commission} @ {entry.affiliate_rate}%"
            )
            result.created.append(entry)
        return result


class DeliveryConfirmationService:
    """Flips ledger rows of a delivered order from PENDING to CREDITED."""

    @staticmethod
    @transaction.atomic
    def confirm_delivery(order_id) -> int:
        """
        Credit every pending row of the order once.

        Returns:
            int: number of rows flipped (0 on re-delivery)
        """
        flipped = CommissionLedgerEntry.objects.filter(
            order_id=order_id,
            status=LedgerStatus.PENDING
        ).update(status=LedgerStatus.CREDITED, credited_at=timezone.now())

        if flipped:
            logger.info(f"Order {order_id} delivered: {flipped} ledger entries credited")
        else:
            logger.debug(f"Order {order_id} delivery confirmation had nothing to credit")
        return flipped


class CommissionProcessingService:
    """Order webhook entry point: attribute, write, record activity."""

    @staticmethod
    def _record_activity(created, drafts):
        from activity.events import CommissionRecorded
        from activity.services import ActivityService

        drafts_by_source = {d.commission_source: d for d in drafts}
        for entry in created:
            draft = drafts_by_source[entry.commission_source]
            ActivityService.record(CommissionRecorded(
                amount=entry.affiliate_commission,
                actor_role=draft.actor_role,
                actor_code=entry.affiliate_code,
                actor_name=draft.actor_name,
                order_id=entry.order_id,
                commission_source=entry.commission_source,
                ledger_entry_id=entry.id,
            ))

    @classmethod
    def process_order(cls, event: OrderEvent) -> ProcessingResult:
        """
        Attribute one order line and persist its ledger rows.

        An unknown referral code never blocks the order: the result reports
        attributed=False and nothing is written.
        """
        try:
            resolved = HierarchyResolver.resolve(event.referral_code)
        except ActorNotFound:
            logger.warning(
                f"Order {event.order_id}: referral code '{event.referral_code}' "
                f"not resolvable, attribution skipped"
            )
            return ProcessingResult(
                order_id=event.order_id,
                referral_code=event.referral_code,
                attributed=False,
            )

        pool = CommissionPoolService.pool_for(event)
        drafts = AttributionEngine.attribute(event, resolved=resolved, pool=pool)

        with transaction.atomic():
            write = LedgerWriter.write(drafts)
            cls._record_activity(write.created, drafts)
            credited = DeliveryConfirmationService.confirm_delivery(event.order_id) if event.delivered else 0

        logger.info(
            f"Order {event.order_id} ({resolved.role} {resolved.referral_code}): "
            f"pool ₹{pool.amount} via {pool.source}, "
            f"{write.created_count} created, {write.skipped_count} skipped"
        )
        return ProcessingResult(
            order_id=event.order_id,
            referral_code=resolved.referral_code,
            attributed=True,
            role=resolved.role,
            pool=pool,
            write=write,
            credited=credited,
        )
