"""
Typed activity events.

Each event knows its activity type, verb and preposition; rendering lives
in ActivityFormatter.
"""
from dataclasses import dataclass, asdict
from decimal import Decimal
from typing import Optional

from .models import ActivityType


@dataclass
class ActivityEvent:
    amount: Decimal
    actor_role: str
    actor_code: str
    actor_name: str

    activity_type = None
    verb = None
    preposition = 'for'
    target_type = ''

    @property
    def target_id(self):
        return ''

    def metadata(self) -> dict:
        """JSON-safe field values, empty ones dropped."""
        return {
            key: str(value) if isinstance(value, Decimal) else value
            for key, value in asdict(self).items()
            if value not in (None, '')
        }


@dataclass
class CommissionRecorded(ActivityEvent):
    order_id: str = ''
    commission_source: str = ''
    ledger_entry_id: Optional[int] = None

    activity_type = ActivityType.COMMISSION_RECORDED
    verb = 'Recorded'
    target_type = 'ledger_entry'

    @property
    def target_id(self):
        return str(self.ledger_entry_id or '')


@dataclass
class WithdrawalEvent(ActivityEvent):
    withdrawal_id: Optional[int] = None
    notes: str = ''

    target_type = 'withdrawal'

    @property
    def target_id(self):
        return str(self.withdrawal_id or '')


@dataclass
class WithdrawalRequested(WithdrawalEvent):
    activity_type = ActivityType.WITHDRAWAL_REQUESTED
    verb = 'Requested'


@dataclass
class WithdrawalApproved(WithdrawalEvent):
    balance_before: Optional[Decimal] = None

    activity_type = ActivityType.WITHDRAWAL_APPROVED
    verb = 'Approved'


@dataclass
class WithdrawalApprovalFailed(WithdrawalEvent):
    """Approval refused because the recomputed balance no longer covers the request."""
    available: Optional[Decimal] = None

    activity_type = ActivityType.WITHDRAWAL_APPROVAL_FAILED
    verb = 'Could not approve'


@dataclass
class WithdrawalRejected(WithdrawalEvent):
    activity_type = ActivityType.WITHDRAWAL_REJECTED
    verb = 'Rejected'


@dataclass
class WithdrawalCancelled(WithdrawalEvent):
    activity_type = ActivityType.WITHDRAWAL_CANCELLED
    verb = 'Cancelled'


@dataclass
class WithdrawalPaid(WithdrawalEvent):
    transaction_id: str = ''

    activity_type = ActivityType.WITHDRAWAL_PAID
    verb = 'Paid'
    preposition = 'to'
