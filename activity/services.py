"""
Activity Services
Description rendering, persistence and hierarchy-scoped feeds.
"""
import logging
from decimal import Decimal

from hierarchy.exceptions import ActorNotFound
from hierarchy.models import Role
from hierarchy.services import HierarchyResolver, ResolvedActor

from .events import ActivityEvent
from .models import ActivityLog

logger = logging.getLogger(__name__)


class ActivityFormatter:
    """Renders events as '<verb> ₹<amount> <for|to> <actor name>'."""

    @staticmethod
    def format_amount(amount) -> str:
        return f"₹{Decimal(str(amount)).quantize(Decimal('0.01'))}"

    @classmethod
    def describe(cls, event: ActivityEvent) -> str:
        return f"{event.verb} {cls.format_amount(event.amount)} {event.preposition} {event.actor_name}"

    @staticmethod
    def location_prefix(log: ActivityLog, viewer_role=None) -> str:
        """
        Where the activity happened, from the viewer's vantage point.
        A branch admin needs no prefix; higher levels see the branches and
        cities below them; staff see the full path.
        """
        branch = log.branch.name if log.branch_id else None
        city = log.city.name if log.city_id else None
        state = log.state.name if log.state_id else None

        if viewer_role in (Role.BRANCH_ADMIN, Role.AGENT):
            parts = []
        elif viewer_role == Role.AREA_SALES_MANAGER:
            parts = [f"{branch} branch"] if branch else []
        elif viewer_role == Role.STATE_ADMIN:
            parts = [p for p in (city and f"{city} area", branch and f"{branch} branch") if p]
        else:
            parts = [
                p for p in (
                    state and f"{state} state",
                    city and f"{city} area",
                    branch and f"{branch} branch",
                ) if p
            ]
        return f"In {', '.join(parts)}: " if parts else ''


class ActivityService:
    """Persists activity events and reads them back per viewer."""

    @staticmethod
    def _placement(event: ActivityEvent):
        try:
            resolved = HierarchyResolver.get_actor(event.actor_role, event.actor_code)
        except ActorNotFound:
            # Deactivated actors keep their history, without location
            return None, None, None
        return resolved.branch, resolved.city, resolved.state

    @classmethod
    def record(cls, event: ActivityEvent, resolved: ResolvedActor = None, performed_by=None) -> ActivityLog:
        if resolved is not None:
            branch, city, state = resolved.branch, resolved.city, resolved.state
        else:
            branch, city, state = cls._placement(event)

        log = ActivityLog.objects.create(
            activity_type=event.activity_type,
            description=ActivityFormatter.describe(event),
            amount=event.amount,
            actor_role=event.actor_role,
            actor_code=event.actor_code,
            actor_name=event.actor_name,
            branch=branch,
            city=city,
            state=state,
            target_type=event.target_type,
            target_id=event.target_id,
            metadata=event.metadata(),
            performed_by=performed_by if getattr(performed_by, 'is_authenticated', False) else None,
        )
        logger.info(f"Activity {log.id}: {log.description}")
        return log

    @staticmethod
    def feed_for(resolved: ResolvedActor = None, activity_type=None):
        """
        Activity visible to a viewer.

        None means staff (everything). Supervisors see their branch, city
        or state; an agent sees only activity about itself.
        """
        qs = ActivityLog.objects.select_related('branch', 'city', 'state')
        if activity_type:
            qs = qs.filter(activity_type=activity_type)

        if resolved is None:
            return qs
        if resolved.role == Role.STATE_ADMIN:
            return qs.filter(state=resolved.state)
        if resolved.role == Role.AREA_SALES_MANAGER:
            return qs.filter(city=resolved.city)
        if resolved.role == Role.BRANCH_ADMIN:
            return qs.filter(branch=resolved.branch)
        return qs.filter(actor_role=resolved.role, actor_code__iexact=resolved.referral_code)
