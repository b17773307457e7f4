"""
Business logic services for the referral hierarchy.

This layer handles:
- Referral code resolution (which table, which role)
- Supervisor chain lookup (branch admin → ASM → state admin)
- Subordinate code sets used by balance aggregation
- Case-insensitive geography lookups

No API views or URL routing here - pure business logic.
"""
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from .exceptions import ActorNotFound
from .models import (
    Role, State, City, Branch,
    Agent, BranchAdmin, AreaSalesManager, StateAdmin,
    ACTOR_MODELS, ACTOR_MODELS_BY_PRIORITY,
)

logger = logging.getLogger(__name__)


def normalize_code(referral_code) -> str:
    return (referral_code or '').strip()


@dataclass
class ResolvedActor:
    """An actor plus its place in the branch → city → state tree."""
    role: str
    actor: object
    branch: Optional[Branch] = None
    city: Optional[City] = None
    state: Optional[State] = None

    @property
    def referral_code(self):
        return self.actor.referral_code

    @property
    def name(self):
        return self.actor.full_name

    def context(self) -> dict:
        return {
            'branch': self.branch.name if self.branch else None,
            'city': self.city.name if self.city else None,
            'state': self.state.name if self.state else None,
        }


@dataclass
class Ancestor:
    """One supervising level above a seller."""
    level: str
    actor: object = field(repr=False)

    @property
    def referral_code(self):
        return self.actor.referral_code


class HierarchyResolver:
    """
    Resolves referral codes and walks the supervisor chain.

    Levels, bottom to top: agent → branch admin → ASM → state admin.
    Supervisor of a node = first active actor attached to it (lowest pk).
    """

    # Override levels in the order they sit above a seller
    LEVEL_BRANCH = 'branch'
    LEVEL_AREA = 'area'
    LEVEL_STATE = 'state'

    # Levels that sit above each seller role
    LEVELS_ABOVE = {
        Role.AGENT: [LEVEL_BRANCH, LEVEL_AREA, LEVEL_STATE],
        Role.BRANCH_ADMIN: [LEVEL_AREA, LEVEL_STATE],
        Role.AREA_SALES_MANAGER: [LEVEL_STATE],
        Role.STATE_ADMIN: [],
    }

    @staticmethod
    def build_context(role, actor) -> ResolvedActor:
        """Attach branch/city/state placement to an actor."""
        branch = city = state = None
        if role in (Role.AGENT, Role.BRANCH_ADMIN):
            branch = actor.branch if actor.branch_id else None
            city = branch.city if branch else None
            state = city.state if city else None
        elif role == Role.AREA_SALES_MANAGER:
            city = actor.city
            state = city.state
        elif role == Role.STATE_ADMIN:
            state = actor.state
        return ResolvedActor(role=role, actor=actor, branch=branch, city=city, state=state)

    @classmethod
    def resolve(cls, referral_code) -> ResolvedActor:
        """
        Resolve a referral code to its role and hierarchy context.

        Tables are searched state admin → ASM → branch admin → agent so a
        code duplicated across tables always resolves the same way.

        Raises:
            ActorNotFound: code matches no active actor
        """
        code = normalize_code(referral_code)
        if code:
            for role, model in ACTOR_MODELS_BY_PRIORITY:
                actor = cls._active(model).filter(referral_code__iexact=code).first()
                if actor is not None:
                    return cls.build_context(role, actor)

        logger.warning(f"Referral code not resolvable: '{code}'")
        raise ActorNotFound(code)

    @classmethod
    def get_actor(cls, role, referral_code, include_inactive=False) -> ResolvedActor:
        """
        Resolve a code within one actor table.
        include_inactive lets settlement of past earnings reach deactivated actors.
        """
        model = ACTOR_MODELS.get(role)
        if model is None:
            raise ActorNotFound(normalize_code(referral_code), role=role)

        qs = cls._active(model)
        if include_inactive:
            qs = cls._with_placement(model, model.objects.all())
        actor = qs.filter(
            referral_code__iexact=normalize_code(referral_code)
        ).first()
        if actor is None:
            raise ActorNotFound(normalize_code(referral_code), role=role)
        return cls.build_context(role, actor)

    @classmethod
    def resolve_for_user(cls, user) -> ResolvedActor:
        """Resolve the actor linked to a login account."""
        if user is not None and user.is_authenticated:
            for role, model in ACTOR_MODELS_BY_PRIORITY:
                actor = cls._active(model).filter(user=user).first()
                if actor is not None:
                    return cls.build_context(role, actor)
        raise ActorNotFound('', message="No active actor is linked to this account")

    @classmethod
    def _active(cls, model):
        return cls._with_placement(model, model.objects.filter(is_active=True))

    @staticmethod
    def _with_placement(model, qs):
        if model in (Agent, BranchAdmin):
            return qs.select_related('branch__city__state')
        if model is AreaSalesManager:
            return qs.select_related('city__state')
        return qs.select_related('state')

    # -------------------------------------------------------------------------
    # Supervisors
    # -------------------------------------------------------------------------

    @staticmethod
    def branch_admin_for(branch) -> Optional[BranchAdmin]:
        if branch is None:
            return None
        return BranchAdmin.objects.filter(branch=branch, is_active=True).order_by('pk').first()

    @staticmethod
    def area_manager_for(city) -> Optional[AreaSalesManager]:
        if city is None:
            return None
        return AreaSalesManager.objects.filter(city=city, is_active=True).order_by('pk').first()

    @staticmethod
    def state_admin_for(state) -> Optional[StateAdmin]:
        if state is None:
            return None
        return StateAdmin.objects.filter(state=state, is_active=True).order_by('pk').first()

    @classmethod
    def ancestors(cls, resolved: ResolvedActor) -> List[Ancestor]:
        """
        Supervisors above the seller, bottom to top.
        Levels without an active supervisor are skipped.
        """
        finders = {
            cls.LEVEL_BRANCH: lambda: cls.branch_admin_for(resolved.branch),
            cls.LEVEL_AREA: lambda: cls.area_manager_for(resolved.city),
            cls.LEVEL_STATE: lambda: cls.state_admin_for(resolved.state),
        }

        chain = []
        for level in cls.LEVELS_ABOVE[resolved.role]:
            supervisor = finders[level]()
            if supervisor is None:
                logger.debug(f"No {level} supervisor above {resolved.referral_code}")
                continue
            # A supervisor never overrides its own sale
            if supervisor.referral_code.lower() == resolved.referral_code.lower():
                continue
            chain.append(Ancestor(level=level, actor=supervisor))
        return chain

    # -------------------------------------------------------------------------
    # Subordinates (used by override aggregation)
    # -------------------------------------------------------------------------

    @staticmethod
    def subordinate_codes(resolved: ResolvedActor) -> List[Tuple[str, list]]:
        """
        Referral codes of sellers beneath a supervising actor, grouped by
        seller role. Only sellers whose sales the actor overrides are listed.

        Returns:
            list: [(seller_role, [codes...]), ...]
        """
        role = resolved.role
        if role == Role.BRANCH_ADMIN:
            agents = Agent.objects.filter(branch=resolved.branch)
            return [(Role.AGENT, list(agents.values_list('referral_code', flat=True)))]

        if role == Role.AREA_SALES_MANAGER:
            agents = Agent.objects.filter(branch__city=resolved.city)
            admins = BranchAdmin.objects.filter(branch__city=resolved.city)
            return [
                (Role.AGENT, list(agents.values_list('referral_code', flat=True))),
                (Role.BRANCH_ADMIN, list(admins.values_list('referral_code', flat=True))),
            ]

        if role == Role.STATE_ADMIN:
            agents = Agent.objects.filter(branch__city__state=resolved.state)
            admins = BranchAdmin.objects.filter(branch__city__state=resolved.state)
            asms = AreaSalesManager.objects.filter(city__state=resolved.state)
            return [
                (Role.AGENT, list(agents.values_list('referral_code', flat=True))),
                (Role.BRANCH_ADMIN, list(admins.values_list('referral_code', flat=True))),
                (Role.AREA_SALES_MANAGER, list(asms.values_list('referral_code', flat=True))),
            ]

        return []


class GeographyService:
    """Case-insensitive lookups and idempotent creation of geography rows."""

    @staticmethod
    def find_state(name) -> Optional[State]:
        return State.objects.filter(name__iexact=(name or '').strip()).first()

    @staticmethod
    def find_city(name, state_name) -> Optional[City]:
        return City.objects.filter(
            name__iexact=(name or '').strip(),
            state__name__iexact=(state_name or '').strip()
        ).select_related('state').first()

    @staticmethod
    def find_branch(name, city_name=None, state_name=None) -> Optional[Branch]:
        qs = Branch.objects.filter(name__iexact=(name or '').strip())
        if city_name:
            qs = qs.filter(city__name__iexact=city_name.strip())
        if state_name:
            qs = qs.filter(city__state__name__iexact=state_name.strip())
        return qs.select_related('city__state').order_by('pk').first()

    @classmethod
    def get_or_create_branch(cls, branch_name, city_name, state_name) -> Branch:
        """Create missing state/city/branch rows, matching existing names case-insensitively."""
        state = cls.find_state(state_name) or State.objects.create(name=state_name)
        city = cls.find_city(city_name, state.name) or City.objects.create(name=city_name, state=state)
        branch = Branch.objects.filter(name__iexact=branch_name.strip(), city=city).first()
        if branch is None:
            branch = Branch.objects.create(name=branch_name, city=city)
        return branch
