from django.db import models
from django.conf import settings
from django.core.exceptions import ValidationError
from django.db.models.functions import Lower


class Role(models.TextChoices):
    """Role tag of a referral code holder."""
    AGENT = 'agent', 'Agent'
    BRANCH_ADMIN = 'branch_admin', 'Branch Admin'
    AREA_SALES_MANAGER = 'asm', 'Area Sales Manager'
    STATE_ADMIN = 'state_admin', 'State Admin'


# =============================================================================
# Geography (explicit parent references)
# =============================================================================

class State(models.Model):
    name = models.CharField(max_length=100)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'hierarchy_state'
        ordering = ['name']
        constraints = [
            models.UniqueConstraint(Lower('name'), name='unique_state_name_ci'),
        ]

    def __str__(self):
        return self.name

    def save(self, *args, **kwargs):
        self.name = self.name.strip()
        super().save(*args, **kwargs)


class City(models.Model):
    """A city inside a state. ASMs are placed on cities."""
    name = models.CharField(max_length=100)
    state = models.ForeignKey(State, on_delete=models.PROTECT, related_name='cities')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'hierarchy_city'
        ordering = ['name']
        verbose_name_plural = 'Cities'
        constraints = [
            models.UniqueConstraint(Lower('name'), 'state', name='unique_city_name_per_state_ci'),
        ]

    def __str__(self):
        return f"{self.name}, {self.state.name}"

    def save(self, *args, **kwargs):
        self.name = self.name.strip()
        super().save(*args, **kwargs)


class Branch(models.Model):
    """A store branch inside a city. Agents and branch admins belong to branches."""
    name = models.CharField(max_length=150)
    city = models.ForeignKey(City, on_delete=models.PROTECT, related_name='branches')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'hierarchy_branch'
        ordering = ['name']
        verbose_name_plural = 'Branches'
        constraints = [
            models.UniqueConstraint(Lower('name'), 'city', name='unique_branch_name_per_city_ci'),
        ]

    def __str__(self):
        return f"{self.name} ({self.city.name})"

    def save(self, *args, **kwargs):
        self.name = self.name.strip()
        super().save(*args, **kwargs)

    @property
    def state(self):
        return self.city.state


# =============================================================================
# Actors
# =============================================================================

class Actor(models.Model):
    """
    Common fields of every referral code holder.

    Business Rules:
    - referral_code is unique within its table and matched case-insensitively
    - Inactive actors are ignored by resolution and earn nothing new
    - user link is optional; it lets an authenticated user act as the actor
    """
    ROLE = None

    referral_code = models.CharField(
        max_length=50,
        unique=True,
        help_text="Code customers use at checkout"
    )
    first_name = models.CharField(max_length=100)
    last_name = models.CharField(max_length=100, blank=True)
    email = models.EmailField(blank=True)
    phone = models.CharField(max_length=20, blank=True)
    is_active = models.BooleanField(default=True, db_index=True)

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='%(class)s_profile',
        help_text="Login account acting as this actor"
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True
        ordering = ['first_name', 'last_name']
        constraints = [
            models.UniqueConstraint(Lower('referral_code'), name='unique_%(class)s_referral_code_ci'),
        ]

    def __str__(self):
        return f"{self.full_name} ({self.referral_code})"

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def role(self):
        return self.ROLE

    def clean(self):
        self.referral_code = (self.referral_code or '').strip()
        if not self.referral_code:
            raise ValidationError("Referral code cannot be blank.")

    def save(self, *args, **kwargs):
        self.full_clean()
        super().save(*args, **kwargs)


class StateAdmin(Actor):
    ROLE = Role.STATE_ADMIN

    state = models.ForeignKey(State, on_delete=models.PROTECT, related_name='state_admins')

    class Meta(Actor.Meta):
        db_table = 'hierarchy_state_admin'


class AreaSalesManager(Actor):
    ROLE = Role.AREA_SALES_MANAGER

    city = models.ForeignKey(City, on_delete=models.PROTECT, related_name='area_sales_managers')

    class Meta(Actor.Meta):
        db_table = 'hierarchy_area_sales_manager'
        verbose_name = 'Area Sales Manager'

    @property
    def state(self):
        return self.city.state


class BranchAdmin(Actor):
    ROLE = Role.BRANCH_ADMIN

    branch = models.ForeignKey(Branch, on_delete=models.PROTECT, related_name='branch_admins')

    class Meta(Actor.Meta):
        db_table = 'hierarchy_branch_admin'

    @property
    def city(self):
        return self.branch.city

    @property
    def state(self):
        return self.branch.city.state


class Agent(Actor):
    """
    Lowest-tier seller. An agent without a branch still earns on its own
    sales; no overrides are produced above it.
    """
    ROLE = Role.AGENT

    branch = models.ForeignKey(
        Branch,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='agents'
    )

    class Meta(Actor.Meta):
        db_table = 'hierarchy_agent'

    @property
    def city(self):
        return self.branch.city if self.branch_id else None

    @property
    def state(self):
        return self.branch.city.state if self.branch_id else None


# Lookup order when the same code exists in more than one table.
ACTOR_MODELS_BY_PRIORITY = [
    (Role.STATE_ADMIN, StateAdmin),
    (Role.AREA_SALES_MANAGER, AreaSalesManager),
    (Role.BRANCH_ADMIN, BranchAdmin),
    (Role.AGENT, Agent),
]

ACTOR_MODELS = dict(ACTOR_MODELS_BY_PRIORITY)
