"""
Activity Models
Append-only display feed of commission and withdrawal events.
"""
from django.db import models
from django.conf import settings


class ActivityType(models.TextChoices):
    COMMISSION_RECORDED = 'commission_recorded', 'Commission Recorded'
    WITHDRAWAL_REQUESTED = 'withdrawal_requested', 'Withdrawal Requested'
    WITHDRAWAL_APPROVED = 'withdrawal_approved', 'Withdrawal Approved'
    WITHDRAWAL_APPROVAL_FAILED = 'withdrawal_approval_failed', 'Withdrawal Approval Failed'
    WITHDRAWAL_REJECTED = 'withdrawal_rejected', 'Withdrawal Rejected'
    WITHDRAWAL_CANCELLED = 'withdrawal_cancelled', 'Withdrawal Cancelled'
    WITHDRAWAL_PAID = 'withdrawal_paid', 'Withdrawal Paid'


class ActivityLog(models.Model):
    """
    One rendered activity line.

    The subject actor is the one the activity is about (the credited seller,
    the withdrawal requester). branch/city/state locate it in the hierarchy
    so supervisors only see activity beneath them.
    """
    activity_type = models.CharField(max_length=30, choices=ActivityType.choices, db_index=True)
    description = models.CharField(max_length=500)
    amount = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)

    actor_role = models.CharField(max_length=20, blank=True)
    actor_code = models.CharField(max_length=50, blank=True, db_index=True)
    actor_name = models.CharField(max_length=200, blank=True)

    branch = models.ForeignKey(
        'hierarchy.Branch', on_delete=models.SET_NULL, null=True, blank=True, related_name='+'
    )
    city = models.ForeignKey(
        'hierarchy.City', on_delete=models.SET_NULL, null=True, blank=True, related_name='+'
    )
    state = models.ForeignKey(
        'hierarchy.State', on_delete=models.SET_NULL, null=True, blank=True, related_name='+'
    )

    target_type = models.CharField(max_length=50, blank=True)
    target_id = models.CharField(max_length=100, blank=True)
    metadata = models.JSONField(default=dict, blank=True)

    performed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='activity_logs'
    )
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        db_table = 'activity_log'
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['state', 'created_at'], name='idx_activity_state_created'),
            models.Index(fields=['city', 'created_at'], name='idx_activity_city_created'),
            models.Index(fields=['branch', 'created_at'], name='idx_activity_branch_created'),
            models.Index(fields=['target_type', 'target_id'], name='idx_activity_target'),
        ]

    def __str__(self):
        return f"{self.activity_type}: {self.description}"
