import uuid
from django.db import models
from django.contrib.auth.models import AbstractUser


class UserRole(models.TextChoices):
    USER = 'user', 'User'
    ADMIN = 'admin', 'Platform Admin'


class SubscriptionPlan(models.TextChoices):
    FREE = 'free', 'Free'
    STARTER = 'starter', 'Starter'
    PRO = 'pro', 'Pro'
    CREW = 'crew', 'Crew'


class User(AbstractUser):
    """
    Contractor account.

    Billing state that the dashboard reads often (plan, credits, trial) is
    denormalized here; the Subscription table in billing is authoritative
    for subscription status.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    role = models.CharField(
        max_length=20,
        choices=UserRole.choices,
        default=UserRole.USER
    )
    # Named feature flags, e.g. ["CREW_ACCESS", "SEARCH_CONSOLE"]
    entitlements = models.JSONField(default=list, blank=True)

    subscription_plan = models.CharField(
        max_length=20,
        choices=SubscriptionPlan.choices,
        default=SubscriptionPlan.FREE
    )
    proposal_credits = models.PositiveIntegerField(default=0)
    credits_expire_at = models.DateTimeField(null=True, blank=True)
    trial_ends_at = models.DateTimeField(null=True, blank=True)

    # Company profile shown on proposals
    company_name = models.CharField(max_length=255, blank=True)
    company_address = models.TextField(blank=True)
    company_phone = models.CharField(max_length=30, blank=True)
    company_logo = models.URLField(blank=True)
    license_number = models.CharField(max_length=100, blank=True)
    phone = models.CharField(max_length=30, blank=True)

    email_notifications_enabled = models.BooleanField(default=True)

    class Meta:
        ordering = ['username']

    def __str__(self):
        return self.email or self.username

    @property
    def display_name(self) -> str:
        full_name = f"{self.first_name} {self.last_name}".strip()
        return full_name or self.email or self.username
