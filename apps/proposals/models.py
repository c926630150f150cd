import uuid
from django.db import models


class ProposalStatus(models.TextChoices):
    DRAFT = 'draft', 'Draft'
    SENT = 'sent', 'Sent'
    VIEWED = 'viewed', 'Viewed'
    ACCEPTED = 'accepted', 'Accepted'
    WON = 'won', 'Won'
    LOST = 'lost', 'Lost'


class PhotoCategory(models.TextChoices):
    HERO = 'hero', 'Hero'
    EXISTING = 'existing', 'Existing Conditions'
    SHOWER = 'shower', 'Shower'
    VANITY = 'vanity', 'Vanity'
    FLOORING = 'flooring', 'Flooring'
    TUB = 'tub', 'Tub'
    TOILET = 'toilet', 'Toilet'
    PLUMBING = 'plumbing', 'Plumbing'
    ELECTRICAL = 'electrical', 'Electrical'
    DAMAGE = 'damage', 'Damage'
    KITCHEN = 'kitchen', 'Kitchen'
    CABINETS = 'cabinets', 'Cabinets'
    COUNTERTOPS = 'countertops', 'Countertops'
    ROOFING = 'roofing', 'Roofing'
    SIDING = 'siding', 'Siding'
    WINDOWS = 'windows', 'Windows'
    HVAC = 'hvac', 'HVAC'
    OTHER = 'other', 'Other'


class Proposal(models.Model):
    """
    A contractor proposal: scope of work, price range and signatures.

    Single-service proposals carry their price in price_low/price_high;
    multi-service proposals additionally store per-service line_items.
    """
    owner = models.ForeignKey('identity.User', on_delete=models.CASCADE, related_name='proposals')

    client_name = models.CharField(max_length=255)
    address = models.TextField()
    trade_id = models.CharField(max_length=50)
    job_type_id = models.CharField(max_length=100)
    job_type_name = models.CharField(max_length=255)
    job_size = models.PositiveSmallIntegerField(default=2)
    scope = models.JSONField(default=list, help_text="Scope of work bullet points")
    options = models.JSONField(default=dict, blank=True)
    price_low = models.PositiveIntegerField()
    price_high = models.PositiveIntegerField()

    line_items = models.JSONField(null=True, blank=True)
    is_multi_service = models.BooleanField(default=False)
    estimated_days_low = models.PositiveIntegerField(null=True, blank=True)
    estimated_days_high = models.PositiveIntegerField(null=True, blank=True)

    status = models.CharField(
        max_length=20,
        choices=ProposalStatus.choices,
        default=ProposalStatus.DRAFT
    )
    is_unlocked = models.BooleanField(default=False)
    public_token = models.CharField(max_length=64, unique=True, null=True, blank=True)

    # Client acceptance
    accepted_at = models.DateTimeField(null=True, blank=True)
    accepted_by_name = models.CharField(max_length=255, blank=True)
    accepted_by_email = models.EmailField(blank=True)
    signature = models.TextField(blank=True)

    # Contractor countersignature
    contractor_signature = models.TextField(blank=True)
    contractor_signed_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.job_type_name} for {self.client_name} ({self.status})"


class ProposalView(models.Model):
    """One public-link view of a proposal."""
    proposal = models.ForeignKey(Proposal, on_delete=models.CASCADE, related_name='views')
    viewer_ip = models.CharField(max_length=64, blank=True)
    user_agent = models.TextField(blank=True)
    viewed_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-viewed_at']


class ProposalPhoto(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    proposal = models.ForeignKey(Proposal, on_delete=models.CASCADE, related_name='photos')

    url = models.CharField(max_length=1024)
    storage_path = models.CharField(max_length=512, blank=True)
    category = models.CharField(max_length=20, choices=PhotoCategory.choices, default=PhotoCategory.OTHER)
    caption = models.CharField(max_length=255, blank=True)
    display_order = models.PositiveIntegerField(default=0)

    file_name = models.CharField(max_length=255, blank=True)
    file_type = models.CharField(max_length=50, blank=True)
    file_size = models.PositiveIntegerField(default=0)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['display_order', 'created_at']

    def __str__(self):
        return f"{self.category} photo for proposal {self.proposal_id}"


class ProposalDraftRecord(models.Model):
    """Server-side copy of a user's in-progress proposal draft."""
    storage_key = models.CharField(max_length=128, unique=True)
    user = models.ForeignKey('identity.User', on_delete=models.CASCADE, null=True, blank=True, related_name='proposal_drafts')
    payload = models.TextField(help_text="Serialized draft envelope")
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.storage_key


class ProposalTemplate(models.Model):
    """
    Starting point for a proposal of one trade/job type.

    System templates have no creator and are shared; custom templates belong
    to the contractor who created them.
    """
    trade_id = models.CharField(max_length=50)
    trade_name = models.CharField(max_length=100)
    job_type_id = models.CharField(max_length=50)
    job_type_name = models.CharField(max_length=200)

    base_scope = models.JSONField(default=list)
    options = models.JSONField(default=list)
    base_price_low = models.PositiveIntegerField()
    base_price_high = models.PositiveIntegerField()
    estimated_days_low = models.PositiveIntegerField(null=True, blank=True)
    estimated_days_high = models.PositiveIntegerField(null=True, blank=True)
    warranty = models.TextField(blank=True)
    exclusions = models.JSONField(null=True, blank=True)

    is_default = models.BooleanField(default=True)
    is_active = models.BooleanField(default=True)
    created_by = models.ForeignKey(
        'identity.User', on_delete=models.SET_NULL, null=True, blank=True, related_name='proposal_templates'
    )
    usage_count = models.PositiveIntegerField(default=0)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [
            models.Index(fields=['trade_id', 'job_type_id']),
        ]

    def __str__(self):
        return f"{self.trade_name}: {self.job_type_name}"

    @property
    def is_custom(self) -> bool:
        return self.created_by_id is not None
