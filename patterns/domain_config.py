"""Dataclass-based business configuration.

Plan limits, seed data created with each organization, and the per-module
defaults live here as frozen dataclasses. Services read them through
``get_business_config()`` instead of hard-coding numbers.

Usage::

    config = get_business_config()
    limits = config.plans.for_plan("STARTER")
    if limits.contacts != UNLIMITED and used >= limits.contacts:
        ...
"""

import os
from dataclasses import dataclass, field
from functools import lru_cache

UNLIMITED = -1


# ---------------------------------------------------------------------------
# Subscription plans
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PlanLimits:
    """Resource ceilings for one plan. -1 means unlimited."""

    contacts: int
    deals: int
    documents: int
    automations: int
    ai_credits: int
    storage: int  # MB
    users: int

    def get(self, resource: str) -> int:
        return getattr(self, resource)


@dataclass(frozen=True)
class PlanConfig:
    free: PlanLimits = PlanLimits(
        contacts=50, deals=10, documents=10, automations=2,
        ai_credits=10, storage=100, users=1,
    )
    starter: PlanLimits = PlanLimits(
        contacts=500, deals=100, documents=200, automations=10,
        ai_credits=50, storage=1000, users=1,
    )
    pro: PlanLimits = PlanLimits(
        contacts=5000, deals=1000, documents=2000, automations=100,
        ai_credits=UNLIMITED, storage=10000, users=5,
    )
    enterprise: PlanLimits = PlanLimits(
        contacts=UNLIMITED, deals=UNLIMITED, documents=UNLIMITED, automations=UNLIMITED,
        ai_credits=UNLIMITED, storage=UNLIMITED, users=UNLIMITED,
    )

    def for_plan(self, plan: str) -> PlanLimits:
        """Limits for a plan name; unknown plans get FREE limits."""
        return getattr(self, str(plan).lower(), self.free)


# ---------------------------------------------------------------------------
# CRM seed data
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class StageSeed:
    name: str
    color: str
    probability: int


@dataclass(frozen=True)
class CRMConfig:
    default_tag_color: str = "#6B7280"
    default_pipeline_name: str = "Sales Pipeline"
    default_stages: tuple[StageSeed, ...] = (
        StageSeed("Discovery", "#6B7280", 10),
        StageSeed("Qualified", "#3B82F6", 25),
        StageSeed("Proposal", "#F59E0B", 50),
        StageSeed("Negotiation", "#8B5CF6", 75),
        StageSeed("Won", "#10B981", 100),
    )
    default_tags: tuple[tuple[str, str], ...] = (
        ("Hot Lead", "#EF4444"),
        ("Warm Lead", "#F59E0B"),
        ("Cold Lead", "#6B7280"),
        ("Enterprise", "#8B5CF6"),
        ("SMB", "#3B82F6"),
        ("Startup", "#10B981"),
        ("Referral", "#EC4899"),
        ("Inbound", "#06B6D4"),
        ("VIP", "#F97316"),
    )
    public_contact_source: str = "Funnel"
    unknown_first_name: str = "Unknown"


# ---------------------------------------------------------------------------
# Bookings
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class BookingConfig:
    slot_interval_minutes: int = 30
    default_days: tuple[int, ...] = (0, 1, 2, 3, 4)  # Monday..Friday
    default_start: str = "09:00"
    default_end: str = "17:00"
    default_max_advance_days: int = 60
    contact_source: str = "booking"


# ---------------------------------------------------------------------------
# Automations, documents, drive, social
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class AutomationConfig:
    default_email_subject: str = "Notification from UnifiedBizOS"
    default_email_body: str = "You have a new notification."
    default_tag_name: str = "Funnel Lead"
    default_tag_color: str = "#3B82F6"
    webhook_timeout_seconds: float = 10.0
    idempotency_ttl_seconds: int = 3600


@dataclass(frozen=True)
class SocialConfig:
    char_limits: dict[str, int] = field(default_factory=lambda: {
        "TWITTER": 280,
        "LINKEDIN": 3000,
        "INSTAGRAM": 2200,
        "FACEBOOK": 63206,
    })


@dataclass(frozen=True)
class DriveConfig:
    default_folder_color: str = "#3B82F6"


@dataclass(frozen=True)
class FunnelTemplate:
    name: str
    description: str
    steps: tuple[tuple[str, str], ...]  # (step name, step type)


@dataclass(frozen=True)
class FunnelConfig:
    default_color: str = "#3B82F6"
    templates: dict[str, FunnelTemplate] = field(default_factory=lambda: {
        "LEAD_MAGNET": FunnelTemplate(
            "Lead Magnet", "Capture leads with a free resource download",
            (("Landing Page", "LANDING_PAGE"), ("Opt-in Form", "OPT_IN_FORM"), ("Thank You", "THANK_YOU")),
        ),
        "CONSULTATION": FunnelTemplate(
            "Consultation Booking", "Book discovery calls or consultations",
            (("Landing Page", "LANDING_PAGE"), ("Calendar Booking", "CALENDAR"), ("Confirmation", "THANK_YOU")),
        ),
        "FREE_TRIAL": FunnelTemplate(
            "Free Trial", "Offer a free trial to convert prospects",
            (("Landing Page", "LANDING_PAGE"), ("Sign Up Form", "OPT_IN_FORM"), ("Onboarding", "THANK_YOU")),
        ),
        "DIRECT_PURCHASE": FunnelTemplate(
            "Direct Purchase", "Sell products or services directly",
            (("Sales Page", "SALES_PAGE"), ("Checkout", "CHECKOUT"), ("Thank You", "THANK_YOU")),
        ),
        "WEBINAR": FunnelTemplate(
            "Webinar Registration", "Register attendees for your webinar",
            (("Registration Page", "LANDING_PAGE"), ("Sign Up Form", "OPT_IN_FORM"), ("Confirmation", "THANK_YOU")),
        ),
        "WAITLIST": FunnelTemplate(
            "Waitlist", "Build anticipation with a waitlist",
            (("Coming Soon Page", "LANDING_PAGE"), ("Join Waitlist", "OPT_IN_FORM"), ("Confirmation", "THANK_YOU")),
        ),
    })


# ---------------------------------------------------------------------------
# Top-level business config
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class BusinessConfig:
    """Complete business configuration."""

    plans: PlanConfig = field(default_factory=PlanConfig)
    crm: CRMConfig = field(default_factory=CRMConfig)
    bookings: BookingConfig = field(default_factory=BookingConfig)
    automations: AutomationConfig = field(default_factory=AutomationConfig)
    social: SocialConfig = field(default_factory=SocialConfig)
    drive: DriveConfig = field(default_factory=DriveConfig)
    funnels: FunnelConfig = field(default_factory=FunnelConfig)

    invoice_prefix: str = "INV-"

    @classmethod
    def default(cls) -> "BusinessConfig":
        return cls()

    @classmethod
    def from_env(cls, prefix: str = "BIZOS_") -> "BusinessConfig":
        """Create config from environment variables.

        Example: BIZOS_INVOICE_PREFIX=BILL-
        """
        overrides = {}
        invoice_prefix = os.getenv(f"{prefix}INVOICE_PREFIX")
        if invoice_prefix:
            overrides["invoice_prefix"] = invoice_prefix

        return cls(**overrides)


@lru_cache
def get_business_config() -> BusinessConfig:
    return BusinessConfig.from_env()
