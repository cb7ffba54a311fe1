"""Import every model module so ``Base.metadata`` knows all tables.

Import ``Base`` from here (not from core.models.base) when the full schema is
needed, e.g. ``create_all`` or Alembic autogenerate.
"""

from core.models.base import Base
from domains.accounts.models.db_models import Invitation, Membership, Notification, Organization, User
from domains.automations.models.db_models import Automation
from domains.bookings.models.db_models import Availability, Booking, Service, ServiceProvider
from domains.campaigns.models.db_models import Campaign, CampaignRecipient
from domains.crm.models.db_models import Activity, Company, Contact, ContactTag, Deal, Pipeline, PipelineStage, Tag
from domains.documents.models.db_models import Document, DocumentTemplate
from domains.drive.models.db_models import File, Folder
from domains.funnels.models.db_models import Funnel
from domains.payments.models.db_models import Invoice, Product
from domains.social.models.db_models import SocialPost
from domains.subscriptions.models.db_models import Subscription

__all__ = [
    "Base",
    "Activity",
    "Automation",
    "Availability",
    "Booking",
    "Campaign",
    "CampaignRecipient",
    "Company",
    "Contact",
    "ContactTag",
    "Deal",
    "Document",
    "DocumentTemplate",
    "File",
    "Folder",
    "Funnel",
    "Invitation",
    "Invoice",
    "Membership",
    "Notification",
    "Organization",
    "Pipeline",
    "PipelineStage",
    "Product",
    "Service",
    "ServiceProvider",
    "SocialPost",
    "Subscription",
    "Tag",
    "User",
]
