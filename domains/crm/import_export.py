"""CSV import and export for contacts.

Import accepts the header spellings common spreadsheet and CRM exports use
(``First Name``, ``first_name``, ``Email Address`` ...). Export writes a fixed
header with every data cell quoted.
"""

import csv
import io
import logging
from typing import Any
from uuid import UUID

from pydantic import ValidationError as SchemaValidationError
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.errors import DomainError
from core.integrations import Integrations
from domains.crm.models.db_models import Company
from domains.crm.models.schemas import ContactCreate
from domains.crm.repository import ContactRepository
from domains.crm.service import create_contact
from patterns.domain_config import get_business_config

logger = logging.getLogger(__name__)

FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "first_name": ("First Name", "FirstName", "first_name", "First"),
    "last_name": ("Last Name", "LastName", "last_name", "Last"),
    "email": ("Email", "email", "Email Address", "email_address"),
    "phone": ("Phone", "phone", "Phone Number", "phone_number", "Mobile"),
    "title": ("Title", "title", "Job Title", "job_title"),
    "company": ("Company", "company", "Company Name", "company_name"),
    "source": ("Source", "source", "Lead Source", "lead_source"),
    "notes": ("Notes", "notes", "Description", "description"),
}

EXPORT_HEADER = ("First Name", "Last Name", "Email", "Phone", "Title", "Company", "Status", "Source", "Notes")

DEFAULT_IMPORT_SOURCE = "Import"


def parse_csv(text: str) -> list[dict[str, str]]:
    """Rows as header -> value dicts; headers and values are whitespace-stripped."""
    reader = csv.reader(io.StringIO(text.strip()))
    rows = [row for row in reader if any(cell.strip() for cell in row)]
    if len(rows) < 2:
        return []
    headers = [h.strip() for h in rows[0]]
    return [
        {header: (row[i].strip() if i < len(row) else "") for i, header in enumerate(headers)}
        for row in rows[1:]
    ]


def map_row(row: dict[str, str]) -> dict[str, Any]:
    """Map one CSV row onto contact fields using FIELD_ALIASES."""

    def pick(field: str) -> str | None:
        for alias in FIELD_ALIASES[field]:
            if row.get(alias):
                return row[alias]
        return None

    return {
        "first_name": pick("first_name") or get_business_config().crm.unknown_first_name,
        "last_name": pick("last_name"),
        "email": pick("email"),
        "phone": pick("phone"),
        "title": pick("title"),
        "company": pick("company"),
        "source": pick("source") or DEFAULT_IMPORT_SOURCE,
        "notes": pick("notes"),
    }


async def _company_id(session: AsyncSession, organization_id: UUID, name: str | None) -> UUID | None:
    if not name:
        return None
    stmt = select(Company).where(
        Company.organization_id == organization_id, func.lower(Company.name) == name.lower()
    )
    company = (await session.execute(stmt)).scalars().first()
    if company is None:
        company = Company(organization_id=organization_id, name=name)
        session.add(company)
        await session.flush()
    return company.id


async def import_contacts_csv(
    session: AsyncSession,
    organization_id: UUID,
    text: str,
    integrations: Integrations,
    owner_id: UUID | None = None,
) -> dict:
    """Import contacts row by row. Returns ``{success, failed, errors}``.

    Each row goes through the normal create path, so plan limits, duplicate
    emails and CONTACT_CREATED dispatch apply per row. Row numbers count the
    header as row 1.
    """
    unknown = get_business_config().crm.unknown_first_name
    success, failed, errors = 0, 0, []

    for index, row in enumerate(parse_csv(text)):
        row_number = index + 2
        mapped = map_row(row)
        if not mapped["email"] and mapped["first_name"] == unknown:
            failed += 1
            errors.append(f"Row {row_number}: Missing email and name")
            continue

        try:
            data = ContactCreate(
                first_name=mapped["first_name"],
                last_name=mapped["last_name"],
                email=mapped["email"],
                phone=mapped["phone"],
                title=mapped["title"],
                source=mapped["source"],
                notes=mapped["notes"],
                company_id=await _company_id(session, organization_id, mapped["company"]),
            )
            await create_contact(session, organization_id, data, integrations, owner_id=owner_id)
            success += 1
        except SchemaValidationError as exc:
            failed += 1
            field = ".".join(str(part) for part in exc.errors()[0]["loc"])
            errors.append(f"Row {row_number}: Invalid {field}")
        except DomainError as exc:
            failed += 1
            errors.append(f"Row {row_number}: {exc.message}")

    logger.info("Contact import for %s: %d imported, %d failed", organization_id, success, failed)
    return {"success": success, "failed": failed, "errors": errors}


async def export_contacts_csv(
    session: AsyncSession,
    organization_id: UUID,
    status: str | None = None,
    query: str | None = None,
) -> str:
    rows = await ContactRepository(session).all_for_export(organization_id, status=status, query=query)

    buffer = io.StringIO()
    buffer.write(",".join(EXPORT_HEADER) + "\n")
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    for contact, company_name in rows:
        writer.writerow([
            contact.first_name or "",
            contact.last_name or "",
            contact.email or "",
            contact.phone or "",
            contact.title or "",
            company_name or "",
            contact.status or "",
            contact.source or "",
            contact.notes or "",
        ])
    return buffer.getvalue()
