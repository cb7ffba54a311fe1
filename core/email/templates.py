"""Transactional email templates, registered with the template engine on import."""

from datetime import datetime
from html import escape
from typing import Any

from core.engine.template_engine import (
    RenderedMessage,
    fmt_date,
    fmt_money,
    register_template,
)
from core.timeutils import utcnow


def _layout(title: str, body: str) -> str:
    year = utcnow().year
    return (
        "<!DOCTYPE html><html><head><meta charset=\"utf-8\">"
        "<title>UnifiedBizOS</title></head>"
        "<body style=\"font-family: Arial, sans-serif; background: #f5f5f5; color: #333;\">"
        "<div style=\"max-width: 600px; margin: 0 auto; padding: 40px 20px;\">"
        "<div style=\"background: white; border-radius: 12px;\">"
        f"<div style=\"background: #3b82f6; padding: 30px; text-align: center;\">"
        f"<h1 style=\"color: white; margin: 0;\">{escape(title)}</h1></div>"
        f"<div style=\"padding: 30px;\">{body}</div>"
        "</div>"
        f"<p style=\"text-align: center; color: #666; font-size: 12px;\">&copy; {year} UnifiedBizOS</p>"
        "</div></body></html>"
    )


def _rows(rows: list[tuple[str, str]]) -> str:
    cells = "".join(
        f"<tr><td style=\"color: #64748b;\">{escape(label)}</td>"
        f"<td style=\"font-weight: 600;\">{escape(value)}</td></tr>"
        for label, value in rows
    )
    return f"<table style=\"width: 100%; background: #f8fafc;\">{cells}</table>"


def _button(url: str, label: str) -> str:
    return (
        f"<p style=\"text-align: center;\"><a href=\"{escape(url)}\" "
        f"style=\"background: #3b82f6; color: white; padding: 14px 28px; "
        f"border-radius: 8px; text-decoration: none;\">{escape(label)}</a></p>"
    )


# ---------------------------------------------------------------------------
# Booking confirmation
# ---------------------------------------------------------------------------

def render_booking_confirmation(data: dict[str, Any]) -> RenderedMessage:
    start: datetime = data["start_time"]
    rows = [
        ("Service", data["service_name"]),
        ("Date & Time", fmt_date(start, with_time=True)),
        ("Duration", f"{data['duration']} minutes"),
    ]
    if data.get("notes"):
        rows.append(("Notes", data["notes"]))

    org = data["organization_name"]
    body = (
        f"<p>Hi {escape(data['customer_name'])},</p>"
        f"<p>Your booking with <strong>{escape(org)}</strong> has been confirmed!</p>"
        + _rows(rows)
        + "<p>We look forward to seeing you!</p>"
        f"<p style=\"font-size: 14px; color: #666;\">Need to make changes? "
        f"Contact {escape(org)} to reschedule or cancel.</p>"
    )
    text = "\n".join(
        [
            "Booking Confirmed!",
            f"Hi {data['customer_name']},",
            f"Your booking with {org} has been confirmed!",
            *[f"{label}: {value}" for label, value in rows],
            "We look forward to seeing you!",
        ]
    )
    return RenderedMessage(
        subject=f"Booking confirmed: {data['service_name']}",
        html=_layout("Booking Confirmed!", body),
        text=text,
    )


# ---------------------------------------------------------------------------
# Team invitation
# ---------------------------------------------------------------------------

def render_invitation(data: dict[str, Any]) -> RenderedMessage:
    org = data["organization_name"]
    inviter = data["inviter_name"]
    expires = fmt_date(data["expires_at"])
    rows = [("Organization", org), ("Your Role", data["role"]), ("Invited By", inviter)]

    body = (
        "<p>Hi,</p>"
        f"<p><strong>{escape(inviter)}</strong> has invited you to join "
        f"<strong>{escape(org)}</strong> on UnifiedBizOS.</p>"
        + _rows(rows)
        + _button(data["invite_url"], "Accept Invitation")
        + f"<p style=\"font-size: 14px; color: #666;\">This invitation expires on {expires}.</p>"
    )
    text = "\n".join(
        [
            f"You're Invited to {org}!",
            f"{inviter} has invited you to join {org} on UnifiedBizOS.",
            *[f"{label}: {value}" for label, value in rows],
            f"Accept your invitation here: {data['invite_url']}",
            f"This invitation expires on {expires}.",
        ]
    )
    return RenderedMessage(
        subject=f"{inviter} invited you to join {org}",
        html=_layout("You're Invited!", body),
        text=text,
    )


# ---------------------------------------------------------------------------
# Invoice
# ---------------------------------------------------------------------------

def render_invoice(data: dict[str, Any]) -> RenderedMessage:
    number = data["invoice_number"]
    total = fmt_money(data["total"], currency=data.get("currency_symbol", "$"))
    rows = [("Invoice", number), ("Amount Due", total)]
    if data.get("due_date"):
        rows.append(("Due Date", fmt_date(data["due_date"])))

    body = (
        f"<p>Hi {escape(data['customer_name'])},</p>"
        f"<p><strong>{escape(data['organization_name'])}</strong> has sent you an invoice.</p>"
        + _rows(rows)
    )
    if data.get("payment_url"):
        body += _button(data["payment_url"], "Pay Invoice")

    text = "\n".join(
        [
            f"Invoice {number} from {data['organization_name']}",
            f"Hi {data['customer_name']},",
            *[f"{label}: {value}" for label, value in rows],
        ]
    )
    return RenderedMessage(
        subject=f"Invoice {number} from {data['organization_name']}",
        html=_layout(f"Invoice {number}", body),
        text=text,
    )


register_template("booking_confirmation", render_booking_confirmation)
register_template("invitation", render_invitation)
register_template("invoice", render_invoice)
