"""Template Engine: merge variables and named message templates.

Two jobs:
- Render ``{{Contact.FirstName}}``-style merge variables into user content
  (campaign bodies, automation emails, documents).
- Dispatch named templates (booking confirmation, invitation, invoice) to
  their registered render functions. Modules register their own templates;
  an unknown name falls back to a generic key/value rendering.
"""

import html as html_lib
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Optional


# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------

def fmt_money(value: float | int | None, currency: str = "$") -> str:
    """Format a number as currency."""
    if value is None:
        return "N/A"
    return f"{currency}{value:,.2f}"


def fmt_date(value: datetime | None, with_time: bool = False) -> str:
    """Long-form date, e.g. 'Monday, March 3, 2025' (optionally 'at 2:30 PM')."""
    if value is None:
        return "N/A"
    text = f"{value:%A}, {value:%B} {value.day}, {value.year}"
    if with_time:
        hour = value.hour % 12 or 12
        text += f" at {hour}:{value:%M} {'AM' if value.hour < 12 else 'PM'}"
    return text


# ---------------------------------------------------------------------------
# Merge variables
# ---------------------------------------------------------------------------

_MERGE_VAR = re.compile(r"\{\{\s*([A-Za-z_][\w.]*)\s*\}\}")
_TAG = re.compile(r"<[^>]*>")


def contact_merge_variables(contact: Optional[dict]) -> dict[str, str]:
    """Merge variables exposed for a contact dict (first_name, last_name, email)."""
    contact = contact or {}
    first = contact.get("first_name") or ""
    last = contact.get("last_name") or ""
    return {
        "Contact.FirstName": first,
        "Contact.LastName": last,
        "Contact.Name": f"{first} {last}".strip(),
        "Contact.Email": contact.get("email") or "",
    }


def render_merge_variables(template: str, variables: dict[str, Any]) -> str:
    """Replace ``{{Name}}`` placeholders; unknown names are left untouched."""
    if not template:
        return template

    def _sub(match: re.Match) -> str:
        key = match.group(1)
        if key in variables and variables[key] is not None:
            return str(variables[key])
        return match.group(0)

    return _MERGE_VAR.sub(_sub, template)


def strip_html(content: str) -> str:
    """Plain-text version of an HTML body."""
    return html_lib.unescape(_TAG.sub("", content or "")).strip()


# ---------------------------------------------------------------------------
# Named templates
# ---------------------------------------------------------------------------

@dataclass
class RenderedMessage:
    subject: str
    html: str
    text: str


TemplateRenderer = Callable[[Dict[str, Any]], RenderedMessage]

_TEMPLATES: Dict[str, TemplateRenderer] = {}


def register_template(name: str, renderer: TemplateRenderer) -> None:
    """Register a named template.

    Example::

        def render_invoice(data):
            return RenderedMessage(subject=..., html=..., text=...)

        register_template("invoice", render_invoice)
    """
    _TEMPLATES[name] = renderer


def render_generic(name: str, data: Dict[str, Any]) -> RenderedMessage:
    """Fallback for unregistered templates: one line per key."""
    lines = [f"{key}: {value}" for key, value in data.items() if not key.startswith("_")]
    text = "\n".join(lines)
    body = "".join(f"<p>{html_lib.escape(line)}</p>" for line in lines)
    return RenderedMessage(subject=name.replace("_", " ").title(), html=body, text=text)


class TemplateEngine:
    """Renders named templates.

    Usage::

        message = TemplateEngine.render("booking_confirmation", {...})
        await mailer.send(EmailMessage(to=email, subject=message.subject, ...))
    """

    @staticmethod
    def render(name: str, data: Dict[str, Any]) -> RenderedMessage:
        renderer = _TEMPLATES.get(name)
        if renderer is None:
            return render_generic(name, data)
        return renderer(data)

    @staticmethod
    def list_templates() -> list[str]:
        return list(_TEMPLATES.keys())
