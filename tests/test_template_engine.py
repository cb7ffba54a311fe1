"""Test merge variables, formatting and named email templates."""
from datetime import datetime, timezone

import core.email  # noqa: F401  registers templates
from core.engine.template_engine import (
    TemplateEngine,
    contact_merge_variables,
    fmt_date,
    fmt_money,
    render_merge_variables,
    strip_html,
)


def test_merge_variables_replaced():
    variables = contact_merge_variables({"first_name": "Jane", "last_name": "Doe", "email": "jane@example.com"})
    text = render_merge_variables("Hi {{Contact.FirstName}} ({{ Contact.Email }})", variables)
    assert text == "Hi Jane (jane@example.com)"


def test_unknown_merge_variable_left_alone():
    assert render_merge_variables("Hi {{Contact.Nickname}}", {}) == "Hi {{Contact.Nickname}}"


def test_contact_name_without_last_name():
    variables = contact_merge_variables({"first_name": "Jane"})
    assert variables["Contact.Name"] == "Jane"
    assert variables["Contact.LastName"] == ""


def test_strip_html():
    assert strip_html("<p>Hello &amp; <b>welcome</b></p>") == "Hello & welcome"


def test_formatters():
    assert fmt_money(1234.5) == "$1,234.50"
    assert fmt_money(None) == "N/A"
    when = datetime(2025, 3, 3, 14, 30, tzinfo=timezone.utc)
    assert fmt_date(when) == "Monday, March 3, 2025"
    assert fmt_date(when, with_time=True) == "Monday, March 3, 2025 at 2:30 PM"


def test_registered_templates():
    assert {"booking_confirmation", "invitation", "invoice"} <= set(TemplateEngine.list_templates())


def test_invoice_template():
    message = TemplateEngine.render("invoice", {
        "invoice_number": "INV-0001",
        "total": 150.0,
        "customer_name": "Jane Doe",
        "organization_name": "Acme Studio",
        "payment_url": "https://pay.example.com/inv",
    })
    assert message.subject == "Invoice INV-0001 from Acme Studio"
    assert "$150.00" in message.html
    assert "https://pay.example.com/inv" in message.html
    assert "Amount Due: $150.00" in message.text


def test_unregistered_template_falls_back():
    message = TemplateEngine.render("weekly_digest", {"contacts": 3, "_private": "x"})
    assert message.subject == "Weekly Digest"
    assert message.text == "contacts: 3"
