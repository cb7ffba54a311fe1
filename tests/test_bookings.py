"""Test slot generation and the booking lifecycle."""
from datetime import date, datetime, timedelta, timezone

import pytest
from dateutil import tz

from core.errors import ValidationError
from domains.bookings.slots import generate_slots, get_zone

UTC = timezone.utc
DAY = date(2030, 6, 3)  # a Monday
NOW = datetime(2030, 6, 1, 12, 0, tzinfo=UTC)


def test_slots_fill_window():
    slots = generate_slots(DAY, [("09:00", "11:00")], UTC, 30, [], NOW)
    assert [s.strftime("%H:%M") for s in slots] == ["09:00", "09:30", "10:00", "10:30"]


def test_slots_skip_busy_with_buffers():
    busy = [(datetime(2030, 6, 3, 10, 0, tzinfo=UTC), datetime(2030, 6, 3, 10, 30, tzinfo=UTC))]
    slots = generate_slots(DAY, [("09:00", "12:00")], UTC, 30, busy, NOW, buffer_after=15)
    assert [s.strftime("%H:%M") for s in slots] == ["09:00", "10:30", "11:00", "11:30"]


def test_slots_respect_notice_and_advance():
    now = datetime(2030, 6, 3, 9, 40, tzinfo=UTC)
    slots = generate_slots(DAY, [("09:00", "11:00")], UTC, 30, [], now, min_notice_minutes=30)
    assert [s.strftime("%H:%M") for s in slots] == ["10:30"]

    far = generate_slots(DAY, [("09:00", "11:00")], UTC, 30, [], NOW - timedelta(days=90))
    assert far == []


def test_slots_use_wall_clock_of_zone():
    zone = tz.gettz("America/New_York")
    slots = generate_slots(DAY, [("09:00", "10:00")], zone, 60, [], NOW)
    assert slots == [datetime(2030, 6, 3, 13, 0, tzinfo=UTC)]


def test_unknown_timezone():
    with pytest.raises(ValidationError):
        get_zone("Mars/Olympus")


async def _bookable_service(client, owner):
    headers = owner["headers"]
    resp = await client.post(
        "/api/bookings/services",
        json={"name": "Consultation", "duration_minutes": 30, "provider_ids": [owner["user_id"]]},
        headers=headers,
    )
    assert resp.status_code == 201, resp.text
    windows = [{"day_of_week": d, "start_time": "09:00", "end_time": "11:00"} for d in range(7)]
    resp = await client.put("/api/bookings/availability", json={"windows": windows}, headers=headers)
    assert resp.json()["count"] == 7
    return (await client.get("/api/bookings/services", headers=headers)).json()["data"][0]


def _next_week():
    return (datetime.now(UTC) + timedelta(days=7)).date()


async def _book(client, owner, service, day, hhmm="10:00", email="guest@example.com"):
    return await client.post(
        f"/api/public/{owner['slug']}/bookings",
        json={
            "service_id": service["id"],
            "provider_id": owner["user_id"],
            "start_time": f"{day.isoformat()}T{hhmm}:00+00:00",
            "guest_name": "Grace Hopper",
            "guest_email": email,
        },
    )


@pytest.mark.asyncio
async def test_public_services_page(client, owner):
    await _bookable_service(client, owner)
    resp = await client.get(f"/api/public/{owner['slug']}/services")
    body = resp.json()
    assert body["organization"]["slug"] == "acme-studio"
    assert body["services"][0]["name"] == "Consultation"

    resp = await client.get("/api/public/no-such-org/services")
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_booking_removes_slot_and_blocks_double_booking(client, owner):
    service = await _bookable_service(client, owner)
    day = _next_week()
    params = {"service_id": service["id"], "provider_id": owner["user_id"], "day": day.isoformat()}

    slots = (await client.get(f"/api/public/{owner['slug']}/slots", params=params)).json()["slots"]
    assert len(slots) == 4

    resp = await _book(client, owner, service, day)
    assert resp.status_code == 201, resp.text
    booking = resp.json()
    assert booking["status"] == "PENDING"
    assert booking["service"]["name"] == "Consultation"

    slots = (await client.get(f"/api/public/{owner['slug']}/slots", params=params)).json()["slots"]
    assert f"{day.isoformat()}T10:00:00+00:00" not in slots
    assert len(slots) == 3

    resp = await _book(client, owner, service, day, email="other@example.com")
    assert resp.status_code == 409


@pytest.mark.asyncio
async def test_public_booking_creates_contact(client, owner):
    service = await _bookable_service(client, owner)
    await _book(client, owner, service, _next_week())
    contacts = (await client.get("/api/crm/contacts", headers=owner["headers"])).json()["data"]
    assert [(c["email"], c["first_name"], c["last_name"]) for c in contacts] == [
        ("guest@example.com", "Grace", "Hopper")
    ]


@pytest.mark.asyncio
async def test_confirm_sends_email_and_cancel_frees_slot(client, owner, mailer):
    headers = owner["headers"]
    service = await _bookable_service(client, owner)
    day = _next_week()
    booking = (await _book(client, owner, service, day)).json()

    resp = await client.post(f"/api/bookings/{booking['id']}/status", json={"status": "CONFIRMED"}, headers=headers)
    assert resp.status_code == 200
    assert resp.json()["status"] == "CONFIRMED"
    assert resp.json()["email_sent"] is True
    assert mailer.sent[-1].to == "guest@example.com"
    assert "Consultation" in mailer.sent[-1].html

    resp = await client.post(f"/api/bookings/{booking['id']}/cancel", json={"reason": "Sick"}, headers=headers)
    assert resp.json()["status"] == "CANCELLED"

    resp = await _book(client, owner, service, day, email="other@example.com")
    assert resp.status_code == 201


@pytest.mark.asyncio
async def test_invalid_booking_transition(client, owner):
    headers = owner["headers"]
    service = await _bookable_service(client, owner)
    booking = (await _book(client, owner, service, _next_week())).json()
    await client.post(f"/api/bookings/{booking['id']}/cancel", json={}, headers=headers)

    resp = await client.post(f"/api/bookings/{booking['id']}/status", json={"status": "CONFIRMED"}, headers=headers)
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_service_with_bookings_is_deactivated(client, owner):
    headers = owner["headers"]
    service = await _bookable_service(client, owner)
    await _book(client, owner, service, _next_week())

    resp = await client.delete(f"/api/bookings/services/{service['id']}", headers=headers)
    assert resp.json() == {"deleted": False, "deactivated": True}
    services = (await client.get(f"/api/public/{owner['slug']}/services")).json()["services"]
    assert services == []


@pytest.mark.asyncio
async def test_reschedule_recomputes_end_and_rejects_overlap(client, owner):
    headers = owner["headers"]
    service = await _bookable_service(client, owner)
    day = _next_week().isoformat()
    first = (await _book(client, owner, service, _next_week(), "09:00")).json()
    second = (await _book(client, owner, service, _next_week(), "10:00", email="other@example.com")).json()

    resp = await client.patch(
        f"/api/bookings/{first['id']}", json={"start_time": f"{day}T09:30:00+00:00"}, headers=headers
    )
    assert resp.status_code == 200, resp.text
    assert resp.json()["start_time"] == f"{day}T09:30:00+00:00"
    assert resp.json()["end_time"] == f"{day}T10:00:00+00:00"

    resp = await client.patch(
        f"/api/bookings/{first['id']}", json={"start_time": f"{day}T10:15:00+00:00"}, headers=headers
    )
    assert resp.status_code == 409
    assert resp.json() == {"error": "This time slot is no longer available"}

    await client.post(f"/api/bookings/{second['id']}/cancel", json={}, headers=headers)
    resp = await client.patch(
        f"/api/bookings/{first['id']}", json={"start_time": f"{day}T10:15:00+00:00"}, headers=headers
    )
    assert resp.status_code == 200
    assert resp.json()["end_time"] == f"{day}T10:45:00+00:00"

    resp = await client.patch(
        f"/api/bookings/{second['id']}", json={"start_time": f"{day}T09:00:00+00:00"}, headers=headers
    )
    assert resp.status_code == 400
    assert resp.json() == {"error": "Cannot reschedule a cancelled booking"}
