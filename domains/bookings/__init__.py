"""Bookings: services, provider availability, appointment slots and bookings."""
