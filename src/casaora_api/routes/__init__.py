"""API routes package.

Routers are organized by domain:

- bookings: Booking lifecycle (create, authorize, confirm, cancel, reschedule, complete)
- subscriptions: Recurring subscriptions and next-occurrence generation

All routers are registered in main.py with /api prefix.
"""

from casaora_api.routes.bookings import router as bookings_router
from casaora_api.routes.subscriptions import router as subscriptions_router

__all__ = ["bookings_router", "subscriptions_router"]
