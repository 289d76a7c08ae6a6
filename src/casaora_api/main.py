"""FastAPI application for the Casaora booking lifecycle API.

Exposes the lifecycle service over REST:
- Booking creation, authorization and reconciliation
- Professional confirmation, decline and check-in
- Cancellation preview and cancellation
- Rescheduling and completion
- Recurring subscriptions and next-occurrence generation
"""

from datetime import UTC, datetime
from typing import Any

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from mangum import Mangum

from casaora_api.exceptions import register_exception_handlers
from casaora_api.middleware import CorrelationIdMiddleware
from casaora_api.routes import bookings_router, subscriptions_router
from casaora_bookings.config import get_settings
from casaora_bookings.utils.logging import configure_logging, get_logger

configure_logging(get_settings().log_level)
logger = get_logger(__name__)

app = FastAPI(
    title="Casaora Bookings API",
    description="Booking lifecycle and payment-hold operations",
    version="0.1.0",
)

# Configure CORS for local development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://127.0.0.1:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(CorrelationIdMiddleware)

register_exception_handlers(app)

app.include_router(bookings_router, prefix="/api")
app.include_router(subscriptions_router, prefix="/api")


@app.get("/api/ping")
async def ping() -> dict[str, Any]:
    """Root health check endpoint at /api/ping."""
    return {
        "status": "ok",
        "timestamp": datetime.now(UTC).isoformat(),
        "service": "casaora-bookings",
    }


# Lambda handler - Mangum wraps FastAPI for AWS Lambda + API Gateway
handler = Mangum(app, lifespan="off")


def run_server(host: str = "0.0.0.0", port: int = 8080, reload: bool = True) -> None:
    """Run the FastAPI server.

    Args:
        host: Host to bind to (default: 0.0.0.0)
        port: Port to listen on (default: 8080)
        reload: Enable hot reload for development (default: True)
    """
    import uvicorn

    if reload:
        uvicorn.run("casaora_api.main:app", host=host, port=port, reload=True, reload_dirs=["src"])
    else:
        uvicorn.run(app, host=host, port=port)


if __name__ == "__main__":
    run_server()
