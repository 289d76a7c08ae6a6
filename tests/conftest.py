"""Pytest configuration and fixtures for the Casaora booking engine tests.

This module provides reusable fixtures for testing:
- DynamoDB mocking with moto
- A controllable clock
- The in-memory payment processor and role resolver from tests.fakes
- A fully wired BookingLifecycleService
"""

import os
from datetime import datetime, timedelta, timezone
from typing import Any, Generator

import boto3
import pytest
from moto import mock_aws

from tests.fakes import FixedClock, InMemoryPaymentProcessor, StaticRoleResolver

# === Environment Setup ===

# Set environment variables for testing before imports
os.environ.setdefault("AWS_DEFAULT_REGION", "eu-west-1")
os.environ.setdefault("DYNAMODB_TABLE_PREFIX", "test-casaora")
os.environ.setdefault("ENVIRONMENT", "test")

if not os.environ.get("AWS_PROFILE") and not os.environ.get("AWS_ACCESS_KEY_ID"):
    os.environ.setdefault("AWS_ACCESS_KEY_ID", "testing")
    os.environ.setdefault("AWS_SECRET_ACCESS_KEY", "testing")

TABLE_PREFIX = os.environ["DYNAMODB_TABLE_PREFIX"]

# (table suffix, hash key)
TABLES = [
    ("bookings", "booking_id"),
    ("subscriptions", "subscription_id"),
    ("recurrence-generations", "generation_key"),
    ("payment-customers", "customer_ref"),
    ("profiles", "profile_id"),
]

CUSTOMER = "cust-ana"
PROFESSIONAL = "prof-luis"
ADMIN = "admin-sofia"
OTHER_CUSTOMER = "cust-mateo"

# Tuesday 2026-03-03 12:00 UTC
NOW = datetime(2026, 3, 3, 12, 0, tzinfo=timezone.utc)


# === Singletons ===


@pytest.fixture(autouse=True)
def reset_singletons() -> Generator[None, None, None]:
    """Reset cached services before and after each test.

    Tests using mock_aws get fresh boto3 resources inside the mock context
    rather than reusing ones built outside it.
    """
    from casaora_api.dependencies import reset_services
    from casaora_bookings.services.ssm_service import get_ssm_service

    reset_services()
    get_ssm_service.cache_clear()
    yield
    reset_services()
    get_ssm_service.cache_clear()


# === DynamoDB Fixtures ===


@pytest.fixture
def aws_credentials() -> None:
    """Mocked AWS Credentials for moto."""
    os.environ["AWS_ACCESS_KEY_ID"] = "testing"
    os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"
    os.environ["AWS_SECURITY_TOKEN"] = "testing"
    os.environ["AWS_SESSION_TOKEN"] = "testing"
    os.environ["AWS_DEFAULT_REGION"] = "eu-west-1"


@pytest.fixture
def mock_dynamodb(aws_credentials: None) -> Generator[Any, None, None]:
    """Mocked DynamoDB with every table the engine uses."""
    with mock_aws():
        client = boto3.client("dynamodb", region_name="eu-west-1")
        for suffix, key in TABLES:
            client.create_table(
                TableName=f"{TABLE_PREFIX}-{suffix}",
                KeySchema=[{"AttributeName": key, "KeyType": "HASH"}],
                AttributeDefinitions=[{"AttributeName": key, "AttributeType": "S"}],
                BillingMode="PAY_PER_REQUEST",
            )
        yield client


@pytest.fixture
def db(mock_dynamodb: Any) -> Any:
    from casaora_bookings.services.dynamodb import get_dynamodb_service

    return get_dynamodb_service()


# === Engine Fixtures ===


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(NOW)


@pytest.fixture
def processor() -> InMemoryPaymentProcessor:
    return InMemoryPaymentProcessor()


@pytest.fixture
def roles() -> StaticRoleResolver:
    return StaticRoleResolver(
        {
            CUSTOMER: "customer",
            OTHER_CUSTOMER: "customer",
            PROFESSIONAL: "professional",
            ADMIN: "admin",
        }
    )


@pytest.fixture
def store(db: Any, clock: FixedClock) -> Any:
    from casaora_bookings.services.booking_store import BookingStore

    return BookingStore(db=db, clock=clock)


@pytest.fixture
def hold_manager(processor: InMemoryPaymentProcessor, store: Any) -> Any:
    from casaora_bookings.services.payment_hold_manager import PaymentHoldManager

    return PaymentHoldManager(processor, store)


@pytest.fixture
def lifecycle(store: Any, hold_manager: Any, roles: StaticRoleResolver, clock: FixedClock) -> Any:
    from casaora_bookings.config import PolicyConfig
    from casaora_bookings.services.lifecycle_service import BookingLifecycleService
    from casaora_bookings.services.policy_calculator import PolicyCalculator

    return BookingLifecycleService(
        store=store,
        holds=hold_manager,
        calculator=PolicyCalculator(PolicyConfig()),
        identity=roles,
        clock=clock,
    )


@pytest.fixture
def booking_draft() -> Any:
    """Draft for a 4-hour cleaning three days out, 100,000 COP."""
    from casaora_bookings.models.booking import BookingDraft

    return BookingDraft(
        customer_ref=CUSTOMER,
        professional_ref=PROFESSIONAL,
        scheduled_start=NOW + timedelta(days=3),
        duration_minutes=240,
        currency="COP",
        amount=100_000,
        service_name="Deep cleaning",
        payment_method_ref="pm_card_visa",
    )
