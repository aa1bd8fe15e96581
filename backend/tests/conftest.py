# backend/tests/conftest.py
"""
Shared fixtures for the consultbook test suite.

Every test gets a fresh in-memory SQLite database, a clock pinned to
Monday 2026-03-02 08:00, and recording fakes for the external
collaborators (meeting provider, payment gateway, notifier). The Redis slot
lock is disabled so tests never need a running Redis.
"""

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from consultbook.core.clock import FixedClock
from consultbook.core.config import settings
from consultbook.database import Base
from consultbook.integrations.zoom_client import FakeZoomClient
import consultbook.models  # noqa: F401
from consultbook.services.availability_template_service import AvailabilityTemplateService
from consultbook.services.booking_service import BookingService
from consultbook.services.quota_service import QuotaService
from consultbook.services.reconciliation_service import ReconciliationService
from consultbook.services.reschedule_service import RescheduleService
from consultbook.services.slot_availability_service import SlotAvailabilityService
from tests.helpers import (
    NEXT_MONDAY,
    NOW,
    OPERATOR_ID,
    USER_ID,
    RecordingNotifier,
    RecordingPaymentGateway,
    create_subscription,
    slot,
    weekly_schedule,
)


@pytest.fixture(autouse=True)
def _disable_slot_lock(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(settings, "slot_lock_enabled", False)
    yield


@pytest.fixture
def db():
    """Fresh in-memory database per test."""
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    TestSessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    session: Session = TestSessionLocal()

    yield session

    session.rollback()
    session.close()
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(NOW)


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def payment_gateway() -> RecordingPaymentGateway:
    return RecordingPaymentGateway()


@pytest.fixture
def zoom() -> FakeZoomClient:
    return FakeZoomClient()


@pytest.fixture
def slot_service(db: Session, clock: FixedClock) -> SlotAvailabilityService:
    return SlotAvailabilityService(db, clock)


@pytest.fixture
def quota_service(db: Session, clock: FixedClock) -> QuotaService:
    return QuotaService(db, clock)


@pytest.fixture
def template_service(db: Session, clock: FixedClock) -> AvailabilityTemplateService:
    return AvailabilityTemplateService(db, clock)


@pytest.fixture
def booking_service(
    db: Session,
    clock: FixedClock,
    notifier: RecordingNotifier,
    zoom: FakeZoomClient,
    payment_gateway: RecordingPaymentGateway,
    slot_service: SlotAvailabilityService,
    quota_service: QuotaService,
) -> BookingService:
    return BookingService(
        db,
        clock,
        notification_service=notifier,
        meeting_provider=zoom,
        payment_gateway=payment_gateway,
        slot_service=slot_service,
        quota_service=quota_service,
    )


@pytest.fixture
def reschedule_service(
    db: Session,
    clock: FixedClock,
    notifier: RecordingNotifier,
    booking_service: BookingService,
    slot_service: SlotAvailabilityService,
) -> RescheduleService:
    return RescheduleService(
        db,
        clock,
        booking_service=booking_service,
        notification_service=notifier,
        slot_service=slot_service,
    )


@pytest.fixture
def reconciliation_service(
    db: Session,
    clock: FixedClock,
    notifier: RecordingNotifier,
    booking_service: BookingService,
) -> ReconciliationService:
    return ReconciliationService(
        db, clock, notification_service=notifier, booking_service=booking_service
    )


@pytest.fixture
def templates(template_service: AvailabilityTemplateService):
    """Video and onsite templates open Monday and Tuesday mornings."""
    video = template_service.upsert_template(
        "video_consultancy", weekly_schedule(["monday", "tuesday"])
    )
    onsite = template_service.upsert_template(
        "onsite_appointment", weekly_schedule(["monday", "tuesday"])
    )
    return {"video_consultancy": video, "onsite_appointment": onsite}


@pytest.fixture
def subscriber(db: Session) -> str:
    create_subscription(db, USER_ID)
    return USER_ID


@pytest.fixture
def approved_video_booking(booking_service: BookingService, templates, subscriber: str):
    """Upcoming video booking next Monday 09:00-10:00 with a meeting link."""
    booking = booking_service.create_booking(
        subscriber, "video_consultancy", NEXT_MONDAY, [slot("09:00", "10:00")]
    )
    return booking_service.approve_or_reject(booking.id, "approved", operator_id=OPERATOR_ID)
