from collections.abc import Sequence
from datetime import date, datetime, timezone

from app.models import (
    Application,
    ApplicationDashboardPublic,
    TimelineEntryPublic,
    TimelineEvent,
    get_datetime_utc,
)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands timezone-aware columns back naive; they were stored as UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def format_date(value: date | datetime | None) -> str | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        value = _as_utc(value)
    return value.strftime("%Y-%m-%d")


def format_datetime(value: datetime | None) -> str | None:
    if value is None:
        return None
    return _as_utc(value).strftime("%Y-%m-%d %H:%M")


def calculate_days_in_stage(
    last_updated: datetime | None, *, now: datetime | None = None
) -> int:
    now = now or get_datetime_utc()
    if last_updated is None:
        return 0
    elapsed = now - _as_utc(last_updated)
    return max(0, elapsed.days)


def to_dashboard_shape(
    application: Application, timeline: Sequence[TimelineEvent]
) -> ApplicationDashboardPublic:
    """Reshape a stored application and its timeline (oldest first) into the
    dashboard view, newest timeline entry first."""
    return ApplicationDashboardPublic(
        id=application.id,
        name=f"{application.first_name} {application.last_name}",
        email=application.email,
        phone=application.phone or "",
        dob=format_date(application.dob),
        ni_number=application.ni_number or None,
        stage=application.stage,
        start_date=format_date(application.start_date),
        registration_date=format_date(application.registration_date),
        registration_number=application.registration_number or None,
        last_updated=format_date(application.last_updated),
        days_in_stage=calculate_days_in_stage(application.last_updated),
        risk=application.risk,
        progress=application.progress,
        premises_type=application.premises_type,
        premises_address=application.premises_address or "",
        premises_details=application.premises_details or None,
        local_authority=application.local_authority or "",
        registers=application.registers or [],
        service=application.service or None,
        checks=application.checks or {},
        connected_persons=application.connected_persons or [],
        ofsted_check=application.ofsted_check or None,
        household=application.household or None,
        timeline=[
            TimelineEntryPublic(
                date=format_datetime(event.created_at),
                event=event.event,
                type=event.type,
            )
            for event in reversed(timeline)
        ],
    )
