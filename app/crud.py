import logging
from typing import Any

from sqlmodel import Session, col, select

from app.models import (
    Application,
    ApplicationDashboardPublic,
    ApplicationUpdate,
    TimelineEvent,
    TimelineEventType,
    get_datetime_utc,
)
from app.services.dashboard import to_dashboard_shape

logger = logging.getLogger(__name__)

# Columns that cannot be cleared through an update
REQUIRED_UPDATE_FIELDS = {"stage", "risk", "progress"}


def read_timeline(*, session: Session, application_id: str) -> list[TimelineEvent]:
    statement = (
        select(TimelineEvent)
        .where(TimelineEvent.application_id == application_id)
        .order_by(col(TimelineEvent.created_at).asc(), col(TimelineEvent.id).asc())
    )
    return list(session.exec(statement).all())


def get_applications(*, session: Session) -> list[ApplicationDashboardPublic]:
    statement = select(Application).order_by(col(Application.created_at).desc())
    applications = session.exec(statement).all()
    return [
        to_dashboard_shape(
            application, read_timeline(session=session, application_id=application.id)
        )
        for application in applications
    ]


def get_application(
    *, session: Session, application_id: str
) -> ApplicationDashboardPublic | None:
    application = session.get(Application, application_id)
    if not application:
        return None
    return to_dashboard_shape(
        application, read_timeline(session=session, application_id=application.id)
    )


def update_application(
    *, session: Session, application_id: str, application_in: ApplicationUpdate
) -> Application | None:
    """Apply a partial update. Returns None both when the application does not
    exist and when the update carries no recognised fields; in the latter case
    nothing is read or written."""
    update_data: dict[str, Any] = application_in.model_dump(
        mode="json", exclude_unset=True
    )
    # Sub-documents are stored whole, defaults included.
    if application_in.checks is not None and "checks" in update_data:
        update_data["checks"] = {
            key: check.model_dump(mode="json")
            for key, check in application_in.checks.items()
        }
    if application_in.connected_persons is not None and "connected_persons" in update_data:
        update_data["connected_persons"] = [
            person.model_dump(mode="json", by_alias=True)
            for person in application_in.connected_persons
        ]
    update_data = {
        key: value
        for key, value in update_data.items()
        if value is not None or key not in REQUIRED_UPDATE_FIELDS
    }
    if not update_data:
        return None

    application = session.get(Application, application_id)
    if not application:
        return None

    if "registration_date" in update_data:
        update_data["registration_date"] = application_in.registration_date
    application.sqlmodel_update(update_data)
    application.last_updated = get_datetime_utc()
    session.add(application)
    session.commit()
    session.refresh(application)
    logger.info("Updated application %s: %s", application_id, sorted(update_data))
    return application


def delete_application(*, session: Session, application_id: str) -> bool:
    application = session.get(Application, application_id)
    if not application:
        return False
    session.delete(application)
    session.commit()
    logger.info("Deleted application %s", application_id)
    return True


def add_timeline_event(
    *,
    session: Session,
    application_id: str,
    event: str,
    type: TimelineEventType = TimelineEventType.ACTION,
) -> TimelineEvent:
    """Append an entry to an application's timeline. The parent application is
    not looked up here; callers that need that guarantee check it first."""
    timeline_event = TimelineEvent(
        application_id=application_id,
        event=event,
        type=TimelineEventType(type).value,
    )
    session.add(timeline_event)
    session.commit()
    session.refresh(timeline_event)
    logger.info("Added %s timeline event to application %s", timeline_event.type, application_id)
    return timeline_event
