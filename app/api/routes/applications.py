from typing import Any

from fastapi import APIRouter, HTTPException, status
from sqlmodel import Session

from app import crud
from app.api.deps import SessionDep
from app.models import (
    Application,
    ApplicationCreated,
    ApplicationDashboardPublic,
    ApplicationSubmission,
    ApplicationUpdate,
    Message,
    TimelineEventCreate,
    TimelineEventPublic,
)
from app.services.application_builder import create_application as build_application

router = APIRouter(prefix="/applications", tags=["applications"])


def get_existing_application(*, session: Session, application_id: str) -> Application:
    application = session.get(Application, application_id)
    if not application:
        raise HTTPException(status_code=404, detail="Application not found")
    return application


@router.get(
    "/",
    response_model=list[ApplicationDashboardPublic],
    response_model_exclude_none=True,
)
def read_applications(session: SessionDep) -> Any:
    return crud.get_applications(session=session)


@router.get(
    "/{application_id}",
    response_model=ApplicationDashboardPublic,
    response_model_exclude_none=True,
)
def read_application(session: SessionDep, application_id: str) -> Any:
    application = crud.get_application(session=session, application_id=application_id)
    if not application:
        raise HTTPException(status_code=404, detail="Application not found")
    return application


@router.post(
    "/", response_model=ApplicationCreated, status_code=status.HTTP_201_CREATED
)
def create_application(
    *, session: SessionDep, application_in: ApplicationSubmission
) -> Any:
    application_id = build_application(session=session, submission=application_in)
    return ApplicationCreated(id=application_id)


@router.patch(
    "/{application_id}",
    response_model=ApplicationDashboardPublic,
    response_model_exclude_none=True,
)
def update_application(
    *, session: SessionDep, application_id: str, application_in: ApplicationUpdate
) -> Any:
    application = crud.update_application(
        session=session, application_id=application_id, application_in=application_in
    )
    if not application:
        raise HTTPException(
            status_code=404, detail="Application not found or no valid fields"
        )
    return crud.get_application(session=session, application_id=application.id)


@router.delete("/{application_id}", response_model=Message)
def delete_application(session: SessionDep, application_id: str) -> Message:
    deleted = crud.delete_application(session=session, application_id=application_id)
    if not deleted:
        raise HTTPException(status_code=404, detail="Application not found")
    return Message(message="Application deleted")


@router.post(
    "/{application_id}/timeline",
    response_model=TimelineEventPublic,
    status_code=status.HTTP_201_CREATED,
)
def create_timeline_event(
    *, session: SessionDep, application_id: str, event_in: TimelineEventCreate
) -> Any:
    get_existing_application(session=session, application_id=application_id)
    return crud.add_timeline_event(
        session=session,
        application_id=application_id,
        event=event_in.event,
        type=event_in.type,
    )
