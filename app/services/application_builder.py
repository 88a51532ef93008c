import logging
from datetime import timedelta
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from app.models import (
    Application,
    ApplicationIdSequence,
    ApplicationStage,
    ApplicationSubmission,
    CheckRecord,
    CheckStatus,
    ConnectedPerson,
    PremisesDetails,
    TimelineEvent,
    TimelineEventType,
    get_datetime_utc,
)

logger = logging.getLogger(__name__)

CHECK_KEYS = (
    "dbs",
    "dbs_update",
    "la_check",
    "ofsted",
    "gp_health",
    "ref_1",
    "ref_2",
    "first_aid",
    "safeguarding",
    "food_hygiene",
    "insurance",
)

# check key -> prefix of the qualifications fields that complete it
QUALIFICATION_CHECKS = {
    "first_aid": "firstAid",
    "safeguarding": "safeguarding",
    "food_hygiene": "foodHygiene",
}

REFERENCE_CHECKS = {"ref_1": "ref1", "ref_2": "ref2"}

CONNECTED_PERSON_CHECK_KEYS = ("dbs", "la_check")


def _section(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _list(value: Any) -> list[Any]:
    return value if isinstance(value, list) else []


def _text(value: Any) -> str | None:
    # Free-text form answers of any other type are treated as unanswered.
    return value if isinstance(value, str) and value else None


def _today() -> str:
    return get_datetime_utc().date().isoformat()


def generate_application_id(*, session: Session) -> str:
    """Draw the next value from the id sequence table and format it as
    ``RK-<year>-<5 digit sequence>``. Must run inside the creating transaction.

    The allocated row is removed again before commit; the autoincrement
    counter keeps its high-water mark, so numbers are never reused."""
    allocation = ApplicationIdSequence()
    session.add(allocation)
    session.flush()
    sequence_number = allocation.id
    session.delete(allocation)
    year = get_datetime_utc().year
    return f"RK-{year}-{sequence_number:05d}"


def calculate_progress(checks: Any) -> int:
    if not checks or not isinstance(checks, dict):
        return 0
    complete = 0
    for check in checks.values():
        if isinstance(check, dict):
            status = check.get("status")
        else:
            status = getattr(check, "status", None)
        if status == CheckStatus.COMPLETE.value:
            complete += 1
    total = len(checks)
    # Integer percentage, halves round up.
    return (complete * 200 + total) // (2 * total)


def build_checks_from_form(submission: ApplicationSubmission) -> dict[str, CheckRecord]:
    checks = {key: CheckRecord() for key in CHECK_KEYS}

    suitability = _section(submission.suitability)
    if suitability.get("hasDBS") == "Yes" and suitability.get("dbsNumber"):
        checks["dbs"] = CheckRecord(
            status=CheckStatus.PENDING,
            date=_today(),
            certificate=suitability["dbsNumber"],
            details="Certificate number provided on application",
        )

    qualifications = _section(submission.qualifications)
    for key, prefix in QUALIFICATION_CHECKS.items():
        if qualifications.get(f"{prefix}Completed") == "Yes":
            checks[key] = CheckRecord(
                status=CheckStatus.COMPLETE,
                date=_text(qualifications.get(f"{prefix}Date")),
                provider=_text(qualifications.get(f"{prefix}Org")),
            )

    references = _section(submission.references)
    for key, ref_key in REFERENCE_CHECKS.items():
        referee = _section(references.get(ref_key))
        if referee.get("name"):
            checks[key] = CheckRecord(
                status=CheckStatus.PENDING,
                date=_today(),
                referee=referee["name"],
                relationship=_text(referee.get("relationship")),
                details="Reference request to be sent",
            )

    return checks


def build_connected_persons(submission: ApplicationSubmission) -> list[ConnectedPerson]:
    adults = _section(submission.household).get("adults")
    if not isinstance(adults, list):
        return []

    persons = []
    # Numbered by position among all adults, so skipped entries leave a gap.
    for index, adult in enumerate(adults, start=1):
        adult = _section(adult)
        if not (adult.get("firstName") and adult.get("lastName")):
            continue
        persons.append(
            ConnectedPerson(
                id=f"CP-NEW-{index:03d}",
                name=f"{adult['firstName']} {adult['lastName']}",
                relationship=_text(adult.get("relationship")) or "Household member",
                dob=_text(adult.get("dob")),
                checks={key: CheckRecord() for key in CONNECTED_PERSON_CHECK_KEYS},
            )
        )
    return persons


def _join_address(address: Any) -> str:
    address = _section(address)
    parts = [address.get(part) for part in ("line1", "line2", "town", "postcode")]
    return ", ".join(str(part) for part in parts if part)


def build_premises_address(submission: ApplicationSubmission) -> str:
    premises = _section(submission.premises)
    premises_type = premises.get("type") or "Domestic"
    if premises_type == "Domestic" and premises.get("sameAsHome") is not False:
        return _join_address(submission.home_address)
    return _join_address(premises.get("address"))


def build_premises_details(submission: ApplicationSubmission) -> PremisesDetails:
    premises = _section(submission.premises)
    return PremisesDetails(
        same_as_home=premises.get("sameAsHome"),
        outdoor_space=premises.get("outdoorSpace") or None,
        pets=premises.get("pets") or None,
        pets_details=premises.get("petsDetails") or None,
    )


def initial_timeline_events(*, application: Application) -> list[TimelineEvent]:
    started_at = application.created_at or get_datetime_utc()
    return [
        TimelineEvent(
            application_id=application.id,
            event="Application started",
            type=TimelineEventType.ACTION.value,
            created_at=started_at,
        ),
        TimelineEvent(
            application_id=application.id,
            event="Application form submitted",
            type=TimelineEventType.COMPLETE.value,
            created_at=started_at + timedelta(seconds=1),
        ),
    ]


def create_application(*, session: Session, submission: ApplicationSubmission) -> str:
    """Persist a submitted registration form as a new application together
    with its first two timeline entries. All or nothing: on any storage error
    the session is rolled back and the error re-raised."""
    personal = submission.personal
    premises = _section(submission.premises)
    service = _section(submission.service)

    checks = build_checks_from_form(submission)
    connected_persons = build_connected_persons(submission)
    progress = calculate_progress(checks)
    now = get_datetime_utc()

    try:
        application_id = generate_application_id(session=session)
        application = Application(
            id=application_id,
            title=personal.title,
            first_name=personal.first_name,
            middle_names=personal.middle_names,
            last_name=personal.last_name,
            email=str(personal.email),
            phone=personal.phone,
            dob=personal.dob,
            gender=personal.gender,
            right_to_work=personal.right_to_work,
            ni_number=personal.ni_number,
            home_address=_section(submission.home_address),
            premises_type=(_text(premises.get("type")) or "domestic").lower(),
            premises_address=build_premises_address(submission) or None,
            premises_details=build_premises_details(submission).model_dump(
                mode="json", by_alias=True
            ),
            local_authority=_text(premises.get("localAuthority")),
            registers=_list(service.get("ageGroups")),
            service=submission.service or None,
            stage=ApplicationStage.NEW.value,
            risk="low",
            progress=progress,
            checks={key: check.model_dump(mode="json") for key, check in checks.items()},
            connected_persons=[
                person.model_dump(mode="json", by_alias=True) for person in connected_persons
            ],
            previous_names=submission.previous_names or None,
            address_history=submission.address_history or None,
            qualifications=submission.qualifications or None,
            employment_history=submission.employment or None,
            references_data=submission.references or None,
            household=submission.household or None,
            suitability=submission.suitability or None,
            declaration=submission.declaration or None,
            start_date=now,
            last_updated=now,
            created_at=now,
        )
        session.add(application)
        # Parent row first so the timeline foreign keys resolve.
        session.flush()
        for event in initial_timeline_events(application=application):
            session.add(event)
        session.commit()
    except SQLAlchemyError:
        session.rollback()
        logger.exception("Failed to create application, transaction rolled back")
        raise

    logger.info(
        "Created application %s with %d connected person(s), progress %d%%",
        application_id,
        len(connected_persons),
        progress,
    )
    return application_id
