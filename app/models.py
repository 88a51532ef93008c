from datetime import date, datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, EmailStr, field_validator
from pydantic.alias_generators import to_camel
from sqlalchemy import JSON, DateTime
from sqlmodel import Field, Relationship, SQLModel


def get_datetime_utc() -> datetime:
    return datetime.now(timezone.utc)


class ApplicationStage(str, Enum):
    NEW = "new"
    FORM_SUBMITTED = "form-submitted"
    CHECKS = "checks"
    REVIEW = "review"
    APPROVED = "approved"
    BLOCKED = "blocked"
    REGISTERED = "registered"


class TimelineEventType(str, Enum):
    ACTION = "action"
    COMPLETE = "complete"
    ALERT = "alert"
    NOTE = "note"


class CheckStatus(str, Enum):
    NOT_STARTED = "not-started"
    PENDING = "pending"
    COMPLETE = "complete"


# Structured sub-documents, stored as JSON columns on the application row
class CheckRecord(BaseModel):
    """One vetting item. Check-specific keys (certificate, provider, referee,
    relationship, details) ride along as extra fields."""

    model_config = ConfigDict(extra="allow")

    status: CheckStatus = CheckStatus.NOT_STARTED
    date: str | None = None


class ConnectedPerson(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="allow"
    )

    id: str
    name: str
    type: str = "household"
    relationship: str = "Household member"
    dob: str | None = None
    form_status: str = "not-started"
    form_type: str = "CMA-H2"
    checks: dict[str, CheckRecord] = {}


class PremisesDetails(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    # Stored as answered; only a literal false switches to a separate address.
    same_as_home: Any = None
    outdoor_space: Any = None
    pets: Any = None
    pets_details: Any = None


# Inbound registration form
class PersonalDetails(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    title: str | None = None
    first_name: str = Field(min_length=1, max_length=200)
    middle_names: str | None = None
    last_name: str = Field(min_length=1, max_length=200)
    email: EmailStr = Field(max_length=254)
    phone: str | None = None
    dob: date | None = None
    gender: str | None = None
    right_to_work: str | None = None
    ni_number: str | None = None

    @field_validator("*", mode="before")
    @classmethod
    def strip_strings(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = value.strip()
            return value or None
        return value


class ApplicationSubmission(BaseModel):
    """The nested registration form. Only ``personal`` is validated here;
    the remaining sections are interpreted leniently when the record is built."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="allow"
    )

    personal: PersonalDetails
    home_address: Any = None
    premises: Any = None
    service: Any = None
    qualifications: Any = None
    references: Any = None
    suitability: Any = None
    household: Any = None
    previous_names: Any = None
    address_history: Any = None
    employment: Any = None
    declaration: Any = None


class ApplicationCreated(SQLModel):
    id: str
    message: str = "Application submitted successfully"


class ApplicationUpdate(BaseModel):
    """Fields an operator may change after submission. Both snake_case and
    camelCase keys are accepted; anything else is ignored."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="ignore"
    )

    stage: ApplicationStage | None = None
    risk: str | None = Field(default=None, max_length=16)
    progress: int | None = Field(default=None, ge=0, le=100)
    checks: dict[str, CheckRecord] | None = None
    connected_persons: list[ConnectedPerson] | None = None
    ofsted_check: dict[str, Any] | None = None
    registration_date: date | None = None
    registration_number: str | None = Field(default=None, max_length=64)


# Database model, one row per childminder registration case
class Application(SQLModel, table=True):
    __tablename__ = "applications"

    id: str = Field(primary_key=True, max_length=32)
    title: str | None = Field(default=None)
    first_name: str = Field(max_length=200)
    middle_names: str | None = Field(default=None)
    last_name: str = Field(max_length=200)
    email: str = Field(max_length=254)
    phone: str | None = Field(default=None)
    dob: date | None = Field(default=None)
    gender: str | None = Field(default=None)
    right_to_work: str | None = Field(default=None)
    ni_number: str | None = Field(default=None)

    home_address: dict[str, Any] = Field(default_factory=dict, sa_type=JSON)
    premises_type: str = Field(default="domestic")
    premises_address: str | None = Field(default=None)
    premises_details: dict[str, Any] | None = Field(default=None, sa_type=JSON)
    local_authority: str | None = Field(default=None)

    registers: list[Any] = Field(default_factory=list, sa_type=JSON)
    service: Any = Field(default=None, sa_type=JSON, nullable=True)
    stage: str = Field(default=ApplicationStage.NEW.value, max_length=32)
    risk: str = Field(default="low", max_length=16)
    progress: int = Field(default=0)

    checks: dict[str, Any] | None = Field(default=None, sa_type=JSON)
    connected_persons: list[Any] | None = Field(default=None, sa_type=JSON)
    previous_names: Any = Field(default=None, sa_type=JSON, nullable=True)
    address_history: Any = Field(default=None, sa_type=JSON, nullable=True)
    qualifications: Any = Field(default=None, sa_type=JSON, nullable=True)
    employment_history: Any = Field(default=None, sa_type=JSON, nullable=True)
    references_data: Any = Field(default=None, sa_type=JSON, nullable=True)
    household: Any = Field(default=None, sa_type=JSON, nullable=True)
    suitability: Any = Field(default=None, sa_type=JSON, nullable=True)
    declaration: Any = Field(default=None, sa_type=JSON, nullable=True)
    ofsted_check: dict[str, Any] | None = Field(default=None, sa_type=JSON)

    start_date: datetime | None = Field(
        default_factory=get_datetime_utc,
        sa_type=DateTime(timezone=True),  # type: ignore
    )
    registration_date: date | None = Field(default=None)
    registration_number: str | None = Field(default=None, max_length=64)
    last_updated: datetime | None = Field(
        default_factory=get_datetime_utc,
        sa_type=DateTime(timezone=True),  # type: ignore
    )
    created_at: datetime | None = Field(
        default_factory=get_datetime_utc,
        sa_type=DateTime(timezone=True),  # type: ignore
    )

    timeline_events: list["TimelineEvent"] = Relationship(
        back_populates="application", cascade_delete=True
    )


class TimelineEventCreate(SQLModel):
    event: str = Field(min_length=1, max_length=2000)
    type: TimelineEventType = TimelineEventType.ACTION


class TimelineEvent(SQLModel, table=True):
    __tablename__ = "timeline_events"

    id: int | None = Field(default=None, primary_key=True)
    event: str = Field(max_length=2000)
    type: str = Field(default=TimelineEventType.ACTION.value, max_length=16)
    created_at: datetime | None = Field(
        default_factory=get_datetime_utc,
        sa_type=DateTime(timezone=True),  # type: ignore
    )
    application_id: str = Field(
        foreign_key="applications.id", nullable=False, ondelete="CASCADE", index=True
    )

    application: Application | None = Relationship(back_populates="timeline_events")


class TimelineEventPublic(SQLModel):
    id: int
    application_id: str
    event: str
    type: TimelineEventType
    created_at: datetime | None = None


# Store-managed counter backing the human-readable application ids
class ApplicationIdSequence(SQLModel, table=True):
    __tablename__ = "application_id_sequence"
    __table_args__ = {"sqlite_autoincrement": True}

    id: int | None = Field(default=None, primary_key=True)


# Dashboard view model, camelCase on the wire
class TimelineEntryPublic(BaseModel):
    date: str | None = None
    event: str
    type: str


class ApplicationDashboardPublic(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    name: str
    email: str
    phone: str = ""
    dob: str | None = None
    ni_number: str | None = None
    stage: str
    start_date: str | None = None
    registration_date: str | None = None
    registration_number: str | None = None
    last_updated: str | None = None
    days_in_stage: int = 0
    risk: str
    progress: int
    premises_type: str | None = None
    premises_address: str = ""
    premises_details: dict[str, Any] | None = None
    local_authority: str = ""
    registers: list[Any] = []
    service: Any = None
    checks: dict[str, Any] = {}
    connected_persons: list[Any] = []
    ofsted_check: dict[str, Any] | None = None
    household: Any = None
    timeline: list[TimelineEntryPublic] = []


# Generic message
class Message(SQLModel):
    message: str
