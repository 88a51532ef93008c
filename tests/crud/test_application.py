"""Repository operations against a real (SQLite) database session."""

from concurrent.futures import ThreadPoolExecutor
from datetime import date, timedelta
from pathlib import Path
from typing import Any

import pytest
from sqlalchemy import event
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, SQLModel, create_engine, func, select

from app import crud
from app.models import (
    Application,
    ApplicationIdSequence,
    ApplicationUpdate,
    TimelineEvent,
    TimelineEventType,
)
from app.services import application_builder
from tests.utils.application import (
    create_random_application,
    full_form_payload,
    make_submission,
)


def _timeline_count(db: Session, application_id: str) -> int:
    statement = (
        select(func.count())
        .select_from(TimelineEvent)
        .where(TimelineEvent.application_id == application_id)
    )
    return db.exec(statement).one()


def _application_count(db: Session) -> int:
    return db.exec(select(func.count()).select_from(Application)).one()


class TestCreateApplication:
    def test_new_application_view(self, db: Session) -> None:
        application_id = create_random_application(db)

        view = crud.get_application(session=db, application_id=application_id)
        assert view is not None
        assert view.id == application_id
        assert view.name == "Jane Doe"
        assert view.stage == "new"
        assert view.risk == "low"
        assert view.progress == 0
        assert len(view.checks) == 11
        assert [entry.event for entry in view.timeline] == [
            "Application form submitted",
            "Application started",
        ]
        assert [entry.type for entry in view.timeline] == ["complete", "action"]

    def test_initial_timeline_is_one_second_apart(self, db: Session) -> None:
        application_id = create_random_application(db)
        started, submitted = crud.read_timeline(session=db, application_id=application_id)
        assert (submitted.created_at - started.created_at).total_seconds() == 1

    def test_full_form_derived_fields(self, db: Session) -> None:
        application_id = create_random_application(db, **full_form_payload())

        application = db.get(Application, application_id)
        assert application is not None
        assert application.progress == 18
        assert application.premises_type == "domestic"
        assert application.premises_address == "12 Orchard Way, Leeds, LS1 4AB"
        assert application.premises_details == {
            "sameAsHome": True,
            "outdoorSpace": "Yes",
            "pets": "No",
            "petsDetails": None,
        }
        assert application.local_authority == "Leeds City Council"
        assert application.registers == ["0-5", "5-8"]
        assert application.dob == date(1988, 4, 12)
        assert application.checks is not None
        assert application.checks["dbs"]["certificate"] == "001234567890"
        assert application.connected_persons is not None
        assert [person["id"] for person in application.connected_persons] == [
            "CP-NEW-001",
            "CP-NEW-002",
        ]
        assert application.references_data == full_form_payload()["references"]
        assert application.declaration == {"agreed": True}

    def test_ids_are_unique_and_increasing(self, db: Session) -> None:
        ids = [create_random_application(db) for _ in range(3)]
        assert len(set(ids)) == 3
        sequence = [int(application_id.rsplit("-", 1)[1]) for application_id in ids]
        assert sequence == sorted(sequence)

    def test_id_counter_table_stays_empty(self, db: Session) -> None:
        first = create_random_application(db)
        second = create_random_application(db)
        count = db.exec(select(func.count()).select_from(ApplicationIdSequence)).one()
        assert count == 0
        assert int(second.rsplit("-", 1)[1]) > int(first.rsplit("-", 1)[1])

    def test_concurrent_creates_get_distinct_ids(self, tmp_path: Path) -> None:
        file_engine = create_engine(
            f"sqlite:///{tmp_path / 'concurrent.db'}",
            connect_args={"check_same_thread": False, "timeout": 30},
        )

        # Writers take the database lock up front and queue on the busy timeout.
        @event.listens_for(file_engine, "connect")
        def disable_driver_transactions(dbapi_connection: Any, _: Any) -> None:
            dbapi_connection.isolation_level = None

        @event.listens_for(file_engine, "begin")
        def begin_immediate(connection: Any) -> None:
            connection.exec_driver_sql("BEGIN IMMEDIATE")

        SQLModel.metadata.create_all(file_engine)

        def submit(_: int) -> str:
            with Session(file_engine) as session:
                return create_random_application(session)

        try:
            with ThreadPoolExecutor(max_workers=8) as executor:
                ids = list(executor.map(submit, range(24)))
            with Session(file_engine) as session:
                stored = session.exec(select(Application.id)).all()
        finally:
            file_engine.dispose()

        assert len(set(ids)) == 24
        assert sorted(stored) == sorted(ids)
        numbers = sorted(int(application_id.rsplit("-", 1)[1]) for application_id in ids)
        assert numbers == list(range(1, 25))

    def test_storage_failure_leaves_no_partial_rows(
        self, db: Session, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        def broken_timeline(*, application: Application) -> list[TimelineEvent]:
            # event is NOT NULL, so the insert fails inside the transaction
            return [TimelineEvent(application_id=application.id, event=None, type="action")]

        monkeypatch.setattr(application_builder, "initial_timeline_events", broken_timeline)
        before = _application_count(db)

        with pytest.raises(IntegrityError):
            application_builder.create_application(session=db, submission=make_submission())

        assert _application_count(db) == before


class TestReadApplications:
    def test_missing_application(self, db: Session) -> None:
        assert crud.get_application(session=db, application_id="RK-1999-00000") is None

    def test_newest_first(self, db: Session) -> None:
        older = create_random_application(db, personal={"firstName": "Older"})
        newer = create_random_application(db, personal={"firstName": "Newer"})

        ids = [view.id for view in crud.get_applications(session=db)]
        assert ids.index(newer) < ids.index(older)


class TestUpdateApplication:
    def test_stage_update_changes_only_stage(self, db: Session) -> None:
        application_id = create_random_application(db)
        before = db.get(Application, application_id)
        assert before is not None
        last_updated = before.last_updated
        checks = before.checks

        updated = crud.update_application(
            session=db,
            application_id=application_id,
            application_in=ApplicationUpdate(stage="checks"),
        )
        assert updated is not None
        assert updated.stage == "checks"
        assert updated.risk == "low"
        assert updated.progress == 0
        assert updated.checks == checks
        assert updated.last_updated is not None and last_updated is not None
        assert updated.last_updated >= last_updated

    def test_empty_update_is_a_no_op(self, db: Session) -> None:
        application_id = create_random_application(db)
        result = crud.update_application(
            session=db,
            application_id=application_id,
            application_in=ApplicationUpdate.model_validate({}),
        )
        assert result is None

    def test_unrecognised_fields_are_a_no_op(self, db: Session) -> None:
        application_id = create_random_application(db)
        result = crud.update_application(
            session=db,
            application_id=application_id,
            application_in=ApplicationUpdate.model_validate({"email": "x@y.com"}),
        )
        assert result is None
        application = db.get(Application, application_id)
        assert application is not None
        assert application.email == "jane@example.com"

    def test_unknown_application(self, db: Session) -> None:
        result = crud.update_application(
            session=db,
            application_id="RK-1999-00000",
            application_in=ApplicationUpdate(stage="review"),
        )
        assert result is None

    def test_structured_and_registration_fields(self, db: Session) -> None:
        application_id = create_random_application(db)
        application_in = ApplicationUpdate.model_validate(
            {
                "stage": "registered",
                "progress": 100,
                "checks": {"dbs": {"status": "complete", "date": "2026-03-01"}},
                "connectedPersons": [
                    {"id": "CP-NEW-001", "name": "Omar Khan", "formStatus": "submitted"}
                ],
                "ofstedCheck": {"status": "clear"},
                "registrationDate": "2026-04-01",
                "registrationNumber": "EY123456",
            }
        )
        updated = crud.update_application(
            session=db, application_id=application_id, application_in=application_in
        )
        assert updated is not None
        assert updated.stage == "registered"
        assert updated.progress == 100
        assert updated.checks == {"dbs": {"status": "complete", "date": "2026-03-01"}}
        assert updated.connected_persons is not None
        assert updated.connected_persons[0]["formStatus"] == "submitted"
        assert updated.ofsted_check == {"status": "clear"}
        assert updated.registration_date == date(2026, 4, 1)
        assert updated.registration_number == "EY123456"

    def test_partial_check_record_stored_with_defaults(self, db: Session) -> None:
        application_id = create_random_application(db)
        updated = crud.update_application(
            session=db,
            application_id=application_id,
            application_in=ApplicationUpdate.model_validate(
                {"checks": {"gp_health": {"status": "pending"}}}
            ),
        )
        assert updated is not None
        assert updated.checks == {"gp_health": {"status": "pending", "date": None}}

    def test_null_stage_is_ignored(self, db: Session) -> None:
        application_id = create_random_application(db)
        result = crud.update_application(
            session=db,
            application_id=application_id,
            application_in=ApplicationUpdate.model_validate({"stage": None}),
        )
        assert result is None


class TestDeleteApplication:
    def test_delete_missing(self, db: Session) -> None:
        assert crud.delete_application(session=db, application_id="RK-1999-00000") is False

    def test_delete_cascades_to_timeline(self, db: Session) -> None:
        application_id = create_random_application(db)
        crud.add_timeline_event(session=db, application_id=application_id, event="Note")
        assert _timeline_count(db, application_id) == 3

        assert crud.delete_application(session=db, application_id=application_id) is True
        assert db.get(Application, application_id) is None
        assert _timeline_count(db, application_id) == 0


class TestAddTimelineEvent:
    def test_defaults_to_action(self, db: Session) -> None:
        application_id = create_random_application(db)
        entry = crud.add_timeline_event(
            session=db, application_id=application_id, event="DBS check started"
        )
        assert entry.id is not None
        assert entry.application_id == application_id
        assert entry.event == "DBS check started"
        assert entry.type == "action"
        assert entry.created_at is not None

    def test_appended_event_is_newest_in_view(self, db: Session) -> None:
        application_id = create_random_application(db)
        for entry in crud.read_timeline(session=db, application_id=application_id):
            assert entry.created_at is not None
            entry.created_at -= timedelta(hours=1)
            db.add(entry)
        db.commit()

        crud.add_timeline_event(
            session=db,
            application_id=application_id,
            event="Ofsted check requested",
            type=TimelineEventType.ALERT,
        )
        view = crud.get_application(session=db, application_id=application_id)
        assert view is not None
        assert len(view.timeline) == 3
        assert view.timeline[0].event == "Ofsted check requested"
        assert view.timeline[0].type == "alert"
