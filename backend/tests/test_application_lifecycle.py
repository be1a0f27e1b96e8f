"""
Application lifecycle: transition table and service-level rules.
"""
from datetime import datetime, timedelta, timezone

import pytest

from backend.app.database import build_engine, build_session_factory, init_db
from backend.app.models.application import Application, ApplicationStatus
from backend.app.models.job import Job
from backend.app.models.user import User
from backend.app.services import application_service
from backend.app.services.application_service import ALLOWED_TRANSITIONS, can_transition, check_transition
from backend.app.utils.error_handlers import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)


@pytest.fixture()
def db(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'lifecycle.sqlite3'}")
    init_db(engine)
    session = build_session_factory(engine)()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


def _user(db, username: str, role: str, profile_data: dict | None = None) -> User:
    user = User(
        username=username,
        email=f"{username}@example.com",
        password="not-a-real-hash",
        role=role,
        profile_data=profile_data,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def _job(db, employer: User, **overrides) -> Job:
    values = dict(
        employer_id=employer.id,
        title="Backend Engineer",
        company="Acme",
        location="Berlin",
        job_type="full-time",
        description="Build and run the APIs behind the product.",
        skills=["Python", "SQL"],
        status="published",
    )
    values.update(overrides)
    job = Job(**values)
    db.add(job)
    db.commit()
    db.refresh(job)
    return job


class TestTransitionTable:
    def test_forward_path(self):
        path = ["pending", "reviewing", "interview", "offer", "hired"]
        for current, target in zip(path, path[1:]):
            assert check_transition(current, target) == ApplicationStatus(target)

    def test_rejection_allowed_from_every_open_state(self):
        for current in ("pending", "reviewing", "interview", "offer"):
            assert check_transition(current, "rejected") == ApplicationStatus.REJECTED

    def test_terminal_states(self):
        assert ALLOWED_TRANSITIONS[ApplicationStatus.HIRED] == frozenset()
        assert ALLOWED_TRANSITIONS[ApplicationStatus.REJECTED] == frozenset()
        for terminal in ("hired", "rejected"):
            for target in ApplicationStatus:
                with pytest.raises(ValidationError):
                    check_transition(terminal, target.value)

    def test_skips_and_self_transitions_fail(self):
        assert not can_transition(ApplicationStatus.PENDING, ApplicationStatus.OFFER)
        assert not can_transition(ApplicationStatus.PENDING, ApplicationStatus.PENDING)
        with pytest.raises(ValidationError) as exc:
            check_transition("pending", "offer")
        assert exc.value.status_code == 400
        assert exc.value.errors[0]["field"] == "status"

        with pytest.raises(ValidationError):
            check_transition("reviewing", "reviewing")

    def test_unknown_status_fails(self):
        with pytest.raises(ValidationError):
            check_transition("pending", "promoted")
        with pytest.raises(ValidationError):
            check_transition("pending", "")

    def test_status_is_case_insensitive(self):
        assert check_transition("pending", " Reviewing ") == ApplicationStatus.REVIEWING


class TestApply:
    def test_creates_pending_application(self, db):
        employer = _user(db, "emp", "employer")
        seeker = _user(db, "seeker", "job_seeker", {"skills": ["python"]})
        job = _job(db, employer)

        application = application_service.apply(db, candidate=seeker, job_id=job.id, cover_letter="  Hello  ")
        assert application.status == "pending"
        assert application.cover_letter == "Hello"
        assert application.match_score == 50

    def test_duplicate_is_conflict(self, db):
        employer = _user(db, "emp", "employer")
        seeker = _user(db, "seeker", "job_seeker")
        job = _job(db, employer)

        application_service.apply(db, candidate=seeker, job_id=job.id)
        with pytest.raises(ConflictError):
            application_service.apply(db, candidate=seeker, job_id=job.id)
        assert db.query(Application).count() == 1

    def test_unique_constraint_maps_to_conflict(self, db, monkeypatch):
        employer = _user(db, "emp", "employer")
        seeker = _user(db, "seeker", "job_seeker")
        job = _job(db, employer)
        db.add(Application(job_id=job.id, candidate_id=seeker.id, status="pending"))
        db.commit()

        # Simulate losing the race: the pre-check sees nothing.
        original_query = db.query

        def query_without_precheck(*entities):
            if len(entities) == 1 and entities[0] is Application.id:
                return original_query(Application.id).filter(Application.id < 0)
            return original_query(*entities)

        monkeypatch.setattr(db, "query", query_without_precheck)
        with pytest.raises(ConflictError):
            application_service.apply(db, candidate=seeker, job_id=job.id)

    def test_wrong_role_is_unauthorized(self, db):
        employer = _user(db, "emp", "employer")
        job = _job(db, employer)
        with pytest.raises(UnauthorizedError):
            application_service.apply(db, candidate=employer, job_id=job.id)

    def test_missing_job_is_not_found(self, db):
        seeker = _user(db, "seeker", "job_seeker")
        with pytest.raises(NotFoundError):
            application_service.apply(db, candidate=seeker, job_id=12345)

    def test_past_deadline_rejected(self, db):
        employer = _user(db, "emp", "employer")
        seeker = _user(db, "seeker", "job_seeker")
        job = _job(db, employer, deadline=datetime.now(timezone.utc) - timedelta(hours=1))
        with pytest.raises(ValidationError):
            application_service.apply(db, candidate=seeker, job_id=job.id)

    def test_future_deadline_accepted(self, db):
        employer = _user(db, "emp", "employer")
        seeker = _user(db, "seeker", "job_seeker")
        job = _job(db, employer, deadline=datetime.now(timezone.utc) + timedelta(days=3))
        assert application_service.apply(db, candidate=seeker, job_id=job.id).id is not None


class TestTransitionAndWithdraw:
    def test_owner_moves_status_and_refreshes_updated_at(self, db):
        employer = _user(db, "emp", "employer")
        seeker = _user(db, "seeker", "job_seeker")
        job = _job(db, employer)
        application = application_service.apply(db, candidate=seeker, job_id=job.id)
        before = application.updated_at

        moved = application_service.transition_status(
            db, application_id=application.id, caller=employer, new_status="reviewing"
        )
        assert moved.status == "reviewing"
        assert moved.updated_at >= before

    def test_non_owner_is_forbidden_and_nothing_changes(self, db):
        owner = _user(db, "owner", "employer")
        other = _user(db, "other", "employer")
        seeker = _user(db, "seeker", "job_seeker")
        job = _job(db, owner)
        application = application_service.apply(db, candidate=seeker, job_id=job.id)

        with pytest.raises(ForbiddenError):
            application_service.transition_status(db, application_id=application.id, caller=other, new_status="reviewing")
        db.refresh(application)
        assert application.status == "pending"

    def test_invalid_transition_is_not_persisted(self, db):
        employer = _user(db, "emp", "employer")
        seeker = _user(db, "seeker", "job_seeker")
        job = _job(db, employer)
        application = application_service.apply(db, candidate=seeker, job_id=job.id)

        with pytest.raises(ValidationError):
            application_service.transition_status(db, application_id=application.id, caller=employer, new_status="hired")
        db.refresh(application)
        assert application.status == "pending"

    def test_missing_application_is_not_found(self, db):
        employer = _user(db, "emp", "employer")
        with pytest.raises(NotFoundError):
            application_service.transition_status(db, application_id=999, caller=employer, new_status="reviewing")

    def test_withdraw_other_candidate_is_forbidden(self, db):
        employer = _user(db, "emp", "employer")
        c1 = _user(db, "c1", "job_seeker")
        c2 = _user(db, "c2", "job_seeker")
        job = _job(db, employer)
        application_service.apply(db, candidate=c1, job_id=job.id)

        with pytest.raises(ForbiddenError):
            application_service.withdraw(db, caller=c2, job_id=job.id, candidate_id=c1.id)
        assert db.query(Application).count() == 1

    def test_withdraw_from_any_state(self, db):
        employer = _user(db, "emp", "employer")
        seeker = _user(db, "seeker", "job_seeker")
        job = _job(db, employer)
        application = application_service.apply(db, candidate=seeker, job_id=job.id)
        application_service.transition_status(db, application_id=application.id, caller=employer, new_status="rejected")

        application_service.withdraw(db, caller=seeker, job_id=job.id, candidate_id=seeker.id)
        assert db.query(Application).count() == 0
        with pytest.raises(NotFoundError):
            application_service.withdraw(db, caller=seeker, job_id=job.id, candidate_id=seeker.id)


class TestListings:
    def test_rows_with_missing_join_are_omitted(self, db):
        employer = _user(db, "emp", "employer")
        seeker = _user(db, "seeker", "job_seeker")
        job = _job(db, employer)
        kept = Application(id=1, job_id=job.id, candidate_id=seeker.id, status="pending")
        orphan = Application(id=2, job_id=job.id, candidate_id=9999, status="pending")
        jobless = Application(id=3, job_id=9999, candidate_id=seeker.id, status="pending")

        rows = application_service._with_details([(kept, job, seeker), (orphan, job, None), (jobless, None, seeker)])
        assert [a.id for a, _, _ in rows] == [1]

    def test_list_by_employer_spans_postings(self, db):
        employer = _user(db, "emp", "employer")
        seeker = _user(db, "seeker", "job_seeker")
        first = _job(db, employer, title="First")
        second = _job(db, employer, title="Second")
        application_service.apply(db, candidate=seeker, job_id=first.id)
        application_service.apply(db, candidate=seeker, job_id=second.id)

        rows = application_service.list_by_employer(db, employer_id=employer.id, caller=employer)
        assert {job.title for _, job, _ in rows} == {"First", "Second"}
