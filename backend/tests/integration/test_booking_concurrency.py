"""Overlapping booking requests racing on separate sessions."""

from typing import Iterator, List, Tuple
from unittest.mock import patch

import pytest
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from app.core.enums import ACTIVE_BOOKING_STATUSES, BookingType, RoleName
from app.core.exceptions import BookingConflictException, RepositoryException
from app.database import Base, enable_sqlite_write_locks
from app.models.booking import Booking
from app.models.user import User
from app.repositories.user_repository import UserRepository
from app.schemas.booking import BookingCreate
from app.services.booking_service import BookingService
from tests.helpers import HOUR, NOW, TUESDAY_1300_UTC, book, principal_for

pytestmark = pytest.mark.integration


@pytest.fixture
def file_engine(tmp_path) -> Iterator[Engine]:
    engine = create_engine(
        f"sqlite:///{tmp_path / 'bookings.db'}",
        connect_args={"check_same_thread": False, "timeout": 0.2},
    )
    enable_sqlite_write_locks(engine)
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(file_engine):
    return sessionmaker(bind=file_engine, autoflush=False, expire_on_commit=False)


@pytest.fixture
def parties(session_factory) -> Tuple[User, User, User]:
    session = session_factory()
    try:
        student = User(name="Sam Student", email="sam@example.com", role=RoleName.STUDENT.value)
        rival = User(name="Olive Other", email="olive@example.com", role=RoleName.STUDENT.value)
        tutor = User(name="Tara Tutor", email="tara@example.com", role=RoleName.TUTOR.value)
        session.add_all([student, rival, tutor])
        session.commit()
        return student, rival, tutor
    finally:
        session.close()


def _free_session(tutor: User, timestamp: int = TUESDAY_1300_UTC) -> BookingCreate:
    return BookingCreate(counterpart_id=tutor.id, timestamp=timestamp, booking_type=BookingType.FREE)


def _active_bookings_for(session_factory, tutor: User) -> List[Booking]:
    session = session_factory()
    try:
        return (
            session.query(Booking)
            .filter(
                Booking.to_user_id == tutor.id,
                Booking.status.in_([s.value for s in ACTIVE_BOOKING_STATUSES]),
            )
            .all()
        )
    finally:
        session.close()


class TestConcurrentCreation:
    def test_second_writer_cannot_slip_in_between_scan_and_insert(self, session_factory, parties):
        student, rival, tutor = parties
        first = session_factory()
        second = session_factory()
        first_service = BookingService(first)
        real_create = first_service.repository.create
        rival_errors: List[Exception] = []

        def insert_after_rival_attempt(**kwargs):
            # The first transaction has already scanned for conflicts here
            try:
                BookingService(second).create_booking(
                    principal_for(rival), _free_session(tutor), now_ms=NOW
                )
            except RepositoryException as exc:
                rival_errors.append(exc)
            return real_create(**kwargs)

        try:
            with patch.object(first_service.repository, "create", side_effect=insert_after_rival_attempt):
                booking = first_service.create_booking(
                    principal_for(student), _free_session(tutor), now_ms=NOW
                )
        finally:
            first.close()
            second.close()

        assert len(rival_errors) == 1
        active = _active_bookings_for(session_factory, tutor)
        assert [b.id for b in active] == [booking.id]
        assert active[0].from_user_id == student.id

    def test_retry_after_first_commit_sees_the_booking(self, session_factory, parties):
        student, rival, tutor = parties
        first = session_factory()
        try:
            BookingService(first).create_booking(principal_for(student), _free_session(tutor), now_ms=NOW)
        finally:
            first.close()

        retry = session_factory()
        try:
            with pytest.raises(BookingConflictException):
                BookingService(retry).create_booking(
                    principal_for(rival), _free_session(tutor), now_ms=NOW
                )
            BookingService(retry).create_booking(
                principal_for(rival), _free_session(tutor, TUESDAY_1300_UTC + HOUR), now_ms=NOW
            )
        finally:
            retry.close()

        assert len(_active_bookings_for(session_factory, tutor)) == 2


class TestLockUsers:
    def test_locks_each_party_once_in_id_order(self, db, student, tutor):
        locked = UserRepository(db).lock_users([tutor.id, student.id, tutor.id])
        assert [u.id for u in locked] == sorted([student.id, tutor.id])

    def test_create_locks_both_parties(self, db, student, tutor):
        with patch.object(UserRepository, "lock_users", autospec=True) as lock_users:
            book(db, student, tutor)
        (_, locked_ids), _ = lock_users.call_args
        assert set(locked_ids) == {student.id, tutor.id}
