import asyncio
import uuid

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from lab_booking.core.db import atomic
from lab_booking.core.exceptions import (
    AuthorizationError,
    DuplicateBookingError,
    InactiveSlotError,
    NoOpError,
    NotFoundError,
    SlotFullError,
)
from lab_booking.models import Booking
from lab_booking.repositories.booking import booking_repository
from lab_booking.services.booking_ledger import (
    booking_ledger,
    is_active_booking_conflict,
)
from lab_booking.services.slot_store import slot_store
from lab_booking.utils.enums import BookingStatus


async def _booked(session, slot_id) -> int:
    slot = await slot_store.get_slot(session, slot_id)
    return slot.current_bookings


async def _confirmed(session, slot_id) -> int:
    return await session.scalar(
        select(func.count())
        .select_from(Booking)
        .where(
            Booking.slot_id == slot_id,
            Booking.status == BookingStatus.CONFIRMED,
        ),
    )


class TestCreateBooking:
    @pytest.mark.asyncio
    async def test_full_booking_cycle(
        self, session, create_slot, make_student,
    ):
        # Given: занятие на два места
        slot = await create_slot(max_students=2)
        slot_id = slot.id
        student_a = make_student('s-a')
        student_b = make_student('s-b')
        student_c = make_student('s-c')

        # When / Then: A записывается
        booking_a = await booking_ledger.create_booking(
            session,
            slot_id,
            student_a,
        )
        booking_a_id = booking_a.id
        assert booking_a.status == BookingStatus.CONFIRMED
        assert await _booked(session, slot_id) == 1

        # повторная запись A отклоняется
        with pytest.raises(DuplicateBookingError):
            await booking_ledger.create_booking(session, slot_id, student_a)
        assert await _booked(session, slot_id) == 1

        # B занимает последнее место
        await booking_ledger.create_booking(session, slot_id, student_b)
        assert await _booked(session, slot_id) == 2

        # C не помещается
        with pytest.raises(SlotFullError):
            await booking_ledger.create_booking(session, slot_id, student_c)

        # A отменяет запись и освобождает место
        await booking_ledger.cancel_booking(session, booking_a_id, 's-a')
        assert await _booked(session, slot_id) == 1

        # теперь C записывается
        booking_c = await booking_ledger.create_booking(
            session,
            slot_id,
            student_c,
        )
        assert booking_c.status == BookingStatus.CONFIRMED
        assert await _booked(session, slot_id) == 2

    @pytest.mark.asyncio
    async def test_booking_carries_student_and_slot(
        self,
        session,
        create_slot,
        make_student,
    ):
        slot = await create_slot()

        booking = await booking_ledger.create_booking(
            session,
            slot.id,
            make_student('s-1'),
            notes='Опоздаю на 5 минут',
        )

        assert booking.student_id == 's-1'
        assert booking.student_name == 'Студент s-1'
        assert booking.notes == 'Опоздаю на 5 минут'
        assert booking.slot.id == slot.id
        assert booking.slot.topic == 'Титрование'
        assert booking.cancelled_at is None

    @pytest.mark.asyncio
    async def test_unknown_slot(self, session, make_student):
        with pytest.raises(NotFoundError):
            await booking_ledger.create_booking(
                session,
                uuid.uuid4(),
                make_student('s-1'),
            )

    @pytest.mark.asyncio
    async def test_inactive_slot(
        self,
        session,
        create_slot,
        teacher,
        make_student,
    ):
        slot = await create_slot()
        slot_id = slot.id
        await slot_store.set_active(session, slot_id, teacher.id, False)

        with pytest.raises(InactiveSlotError):
            await booking_ledger.create_booking(
                session,
                slot_id,
                make_student('s-1'),
            )
        assert await _booked(session, slot_id) == 0

    @pytest.mark.asyncio
    async def test_deleted_slot_is_not_found(
        self,
        session,
        create_slot,
        teacher,
        make_student,
    ):
        slot = await create_slot()
        slot_id = slot.id
        await slot_store.delete_slot(session, slot_id, teacher.id)

        with pytest.raises(NotFoundError):
            await booking_ledger.create_booking(
                session,
                slot_id,
                make_student('s-1'),
            )

    @pytest.mark.asyncio
    async def test_rebooking_after_cancel_is_allowed(
        self,
        session,
        create_slot,
        make_student,
    ):
        slot = await create_slot()
        slot_id = slot.id
        student = make_student('s-1')
        first = await booking_ledger.create_booking(session, slot_id, student)
        await booking_ledger.cancel_booking(session, first.id, student.id)

        second = await booking_ledger.create_booking(session, slot_id, student)

        assert second.id != first.id
        history = await booking_ledger.list_for_student(session, student.id)
        assert [booking.status for booking in history] == [
            BookingStatus.CONFIRMED,
            BookingStatus.CANCELLED,
        ]

    @pytest.mark.asyncio
    async def test_level_is_not_checked_on_booking(
        self,
        session,
        create_slot,
        make_student,
    ):
        slot = await create_slot(level=5)

        booking = await booking_ledger.create_booking(
            session,
            slot.id,
            make_student('s-1', level=1),
        )

        assert booking.status == BookingStatus.CONFIRMED

    @pytest.mark.asyncio
    async def test_unique_index_conflict_becomes_duplicate(
        self,
        session,
        create_slot,
        make_student,
        monkeypatch,
    ):
        # Given: подтверждённая запись уже в БД, но проверка её не находит
        slot = await create_slot()
        slot_id = slot.id
        async with atomic(session):
            await booking_repository.add(
                session,
                Booking(
                    slot_id=slot_id,
                    student_id='s-1',
                    student_name='Студент s-1',
                    status=BookingStatus.CONFIRMED,
                ),
            )

        async def no_active_booking(*args, **kwargs):
            return None

        monkeypatch.setattr(
            booking_repository,
            'get_active',
            no_active_booking,
        )

        # When: повторная запись упирается в уникальный индекс
        with pytest.raises(DuplicateBookingError):
            await booking_ledger.create_booking(
                session,
                slot_id,
                make_student('s-1'),
            )

        # Then: место, занятое в откатанной транзакции, возвращено
        assert await _booked(session, slot_id) == 0
        assert await _confirmed(session, slot_id) == 1

    @pytest.mark.asyncio
    async def test_other_integrity_errors_are_not_masked(
        self,
        session,
        create_slot,
        make_student,
        monkeypatch,
    ):
        slot = await create_slot()
        slot_id = slot.id

        async def failing_add(*args, **kwargs):
            raise IntegrityError(
                'INSERT INTO booking',
                {},
                Exception('NOT NULL constraint failed: booking.student_name'),
            )

        monkeypatch.setattr(booking_repository, 'add', failing_add)

        with pytest.raises(IntegrityError):
            await booking_ledger.create_booking(
                session,
                slot_id,
                make_student('s-1'),
            )

        assert await _booked(session, slot_id) == 0


class TestCancelBooking:
    @pytest.mark.asyncio
    async def test_release_on_empty_slot_keeps_zero(
        self,
        session,
        create_slot,
    ):
        slot = await create_slot()
        slot_id = slot.id

        async with atomic(session):
            await slot_store.decrement_booked(session, slot_id)

        assert await _booked(session, slot_id) == 0

    @pytest.mark.asyncio
    async def test_cancel_frees_seat_and_keeps_record(
        self,
        session,
        create_slot,
        make_student,
    ):
        slot = await create_slot()
        slot_id = slot.id
        booking = await booking_ledger.create_booking(
            session,
            slot_id,
            make_student('s-1'),
        )

        cancelled = await booking_ledger.cancel_booking(
            session,
            booking.id,
            's-1',
        )

        assert cancelled.status == BookingStatus.CANCELLED
        assert cancelled.cancelled_at is not None
        assert await _booked(session, slot_id) == 0
        assert await booking_ledger.list_for_slot(session, slot_id) == []

    @pytest.mark.asyncio
    async def test_second_cancel_is_noop(
        self,
        session,
        create_slot,
        make_student,
    ):
        slot = await create_slot()
        slot_id = slot.id
        booking = await booking_ledger.create_booking(
            session,
            slot_id,
            make_student('s-1'),
        )
        booking_id = booking.id
        await booking_ledger.cancel_booking(session, booking_id, 's-1')

        with pytest.raises(NoOpError):
            await booking_ledger.cancel_booking(session, booking_id, 's-1')

        # счётчик не ушёл в минус
        assert await _booked(session, slot_id) == 0
        stored = await booking_ledger.get_booking(session, booking_id)
        assert stored.status == BookingStatus.CANCELLED

    @pytest.mark.asyncio
    async def test_foreign_booking(self, session, create_slot, make_student):
        slot = await create_slot()
        slot_id = slot.id
        booking = await booking_ledger.create_booking(
            session,
            slot_id,
            make_student('s-1'),
        )

        with pytest.raises(AuthorizationError):
            await booking_ledger.cancel_booking(session, booking.id, 's-2')

        assert await _booked(session, slot_id) == 1

    @pytest.mark.asyncio
    async def test_unknown_booking(self, session):
        with pytest.raises(NotFoundError):
            await booking_ledger.cancel_booking(session, uuid.uuid4(), 's-1')


class TestRoster:
    @pytest.mark.asyncio
    async def test_roster_in_booking_order(
        self,
        session,
        create_slot,
        make_student,
    ):
        slot = await create_slot(max_students=5)
        slot_id = slot.id
        for student_id in ('s-3', 's-1', 's-2'):
            await booking_ledger.create_booking(
                session,
                slot_id,
                make_student(student_id),
            )

        roster = await booking_ledger.list_for_slot(session, slot_id)

        assert [entry.student_id for entry in roster] == ['s-3', 's-1', 's-2']

    @pytest.mark.asyncio
    async def test_roster_only_for_owner(
        self,
        session,
        create_slot,
        teacher,
        other_teacher,
    ):
        slot = await create_slot()
        slot_id = slot.id

        assert await booking_ledger.list_for_slot(
            session,
            slot_id,
            teacher.id,
        ) == []
        with pytest.raises(AuthorizationError):
            await booking_ledger.list_for_slot(
                session,
                slot_id,
                other_teacher.id,
            )

    @pytest.mark.asyncio
    async def test_admin_listing(self, session, create_slot, make_student):
        slot = await create_slot()
        slot_id = slot.id
        kept = await booking_ledger.create_booking(
            session,
            slot_id,
            make_student('s-1'),
        )
        dropped = await booking_ledger.create_booking(
            session,
            slot_id,
            make_student('s-2'),
        )
        await booking_ledger.cancel_booking(session, dropped.id, 's-2')

        active = await booking_ledger.list_all(session)
        everything = await booking_ledger.list_all(session, show_all=True)

        assert [booking.id for booking in active] == [kept.id]
        assert {booking.id for booking in everything} == {kept.id, dropped.id}


class TestConcurrency:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(('capacity', 'students'), [(1, 2), (3, 10)])
    async def test_parallel_bookings_never_overbook(
        self,
        session_factory,
        create_slot,
        make_student,
        capacity,
        students,
    ):
        # Given: занятие на capacity мест и students желающих
        slot = await create_slot(max_students=capacity)
        slot_id = slot.id

        async def attempt(student_id: str):
            async with session_factory() as own_session:
                return await booking_ledger.create_booking(
                    own_session,
                    slot_id,
                    make_student(student_id),
                )

        # When: все записываются одновременно
        results = await asyncio.gather(
            *(attempt(f's-{number}') for number in range(students)),
            return_exceptions=True,
        )

        # Then: ровно capacity успехов, остальные получили SlotFullError
        succeeded = [r for r in results if not isinstance(r, Exception)]
        failed = [r for r in results if isinstance(r, Exception)]
        assert len(succeeded) == capacity
        assert len(failed) == students - capacity
        assert all(isinstance(error, SlotFullError) for error in failed)
        async with session_factory() as check_session:
            assert await _booked(check_session, slot_id) == capacity
            assert await _confirmed(
                check_session,
                slot_id,
            ) == capacity

    @pytest.mark.asyncio
    async def test_cancel_and_book_race_keeps_counter(
        self,
        session_factory,
        create_slot,
        make_student,
    ):
        # Given: заполненное занятие на одно место
        slot = await create_slot(max_students=1)
        slot_id = slot.id
        async with session_factory() as setup_session:
            booking = await booking_ledger.create_booking(
                setup_session,
                slot_id,
                make_student('s-1'),
            )
            booking_id = booking.id

        async def cancel():
            async with session_factory() as own_session:
                return await booking_ledger.cancel_booking(
                    own_session,
                    booking_id,
                    's-1',
                )

        async def book():
            async with session_factory() as own_session:
                return await booking_ledger.create_booking(
                    own_session,
                    slot_id,
                    make_student('s-2'),
                )

        # When: отмена и новая запись идут параллельно
        results = await asyncio.gather(
            cancel(), book(), return_exceptions=True,
        )

        # Then: отмена прошла, новая запись либо прошла, либо не поместилась
        assert not isinstance(results[0], Exception)
        assert results[1] is not None
        async with session_factory() as check_session:
            booked = await _booked(check_session, slot_id)
            confirmed = await _confirmed(
                check_session,
                slot_id,
            )
        assert booked == confirmed
        assert booked in (0, 1)
        if isinstance(results[1], Exception):
            assert isinstance(results[1], SlotFullError)
            assert booked == 0
        else:
            assert booked == 1


class UniqueViolation(Exception):
    constraint_name = 'uq_booking_active_student_slot'


class ForeignKeyViolation(Exception):
    constraint_name = 'booking_slot_id_fkey'


def _integrity_error(message, cause=None) -> IntegrityError:
    orig = Exception(message)
    orig.__cause__ = cause
    return IntegrityError('INSERT INTO booking', {}, orig)


class TestIntegrityErrorMapping:
    @pytest.mark.parametrize(
        ('error', 'expected'),
        [
            (
                _integrity_error(
                    'UNIQUE constraint failed: '
                    'booking.student_id, booking.slot_id',
                ),
                True,
            ),
            (
                _integrity_error(
                    'duplicate key value',
                    UniqueViolation('duplicate key value'),
                ),
                True,
            ),
            (
                _integrity_error(
                    'violates foreign key constraint',
                    ForeignKeyViolation('violates foreign key constraint'),
                ),
                False,
            ),
            (
                _integrity_error('CHECK constraint failed: ck_slot_interval'),
                False,
            ),
        ],
        ids=['sqlite-unique', 'postgres-unique', 'foreign-key', 'check'],
    )
    def test_only_active_booking_index_is_duplicate(self, error, expected):
        assert is_active_booking_conflict(error) is expected
