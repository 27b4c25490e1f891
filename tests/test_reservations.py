from datetime import time, timedelta

import pytest

from clinic_scheduling.core.errors import ConflictError, NotFoundError, ValidationError
from clinic_scheduling.models import ReservationStatus, SlotReservation, Weekday
from clinic_scheduling.services import reservation_service as svc
from clinic_scheduling.services.availability_service import get_available_slots
from factories import MONDAY, add_appointment, add_pet, add_practitioner, add_reservation, add_weekly


@pytest.fixture
async def practitioner_id(session):
    practitioner = await add_practitioner(session)
    await add_weekly(session, practitioner.id, Weekday.MONDAY)
    return practitioner.id


async def _hold(session, practitioner_id, at="10:00", session_id="tab-a", **kwargs) -> SlotReservation:
    return await svc.create_reservation(
        session, practitioner_id, MONDAY, time.fromisoformat(at), 30, session_id, **kwargs
    )


class TestCreate:
    async def test_new_hold_is_pending_for_the_hold_window(self, session, practitioner_id):
        now = svc.utc_now()
        reservation = await _hold(session, practitioner_id, now=now)

        assert reservation.status == ReservationStatus.PENDING
        assert reservation.expires_at == now + timedelta(minutes=5)
        assert svc.to_public(reservation, now).expires_in_seconds == 300

    async def test_same_session_same_slot_extends(self, session, practitioner_id):
        now = svc.utc_now()
        first = await _hold(session, practitioner_id, now=now)
        again = await _hold(session, practitioner_id, now=now + timedelta(minutes=2))

        assert again.id == first.id
        assert again.expires_at == now + timedelta(minutes=7)

    async def test_other_session_cannot_hold_an_overlapping_slot(self, session, practitioner_id):
        await _hold(session, practitioner_id)

        with pytest.raises(ConflictError) as exc_info:
            await _hold(session, practitioner_id, at="10:15", session_id="tab-b")
        assert exc_info.value.code == "SLOT_BEING_RESERVED"

        adjacent = await _hold(session, practitioner_id, at="10:30", session_id="tab-b")
        assert adjacent.status == ReservationStatus.PENDING

    async def test_picking_another_time_releases_the_previous_hold(self, session, practitioner_id):
        first = await _hold(session, practitioner_id)
        second = await _hold(session, practitioner_id, at="11:00")

        assert first.status == ReservationStatus.RELEASED
        assert [r.id for r in await svc.list_active_reservations(session, practitioner_id, MONDAY)] == [second.id]

    async def test_booked_slot_cannot_be_held(self, session, practitioner_id):
        pet = await add_pet(session)
        await add_appointment(session, practitioner_id, pet.id, MONDAY, "09:45")

        with pytest.raises(ConflictError) as exc_info:
            await _hold(session, practitioner_id)
        assert exc_info.value.code == "SLOT_ALREADY_BOOKED"

    async def test_lapsed_hold_is_expired_and_no_longer_blocks(self, session, practitioner_id):
        stale = await add_reservation(
            session, practitioner_id, MONDAY, "10:00", session_id="tab-b", expires_in=timedelta(seconds=-5)
        )

        reservation = await _hold(session, practitioner_id)
        await session.refresh(stale)

        assert reservation.session_id == "tab-a"
        assert stale.status == ReservationStatus.EXPIRED

    @pytest.mark.parametrize(
        "args",
        [
            ("10:00", 0, "tab-a"),
            ("23:45", 30, "tab-a"),
            ("10:00", 30, "  "),
        ],
    )
    async def test_invalid_input(self, session, practitioner_id, args):
        at, duration, session_id = args
        with pytest.raises(ValidationError):
            await svc.create_reservation(
                session, practitioner_id, MONDAY, time.fromisoformat(at), duration, session_id
            )

    async def test_unbookable_practitioner(self, session):
        practitioner = await add_practitioner(session, is_bookable=False)
        with pytest.raises(ValidationError) as exc_info:
            await _hold(session, practitioner.id)
        assert exc_info.value.code == "PRACTITIONER_NOT_BOOKABLE"

    async def test_unknown_practitioner(self, session):
        with pytest.raises(NotFoundError):
            await _hold(session, 404)


class TestLifecycle:
    async def test_extend(self, session, practitioner_id):
        now = svc.utc_now()
        reservation = await _hold(session, practitioner_id, now=now)

        extended = await svc.extend_reservation(
            session, reservation.id, "tab-a", now=now + timedelta(minutes=4)
        )

        assert extended.expires_at == now + timedelta(minutes=9)

    async def test_confirm(self, session, practitioner_id):
        reservation = await _hold(session, practitioner_id)

        confirmed = await svc.confirm_reservation(session, reservation.id, "tab-a")

        assert confirmed.status == ReservationStatus.CONFIRMED
        assert confirmed.confirmed_at is not None
        with pytest.raises(NotFoundError):
            await svc.confirm_reservation(session, reservation.id, "tab-a")

    async def test_another_session_cannot_touch_the_hold(self, session, practitioner_id):
        reservation = await _hold(session, practitioner_id)

        with pytest.raises(NotFoundError) as exc_info:
            await svc.extend_reservation(session, reservation.id, "tab-b")
        assert exc_info.value.code == "RESERVATION_NOT_FOUND"
        assert await svc.release_reservation(session, reservation.id, "tab-b") is False

    async def test_expired_hold_cannot_be_confirmed(self, session, practitioner_id):
        now = svc.utc_now()
        reservation = await _hold(session, practitioner_id, now=now)

        with pytest.raises(ConflictError) as exc_info:
            await svc.confirm_reservation(session, reservation.id, "tab-a", now=now + timedelta(minutes=6))
        assert exc_info.value.code == "RESERVATION_EXPIRED"

    async def test_release(self, session, practitioner_id):
        reservation = await _hold(session, practitioner_id)

        assert await svc.release_reservation(session, reservation.id, "tab-a") is True
        assert await svc.release_reservation(session, reservation.id, "tab-a") is False
        assert await svc.list_active_reservations(session, practitioner_id, MONDAY) == []

    async def test_release_session(self, session, practitioner_id):
        other = await add_practitioner(session, "Dr. Haddad")
        await _hold(session, practitioner_id)
        await svc.create_reservation(session, other.id, MONDAY, time(9, 0), 30, "tab-a")
        await _hold(session, practitioner_id, at="15:00", session_id="tab-b")

        assert await svc.release_session_reservations(session, "tab-a") == 2
        remaining = await svc.list_active_reservations(session, practitioner_id, MONDAY)
        assert [r.session_id for r in remaining] == ["tab-b"]

    async def test_expire_stale(self, session, practitioner_id):
        await add_reservation(session, practitioner_id, MONDAY, "09:00", expires_in=timedelta(seconds=-1))
        await add_reservation(session, practitioner_id, MONDAY, "11:00")

        assert await svc.expire_stale_reservations(session) == 1
        assert await svc.expire_stale_reservations(session) == 0


class TestAvailabilityWithHolds:
    async def test_other_sessions_holds_are_not_offered(self, session, practitioner_id):
        await add_reservation(session, practitioner_id, MONDAY, "10:00", session_id="tab-b")

        theirs = await get_available_slots(session, practitioner_id, MONDAY, 30)
        mine = await get_available_slots(session, practitioner_id, MONDAY, 30, reservation_session_id="tab-b")

        assert "10:00" not in theirs.slots
        assert "10:00" in mine.slots

    async def test_lapsed_hold_is_offered_again(self, session, practitioner_id):
        await add_reservation(session, practitioner_id, MONDAY, "10:00", expires_in=timedelta(seconds=-1))

        result = await get_available_slots(session, practitioner_id, MONDAY, 30)

        assert "10:00" in result.slots
