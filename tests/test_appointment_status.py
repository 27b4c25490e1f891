from datetime import time

import pytest

from clinic_scheduling.core.errors import InvalidStatusTransitionError, NotFoundError, ValidationError
from clinic_scheduling.models import Appointment, AppointmentStatus
from clinic_scheduling.services.appointment_service import (
    ALLOWED_TRANSITIONS,
    apply_status_transition,
    list_active_appointments,
    list_appointments,
    update_confirmation,
    update_status,
)
from factories import MONDAY, add_appointment, add_pet, add_practitioner

S = AppointmentStatus


def _appointment(status: AppointmentStatus = S.SCHEDULED) -> Appointment:
    return Appointment(
        practitioner_id=1,
        pet_id=1,
        appointment_date=MONDAY,
        appointment_time=time(10, 0),
        visit_type="checkup",
        status=status,
    )


class TestStatusWorkflow:
    def test_happy_path(self):
        appointment = _appointment()
        for target in (S.CHECK_IN, S.IN_PROGRESS, S.COMPLETED):
            apply_status_transition(appointment, target)
        assert appointment.status == S.COMPLETED

    def test_check_in_forces_confirmation(self):
        appointment = _appointment()
        assert appointment.is_confirmed is False
        apply_status_transition(appointment, S.CHECK_IN)
        assert appointment.is_confirmed is True

    @pytest.mark.parametrize("current", [S.SCHEDULED, S.CHECK_IN, S.IN_PROGRESS])
    def test_any_open_state_can_be_cancelled(self, current):
        appointment = _appointment(current)
        apply_status_transition(appointment, S.CANCELLED)
        assert appointment.status == S.CANCELLED

    @pytest.mark.parametrize(
        "current,target",
        [
            (S.SCHEDULED, S.COMPLETED),
            (S.SCHEDULED, S.IN_PROGRESS),
            (S.CHECK_IN, S.SCHEDULED),
            (S.COMPLETED, S.CANCELLED),
            (S.CANCELLED, S.SCHEDULED),
            (S.IN_PROGRESS, S.IN_PROGRESS),
        ],
    )
    def test_invalid_moves(self, current, target):
        appointment = _appointment(current)
        with pytest.raises(InvalidStatusTransitionError):
            apply_status_transition(appointment, target)
        assert appointment.status == current

    def test_terminal_states_have_no_exits(self):
        assert not ALLOWED_TRANSITIONS[S.COMPLETED]
        assert not ALLOWED_TRANSITIONS[S.CANCELLED]

    def test_invalid_transition_is_a_validation_error(self):
        assert issubclass(InvalidStatusTransitionError, ValidationError)


class TestPersistence:
    @pytest.fixture
    async def booked(self, session):
        practitioner = await add_practitioner(session)
        pet = await add_pet(session)
        appointment = await add_appointment(session, practitioner.id, pet.id, MONDAY, "10:00")
        return appointment

    async def test_update_status(self, session, booked):
        updated = await update_status(session, booked.id, S.CHECK_IN)
        assert updated.status == S.CHECK_IN
        assert updated.is_confirmed is True

    async def test_update_status_unknown_id(self, session):
        with pytest.raises(NotFoundError):
            await update_status(session, 404, S.CHECK_IN)

    async def test_confirmation_toggle(self, session, booked):
        assert (await update_confirmation(session, booked.id, True)).is_confirmed is True
        assert (await update_confirmation(session, booked.id, False)).is_confirmed is False

    async def test_cancelled_cannot_be_confirmed(self, session, booked):
        await update_status(session, booked.id, S.CANCELLED)
        with pytest.raises(InvalidStatusTransitionError):
            await update_confirmation(session, booked.id, True)

    async def test_cancelled_drops_out_of_active_list(self, session, booked):
        other = await add_appointment(session, booked.practitioner_id, booked.pet_id, MONDAY, "11:00")
        await update_status(session, booked.id, S.CANCELLED)

        active = await list_active_appointments(session, booked.practitioner_id, MONDAY)

        assert [a.id for a in active] == [other.id]

    async def test_list_filters(self, session, booked):
        await add_appointment(session, booked.practitioner_id, booked.pet_id, MONDAY, "09:00")
        everything = await list_appointments(session)
        assert [a.appointment_time for a in everything] == [time(9, 0), time(10, 0)]

        cancelled = await list_appointments(session, status=S.CANCELLED)
        assert cancelled == []
