from clinic_scheduling.models.practitioner import Practitioner
from clinic_scheduling.models.pet import Pet
from clinic_scheduling.models.schedule import (
    BreakInput,
    DayOff,
    DayOffInput,
    ScheduleBreak,
    SchedulePeriod,
    SchedulePeriodInput,
    SchedulePeriodUpdate,
    WeeklyScheduleEntry,
    WeeklyScheduleEntryInput,
    Weekday,
)
from clinic_scheduling.models.appointment import (
    Appointment,
    AppointmentPublic,
    AppointmentStatus,
    BookingSource,
)
from clinic_scheduling.models.reservation import (
    ReservationStatus,
    SlotReservation,
    SlotReservationPublic,
)
from clinic_scheduling.models.sequence import SequenceCounter

__all__ = [
    "Practitioner",
    "Pet",
    "BreakInput",
    "DayOff",
    "DayOffInput",
    "ScheduleBreak",
    "SchedulePeriod",
    "SchedulePeriodInput",
    "SchedulePeriodUpdate",
    "WeeklyScheduleEntry",
    "WeeklyScheduleEntryInput",
    "Weekday",
    "Appointment",
    "AppointmentPublic",
    "AppointmentStatus",
    "BookingSource",
    "ReservationStatus",
    "SlotReservation",
    "SlotReservationPublic",
    "SequenceCounter",
]
