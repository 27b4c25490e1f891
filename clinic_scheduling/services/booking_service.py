import inspect
import logging
from collections.abc import AsyncIterator, Awaitable, Callable, Sequence
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from dataclasses import dataclass
from datetime import date, time
from enum import Enum
from typing import Protocol

from sqlalchemy import select, text
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker
from tenacity import (
    AsyncRetrying,
    RetryError,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from clinic_scheduling.core.config import settings
from clinic_scheduling.core.db import is_transient_error, make_session_maker, violates_unique
from clinic_scheduling.core.errors import (
    ConflictError,
    NotFoundError,
    RetryExhaustedError,
    TransientStoreError,
    ValidationError,
)
from clinic_scheduling.models.appointment import Appointment, AppointmentStatus, BookingSource, active_slot_index
from clinic_scheduling.models.pet import Pet
from clinic_scheduling.models.practitioner import Practitioner
from clinic_scheduling.services.appointment_service import appointment_interval
from clinic_scheduling.services.intervals import MINUTES_PER_DAY, Interval, format_hhmm, to_minutes
from clinic_scheduling.services.reservation_service import confirm_session_holds, find_blocking_reservation

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BookingPolicy:
    name: str
    isolation_level: str | None
    lock_practitioner: bool


# Staff bookings only reject exact-start duplicates under a race; two concurrent
# staff requests with different, overlapping starts can both commit.
STAFF_POLICY = BookingPolicy(name="staff", isolation_level=None, lock_practitioner=False)
PORTAL_POLICY = BookingPolicy(name="portal", isolation_level="SERIALIZABLE", lock_practitioner=True)

POLICIES: dict[BookingSource, BookingPolicy] = {
    BookingSource.STAFF: STAFF_POLICY,
    BookingSource.PORTAL: PORTAL_POLICY,
}


class AttemptOutcome(str, Enum):
    COMMITTED = "COMMITTED"
    CONFLICT = "CONFLICT"
    TRANSIENT_ERROR = "TRANSIENT_ERROR"


@dataclass
class BookingRequest:
    practitioner_id: int
    pet_id: int
    date: date
    time: time
    duration_minutes: int
    visit_type: str
    reason: str | None = None
    actor: BookingSource = BookingSource.STAFF
    # Portal session whose slot hold this booking consumes
    session_id: str | None = None

    def validate(self) -> None:
        if self.practitioner_id is None or self.practitioner_id <= 0:
            raise ValidationError("practitioner_id is required")
        if self.pet_id is None or self.pet_id <= 0:
            raise ValidationError("pet_id is required")
        if not isinstance(self.date, date):
            raise ValidationError("date is required")
        if not isinstance(self.time, time):
            raise ValidationError("time is required")
        if self.time.second or self.time.microsecond:
            raise ValidationError("time must be a whole minute")
        if not 1 <= self.duration_minutes <= MINUTES_PER_DAY:
            raise ValidationError(f"duration_minutes must be between 1 and {MINUTES_PER_DAY}")
        if to_minutes(self.time) + self.duration_minutes > MINUTES_PER_DAY:
            raise ValidationError("Appointment must end on the day it starts")
        if not self.visit_type or not self.visit_type.strip():
            raise ValidationError("visit_type is required")
        if self.actor not in POLICIES:
            raise ValidationError(f"Unknown actor: {self.actor}")

    @property
    def interval(self) -> Interval:
        return Interval.starting_at(self.time, self.duration_minutes)


class SlotTransaction(Protocol):
    async def load_practitioner(self, practitioner_id: int, *, for_update: bool) -> Practitioner | None: ...

    async def load_pet(self, pet_id: int) -> Pet | None: ...

    async def list_active_appointments(self, practitioner_id: int, on: date) -> list[Appointment]: ...

    async def has_active_reservation(
        self, practitioner_id: int, on: date, wanted: Interval, *, exclude_session_id: str | None
    ) -> bool: ...

    async def confirm_reservations(self, practitioner_id: int, on: date, booked: Interval, session_id: str) -> None: ...

    async def try_reserve(self, appointment: Appointment) -> Appointment: ...


class SlotStore(Protocol):
    def transaction(self, policy: BookingPolicy) -> AbstractAsyncContextManager[SlotTransaction]: ...


class _SqlSlotTransaction:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def load_practitioner(self, practitioner_id: int, *, for_update: bool) -> Practitioner | None:
        q = select(Practitioner).where(Practitioner.id == practitioner_id)
        if for_update:
            q = q.with_for_update()
        result = await self._session.execute(q)
        return result.scalar_one_or_none()

    async def load_pet(self, pet_id: int) -> Pet | None:
        return await self._session.get(Pet, pet_id)

    async def list_active_appointments(self, practitioner_id: int, on: date) -> list[Appointment]:
        result = await self._session.execute(
            select(Appointment).where(
                Appointment.practitioner_id == practitioner_id,
                Appointment.appointment_date == on,
                Appointment.status != AppointmentStatus.CANCELLED,
            )
        )
        return list(result.scalars().all())

    async def has_active_reservation(
        self, practitioner_id: int, on: date, wanted: Interval, *, exclude_session_id: str | None
    ) -> bool:
        blocking = await find_blocking_reservation(
            self._session, practitioner_id, on, wanted, exclude_session_id=exclude_session_id
        )
        return blocking is not None

    async def confirm_reservations(self, practitioner_id: int, on: date, booked: Interval, session_id: str) -> None:
        await confirm_session_holds(self._session, practitioner_id, on, booked, session_id)

    async def try_reserve(self, appointment: Appointment) -> Appointment:
        self._session.add(appointment)
        await self._session.flush()
        return appointment


class SqlSlotStore:
    """SlotStore over SQLAlchemy. One session and one transaction per attempt."""

    def __init__(self, engine: AsyncEngine, *, lock_timeout_ms: int | None = None) -> None:
        self._engine = engine
        self._lock_timeout_ms = settings.booking_lock_timeout_ms if lock_timeout_ms is None else lock_timeout_ms
        self._makers: dict[str | None, async_sessionmaker[AsyncSession]] = {None: make_session_maker(engine)}

    def _maker_for(self, policy: BookingPolicy) -> async_sessionmaker[AsyncSession]:
        level = policy.isolation_level
        if level not in self._makers:
            self._makers[level] = make_session_maker(self._engine.execution_options(isolation_level=level))
        return self._makers[level]

    @asynccontextmanager
    async def transaction(self, policy: BookingPolicy) -> AsyncIterator[SlotTransaction]:
        try:
            async with self._maker_for(policy)() as session:
                async with session.begin():
                    if policy.lock_practitioner and self._lock_timeout_ms and self._engine.dialect.name == "postgresql":
                        await session.execute(text(f"SET LOCAL lock_timeout = {int(self._lock_timeout_ms)}"))
                    yield _SqlSlotTransaction(session)
        except IntegrityError as exc:
            if violates_unique(exc, active_slot_index):
                raise ConflictError("The requested time slot was just taken") from exc
            raise
        except DBAPIError as exc:
            if is_transient_error(exc):
                raise TransientStoreError(f"Store could not serialize the booking: {exc.orig}") from exc
            raise


PostCommitHook = Callable[[Appointment], Awaitable[None] | None]


def log_booking(appointment: Appointment) -> None:
    logger.info(
        "Booked appointment %s: practitioner=%s pet=%s %s %s source=%s",
        appointment.id,
        appointment.practitioner_id,
        appointment.pet_id,
        appointment.appointment_date,
        format_hhmm(appointment.appointment_time),
        appointment.source.value,
    )


class BookingResolver:
    def __init__(
        self,
        store: SlotStore,
        *,
        max_attempts: int | None = None,
        backoff_seconds: float | None = None,
        backoff_max_seconds: float | None = None,
        hooks: Sequence[PostCommitHook] = (log_booking,),
    ) -> None:
        self._store = store
        self.max_attempts = max_attempts or settings.booking_max_attempts
        self._backoff = settings.booking_retry_backoff_seconds if backoff_seconds is None else backoff_seconds
        self._backoff_max = (
            settings.booking_retry_backoff_max_seconds if backoff_max_seconds is None else backoff_max_seconds
        )
        self._hooks = list(hooks)

    async def book(self, request: BookingRequest) -> Appointment:
        request.validate()
        policy = POLICIES[request.actor]
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.max_attempts),
                wait=wait_exponential(multiplier=self._backoff, max=self._backoff_max),
                retry=retry_if_exception_type(TransientStoreError),
                before_sleep=before_sleep_log(logger, logging.WARNING),
            ):
                with attempt:
                    appointment = await self._attempt(request, policy)
        except RetryError as exc:
            raise RetryExhaustedError(
                f"Booking did not go through after {self.max_attempts} attempts; try again",
                attempts=self.max_attempts,
            ) from exc.last_attempt.exception()
        await self._run_hooks(appointment)
        return appointment

    async def _attempt(self, request: BookingRequest, policy: BookingPolicy) -> Appointment:
        try:
            async with self._store.transaction(policy) as tx:
                practitioner = await tx.load_practitioner(
                    request.practitioner_id, for_update=policy.lock_practitioner
                )
                if practitioner is None or not practitioner.is_active:
                    raise NotFoundError(
                        f"Practitioner {request.practitioner_id} not found", code="PRACTITIONER_NOT_FOUND"
                    )
                if request.actor == BookingSource.PORTAL and not practitioner.is_bookable:
                    raise ValidationError(
                        "Practitioner does not take online bookings", code="PRACTITIONER_NOT_BOOKABLE"
                    )
                if await tx.load_pet(request.pet_id) is None:
                    raise NotFoundError(f"Pet {request.pet_id} not found", code="PET_NOT_FOUND")

                wanted = request.interval
                for existing in await tx.list_active_appointments(request.practitioner_id, request.date):
                    if appointment_interval(existing).overlaps(wanted):
                        raise ConflictError(
                            f"{format_hhmm(request.time)} on {request.date} overlaps appointment {existing.id}"
                        )
                if request.actor == BookingSource.PORTAL and await tx.has_active_reservation(
                    request.practitioner_id, request.date, wanted, exclude_session_id=request.session_id
                ):
                    raise ConflictError(
                        f"{format_hhmm(request.time)} on {request.date} is held by another customer",
                        code="SLOT_RESERVED",
                    )

                appointment = await tx.try_reserve(
                    Appointment(
                        practitioner_id=request.practitioner_id,
                        pet_id=request.pet_id,
                        appointment_date=request.date,
                        appointment_time=request.time,
                        duration_minutes=request.duration_minutes,
                        visit_type=request.visit_type.strip(),
                        reason=request.reason,
                        status=AppointmentStatus.SCHEDULED,
                        is_confirmed=False,
                        source=request.actor,
                    )
                )
                if request.actor == BookingSource.PORTAL and request.session_id:
                    await tx.confirm_reservations(
                        request.practitioner_id, request.date, wanted, request.session_id
                    )
        except ConflictError:
            logger.info(
                "%s: %s booking for practitioner %s at %s %s",
                AttemptOutcome.CONFLICT.value, policy.name, request.practitioner_id,
                request.date, format_hhmm(request.time),
            )
            raise
        except TransientStoreError as exc:
            logger.info("%s: %s booking: %s", AttemptOutcome.TRANSIENT_ERROR.value, policy.name, exc.message)
            raise
        logger.debug("%s: %s booking %s", AttemptOutcome.COMMITTED.value, policy.name, appointment.id)
        return appointment

    async def _run_hooks(self, appointment: Appointment) -> None:
        for hook in self._hooks:
            try:
                result = hook(appointment)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("Post-commit hook %r failed for appointment %s", hook, appointment.id)


def build_booking_resolver(engine: AsyncEngine, hooks: Sequence[PostCommitHook] = (log_booking,)) -> BookingResolver:
    return BookingResolver(SqlSlotStore(engine), hooks=hooks)
