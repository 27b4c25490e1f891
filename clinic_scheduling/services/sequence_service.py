import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, date, datetime
from enum import Enum
from typing import Protocol

from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncEngine
from tenacity import before_sleep_log, retry, retry_if_exception_type, stop_after_attempt, wait_random

from clinic_scheduling.core.db import is_transient_error, make_session_maker
from clinic_scheduling.core.errors import TransientStoreError, ValidationError
from clinic_scheduling.models.sequence import SequenceCounter as SequenceCounterRow

logger = logging.getLogger(__name__)

INCREMENT_MAX_ATTEMPTS = 3


class CodePeriod(str, Enum):
    NONE = "none"
    DAILY = "daily"


@dataclass(frozen=True)
class CodeFormat:
    prefix: str
    width: int
    period: CodePeriod = CodePeriod.NONE

    def period_key(self, today: date) -> str:
        return today.strftime("%Y%m%d") if self.period == CodePeriod.DAILY else ""

    def render(self, value: int, period_key: str) -> str:
        number = str(value).zfill(self.width)
        if period_key:
            return f"{self.prefix}-{period_key}-{number}"
        return f"{self.prefix}{number}"


BUILTIN_FORMATS: dict[str, CodeFormat] = {
    "owner": CodeFormat("C", 8),
    "pet": CodeFormat("P", 8),
    "invoice": CodeFormat("INV", 4, CodePeriod.DAILY),
    "medicalRecord": CodeFormat("MR", 3, CodePeriod.DAILY),
}


class SequenceCounter(Protocol):
    async def increment(self, scope: str, period_key: str = "") -> int: ...


class SqlSequenceCounter:
    """Atomic upsert-increment, each call in its own short transaction.

    The caller's transaction never holds the counter row, so a rolled-back
    booking or invoice leaves a gap instead of blocking other writers.
    """

    def __init__(self, engine: AsyncEngine, *, max_attempts: int = INCREMENT_MAX_ATTEMPTS) -> None:
        self._engine = engine
        self._session_maker = make_session_maker(engine)
        self._max_attempts = max_attempts

    def _upsert(self, scope: str, period_key: str):
        insert = pg_insert if self._engine.dialect.name == "postgresql" else sqlite_insert
        table = SequenceCounterRow.__table__
        now = datetime.now(UTC).replace(tzinfo=None)
        stmt = insert(table).values(scope=scope, period_key=period_key, last_value=1, updated_at=now)
        return stmt.on_conflict_do_update(
            index_elements=[table.c.scope, table.c.period_key],
            set_={"last_value": table.c.last_value + 1, "updated_at": now},
        ).returning(table.c.last_value)

    async def _increment_once(self, scope: str, period_key: str) -> int:
        try:
            async with self._session_maker() as session:
                async with session.begin():
                    result = await session.execute(self._upsert(scope, period_key))
                    return result.scalar_one()
        except DBAPIError as exc:
            if is_transient_error(exc):
                raise TransientStoreError(f"Counter {scope!r} busy: {exc.orig}") from exc
            raise

    async def increment(self, scope: str, period_key: str = "") -> int:
        decorated = retry(
            stop=stop_after_attempt(self._max_attempts),
            wait=wait_random(0.01, 0.06),
            retry=retry_if_exception_type(TransientStoreError),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )(self._increment_once)
        return await decorated(scope, period_key)


Formatter = Callable[[int, str], str]


class SequenceCodeGenerator:
    def __init__(self, counter: SequenceCounter, clock: Callable[[], date] = date.today) -> None:
        self._counter = counter
        self._clock = clock

    async def next_code(self, scope: str, formatter: Formatter | None = None) -> str:
        """Next human-readable code for ``scope``.

        Built-in scopes carry their own format; any other scope needs a
        ``formatter(value, period_key)``. Gaps are possible, duplicates are not.
        """
        code_format = BUILTIN_FORMATS.get(scope)
        if code_format is None and formatter is None:
            raise ValidationError(f"Unknown sequence scope: {scope}", code="UNKNOWN_SEQUENCE_SCOPE")
        period_key = code_format.period_key(self._clock()) if code_format else ""
        value = await self._counter.increment(scope, period_key)
        code = formatter(value, period_key) if formatter else code_format.render(value, period_key)
        logger.debug("Issued %s code %s", scope, code)
        return code
