import asyncio
from datetime import date

import pytest

from clinic_scheduling.core.errors import TransientStoreError, ValidationError
from clinic_scheduling.services.sequence_service import SequenceCodeGenerator, SqlSequenceCounter
from fakes import FakeSequenceCounter

TODAY = date(2026, 10, 18)


def make_generator(counter=None) -> SequenceCodeGenerator:
    return SequenceCodeGenerator(counter or FakeSequenceCounter(), clock=lambda: TODAY)


class TestFormats:
    async def test_owner_and_pet_codes(self):
        generator = make_generator()
        assert await generator.next_code("owner") == "C00000001"
        assert await generator.next_code("owner") == "C00000002"
        assert await generator.next_code("pet") == "P00000001"

    async def test_daily_scopes(self):
        counter = FakeSequenceCounter()
        generator = make_generator(counter)
        assert await generator.next_code("invoice") == "INV-20261018-0001"
        assert await generator.next_code("medicalRecord") == "MR-20261018-001"
        assert counter.calls == [("invoice", "20261018"), ("medicalRecord", "20261018")]

    async def test_daily_scope_restarts_on_a_new_day(self):
        counter = FakeSequenceCounter()
        days = iter([date(2026, 10, 18), date(2026, 10, 18), date(2026, 10, 19)])
        generator = SequenceCodeGenerator(counter, clock=lambda: next(days))

        codes = [await generator.next_code("invoice") for _ in range(3)]

        assert codes == ["INV-20261018-0001", "INV-20261018-0002", "INV-20261019-0001"]

    async def test_custom_formatter(self):
        generator = make_generator()
        code = await generator.next_code("boarding", formatter=lambda n, _key: f"B-{n:05d}")
        assert code == "B-00001"

    async def test_unknown_scope_without_formatter(self):
        with pytest.raises(ValidationError):
            await make_generator().next_code("voucher")


async def test_concurrent_calls_are_distinct():
    generator = make_generator()
    codes = await asyncio.gather(*(generator.next_code("owner") for _ in range(25)))
    assert len(set(codes)) == 25
    assert sorted(codes) == [f"C{n:08d}" for n in range(1, 26)]


class TestSqlSequenceCounter:
    async def test_upsert_increments_per_scope_and_period(self, db_engine):
        counter = SqlSequenceCounter(db_engine)

        assert await counter.increment("owner") == 1
        assert await counter.increment("owner") == 2
        assert await counter.increment("invoice", "20261018") == 1
        assert await counter.increment("invoice", "20261019") == 1
        assert await counter.increment("owner") == 3

    async def test_concurrent_increments_never_collide(self, db_engine):
        generator = make_generator(SqlSequenceCounter(db_engine))

        codes = await asyncio.gather(*(generator.next_code("pet") for _ in range(10)))

        assert len(set(codes)) == 10
        values = sorted(int(code[1:]) for code in codes)
        assert values[-1] - values[0] < 10

    async def test_busy_counter_is_retried(self, db_engine, monkeypatch):
        counter = SqlSequenceCounter(db_engine)
        calls = []

        async def busy_twice(scope, period_key):
            calls.append((scope, period_key))
            if len(calls) < 3:
                raise TransientStoreError("Counter 'owner' busy")
            return 7

        monkeypatch.setattr(counter, "_increment_once", busy_twice)

        assert await counter.increment("owner") == 7
        assert calls == [("owner", "")] * 3

    async def test_gives_up_after_max_attempts(self, db_engine, monkeypatch):
        counter = SqlSequenceCounter(db_engine, max_attempts=2)
        calls = []

        async def always_busy(scope, period_key):
            calls.append(scope)
            raise TransientStoreError("Counter 'pet' busy")

        monkeypatch.setattr(counter, "_increment_once", always_busy)

        with pytest.raises(TransientStoreError):
            await counter.increment("pet")
        assert len(calls) == 2
