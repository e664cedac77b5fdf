"""Tests for grab, drop and transfer of duties."""

import asyncio
from collections.abc import AsyncGenerator
from dataclasses import dataclass
from datetime import date, time, timedelta
from pathlib import Path

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from dutyroster.database import Base
from dutyroster.duties import lifecycle
from dutyroster.duties.errors import (
    AuthorizationError,
    NotFoundError,
    TimingError,
    ValidationError,
)
from dutyroster.models.duty import Duty
from dutyroster.models.place import Place
from dutyroster.models.time_range import TimeRange, Weekday
from dutyroster.models.timeslot import Timeslot
from dutyroster.models.user import User
from tests.conftest import FIXED_NOW, test_session
from tests.factories import (
    create_duty,
    create_place,
    create_time_range,
    create_timeslot,
    create_user,
    reload_duty,
)

LEAD = timedelta(hours=2)
NEXT_WEEK = date(2024, 1, 10)


@dataclass
class Roster:
    alice: User
    bob: User
    carol: User
    mc_user: User
    place: Place
    morning: TimeRange
    timeslot: Timeslot
    mc_timeslot: Timeslot


@pytest.fixture
async def roster(setup_db: None) -> Roster:
    async with test_session() as session:
        alice = await create_user(session, "alice@example.com")
        bob = await create_user(session, "bob@example.com")
        carol = await create_user(session, "carol@example.com")
        mc_user = await create_user(session, "mc@example.com", mc=True)
        place = await create_place(session)
        morning = await create_time_range(session, time(9), time(10))
        timeslot = await create_timeslot(session, place, morning, Weekday.WEDNESDAY, alice)
        afternoon = await create_time_range(session, time(14), time(15))
        mc_timeslot = await create_timeslot(
            session, place, afternoon, Weekday.WEDNESDAY, mc_only=True
        )
        return Roster(alice, bob, carol, mc_user, place, morning, timeslot, mc_timeslot)


async def _duty(roster: Roster, day: date = NEXT_WEEK, **kwargs: object) -> Duty:
    async with test_session() as session:
        return await create_duty(session, roster.timeslot, day, **kwargs)  # type: ignore[arg-type]


async def _state(duty_id: int) -> tuple[int | None, bool, int | None]:
    async with test_session() as session:
        duty = await reload_duty(session, duty_id)
        return duty.user_id, duty.free, duty.request_user_id


class TestGrab:
    async def test_grab_free_duty(self, roster: Roster) -> None:
        duty = await _duty(roster, free=True)

        async with test_session() as session:
            grabbed = await lifecycle.grab(session, [duty.id], roster.bob, FIXED_NOW)

        assert [d.id for d in grabbed] == [duty.id]
        assert await _state(duty.id) == (roster.bob.id, False, None)

    async def test_grab_duty_offered_to_me(self, roster: Roster) -> None:
        duty = await _duty(roster, user=roster.alice, request_user=roster.bob)

        async with test_session() as session:
            await lifecycle.grab(session, [duty.id], roster.bob, FIXED_NOW)

        assert await _state(duty.id) == (roster.bob.id, False, None)

    async def test_reclaim_duty_i_offered(self, roster: Roster) -> None:
        duty = await _duty(roster, user=roster.alice, request_user=roster.bob)

        async with test_session() as session:
            await lifecycle.grab(session, [duty.id], roster.alice, FIXED_NOW)

        assert await _state(duty.id) == (roster.alice.id, False, None)

    async def test_grab_ownerless_duty(self, roster: Roster) -> None:
        duty = await _duty(roster)

        async with test_session() as session:
            await lifecycle.grab(session, [duty.id], roster.bob, FIXED_NOW)

        assert await _state(duty.id) == (roster.bob.id, False, None)

    async def test_duplicate_ids_collapse(self, roster: Roster) -> None:
        duty = await _duty(roster, free=True)

        async with test_session() as session:
            grabbed = await lifecycle.grab(session, [duty.id, duty.id], roster.bob, FIXED_NOW)

        assert len(grabbed) == 1

    async def test_rejects_duty_owned_by_someone_else(self, roster: Roster) -> None:
        duty = await _duty(roster, user=roster.alice)

        async with test_session() as session:
            with pytest.raises(AuthorizationError, match="Invalid duties to grab"):
                await lifecycle.grab(session, [duty.id], roster.bob, FIXED_NOW)

        assert await _state(duty.id) == (roster.alice.id, False, None)

    async def test_rejects_duty_offered_to_someone_else(self, roster: Roster) -> None:
        duty = await _duty(roster, user=roster.alice, request_user=roster.carol)

        async with test_session() as session:
            with pytest.raises(AuthorizationError):
                await lifecycle.grab(session, [duty.id], roster.bob, FIXED_NOW)

        assert await _state(duty.id) == (roster.alice.id, False, roster.carol.id)

    async def test_batch_is_all_or_nothing(self, roster: Roster) -> None:
        free = await _duty(roster, free=True)
        taken = await _duty(roster, day=NEXT_WEEK + timedelta(days=7), user=roster.alice)

        async with test_session() as session:
            with pytest.raises(AuthorizationError):
                await lifecycle.grab(session, [free.id, taken.id], roster.bob, FIXED_NOW)

        assert await _state(free.id) == (None, True, None)
        assert await _state(taken.id) == (roster.alice.id, False, None)

    async def test_mc_only_duty_needs_mc_user(self, roster: Roster) -> None:
        async with test_session() as session:
            duty = await create_duty(session, roster.mc_timeslot, NEXT_WEEK, free=True)

        async with test_session() as session:
            with pytest.raises(AuthorizationError):
                await lifecycle.grab(session, [duty.id], roster.bob, FIXED_NOW)
        assert await _state(duty.id) == (None, True, None)

        async with test_session() as session:
            await lifecycle.grab(session, [duty.id], roster.mc_user, FIXED_NOW)
        assert await _state(duty.id) == (roster.mc_user.id, False, None)

    async def test_already_grabbed_duty_is_rejected(self, roster: Roster) -> None:
        duty = await _duty(roster, free=True)

        async with test_session() as session:
            await lifecycle.grab(session, [duty.id], roster.bob, FIXED_NOW)
        async with test_session() as session:
            with pytest.raises(AuthorizationError):
                await lifecycle.grab(session, [duty.id], roster.carol, FIXED_NOW)

        assert await _state(duty.id) == (roster.bob.id, False, None)

    async def test_stale_write_rolls_back_whole_batch(
        self, roster: Roster, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        free = await _duty(roster, free=True)
        taken = await _duty(roster, day=NEXT_WEEK + timedelta(days=7), user=roster.carol)
        # Validation passes, so the guarded UPDATE is what rejects `taken`
        monkeypatch.setattr(lifecycle, "can", lambda *args: True)

        async with test_session() as session:
            with pytest.raises(AuthorizationError, match="Invalid duties to grab"):
                await lifecycle.grab(session, [free.id, taken.id], roster.bob, FIXED_NOW)

        assert await _state(free.id) == (None, True, None)
        assert await _state(taken.id) == (roster.carol.id, False, None)

    async def test_rejects_started_duty(self, roster: Roster) -> None:
        # 09:00 today has passed at 10:00
        duty = await _duty(roster, day=FIXED_NOW.date(), free=True)

        async with test_session() as session:
            with pytest.raises(AuthorizationError):
                await lifecycle.grab(session, [duty.id], roster.bob, FIXED_NOW)

    @pytest.mark.parametrize("duty_ids", [None, []])
    async def test_rejects_empty_batch(self, roster: Roster, duty_ids: list[int] | None) -> None:
        async with test_session() as session:
            with pytest.raises(ValidationError, match="Invalid duties to grab"):
                await lifecycle.grab(session, duty_ids, roster.bob, FIXED_NOW)

    async def test_unknown_duty(self, roster: Roster) -> None:
        duty = await _duty(roster, free=True)

        async with test_session() as session:
            with pytest.raises(NotFoundError, match="^Invalid duties to grab$"):
                await lifecycle.grab(session, [duty.id, 999], roster.bob, FIXED_NOW)

        assert await _state(duty.id) == (None, True, None)


class TestDrop:
    async def test_drop_to_anyone(self, roster: Roster) -> None:
        duty = await _duty(roster, user=roster.alice)

        async with test_session() as session:
            outcome = await lifecycle.drop(session, [duty.id], roster.alice, 0, FIXED_NOW, LEAD)

        assert [d.id for d in outcome.duties] == [duty.id]
        assert sorted(outcome.recipients) == sorted(
            [roster.alice.id, roster.bob.id, roster.carol.id, roster.mc_user.id]
        )
        assert await _state(duty.id) == (None, True, None)

    async def test_drop_to_someone_keeps_owner(self, roster: Roster) -> None:
        duty = await _duty(roster, user=roster.alice)

        async with test_session() as session:
            outcome = await lifecycle.drop(
                session, [duty.id], roster.alice, roster.bob.id, FIXED_NOW, LEAD
            )

        assert outcome.recipients == [roster.bob.id]
        assert await _state(duty.id) == (roster.alice.id, False, roster.bob.id)

    async def test_transfer_round_trip(self, roster: Roster) -> None:
        duty = await _duty(roster, user=roster.alice)

        async with test_session() as session:
            await lifecycle.drop(session, [duty.id], roster.alice, roster.bob.id, FIXED_NOW, LEAD)
        async with test_session() as session:
            await lifecycle.grab(session, [duty.id], roster.bob, FIXED_NOW)

        assert await _state(duty.id) == (roster.bob.id, False, None)

    async def test_duty_starting_within_lead_cannot_be_dropped(self, roster: Roster) -> None:
        async with test_session() as session:
            soon = await create_time_range(session, time(11), time(12))
            timeslot = await create_timeslot(session, roster.place, soon, Weekday.WEDNESDAY)
            duty = await create_duty(session, timeslot, FIXED_NOW.date(), user=roster.alice)

        async with test_session() as session:
            with pytest.raises(TimingError, match="at most 2 hours before it starts"):
                await lifecycle.drop(session, [duty.id], roster.alice, 0, FIXED_NOW, LEAD)

        assert await _state(duty.id) == (roster.alice.id, False, None)

    async def test_duty_starting_after_lead_can_be_dropped(self, roster: Roster) -> None:
        async with test_session() as session:
            later = await create_time_range(session, time(13), time(14))
            timeslot = await create_timeslot(session, roster.place, later, Weekday.WEDNESDAY)
            duty = await create_duty(session, timeslot, FIXED_NOW.date(), user=roster.alice)

        async with test_session() as session:
            await lifecycle.drop(session, [duty.id], roster.alice, 0, FIXED_NOW, LEAD)

        assert await _state(duty.id) == (None, True, None)

    async def test_rejects_duty_not_owned(self, roster: Roster) -> None:
        mine = await _duty(roster, user=roster.alice)
        theirs = await _duty(roster, day=NEXT_WEEK + timedelta(days=7), user=roster.bob)

        async with test_session() as session:
            with pytest.raises(AuthorizationError, match="Invalid duties to drop"):
                await lifecycle.drop(
                    session, [mine.id, theirs.id], roster.alice, 0, FIXED_NOW, LEAD
                )

        assert await _state(mine.id) == (roster.alice.id, False, None)
        assert await _state(theirs.id) == (roster.bob.id, False, None)

    async def test_rejects_ownerless_duty(self, roster: Roster) -> None:
        duty = await _duty(roster)

        async with test_session() as session:
            with pytest.raises(AuthorizationError):
                await lifecycle.drop(session, [duty.id], roster.alice, 0, FIXED_NOW, LEAD)

    async def test_rejects_drop_to_self(self, roster: Roster) -> None:
        duty = await _duty(roster, user=roster.alice)

        async with test_session() as session:
            with pytest.raises(ValidationError):
                await lifecycle.drop(
                    session, [duty.id], roster.alice, roster.alice.id, FIXED_NOW, LEAD
                )

    async def test_rejects_unknown_target(self, roster: Roster) -> None:
        duty = await _duty(roster, user=roster.alice)

        async with test_session() as session:
            with pytest.raises(NotFoundError):
                await lifecycle.drop(session, [duty.id], roster.alice, 999, FIXED_NOW, LEAD)

        assert await _state(duty.id) == (roster.alice.id, False, None)

    async def test_rejects_empty_batch(self, roster: Roster) -> None:
        async with test_session() as session:
            with pytest.raises(ValidationError, match="Invalid duties to drop"):
                await lifecycle.drop(session, [], roster.alice, 0, FIXED_NOW, LEAD)


class TestQueries:
    async def test_grabable_duties(self, roster: Roster) -> None:
        day = NEXT_WEEK
        free = await _duty(roster, day=day, free=True)
        offered = await _duty(
            roster, day=day + timedelta(days=7), user=roster.alice, request_user=roster.bob
        )
        reclaimable = await _duty(
            roster, day=day + timedelta(days=14), user=roster.bob, request_user=roster.carol
        )
        await _duty(roster, day=day + timedelta(days=21), user=roster.alice)
        await _duty(
            roster, day=day + timedelta(days=28), user=roster.alice, request_user=roster.carol
        )
        await _duty(roster, day=FIXED_NOW.date(), free=True)  # already started
        async with test_session() as session:
            await create_duty(session, roster.mc_timeslot, day, free=True)

        async with test_session() as session:
            duties = await lifecycle.grabable_duties(session, roster.bob, FIXED_NOW)

        assert [d.id for d in duties] == [free.id, offered.id, reclaimable.id]

    async def test_my_duties(self, roster: Roster) -> None:
        first = await _duty(roster, day=NEXT_WEEK, user=roster.alice)
        second = await _duty(roster, day=NEXT_WEEK + timedelta(days=7), user=roster.alice)
        await _duty(roster, day=NEXT_WEEK + timedelta(days=14), user=roster.bob)
        await _duty(roster, day=NEXT_WEEK + timedelta(days=35), user=roster.alice)

        async with test_session() as session:
            duties = await lifecycle.my_duties(
                session, roster.alice, NEXT_WEEK, NEXT_WEEK + timedelta(days=27)
            )

        assert [d.id for d in duties] == [first.id, second.id]


@pytest.fixture
async def file_sessions(tmp_path: Path) -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    # Separate connections per session; the in-memory engine shares one
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'roster.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, expire_on_commit=False)
    await engine.dispose()


class TestConcurrentGrab:
    async def test_one_of_two_concurrent_grabs_wins(
        self, file_sessions: async_sessionmaker[AsyncSession]
    ) -> None:
        async with file_sessions() as session:
            bob = await create_user(session, "bob@example.com")
            carol = await create_user(session, "carol@example.com")
            place = await create_place(session)
            morning = await create_time_range(session, time(9), time(10))
            timeslot = await create_timeslot(session, place, morning, Weekday.WEDNESDAY)
            duty = await create_duty(session, timeslot, NEXT_WEEK, free=True)

        async def attempt(actor: User) -> str:
            async with file_sessions() as session:
                try:
                    await lifecycle.grab(session, [duty.id], actor, FIXED_NOW)
                except AuthorizationError:
                    return "lost"
                return "won"

        results = await asyncio.gather(attempt(bob), attempt(carol))

        assert sorted(results) == ["lost", "won"]
        async with file_sessions() as session:
            stored = await reload_duty(session, duty.id)
        assert stored.user_id in (bob.id, carol.id)
        assert stored.free is False
        assert stored.request_user_id is None
