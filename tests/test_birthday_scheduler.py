import asyncio
from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from unittest import mock

import pytest

from birthday_bot.cogs.birthday.scheduler import BirthdayScheduler
from birthday_bot.database import BirthdayMatch, BirthdayRepository, Database

TEMPLATE = "Happy Birthday, {mention}!"


def makeScheduler(repo: BirthdayRepository | mock.MagicMock, channel: object, **kwargs) -> BirthdayScheduler:
    async def resolveChannel():
        return channel

    kwargs.setdefault("send_delay", 0)
    return BirthdayScheduler(repo, resolveChannel, message_template=TEMPLATE, **kwargs)


async def testSingleMatchDeliversOnce(repo: BirthdayRepository, channel: mock.AsyncMock) -> None:
    await repo.upsert("U1", "alice", "15.05")
    await repo.upsert("U2", "bob", "16.05")
    scheduler = makeScheduler(repo, channel)

    delivered = await scheduler.run_cycle(date(2025, 5, 15))

    assert delivered == 1
    channel.send.assert_awaited_once_with("Happy Birthday, <@U1>!")


async def testFailedDeliveryDoesNotAbortBatch(
    repo: BirthdayRepository, channel: mock.AsyncMock
) -> None:
    await repo.upsert("U1", "alice", "01.01")
    await repo.upsert("U2", "bob", "01.01")
    channel.send.side_effect = [RuntimeError("Missing Access"), None]
    scheduler = makeScheduler(repo, channel)

    delivered = await scheduler.run_cycle(date(2026, 1, 1))

    assert delivered == 1
    assert channel.send.await_count == 2
    assert channel.send.await_args_list[1] == mock.call("Happy Birthday, <@U2>!")


async def testStoreReadFailureSendsNothing(tmp_path: Path, channel: mock.AsyncMock) -> None:
    # a directory cannot be opened as a database file
    repo = BirthdayRepository(Database(tmp_path))
    scheduler = makeScheduler(repo, channel)

    delivered = await scheduler.run_cycle(date(2025, 5, 15))

    assert delivered == 0
    channel.send.assert_not_awaited()


async def testNoMatchesSendsNothing(repo: BirthdayRepository, channel: mock.AsyncMock) -> None:
    await repo.upsert("U1", "alice", "15.05")
    scheduler = makeScheduler(repo, channel)

    assert await scheduler.run_cycle(date(2025, 7, 1)) == 0
    channel.send.assert_not_awaited()


async def testRunsAtMostOncePerDay(repo: BirthdayRepository, channel: mock.AsyncMock) -> None:
    await repo.upsert("U1", "alice", "15.05")
    scheduler = makeScheduler(repo, channel, scope_id="G1")

    assert await scheduler.run_cycle(date(2025, 5, 15)) == 1
    assert await scheduler.run_cycle(date(2025, 5, 15)) == 0
    assert await repo.get_last_fired("G1") == "2025-05-15"
    channel.send.assert_awaited_once()

    # a fresh scheduler (process restart) respects the persisted guard
    restarted = makeScheduler(repo, channel, scope_id="G1")
    assert await restarted.run_cycle(date(2025, 5, 15)) == 0

    assert await scheduler.run_cycle(date(2025, 5, 15), force=True) == 1
    assert channel.send.await_count == 2


async def testUnavailableChannelAbortsWithoutMarkingDay(
    repo: BirthdayRepository, channel: mock.AsyncMock
) -> None:
    await repo.upsert("U1", "alice", "15.05")

    assert await makeScheduler(repo, None).run_cycle(date(2025, 5, 15)) == 0
    assert await repo.get_last_fired() is None

    # next attempt with a working channel still fires
    assert await makeScheduler(repo, channel).run_cycle(date(2025, 5, 15)) == 1


async def testChannelResolverErrorAbortsCycle(
    repo: BirthdayRepository, channel: mock.AsyncMock
) -> None:
    await repo.upsert("U1", "alice", "15.05")
    resolver = mock.AsyncMock(side_effect=RuntimeError("gateway closed"))
    scheduler = BirthdayScheduler(repo, resolver, message_template=TEMPLATE, send_delay=0)

    assert await scheduler.run_cycle(date(2025, 5, 15)) == 0
    resolver.assert_awaited_once()


async def testDeliveriesArePaced(
    repo: BirthdayRepository, channel: mock.AsyncMock, monkeypatch: pytest.MonkeyPatch
) -> None:
    sleep = mock.AsyncMock()
    monkeypatch.setattr(asyncio, "sleep", sleep)
    matches = [BirthdayMatch("U1", "alice"), BirthdayMatch("U2", "bob"), BirthdayMatch("U3", "carol")]
    scheduler = makeScheduler(repo, channel, send_delay=1.0)

    assert await scheduler.deliver(channel, matches) == 3

    assert sleep.await_args_list == [mock.call(1.0), mock.call(1.0)]


async def testLeapDayCatchUpInCommonYear(
    repo: BirthdayRepository, channel: mock.AsyncMock
) -> None:
    await repo.upsert("U1", "alice", "29.02")
    await repo.upsert("U2", "bob", "01.03")
    scheduler = makeScheduler(repo, channel)

    assert await scheduler.run_cycle(date(2025, 3, 1)) == 2


def testDateKeys() -> None:
    repo = mock.MagicMock()
    scheduler = makeScheduler(repo, None)

    assert scheduler.date_keys(date(2025, 5, 7)) == ["07.05"]
    assert scheduler.date_keys(date(2025, 3, 1)) == ["01.03", "29.02"]
    assert scheduler.date_keys(date(2024, 3, 1)) == ["01.03"]
    assert scheduler.date_keys(date(2024, 2, 29)) == ["29.02"]

    no_catchup = makeScheduler(repo, None, leap_day_catchup=False)
    assert no_catchup.date_keys(date(2025, 3, 1)) == ["01.03"]


def testTodayUsesReferenceTimezone() -> None:
    repo = mock.MagicMock()
    late_utc = datetime(2025, 5, 14, 22, 30, tzinfo=timezone.utc)

    utc = makeScheduler(repo, None)
    moscow = makeScheduler(repo, None, tz=timezone(timedelta(hours=3)))

    assert utc.today(late_utc) == date(2025, 5, 14)
    assert moscow.today(late_utc) == date(2025, 5, 15)


def testFormatMessage() -> None:
    scheduler = BirthdayScheduler(
        mock.MagicMock(), mock.AsyncMock(), message_template="{name}: {mention}", send_delay=0
    )

    assert scheduler.format_message(BirthdayMatch("42", "alice")) == "alice: <@42>"
