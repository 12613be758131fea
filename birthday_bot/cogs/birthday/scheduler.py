"""Daily birthday match and notify cycle."""

from __future__ import annotations

import asyncio
import calendar
import logging
from collections.abc import Awaitable, Callable
from datetime import date, datetime, timezone, tzinfo
from typing import Any, Protocol

from birthday_bot.database import BirthdayMatch, BirthdayRepository

from .constants import DATE_KEY_FORMAT, DEFAULT_SEND_DELAY, LEAP_DAY_KEY

logger = logging.getLogger(__name__)


class Messageable(Protocol):
    async def send(self, content: str) -> Any: ...


ChannelResolver = Callable[[], Awaitable[Messageable | None]]


class BirthdayScheduler:
    """Matches today's date against the store and sends one message per match.

    Holds no state between cycles except the persisted last-fired date, which
    keeps the check to at most one run per calendar day in the reference
    timezone, restarts included.
    """

    def __init__(
        self,
        repo: BirthdayRepository,
        resolve_channel: ChannelResolver,
        *,
        message_template: str,
        scope_id: str | None = None,
        tz: tzinfo = timezone.utc,
        send_delay: float = DEFAULT_SEND_DELAY,
        leap_day_catchup: bool = True,
    ) -> None:
        self.repo = repo
        self.resolve_channel = resolve_channel
        self.message_template = message_template
        self.scope_id = scope_id
        self.tz = tz
        self.send_delay = send_delay
        self.leap_day_catchup = leap_day_catchup
        self._cycle_lock = asyncio.Lock()

    def today(self, now: datetime | None = None) -> date:
        """Current date in the reference timezone."""
        now = now or datetime.now(self.tz)
        return now.astimezone(self.tz).date()

    def date_keys(self, day: date) -> list[str]:
        """Stored-date strings that fire on `day`."""
        keys = [day.strftime(DATE_KEY_FORMAT)]
        # 29.02 birthdays are celebrated on 01.03 in common years
        if (
            self.leap_day_catchup
            and day.month == 3
            and day.day == 1
            and not calendar.isleap(day.year)
        ):
            keys.append(LEAP_DAY_KEY)
        return keys

    def format_message(self, match: BirthdayMatch) -> str:
        return self.message_template.format(
            mention=f"<@{match.member_id}>", name=match.display_name
        )

    async def run_cycle(self, day: date | None = None, *, force: bool = False) -> int:
        """Run one check. Returns the number of messages delivered; never raises."""
        day = day or self.today()
        async with self._cycle_lock:
            try:
                return await self._run_cycle(day, force)
            except Exception as e:
                logger.exception(f"Birthday check for {day.isoformat()} failed: {e}")
                return 0

    async def _run_cycle(self, day: date, force: bool) -> int:
        day_iso = day.isoformat()
        logger.info(f"Checking birthdays for {day.strftime(DATE_KEY_FORMAT)} ({day_iso})")

        if not force and await self.repo.get_last_fired(self.scope_id) == day_iso:
            logger.info(f"Birthday check already ran on {day_iso}, skipping")
            return 0

        try:
            channel = await self.resolve_channel()
        except Exception as e:
            logger.error(f"Could not resolve birthday channel: {type(e).__name__}: {e}")
            return 0
        if channel is None:
            logger.error("Birthday channel unavailable, aborting today's check")
            return 0

        marked = await self.repo.set_last_fired(day_iso, self.scope_id)
        if not marked.ok:
            logger.warning("Could not persist last-fired date, a restart may repeat today's check")

        matches: list[BirthdayMatch] = []
        for key in self.date_keys(day):
            matches.extend(await self.repo.find_by_date(key, self.scope_id))

        if not matches:
            logger.info("No birthdays today")
            return 0

        return await self.deliver(channel, matches)

    async def deliver(self, channel: Messageable, matches: list[BirthdayMatch]) -> int:
        """Send one message per match, pacing sends; failures are per item."""
        delivered = 0
        for index, match in enumerate(matches):
            if index and self.send_delay:
                await asyncio.sleep(self.send_delay)
            try:
                await channel.send(self.format_message(match))
            except Exception as e:
                logger.error(
                    f"Failed to congratulate {match.display_name} ({match.member_id}): "
                    f"{type(e).__name__}: {e}"
                )
                continue
            delivered += 1
            logger.info(f"Congratulated {match.display_name} ({match.member_id})")

        logger.info(f"Birthday messages sent: {delivered}/{len(matches)}")
        return delivered
