from collections.abc import AsyncGenerator, Callable
from pathlib import Path
from typing import Any
from unittest import mock

import pytest
import pytest_asyncio

from birthday_bot.core.config import BotSettings
from birthday_bot.database import BirthdayRepository, Database


class FakeUser:
    """Stand-in for discord.User: an id and a display string."""

    def __init__(self, user_id: int, name: str) -> None:
        self.id = user_id
        self.name = name

    def __str__(self) -> str:
        return self.name


@pytest_asyncio.fixture()
async def database(tmp_path: Path) -> AsyncGenerator[Database, None]:
    db = Database(tmp_path / "birthdays.db")
    await db.initialize()
    yield db


@pytest.fixture()
def repo(database: Database) -> BirthdayRepository:
    return BirthdayRepository(database)


@pytest.fixture()
def settingsWith() -> Callable[..., BotSettings]:
    def factoryFn(**kwargs: Any) -> BotSettings:
        values: dict[str, Any] = {
            "bot_token": "test-token",
            "channel_id": 1001,
            "client_id": 2002,
            "guild_id": 3003,
            "send_delay": 0,
        }
        values.update(kwargs)
        return BotSettings(_env_file=None, **values)  # type: ignore[call-arg]

    return factoryFn


@pytest.fixture()
def settings(settingsWith: Callable[..., BotSettings]) -> BotSettings:
    return settingsWith()


@pytest.fixture()
def channel() -> mock.AsyncMock:
    return mock.AsyncMock()


@pytest.fixture()
def mockInteraction() -> mock.MagicMock:
    interaction = mock.MagicMock()
    interaction.response.is_done.return_value = False
    interaction.response.defer = mock.AsyncMock()
    interaction.response.send_message = mock.AsyncMock()
    interaction.followup.send = mock.AsyncMock()
    interaction.permissions.administrator = True
    return interaction


@pytest.fixture()
def userWith() -> Callable[[int, str], FakeUser]:
    return FakeUser
