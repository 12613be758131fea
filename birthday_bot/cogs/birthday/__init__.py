"""Birthday feature module."""

from discord.ext import commands

from .cog import BirthdayCog
from .scheduler import BirthdayScheduler

__all__ = ["BirthdayCog", "BirthdayScheduler", "setup"]


async def setup(bot: commands.Bot) -> None:
    """Extension entry point. The bot owns the repository and settings."""
    await bot.add_cog(BirthdayCog(bot, bot.repository, bot.settings))  # type: ignore[attr-defined]
