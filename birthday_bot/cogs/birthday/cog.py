"""Birthday feature cog."""

import asyncio
import logging
from datetime import time, timezone

import discord
from discord import app_commands
from discord.ext import commands, tasks

from birthday_bot.core.config import BotSettings
from birthday_bot.database import BirthdayRepository, WriteStatus

from .constants import BIRTHDAY_COLOR, EMBED_DESCRIPTION_LIMIT, LIST_TITLE
from .scheduler import BirthdayScheduler

logger = logging.getLogger(__name__)


class BirthdayCog(commands.Cog):
    """Birthday commands and the daily congratulation task"""

    def __init__(
        self, bot: commands.Bot, repo: BirthdayRepository, settings: BotSettings
    ) -> None:
        self.bot = bot
        self.repo = repo
        self.settings = settings
        self.scope_id = settings.scope_id
        self.scheduler = BirthdayScheduler(
            repo,
            self._resolve_channel,
            message_template=settings.birthday_message,
            scope_id=self.scope_id,
            tz=settings.tz,
            send_delay=settings.send_delay,
            leap_day_catchup=settings.leap_day_catchup,
        )
        self._startup_task: asyncio.Task | None = None

    async def cog_load(self) -> None:
        self.birthday_notify_task.change_interval(time=self.settings.get_notify_time())
        self.birthday_notify_task.start()
        if self.settings.run_on_startup:
            self._startup_task = asyncio.create_task(self._startup_check())
        logger.info(
            f"Birthday check scheduled daily at {self.settings.notify_time} "
            f"({self.settings.timezone})"
        )

    async def cog_unload(self) -> None:
        self.birthday_notify_task.cancel()
        if self._startup_task:
            self._startup_task.cancel()

    # ==================== Helpers ====================

    async def _resolve_channel(self) -> discord.abc.Messageable | None:
        """Find the configured channel and make sure it accepts messages"""
        channel_id = self.settings.channel_id
        channel = self.bot.get_channel(channel_id)
        if channel is None:
            try:
                channel = await self.bot.fetch_channel(channel_id)
            except (discord.HTTPException, discord.InvalidData) as e:
                logger.error(f"Cannot fetch channel {channel_id}: {type(e).__name__}: {e}")
                return None

        if not isinstance(channel, discord.abc.Messageable):
            logger.error(f"Channel {channel_id} is not a text channel")
            return None
        return channel

    @staticmethod
    async def _reply(interaction: discord.Interaction, content: str) -> None:
        """Ephemeral reply whether or not the interaction was deferred"""
        try:
            if interaction.response.is_done():
                await interaction.followup.send(content, ephemeral=True)
            else:
                await interaction.response.send_message(content, ephemeral=True)
        except discord.HTTPException as e:
            logger.warning(f"Cannot reply to interaction: {e}")

    # ==================== Command logic ====================

    async def add_birthday(self, user: discord.abc.User, date_text: str) -> str:
        result = await self.repo.upsert(str(user.id), str(user), date_text, self.scope_id)
        if result.status is WriteStatus.INVALID_FORMAT:
            return "❌ Use the DD.MM format (for example: 15.05)"
        if not result.ok:
            return "⚠️ Could not save the birthday, please try again later"
        return f"✅ <@{user.id}> added ({date_text})"

    async def remove_birthday(self, user: discord.abc.User) -> str:
        result = await self.repo.remove(str(user.id), self.scope_id)
        if result.status is WriteStatus.NOT_FOUND:
            return "❌ User not found"
        if not result.ok:
            return "⚠️ Could not remove the birthday, please try again later"
        return f"✅ <@{user.id}> removed from the list"

    async def build_birthday_list(self) -> discord.Embed | str:
        result = await self.repo.list_all(self.scope_id)
        if not result.ok:
            return "⚠️ Could not load the birthday list, please try again later"

        if result.records:
            description = "\n".join(
                f"• <@{record.member_id}> — {record.birth_date}" for record in result.records
            )
            if len(description) > EMBED_DESCRIPTION_LIMIT:
                description = description[: EMBED_DESCRIPTION_LIMIT - 1] + "…"
        else:
            description = "The list is empty"

        return discord.Embed(title=LIST_TITLE, description=description, color=BIRTHDAY_COLOR)

    # ==================== Background Tasks ====================

    @tasks.loop(time=time(hour=21, minute=0, tzinfo=timezone.utc))
    async def birthday_notify_task(self) -> None:
        await self.scheduler.run_cycle()

    @birthday_notify_task.before_loop
    async def _wait_ready(self) -> None:
        await self.bot.wait_until_ready()

    async def _startup_check(self) -> None:
        await self.bot.wait_until_ready()
        logger.info("Running startup birthday check")
        await self.scheduler.run_cycle()

    # ==================== Commands ====================

    birthday_group = app_commands.Group(
        name="birthday",
        description="Manage member birthdays",
        guild_only=True,
        default_permissions=discord.Permissions(administrator=True),
    )

    async def interaction_check(self, interaction: discord.Interaction) -> bool:  # type: ignore[override]
        return interaction.permissions.administrator

    @birthday_group.command(name="add", description="Add or update a member's birthday")
    @app_commands.describe(user="Member", date="Birthday as DD.MM, for example 15.05")
    async def birthday_add(
        self, interaction: discord.Interaction, user: discord.User, date: str
    ) -> None:
        await interaction.response.defer(ephemeral=True)
        await interaction.followup.send(await self.add_birthday(user, date), ephemeral=True)

    @birthday_group.command(name="remove", description="Remove a member's birthday")
    @app_commands.describe(user="Member")
    async def birthday_remove(self, interaction: discord.Interaction, user: discord.User) -> None:
        await interaction.response.defer(ephemeral=True)
        await interaction.followup.send(await self.remove_birthday(user), ephemeral=True)

    @birthday_group.command(name="list", description="Show all registered birthdays")
    async def birthday_list(self, interaction: discord.Interaction) -> None:
        await interaction.response.defer(ephemeral=True)
        reply = await self.build_birthday_list()
        if isinstance(reply, discord.Embed):
            await interaction.followup.send(embed=reply, ephemeral=True)
        else:
            await interaction.followup.send(reply, ephemeral=True)

    async def cog_app_command_error(
        self, interaction: discord.Interaction, error: app_commands.AppCommandError
    ) -> None:
        if isinstance(error, app_commands.CheckFailure):
            await self._reply(interaction, "❌ Administrators only!")
            return

        logger.error(f"Birthday command error: {error}", exc_info=error)
        await self._reply(interaction, "⚠️ Something went wrong")
