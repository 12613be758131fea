"""
Birthday Bot
Uses discord.py 2.x and Slash Commands
"""

import asyncio
import logging
import sys

import discord
from discord.ext import commands
from dotenv import load_dotenv
from pydantic import ValidationError

from birthday_bot.core import HealthCheckServer, setup_logging
from birthday_bot.core.config import PROJECT_DIR, BotSettings, get_settings
from birthday_bot.database import BirthdayRepository, Database

logger = logging.getLogger("birthday_bot")


class BirthdayBot(commands.Bot):
    """Discord client that owns the birthday store for its lifetime"""

    def __init__(self, settings: BotSettings, database: Database) -> None:
        intents = discord.Intents.default()
        intents.members = True

        super().__init__(
            command_prefix=commands.when_mentioned,
            intents=intents,
            application_id=settings.client_id,
            help_command=None,
        )

        self.settings = settings
        self.database = database
        self.repository = BirthdayRepository(database)

        self.initial_extensions = [
            "birthday_bot.cogs.birthday",
        ]

    async def setup_hook(self) -> None:
        """Load cogs and sync slash commands to the configured guild"""
        for extension in self.initial_extensions:
            await self.load_extension(extension)
            logger.info(f"[green]Loaded extension:[/green] {extension.split('.')[-1]}")

        guild = discord.Object(id=self.settings.guild_id)
        self.tree.copy_global_to(guild=guild)
        synced = await self.tree.sync(guild=guild)
        logger.info(f"[magenta]Synced {len(synced)} slash command(s) to guild {guild.id}[/magenta]")

        logger.info("[yellow]Connecting to Discord...[/yellow]")

    async def on_ready(self) -> None:
        """Fired once the connection is ready"""
        logger.info(
            f"[bold green]Bot ready:[/bold green] {self.user} [dim](ID: {self.user.id if self.user else '?'})[/dim]"
        )
        logger.info(
            f"[cyan]Connected:[/cyan] {len(self.guilds)} guild(s) | discord.py {discord.__version__}"
        )


async def main() -> int:
    """Bot entry point. Returns the process exit code."""
    load_dotenv(dotenv_path=PROJECT_DIR / ".env", encoding="utf-8")

    try:
        settings = get_settings()
    except ValidationError as e:
        setup_logging()
        logger.error("[bold red]Missing or invalid environment variables[/bold red]")
        for err in e.errors():
            field = ".".join(str(part) for part in err["loc"]).upper()
            logger.error(f"  {field}: {err['msg']}")
        return 1

    setup_logging(settings.log_level)

    database = Database(settings.database_path)
    try:
        await database.initialize()
    except Exception as e:
        logger.exception(f"[bold red]Cannot open database {settings.database_path}:[/bold red] {e}")
        return 1

    async with BirthdayBot(settings, database) as bot:
        health_server = HealthCheckServer(bot, port=settings.port)
        await health_server.start()
        try:
            await bot.start(settings.bot_token)
        except discord.LoginFailure as e:
            logger.error(f"[bold red]Login failed:[/bold red] {e}")
            return 1
        except (KeyboardInterrupt, asyncio.CancelledError):
            if not bot.is_closed():
                await bot.close()
        finally:
            await health_server.stop()

    return 0


def run() -> None:
    """Console script entry point"""
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        logger.info("[yellow]Bot stopped manually[/yellow]")
