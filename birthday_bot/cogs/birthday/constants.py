"""Birthday feature constants."""

import discord

# Dates
DATE_KEY_FORMAT = "%d.%m"
LEAP_DAY_KEY = "29.02"

# Delivery pacing (seconds between channel messages)
DEFAULT_SEND_DELAY = 1.0

# Theme
BIRTHDAY_COLOR = discord.Color(0xFFA500)
LIST_TITLE = "🎂 Birthday list"

# Discord embed description limit
EMBED_DESCRIPTION_LIMIT = 4096
