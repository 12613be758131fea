"""Discord bot that congratulates members on their birthdays."""

__version__ = "1.0.0"
