"""Afterhours engagement service: XP, quests, achievements, streaks and weekly recaps."""

__version__ = "0.1.0"
