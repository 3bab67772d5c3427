"""Conversational answers grounded in catalogued lore."""

from lore_catalog.chat.assistant import LoreChat, format_context

__all__ = ["LoreChat", "format_context"]
