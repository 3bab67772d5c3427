"""Chronological listing of catalogued events."""

import logging
from typing import Optional

from .models import Entry, TemporalLayer
from .store.base import KnowledgeStore

logger = logging.getLogger(__name__)

EVENT_TYPES = ["event", "evento"]


def timeline(
    store: KnowledgeStore,
    world_id: Optional[str] = None,
    layer: Optional[str] = None,
    owner_id: Optional[str] = None,
) -> list[Entry]:
    """List event entries in chronological order.

    Undated events come first, then events by start date. Ties keep creation order.

    Args:
        store: Knowledge store
        world_id: Only events of this world
        layer: Only events of this temporal layer (e.g. "flashback" or "mito")
        owner_id: Only events of this owner

    Returns:
        Event entries
    """
    layer_value = TemporalLayer(layer.strip()).value if layer and layer.strip() else None
    events = store.list_timeline(EVENT_TYPES, container_id=world_id, layer=layer_value, owner_id=owner_id)
    logger.debug("Timeline: %d events", len(events))
    return events
