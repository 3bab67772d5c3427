"""Consistency checking of proposed lore against established facts."""

from lore_catalog.consistency.checker import ALERT_MARKER, ConsistencyChecker, ConsistencyReport

__all__ = ["ALERT_MARKER", "ConsistencyChecker", "ConsistencyReport"]
