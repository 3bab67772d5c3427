"""Reconcile two stored entries that describe the same thing.

A person picks a winner and a loser and supplies the merged record. The winner
takes the merged fields, inherits the loser's codes and relations, and the
loser is deleted. Each step can be re-run safely if a previous attempt stopped
half way.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from ..errors import ReconciliationError, StoreError
from ..models import DuplicateCandidate, Entry, MergedRecord
from ..store.base import KnowledgeStore

logger = logging.getLogger(__name__)


@dataclass
class ReconcileResult:
    """What a reconciliation changed."""
    winner: Entry
    codes_moved: int
    relations_moved: int
    loser_deleted: bool


def apply_merged_record(winner: Entry, merged: MergedRecord) -> Entry:
    """The winner with every mutable field replaced by the merged record."""
    fields = merged.model_dump()
    fields["type"] = merged.type.strip().lower()
    fields["title"] = merged.title.strip()
    return winner.model_copy(update=fields)


def reconcile(
    store: KnowledgeStore,
    winner_id: str,
    loser_id: str,
    merged: MergedRecord | dict,
) -> ReconcileResult:
    """Merge ``loser_id`` into ``winner_id``.

    Args:
        store: Knowledge store
        winner_id: Entry that survives
        loser_id: Entry that is removed
        merged: Field values for the surviving entry

    Returns:
        The updated winner and counts of what moved

    Raises:
        ReconciliationError: If the ids are invalid, the merged record is
            malformed, the merged identity belongs to a third entry, or a
            store call fails
    """
    if not winner_id or not loser_id or winner_id == loser_id:
        raise ReconciliationError(
            "Winner and loser must be two different entries",
            details={"winner_id": winner_id, "loser_id": loser_id},
        )
    if not isinstance(merged, MergedRecord):
        try:
            merged = MergedRecord.model_validate(merged)
        except ValueError as e:
            raise ReconciliationError(f"Invalid merged record: {e}", cause=e) from e

    try:
        winner = store.get_entry(winner_id)
        if winner is None:
            raise ReconciliationError(f"Winner {winner_id} not found", details={"winner_id": winner_id})

        clash = store.find_entry(merged.type, merged.title)
        if clash is not None and clash.id not in (winner_id, loser_id):
            raise ReconciliationError(
                f"'{merged.title}' already exists as another {merged.type}",
                details={"entry_id": clash.id},
            )

        winner = store.update_entry(apply_merged_record(winner, merged))
        codes_moved = store.repoint_codes(loser_id, winner_id)
        relations_moved = store.repoint_relations(loser_id, winner_id)
        deleted = store.delete_entry(loser_id)
    except StoreError as e:
        raise ReconciliationError(f"Reconciliation failed: {e}", cause=e) from e

    logger.info(
        "Merged %s into %s (%d codes, %d relations moved)",
        loser_id, winner_id, codes_moved, relations_moved,
    )
    return ReconcileResult(
        winner=winner,
        codes_moved=codes_moved,
        relations_moved=relations_moved,
        loser_deleted=deleted,
    )


def find_duplicates(
    store: KnowledgeStore,
    threshold: float = 0.3,
    owner_id: Optional[str] = None,
) -> list[DuplicateCandidate]:
    """Probable duplicate pairs, best first.

    With an owner, only pairs where both entries belong to that owner are kept.
    """
    candidates = store.find_potential_duplicates(threshold)
    if owner_id is None:
        return candidates

    owned = {e.id for e in store.list_entries(owner_id=owner_id)}
    return [c for c in candidates if c.id_a in owned and c.id_b in owned]
