"""LLM-as-judge for contradictions between a proposal and the catalog."""

import logging
import re
from dataclasses import dataclass, field
from typing import Optional

from ..llm import LLMClient, LLMError
from ..models import Entry
from ..retrieval.retriever import RetrievedEntry, Retriever
from ..store.base import KnowledgeStore

logger = logging.getLogger(__name__)

ALERT_MARKER = "CONSISTENCY ALERT"
CONSISTENT_ANSWER = "CONSISTENT"
NO_ANALYSIS = "No analysis available: the language model did not answer."

FACT_LIMIT = 10
MAX_NAMES = 5
FACT_EXCERPT_CHARS = 300

# Capitalised words and runs of them, e.g. "Ana", "Porto Velho"
PROPER_NOUN = re.compile(r"[A-Z][a-zÀ-ÿ]+(?:\s[A-Z][a-zÀ-ÿ]+)*")


@dataclass
class ConsistencyReport:
    """Advisory result of a consistency check."""
    is_consistent: bool
    analysis: str
    facts: list[RetrievedEntry] = field(default_factory=list)
    hard_facts: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "is_consistent": self.is_consistent,
            "analysis": self.analysis,
            "facts": [f.title for f in self.facts],
            "hard_facts": self.hard_facts,
        }


def candidate_names(text: str, limit: int = MAX_NAMES) -> list[str]:
    """Distinct capitalised phrases in order of first appearance."""
    names: list[str] = []
    for match in PROPER_NOUN.findall(text):
        if match not in names:
            names.append(match)
        if len(names) >= limit:
            break
    return names


def format_hard_fact(entry: Entry) -> str:
    return (
        f"[HARD FACT] {entry.title} ({entry.type}): base year {entry.year or '?'}, "
        f"start {entry.start_date or '?'}, end/death {entry.end_date or '?'}."
    )


class ConsistencyChecker:
    """Asks the language model whether a proposal contradicts stored lore.

    The answer is advisory only; nothing here blocks a write.

    Usage:
        checker = ConsistencyChecker(store)
        report = checker.check("Ana walks into the bar in 1995.")
        if not report.is_consistent:
            print(report.analysis)
    """

    CHECK_PROMPT = '''You are the logical coherence module of a fictional universe.
Your only job is to detect INCONSISTENCIES, ANACHRONISMS and PLOT HOLES.

ESTABLISHED CONTEXT (absolute truth):
{facts}
{hard_facts}

PROPOSED INPUT (what the author wants to create):
"""
{proposal}
"""

Check whether the proposed input contradicts the established context. Look for:
1. Characters acting after their death or before their birth.
2. Characters in two places at the same time.
3. Contradictions of world rules or established personality.
4. Continuity errors (e.g. a destroyed building appearing intact later).

If there are no problems, answer only: "{consistent}".
If there are risks, start with "{alert}:" and list the problems briefly.'''

    def __init__(
        self,
        store: KnowledgeStore,
        llm: Optional[LLMClient] = None,
        retriever: Optional[Retriever] = None,
    ):
        self.store = store
        self.llm = llm or LLMClient()
        self.retriever = retriever or Retriever(store)

    def hard_facts(
        self,
        proposal: str,
        hierarchy_id: Optional[str] = None,
        owner_id: Optional[str] = None,
    ) -> list[str]:
        """Vital dates of in-scope entries named exactly in the proposal."""
        names = candidate_names(proposal)
        if not names:
            return []
        entries = self.store.find_entries_by_titles(
            names,
            limit=MAX_NAMES,
            container_ids=self.retriever.scope(hierarchy_id, owner_id),
            owner_id=owner_id,
        )
        return [format_hard_fact(e) for e in entries]

    def build_prompt(self, proposal: str, facts: list[RetrievedEntry], hard_facts: list[str]) -> str:
        fact_lines = "\n".join(f"- {f.title}: {f.content[:FACT_EXCERPT_CHARS]}" for f in facts)
        return self.CHECK_PROMPT.format(
            facts=fact_lines or "(no related facts found)",
            hard_facts="\n".join(hard_facts),
            proposal=proposal,
            consistent=CONSISTENT_ANSWER,
            alert=ALERT_MARKER,
        )

    def check(
        self,
        proposal: str,
        hierarchy_id: Optional[str] = None,
        owner_id: Optional[str] = None,
    ) -> ConsistencyReport:
        """Check a proposed statement against the catalog.

        Args:
            proposal: New lore the author wants to add
            hierarchy_id: Restrict retrieved facts to this universe
            owner_id: Restrict retrieved facts to this owner

        Returns:
            Report whose ``is_consistent`` is False iff the model raised an alert
        """
        facts = self.retriever.search(proposal, hierarchy_id=hierarchy_id, owner_id=owner_id, limit=FACT_LIMIT)
        hard_facts = self.hard_facts(proposal, hierarchy_id=hierarchy_id, owner_id=owner_id)
        prompt = self.build_prompt(proposal, facts, hard_facts)

        try:
            analysis = self.llm.chat(
                [{"role": "system", "content": prompt}],
                temperature=0.1,
                max_tokens=800,
            )
        except LLMError as e:
            logger.warning("Consistency check failed: %s", e)
            analysis = ""

        analysis = analysis.strip() or NO_ANALYSIS
        return ConsistencyReport(
            is_consistent=ALERT_MARKER not in analysis,
            analysis=analysis,
            facts=facts,
            hard_facts=hard_facts,
        )
