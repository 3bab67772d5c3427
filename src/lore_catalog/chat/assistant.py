"""Lore chat: retrieve facts for a question, then stream a grounded answer."""

import logging
from typing import Iterator, Optional

from ..llm import LLMClient, LLMError, Message
from ..retrieval.retriever import RetrievedEntry, Retriever
from ..store.base import KnowledgeStore

logger = logging.getLogger(__name__)

NO_CONTEXT = "No relevant excerpt found in the lore catalog."
STREAM_FAILED_REPLY = "Sorry, something went wrong while generating the answer."

CHAT_SYSTEM_PROMPT = """You are the guardian of a fictional universe, an assistant that helps organize and expand its lore.
You work in a closed environment: use only the information in the lore catalog and the excerpts provided.
LOOKUP mode: if the user asks you not to invent anything, answer only from the lore context below, and say so when something has not been defined yet.
CREATION mode: if the user asks for help creating or expanding stories, you may propose new ideas, but keep them coherent with the lore provided.
Always make clear when you are proposing something new ("new lore proposal") and when you are citing something already canon.

### Available lore context:
{context}"""


def format_context(facts: list[RetrievedEntry]) -> str:
    """Number the retrieved excerpts with their title and source."""
    if not facts:
        return NO_CONTEXT
    return "\n\n".join(
        f"# Excerpt {i} - {fact.title} [source: {fact.source}]\n{fact.content}"
        for i, fact in enumerate(facts, start=1)
    )


class LoreChat:
    """Answers questions about the catalog, streaming the reply.

    Usage:
        chat = LoreChat(store)
        for token in chat.ask("Who keeps the lighthouse?", hierarchy_id=universe.id):
            print(token, end="")
    """

    def __init__(
        self,
        store: KnowledgeStore,
        llm: Optional[LLMClient] = None,
        retriever: Optional[Retriever] = None,
    ):
        self.store = store
        self.llm = llm or LLMClient()
        self.retriever = retriever or Retriever(store)

    def build_messages(
        self,
        question: str,
        facts: list[RetrievedEntry],
        history: Optional[list[Message]] = None,
    ) -> list[Message]:
        system = {"role": "system", "content": CHAT_SYSTEM_PROMPT.format(context=format_context(facts))}
        return [system, *(history or []), {"role": "user", "content": question}]

    def ask(
        self,
        question: str,
        hierarchy_id: Optional[str] = None,
        owner_id: Optional[str] = None,
        history: Optional[list[Message]] = None,
    ) -> Iterator[str]:
        """Stream an answer to ``question``.

        Args:
            question: The user's latest message
            hierarchy_id: Restrict retrieved lore to this universe
            owner_id: Restrict retrieved lore to this owner
            history: Earlier user and assistant turns, oldest first

        Yields:
            Text deltas of the answer. A backend failure ends the stream with
            an apology instead of raising.
        """
        facts = self.retriever.search(question, hierarchy_id=hierarchy_id, owner_id=owner_id)
        logger.debug("Chat context: %d excerpts", len(facts))
        messages = self.build_messages(question, facts, history)

        try:
            yield from self.llm.stream(messages, temperature=0.7, max_tokens=900)
        except LLMError as e:
            logger.error("Chat streaming failed: %s", e)
            yield STREAM_FAILED_REPLY
