"""Tests for the lore chat."""

import pytest
from conftest import FakeLLM, failing

from lore_catalog.chat.assistant import NO_CONTEXT, STREAM_FAILED_REPLY, LoreChat, format_context
from lore_catalog.models import Container, Entry
from lore_catalog.retrieval.retriever import Retriever


class TokenLLM(FakeLLM):
    """Streams the scripted reply word by word."""

    def stream(self, messages, temperature=0.7, max_tokens=900, timeout=None):
        for word in self.chat(messages).split(" "):
            yield word + " "


class TestLoreChat:
    """Test grounded, streamed answers."""

    @pytest.fixture
    def populated(self, store, world):
        store.insert_entry(Entry(type="character", title="Ana", summary="Keeper of the lighthouse.",
                                 container_id=world.id, owner_id="owner-1"))
        other = store.save_container(Container(name="Elsewhere", hierarchy_id="u2", owner_id="owner-2"))
        store.insert_entry(Entry(type="character", title="Ana Twin", summary="Ana from another world.",
                                 container_id=other.id, owner_id="owner-2"))
        return store

    def chat(self, store, llm):
        return LoreChat(store, llm=llm, retriever=Retriever(store, limit=6))

    def test_answer_streamed_in_pieces(self, populated):
        llm = TokenLLM("Ana keeps the lamp.")
        tokens = list(self.chat(populated, llm).ask("Who is Ana?"))
        assert len(tokens) == 4
        assert "".join(tokens).strip() == "Ana keeps the lamp."

    def test_retrieved_lore_reaches_system_prompt(self, populated):
        llm = FakeLLM("ok")
        list(self.chat(populated, llm).ask("Who is Ana?", hierarchy_id="u1", owner_id="owner-1"))

        messages = llm.calls[0]
        assert messages[0]["role"] == "system"
        assert "Keeper of the lighthouse." in messages[0]["content"]
        assert "Ana from another world." not in messages[0]["content"]
        assert messages[-1] == {"role": "user", "content": "Who is Ana?"}

    def test_history_kept_between_system_and_question(self, populated):
        llm = FakeLLM("ok")
        history = [{"role": "user", "content": "Hi"}, {"role": "assistant", "content": "Hello"}]
        list(self.chat(populated, llm).ask("Who is Ana?", history=history))
        assert llm.calls[0][1:3] == history

    def test_no_matching_lore(self, populated):
        llm = FakeLLM("ok")
        list(self.chat(populated, llm).ask("Who is Zed?"))
        assert NO_CONTEXT in llm.calls[0][0]["content"]

    def test_backend_failure_apologises(self, populated):
        assert list(self.chat(populated, FakeLLM(failing)).ask("Who is Ana?")) == [STREAM_FAILED_REPLY]


class TestFormatContext:
    """Test excerpt rendering."""

    def test_numbered_with_source(self, store):
        entry = store.insert_entry(Entry(type="location", title="Lighthouse", summary="On the cliff."))
        facts = Retriever(store, limit=6).search("lighthouse")
        text = format_context(facts)
        assert text.startswith("# Excerpt 1 - Lighthouse")
        assert f"[source: entry:{entry.id}]" in text
