"""Tests for LLM-based entry extraction."""

import json

import httpx
import pytest
from conftest import FakeLLM, entries_reply, failing

from lore_catalog.config import Settings
from lore_catalog.extract.extractor import (
    EntryExtractor,
    format_categories,
    load_type_descriptions,
    normalize_episode,
    parse_entries,
)
from lore_catalog.llm import LLMClient, LLMError


def segment_text(messages) -> str:
    return messages[-1]["content"]


class TestParseEntries:
    """Test validation of raw model output."""

    def test_entries_wrapper(self):
        entries = parse_entries({"entries": [{"type": "character", "title": "Ana"}]})
        assert [e.title for e in entries] == ["Ana"]

    def test_legacy_wrapper(self):
        entries = parse_entries({"fichas": [{"tipo": "local", "titulo": "Farol"}]})
        assert [e.title for e in entries] == ["Farol"]

    def test_bare_list(self):
        assert len(parse_entries([{"type": "event", "title": "Flood"}])) == 1

    def test_malformed_records_dropped(self):
        entries = parse_entries({"entries": [
            {"type": "character", "title": "Ana"},
            {"type": "character"},
            "not a record",
            {"type": "", "title": "Nameless"},
        ]})
        assert [e.title for e in entries] == ["Ana"]

    def test_unexpected_shape(self):
        assert parse_entries({"result": "nothing"}) == []
        assert parse_entries("text") == []


class TestEntryExtractor:
    """Test segment fan-out and fan-in."""

    @pytest.fixture
    def settings(self):
        return Settings(segment_max_chars=40, extraction_workers=4)

    def test_single_segment(self, settings):
        llm = FakeLLM(entries_reply({"type": "character", "title": "Ana"}))
        entries = EntryExtractor(llm=llm, settings=settings).extract("Ana keeps the lamp.")

        assert [e.title for e in entries] == ["Ana"]
        assert len(llm.calls) == 1

    def test_results_in_segment_order(self, settings):
        names = ["Alpha", "Bravo", "Charlie", "Delta", "Echo"]
        text = "\n".join(f"{name} appears in this paragraph here." for name in names)

        def respond(messages):
            content = segment_text(messages)
            found = [n for n in names if n in content]
            return entries_reply(*({"type": "character", "title": n} for n in found))

        entries = EntryExtractor(llm=FakeLLM(respond), settings=settings).extract(text)
        assert [e.title for e in entries] == names

    def test_failed_segment_contributes_nothing(self, settings):
        text = "Alpha is here in paragraph one.\nBravo is here in paragraph two."

        def respond(messages):
            content = segment_text(messages)
            if "Bravo" in content:
                raise LLMError("timeout")
            return entries_reply({"type": "character", "title": "Alpha"})

        entries = EntryExtractor(llm=FakeLLM(respond), settings=settings).extract(text)
        assert [e.title for e in entries] == ["Alpha"]

    def test_non_finite_year_drops_only_that_record(self, settings):
        text = "Ana is here in paragraph one.\nBia is here in paragraph two."

        def respond(messages):
            if "Ana" in segment_text(messages):
                return '{"entries":[{"type":"character","title":"Ana","year":1e999}]}'
            return entries_reply({"type": "character", "title": "Bia"})

        entries = EntryExtractor(llm=FakeLLM(respond), settings=settings).extract(text)
        assert [e.title for e in entries] == ["Bia"]

    def test_unexpected_error_isolated_to_segment(self, settings):
        text = "Alpha is here in paragraph one.\nBravo is here in paragraph two."

        def respond(messages):
            if "Bravo" in segment_text(messages):
                raise RuntimeError("backend exploded")
            return entries_reply({"type": "character", "title": "Alpha"})

        entries = EntryExtractor(llm=FakeLLM(respond), settings=settings).extract(text)
        assert [e.title for e in entries] == ["Alpha"]

    def test_backend_html_body(self, settings, monkeypatch):
        monkeypatch.setattr(httpx, "post", lambda *a, **k: httpx.Response(200, text="<html>proxy</html>"))
        llm = LLMClient(provider="ollama", model="llama")
        assert EntryExtractor(llm=llm, settings=settings).extract("Ana keeps the lamp.") == []

    def test_non_json_response(self, settings):
        entries = EntryExtractor(llm=FakeLLM("I could not find anything."), settings=settings).extract("Ana.")
        assert entries == []

    def test_all_segments_fail(self, settings):
        assert EntryExtractor(llm=FakeLLM(failing), settings=settings).extract("Ana.") == []

    def test_episode_stamped(self, settings):
        llm = FakeLLM(entries_reply({"type": "character", "title": "Ana", "aparece_em": "old"}))
        entries = EntryExtractor(llm=llm, settings=settings).extract("Ana.", appears_in="Ep. 07")
        assert entries[0].appears_in == "7"

    def test_code_fenced_response(self, settings):
        reply = "```json\n" + json.dumps({"entries": [{"type": "object", "title": "Lamp"}]}) + "\n```"
        entries = EntryExtractor(llm=FakeLLM(reply), settings=settings).extract("The lamp.")
        assert [e.title for e in entries] == ["Lamp"]

    def test_empty_text(self, settings):
        llm = FakeLLM(entries_reply())
        assert EntryExtractor(llm=llm, settings=settings).extract("   ") == []
        assert llm.calls == []

    def test_allowed_types_in_prompt(self, settings):
        llm = FakeLLM(entries_reply())
        EntryExtractor(llm=llm, settings=settings).extract(
            "Ana.",
            allowed_types=["vehicle"],
            type_descriptions={"vehicle": "Anything that moves people."},
        )
        system = llm.calls[0][0]["content"]
        assert "### VEHICLE" in system
        assert "Anything that moves people." in system


class TestHelpers:
    """Test prompt and episode helpers."""

    def test_normalize_episode(self):
        assert normalize_episode("Ep. 07") == "7"
        assert normalize_episode(12) == "12"
        assert normalize_episode("pilot") == ""

    def test_category_without_description(self):
        section = format_categories(["character"])
        assert "### CHARACTER" in section
        assert "infer the meaning" in section

    def test_type_descriptions_from_object(self, tmp_path):
        path = tmp_path / "types.json"
        path.write_text(json.dumps({"Vehicle": "Anything that moves people.", "ship": None}), encoding="utf-8")
        assert load_type_descriptions(path) == {"vehicle": "Anything that moves people.", "ship": ""}

    def test_type_descriptions_from_category_records(self, tmp_path):
        path = tmp_path / "categories.json"
        path.write_text(json.dumps([
            {"slug": "personagem", "label": "Personagem", "description": "Pessoas."},
            {"slug": "local"},
        ]), encoding="utf-8")
        assert list(load_type_descriptions(path)) == ["personagem", "local"]

    @pytest.mark.parametrize("content", ["not json", "[1, 2]", "\"text\""])
    def test_type_descriptions_rejected(self, tmp_path, content):
        path = tmp_path / "types.json"
        path.write_text(content, encoding="utf-8")
        with pytest.raises(ValueError):
            load_type_descriptions(path)
