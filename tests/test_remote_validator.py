"""Tests for remote round-trip validation with a fake QTI service."""
import asyncio
import logging
import threading
import xml.etree.ElementTree as ET

import pytest

from qticraft.core.errors import MalformedDocument, QtiApiError, QtiNotFoundError
from qticraft.services import remote_validator
from qticraft.services.compiler import CompiledDocument, compile_test
from qticraft.models.assessment import AssessmentTestInput
from qticraft.services.remote_validator import (
    ghetto_validate,
    rewrite_root_identifier,
    temp_identifier,
    validate_documents,
    validate_documents_sync,
)


# ── Helper builders ───────────────────────────────────────────────────────────

class FakeClient:
    """In-memory stand-in for QtiClient that records every call."""

    def __init__(self, valid=True, fail_on=(), delete_error=None, upsert_error=None):
        self.store: dict[tuple[str, str], str] = {}
        self.calls: list[tuple] = []
        self.valid = valid
        self.fail_on = set(fail_on)
        self.delete_error = delete_error
        self.upsert_error = upsert_error

    def update(self, kind, identifier, xml):
        self.calls.append(("update", kind, identifier))
        if self.upsert_error:
            raise self.upsert_error
        if (kind, identifier) not in self.store:
            raise QtiNotFoundError("not found", status=404)
        self.store[(kind, identifier)] = xml

    def create(self, kind, xml):
        identifier = xml.split(' identifier="', 1)[1].split('"', 1)[0]
        self.calls.append(("create", kind, identifier))
        self.store[(kind, identifier)] = xml

    def validate_xml(self, schema, xml):
        self.calls.append(("validate", schema))
        for marker in self.fail_on:
            if marker in xml:
                raise RuntimeError(f"validator crashed on {marker}")
        return self.valid

    def delete(self, kind, identifier):
        self.calls.append(("delete", kind, identifier))
        if self.delete_error:
            raise self.delete_error
        self.store.pop((kind, identifier), None)

    def exists(self, kind, identifier):
        return (kind, identifier) in self.store


def _doc(identifier="quiz-1") -> CompiledDocument:
    return compile_test(AssessmentTestInput(identifier=identifier, title="Quiz", sections=[["a"]]))


# ── Identifier rewriting ──────────────────────────────────────────────────────

class TestIdentifiers:
    def test_temp_identifier(self):
        assert temp_identifier("q1", "nice-tmp_") == "nice-tmp_q1"

    def test_empty_prefix_rejected(self):
        with pytest.raises(ValueError):
            temp_identifier("q1", "")

    def test_only_root_identifier_rewritten(self):
        xml = rewrite_root_identifier(_doc().xml, "nice-tmp_quiz-1")
        assert '<qti-assessment-test xmlns=' in xml
        assert 'identifier="nice-tmp_quiz-1"' in xml
        assert 'identifier="SECTION_quiz-1"' in xml
        assert 'identifier="PART_1"' in xml

    def test_no_root_identifier(self):
        with pytest.raises(MalformedDocument):
            rewrite_root_identifier("<qti-assessment-item/>", "x")

    def test_identifier_escaped_for_attribute(self):
        xml = rewrite_root_identifier(_doc().xml, 'a"b&c<d')
        assert 'identifier="a&quot;b&amp;c&lt;d"' in xml
        root = ET.fromstring(xml.encode("utf-8"))
        assert root.get("identifier") == 'a"b&c<d'
        assert len(root.attrib) == len(ET.fromstring(_doc().xml.encode("utf-8")).attrib)


# ── Single document ───────────────────────────────────────────────────────────

class TestGhettoValidate:
    def test_creates_when_missing_then_deletes(self):
        client = FakeClient()
        result = ghetto_validate(_doc(), client, prefix="nice-tmp_")
        assert result.success is True
        assert result.identifier == "quiz-1"
        assert result.temp_identifier == "nice-tmp_quiz-1"
        assert [c[0] for c in client.calls] == ["update", "create", "validate", "delete"]
        assert client.store == {}

    def test_updates_when_present(self):
        client = FakeClient()
        client.store[("test", "nice-tmp_quiz-1")] = "<old/>"
        ghetto_validate(_doc(), client, prefix="nice-tmp_")
        assert [c[0] for c in client.calls] == ["update", "validate", "delete"]

    def test_rejected_by_validator(self):
        result = ghetto_validate(_doc(), FakeClient(valid=False), prefix="nice-tmp_")
        assert result.success is False
        assert "rejected" in result.error

    def test_api_error_captured_and_cleaned_up(self):
        client = FakeClient(upsert_error=QtiApiError("HTTP 500", status=500, body="db down"))
        result = ghetto_validate(_doc(), client, prefix="nice-tmp_")
        assert result.success is False
        assert "db down" in result.error
        assert client.calls[-1][0] == "delete"

    def test_failed_delete_is_logged_not_raised(self, caplog):
        client = FakeClient(delete_error=QtiApiError("HTTP 503", status=503))
        with caplog.at_level(logging.ERROR, logger="qticraft.remote_validator"):
            result = ghetto_validate(_doc(), client, prefix="nice-tmp_")
        assert result.success is True
        assert "failed to delete" in caplog.text

    def test_production_identifier_never_touched(self):
        client = FakeClient()
        ghetto_validate(_doc(), client, prefix="nice-tmp_")
        touched = {c[2] for c in client.calls if len(c) == 3}
        assert touched == {"nice-tmp_quiz-1"}


# ── Batches ───────────────────────────────────────────────────────────────────

class TestValidateDocuments:
    @pytest.fixture(autouse=True)
    def _no_sleep(self, monkeypatch):
        self.sleeps = []

        async def fake_sleep(seconds):
            self.sleeps.append(seconds)

        monkeypatch.setattr(remote_validator.asyncio, "sleep", fake_sleep)

    def test_order_preserved_and_failures_isolated(self):
        docs = [_doc(f"quiz-{i}") for i in range(5)]
        client = FakeClient(fail_on={"nice-tmp_quiz-2"})
        results = asyncio.run(validate_documents(docs, client, batch_size=2, delay_seconds=0.5,
                                                 prefix="nice-tmp_"))
        assert [r.identifier for r in results] == [f"quiz-{i}" for i in range(5)]
        assert [r.success for r in results] == [True, True, False, True, True]
        assert "RuntimeError" in results[2].error
        assert self.sleeps == [0.5, 0.5]

    def test_single_batch_does_not_sleep(self):
        results = validate_documents_sync([_doc()], FakeClient(), batch_size=10, prefix="nice-tmp_")
        assert results[0].success is True
        assert self.sleeps == []

    def test_bad_batch_size(self):
        with pytest.raises(ValueError):
            asyncio.run(validate_documents([_doc()], FakeClient(), batch_size=0))

    def test_empty_input(self):
        assert validate_documents_sync([], FakeClient(), batch_size=3) == []

    def test_batch_members_run_concurrently_and_batches_in_sequence(self):
        batch_size = 3
        barrier = threading.Barrier(batch_size, timeout=5)
        lock = threading.Lock()
        events: list[tuple[str, str]] = []

        class BarrierClient(FakeClient):
            def validate_xml(self, schema, xml):
                identifier = xml.split(' identifier="', 1)[1].split('"', 1)[0]
                with lock:
                    events.append(("start", identifier))
                # every member of the batch must arrive before any proceeds
                barrier.wait()
                with lock:
                    events.append(("end", identifier))
                return super().validate_xml(schema, xml)

        docs = [_doc(f"quiz-{i}") for i in range(6)]
        results = asyncio.run(validate_documents(docs, BarrierClient(), batch_size=batch_size,
                                                 delay_seconds=0, prefix="nice-tmp_"))
        assert [r.success for r in results] == [True] * 6
        assert not barrier.broken

        first = {f"nice-tmp_quiz-{i}" for i in range(3)}
        second = {f"nice-tmp_quiz-{i}" for i in range(3, 6)}
        assert {ident for _, ident in events[:6]} == first
        assert {ident for _, ident in events[6:]} == second
        last_end_of_first = max(i for i, (kind, ident) in enumerate(events) if kind == "end" and ident in first)
        first_start_of_second = min(i for i, (kind, ident) in enumerate(events)
                                    if kind == "start" and ident in second)
        assert last_end_of_first < first_start_of_second
