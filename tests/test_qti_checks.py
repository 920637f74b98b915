"""Tests for post-compile structural document checks."""
import re

from qticraft.services.compiler import compile_item, compile_test
from qticraft.models.assessment import AssessmentTestInput
from qticraft.services.remote_validator import rewrite_root_identifier
from qticraft.services.sanitizer import parse_item
from qticraft.utils.qti_checks import check_document


def _compiled_item_xml(mapping=None) -> str:
    declaration = {"identifier": "RESPONSE", "cardinality": "single", "baseType": "string", "correct": "7"}
    if mapping:
        declaration["mapping"] = mapping
    item = parse_item({
        "identifier": "sum-1",
        "title": "Add",
        "body": '<p>3 + 4 = <slot name="a"/></p>',
        "interactions": {"a": {"type": "textEntryInteraction", "responseIdentifier": "RESPONSE"}},
        "responseDeclarations": [declaration],
        "feedback": {"correct": "<p>Yes</p>", "incorrect": "<p>No</p>"},
    })
    return compile_item(item).xml


class TestCheckDocument:
    def test_compiled_item_passes(self):
        passed, failures = check_document(_compiled_item_xml(), "item")
        assert passed is True
        assert failures == []

    def test_compiled_test_passes(self):
        xml = compile_test(AssessmentTestInput(identifier="t", title="T", sections=[["a"]])).xml
        assert check_document(xml, "test") == (True, [])

    def test_not_well_formed(self):
        passed, failures = check_document("<qti-assessment-item>", "item")
        assert passed is False
        assert failures[0].startswith("NOT_WELL_FORMED")

    def test_root_mismatch(self):
        passed, failures = check_document(_compiled_item_xml(), "stimulus")
        assert passed is False
        assert any(f.startswith("ROOT_MISMATCH") for f in failures)

    def test_temporary_identifier_flagged(self):
        xml = rewrite_root_identifier(_compiled_item_xml(), "nice-tmp_sum-1")
        passed, failures = check_document(xml, "item")
        assert passed is False
        assert any(f.startswith("TEMP_IDENTIFIER") for f in failures)

    def test_schema_location_checked(self):
        xml = _compiled_item_xml().replace("imsqti_asiv3p0p1_v1p0.xsd", "other.xsd")
        passed, failures = check_document(xml, "item")
        assert passed is False
        assert any(f.startswith("SCHEMA_LOCATION") for f in failures)

    def test_leftover_slot(self):
        xml = _compiled_item_xml().replace("<p>3 + 4", '<p><slot name="x"/>3 + 4')
        passed, failures = check_document(xml, "item")
        assert passed is False
        assert any(f.startswith("LEFTOVER_SLOT") for f in failures)

    def test_multi_entry_mapping_is_warning_only(self):
        passed, findings = check_document(_compiled_item_xml({"7": 1, "seven": 1}), "item")
        assert passed is True
        assert len(findings) == 1
        assert findings[0].startswith("MULTI_ENTRY_MAPPING: RESPONSE has 2 entries")

    def test_single_entry_mapping_is_clean(self):
        assert check_document(_compiled_item_xml({"7": 1}), "item") == (True, [])

    def test_schema_location_without_mathml_flagged(self):
        xml = _compiled_item_xml().replace(
            " http://www.w3.org/1998/Math/MathML https://purl.imsglobal.org/spec/mathml/v3p0/schema/xsd/mathml3.xsd",
            "",
        )
        passed, failures = check_document(xml, "item")
        assert passed is False
        assert any(f.startswith("SCHEMA_LOCATION") for f in failures)

    def test_text_entry_outside_block_flagged(self):
        xml, count = re.subn(
            r"<p>3 \+ 4 = (<qti-text-entry-interaction [^>]*/>)</p>", r"<p>3 + 4 =</p>\1", _compiled_item_xml()
        )
        assert count == 1
        passed, failures = check_document(xml, "item")
        assert passed is False
        assert failures == ["TEXT_ENTRY_PLACEMENT: text entry 'RESPONSE' must be wrapped in a block element such as <p>"]

    def test_prompt_outside_interaction_flagged(self):
        xml = _compiled_item_xml().replace("<qti-item-body>", "<qti-item-body><qti-prompt>Add.</qti-prompt>")
        passed, failures = check_document(xml, "item")
        assert passed is False
        assert any(f.startswith("PROMPT_PLACEMENT") for f in failures)
