"""Tests for schema parsing, markup sanitization and cross-field checks."""
import copy
import json

import pytest

from qticraft.core.errors import SanitizationError, SchemaValidationError
from qticraft.services.sanitizer import check_item, find_latex, parse_item, parse_stimulus, sanitize_markup


# ── Helper builders ───────────────────────────────────────────────────────────

def _raw_item(**overrides) -> dict:
    raw = {
        "identifier": "item-1",
        "title": "Solve for x",
        "body": '<p>Solve 2x = 6.</p><p>x = <slot name="answer"/></p>',
        "interactions": {
            "answer": {"type": "textEntryInteraction", "responseIdentifier": "RESPONSE", "expectedLength": 3},
        },
        "responseDeclarations": [
            {"identifier": "RESPONSE", "cardinality": "single", "baseType": "integer", "correct": 3},
        ],
        "feedback": {"correct": "<p>Yes.</p>", "incorrect": "<p>Divide both sides by 2.</p>"},
    }
    raw.update(overrides)
    return raw


# ── Markup allow-list ─────────────────────────────────────────────────────────

class TestSanitizeMarkup:
    def test_allowed_markup_unchanged(self):
        markup = "<p>Hello <strong>world</strong> and <em>you</em></p>"
        assert sanitize_markup(markup) == markup

    def test_void_tags_self_closed(self):
        assert sanitize_markup("<p>a<br>b</p>") == "<p>a<br/>b</p>"

    def test_slot_preserved(self):
        markup = '<p><slot name="w1"/></p>'
        assert sanitize_markup(markup) == markup

    def test_attributes_quoted(self):
        assert sanitize_markup("<span class=big>x</span>") == '<span class="big">x</span>'

    def test_text_re_escaped(self):
        assert sanitize_markup("<p>1 &lt; 2 &amp; 3</p>") == "<p>1 &lt; 2 &amp; 3</p>"

    def test_comments_dropped(self):
        assert sanitize_markup("<p>a<!-- note -->b</p>") == "<p>ab</p>"

    def test_mathml_allowed(self):
        markup = "<math><mfrac><mn>1</mn><mn>2</mn></mfrac></math>"
        assert sanitize_markup(markup) == markup

    def test_script_rejected(self):
        with pytest.raises(SanitizationError) as exc:
            sanitize_markup("<p>hi</p><script>alert(1)</script>", "body")
        assert exc.value.field == "body"

    def test_event_handler_rejected(self):
        with pytest.raises(SanitizationError):
            sanitize_markup('<p onclick="steal()">x</p>')

    def test_unknown_attribute_rejected(self):
        with pytest.raises(SanitizationError):
            sanitize_markup('<p style="color:red">x</p>')

    def test_javascript_image_rejected(self):
        with pytest.raises(SanitizationError):
            sanitize_markup('<img src="javascript:alert(1)" alt="x"/>')

    def test_https_image_allowed(self):
        out = sanitize_markup('<img src="https://example.org/a.png" alt="a">')
        assert out == '<img src="https://example.org/a.png" alt="a"/>'

    def test_unbalanced_markup_rejected(self):
        with pytest.raises(SanitizationError):
            sanitize_markup("<p><b>x</p></b>")

    def test_unclosed_markup_rejected(self):
        with pytest.raises(SanitizationError):
            sanitize_markup("<p>x")

    def test_slot_without_name_rejected(self):
        with pytest.raises(SanitizationError):
            sanitize_markup("<slot/>")

    def test_mfenced_rejected(self):
        markup = "<math><mfenced><mi>x</mi></mfenced></math>"
        with pytest.raises(SanitizationError) as exc:
            sanitize_markup(markup, "body")
        assert "deprecated" in str(exc.value)

    def test_mrow_delimiters_allowed(self):
        markup = "<math><mrow><mo>(</mo><mi>x</mi><mo>)</mo></mrow></math>"
        assert sanitize_markup(markup) == markup


# ── LaTeX detection ───────────────────────────────────────────────────────────

class TestLatex:
    @pytest.mark.parametrize("markup", [
        r"<p>Simplify \frac{1}{2} + \frac{1}{3}.</p>",
        r"<p>Evaluate \(x + 1\).</p>",
        "<p>Solve $x^2 = 9$.</p>",
        r"<p>What is $\frac{a}{b}$?</p>",
        "<p>If $2x + 3 = 7$, find x.</p>",
    ])
    def test_latex_rejected(self, markup):
        with pytest.raises(SanitizationError) as exc:
            sanitize_markup(markup, "body")
        assert "LaTeX" in str(exc.value)
        assert exc.value.field == "body"

    @pytest.mark.parametrize("markup", [
        "<p>A pen costs $5 and a book costs $12.50.</p>",
        "<p>Sam saved $1,200, then spent $300.</p>",
        '<p>Price: <span class="currency">$</span><math><mn>4</mn></math></p>',
        "<p>Tickets cost $8 each.</p>",
    ])
    def test_currency_allowed(self, markup):
        assert sanitize_markup(markup) == markup

    def test_find_latex_reports_fragment(self):
        assert find_latex(r"<p>\sqrt{2}</p>") == r"\sqrt"
        assert find_latex("<p>Solve $y = 3$ now.</p>") == "$y = 3$"
        assert find_latex("<p>Plain text.</p>") is None

    def test_item_body_with_latex_rejected(self):
        raw = _raw_item(body=r'<p>Solve \(2x = 6\).</p><p>x = <slot name="answer"/></p>')
        with pytest.raises(SanitizationError):
            parse_item(raw)


# ── Schema parsing ────────────────────────────────────────────────────────────

class TestParseItem:
    def test_valid_item(self):
        item = parse_item(_raw_item())
        assert item.identifier == "item-1"
        assert item.interactions["answer"].responseIdentifier == "RESPONSE"

    def test_json_text_accepted(self):
        assert parse_item(json.dumps(_raw_item())).title == "Solve for x"

    def test_missing_title_rejected(self):
        raw = _raw_item()
        del raw["title"]
        with pytest.raises(SchemaValidationError) as exc:
            parse_item(raw)
        assert any(d["loc"] == "title" for d in exc.value.diagnostics)

    def test_blank_title_rejected(self):
        with pytest.raises(SchemaValidationError):
            parse_item(_raw_item(title="   "))

    def test_unknown_key_rejected(self):
        with pytest.raises(SchemaValidationError) as exc:
            parse_item(_raw_item(difficulty="hard"))
        assert exc.value.diagnostics[0]["type"] == "extra_forbidden"

    def test_bad_json_text(self):
        with pytest.raises(SchemaValidationError) as exc:
            parse_item("{not json")
        assert exc.value.diagnostics[0]["type"] == "json_invalid"

    def test_unknown_widget_type_rejected(self):
        raw = _raw_item(widgets={"g": {"type": "hologram"}})
        with pytest.raises(SchemaValidationError):
            parse_item(raw)

    def test_markup_is_sanitized(self):
        item = parse_item(_raw_item(body='<p>x =<br><slot name="answer"/></p>'))
        assert item.body == '<p>x =<br/><slot name="answer"/></p>'

    def test_dirty_feedback_fails_whole_item(self):
        raw = _raw_item(feedback={"correct": "<p>ok</p>", "incorrect": "<iframe></iframe>"})
        with pytest.raises(SanitizationError) as exc:
            parse_item(raw)
        assert exc.value.field == "feedback.incorrect"

    def test_choice_content_sanitized(self):
        raw = _raw_item(
            body='<slot name="q"/>',
            interactions={"q": {
                "type": "choiceInteraction", "responseIdentifier": "RESPONSE", "prompt": "Pick",
                "choices": [{"identifier": "A", "content": "<b onmouseover='x()'>A</b>"}],
            }},
            responseDeclarations=[{"identifier": "RESPONSE", "cardinality": "single",
                                   "baseType": "identifier", "correct": "A"}],
        )
        with pytest.raises(SanitizationError) as exc:
            parse_item(raw)
        assert exc.value.field == "interactions.q.choices.0.content"


# ── Cross-field checks ────────────────────────────────────────────────────────

class TestCheckItem:
    def test_clean_item_has_no_diagnostics(self):
        assert check_item(parse_item(_raw_item())) == []

    def test_unplaced_interaction(self):
        raw = _raw_item(body="<p>No slot here.</p>")
        with pytest.raises(SchemaValidationError) as exc:
            parse_item(raw)
        assert exc.value.diagnostics[0]["check"] == "slot_usage"

    def test_undefined_slot(self):
        raw = _raw_item(body='<slot name="answer"/><slot name="ghost"/>')
        with pytest.raises(SchemaValidationError) as exc:
            parse_item(raw)
        assert any(d["check"] == "slot_undefined" for d in exc.value.diagnostics)

    def test_undeclared_response(self):
        raw = copy.deepcopy(_raw_item())
        raw["interactions"]["answer"]["responseIdentifier"] = "OTHER"
        with pytest.raises(SchemaValidationError) as exc:
            parse_item(raw)
        checks = {d["check"] for d in exc.value.diagnostics}
        assert "undeclared_response" in checks

    def test_unbound_declaration_is_only_a_warning(self):
        raw = _raw_item(responseDeclarations=[
            {"identifier": "RESPONSE", "cardinality": "single", "baseType": "integer", "correct": 3},
            {"identifier": "SPARE", "cardinality": "single", "baseType": "integer", "correct": 1},
        ])
        item = parse_item(raw)
        diagnostics = check_item(item)
        assert [d["severity"] for d in diagnostics] == ["WARNING"]


class TestParseStimulus:
    def test_stimulus_with_widget(self):
        stimulus = parse_stimulus({
            "identifier": "stim-1", "title": "Data", "body": '<p>Read:</p><slot name="t"/>',
            "widgets": {"t": {"type": "dataTable", "columns": [{"key": "a", "label": "A"}]}},
        })
        assert stimulus.identifier == "stim-1"

    def test_unplaced_widget(self):
        with pytest.raises(SchemaValidationError):
            parse_stimulus({
                "identifier": "stim-1", "title": "Data", "body": "<p>Read.</p>",
                "widgets": {"t": {"type": "dataTable", "columns": [{"key": "a", "label": "A"}]}},
            })
