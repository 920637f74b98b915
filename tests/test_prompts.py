"""Tests for prompt enumeration, JSON schema export and the AI service wrapper."""
import json
from unittest.mock import MagicMock, patch

import pytest

from qticraft.prompts.widget_mapping import (
    PROMPT_WIDGET_TYPES,
    assessment_item_json_schema,
    build_item_generation_prompt,
    build_widget_mapping_prompt,
    parse_widget_mapping,
    widget_json_schema,
)
from qticraft.services.ai import AIService, get_ai_service


def _mock_client(content: str) -> MagicMock:
    client = MagicMock()
    response = MagicMock()
    response.choices = [MagicMock(message=MagicMock(content=content))]
    client.chat.completions.create.return_value = response
    return client


class TestPromptEnumeration:
    def test_mapping_prompt_lists_every_tag(self):
        prompt = build_widget_mapping_prompt('<p>See <slot name="g"/></p>')
        for tag in PROMPT_WIDGET_TYPES:
            assert f"- {tag}:" in prompt
        assert '<slot name="g"/>' in prompt

    def test_widget_schema_export(self):
        schema = widget_json_schema("barChart")
        assert "data" in schema["properties"]
        assert schema["additionalProperties"] is False

    def test_widget_schema_unknown_tag(self):
        with pytest.raises(KeyError):
            widget_json_schema("hologram")

    def test_item_schema_uses_camel_case_names(self):
        props = assessment_item_json_schema()["properties"]
        assert {"identifier", "title", "body", "responseDeclarations"} <= set(props)

    def test_item_prompt_embeds_schema(self):
        prompt = build_item_generation_prompt("Slope of a line through two points")
        assert "responseDeclarations" in prompt

    def test_unknown_tags_dropped(self):
        mapping = parse_widget_mapping({"widgets": {"a": "barChart", "b": "hologram"}})
        assert mapping == {"a": "barChart"}

    def test_malformed_mapping(self):
        with pytest.raises(ValueError):
            parse_widget_mapping({"widgets": ["barChart"]})


class TestAIService:
    def test_map_widgets_parses_json(self):
        client = _mock_client(json.dumps({"widgets": {"g": "numberLine", "h": "bogus"}}))
        service = AIService(client=client, model="gpt-test")
        assert service.map_widgets('<slot name="g"/>') == {"g": "numberLine"}
        kwargs = client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "gpt-test"
        assert kwargs["response_format"] == {"type": "json_object"}
        assert kwargs["messages"][0]["role"] == "system"

    def test_non_json_answer_raises(self):
        service = AIService(client=_mock_client("not json"), model="gpt-test")
        with pytest.raises(json.JSONDecodeError):
            service.generate_json("hi")

    def test_factory_uses_shared_client(self):
        client = _mock_client("{}")
        with patch("qticraft.services.ai.get_openai_client", return_value=client):
            service = get_ai_service()
        assert service.client is client
        assert service.generate_json("hi") == {}
