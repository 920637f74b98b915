"""The schema registry, renderer registry and prompt enumeration must agree."""
import pytest

from qticraft.core.errors import UnknownWidgetType
from qticraft.models.widgets import WIDGET_SCHEMAS, Widget
from qticraft.prompts.widget_mapping import PROMPT_WIDGET_TYPES
from qticraft.widgets.registry import RENDERER_REGISTRY, _load_renderer, registry_consistency


class TestRegistryConsistency:
    def test_no_mismatches(self):
        report = registry_consistency()
        assert all(not tags for tags in report.values()), report

    def test_three_tag_sets_equal(self):
        assert set(WIDGET_SCHEMAS) == set(RENDERER_REGISTRY) == set(PROMPT_WIDGET_TYPES)

    def test_union_members_match_schema_registry(self):
        members = Widget.__origin__.__args__
        assert {m.model_fields["type"].annotation.__args__[0] for m in members} == set(WIDGET_SCHEMAS)

    def test_schema_tags_match_literal(self):
        for tag, model in WIDGET_SCHEMAS.items():
            assert model.model_fields["type"].annotation.__args__ == (tag,)

    @pytest.mark.parametrize("tag", sorted(RENDERER_REGISTRY))
    def test_every_renderer_resolves(self, tag):
        assert callable(_load_renderer(tag))

    def test_unknown_tag_raises(self):
        with pytest.raises(UnknownWidgetType):
            _load_renderer("notAWidget")
