"""Raw JSON → sanitize → render widgets → compile, as one call."""
import logging

from qticraft.services.compiler import CompiledDocument, compile_item, compile_stimulus
from qticraft.services.sanitizer import parse_item, parse_stimulus
from qticraft.services.telemetry import emit_event, instrument
from qticraft.utils.qti_checks import check_document
from qticraft.widgets.registry import render_widget

logger = logging.getLogger("qticraft.pipeline")


def render_all_widgets(widgets: dict) -> dict[str, str]:
    """Render every widget by slot; the first failure propagates."""
    fragments = {}
    for slot, widget in widgets.items():
        try:
            fragments[slot] = render_widget(widget)
        except Exception:
            logger.error("widget %s (%s) failed to render", slot, widget.type)
            raise
    return fragments


def _post_check(doc: CompiledDocument) -> None:
    passed, issues = check_document(doc.xml, doc.kind)
    emit_event("document_checked", stage="post_check", identifier=doc.identifier,
               kind=doc.kind, count=len(issues), ok=passed)


@instrument("compile_item")
def compile_from_json(raw) -> CompiledDocument:
    item = parse_item(raw)
    doc = compile_item(item, render_all_widgets(item.widgets))
    _post_check(doc)
    return doc


@instrument("compile_stimulus")
def compile_stimulus_from_json(raw) -> CompiledDocument:
    stimulus = parse_stimulus(raw)
    doc = compile_stimulus(stimulus, render_all_widgets(stimulus.widgets))
    _post_check(doc)
    return doc
