"""
QTI 3.0 document compiler.

Pure and synchronous: takes a sanitized item plus rendered widget
fragments and emits one ``CompiledDocument``. Never performs I/O, never
retries, never emits a partial document.
"""
import html
import logging
import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from decimal import Decimal
from math import gcd
from typing import Literal
from urllib.parse import quote

from qticraft.core.errors import (
    BucketingError,
    MalformedDocument,
    PlacementError,
    ResponseDeclarationError,
    SlotResolutionError,
    UnsupportedInteraction,
)
from qticraft.models.assessment import (
    AssessmentItemInput,
    AssessmentTestInput,
    ChoiceInteraction,
    InlineChoiceInteraction,
    OrderInteraction,
    ResponseDeclaration,
    StimulusInput,
    TextEntryInteraction,
)
from qticraft.utils.slots import SLOT_RE
from qticraft.widgets.registry import is_html_widget, render_widget

logger = logging.getLogger("qticraft.compiler")

QTI_NS = "http://www.imsglobal.org/xsd/imsqtiasi_v3p0"
XSI_NS = "http://www.w3.org/2001/XMLSchema-instance"
QTI_SCHEMA_LOCATION = (
    "http://www.imsglobal.org/xsd/imsqtiasi_v3p0 "
    "https://purl.imsglobal.org/spec/qti/v3p0/schema/xsd/imsqti_asiv3p0p1_v1p0.xsd "
    "http://www.w3.org/1998/Math/MathML "
    "https://purl.imsglobal.org/spec/mathml/v3p0/schema/xsd/mathml3.xsd"
)
MATHML_NS = "http://www.w3.org/1998/Math/MathML"
XML_DECL = '<?xml version="1.0" encoding="UTF-8"?>'

MAX_SLOT_DEPTH = 10
RESERVED_OUTCOMES = ("SCORE", "FEEDBACK", "FEEDBACK-INLINE")
TEXT_ENTRY_CONTAINERS = {
    "p", "div", "li", "td", "th", "dd", "dt", "blockquote", "section", "article",
    "aside", "nav", "header", "footer", "main", "figure", "figcaption",
}

DocumentKind = Literal["item", "test", "stimulus"]

_MATH_WITHOUT_NS = re.compile(r"<math(?![^>]*\bxmlns=)(?=[\s/>])")


@dataclass(frozen=True)
class CompiledDocument:
    kind: DocumentKind
    identifier: str
    title: str
    xml: str

    @property
    def root_tag(self) -> str:
        return f"qti-assessment-{self.kind}"


def _attr(value) -> str:
    return html.escape(str(value), quote=True)


def _bool(value: bool) -> str:
    return "true" if value else "false"


def _root_open(kind: DocumentKind, identifier: str, title: str, extra: str = "") -> str:
    return (
        f'<qti-assessment-{kind} xmlns="{QTI_NS}" xmlns:xsi="{XSI_NS}" '
        f'xsi:schemaLocation="{QTI_SCHEMA_LOCATION}" '
        f'identifier="{_attr(identifier)}" title="{_attr(title)}"{extra} xml:lang="en-US">'
    )


def _with_mathml_ns(markup: str) -> str:
    return _MATH_WITHOUT_NS.sub(f'<math xmlns="{MATHML_NS}"', markup)


# ── Widgets ──────────────────────────────────────────────────────────────────

def embed_widget(widget_type: str, fragment: str) -> str:
    """SVG goes in as a data-URI image, HTML fragments go in verbatim."""
    if is_html_widget(widget_type):
        return fragment
    src = "data:image/svg+xml," + quote(fragment, safe="!~*'()")
    alt = f"A visual element of type {widget_type}."
    return f'<p><img src="{_attr(src)}" alt="{_attr(alt)}"/></p>'


def _widget_markup(widgets: dict, fragments: dict[str, str] | None) -> dict[str, str]:
    markup = {}
    for slot, widget in widgets.items():
        if fragments is None:
            fragment = render_widget(widget)
        elif slot in fragments:
            fragment = fragments[slot]
        else:
            raise SlotResolutionError(f"no rendered fragment supplied for widget slot '{slot}'")
        markup[slot] = embed_widget(widget.type, fragment)
    return markup


# ── Interactions ─────────────────────────────────────────────────────────────

def _check_interaction(slot: str, inter, decl: ResponseDeclaration) -> None:
    """Reject question shapes QTI cannot represent with this declaration."""
    where = f"interaction '{slot}'"
    if isinstance(inter, (ChoiceInteraction, OrderInteraction, InlineChoiceInteraction)):
        if not inter.choices:
            raise UnsupportedInteraction(f"{where} has no choices")
        ids = [c.identifier for c in inter.choices]
        if len(set(ids)) != len(ids):
            raise UnsupportedInteraction(f"{where} repeats a choice identifier")
        if decl.baseType != "identifier":
            raise UnsupportedInteraction(f"{where} needs an identifier response, got {decl.baseType}")
        correct = decl.correct if isinstance(decl.correct, list) else [decl.correct]
        unknown = [str(v) for v in correct if str(v) not in ids]
        if unknown:
            raise ResponseDeclarationError(f"{where}: correct value(s) {unknown} are not choice identifiers")

    if isinstance(inter, ChoiceInteraction):
        if decl.cardinality == "ordered":
            raise UnsupportedInteraction(f"{where}: choice interactions cannot have ordered responses")
        if decl.cardinality == "single" and inter.maxChoices != 1:
            raise UnsupportedInteraction(f"{where}: single cardinality requires max-choices of 1")
        if inter.maxChoices and inter.minChoices > inter.maxChoices:
            raise UnsupportedInteraction(f"{where}: min-choices exceeds max-choices")
    elif isinstance(inter, OrderInteraction):
        if decl.cardinality != "ordered":
            raise UnsupportedInteraction(f"{where}: order interactions need ordered cardinality")
        if len(inter.choices) < 2:
            raise UnsupportedInteraction(f"{where}: order interactions need at least two choices")
    elif isinstance(inter, (InlineChoiceInteraction, TextEntryInteraction)):
        if decl.cardinality != "single":
            raise UnsupportedInteraction(f"{where}: {inter.type} only supports single cardinality")


def _simple_choices(choices, with_feedback: bool) -> str:
    parts = []
    for c in choices:
        feedback = ""
        if with_feedback and getattr(c, "feedback", None):
            feedback = (
                f'<qti-feedback-inline outcome-identifier="FEEDBACK-INLINE" '
                f'identifier="{_attr(c.identifier)}" show-hide="show">{c.feedback}</qti-feedback-inline>'
            )
        parts.append(f'<qti-simple-choice identifier="{_attr(c.identifier)}">{c.content}{feedback}</qti-simple-choice>')
    return "".join(parts)


def interaction_markup(inter) -> str:
    rid = _attr(inter.responseIdentifier)
    if isinstance(inter, ChoiceInteraction):
        return (
            f'<qti-choice-interaction response-identifier="{rid}" shuffle="{_bool(inter.shuffle)}" '
            f'min-choices="{inter.minChoices}" max-choices="{inter.maxChoices}">'
            f"<qti-prompt>{inter.prompt}</qti-prompt>"
            f"{_simple_choices(inter.choices, with_feedback=True)}"
            "</qti-choice-interaction>"
        )
    if isinstance(inter, InlineChoiceInteraction):
        choices = "".join(
            f'<qti-inline-choice identifier="{_attr(c.identifier)}">{c.content}</qti-inline-choice>'
            for c in inter.choices
        )
        return (
            f'<qti-inline-choice-interaction response-identifier="{rid}" shuffle="{_bool(inter.shuffle)}">'
            f"{choices}</qti-inline-choice-interaction>"
        )
    if isinstance(inter, TextEntryInteraction):
        length = f' expected-length="{inter.expectedLength}"' if inter.expectedLength else ""
        return f'<qti-text-entry-interaction response-identifier="{rid}"{length}/>'
    if isinstance(inter, OrderInteraction):
        return (
            f'<qti-order-interaction response-identifier="{rid}" shuffle="{_bool(inter.shuffle)}" '
            f'orientation="{inter.orientation}">'
            f"<qti-prompt>{inter.prompt}</qti-prompt>"
            f"{_simple_choices(inter.choices, with_feedback=False)}"
            "</qti-order-interaction>"
        )
    raise UnsupportedInteraction(f"interaction type '{getattr(inter, 'type', type(inter).__name__)}' is not supported")


# ── Declarations ─────────────────────────────────────────────────────────────

def format_value(value, base_type: str, where: str) -> str:
    if isinstance(value, bool):
        raise ResponseDeclarationError(f"{where}: boolean values are not supported")
    if base_type == "integer":
        if isinstance(value, str) or (isinstance(value, float) and not value.is_integer()):
            raise ResponseDeclarationError(f"{where}: {value!r} is not an integer")
        return str(int(value))
    if base_type == "float":
        if isinstance(value, str):
            raise ResponseDeclarationError(f"{where}: {value!r} is not a number")
        return str(int(value)) if float(value).is_integer() else repr(float(value))
    return _attr(value)


def _check_responses(item: AssessmentItemInput) -> dict[str, ResponseDeclaration]:
    by_id: dict[str, ResponseDeclaration] = {}
    for rd in item.responseDeclarations:
        if rd.identifier in by_id:
            raise ResponseDeclarationError(f"response identifier '{rd.identifier}' is declared twice")
        by_id[rd.identifier] = rd
    bound: dict[str, str] = {}
    for slot, inter in item.interactions.items():
        rid = inter.responseIdentifier
        if rid not in by_id:
            raise ResponseDeclarationError(f"interaction '{slot}' uses undeclared response '{rid}'")
        if rid in bound:
            raise ResponseDeclarationError(f"interactions '{bound[rid]}' and '{slot}' share response '{rid}'")
        bound[rid] = slot
        _check_interaction(slot, inter, by_id[rid])
    return by_id


def is_terminating_fraction(numerator: int, denominator: int) -> bool:
    """True when numerator/denominator has a finite decimal expansion."""
    if denominator == 0:
        return False
    den = abs(denominator) // gcd(abs(numerator), abs(denominator))
    for factor in (2, 5):
        while den % factor == 0:
            den //= factor
    return den == 1


def _fraction_decimal(text: str) -> str | None:
    parts = text.split("/")
    if len(parts) != 2 or not parts[0].strip() or not parts[1].strip():
        return None
    try:
        num, den = int(parts[0]), int(parts[1])
    except ValueError:
        return None
    if not is_terminating_fraction(num, den):
        return None
    return format((Decimal(num) / Decimal(den)).normalize(), "f")


def equivalent_mapping(rd: ResponseDeclaration) -> dict[str, float]:
    """Declared mapping plus equivalent spellings of each string answer.

    ``.5`` and ``0.5`` accept each other, and a terminating fraction such
    as ``1/2`` also accepts ``0.5`` and ``.5``. Declared keys are never
    overwritten; added keys score 1.
    """
    mapping = dict(rd.mapping or {})
    if rd.baseType != "string":
        return mapping
    values = rd.correct if isinstance(rd.correct, list) else [rd.correct]
    for val in values:
        if not isinstance(val, str):
            continue
        if val.startswith("."):
            mapping.setdefault("0" + val, 1.0)
        elif val.startswith("0."):
            mapping.setdefault(val[1:], 1.0)
        if "/" in val and not val.startswith("."):
            decimal = _fraction_decimal(val)
            if decimal is not None and decimal not in mapping:
                mapping[decimal] = 1.0
                if decimal.startswith("0."):
                    mapping.setdefault(decimal[1:], 1.0)
    return mapping


def response_declaration_markup(rd: ResponseDeclaration) -> str:
    where = f"response '{rd.identifier}'"
    if rd.cardinality == "single" and isinstance(rd.correct, list):
        raise ResponseDeclarationError(f"{where}: single cardinality takes one correct value")
    values = rd.correct if isinstance(rd.correct, list) else [rd.correct]
    if not values:
        raise ResponseDeclarationError(f"{where}: no correct value")
    correct = "".join(f"<qti-value>{format_value(v, rd.baseType, where)}</qti-value>" for v in values)
    mapping = ""
    expanded = equivalent_mapping(rd)
    if expanded:
        entries = "".join(
            f'<qti-map-entry map-key="{_attr(key)}" mapped-value="{format_value(score, "float", where)}"/>'
            for key, score in expanded.items()
        )
        mapping = f'<qti-mapping default-value="0">{entries}</qti-mapping>'
    return (
        f'<qti-response-declaration identifier="{_attr(rd.identifier)}" '
        f'cardinality="{rd.cardinality}" base-type="{rd.baseType}">'
        f"<qti-correct-response>{correct}</qti-correct-response>{mapping}"
        "</qti-response-declaration>"
    )


def outcome_declarations_markup(item: AssessmentItemInput) -> str:
    parts = [
        '<qti-outcome-declaration identifier="SCORE" cardinality="single" base-type="float">'
        "<qti-default-value><qti-value>0</qti-value></qti-default-value>"
        "</qti-outcome-declaration>",
        '<qti-outcome-declaration identifier="FEEDBACK" cardinality="single" base-type="identifier"/>',
        '<qti-outcome-declaration identifier="FEEDBACK-INLINE" cardinality="multiple" base-type="identifier"/>',
    ]
    seen = set(RESERVED_OUTCOMES)
    for od in item.outcomeDeclarations:
        if od.identifier in seen:
            raise ResponseDeclarationError(f"outcome identifier '{od.identifier}' is reserved or repeated")
        seen.add(od.identifier)
        default = ""
        if od.defaultValue is not None:
            value = _attr(od.defaultValue) if od.baseType in ("string", "identifier", "boolean") else od.defaultValue
            default = f"<qti-default-value><qti-value>{value}</qti-value></qti-default-value>"
        parts.append(
            f'<qti-outcome-declaration identifier="{_attr(od.identifier)}" '
            f'cardinality="{od.cardinality}" base-type="{od.baseType}">{default}</qti-outcome-declaration>'
        )
    return "".join(parts)


def _set_outcome(identifier: str, base_type: str, value: str) -> str:
    return (
        f'<qti-set-outcome-value identifier="{identifier}">'
        f'<qti-base-value base-type="{base_type}">{value}</qti-base-value>'
        "</qti-set-outcome-value>"
    )


def response_processing_markup(item: AssessmentItemInput) -> str:
    """All declarations matched scores 1 with CORRECT feedback, anything else 0."""
    matches = "".join(
        f'<qti-match><qti-variable identifier="{_attr(rd.identifier)}"/>'
        f'<qti-correct identifier="{_attr(rd.identifier)}"/></qti-match>'
        for rd in item.responseDeclarations
    )
    inline = "".join(
        '<qti-set-outcome-value identifier="FEEDBACK-INLINE">'
        f'<qti-multiple><qti-variable identifier="{_attr(inter.responseIdentifier)}"/></qti-multiple>'
        "</qti-set-outcome-value>"
        for inter in item.interactions.values()
        if isinstance(inter, ChoiceInteraction) and any(c.feedback for c in inter.choices)
    )
    return (
        "<qti-response-processing>"
        "<qti-response-condition>"
        f"<qti-response-if><qti-and>{matches}</qti-and>"
        + _set_outcome("SCORE", "float", "1")
        + _set_outcome("FEEDBACK", "identifier", "CORRECT")
        + "</qti-response-if><qti-response-else>"
        + _set_outcome("SCORE", "float", "0")
        + _set_outcome("FEEDBACK", "identifier", "INCORRECT")
        + "</qti-response-else></qti-response-condition>"
        + inline
        + "</qti-response-processing>"
    )


# ── Slots ────────────────────────────────────────────────────────────────────

def resolve_slots(markup: str, terminal: dict[str, str], nested: dict[str, str]) -> str:
    """Replace every slot with its fragment, exactly once each.

    ``terminal`` fragments are inserted verbatim. ``nested`` fragments
    (interaction markup) may themselves contain slots and are resolved
    recursively up to MAX_SLOT_DEPTH.
    """
    counts = {name: 0 for name in [*terminal, *nested]}

    def expand(text: str, depth: int) -> str:
        if depth > MAX_SLOT_DEPTH:
            raise SlotResolutionError(f"slot nesting deeper than {MAX_SLOT_DEPTH}")

        def replace(match: re.Match) -> str:
            name = html.unescape(match.group(1))
            if name not in counts:
                raise SlotResolutionError(f"slot '{name}' has no widget or interaction")
            counts[name] += 1
            if name in terminal:
                return terminal[name]
            return expand(nested[name], depth + 1)

        return SLOT_RE.sub(replace, text)

    resolved = expand(markup, 0)
    misplaced = {name: n for name, n in counts.items() if n != 1}
    if misplaced:
        detail = ", ".join(f"'{name}' used {n}x" for name, n in sorted(misplaced.items()))
        raise SlotResolutionError(f"every widget and interaction must be placed exactly once: {detail}")
    return resolved


# ── Documents ────────────────────────────────────────────────────────────────

def _local(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def placement_problems(root: ET.Element) -> list[str]:
    """Text entries must sit in a block element, prompts directly in an interaction."""
    parents = {child: parent for parent in root.iter() for child in parent}
    problems = []
    for entry in root.iter(f"{{{QTI_NS}}}qti-text-entry-interaction"):
        ancestor = parents.get(entry)
        while ancestor is not None and _local(ancestor.tag) not in TEXT_ENTRY_CONTAINERS:
            if _local(ancestor.tag) == "qti-item-body":
                ancestor = None
                break
            ancestor = parents.get(ancestor)
        if ancestor is None:
            problems.append(
                f"text entry '{entry.get('response-identifier')}' must be wrapped in a block element such as <p>"
            )
    for prompt in root.iter(f"{{{QTI_NS}}}qti-prompt"):
        parent = parents.get(prompt)
        if parent is None or not _local(parent.tag).endswith("-interaction"):
            where = _local(parent.tag) if parent is not None else "document"
            problems.append(f"<qti-prompt> must be a child of an interaction, found in <{where}>")
    return problems


def _assert_single_root(xml: str, kind: DocumentKind, identifier: str) -> ET.Element:
    try:
        root = ET.fromstring(xml.encode("utf-8"))
    except ET.ParseError as e:
        raise MalformedDocument(f"{kind} '{identifier}' is not well-formed XML: {e}") from e
    if root.tag != f"{{{QTI_NS}}}qti-assessment-{kind}":
        raise MalformedDocument(f"{kind} '{identifier}' has unexpected root {root.tag}")
    return root


def _finish(kind: DocumentKind, identifier: str, title: str, xml: str) -> CompiledDocument:
    root = _assert_single_root(xml, kind, identifier)
    problems = placement_problems(root)
    if problems:
        raise PlacementError(f"{kind} '{identifier}': " + "; ".join(problems))
    logger.debug("compiled %s %s (%d chars)", kind, identifier, len(xml))
    return CompiledDocument(kind=kind, identifier=identifier, title=title, xml=xml)


def compile_item(item: AssessmentItemInput, fragments: dict[str, str] | None = None) -> CompiledDocument:
    """Compile one sanitized item into a qti-assessment-item document.

    ``fragments`` maps widget slot names to already-rendered markup. When
    omitted, widgets are rendered here through the dispatcher.
    """
    declarations = _check_responses(item)
    widget_markup = _widget_markup(item.widgets, fragments)
    interactions = {slot: interaction_markup(inter) for slot, inter in item.interactions.items()}
    body = resolve_slots(item.body, widget_markup, interactions)

    feedback = (
        '<qti-feedback-block outcome-identifier="FEEDBACK" identifier="CORRECT" show-hide="show">'
        f"<qti-content-body>{item.feedback.correct}</qti-content-body></qti-feedback-block>"
        '<qti-feedback-block outcome-identifier="FEEDBACK" identifier="INCORRECT" show-hide="show">'
        f"<qti-content-body>{item.feedback.incorrect}</qti-content-body></qti-feedback-block>"
    )
    xml = "\n".join([
        XML_DECL,
        _root_open("item", item.identifier, item.title, ' time-dependent="false"'),
        *(response_declaration_markup(rd) for rd in declarations.values()),
        outcome_declarations_markup(item),
        f"<qti-item-body>{_with_mathml_ns(body)}{_with_mathml_ns(feedback)}</qti-item-body>",
        response_processing_markup(item),
        "</qti-assessment-item>",
    ])
    return _finish("item", item.identifier, item.title, xml)


def compile_stimulus(stimulus: StimulusInput, fragments: dict[str, str] | None = None) -> CompiledDocument:
    """Compile a shared reading or reference passage."""
    body = resolve_slots(stimulus.body, _widget_markup(stimulus.widgets, fragments), {})
    xml = "\n".join([
        XML_DECL,
        _root_open("stimulus", stimulus.identifier, stimulus.title),
        f"<qti-stimulus-body>{_with_mathml_ns(body)}</qti-stimulus-body>",
        "</qti-assessment-stimulus>",
    ])
    return _finish("stimulus", stimulus.identifier, stimulus.title, xml)


def compile_test(test: AssessmentTestInput) -> CompiledDocument:
    """Compile a test where each hidden section serves one item from a bucket."""
    seen: set[str] = set()
    sections = []
    for i, bucket in enumerate(test.sections):
        if not bucket:
            raise BucketingError(f"test '{test.identifier}' section {i} is empty")
        refs = []
        for item_id in bucket:
            if item_id in seen:
                raise BucketingError(f"item '{item_id}' appears in more than one section")
            seen.add(item_id)
            refs.append(
                f'<qti-assessment-item-ref identifier="{_attr(item_id)}" '
                f'href="/assessment-items/{quote(item_id, safe="")}"/>'
            )
        section_id = f"SECTION_{test.identifier}_BUCKET_{i}"
        sections.append(
            f'<qti-assessment-section identifier="{_attr(section_id)}" '
            f'title="{_attr(f"{test.title} (variant {i + 1})")}" visible="false">'
            '<qti-selection select="1" with-replacement="false"/>'
            '<qti-ordering shuffle="true"/>'
            + "".join(refs)
            + "</qti-assessment-section>"
        )
    xml = "\n".join([
        XML_DECL,
        _root_open("test", test.identifier, test.title),
        '<qti-test-part identifier="PART_1" navigation-mode="linear" submission-mode="individual">',
        f'<qti-assessment-section identifier="{_attr(f"SECTION_{test.identifier}")}" '
        f'title="{_attr(test.title)}" visible="true">',
        *sections,
        "</qti-assessment-section>",
        "</qti-test-part>",
        "</qti-assessment-test>",
    ])
    return _finish("test", test.identifier, test.title, xml)
