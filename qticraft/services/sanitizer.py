"""
Sanitizer and local validator.

Runs before any rendering or compilation:

  1. Parse raw JSON against the AssessmentItemInput contract, failing fast
     with structured diagnostics.
  2. Reduce every free-form markup field to the allow-listed XHTML and
     MathML subset, re-serialized so it is well-formed XML.
  3. Cross-check slots, interactions and response declarations.

Fails closed: any field that cannot be reduced to the allow-list aborts
the whole item. There is no partial result.
"""
import html
import json
import logging
import re
from html.parser import HTMLParser

from pydantic import ValidationError

from qticraft.core.errors import SanitizationError, SchemaValidationError
from qticraft.models.assessment import AssessmentItemInput, StimulusInput
from qticraft.utils.slots import find_slots

logger = logging.getLogger("qticraft.sanitizer")

HTML_TAGS = {
    "p", "span", "div", "strong", "em", "b", "i", "u", "sub", "sup", "br",
    "ul", "ol", "li", "table", "thead", "tbody", "tr", "th", "td", "caption",
    "blockquote", "code", "pre", "h2", "h3", "h4", "img", "slot",
}
MATHML_TAGS = {
    "math", "mi", "mn", "mo", "ms", "mrow", "msup", "msub", "msubsup", "mfrac",
    "msqrt", "mroot", "mtext", "mspace", "mtable", "mtr", "mtd", "mover",
    "munder", "munderover", "mstyle", "semantics", "annotation",
    "mpadded", "mphantom",
}
ALLOWED_TAGS = HTML_TAGS | MATHML_TAGS
VOID_TAGS = {"br", "img", "slot", "mspace"}

GLOBAL_ATTRS = {"class", "lang"}
TAG_ATTRS: dict[str, set[str]] = {
    "img": {"src", "alt", "width", "height"},
    "th": {"colspan", "rowspan", "scope"},
    "td": {"colspan", "rowspan"},
    "ol": {"start", "type"},
    "slot": {"name"},
    "math": {"display", "xmlns"},
    "mi": {"mathvariant"},
    "mo": {"stretchy", "form", "fence", "separator", "lspace", "rspace"},
    "mfrac": {"linethickness"},
    "mspace": {"width"},
    "mstyle": {"displaystyle", "scriptlevel", "mathvariant"},
    "mtd": {"columnalign"},
    "annotation": {"encoding"},
}
SAFE_IMG_PREFIXES = ("https://", "data:image/png", "data:image/jpeg", "data:image/gif", "data:image/svg+xml")
MATHML_NS = "http://www.w3.org/1998/Math/MathML"

# LaTeX detection. Dollar signs are only math when the enclosed text looks
# like math; currency amounts are removed before pairing.
_LATEX_COMMAND_RE = re.compile(r"\\(?:[a-zA-Z]+|[(){}\[\]])")
_CURRENCY_RES = (
    re.compile(r'<span class="currency">\$</span>'),
    re.compile(r"<mo>\$</mo>"),
    re.compile(r"\$(?=\s*<(?:math|mn)\b)"),
    re.compile(r"\$(?=\d[\d,]*(?:\.\d+)?(?:\s|$|[.,;:!?)]|<))"),
)
_DOLLAR_PAIR_RE = re.compile(r"\$([^$]+)\$")
_MATH_INDICATORS = (
    re.compile(r"[a-zA-Z0-9][_^]"),
    re.compile(r"[a-zA-Z]\s*[+\-*/=]\s*[a-zA-Z0-9]"),
    re.compile(r"\d+[a-zA-Z]"),
    re.compile(r"\b(?:sin|cos|tan|log|ln|sqrt|lim|sum|int)\s*\("),
    re.compile(r"[a-zA-Z0-9]\s*/\s*[a-zA-Z0-9]"),
    re.compile(r"\b(?:alpha|beta|gamma|delta|theta|lambda|mu|pi|sigma|omega)\b"),
    re.compile(r"\b[xy]\s*="),
    re.compile(r"\([^)]*[+\-*/^=][^)]*\)"),
    re.compile(r"\(\s*-?\d+(?:\.\d+)?\s*,\s*-?\d+(?:\.\d+)?\s*\)"),
    re.compile(r"\d\s*\("),
)


def find_latex(markup: str) -> str | None:
    """Return the first LaTeX-looking fragment in ``markup``, or None."""
    command = _LATEX_COMMAND_RE.search(markup)
    if command:
        return command.group(0)
    text = markup
    for pattern in _CURRENCY_RES:
        text = pattern.sub("", text)
    for match in _DOLLAR_PAIR_RE.finditer(text):
        if any(indicator.search(match.group(1)) for indicator in _MATH_INDICATORS):
            return match.group(0)
    return None


class _AllowListSerializer(HTMLParser):
    """Re-serializes markup, raising on anything outside the allow-list."""

    def __init__(self, field: str):
        super().__init__(convert_charrefs=True)
        self.field = field
        self.out: list[str] = []
        self.stack: list[str] = []

    def _fail(self, reason: str):
        raise SanitizationError(self.field, reason)

    def _attrs(self, tag: str, attrs: list[tuple[str, str | None]]) -> str:
        allowed = GLOBAL_ATTRS | TAG_ATTRS.get(tag, set())
        rendered = []
        for name, value in attrs:
            if name.startswith("on"):
                self._fail(f"event handler attribute '{name}' on <{tag}>")
            if name not in allowed:
                self._fail(f"attribute '{name}' is not allowed on <{tag}>")
            value = name if value is None else value
            if tag == "img" and name == "src" and not value.strip().lower().startswith(SAFE_IMG_PREFIXES):
                self._fail(f"image source '{value[:40]}' is not an https or data URL")
            if tag == "math" and name == "xmlns" and value != MATHML_NS:
                self._fail(f"unexpected MathML namespace '{value}'")
            rendered.append(f' {name}="{html.escape(value, quote=True)}"')
        if tag == "slot" and "name" not in {n for n, _ in attrs}:
            self._fail("<slot> requires a name attribute")
        return "".join(rendered)

    def _open(self, tag, attrs, self_closing: bool):
        if tag == "mfenced":
            self._fail("<mfenced> is deprecated; use <mrow> with <mo> delimiters")
        if tag not in ALLOWED_TAGS:
            self._fail(f"tag <{tag}> is not allowed")
        attr_text = self._attrs(tag, attrs)
        if tag in VOID_TAGS:
            self.out.append(f"<{tag}{attr_text}/>")
        elif self_closing:
            self.out.append(f"<{tag}{attr_text}></{tag}>")
        else:
            self.out.append(f"<{tag}{attr_text}>")
            self.stack.append(tag)

    def handle_starttag(self, tag, attrs):
        self._open(tag, attrs, self_closing=False)

    def handle_startendtag(self, tag, attrs):
        self._open(tag, attrs, self_closing=True)

    def handle_endtag(self, tag):
        if tag in VOID_TAGS:
            return
        if not self.stack or self.stack[-1] != tag:
            expected = self.stack[-1] if self.stack else None
            self._fail(f"unbalanced </{tag}> (expected {'</' + expected + '>' if expected else 'no closing tag'})")
        self.stack.pop()
        self.out.append(f"</{tag}>")

    def handle_data(self, data):
        self.out.append(html.escape(data, quote=False))

    def handle_comment(self, data):
        # comments are dropped
        return

    def handle_decl(self, decl):
        self._fail("markup declarations are not allowed")

    def handle_pi(self, data):
        self._fail("processing instructions are not allowed")

    def unknown_decl(self, data):
        self._fail("CDATA and unknown declarations are not allowed")

    def result(self) -> str:
        self.close()
        if self.stack:
            self._fail(f"unclosed <{self.stack[-1]}>")
        return "".join(self.out)


def sanitize_markup(markup: str, field: str = "markup") -> str:
    """Reduce markup to the allow-listed subset or raise SanitizationError."""
    latex = find_latex(markup)
    if latex:
        raise SanitizationError(field, f"LaTeX '{latex[:40]}' is not supported; write math as MathML")
    parser = _AllowListSerializer(field)
    parser.feed(markup)
    return parser.result()


def _diagnostics(exc: ValidationError) -> list[dict]:
    return [
        {
            "loc": ".".join(str(part) for part in e["loc"]),
            "msg": e["msg"],
            "type": e["type"],
        }
        for e in exc.errors()
    ]


def _load(raw, model):
    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as e:
            raise SchemaValidationError(
                f"input is not valid JSON: {e.msg}",
                [{"loc": "", "msg": e.msg, "type": "json_invalid"}],
            ) from e
    try:
        return model.model_validate(raw)
    except ValidationError as e:
        diagnostics = _diagnostics(e)
        logger.info("schema validation failed with %d error(s)", len(diagnostics))
        raise SchemaValidationError(
            f"{model.__name__} failed validation with {len(diagnostics)} error(s)",
            diagnostics,
        ) from e


def sanitize_item(item: AssessmentItemInput) -> AssessmentItemInput:
    """Return a copy with every markup field reduced to the allow-list."""
    interactions = {}
    for slot, inter in item.interactions.items():
        update = {}
        where = f"interactions.{slot}"
        if hasattr(inter, "prompt"):
            update["prompt"] = sanitize_markup(inter.prompt, f"{where}.prompt")
        if hasattr(inter, "choices"):
            choices = []
            for i, choice in enumerate(inter.choices):
                c_update = {"content": sanitize_markup(choice.content, f"{where}.choices.{i}.content")}
                if getattr(choice, "feedback", None) is not None:
                    c_update["feedback"] = sanitize_markup(choice.feedback, f"{where}.choices.{i}.feedback")
                choices.append(choice.model_copy(update=c_update))
            update["choices"] = choices
        interactions[slot] = inter.model_copy(update=update)

    feedback = item.feedback.model_copy(update={
        "correct": sanitize_markup(item.feedback.correct, "feedback.correct"),
        "incorrect": sanitize_markup(item.feedback.incorrect, "feedback.incorrect"),
    })
    return item.model_copy(update={
        "body": sanitize_markup(item.body, "body"),
        "interactions": interactions,
        "feedback": feedback,
    })


def check_item(item: AssessmentItemInput) -> list[dict]:
    """Cross-field checks. Returns structured diagnostics, empty when clean."""
    errors: list[dict] = []

    def err(check: str, loc: str, message: str, severity: str = "ERROR"):
        errors.append({"check": check, "loc": loc, "msg": message, "severity": severity})

    # --- Slot placement ---
    texts = [item.body]
    for inter in item.interactions.values():
        texts.append(getattr(inter, "prompt", ""))
        texts.extend(c.content for c in getattr(inter, "choices", []))
    used: dict[str, int] = {}
    for text in texts:
        for name in find_slots(text):
            used[name] = used.get(name, 0) + 1

    overlap = set(item.widgets) & set(item.interactions)
    for name in sorted(overlap):
        err("slot_conflict", name, f"'{name}' is both a widget and an interaction")
    defined = set(item.widgets) | set(item.interactions)
    for name in sorted(set(used) - defined):
        err("slot_undefined", name, f"slot '{name}' has no widget or interaction")
    for name in sorted(defined):
        count = used.get(name, 0)
        if count != 1:
            err("slot_usage", name, f"'{name}' is placed {count} times, expected exactly once")

    # --- Response declarations ---
    declared: dict[str, int] = {}
    for rd in item.responseDeclarations:
        declared[rd.identifier] = declared.get(rd.identifier, 0) + 1
    for ident, count in sorted(declared.items()):
        if count > 1:
            err("duplicate_response", ident, f"response declaration '{ident}' is declared {count} times")
    bound = [i.responseIdentifier for i in item.interactions.values()]
    for ident in bound:
        if ident not in declared:
            err("undeclared_response", ident, f"interaction response '{ident}' has no response declaration")
    for ident in sorted(set(declared) - set(bound)):
        err("unbound_response", ident, f"response declaration '{ident}' is not used by any interaction",
            severity="WARNING")
    return errors


def _raise_on_errors(identifier: str, diagnostics: list[dict]):
    fatal = [d for d in diagnostics if d["severity"] == "ERROR"]
    for d in diagnostics:
        if d["severity"] != "ERROR":
            logger.warning("[%s] %s: %s", identifier, d["check"], d["msg"])
    if fatal:
        raise SchemaValidationError(f"{identifier}: {len(fatal)} structural error(s)", fatal)


def parse_item(raw) -> AssessmentItemInput:
    """Parse, sanitize and cross-check one raw item (dict or JSON text)."""
    item = _load(raw, AssessmentItemInput)
    item = sanitize_item(item)
    _raise_on_errors(item.identifier, check_item(item))
    return item


def parse_stimulus(raw) -> StimulusInput:
    stimulus = _load(raw, StimulusInput)
    body = sanitize_markup(stimulus.body, "body")
    used = find_slots(body)
    diagnostics = []
    for name in sorted(set(used) - set(stimulus.widgets)):
        diagnostics.append({"check": "slot_undefined", "loc": name,
                            "msg": f"slot '{name}' has no widget", "severity": "ERROR"})
    for name in sorted(stimulus.widgets):
        if used.count(name) != 1:
            diagnostics.append({"check": "slot_usage", "loc": name,
                                "msg": f"'{name}' is placed {used.count(name)} times, expected exactly once",
                                "severity": "ERROR"})
    _raise_on_errors(stimulus.identifier, diagnostics)
    return stimulus.model_copy(update={"body": body})
