"""Exception taxonomy for the qticraft compiler core.

Local errors (schema, sanitization, rendering, compilation) are raised
synchronously and abort the current item or widget. Remote errors are
raised by the QTI client and captured per item by the remote validator.
"""


class QtiCraftError(Exception):
    """Base class for every error raised by qticraft."""

    retriable = True


class InvalidDimensions(QtiCraftError):
    """Non-positive canvas size or an axis range with min >= max."""


class UnknownPointReference(QtiCraftError):
    """A polygon or distance names a point id that the diagram does not define."""

    def __init__(self, point_id: str, context: str = ""):
        self.point_id = point_id
        self.context = context
        where = f" in {context}" if context else ""
        super().__init__(f"unknown point id '{point_id}'{where}")


class UnknownWidgetType(QtiCraftError):
    """No renderer is registered for a widget tag."""


class SchemaValidationError(QtiCraftError):
    """Raw input did not match the AssessmentItemInput contract."""

    def __init__(self, message: str, diagnostics: list[dict] | None = None):
        self.diagnostics = diagnostics or []
        super().__init__(message)


class SanitizationError(QtiCraftError):
    """A markup field could not be reduced to the allow-listed subset."""

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"{field}: {reason}")


class SlotResolutionError(QtiCraftError):
    """A body placeholder has no fragment, or a fragment is used zero or many times."""


class ResponseDeclarationError(QtiCraftError):
    """Interaction and response declaration identifiers do not pair up."""


class UnsupportedInteraction(QtiCraftError):
    """The compiler cannot represent this question shape. Never retry."""

    retriable = False


class BucketingError(QtiCraftError):
    """The bucketer produced an empty bucket."""


class QtiApiError(QtiCraftError):
    """Non-success response from the remote QTI service."""

    def __init__(self, message: str, status: int | None = None, body: str = ""):
        self.status = status
        self.body = body
        super().__init__(message)


class QtiNotFoundError(QtiApiError):
    """The remote QTI service returned 404."""


class MalformedDocument(QtiCraftError):
    """The assembled document does not parse to exactly one root element."""


class PlacementError(SlotResolutionError):
    """A text entry sits outside a block element, or a prompt outside its interaction."""
