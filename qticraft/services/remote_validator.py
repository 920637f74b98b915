"""
Remote round-trip ("ghetto") validation.

Confirms a compiled document is accepted by the authoritative QTI service
without touching production identifiers:

  1. rewrite the root identifier to ``prefix + identifier``
  2. upsert under that temporary identifier (update, create on 404)
  3. ask the service's validator for success/failure
  4. delete the temporary document; a failed delete is logged, never raised

Batches run concurrently inside, sequentially across, with a delay between
batches. One item's failure never aborts its batch and results come back
in input order.
"""
import asyncio
import html
import logging
import re
from dataclasses import dataclass

from qticraft.core.config import get_settings
from qticraft.core.errors import MalformedDocument, QtiApiError, QtiNotFoundError
from qticraft.services.compiler import CompiledDocument
from qticraft.services.telemetry import emit_event, instrument

logger = logging.getLogger("qticraft.remote_validator")

_ROOT_IDENTIFIER_RE = re.compile(
    r'(<qti-assessment-(?:item|test|stimulus)\b[^>]*?\sidentifier=")([^"]*)(")'
)


@dataclass(frozen=True)
class ValidationResult:
    identifier: str
    success: bool
    error: str | None = None
    temp_identifier: str | None = None


def temp_identifier(identifier: str, prefix: str | None = None) -> str:
    if prefix is None:
        prefix = get_settings().temp_identifier_prefix
    if not prefix:
        raise ValueError("temporary identifier prefix must not be empty")
    return f"{prefix}{identifier}"


def rewrite_root_identifier(xml: str, new_identifier: str) -> str:
    """Replace the identifier attribute on the root element only."""
    escaped = html.escape(str(new_identifier), quote=True)
    rewritten, n = _ROOT_IDENTIFIER_RE.subn(lambda m: m.group(1) + escaped + m.group(3), xml, count=1)
    if n == 0:
        raise MalformedDocument("document has no root identifier attribute to rewrite")
    return rewritten


def _cleanup(client, kind: str, temp_id: str, verify: bool) -> None:
    try:
        client.delete(kind, temp_id)
    except QtiNotFoundError:
        logger.debug("temporary %s %s was already gone", kind, temp_id)
    except Exception as e:
        logger.error("[remote_validator.cleanup] failed to delete %s %s: %s", kind, temp_id, e, exc_info=True)
        return
    if not verify:
        return
    try:
        if client.exists(kind, temp_id):
            logger.warning("temporary %s %s still present after delete", kind, temp_id)
    except Exception as e:
        logger.error("[remote_validator.cleanup] could not verify deletion of %s: %s", temp_id, e)


def ghetto_validate(document: CompiledDocument, client, prefix: str | None = None,
                    verify_cleanup: bool = False) -> ValidationResult:
    """Upsert under a temporary id, validate, then delete. API errors are captured."""
    temp_id = temp_identifier(document.identifier, prefix)
    xml = rewrite_root_identifier(document.xml, temp_id)
    kind = document.kind
    try:
        try:
            client.update(kind, temp_id, xml)
        except QtiNotFoundError:
            logger.debug("temporary %s %s not found, creating", kind, temp_id)
            client.create(kind, xml)
        success = client.validate_xml(kind, xml)
        error = None if success else "rejected by the remote schema validator"
    except QtiApiError as e:
        success = False
        error = f"{type(e).__name__}: {e}"
        if e.body:
            error += f" ({e.body[:300]})"
    finally:
        _cleanup(client, kind, temp_id, verify_cleanup)

    emit_event("remote_validation", stage="remote_validate", identifier=document.identifier,
               kind=kind, ok=success, error_type=None if success else "rejected")
    return ValidationResult(document.identifier, success, error, temp_id)


@instrument("remote_validate_batch")
async def validate_documents(documents: list[CompiledDocument], client,
                             batch_size: int | None = None,
                             delay_seconds: float | None = None,
                             prefix: str | None = None,
                             verify_cleanup: bool = False) -> list[ValidationResult]:
    settings = get_settings()
    batch_size = settings.validation_batch_size if batch_size is None else batch_size
    delay_seconds = settings.validation_batch_delay_seconds if delay_seconds is None else delay_seconds
    if batch_size < 1:
        raise ValueError(f"batch_size must be at least 1, got {batch_size}")

    results: list[ValidationResult] = []
    for start in range(0, len(documents), batch_size):
        if start:
            await asyncio.sleep(delay_seconds)
        batch = documents[start:start + batch_size]
        logger.info("validating batch %d (%d documents)", start // batch_size + 1, len(batch))
        outcomes = await asyncio.gather(
            *(asyncio.to_thread(ghetto_validate, doc, client, prefix, verify_cleanup) for doc in batch),
            return_exceptions=True,
        )
        for doc, outcome in zip(batch, outcomes):
            if isinstance(outcome, BaseException) and not isinstance(outcome, Exception):
                raise outcome
            if isinstance(outcome, Exception):
                logger.error("validation of %s failed: %s", doc.identifier, outcome, exc_info=outcome)
                results.append(ValidationResult(doc.identifier, False, f"{type(outcome).__name__}: {outcome}"))
            else:
                results.append(outcome)

    failed = sum(1 for r in results if not r.success)
    logger.info("remote validation complete: total=%d failed=%d", len(results), failed)
    return results


def validate_documents_sync(documents: list[CompiledDocument], client, **kwargs) -> list[ValidationResult]:
    return asyncio.run(validate_documents(documents, client, **kwargs))
