# Overview: Atomic allocation of human-readable document numbers.

from __future__ import annotations

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..models import DocumentSequence
from .concurrency import RetryableConflict
from gemledger.time_utils import utcnow


DOC_TYPE_INVOICE = "INVOICE"
DOC_TYPE_QUOTATION = "QUOTATION"

DOCUMENT_PREFIXES = {
    DOC_TYPE_INVOICE: "INV",
    DOC_TYPE_QUOTATION: "QTN",
}


class DocumentSequenceError(Exception):
    """Raised when document sequence operations fail."""
    pass


def _bump(session, document_type: str, period: int) -> int | None:
    """Advance an existing counter row; None when the period has no row yet."""
    stmt = (
        update(DocumentSequence)
        .where(
            DocumentSequence.document_type == document_type,
            DocumentSequence.period == period,
        )
        .values(next_number=DocumentSequence.next_number + 1)
    )
    result = session.execute(stmt)
    if not result.rowcount:
        return None
    session.flush()
    current = (
        session.query(DocumentSequence.next_number)
        .filter_by(document_type=document_type, period=period)
        .scalar()
    )
    return current - 1


def _allocate(session, document_type: str, period: int) -> int:
    number = _bump(session, document_type, period)
    if number is not None:
        return number

    # First number of the period: create the counter row. A concurrent
    # creator trips the unique constraint; the rollback also drops every
    # lock the caller holds, so the caller's whole unit of work is re-run.
    session.add(DocumentSequence(document_type=document_type, period=period, next_number=2))
    try:
        session.flush()
    except IntegrityError:
        session.rollback()
        raise RetryableConflict(f"{document_type} sequence for {period} was created concurrently")
    return 1


def next_document_number(
    session,
    *,
    document_type: str,
    year: int | None = None,
    pad: int = 4,
) -> str:
    """
    Allocate the next number for a year-scoped document type.

    Format: <PREFIX>-<YYYY>-<seq zero padded to pad digits>, e.g. INV-2026-0001.
    The sequence restarts at 1 every calendar year. Runs inside the caller's
    transaction; if that transaction rolls back the number is not consumed.

    Raises RetryableConflict (after rolling the session back) when another
    writer creates the period counter first; run it under run_with_retry.
    """
    prefix = DOCUMENT_PREFIXES.get(document_type)
    if not prefix:
        raise DocumentSequenceError(f"Unknown document type: {document_type}")

    period = year if year is not None else utcnow().year
    seq = _allocate(session, document_type, period)
    return f"{prefix}-{period:04d}-{seq:0{pad}d}"
