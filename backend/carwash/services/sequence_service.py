# Overview: Atomic allocation of human-readable document numbers per station.

from __future__ import annotations

from sqlalchemy import update

from ..extensions import db
from ..models import DocumentSequence


class DocumentSequenceError(Exception):
    """Raised when document sequence operations fail."""
    pass


def next_document_number(
    *,
    station_id: int,
    document_type: str,
    prefix: str,
    pad: int = 4,
) -> str:
    """
    Allocate the next document number for a station/type.

    Must run inside the caller's transaction; the counter row is bumped with a
    conditional UPDATE so two writers never read the same value.
    """
    if not station_id:
        raise DocumentSequenceError("station_id is required")
    if not document_type:
        raise DocumentSequenceError("document_type is required")

    stmt = (
        update(DocumentSequence)
        .where(
            DocumentSequence.station_id == station_id,
            DocumentSequence.document_type == document_type,
        )
        .values(next_number=DocumentSequence.next_number + 1)
        .execution_options(synchronize_session=False)
    )

    result = db.session.execute(stmt)
    if result.rowcount:
        current = (
            db.session.query(DocumentSequence.next_number)
            .filter_by(station_id=station_id, document_type=document_type)
            .scalar()
        )
        next_num = current - 1
    else:
        seq = DocumentSequence(station_id=station_id, document_type=document_type, next_number=2)
        db.session.add(seq)
        db.session.flush()
        next_num = 1

    return f"{prefix}-{station_id:03d}-{next_num:0{pad}d}"
