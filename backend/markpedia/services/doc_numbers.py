from __future__ import annotations
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from markpedia.models.doc_counter import DocCounter

PREFIX_CASH_REQUEST = 'CRF'
PREFIX_CASH_RECEIPT = 'CRV'
PREFIX_CASHBOOK = 'MKP-CASH'


def next_document_number(session: Session, prefix: str, year: Optional[int] = None) -> str:
    """Allocate the next ``<PREFIX>-<YYYY>-<NNNNN>`` number.

    The counter row is locked for the rest of the caller's transaction, so the
    number is only consumed if the caller commits.
    """
    year = year or datetime.now(timezone.utc).year
    counter = session.execute(
        select(DocCounter)
        .filter_by(prefix=prefix, year=year)
        .with_for_update()
    ).scalar_one_or_none()

    if not counter:
        counter = DocCounter(prefix=prefix, year=year, last_number=0)
        session.add(counter)
        session.flush()

    counter.last_number += 1
    return f"{prefix}-{year}-{int(counter.last_number):05d}"
