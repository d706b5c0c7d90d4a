"""
Letter reference numbers.

Format: {sequence:03d}/{typeCode}/{villageCode}/{month:02d}/{year}
e.g. 001/PENG/DESA/03/2025

The sequence restarts every year. It is taken from the LetterCounter row of the
year with a single UPDATE ... SET last_number = last_number + 1, which the
database serialises, so two requests can never receive the same number. The
counter update and the letter insert share one transaction: if the letter
fails, the number is not consumed.
"""

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from .errors import NumberingError
from .extensions import db
from .models import Letter, LetterCounter

logger = logging.getLogger(__name__)

DEFAULT_TYPE_CODE = "UMUM"

TYPE_CODES = {
    "UMUM": "UMUM",
    "KETERANGAN": "KET",
    "REKOMENDASI": "REK",
    "PENGUMUMAN": "PENG",
    "UNDANGAN": "UND",
}


def type_code_for(letter_type: str | None) -> str:
    """Short code used inside the reference number; unknown types fall back to UMUM."""
    return TYPE_CODES.get(letter_type or "", DEFAULT_TYPE_CODE)


def format_letter_number(sequence: int, letter_type: str | None, village_code: str, when: datetime) -> str:
    return f"{sequence:03d}/{type_code_for(letter_type)}/{village_code}/{when.month:02d}/{when.year}"


def _increment(year: int) -> int | None:
    """Bump the counter row of the year; None when the row does not exist yet."""
    result = db.session.execute(
        update(LetterCounter)
        .where(LetterCounter.year == year)
        .values(last_number=LetterCounter.last_number + 1)
        .execution_options(synchronize_session=False)
    )
    if not result.rowcount:
        return None
    return db.session.execute(
        select(LetterCounter.last_number).where(LetterCounter.year == year)
    ).scalar_one()


def reserve_sequence(year: int) -> int:
    """
    Reserve the next sequence number of the year inside the current transaction.

    Must run before anything else is added to the session: a lost race while
    seeding the counter rolls the session back and retries.
    """
    try:
        for _ in range(3):
            number = _increment(year)
            if number is not None:
                return number

            # First letter of the year: continue after any letters already stored
            start = db.session.execute(
                select(func.max(Letter.number)).where(Letter.year == year)
            ).scalar() or 0
            db.session.add(LetterCounter(year=year, last_number=start + 1))
            try:
                db.session.flush()
            except IntegrityError:
                # Another request created the counter first
                db.session.rollback()
                logger.info("Letter counter for %s created concurrently; retrying", year)
                continue
            return start + 1
    except SQLAlchemyError as exc:
        logger.exception("Reserving letter number for %s failed", year)
        raise NumberingError() from exc

    raise NumberingError()
