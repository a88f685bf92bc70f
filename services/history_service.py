"""
Round archive service.

Completed rounds are written once per round id and can be listed for the
history endpoints. The default engine is in-memory, so the archive lives only
as long as the process.
"""
from datetime import datetime
from typing import List, Dict, Any

from sqlalchemy.orm import Session

from database import transactional
from models import Round, RoundArchive
from core.exceptions import RoundAlreadyArchived, RoundNotFound


@transactional
def archive_round(
    db: Session,
    round_obj: Round,
    winning_pot: str,
    resolution_source: str,
    winners: List[Dict[str, Any]],
    ended_at: datetime,
) -> RoundArchive:
    """Store a finished round. Raises RoundAlreadyArchived for a reused id."""
    existing = db.query(RoundArchive).filter(RoundArchive.round_id == round_obj.round_id).first()
    if existing:
        raise RoundAlreadyArchived(round_obj.round_id)

    entry = RoundArchive(
        round_id=round_obj.round_id,
        started_at=round_obj.started_at_wall,
        ended_at=ended_at,
        winning_pot=winning_pot,
        resolution_source=resolution_source,
        participants=[dict(p) for p in round_obj.participants],
        bets=round_obj.bets_view(),
        winners=list(winners),
    )
    db.add(entry)
    return entry


def get_archived_round(db: Session, round_id: str) -> RoundArchive:
    entry = db.query(RoundArchive).filter(RoundArchive.round_id == round_id).first()
    if not entry:
        raise RoundNotFound(round_id)
    return entry


def list_recent_rounds(db: Session, limit: int = 20) -> List[Dict[str, Any]]:
    """
    Return the most recent archived rounds, newest first.

    Each entry is a plain dict so the API layer can render it without
    touching the session after it is closed.
    """
    rows = (
        db.query(RoundArchive)
        .order_by(RoundArchive.ended_at.desc())
        .limit(limit)
        .all()
    )
    return [row.to_dict() for row in rows]


def is_archived(db: Session, round_id: str) -> bool:
    return db.query(RoundArchive).filter(RoundArchive.round_id == round_id).count() > 0
