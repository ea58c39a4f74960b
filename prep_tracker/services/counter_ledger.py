"""
Occurrence counters and the status derived from them.

Every question lifecycle event moves an occurrence's counters through
``CounterLedger``. A change is applied in two steps:

1. ``apply`` issues an atomic ``field = field + delta`` update inside the
   caller's transaction, next to the question row change it reflects.
2. ``recompute`` re-reads the committed counters and writes ``status`` only
   when it differs.

Status is a cache of the counters. If step 2 fails the counters are still
right and the next mutation repairs the status.
"""
from typing import Dict, Iterable, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from prep_tracker.db.store import increment
from prep_tracker.models.occurrence import Occurrence, OccurrenceStatus
from prep_tracker.utils.dates import utcnow
from prep_tracker.utils.logger import get_logger

logger = get_logger(__name__)


def compute_status(added_count: int, solved_count: int, target_count: int) -> OccurrenceStatus:
    """Derive an occurrence status from its counters."""
    if added_count == 0:
        return OccurrenceStatus.PENDING
    if added_count < target_count:
        return OccurrenceStatus.INCOMPLETE
    if solved_count >= added_count:
        return OccurrenceStatus.COMPLETED
    if solved_count > 0:
        return OccurrenceStatus.IN_PROGRESS
    # Enough questions added, none solved yet
    return OccurrenceStatus.PENDING


class CounterLedger:
    """Keeps occurrence counters and status in step with question changes."""

    def __init__(self, session: Session):
        self.session = session

    def apply(self, occurrence_id: int, added: int = 0, solved: int = 0) -> None:
        """Atomically shift the counters of one occurrence. Does not commit."""
        if not added and not solved:
            return
        increment(
            self.session,
            Occurrence,
            occurrence_id,
            added_count=added,
            solved_count=solved,
        )
        logger.debug(
            "Occurrence counters shifted",
            occurrence_id=occurrence_id,
            added=added,
            solved=solved,
        )

    def apply_many(self, deltas: Dict[int, Tuple[int, int]]) -> None:
        """Apply ``{occurrence_id: (added, solved)}`` deltas. Does not commit."""
        for occurrence_id, (added, solved) in deltas.items():
            self.apply(occurrence_id, added=added, solved=solved)

    def recompute(self, occurrence_id: int) -> Optional[Occurrence]:
        """
        Re-read the counters of one occurrence and persist its status if it changed.

        Returns the refreshed occurrence, or None if it no longer exists.
        """
        occurrence = self.session.get(Occurrence, occurrence_id, populate_existing=True)
        if occurrence is None:
            return None

        status = compute_status(
            occurrence.added_count,
            occurrence.solved_count,
            occurrence.target_question_count,
        ).value

        if occurrence.status != status:
            logger.info(
                "Occurrence status changed",
                occurrence_id=occurrence_id,
                previous=occurrence.status,
                status=status,
            )
            occurrence.status = status
            occurrence.updated_at = utcnow()
            self.session.add(occurrence)
            self.session.commit()
            self.session.refresh(occurrence)

        return occurrence

    def settle(self, occurrence_ids: Iterable[int]) -> None:
        """
        Recompute status for each occurrence after the counter commit.

        A failure here leaves status stale but counters correct, so it is
        logged and not raised.
        """
        for occurrence_id in sorted(set(occurrence_ids)):
            try:
                self.recompute(occurrence_id)
            except SQLAlchemyError as e:
                self.session.rollback()
                logger.warning(
                    "Status recompute failed; will heal on next mutation",
                    occurrence_id=occurrence_id,
                    error=str(e),
                )
