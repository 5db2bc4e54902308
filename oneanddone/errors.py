"""Error taxonomy for the pool engine.

Every error carries the HTTP status the API reports it with, so routes can
translate them without a lookup table.
"""

from typing import Optional


class PoolError(Exception):
    """Base class for all engine errors."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(PoolError, ValueError):
    """Missing or malformed input."""

    status_code = 400


class NotFoundError(PoolError):
    """Unknown event, candidate or commitment."""

    status_code = 404


class EventNotFound(NotFoundError):
    def __init__(self, event_ref):
        super().__init__(f"Event not found: {event_ref}")
        self.event_ref = event_ref


class CandidateNotFound(NotFoundError):
    def __init__(self, candidate_id: str):
        super().__init__(f"Candidate not found: {candidate_id}")
        self.candidate_id = candidate_id


class CommitmentNotFound(NotFoundError):
    def __init__(self, commitment_id: str):
        super().__init__(f"Commitment not found: {commitment_id}")
        self.commitment_id = commitment_id


class ConflictError(PoolError):
    """The request is well-formed but contradicts the current state."""

    status_code = 409


class EventCompleted(ConflictError):
    def __init__(self, event_name: str):
        super().__init__(f"{event_name} is already completed")
        self.event_name = event_name


class DuplicateCommitment(ConflictError):
    def __init__(self, event_name: str, candidate_name: Optional[str] = None):
        if candidate_name:
            message = f"{event_name} already has a pick: {candidate_name}"
        else:
            message = f"{event_name} already has a pick"
        super().__init__(message)
        self.event_name = event_name
        self.candidate_name = candidate_name


class CandidateAlreadyCommitted(ConflictError):
    def __init__(self, candidate_name: str, week: Optional[int] = None):
        if week is not None:
            message = f"{candidate_name} was already used in week {week}"
        else:
            message = f"{candidate_name} was already used"
        super().__init__(message)
        self.candidate_name = candidate_name
        self.week = week


class ReservationConflict(ConflictError):
    def __init__(self, week: int):
        super().__init__(f"Week {week} reservation changed concurrently, try again")
        self.week = week


class ResultAlreadyRecorded(ConflictError):
    def __init__(self, commitment_id: str, finish_position: Optional[int]):
        shown = f"T{finish_position}" if finish_position is not None else "no finish"
        super().__init__(f"Result already recorded for {commitment_id} ({shown})")
        self.commitment_id = commitment_id
        self.finish_position = finish_position


class StorageError(PoolError):
    """The underlying database failed."""

    status_code = 500

    def __init__(self, message: str, detail: Optional[str] = None):
        super().__init__(message)
        self.detail = detail

    def __str__(self) -> str:
        if self.detail:
            return f"{self.message}: {self.detail}"
        return self.message
