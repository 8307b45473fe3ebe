"""Error taxonomy shared by the store, the comparator, batch runs and the realtime channel."""

from __future__ import annotations


class HireflowError(Exception):
    """Base class for domain errors."""


class ValidationError(HireflowError):
    """Malformed input that cannot be coerced to a safe default."""


class NotFoundError(HireflowError):
    pass


class ConflictError(HireflowError):
    """Concurrent version assignment detected; retry the whole create operation."""

    def __init__(self, candidate_id: int, version: int):
        super().__init__(f"profile version {version} already exists for candidate {candidate_id}")
        self.candidate_id = candidate_id
        self.version = version


class ProfileUpdateInProgressError(HireflowError):
    def __init__(self, candidate_id: int):
        super().__init__(f"profile update already running for candidate {candidate_id}")
        self.candidate_id = candidate_id


class ItemOperationError(HireflowError):
    """A single batch item's external call failed."""

    def __init__(self, message: str, *, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class ChannelError(HireflowError):
    """Transient realtime connection failure."""
