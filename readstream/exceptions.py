"""Exception hierarchy shared by the readstream pipeline."""

from __future__ import annotations


class ReadabilityError(Exception):
    """Base class for every error raised by readstream."""


class ConfigError(ReadabilityError, ValueError):
    """Raised before any parsing starts when the caller's input is unusable.

    Covers malformed base URIs, invalid option values and unreadable
    option profiles.
    """


class StoreIntegrityError(ReadabilityError, KeyError):
    """Raised when the element store is asked for an id it never created.

    This is a defect in the pipeline, never an expected outcome, so it is
    always propagated to the caller.
    """

    def __init__(self, element_id: int) -> None:
        super().__init__(element_id)
        self.element_id = element_id

    def __str__(self) -> str:
        return f"element #{self.element_id} is not in the store"
