"""
Error taxonomy shared by the discovery pipeline, approval queue and backfill.

ValidationError, NotFound and AlreadyDisposed are caller-facing and never
retried. ExternalCallFailure is per-item: the pipeline logs and counts it,
then moves on to the next message.
"""

from __future__ import annotations


class ConciergeError(Exception):
    """Base class for all Concierge errors."""


class ValidationError(ConciergeError, ValueError):
    """Bad caller input, raised before any side effect."""


class NotFound(ConciergeError):
    """Unknown token or identifier."""

    def __init__(self, kind: str, identifier: str):
        self.kind = kind
        self.identifier = identifier
        super().__init__(f"{kind} not found: {identifier}")


class AlreadyDisposed(ConciergeError):
    """Disposition attempted on an item that is no longer pending."""

    def __init__(self, kind: str, identifier: str, state: str):
        self.kind = kind
        self.identifier = identifier
        self.state = state
        super().__init__(f"{kind} {identifier} already {state}")


class ExternalCallFailure(ConciergeError):
    """A collaborator call (fetch, classify, extract, calendar write) failed or timed out."""

    def __init__(self, operation: str, message: str = ""):
        self.operation = operation
        super().__init__(f"{operation} failed: {message}" if message else f"{operation} failed")
