"""
Collaborator Protocols

Interfaces the core consumes from the outside world: the mail provider, the
calendar provider, the relevance model and the digest builder. Concrete
client wrappers live outside this package; tests supply in-memory fakes.
"""

from concierge.contracts.collaborators import (
    CalendarSink,
    DigestNotifier,
    MessageSource,
    RelevanceClassifier,
)

__all__ = [
    "CalendarSink",
    "DigestNotifier",
    "MessageSource",
    "RelevanceClassifier",
]
