"""Household Concierge - email discovery, dedup and approval queue"""

from __future__ import annotations

__version__ = "1.0.0"


# Lazy imports for the discovery and approval modules
def __getattr__(name: str):
    """
    Lazy imports to avoid loading heavy dependencies when only importing lightweight modules.
    """
    if name in ("ApprovalQueue", "DiscoveryPipeline", "DomainSuggestionEngine"):
        if name == "ApprovalQueue":
            from concierge.approvals.service import ApprovalQueue

            return ApprovalQueue
        if name == "DiscoveryPipeline":
            from concierge.discovery.pipeline import DiscoveryPipeline

            return DiscoveryPipeline
        if name == "DomainSuggestionEngine":
            from concierge.domains.suggestion_engine import DomainSuggestionEngine

            return DomainSuggestionEngine

    msg = f"module {__name__!r} has no attribute {name!r}"
    raise AttributeError(msg)


__all__ = [
    "ApprovalQueue",
    "DiscoveryPipeline",
    "DomainSuggestionEngine",
]
