"""
Domain suggestions for pack allow-lists.
"""

from concierge.domains.models import SuggestedDomain, SuggestionStatus
from concierge.domains.repository import SuggestedDomainRepository
from concierge.domains.suggestion_engine import DomainSuggestionEngine, compute_confidence

__all__ = [
    "DomainSuggestionEngine",
    "SuggestedDomain",
    "SuggestedDomainRepository",
    "SuggestionStatus",
    "compute_confidence",
]
