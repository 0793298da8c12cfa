"""
Keyword, domain and sender signals for the household categories.

Pure data module used by category_classifier.py.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from concierge.discovery.types import Category


@dataclass(frozen=True)
class CategorySignals:
    keywords: tuple[str, ...]
    domains: tuple[str, ...] = field(default_factory=tuple)
    sender_patterns: tuple[str, ...] = field(default_factory=tuple)
    negative_keywords: tuple[str, ...] = field(default_factory=tuple)


CATEGORY_SIGNALS: dict[Category, CategorySignals] = {
    Category.SCHOOL: CategorySignals(
        keywords=(
            "assembly", "field trip", "picture day", "parent conference",
            "early release", "dismissal", "class", "grade", "homework",
            "teacher", "classroom", "school event", "curriculum", "report card",
            "parent-teacher", "registration", "enrollment", "class schedule",
            "absence", "tardy", "recess", "spirit week", "performance",
            "concert", "graduation", "conference",
        ),
        domains=("veracross.com", "schoolloop.com", "parentvue.com", "parentsquare.com"),
        sender_patterns=("school", "teacher", "principal", "office", "pta"),
    ),
    Category.SPORTS_ACTIVITIES: CategorySignals(
        keywords=(
            "soccer", "basketball", "baseball", "lacrosse", "tennis", "swimming",
            "practice", "game", "tournament", "match", "team", "coach",
            "tryouts", "roster", "athletics", "recreation", "league",
            "playoff", "season", "uniform", "equipment",
        ),
        domains=("teamsnap.com", "sportsengine.com", "leagueapps.com"),
        sender_patterns=("coach", "team", "sports", "athletic", "league"),
    ),
    Category.MEDICAL_HEALTH: CategorySignals(
        keywords=(
            "doctor", "appointment", "vaccine", "immunization", "clinic",
            "health", "medical", "prescription", "medication", "surgery",
            "dentist", "checkup", "hospital", "pediatrician", "wellness",
            "screening", "lab results", "pharmacy", "allergies", "therapy",
        ),
        domains=("mychart.org", "zocdoc.com"),
        sender_patterns=("doctor", "clinic", "hospital", "health", "dental", "medical"),
        negative_keywords=("school nurse", "school health"),
    ),
    Category.FRIENDS_SOCIAL: CategorySignals(
        keywords=(
            "playdate", "friend", "birthday", "party", "hangout", "meetup",
            "invitation", "invite", "gathering", "get together", "dinner",
            "sleepover", "celebrate", "rsvp",
        ),
        domains=("evite.com", "paperlesspost.com", "punchbowl.com"),
        sender_patterns=("friend", "mom", "dad"),
        negative_keywords=("school", "class", "team", "sports"),
    ),
    Category.LOGISTICS: CategorySignals(
        keywords=(
            "carpool", "pickup", "pick-up", "dropoff", "drop-off", "transportation",
            "parking", "travel", "flight", "hotel", "reservation", "itinerary",
            "booking", "directions", "bus route",
        ),
        domains=("uber.com", "lyft.com", "airbnb.com", "booking.com", "expedia.com"),
        sender_patterns=("travel", "transportation", "booking"),
    ),
    Category.FORMS_ADMIN: CategorySignals(
        keywords=(
            "form", "application", "permission slip", "signature required",
            "submit", "deadline", "consent", "waiver", "handbook",
            "checklist", "fill out", "sign and return", "due by",
        ),
        sender_patterns=("admin", "office", "enrollment", "registrar"),
    ),
    Category.FINANCIAL_BILLING: CategorySignals(
        keywords=(
            "invoice", "bill", "payment", "fee", "tuition", "balance",
            "statement", "receipt", "refund", "due", "overdue", "billing",
            "autopay", "installment",
        ),
        domains=("stripe.com", "paypal.com", "venmo.com"),
        sender_patterns=("billing", "finance", "payment", "accounting"),
        negative_keywords=("school",),
    ),
    Category.COMMUNITY_OPTIONAL: CategorySignals(
        keywords=(
            "pta", "pto", "church", "scout", "neighborhood", "community",
            "volunteer", "fundraiser", "hoa", "association", "donation",
            "membership", "newsletter",
        ),
        domains=("scouting.org", "pta.org", "nextdoor.com"),
        sender_patterns=("pta", "pto", "scout", "church", "hoa", "community"),
    ),
}
