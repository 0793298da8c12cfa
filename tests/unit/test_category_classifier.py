"""
Tests for rule-based category classification, item typing and person assignment.
"""

from __future__ import annotations

from concierge.discovery.category_classifier import (
    CategoryClassifier,
    assign_person,
    detect_item_type,
)
from concierge.discovery.types import Category, ItemType

SUBJECT = "Parent-teacher conference on March 14 at 3:30pm"
BODY = "Please come to the classroom for your report card conference."


def test_school_message_from_trusted_sender():
    """keywords capped at 0.4 + trusted sender 0.3 + 'office' pattern 0.1"""
    result = CategoryClassifier().categorize(
        SUBJECT, "office@lincoln.k12.ca.us", BODY, trusted_sender=True
    )
    assert result.primary == Category.SCHOOL
    assert abs(result.score - 0.8) < 1e-9


def test_untrusted_sender_gets_no_domain_bonus():
    result = CategoryClassifier().categorize(SUBJECT, "office@lincoln.k12.ca.us", BODY)
    assert result.primary == Category.SCHOOL
    assert abs(result.score - 0.5) < 1e-9


def test_known_category_domain_earns_bonus():
    result = CategoryClassifier().categorize(
        "Practice moved", "noreply@teamsnap.com", "Soccer practice is at the north field"
    )
    assert result.primary == Category.SPORTS_ACTIVITIES
    # soccer + practice 0.2, teamsnap.com 0.3, "team" sender pattern 0.1
    assert abs(result.score - 0.6) < 1e-9


def test_negative_keywords_reduce_score():
    plain = CategoryClassifier().categorize("Birthday party", "a@example.com", "")
    penalized = CategoryClassifier().categorize("Birthday party after school", "a@example.com", "")
    assert penalized.scores["friends_social"] < plain.scores["friends_social"]


def test_keywords_match_on_word_boundaries():
    result = CategoryClassifier().categorize("Classroom news", "a@example.com", "")
    # "classroom" hits, "class" must not also hit inside it
    assert abs(result.scores["school"] - 0.1) < 1e-9


def test_scores_never_negative():
    result = CategoryClassifier().categorize("school team class sports", "a@example.com", "")
    assert all(0.0 <= s <= 1.0 for s in result.scores.values())


def test_obligation_requires_action_language_and_date():
    assert detect_item_type("Permission slip due Friday", "", has_date=True) == ItemType.OBLIGATION
    assert detect_item_type("Permission slip due Friday", "", has_date=False) == ItemType.ANNOUNCEMENT
    assert detect_item_type("Spring concert", "Enjoy the show", has_date=True) == ItemType.ANNOUNCEMENT


def test_assign_person_by_alias(school_pack):
    assert assign_person(school_pack, "Note about Maya R", "", "Family/Shared") == "Maya"
    assert assign_person(school_pack, "General note", "", "Family/Shared") == "Family/Shared"
