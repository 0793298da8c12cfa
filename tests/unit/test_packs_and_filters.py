"""
Tests for pack configuration and the domain/keyword pre-filter.
"""

from __future__ import annotations

import pytest
from pydantic import ValidationError as PydanticValidationError

from concierge.discovery.filters import SenderDomainFilter
from concierge.discovery.packs import PackConfig, PackRegistry
from concierge.discovery.types import Category, RejectionReason, SensitivityTier
from concierge.errors import NotFound


class TestPackConfig:
    def test_domain_matching(self, school_pack):
        assert school_pack.matches_domain("lincoln.k12.ca.us")
        assert school_pack.matches_domain("mail.lincoln.k12.ca.us")
        assert school_pack.matches_domain("district.parentsquare.com")
        assert not school_pack.matches_domain("notlincoln.k12.ca.us")
        assert not school_pack.matches_domain("")

    def test_missing_sensitivities_fall_back_to_defaults(self):
        pack = PackConfig(pack_id="p", category_sensitivity={Category.SCHOOL: SensitivityTier.BROAD})
        assert pack.tier_for(Category.SCHOOL) == SensitivityTier.BROAD
        assert pack.tier_for(Category.MEDICAL_HEALTH) == SensitivityTier.CONSERVATIVE
        assert pack.threshold_for(Category.COMMUNITY_OPTIONAL) is None

    def test_invalid_pack_id_rejected(self):
        with pytest.raises(PydanticValidationError):
            PackConfig(pack_id="Has Spaces")

    def test_terms_are_normalized(self):
        pack = PackConfig(pack_id="p", domains=[" School.ORG "], keywords=["Field Trip", ""])
        assert pack.domains == ["school.org"]
        assert pack.keywords == ["field trip"]


class TestPackRegistry:
    def test_unknown_pack_raises_not_found(self):
        with pytest.raises(NotFound):
            PackRegistry().get("missing")

    def test_from_yaml(self, tmp_path):
        path = tmp_path / "packs.yaml"
        path.write_text(
            "packs:\n"
            "  sports:\n"
            "    domains: [teamsnap.com]\n"
            "    keywords: [practice]\n"
            "    category_sensitivity: {sports_activities: broad}\n"
        )
        registry = PackRegistry.from_yaml(path)
        assert "sports" in registry
        pack = registry.get("sports")
        assert pack.tier_for(Category.SPORTS_ACTIVITIES) == SensitivityTier.BROAD

    def test_missing_yaml_gives_empty_registry(self, tmp_path):
        assert PackRegistry.from_yaml(tmp_path / "nope.yaml").all() == []


class TestSenderDomainFilter:
    def setup_method(self):
        self.filter = SenderDomainFilter()

    def test_passes_allowed_domain_with_keyword(self, school_pack):
        result = self.filter.filter(
            school_pack, "office@lincoln.k12.ca.us", "Field trip Friday", ""
        )
        assert result.passed
        assert result.matched_keywords == ["field trip"]

    def test_off_list_domain_rejected_but_keywords_reported(self, school_pack):
        result = self.filter.filter(school_pack, "news@tutoring.com", "Report card tips", "")
        assert not result.passed
        assert result.reason == RejectionReason.DOMAIN
        assert result.domain == "tutoring.com"
        assert result.matched_keywords == ["report card"]

    def test_no_keyword_match(self, school_pack):
        result = self.filter.filter(school_pack, "office@lincoln.k12.ca.us", "Lunch menu", "Tacos")
        assert result.reason == RejectionReason.KEYWORD_NO_MATCH

    def test_exclude_keyword_vetoes(self, school_pack):
        result = self.filter.filter(
            school_pack, "office@lincoln.k12.ca.us", "Field trip fundraiser", ""
        )
        assert result.reason == RejectionReason.KEYWORD_NO_MATCH
        assert result.excluded_by == "fundraiser"

    def test_pack_without_keywords_accepts_allowed_domains(self):
        pack = PackConfig(pack_id="open", domains=["teamsnap.com"])
        assert self.filter.filter(pack, "coach@teamsnap.com", "Anything", "").passed


def test_approved_domain_lookup_extends_allow_list(school_pack):
    approved = {("tutoring.com", "school")}
    domain_filter = SenderDomainFilter(approved_domains=lambda d, p: (d, p) in approved)

    passed = domain_filter.filter(school_pack, "info@tutoring.com", "Report card tips", "")
    assert passed.passed

    other = domain_filter.filter(school_pack, "info@gmail.com", "Report card tips", "")
    assert other.reason == RejectionReason.DOMAIN
