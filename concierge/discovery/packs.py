"""
Pack configuration: the tracking domains discovery scores messages against.

A pack carries its own sender allow-list, keyword rules, per-category
sensitivity tiers and the household members items can be assigned to.
Packs are defined in YAML (config/packs.yaml or CONCIERGE_PACKS_PATH).
"""

from __future__ import annotations

import fnmatch
import re
from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator

from concierge.discovery.types import DEFAULT_CATEGORY_SENSITIVITY, Category, SensitivityTier
from concierge.errors import NotFound
from concierge.infrastructure.settings import PACKS_CONFIG_PATH
from concierge.observability.logging import get_logger

logger = get_logger(__name__)

_PACK_ID = re.compile(r"^[a-z0-9][a-z0-9_-]{0,63}$")


class PersonRule(BaseModel):
    """A household member and the words that identify them in a message."""

    model_config = ConfigDict(frozen=True)

    name: str
    aliases: list[str] = Field(default_factory=list)

    def matches(self, text_lower: str) -> bool:
        terms = [self.name, *self.aliases]
        return any(re.search(rf"\b{re.escape(t.lower())}\b", text_lower) for t in terms if t)


class PackConfig(BaseModel):
    """Configuration of one tracking domain."""

    model_config = ConfigDict(frozen=True)

    pack_id: str
    name: str = ""
    domains: list[str] = Field(default_factory=list)
    keywords: list[str] = Field(default_factory=list)
    exclude_keywords: list[str] = Field(default_factory=list)
    category_sensitivity: dict[Category, SensitivityTier] = Field(
        default_factory=lambda: dict(DEFAULT_CATEGORY_SENSITIVITY)
    )
    people: list[PersonRule] = Field(default_factory=list)
    timezone: str = "UTC"

    @field_validator("pack_id")
    @classmethod
    def valid_pack_id(cls, v: str) -> str:
        if not _PACK_ID.match(v):
            raise ValueError(f"invalid pack_id: {v!r}")
        return v

    @field_validator("domains", "keywords", "exclude_keywords")
    @classmethod
    def normalize_terms(cls, v: list[str]) -> list[str]:
        return [term.strip().lower() for term in v if term and term.strip()]

    @field_validator("category_sensitivity")
    @classmethod
    def fill_missing_categories(
        cls, v: dict[Category, SensitivityTier]
    ) -> dict[Category, SensitivityTier]:
        merged = dict(DEFAULT_CATEGORY_SENSITIVITY)
        merged.update(v)
        return merged

    def tier_for(self, category: Category) -> SensitivityTier:
        return self.category_sensitivity.get(category, SensitivityTier.BALANCED)

    def threshold_for(self, category: Category) -> float | None:
        """Minimum score to include an item of this category, None when the tier is off."""
        return self.tier_for(category).threshold

    def matches_domain(self, domain: str) -> bool:
        """
        True when the sender domain is allow-listed.

        Accepts exact matches, subdomains of an allow-listed domain
        ("mail.school.org" for "school.org") and shell-style wildcards
        ("*.k12.ca.us").
        """
        domain = domain.lower().strip()
        if not domain:
            return False
        for allowed in self.domains:
            if "*" in allowed or "?" in allowed:
                if fnmatch.fnmatchcase(domain, allowed):
                    return True
            elif domain == allowed or domain.endswith(f".{allowed}"):
                return True
        return False


class PackRegistry:
    """In-memory lookup of configured packs."""

    def __init__(self, packs: list[PackConfig] | None = None):
        self._packs: dict[str, PackConfig] = {}
        for pack in packs or []:
            self.register(pack)

    def register(self, pack: PackConfig) -> None:
        self._packs[pack.pack_id] = pack

    def get(self, pack_id: str) -> PackConfig:
        try:
            return self._packs[pack_id]
        except KeyError:
            raise NotFound("pack", pack_id) from None

    def all(self) -> list[PackConfig]:
        return list(self._packs.values())

    def __contains__(self, pack_id: object) -> bool:
        return pack_id in self._packs

    @classmethod
    def from_yaml(cls, path: Path | None = None) -> PackRegistry:
        """
        Load packs from YAML.

        Expected shape::

            packs:
              school:
                name: School
                domains: [lincoln.k12.ca.us, "*.parentsquare.com"]
                keywords: [field trip, conference]
                category_sensitivity: {school: broad}
                people:
                  - name: Maya
                    aliases: [maya r]
        """
        path = path or PACKS_CONFIG_PATH
        if not path.exists():
            logger.warning("Pack config not found at %s, no packs loaded", path)
            return cls()

        with open(path) as f:
            data = yaml.safe_load(f) or {}

        packs = [
            PackConfig(pack_id=pack_id, **(body or {}))
            for pack_id, body in (data.get("packs") or {}).items()
        ]
        logger.info("Loaded %d pack(s) from %s", len(packs), path)
        return cls(packs)
