"""
Sender address helpers for discovery and domain suggestions.
"""

from __future__ import annotations

import re
from email.utils import parseaddr


def extract_email_address(email_address: str) -> str:
    """
    Extract and normalize email address from various formats.

    Examples:
        >>> extract_email_address("office@school.org")
        'office@school.org'

        >>> extract_email_address("Coach Dana <Dana@TeamSnap.com>")
        'dana@teamsnap.com'

        >>> extract_email_address("invalid")
        'invalid'
    """
    if not email_address:
        return ""

    email_lower = email_address.lower().strip()

    angle_match = re.search(r"<([^>]+)>", email_lower)
    if angle_match:
        email_lower = angle_match.group(1).strip()

    return email_lower


def extract_display_name(email_address: str) -> str:
    """
    Display-name part of a From header, or "" when there is none.

    Examples:
        >>> extract_display_name('"Lincoln Elementary" <office@lincoln.k12.us>')
        'Lincoln Elementary'
    """
    if not email_address:
        return ""
    name, _ = parseaddr(email_address)
    return name.strip()


def extract_domain_only(email_address: str) -> str:
    """
    Extract only the domain portion (after @) from email address.

    Examples:
        >>> extract_domain_only("noreply@mail.teamsnap.com")
        'mail.teamsnap.com'
    """
    full_email = extract_email_address(email_address)

    if "@" in full_email:
        return full_email.rsplit("@", 1)[1]

    return full_email
