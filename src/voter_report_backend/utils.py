"""
Utility functions for storage keys and string sanitization.

This module provides helper functions for:
- Sanitizing user-provided strings for safe object-storage keys
- Building the destination key of a generated report
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4

# Characters collapsed into a single hyphen: slashes, backslashes and whitespace
SEPARATOR_PATTERN = re.compile(r"[/\\\s]+")
# Anything left that is not safe in a storage key
UNSAFE_PATTERN = re.compile(r"[^a-z0-9_-]")
REPEATED_HYPHENS = re.compile(r"-+")

# Filename segment for each report type
REPORT_TYPE_FILENAMES = {
    "ldCommittees": "committeeReport",
    "voterList": "voterList",
    "absenteeReport": "absenteeReport",
    "designatedPetition": "designatedPetition",
}


def sanitize_for_storage_key(value: Optional[str], fallback_to_uuid: bool = True, max_length: int = 512) -> str:
    """
    Generate a storage-safe key segment from user input.

    Email addresses are reduced to their username. The result is lowercase
    and only contains alphanumerics, hyphens and underscores.

    Args:
        value: The original string to sanitize
        fallback_to_uuid: Return a random UUID when nothing usable remains
        max_length: Maximum length of the sanitized segment

    Returns:
        The sanitized segment, a UUID, or an empty string

    Example:
        >>> sanitize_for_storage_key("Jane.Doe@example.com")
        "janedoe"
        >>> sanitize_for_storage_key("My Report / 2024")
        "my-report-2024"
    """
    if not value:
        return str(uuid4()) if fallback_to_uuid else ""

    if "@" in value:
        value = value.split("@", 1)[0] or value

    cleaned = SEPARATOR_PATTERN.sub("-", value.lower())
    cleaned = UNSAFE_PATTERN.sub("", cleaned)
    cleaned = REPEATED_HYPHENS.sub("-", cleaned).strip("-")
    cleaned = cleaned[: max(1, max_length)]

    if cleaned:
        return cleaned
    return str(uuid4()) if fallback_to_uuid else ""


def report_type_segment(report_type: str) -> str:
    """Filename segment for a report type; unknown types are sanitized as-is."""
    return REPORT_TYPE_FILENAMES.get(report_type) or sanitize_for_storage_key(report_type)


def generate_report_key(
    report_type: str,
    file_extension: str,
    author: str,
    job_id: str,
    report_name: Optional[str] = None,
    now: Optional[datetime] = None,
) -> str:
    """
    Build the object-storage key for a generated report.

    Layout: ``<author>/<type>/<name->YYYY-MM-DD-HH-MM-SS-<job suffix>.<ext>``.
    The job suffix keeps two reports from the same author in the same second
    from overwriting each other.

    Args:
        report_type: Job type tag (e.g. ``ldCommittees``)
        file_extension: ``pdf`` or ``xlsx``
        author: Report author identifier, sanitized here
        job_id: Job correlation id
        report_name: Optional human-readable report name
        now: Timestamp to use (defaults to the current UTC time)

    Returns:
        The storage key
    """
    moment = now or datetime.now(timezone.utc)
    sanitized_author = sanitize_for_storage_key(author, fallback_to_uuid=True)
    name_segment = sanitize_for_storage_key(report_name, fallback_to_uuid=False) if report_name else ""
    name_part = f"{name_segment}-" if name_segment else ""
    job_suffix = sanitize_for_storage_key(job_id, fallback_to_uuid=True)[-8:]
    stamp = moment.strftime("%Y-%m-%d-%H-%M-%S")
    return f"{sanitized_author}/{report_type_segment(report_type)}/{name_part}{stamp}-{job_suffix}.{file_extension}"
