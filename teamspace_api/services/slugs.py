"""Slug and display-name helpers shared by workspaces and projects."""

import re
from typing import Optional

from teamspace_api.exceptions import ValidationError

SLUG_PATTERN = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")
MAX_SLUG_LENGTH = 63


def generate_slug(name: str, fallback: str = "workspace") -> str:
    """Generate a URL-safe slug from a display name.

    Args:
        name: Workspace or project name
        fallback: Slug used when nothing usable is left of the name

    Returns:
        Lowercase slug with special characters replaced by hyphens
    """
    slug = name.lower().strip()
    # Remove special characters except hyphens
    slug = re.sub(r"[^a-z0-9\s-]", "", slug)
    slug = re.sub(r"[\s_]+", "-", slug)
    slug = re.sub(r"-+", "-", slug)
    slug = slug[:MAX_SLUG_LENGTH].strip("-")
    return slug or fallback


def validate_slug(slug: str) -> str:
    """Raise ValidationError unless ``slug`` is lowercase words joined by hyphens."""
    if len(slug) > MAX_SLUG_LENGTH or not SLUG_PATTERN.match(slug):
        raise ValidationError(
            "Slug must be lowercase letters, digits and single hyphens",
            details={"slug": slug},
        )
    return slug


def validate_name(name: Optional[str]) -> str:
    """Strip a display name, rejecting blank ones."""
    if name is None or not name.strip():
        raise ValidationError("Name is required")
    return name.strip()
