"""Validation of URL slugs used as document identifiers."""

from __future__ import annotations

import re

_SLUG_PATTERN = re.compile(r"[a-z](?:[a-z0-9-]*[a-z])?")


def validate_slug(value: str) -> str:
    """Return ``value`` if it is a valid slug, otherwise raise ``ValueError``.

    A slug starts and ends with a lower-case letter and may contain
    lower-case letters, digits and hyphens in between.
    """
    if not isinstance(value, str) or _SLUG_PATTERN.fullmatch(value) is None:
        raise ValueError("invalid slug")
    return value