"""
Account field validation.

Usernames are login handles: 4-20 characters, starting with four letters,
limited to letters, digits, underscores and single inner dots.
Display names are free-form labels shown on posts and reviews.
"""

from __future__ import annotations

import re

from vapor.errors import ValidationFailed

_USERNAME_ALLOWED = re.compile(r"^[A-Za-z0-9_.]+$")
_USERNAME_PREFIX = re.compile(r"^[A-Za-z]{4}")
_DISPLAY_NAME_ALLOWED = re.compile(r"^[A-Za-z0-9 ._-]+$")


def validate_username(username: str) -> str:
    """
    Validate a username and return it unchanged.

    Raises:
        ValidationFailed: If the username breaks any rule.
    """
    if not username or not 4 <= len(username) <= 20:
        msg = "Username must be between 4 and 20 characters"
        raise ValidationFailed(msg)
    if not _USERNAME_PREFIX.match(username):
        msg = "Username must start with at least 4 letters"
        raise ValidationFailed(msg)
    if not _USERNAME_ALLOWED.match(username):
        msg = "Username may only contain letters, digits, underscores and dots"
        raise ValidationFailed(msg)
    if ".." in username or username.endswith("."):
        msg = "Username cannot contain consecutive dots or end with a dot"
        raise ValidationFailed(msg)
    return username


def validate_display_name(display_name: str) -> str:
    """
    Validate a display name and return it stripped.

    Raises:
        ValidationFailed: If the display name breaks any rule.
    """
    value = display_name.strip()
    if not 3 <= len(value) <= 30:
        msg = "Display name must be between 3 and 30 characters"
        raise ValidationFailed(msg)
    if not _DISPLAY_NAME_ALLOWED.match(value):
        msg = "Display name may only contain letters, digits, spaces, dots, underscores and hyphens"
        raise ValidationFailed(msg)
    if not any(c.isalpha() for c in value):
        msg = "Display name must contain at least one letter"
        raise ValidationFailed(msg)
    return value
