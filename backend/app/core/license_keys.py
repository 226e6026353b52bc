"""License key format, generation, and normalization.

Keys look like ``XXXX-XXXX-XXXX-XXXX-XXXX`` and draw from a 32-character
alphabet without the visually ambiguous ``0``, ``O``, ``1``, and ``I``.
Generation uses the ``secrets`` module; uniqueness against stored keys is
the caller's concern (see LicenseService.generate_unique_key).
"""

import re
import secrets

LICENSE_KEY_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
LICENSE_KEY_SEGMENTS = 5
LICENSE_KEY_SEGMENT_LENGTH = 4

LICENSE_KEY_PATTERN = re.compile(r"^[A-Z0-9]{4}(-[A-Z0-9]{4}){4}$")

_WHITESPACE = re.compile(r"\s+")


def generate_license_key() -> str:
    """Generate a random license key.

    Returns:
        Key in ``XXXX-XXXX-XXXX-XXXX-XXXX`` form.
    """
    segments = [
        "".join(
            secrets.choice(LICENSE_KEY_ALPHABET)
            for _ in range(LICENSE_KEY_SEGMENT_LENGTH)
        )
        for _ in range(LICENSE_KEY_SEGMENTS)
    ]
    return "-".join(segments)


def normalize_license_key(raw: str) -> str:
    """Strip all whitespace and uppercase a user-supplied key."""
    return _WHITESPACE.sub("", raw).upper()


def is_valid_license_key(key: str) -> bool:
    """Check a normalized key against the wire format.

    Args:
        key: Key already passed through normalize_license_key().

    Returns:
        True if the key matches ``XXXX-XXXX-XXXX-XXXX-XXXX``.
    """
    return LICENSE_KEY_PATTERN.fullmatch(key) is not None
