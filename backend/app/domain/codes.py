"""Gift and promo code formatting and generation."""

import re
import secrets

# Characters excluding confusing ones: 0/O, 1/I/L
CODE_ALPHABET = "ABCDEFGHJKMNPQRSTUVWXYZ23456789"
CODE_LENGTH = 8

_WITH_HYPHEN = re.compile(r"^[A-Z0-9]{4}-[A-Z0-9]{4}$")
_WITHOUT_HYPHEN = re.compile(r"^[A-Z0-9]{8}$")


def generate_code() -> str:
    """Return a random code in ``XXXX-XXXX`` form."""
    chars = "".join(secrets.choice(CODE_ALPHABET) for _ in range(CODE_LENGTH))
    return f"{chars[:4]}-{chars[4:]}"


def normalize_code(code: str) -> str:
    return re.sub(r"\s+", "", code).upper()


def format_code(code: str) -> str:
    """Canonical storage form: normalized, hyphenated when eight characters long."""
    compact = normalize_code(code).replace("-", "")
    if len(compact) == CODE_LENGTH:
        return f"{compact[:4]}-{compact[4:]}"
    return compact


def is_valid_code_format(code: str) -> bool:
    normalized = normalize_code(code)
    return bool(_WITH_HYPHEN.match(normalized) or _WITHOUT_HYPHEN.match(normalized))
