"""Password generation for owner identities.

Uses the `secrets` module for cryptographically secure randomness.
"""

import secrets
import string

_SYMBOLS = "!@#$%^&*-_=+"
_ALPHABET = string.ascii_letters + string.digits + _SYMBOLS


def generate_password(length: int = 16) -> str:
    """Generate a random password with at least one character of each class.

    Guarantees one uppercase letter, one lowercase letter, one digit and one
    symbol, then fills the rest from the full alphabet and shuffles.

    Args:
        length: Total length, at least 4

    Returns:
        The generated password
    """
    if length < 4:
        raise ValueError("Password length must be at least 4")

    chars = [
        secrets.choice(string.ascii_uppercase),
        secrets.choice(string.ascii_lowercase),
        secrets.choice(string.digits),
        secrets.choice(_SYMBOLS),
    ]
    chars.extend(secrets.choice(_ALPHABET) for _ in range(length - len(chars)))
    secrets.SystemRandom().shuffle(chars)
    return "".join(chars)
