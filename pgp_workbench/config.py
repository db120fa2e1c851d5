import os

from .constants import DEFAULT_ALGORITHM, DEFAULT_EXPIRATION, KEYRING_SERVICE
from .errors import ValidationError
from .models import KeyConfig, KeyUsage


class Config:
    """Defaults for the web front end.

    Any value can be overridden with a ``PGP_WORKBENCH_`` prefixed
    environment variable, e.g. ``PGP_WORKBENCH_DEFAULT_ALGORITHM=rsa4096``.
    """
    SECRET_KEY = os.urandom(24)
    MAX_CONTENT_LENGTH = 1024 * 1024
    DEFAULT_ALGORITHM = DEFAULT_ALGORITHM
    DEFAULT_EXPIRATION = DEFAULT_EXPIRATION
    GENERATION_TIMEOUT = 120
    KEYRING_SERVICE = KEYRING_SERVICE
    ENABLE_KEYRING = True


def key_config_from(config, algorithm=None, expiration=None, sign=True, encrypt=True):
    """Build generation options from form values, falling back to the app defaults."""
    if expiration in (None, ""):
        expiration = config["DEFAULT_EXPIRATION"]
    try:
        expiration = int(expiration)
    except (TypeError, ValueError) as exc:
        raise ValidationError("invalid_expiration") from exc
    return KeyConfig(
        algorithm=algorithm or config["DEFAULT_ALGORITHM"],
        expiration_seconds=expiration,
        usage=KeyUsage(sign=sign, encrypt=encrypt),
    )
