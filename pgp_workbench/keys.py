"""Armored key parsing and metadata extraction on top of PGPy."""

import logging
from datetime import timezone

import pgpy
from pgpy.constants import PubKeyAlgorithm

from .errors import FormatError
from .models import Algorithm, KeyMetadata
from .validation import looks_like_armored_private_key, looks_like_armored_public_key

logger = logging.getLogger(__name__)

ECC_ALGORITHMS = {PubKeyAlgorithm.EdDSA, PubKeyAlgorithm.ECDSA, PubKeyAlgorithm.ECDH}
RSA_ALGORITHMS = {PubKeyAlgorithm.RSAEncryptOrSign, PubKeyAlgorithm.RSAEncrypt, PubKeyAlgorithm.RSASign}
RSA_SIZES = {2048: Algorithm.RSA2048, 4096: Algorithm.RSA4096}


def parse_key(armored, private=False):
    """Load an armored key block, checking it is the expected half of the pair."""
    kind = "private" if private else "public"
    looks_right = looks_like_armored_private_key if private else looks_like_armored_public_key
    if not looks_right(armored):
        raise FormatError(f"Invalid {kind} key format")

    try:
        key, _ = pgpy.PGPKey.from_blob(armored)
    except Exception as exc:
        logger.warning("Could not parse %s key block: %s", kind, type(exc).__name__)
        raise FormatError(f"Invalid {kind} key: {exc}") from exc

    if key.is_public == private:
        raise FormatError(f"Provided key is not a {kind} key.")
    return key


def fingerprint_of(key):
    return str(key.fingerprint).replace(" ", "").upper()


def key_ids(key):
    """Key IDs of the primary key and every subkey."""
    ids = {fingerprint_of(key)[-16:]}
    ids.update(fingerprint_of(subkey)[-16:] for subkey in key.subkeys.values())
    return ids


def format_user_id(uid):
    text = uid.name or ""
    if uid.comment:
        text += f" ({uid.comment})"
    if uid.email:
        text += f" <{uid.email}>"
    return text.strip()


def infer_algorithm(key):
    if key.key_algorithm in ECC_ALGORITHMS:
        return Algorithm.ECC
    if key.key_algorithm in RSA_ALGORITHMS:
        return RSA_SIZES.get(key.key_size, Algorithm.UNKNOWN)
    return Algorithm.UNKNOWN


def describe_key(key, algorithm=None):
    fingerprint = fingerprint_of(key)
    created = key.created
    if created.tzinfo is None:
        created = created.replace(tzinfo=timezone.utc)

    return KeyMetadata(
        key_id=fingerprint[-16:],
        fingerprint=fingerprint,
        algorithm=algorithm or infer_algorithm(key),
        created_at=created.replace(microsecond=0),
        user_ids=[format_user_id(uid) for uid in key.userids if uid.is_uid],
    )
