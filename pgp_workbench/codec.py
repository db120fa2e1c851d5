"""Export and import of the current key pair.

Exports are a self-describing JSON envelope. Imports also accept a
bare armored key block (``.asc``, ``.txt``, ``.pgp``, ``.key``); the
format is decided by looking at the content, not the file name.
"""

import json
import logging
import os
from datetime import datetime, timezone

from .constants import FILE_VERSION, SUPPORTED_EXTENSIONS
from .errors import FormatError, MalformedEnvelopeError, ValidationError
from .keys import describe_key, fingerprint_of, parse_key
from .models import KeyMetadata, KeyPairRecord
from .validation import (PRIVATE_KEY_PATTERN, PUBLIC_KEY_PATTERN, contains_pgp_armor,
                         looks_like_armored_private_key, looks_like_armored_public_key)

logger = logging.getLogger(__name__)


def utc_now():
    return datetime.now(timezone.utc)


class PersistenceCodec:

    def __init__(self, clock=utc_now):
        self.clock = clock

    def encode(self, record):
        envelope = {
            "fileVersion": FILE_VERSION,
            "exportedAt": self.clock().isoformat(),
            "keys": {
                "publicKey": record.public_key_armored,
                "privateKey": record.private_key_armored,
            },
            "metadata": record.metadata.to_dict(),
            "keyInfo": {
                "hasPrivateKey": record.has_private_key,
                "hasPublicKey": bool(record.public_key_armored),
                "isComplete": record.is_complete,
            },
        }
        return json.dumps(envelope, indent=2)

    def decode(self, text):
        try:
            envelope = json.loads(text)
        except ValueError as exc:
            raise MalformedEnvelopeError(f"Invalid key file format: {exc}") from exc
        if not isinstance(envelope, dict) or not isinstance(envelope.get("keys"), dict):
            raise MalformedEnvelopeError("Key file is missing its keys section")

        public_key = envelope["keys"].get("publicKey")
        private_key = envelope["keys"].get("privateKey")
        if not isinstance(public_key, str) or not looks_like_armored_public_key(public_key):
            raise MalformedEnvelopeError("Invalid public key in key file")
        if private_key is not None and (not isinstance(private_key, str)
                                        or not looks_like_armored_private_key(private_key)):
            raise MalformedEnvelopeError("Invalid private key in key file")

        public = self._parse(public_key)
        if private_key is not None and fingerprint_of(self._parse(private_key, private=True)) != fingerprint_of(public):
            raise MalformedEnvelopeError("Private key does not belong to the public key in key file")

        metadata = envelope.get("metadata")
        if metadata:
            try:
                metadata = KeyMetadata.from_dict(metadata)
            except (KeyError, TypeError, ValueError, AttributeError) as exc:
                raise MalformedEnvelopeError(f"Invalid metadata in key file: {exc}") from exc
        else:
            metadata = describe_key(public)

        logger.info("Decoded key file for %s", metadata.key_id)
        return KeyPairRecord(public_key_armored=public_key, private_key_armored=private_key, metadata=metadata)

    @staticmethod
    def _parse(armored, private=False):
        try:
            return parse_key(armored, private=private)
        except FormatError as exc:
            raise MalformedEnvelopeError(exc.message) from exc

    def decode_armor(self, text):
        """Build a record from armored key text.

        A private key block wins over a public one, so the text bundle
        written by ``encode_text`` loads back as a complete pair.
        """
        private_block = PRIVATE_KEY_PATTERN.search(text)
        if private_block:
            key = self._parse(private_block.group(0), private=True)
            public = key.pubkey
            return KeyPairRecord(public_key_armored=str(public), private_key_armored=private_block.group(0) + "\n",
                                 metadata=describe_key(public))
        public_block = PUBLIC_KEY_PATTERN.search(text)
        if public_block:
            public = self._parse(public_block.group(0))
            return KeyPairRecord(public_key_armored=public_block.group(0) + "\n", private_key_armored=None,
                                 metadata=describe_key(public))
        raise MalformedEnvelopeError("File does not contain a PGP key block")

    def load(self, content):
        content = (content or "").strip()
        if content.startswith("{"):
            return self.decode(content)
        if contains_pgp_armor(content):
            return self.decode_armor(content)
        raise MalformedEnvelopeError("File does not contain valid PGP key data")

    def load_file(self, path):
        extension = os.path.splitext(str(path))[1].lower()
        if extension not in SUPPORTED_EXTENSIONS:
            raise ValidationError("unsupported_file")
        try:
            with open(path, "r", encoding="utf-8") as inf:
                content = inf.read()
        except (OSError, UnicodeDecodeError) as exc:
            raise MalformedEnvelopeError(f"Failed to read file: {exc}") from exc
        logger.info("Loading key pair from %s", path)
        return self.load(content)

    def encode_text(self, record):
        """Human readable bundle with the private key first, then the public key."""
        metadata = record.metadata
        lines = [
            "# PGP Key Pair Export",
            f"# Generated: {self.clock().isoformat()}",
            f"# Key ID: {metadata.key_id or 'Unknown'}",
            f"# Algorithm: {metadata.algorithm.value}",
            f"# User IDs: {', '.join(metadata.user_ids) or 'Unknown'}",
            "",
        ]
        if record.has_private_key:
            lines += ["# PRIVATE KEY", "# Keep this secret and secure!", record.private_key_armored.strip(), ""]
        lines += ["# PUBLIC KEY", "# Share this with others to receive encrypted messages",
                  record.public_key_armored.strip(), ""]
        return "\n".join(lines)
