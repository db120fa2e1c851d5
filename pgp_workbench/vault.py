"""Keeps the current key pair in the system keyring between sessions.

The exported envelope is encrypted with Fernet under a key derived from
a master password; the salt lives next to it in the keyring.
"""

import base64
import logging
import os

import keyring
from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
from keyring.errors import PasswordDeleteError

from .constants import KEYRING_SERVICE
from .errors import MalformedEnvelopeError, ValidationError, VaultError

logger = logging.getLogger(__name__)

KDF_ITERATIONS = 390000
SALT_LEN = 16
ENVELOPE_ENTRY = "current_key_pair"
SALT_ENTRY = "current_key_pair_salt"


def derive_master_key(password, salt):
    kdf = PBKDF2HMAC(algorithm=hashes.SHA256(), length=32, salt=salt, iterations=KDF_ITERATIONS)
    return base64.urlsafe_b64encode(kdf.derive(password.encode("utf-8")))


class KeyringVault:

    def __init__(self, codec, service=KEYRING_SERVICE):
        self.codec = codec
        self.service = service

    def remember(self, record, master_password):
        if not master_password:
            raise ValidationError("master_password_required")
        salt = os.urandom(SALT_LEN)
        token = Fernet(derive_master_key(master_password, salt)).encrypt(self.codec.encode(record).encode("utf-8"))
        keyring.set_password(self.service, SALT_ENTRY, base64.b64encode(salt).decode("ascii"))
        keyring.set_password(self.service, ENVELOPE_ENTRY, token.decode("ascii"))
        logger.info("Stored key pair %s in keyring service %s", record.metadata.key_id, self.service)

    def recall(self, master_password):
        """Return the remembered record, or None if nothing is stored."""
        if not master_password:
            raise ValidationError("master_password_required")
        token = keyring.get_password(self.service, ENVELOPE_ENTRY)
        salt = keyring.get_password(self.service, SALT_ENTRY)
        if token is None or salt is None:
            return None

        try:
            envelope = Fernet(derive_master_key(master_password, base64.b64decode(salt))).decrypt(token.encode("ascii"))
        except (InvalidToken, ValueError) as exc:
            logger.warning("Could not unlock keyring entry in %s", self.service)
            raise VaultError("Invalid master password or corrupted keyring entry") from exc

        try:
            return self.codec.decode(envelope.decode("utf-8"))
        except MalformedEnvelopeError as exc:
            raise VaultError(f"Stored key pair is unreadable: {exc.message}") from exc

    def forget(self):
        for entry in (ENVELOPE_ENTRY, SALT_ENTRY):
            try:
                keyring.delete_password(self.service, entry)
            except PasswordDeleteError:
                pass
        logger.info("Removed stored key pair from keyring service %s", self.service)
