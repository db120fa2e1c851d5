"""User-level operations over the current key pair.

Each method validates its input, picks the key material to use, calls
the crypto facade and reports back an ``OperationResult``. Failures are
returned, never raised, and never touch the store.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Any, Optional

from . import formatting
from .codec import PersistenceCodec
from .errors import GenerationError, ValidationError, VaultError, WorkbenchError
from .facade import CryptoFacade
from .models import Identity, KeyConfig
from .store import KeyPairStore
from .validation import assert_identity, assert_non_empty_message, assert_passphrase

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OperationResult:
    ok: bool
    value: Any = None
    error: Optional[str] = None
    error_kind: Optional[str] = None
    code: Optional[str] = None

    @classmethod
    def success(cls, value=None):
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, exc):
        return cls(ok=False, error=exc.message, error_kind=exc.kind, code=getattr(exc, "code", None))

    def to_dict(self):
        if self.ok:
            return {"ok": True, "value": self.value}
        return {"ok": False, "error": self.error, "kind": self.error_kind, "code": self.code}


class OperationController:

    def __init__(self, store=None, facade=None, codec=None, vault=None, default_config=None,
                 generation_timeout=None):
        self.store = store if store is not None else KeyPairStore()
        self.facade = facade or CryptoFacade()
        self.codec = codec or PersistenceCodec()
        self.vault = vault
        self.default_config = default_config or KeyConfig()
        self.generation_timeout = generation_timeout

    def _run(self, action, func, *args):
        try:
            value = func(*args)
        except WorkbenchError as exc:
            logger.warning("%s failed (%s): %s", action, exc.kind, exc.message)
            return OperationResult.failure(exc)
        except Exception as exc:
            logger.exception("%s failed unexpectedly", action)
            return OperationResult(ok=False, error=f"Unexpected error: {exc}", error_kind="error")
        logger.info("%s succeeded", action)
        return OperationResult.success(value)

    # Key pair lifecycle

    def generate(self, name, email, passphrase, comment="", config=None, timeout=None):
        return self._run("generate", self._generate, name, email, passphrase, comment, config, timeout)

    def _generate(self, name, email, passphrase, comment, config, timeout):
        identity = Identity(name=(name or "").strip(), email=(email or "").strip(), comment=(comment or "").strip())
        assert_identity(identity.name, identity.email)
        assert_passphrase(passphrase)
        config = config or self.default_config
        timeout = timeout if timeout is not None else self.generation_timeout

        if timeout:
            record = self._generate_with_timeout(identity, passphrase, config, timeout)
        else:
            record = self.facade.generate_key_pair(identity, passphrase, config)
        self.store.set(record)
        return record

    def _generate_with_timeout(self, identity, passphrase, config, timeout):
        # A worker that outlives the timeout finishes on its own; its record is dropped.
        outcome = {}

        def worker():
            try:
                outcome["record"] = self.facade.generate_key_pair(identity, passphrase, config)
            except Exception as exc:
                outcome["error"] = exc

        thread = threading.Thread(target=worker, name="pgp-keygen", daemon=True)
        thread.start()
        thread.join(timeout)
        if thread.is_alive():
            raise GenerationError(f"Key generation timed out after {timeout} seconds")
        if "error" in outcome:
            raise outcome["error"]
        return outcome["record"]

    def save(self):
        """Envelope JSON for the current key pair, with a suggested file name."""
        return self._run("save", self._save)

    def _save(self):
        record = self._current()
        return formatting.backup_filename_for(record, self.codec.clock()), self.codec.encode(record)

    def export_public_key(self):
        return self._run("export public key", self._export_public_key)

    def _export_public_key(self):
        record = self._current()
        return formatting.public_key_filename(record), record.public_key_armored

    def export_text(self):
        return self._run("export text", self._export_text)

    def _export_text(self):
        record = self._current()
        return formatting.text_bundle_filename(record, self.codec.clock()), self.codec.encode_text(record)

    def load(self, content):
        return self._run("load", self._store_loaded, self.codec.load, content)

    def load_file(self, path):
        return self._run("load file", self._store_loaded, self.codec.load_file, path)

    def _store_loaded(self, loader, source):
        record = loader(source)
        self.store.set(record)
        return record

    def clear(self):
        return self._run("clear", self.store.clear)

    def has_keys(self):
        return self.store.has()

    def key_info(self):
        return formatting.key_info(self.store.get())

    # Message operations

    def sign(self, message, passphrase):
        return self._run("sign", self._sign, message, passphrase)

    def _sign(self, message, passphrase):
        assert_non_empty_message(message)
        record = self._current(private=True)
        return self.facade.sign(message, record.private_key_armored, passphrase)

    def verify(self, signed_message, custom_public_key=None):
        return self._run("verify", self._verify, signed_message, custom_public_key)

    def _verify(self, signed_message, custom_public_key):
        assert_non_empty_message(signed_message)
        return self.facade.verify(signed_message.strip(), self._public_key(custom_public_key))

    def encrypt(self, message, custom_public_key=None):
        return self._run("encrypt", self._encrypt, message, custom_public_key)

    def _encrypt(self, message, custom_public_key):
        assert_non_empty_message(message)
        return self.facade.encrypt(message, self._public_key(custom_public_key))

    def decrypt(self, encrypted_message, passphrase):
        return self._run("decrypt", self._decrypt, encrypted_message, passphrase)

    def _decrypt(self, encrypted_message, passphrase):
        assert_non_empty_message(encrypted_message)
        record = self._current(private=True)
        return self.facade.decrypt(encrypted_message.strip(), record.private_key_armored, passphrase)

    def sign_and_encrypt(self, message, passphrase, custom_public_key=None):
        return self._run("sign and encrypt", self._sign_and_encrypt, message, passphrase, custom_public_key)

    def _sign_and_encrypt(self, message, passphrase, custom_public_key):
        assert_non_empty_message(message)
        record = self._current(private=True)
        return self.facade.sign_and_encrypt(message, record.private_key_armored, passphrase,
                                            self._public_key(custom_public_key))

    def decrypt_and_verify(self, encrypted_message, passphrase, custom_public_key=None):
        return self._run("decrypt and verify", self._decrypt_and_verify, encrypted_message, passphrase,
                         custom_public_key)

    def _decrypt_and_verify(self, encrypted_message, passphrase, custom_public_key):
        assert_non_empty_message(encrypted_message)
        record = self._current(private=True)
        return self.facade.decrypt_and_verify(encrypted_message.strip(), record.private_key_armored, passphrase,
                                              self._public_key(custom_public_key))

    # Keyring vault

    def remember(self, master_password):
        return self._run("remember", self._remember, master_password)

    def _remember(self, master_password):
        self._vault().remember(self._current(), master_password)
        return True

    def recall(self, master_password):
        return self._run("recall", self._recall, master_password)

    def _recall(self, master_password):
        record = self._vault().recall(master_password)
        if record is None:
            raise VaultError("No key pair is stored in the system keyring")
        self.store.set(record)
        return record

    def forget(self):
        return self._run("forget", lambda: self._vault().forget())

    # Key resolution

    def _vault(self):
        if self.vault is None:
            raise ValidationError("no_vault")
        return self.vault

    def _current(self, private=False):
        record = self.store.get()
        if record is None:
            raise ValidationError("no_keys")
        if private and not record.has_private_key:
            raise ValidationError("no_private_key")
        return record

    def _public_key(self, custom_public_key):
        # An explicitly supplied key always wins over the current key pair.
        if custom_public_key and custom_public_key.strip():
            return custom_public_key.strip()
        return self._current().public_key_armored
