"""Failure taxonomy shared by every layer.

Library exceptions are translated into these at the boundary where the
library is called; the controller turns them into result values.
"""

from .constants import ERRORS


class WorkbenchError(Exception):
    kind = "error"
    default_message = "Operation failed"

    def __init__(self, message=None):
        super().__init__(message or self.default_message)

    @property
    def message(self):
        return self.args[0]


class ValidationError(WorkbenchError):
    """Bad user input. ``code`` is a stable identifier such as ``passphrase_too_short``."""
    kind = "validation"

    def __init__(self, code, message=None):
        self.code = code
        super().__init__(message or ERRORS.get(code, code))


class FormatError(WorkbenchError):
    kind = "format"
    default_message = "Input is not valid PGP armored data"


class WrongPassphraseError(WorkbenchError):
    kind = "wrong_passphrase"
    default_message = "Incorrect passphrase. Please check your key passphrase."


class NoMatchingKeyError(WorkbenchError):
    kind = "no_matching_key"
    default_message = "This message was not encrypted for your key. You cannot decrypt it."


class GenerationError(WorkbenchError):
    kind = "generation"
    default_message = "Key generation failed"


class SigningError(WorkbenchError):
    kind = "signing"
    default_message = "Signing failed"


class EncryptionError(WorkbenchError):
    kind = "encryption"
    default_message = "Encryption failed"


class DecryptionError(WorkbenchError):
    kind = "decryption"
    default_message = "Failed to decrypt message. Check your passphrase and try again."


class MalformedEnvelopeError(WorkbenchError):
    kind = "malformed_envelope"
    default_message = "Invalid key file format"


class VaultError(WorkbenchError):
    kind = "vault"
    default_message = "Could not read the key pair stored in the system keyring"
