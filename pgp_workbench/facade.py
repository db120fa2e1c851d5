"""Uniform wrapper around the PGPy primitives.

Every operation receives the key material it needs as armored text and
keeps no state between calls. PGPy exceptions are translated into the
workbench taxonomy here so callers can tell a wrong passphrase from a
message addressed to someone else.
"""

import logging
from datetime import timedelta

import pgpy
from pgpy.constants import (CompressionAlgorithm, EllipticCurveOID, HashAlgorithm, KeyFlags,
                            PubKeyAlgorithm, SymmetricKeyAlgorithm)
from pgpy.errors import PGPDecryptionError, PGPError

from .constants import RSA_BITS
from .errors import (DecryptionError, EncryptionError, FormatError, GenerationError,
                     NoMatchingKeyError, SigningError, WrongPassphraseError)
from .keys import describe_key, key_ids, parse_key
from .models import Algorithm, DecryptionResult, KeyConfig, KeyPairRecord, VerificationResult
from .validation import (assert_identity, assert_non_empty_message, assert_passphrase,
                         assert_passphrase_present, looks_like_armored_message,
                         looks_like_armored_message_or_signature)

logger = logging.getLogger(__name__)

PREFERRED_HASHES = [HashAlgorithm.SHA256, HashAlgorithm.SHA384, HashAlgorithm.SHA512]
PREFERRED_CIPHERS = [SymmetricKeyAlgorithm.AES256, SymmetricKeyAlgorithm.AES128]
PREFERRED_COMPRESSION = [CompressionAlgorithm.ZLIB, CompressionAlgorithm.Uncompressed]
ENCRYPTION_FLAGS = {KeyFlags.EncryptCommunications, KeyFlags.EncryptStorage}

# Recipient key ID used by messages with hidden recipients
WILDCARD_KEY_ID = "0000000000000000"


def _text(payload):
    if isinstance(payload, (bytes, bytearray)):
        return bytes(payload).decode("utf-8", errors="replace")
    return payload


class CryptoFacade:

    def generate_key_pair(self, identity, passphrase, config=None):
        """Create a passphrase protected key pair. Nothing is stored."""
        config = config or KeyConfig()
        assert_identity(identity.name, identity.email)
        assert_passphrase(passphrase)

        logger.info("Generating %s key pair", config.algorithm)
        try:
            primary, subkey = self._new_keys(config.algorithm)
            uid = pgpy.PGPUID.new(identity.name.strip(), comment=(identity.comment or "").strip(),
                                  email=identity.email.strip())

            expiry = {}
            if config.expiration_seconds:
                expiry["key_expiration"] = timedelta(seconds=config.expiration_seconds)

            usage = {KeyFlags.Certify}
            if config.usage.sign:
                usage.add(KeyFlags.Sign)
            primary.add_uid(uid, usage=usage, hashes=PREFERRED_HASHES, ciphers=PREFERRED_CIPHERS,
                            compression=PREFERRED_COMPRESSION, **expiry)
            if config.usage.encrypt:
                primary.add_subkey(subkey, usage=ENCRYPTION_FLAGS, **expiry)

            primary.protect(passphrase, SymmetricKeyAlgorithm.AES256, HashAlgorithm.SHA256)
            public_key = primary.pubkey
        except Exception as exc:
            logger.warning("Key generation failed: %s", type(exc).__name__)
            raise GenerationError(f"Key generation failed: {exc}") from exc

        metadata = describe_key(public_key, Algorithm(config.algorithm.upper()))
        logger.info("Generated key pair %s", metadata.key_id)
        return KeyPairRecord(public_key_armored=str(public_key), private_key_armored=str(primary),
                             metadata=metadata)

    @staticmethod
    def _new_keys(algorithm):
        if algorithm == "ecc":
            return (pgpy.PGPKey.new(PubKeyAlgorithm.EdDSA, EllipticCurveOID.Ed25519),
                    pgpy.PGPKey.new(PubKeyAlgorithm.ECDH, EllipticCurveOID.Curve25519))
        bits = RSA_BITS[algorithm]
        return (pgpy.PGPKey.new(PubKeyAlgorithm.RSAEncryptOrSign, bits),
                pgpy.PGPKey.new(PubKeyAlgorithm.RSAEncryptOrSign, bits))

    def sign(self, message, private_key_armored, passphrase):
        """Return an armored signed message.

        ASCII text is cleartext signed. Anything else is signed inline, since
        PGPy reads cleartext armor back as Latin-1 only.
        """
        assert_non_empty_message(message)
        assert_passphrase_present(passphrase)
        key = parse_key(private_key_armored, private=True)
        self._check_passphrase(key, passphrase)

        try:
            signed = pgpy.PGPMessage.new(message, cleartext=message.isascii())
            with key.unlock(passphrase):
                signed |= key.sign(signed)
        except Exception as exc:
            logger.warning("Signing failed: %s", type(exc).__name__)
            raise SigningError(f"Signing failed: {exc}") from exc
        return str(signed)

    def verify(self, signed_message_armored, public_key_armored):
        """Check a signed message against a public key.

        A signature that does not check out, or was made by another key,
        gives ``valid=False``. Only unreadable input raises ``FormatError``.
        """
        if not looks_like_armored_message_or_signature(signed_message_armored):
            raise FormatError("Invalid signed message format")
        key = parse_key(public_key_armored)

        try:
            message = pgpy.PGPMessage.from_blob(signed_message_armored)
        except Exception as exc:
            raise FormatError(f"Invalid signed message: {exc}") from exc
        if message.is_encrypted or not message.signatures:
            raise FormatError("Message does not carry a signature")

        return self._check_signatures(message, key)

    @staticmethod
    def _check_signatures(message, key):
        signers = [str(sig.signer).upper() for sig in message.signatures if sig.signer]
        ours = [signer for signer in signers if signer in key_ids(key)]
        if not ours:
            logger.info("Message was signed by %s, not by the given key", ", ".join(signers) or "nobody")
            return VerificationResult(valid=False, signer_key_id=signers[0] if signers else None)

        try:
            valid = bool(key.verify(message))
        except Exception as exc:
            logger.info("Signature check failed: %s", exc)
            valid = False

        if not valid:
            return VerificationResult(valid=False, signer_key_id=ours[0])
        return VerificationResult(valid=True, recovered_message=_text(message.message), signer_key_id=ours[0])

    def encrypt(self, message, recipient_public_key_armored):
        assert_non_empty_message(message)
        recipient = parse_key(recipient_public_key_armored)
        try:
            encrypted = recipient.encrypt(pgpy.PGPMessage.new(message), cipher=SymmetricKeyAlgorithm.AES256)
        except Exception as exc:
            logger.warning("Encryption failed: %s", type(exc).__name__)
            raise EncryptionError(f"Encryption failed: {exc}") from exc
        return str(encrypted)

    def decrypt(self, encrypted_message_armored, private_key_armored, passphrase):
        decrypted = self._decrypt_message(encrypted_message_armored, private_key_armored, passphrase)
        return _text(decrypted.message)

    def sign_and_encrypt(self, message, private_key_armored, passphrase, recipient_public_key_armored):
        """Sign with our private key, then encrypt to the recipient."""
        assert_non_empty_message(message)
        assert_passphrase_present(passphrase)
        key = parse_key(private_key_armored, private=True)
        recipient = parse_key(recipient_public_key_armored)
        self._check_passphrase(key, passphrase)

        try:
            plain = pgpy.PGPMessage.new(message)
            with key.unlock(passphrase):
                plain |= key.sign(plain)
        except Exception as exc:
            raise SigningError(f"Signing failed: {exc}") from exc

        try:
            encrypted = recipient.encrypt(plain, cipher=SymmetricKeyAlgorithm.AES256)
        except Exception as exc:
            raise EncryptionError(f"Encryption failed: {exc}") from exc
        return str(encrypted)

    def decrypt_and_verify(self, encrypted_message_armored, private_key_armored, passphrase,
                           signer_public_key_armored):
        signer = parse_key(signer_public_key_armored)
        decrypted = self._decrypt_message(encrypted_message_armored, private_key_armored, passphrase)
        plaintext = _text(decrypted.message)
        if not decrypted.is_signed:
            return DecryptionResult(plaintext=plaintext)

        verification = self._check_signatures(decrypted, signer)
        return DecryptionResult(plaintext=plaintext, signed=True, signature_valid=verification.valid,
                                signer_key_id=verification.signer_key_id)

    def _decrypt_message(self, encrypted_message_armored, private_key_armored, passphrase):
        assert_passphrase_present(passphrase)
        if not looks_like_armored_message(encrypted_message_armored):
            raise FormatError("Invalid PGP message format. Please ensure you've pasted a complete "
                              "encrypted PGP message.")
        try:
            message = pgpy.PGPMessage.from_blob(encrypted_message_armored)
        except Exception as exc:
            raise FormatError(f"Invalid encrypted message: {exc}") from exc
        if not message.is_encrypted:
            raise FormatError("Message is not encrypted")

        key = parse_key(private_key_armored, private=True)
        recipients = {str(keyid).upper() for keyid in message.encrypters}
        if recipients and WILDCARD_KEY_ID not in recipients and not recipients & key_ids(key):
            raise NoMatchingKeyError()
        self._check_passphrase(key, passphrase)

        try:
            with key.unlock(passphrase):
                return key.decrypt(message)
        except PGPError as exc:
            if "Cannot decrypt the provided message with this key" in str(exc):
                raise NoMatchingKeyError() from exc
            logger.warning("Decryption failed: %s", exc)
            raise DecryptionError(f"Failed to decrypt message: {exc}") from exc
        except Exception as exc:
            logger.warning("Decryption failed: %s", type(exc).__name__)
            raise DecryptionError(f"Failed to decrypt message: {exc}") from exc

    @staticmethod
    def _check_passphrase(key, passphrase):
        try:
            with key.unlock(passphrase):
                pass
        except PGPDecryptionError as exc:
            raise WrongPassphraseError() from exc
