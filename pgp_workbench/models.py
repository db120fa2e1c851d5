from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from .constants import ALGORITHMS, DEFAULT_ALGORITHM, DEFAULT_EXPIRATION
from .errors import ValidationError


class Algorithm(str, Enum):
    ECC = "ECC"
    RSA2048 = "RSA2048"
    RSA4096 = "RSA4096"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def parse(cls, value):
        try:
            return cls(str(value).upper())
        except ValueError:
            return cls.UNKNOWN


@dataclass(frozen=True)
class Identity:
    name: str
    email: str
    comment: str = ""


@dataclass(frozen=True)
class KeyUsage:
    sign: bool = True
    encrypt: bool = True


@dataclass(frozen=True)
class KeyConfig:
    """Key generation options: algorithm, lifetime in seconds (0 = never) and usage."""
    algorithm: str = DEFAULT_ALGORITHM
    expiration_seconds: int = DEFAULT_EXPIRATION
    usage: KeyUsage = field(default_factory=KeyUsage)

    def __post_init__(self):
        if self.algorithm not in ALGORITHMS:
            raise ValidationError("unsupported_algorithm")
        if not isinstance(self.expiration_seconds, int) or self.expiration_seconds < 0:
            raise ValidationError("invalid_expiration")


@dataclass(frozen=True)
class KeyMetadata:
    key_id: str
    fingerprint: str
    algorithm: Algorithm
    created_at: datetime
    user_ids: List[str] = field(default_factory=list)

    def to_dict(self):
        return {
            "keyId": self.key_id,
            "fingerprint": self.fingerprint,
            "algorithm": self.algorithm.value,
            "createdAt": self.created_at.isoformat(),
            "userIds": list(self.user_ids),
        }

    @classmethod
    def from_dict(cls, data):
        created_at = datetime.fromisoformat(data["createdAt"])
        if created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=timezone.utc)
        return cls(
            key_id=str(data["keyId"]),
            fingerprint=str(data["fingerprint"]),
            algorithm=Algorithm.parse(data.get("algorithm")),
            created_at=created_at,
            user_ids=[str(uid) for uid in data.get("userIds", [])],
        )


@dataclass(frozen=True)
class KeyPairRecord:
    """The current key pair. ``private_key_armored`` is None for public-only records."""
    public_key_armored: str
    private_key_armored: Optional[str]
    metadata: KeyMetadata

    @property
    def has_private_key(self):
        return self.private_key_armored is not None

    @property
    def is_complete(self):
        return bool(self.public_key_armored) and self.has_private_key


@dataclass(frozen=True)
class VerificationResult:
    valid: bool
    recovered_message: Optional[str] = None
    signer_key_id: Optional[str] = None


@dataclass(frozen=True)
class DecryptionResult:
    plaintext: str
    signed: bool = False
    signature_valid: bool = False
    signer_key_id: Optional[str] = None
