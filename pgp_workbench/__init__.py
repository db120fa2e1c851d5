"""PGP key pair workbench."""

from .codec import PersistenceCodec
from .controller import OperationController, OperationResult
from .errors import (DecryptionError, EncryptionError, FormatError, GenerationError, MalformedEnvelopeError,
                     NoMatchingKeyError, SigningError, ValidationError, VaultError, WorkbenchError,
                     WrongPassphraseError)
from .facade import CryptoFacade
from .models import (Algorithm, DecryptionResult, Identity, KeyConfig, KeyMetadata, KeyPairRecord, KeyUsage,
                     VerificationResult)
from .store import KeyPairStore
from .vault import KeyringVault

__version__ = "0.1.0"
