import keyring
import pytest
from keyring.backend import KeyringBackend
from keyring.errors import PasswordDeleteError

from pgp_workbench.controller import OperationController
from pgp_workbench.facade import CryptoFacade
from pgp_workbench.models import Identity
from pgp_workbench.store import KeyPairStore

ALICE_PASSPHRASE = "correct-horse-1"
BOB_PASSPHRASE = "battery-staple-2"


class MemoryKeyring(KeyringBackend):
    """Keyring backend that keeps everything in a dict."""
    priority = 1

    def __init__(self):
        super().__init__()
        self.entries = {}

    def get_password(self, service, username):
        return self.entries.get((service, username))

    def set_password(self, service, username, password):
        self.entries[(service, username)] = password

    def delete_password(self, service, username):
        try:
            del self.entries[(service, username)]
        except KeyError as exc:
            raise PasswordDeleteError("Password not found") from exc


@pytest.fixture(scope="session")
def facade():
    return CryptoFacade()


@pytest.fixture(scope="session")
def alice(facade):
    return facade.generate_key_pair(Identity("Alice", "alice@example.com"), ALICE_PASSPHRASE)


@pytest.fixture(scope="session")
def bob(facade):
    return facade.generate_key_pair(Identity("Bob", "bob@example.com", "work"), BOB_PASSPHRASE)


@pytest.fixture
def controller(alice):
    return OperationController(store=KeyPairStore(alice))


@pytest.fixture
def memory_keyring():
    previous = keyring.get_keyring()
    backend = MemoryKeyring()
    keyring.set_keyring(backend)
    yield backend
    keyring.set_keyring(previous)
