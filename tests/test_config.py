import pytest

from pgp_workbench.config import Config, key_config_from
from pgp_workbench.errors import ValidationError
from pgp_workbench.web import create_app

DEFAULTS = {"DEFAULT_ALGORITHM": "ecc", "DEFAULT_EXPIRATION": 63072000}


def test_key_config_defaults():
    config = key_config_from(DEFAULTS)
    assert config.algorithm == "ecc"
    assert config.expiration_seconds == 63072000
    assert config.usage.sign and config.usage.encrypt


def test_key_config_from_form_values():
    config = key_config_from(DEFAULTS, algorithm="rsa4096", expiration="0", encrypt=False)
    assert config.algorithm == "rsa4096"
    assert config.expiration_seconds == 0
    assert not config.usage.encrypt


def test_key_config_rejects_bad_values():
    with pytest.raises(ValidationError) as excinfo:
        key_config_from(DEFAULTS, expiration="two years")
    assert excinfo.value.code == "invalid_expiration"

    with pytest.raises(ValidationError) as excinfo:
        key_config_from(DEFAULTS, algorithm="elgamal")
    assert excinfo.value.code == "unsupported_algorithm"


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("PGP_WORKBENCH_DEFAULT_ALGORITHM", "rsa4096")
    monkeypatch.setenv("PGP_WORKBENCH_GENERATION_TIMEOUT", "5")
    app = create_app({"ENABLE_KEYRING": False})
    assert app.config["DEFAULT_ALGORITHM"] == "rsa4096"
    assert app.config["GENERATION_TIMEOUT"] == 5
    assert app.extensions["pgp_workbench"].generation_timeout == 5
    assert app.config["MAX_CONTENT_LENGTH"] == Config.MAX_CONTENT_LENGTH


def test_overrides_win_over_environment(monkeypatch):
    monkeypatch.setenv("PGP_WORKBENCH_ENABLE_KEYRING", "true")
    app = create_app({"ENABLE_KEYRING": False})
    assert app.extensions["pgp_workbench"].vault is None
