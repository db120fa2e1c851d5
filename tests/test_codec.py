import json
from datetime import datetime, timezone

import pytest

from pgp_workbench.codec import PersistenceCodec
from pgp_workbench.errors import MalformedEnvelopeError, ValidationError
from pgp_workbench.models import KeyPairRecord

FIXED_NOW = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)


@pytest.fixture
def codec():
    return PersistenceCodec(clock=lambda: FIXED_NOW)


def public_only(record):
    return KeyPairRecord(public_key_armored=record.public_key_armored, private_key_armored=None,
                         metadata=record.metadata)


def test_envelope_shape(codec, alice):
    envelope = json.loads(codec.encode(alice))
    assert envelope["fileVersion"] == "1.0"
    assert envelope["exportedAt"] == "2024-01-02T03:04:05+00:00"
    assert envelope["keys"]["publicKey"] == alice.public_key_armored
    assert envelope["keys"]["privateKey"] == alice.private_key_armored
    assert envelope["metadata"]["keyId"] == alice.metadata.key_id
    assert envelope["metadata"]["algorithm"] == "ECC"
    assert envelope["keyInfo"] == {"hasPrivateKey": True, "hasPublicKey": True, "isComplete": True}


def test_encode_is_deterministic_with_fixed_clock(codec, alice):
    assert codec.encode(alice) == codec.encode(alice)


def test_round_trip(codec, alice):
    assert codec.decode(codec.encode(alice)) == alice


def test_round_trip_public_only(codec, alice):
    record = public_only(alice)
    text = codec.encode(record)
    assert json.loads(text)["keys"]["privateKey"] is None
    decoded = codec.decode(text)
    assert decoded == record
    assert decoded.private_key_armored is None
    assert not decoded.has_private_key


def test_decode_without_metadata_derives_it(codec, alice):
    envelope = json.loads(codec.encode(alice))
    del envelope["metadata"]
    decoded = codec.decode(json.dumps(envelope))
    assert decoded.metadata.fingerprint == alice.metadata.fingerprint
    assert decoded.metadata.user_ids == alice.metadata.user_ids


@pytest.mark.parametrize("mutate", [
    lambda env: env["keys"].pop("publicKey"),
    lambda env: env.pop("keys"),
    lambda env: env["keys"].update(publicKey="not a key"),
    lambda env: env["keys"].update(privateKey="not a key"),
])
def test_decode_rejects_broken_envelopes(codec, alice, mutate):
    envelope = json.loads(codec.encode(alice))
    mutate(envelope)
    with pytest.raises(MalformedEnvelopeError):
        codec.decode(json.dumps(envelope))


def test_decode_rejects_mismatched_pair(codec, alice, bob):
    envelope = json.loads(codec.encode(alice))
    envelope["keys"]["privateKey"] = bob.private_key_armored
    with pytest.raises(MalformedEnvelopeError):
        codec.decode(json.dumps(envelope))


def test_decode_rejects_invalid_json(codec):
    with pytest.raises(MalformedEnvelopeError):
        codec.decode("{not json")


def test_load_bare_armor(codec, alice):
    record = codec.load(alice.public_key_armored)
    assert record.private_key_armored is None
    assert record.metadata.fingerprint == alice.metadata.fingerprint

    record = codec.load(alice.private_key_armored)
    assert record.has_private_key
    assert record.metadata.fingerprint == alice.metadata.fingerprint


def test_text_bundle_loads_back_as_full_pair(codec, alice):
    bundle = codec.encode_text(alice)
    assert bundle.startswith("# PGP Key Pair Export")
    assert f"# Key ID: {alice.metadata.key_id}" in bundle
    assert bundle.index("PRIVATE KEY BLOCK") < bundle.index("PUBLIC KEY BLOCK")

    record = codec.load(bundle)
    assert record.has_private_key
    assert record.metadata.fingerprint == alice.metadata.fingerprint


def test_load_rejects_unrelated_text(codec):
    with pytest.raises(MalformedEnvelopeError):
        codec.load("hello there")


def test_load_file(codec, alice, tmp_path):
    path = tmp_path / "keys.json"
    path.write_text(codec.encode(alice), encoding="utf-8")
    assert codec.load_file(path) == alice

    asc = tmp_path / "alice.asc"
    asc.write_text(alice.public_key_armored, encoding="utf-8")
    assert codec.load_file(asc).private_key_armored is None


def test_load_file_rejects_extension(codec, alice, tmp_path):
    path = tmp_path / "keys.exe"
    path.write_text(alice.public_key_armored, encoding="utf-8")
    with pytest.raises(ValidationError) as excinfo:
        codec.load_file(path)
    assert excinfo.value.code == "unsupported_file"


def test_load_file_missing(codec, tmp_path):
    with pytest.raises(MalformedEnvelopeError):
        codec.load_file(tmp_path / "missing.json")
