from __future__ import annotations

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec

from ledgermsg.crypto.keccak import keccak256
from ledgermsg.crypto.keys import generate_private_key, load_private_key, private_key_to_pem
from ledgermsg.crypto.secp256k1 import (
    SignatureError,
    address_of,
    recover_address,
    recovery_id_from_v,
    sign,
    split_signature,
)
from ledgermsg.testing.sigtools import deterministic_secp256k1_key

KEY_ONE = (1).to_bytes(32, "big")
# well-known address of private key 1
ADDRESS_ONE = bytes.fromhex("7e5f4552091a69125d5dfcb7b8c2659029395bdf")


def test_address_derivation_matches_known_vector() -> None:
    assert address_of(KEY_ONE) == ADDRESS_ONE


def test_sign_then_recover() -> None:
    addr, sk = deterministic_secp256k1_key(label="alice")
    digest = keccak256(b"payload")
    sig = sign(digest, sk)
    assert len(sig) == 65
    assert sig[64] in (37, 38)
    assert recover_address(digest, sig) == addr


def test_both_recovery_ids_round_trip() -> None:
    addr, sk = deterministic_secp256k1_key(label="bias")
    seen = set()
    for i in range(64):
        digest = keccak256(i.to_bytes(4, "big"))
        sig = sign(digest, sk)
        seen.add(sig[64])
        assert recover_address(digest, sig) == addr
        if seen == {37, 38}:
            break
    assert seen == {37, 38}


def test_unbiased_v_is_also_accepted() -> None:
    addr, sk = deterministic_secp256k1_key(label="carol")
    digest = keccak256(b"x")
    sig = sign(digest, sk)
    unbiased = sig[:64] + bytes([sig[64] - 10])
    assert recover_address(digest, unbiased) == addr


@pytest.mark.parametrize("v", [0, 1, 26, 29, 30, 36, 39])
def test_out_of_domain_v_is_rejected(v: int) -> None:
    with pytest.raises(SignatureError) as e:
        recovery_id_from_v(v)
    assert e.value.code == "bad_recovery_id"


def test_wrong_digest_recovers_someone_else() -> None:
    addr, sk = deterministic_secp256k1_key(label="dave")
    sig = sign(keccak256(b"one"), sk)
    assert recover_address(keccak256(b"two"), sig) != addr


def test_malformed_signatures() -> None:
    with pytest.raises(SignatureError) as e:
        split_signature(b"\x00" * 64)
    assert e.value.code == "bad_signature_length"

    with pytest.raises(SignatureError) as e2:
        recover_address(keccak256(b"d"), b"\x00" * 64 + bytes([37]))
    assert e2.value.code == "unrecoverable"

    with pytest.raises(SignatureError) as e3:
        sign(b"\x00" * 31, KEY_ONE)
    assert e3.value.code == "bad_digest"


def test_key_loading_forms_agree() -> None:
    sk = generate_private_key()
    assert len(sk) == 32
    assert load_private_key(sk.hex()) == sk
    assert load_private_key("0x" + sk.hex()) == sk
    pem = private_key_to_pem(sk)
    assert load_private_key(pem) == sk
    assert load_private_key(pem.decode("ascii")) == sk

    key_obj = serialization.load_pem_private_key(pem, password=None)
    assert load_private_key(key_obj) == sk
    der = key_obj.private_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )
    assert load_private_key(der) == sk


def test_key_loading_rejects_other_curves_and_junk() -> None:
    p256 = ec.generate_private_key(ec.SECP256R1())
    with pytest.raises(ValueError):
        load_private_key(p256)
    with pytest.raises(ValueError):
        load_private_key(b"\x00" * 32)
    with pytest.raises(ValueError):
        load_private_key("zz")
    with pytest.raises(TypeError):
        load_private_key(12345)  # type: ignore[arg-type]
