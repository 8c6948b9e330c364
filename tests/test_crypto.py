import pytest

from lineblog import crypto
from lineblog.errors import HashingFailure


def test_hash_and_verify():
    stored = crypto.hash_password("s3cret")
    assert stored.startswith("scrypt$")
    assert "s3cret" not in stored
    assert crypto.verify_password("s3cret", stored)
    assert not crypto.verify_password("wrong", stored)


def test_same_password_different_salt():
    assert crypto.hash_password("pw") != crypto.hash_password("pw")


@pytest.mark.parametrize("garbage", ["", "plain", "scrypt$1$2", "bcrypt$a$b$c$d$e", "scrypt$x$8$1$aa$bb"])
def test_garbled_hash_is_a_mismatch(garbage):
    assert crypto.verify_password("pw", garbage) is False


def test_hashing_failure_is_typed(monkeypatch):
    def boom(*args, **kwargs):
        raise ValueError("kdf exploded")

    monkeypatch.setattr(crypto, "_kdf", boom)
    with pytest.raises(HashingFailure):
        crypto.hash_password("pw")


def test_b64url_round_trip():
    raw = bytes(range(7))
    encoded = crypto.b64url_encode(raw)
    assert "=" not in encoded
    assert crypto.b64url_decode(encoded) == raw


def test_dummy_hash_matches_nothing_useful():
    assert crypto.dummy_hash() == crypto.dummy_hash()
    assert not crypto.verify_password("", crypto.dummy_hash())
