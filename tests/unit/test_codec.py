"""
Unit tests for the token codec

These tests cover value round-trips, encryption, expiry and key rotation.
"""

import time
from unittest.mock import patch

import pytest
from itsdangerous import TimestampSigner

from sessionstore.core.codec import CodecChain, SecureCodec
from sessionstore.core.exceptions import DecodeError, EncodeError, KeyConfigurationError
from sessionstore.core.identifiers import new_identifier
from sessionstore.core.security import KeyPair, generate_secure_secret_key

pytestmark = pytest.mark.unit


def _pair(encrypted: bool = False) -> KeyPair:
    block_key = generate_secure_secret_key().encode() if encrypted else None
    return KeyPair(generate_secure_secret_key().encode(), block_key)


class TestSecureCodec:
    """Test a single key pair codec"""

    @pytest.mark.parametrize("encrypted", [False, True])
    def test_identifier_roundtrip(self, encrypted):
        pair = _pair(encrypted)
        codec = SecureCodec(pair.hash_key, pair.block_key)
        identifier = new_identifier()

        token = codec.encode("sid", identifier)

        assert isinstance(token, str)
        assert codec.decode("sid", token) == identifier

    @pytest.mark.parametrize("encrypted", [False, True])
    def test_values_roundtrip(self, encrypted):
        pair = _pair(encrypted)
        codec = SecureCodec(pair.hash_key, pair.block_key)
        values = {"user": "alice", "roles": ["admin", "ops"], "visits": 3, "flags": {"beta": True}}

        assert codec.decode("sid", codec.encode("sid", values)) == values

    def test_encrypted_payload_unreadable_without_block_key(self):
        pair = _pair(encrypted=True)
        encrypting = SecureCodec(pair.hash_key, pair.block_key)
        signing_only = SecureCodec(pair.hash_key)

        token = encrypting.encode("sid", {"user": "alice"})

        # The signature verifies but the payload is ciphertext
        with pytest.raises(DecodeError):
            signing_only.decode("sid", token)

    def test_encrypted_tokens_differ_for_same_value(self):
        pair = _pair(encrypted=True)
        codec = SecureCodec(pair.hash_key, pair.block_key)
        assert codec.encode("sid", {"user": "alice"}) != codec.encode("sid", {"user": "alice"})

    def test_wrong_name_rejected(self):
        pair = _pair()
        codec = SecureCodec(pair.hash_key)
        token = codec.encode("sid", new_identifier())

        with pytest.raises(DecodeError):
            codec.decode("other", token)

    def test_wrong_key_rejected(self):
        token = SecureCodec(_pair().hash_key).encode("sid", new_identifier())

        with pytest.raises(DecodeError):
            SecureCodec(_pair().hash_key).decode("sid", token)

    def test_unserializable_value_raises_encode_error(self):
        codec = SecureCodec(_pair().hash_key)
        with pytest.raises(EncodeError):
            codec.encode("sid", {"handle": object()})

    @pytest.mark.parametrize("token", ["", None, 42, b"bytes-token", "no-separators"])
    def test_malformed_token_rejected(self, token):
        codec = SecureCodec(_pair().hash_key)
        with pytest.raises(DecodeError):
            codec.decode("sid", token)

    def test_expired_token_rejected(self):
        codec = SecureCodec(_pair().hash_key, max_age=3600)
        with patch.object(TimestampSigner, "get_timestamp", return_value=int(time.time()) - 7200):
            token = codec.encode("sid", new_identifier())

        with pytest.raises(DecodeError):
            codec.decode("sid", token)

    def test_expiry_disabled_with_zero_max_age(self):
        codec = SecureCodec(_pair().hash_key, max_age=3600)
        identifier = new_identifier()
        with patch.object(TimestampSigner, "get_timestamp", return_value=int(time.time()) - 7200):
            token = codec.encode("sid", identifier)

        codec.set_max_age(0)

        assert codec.decode("sid", token) == identifier

    def test_missing_hash_key_rejected(self):
        with pytest.raises(KeyConfigurationError):
            SecureCodec(b"")


class TestCodecChain:
    """Test key rotation across multiple key pairs"""

    def test_requires_a_key_pair(self):
        with pytest.raises(KeyConfigurationError):
            CodecChain([])

    def test_encodes_with_newest_pair(self):
        old, new = _pair(), _pair()
        chain = CodecChain([old, new])

        token = chain.encode("sid", "6710f3c2a1b2c3d4e5f60718")

        assert SecureCodec(new.hash_key).decode("sid", token) == "6710f3c2a1b2c3d4e5f60718"
        with pytest.raises(DecodeError):
            SecureCodec(old.hash_key).decode("sid", token)

    def test_old_token_decodes_after_rotation(self):
        old = _pair()
        identifier = new_identifier()
        token = CodecChain([old]).encode("sid", identifier)

        rotated = CodecChain([old]).rotate(_pair())

        assert len(rotated.key_pairs) == 2
        assert rotated.key_pairs[0] == old
        assert rotated.decode("sid", token) == identifier

    def test_old_token_undecodable_once_pair_removed(self):
        old, new = _pair(), _pair()
        token = CodecChain([old]).encode("sid", new_identifier())

        with pytest.raises(DecodeError):
            CodecChain([new]).decode("sid", token)

    def test_mixed_encryption_rotation(self):
        old, new = _pair(encrypted=False), _pair(encrypted=True)
        values = {"cart": [1, 2, 3]}
        old_token = CodecChain([old]).encode("sid", values)
        chain = CodecChain([old, new])

        assert chain.decode("sid", old_token) == values
        assert chain.decode("sid", chain.encode("sid", values)) == values

    def test_set_max_age_propagates(self):
        chain = CodecChain([_pair(), _pair()], max_age=60)

        chain.set_max_age(120)

        assert chain.max_age == 120
        assert all(codec.max_age == 120 for codec in chain.codecs)

    def test_rotate_keeps_max_age(self):
        chain = CodecChain([_pair()], max_age=60)
        assert chain.rotate(_pair()).max_age == 60
