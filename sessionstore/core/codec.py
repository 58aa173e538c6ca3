"""
Tamper-evident encoding of session ids and session values.

Values are serialized as JSON, optionally encrypted with Fernet, and signed with
an itsdangerous timestamped serializer salted with the session name, so a token
issued for one session name never decodes under another.
"""

import base64
import hmac
import json
import logging
from typing import Any, Iterable, Optional

from cryptography.fernet import Fernet
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.hkdf import HKDF
from itsdangerous import BadData, URLSafeTimedSerializer
from itsdangerous.encoding import want_bytes

from sessionstore.core.exceptions import DecodeError, EncodeError, KeyConfigurationError
from sessionstore.core.security import KeyPair

logger = logging.getLogger(__name__)

BLOCK_KEY_INFO = b"sessionstore.block-key"


def derive_fernet_key(block_key: bytes) -> bytes:
    """Derive a Fernet key from arbitrary block key material"""
    hkdf = HKDF(
        algorithm=hashes.SHA256(),
        length=32,
        salt=None,
        info=BLOCK_KEY_INFO,
    )
    return base64.urlsafe_b64encode(hkdf.derive(block_key))


class _JSONSerializer:
    """Compact JSON text serializer"""

    def dumps(self, obj: Any, **kwargs: Any) -> str:
        return json.dumps(obj, separators=(",", ":"), sort_keys=True)

    def loads(self, payload: Any, **kwargs: Any) -> Any:
        return json.loads(payload)


class _EncryptedJSONSerializer(_JSONSerializer):
    """JSON serializer whose output is a Fernet token"""

    def __init__(self, fernet: Fernet):
        self._fernet = fernet

    def dumps(self, obj: Any, **kwargs: Any) -> str:
        plaintext = super().dumps(obj).encode("utf-8")
        return self._fernet.encrypt(plaintext).decode("ascii")

    def loads(self, payload: Any, **kwargs: Any) -> Any:
        # InvalidToken is wrapped into BadPayload by itsdangerous
        return super().loads(self._fernet.decrypt(want_bytes(payload)))


class SecureCodec:
    """Encodes and decodes values with a single key pair"""

    def __init__(self, hash_key: bytes, block_key: Optional[bytes] = None, max_age: int = 0):
        if not hash_key:
            raise KeyConfigurationError("hash key is required")
        self.encrypted = block_key is not None
        if block_key is not None:
            serializer: _JSONSerializer = _EncryptedJSONSerializer(Fernet(derive_fernet_key(block_key)))
        else:
            serializer = _JSONSerializer()
        self._serializer = URLSafeTimedSerializer(hash_key, serializer=serializer)
        self.max_age = max_age

    def set_max_age(self, age: int) -> None:
        """Set token expiry in seconds; zero or negative disables the check"""
        self.max_age = age

    @staticmethod
    def _salt(name: str) -> str:
        return f"session:{name}"

    def encode(self, name: str, value: Any) -> str:
        try:
            return self._serializer.dumps(value, salt=self._salt(name))
        except (TypeError, ValueError) as e:
            raise EncodeError(f"could not encode value for session {name!r}: {e}") from e

    def decode(self, name: str, token: Any) -> Any:
        if not isinstance(token, str) or not token:
            raise DecodeError("token must be a non-empty string")

        salt = self._salt(name)
        max_age = self.max_age if self.max_age > 0 else None
        try:
            value = self._serializer.loads(token, max_age=max_age, salt=salt)
        except BadData as e:
            raise DecodeError(f"{type(e).__name__}: {e}") from e

        # Reject alternate base64 spellings of a valid signature
        signed_value, _, signature = token.rpartition(".")
        expected = self._serializer.make_signer(salt).get_signature(signed_value)
        if not hmac.compare_digest(expected, want_bytes(signature)):
            raise DecodeError("non-canonical signature")

        return value


class CodecChain:
    """
    Ordered key pairs supporting key rotation.

    Key pairs are ordered oldest first, newest last. Encoding always uses the
    newest (last) pair; decoding tries every pair from newest to oldest.
    """

    def __init__(self, key_pairs: Iterable[KeyPair], max_age: int = 0):
        self.key_pairs = tuple(key_pairs)
        if not self.key_pairs:
            raise KeyConfigurationError("at least one key pair is required")
        self.max_age = max_age
        self.codecs = tuple(
            SecureCodec(pair.hash_key, pair.block_key, max_age) for pair in self.key_pairs
        )

    def set_max_age(self, age: int) -> None:
        self.max_age = age
        for codec in self.codecs:
            codec.set_max_age(age)

    def encode(self, name: str, value: Any) -> str:
        return self.codecs[-1].encode(name, value)

    def decode(self, name: str, token: Any) -> Any:
        last_error: Optional[DecodeError] = None
        for index in range(len(self.codecs) - 1, -1, -1):
            try:
                value = self.codecs[index].decode(name, token)
            except DecodeError as e:
                last_error = e
                continue
            if index != len(self.codecs) - 1:
                logger.debug("Decoded session %r with rotated key pair %d", name, index)
            return value
        raise DecodeError(f"no key pair could decode token for session {name!r}") from last_error

    def rotate(self, key_pair: KeyPair) -> "CodecChain":
        """Return a new chain with key_pair appended as the newest pair"""
        return CodecChain(self.key_pairs + (key_pair,), max_age=self.max_age)
