"""
Session store orchestration.

SessionStore ties a CodecChain, a TokenTransport and a SessionRecordRepository
together into the per-request session lifecycle:

    no token                      -> new session
    token fails to decode         -> DecodeError (hard failure)
    token decodes, record missing -> new session
    payload fails to decode       -> new session
    record loads and decodes      -> loaded session (is_new=False)

Saving with a negative max_age deletes the record and clears the token.
Concurrent requests for the same session are not coordinated; the last
writer wins.
"""

import logging
from dataclasses import replace
from typing import Dict, Iterator, Optional, Tuple, Union

from starlette.requests import HTTPConnection
from starlette.responses import Response

from sessionstore.core.codec import CodecChain
from sessionstore.core.config import StoreConfig
from sessionstore.core.exceptions import (
    DecodeError,
    InvalidIdentifierError,
    PayloadDecodeError,
    RecordNotFoundError,
    TokenNotFoundError,
)
from sessionstore.core.identifiers import new_identifier
from sessionstore.core.logging_config import log_security_event
from sessionstore.core.repository import SessionRecordRepository, utcnow
from sessionstore.core.security import KeyPair, validate_secret_key
from sessionstore.core.session import Session
from sessionstore.core.transport import CookieTransport, TokenTransport
from sessionstore.db.models.session_record import SessionRecord

logger = logging.getLogger(__name__)

REGISTRY_STATE_KEY = "session_registry"


def _client_host(request: HTTPConnection) -> Optional[str]:
    return request.client.host if request.client else None


def _key_bytes(key: Union[str, bytes]) -> bytes:
    if isinstance(key, bytes):
        validate_secret_key(key.decode("utf-8", errors="replace"))
        return key
    validate_secret_key(key)
    return key.encode("utf-8")


class SessionRegistry:
    """Sessions already looked up during one request, keyed by name"""

    def __init__(self) -> None:
        self._sessions: Dict[str, Tuple[Session, Optional[DecodeError]]] = {}

    def get(self, store: "SessionStore", request: HTTPConnection, name: str) -> Session:
        if name not in self._sessions:
            try:
                self._sessions[name] = (store.new(request, name), None)
            except DecodeError as e:
                # Remember the failure so repeated lookups behave the same
                self._sessions[name] = (e.session or store.create_new(request, name), e)
        session, error = self._sessions[name]
        if error is not None:
            raise error
        return session

    def __iter__(self) -> Iterator[Session]:
        return iter([session for session, _ in self._sessions.values()])

    def __len__(self) -> int:
        return len(self._sessions)


class SessionStore:
    """
    Database-backed sessions referenced by signed tokens.

    Attributes:
        repository: Persistence for session records
        codecs: Key pairs used for tokens and payloads (oldest first, newest last)
        transport: Where tokens are read from and written to
    """

    # Load failures that degrade to a fresh session instead of propagating
    RECOVERABLE_LOAD_ERRORS = (RecordNotFoundError, InvalidIdentifierError, PayloadDecodeError)

    def __init__(
        self,
        repository: SessionRecordRepository,
        config: StoreConfig,
        transport: Optional[TokenTransport] = None,
    ):
        self.repository = repository
        self._config = config
        self.codecs = CodecChain(config.key_pairs, max_age=config.max_age)
        self.transport: TokenTransport = transport or CookieTransport()

    @property
    def config(self) -> StoreConfig:
        return self._config

    def _registry(self, request: HTTPConnection) -> SessionRegistry:
        registry = getattr(request.state, REGISTRY_STATE_KEY, None)
        if registry is None:
            registry = SessionRegistry()
            setattr(request.state, REGISTRY_STATE_KEY, registry)
        return registry

    def get(self, request: HTTPConnection, name: str) -> Session:
        """
        Return the session registered for name on this request.

        The first call per request loads or creates the session via new();
        later calls return the same object (or re-raise the same DecodeError).
        """
        return self._registry(request).get(self, request, name)

    def create_new(self, request: HTTPConnection, name: str) -> Session:
        """Return a fresh session without reading any token"""
        return Session(name, self._config.default_options())

    def new(self, request: HTTPConnection, name: str) -> Session:
        """
        Load the session for name, or create a fresh one, without registering it.

        Raises:
            DecodeError: The token is forged, expired or malformed. The fresh
                session the caller may fall back to is available as
                error.session.
            StoreTimeoutError, StoreUnavailableError: The database failed.
        """
        session = self.create_new(request, name)
        try:
            token = self.transport.get_token(request, name)
        except TokenNotFoundError:
            return session

        try:
            session_id = self.codecs.decode(name, token)
            if not isinstance(session_id, str):
                raise DecodeError("token does not carry a session id")
        except DecodeError as e:
            log_security_event(
                "token_decode_failure",
                f"Rejected session token for {name!r}",
                ip_address=_client_host(request),
                extra_data={"session_name": name, "reason": str(e)},
            )
            e.session = session
            raise

        session.id = session_id
        try:
            self._load(session)
        except self.RECOVERABLE_LOAD_ERRORS as e:
            logger.info(
                "Session %r degraded to a new session",
                name,
                extra={"reason": type(e).__name__},
            )
            return self.create_new(request, name)
        return session

    def _load(self, session: Session) -> None:
        record = self.repository.load(session.id)
        try:
            values = self.codecs.decode(session.name, record.payload)
        except DecodeError as e:
            log_security_event(
                "payload_decode_failure",
                f"Stored payload for session {session.name!r} failed to decode",
                extra_data={"session_name": session.name, "reason": str(e)},
            )
            raise PayloadDecodeError(str(e)) from e
        if not isinstance(values, dict):
            raise PayloadDecodeError("stored payload is not a mapping")

        session.values = values
        session.is_new = False

    def save(self, request: HTTPConnection, response: Response, session: Session) -> None:
        """
        Persist the session and write its token to the response.

        A negative session.options.max_age deletes the record and clears the
        token instead. Encode and database errors propagate and leave the
        response untouched.
        """
        if session.options.max_age < 0:
            if session.id is not None:
                self.repository.delete(session.id)
            self.transport.set_token(response, session.name, "", session.options)
            logger.debug("Deleted session %r", session.name)
            return

        session_id = session.id or new_identifier()
        payload = self.codecs.encode(session.name, session.values)
        token = self.codecs.encode(session.name, session_id)
        modified = session.modified if session.modified is not None else utcnow()

        self.repository.upsert(SessionRecord(id=session_id, payload=payload, modified=modified))

        session.id = session_id
        session.is_new = False
        self.transport.set_token(response, session.name, token, session.options)
        logger.debug("Saved session %r", session.name)

    def save_all(self, request: HTTPConnection, response: Response) -> None:
        """Save every session registered on this request via get()"""
        for session in self._registry(request):
            self.save(request, response, session)

    def delete(self, response: Response, session: Session) -> None:
        """Delete the session record (if any) and clear the token"""
        if session.id is not None:
            self.repository.delete(session.id)
        self.transport.set_token(response, session.name, "", replace(session.options, max_age=-1))

    def set_max_age(self, age: int) -> None:
        """
        Set the default max_age for new sessions and the token expiry.

        Individual sessions are deleted by setting session.options.max_age = -1.
        """
        self._config = self._config.with_max_age(age)
        self.codecs.set_max_age(age)

    def rotate_keys(self, hash_key: Union[str, bytes], block_key: Union[str, bytes, None] = None) -> None:
        """
        Append a new key pair that signs all tokens from now on.

        Tokens signed with older pairs keep decoding until those pairs are
        removed from configuration.
        """
        key_pair = KeyPair(
            _key_bytes(hash_key),
            _key_bytes(block_key) if block_key is not None else None,
        )
        self._config = self._config.with_key_pair(key_pair)
        self.codecs = self.codecs.rotate(key_pair)
        logger.info("Session key pair rotated", extra={"key_pairs": len(self._config.key_pairs)})
