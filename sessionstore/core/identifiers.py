"""
Session identifiers in document-database object id layout.

An identifier is 12 bytes rendered as 24 lower-case hex characters:
a 4-byte big-endian timestamp (seconds), 5 random bytes fixed per process,
and a 3-byte counter seeded randomly.
"""

import itertools
import os
import re
import secrets
import struct
import threading
import time
from typing import Any

from sessionstore.core.exceptions import InvalidIdentifierError

# Lower-case only, the form new_identifier() emits
IDENTIFIER_PATTERN = re.compile(r"[0-9a-f]{24}")

_COUNTER_MAX = 0xFFFFFF

_process_random = secrets.token_bytes(5)
_process_pid = os.getpid()
_counter = itertools.count(secrets.randbelow(_COUNTER_MAX + 1))
_counter_lock = threading.Lock()


def _random_part() -> bytes:
    # Reseed after fork so child processes don't share the parent's bytes
    global _process_random, _process_pid
    pid = os.getpid()
    if pid != _process_pid:
        _process_random = secrets.token_bytes(5)
        _process_pid = pid
    return _process_random


def new_identifier() -> str:
    """Generate a fresh, globally unique session identifier"""
    with _counter_lock:
        count = next(_counter) & _COUNTER_MAX
    raw = (
        struct.pack(">I", int(time.time()) & 0xFFFFFFFF)
        + _random_part()
        + count.to_bytes(3, "big")
    )
    return raw.hex()


def is_valid_identifier(identifier: Any) -> bool:
    """Check whether a value is 24 lower-case hex characters; upper-case hex is rejected"""
    return isinstance(identifier, str) and IDENTIFIER_PATTERN.fullmatch(identifier) is not None


def validate_identifier(identifier: Any) -> str:
    """
    Validate an identifier before it reaches the database.

    Raises:
        InvalidIdentifierError: If the identifier is malformed
    """
    if not is_valid_identifier(identifier):
        raise InvalidIdentifierError(identifier)
    return identifier
