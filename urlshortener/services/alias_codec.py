"""
Alias Codec

Deterministic, reversible transforms between a URL's canonical identity and
the token handed out to clients.

- fingerprint: content -> 16 character alias (MD5 rendered as ASCII text)
- encode: (alias, offset) -> url-safe token
- decode: url-safe token -> (alias, offset)

Design Decisions:
- MD5 is used as a content fingerprint, not as a security primitive. Two
  different URLs can share an alias; the offset (one decimal digit) tells
  them apart, which is why at most 10 URLs can share one alias.
- The digest is rendered as fixed-width ASCII: bytes above 0x7F become '?'.
  The alias therefore always fits in 16 single-byte characters.
- Tokens are standard base64 of alias + offset digit (17 bytes, 24 chars)
  with '/', '+' and '=' swapped for '_', '.' and '~' so they can sit in a
  URL path unescaped. None of the replacement characters belong to the
  base64 alphabet, so the swap is a bijection.
"""

import base64
import binascii
import hashlib
from urllib.parse import urlsplit

from urlshortener.core.exceptions import AliasDecodeError

ALIAS_LENGTH = 16
MAX_OFFSET = 9
TOKEN_BYTE_LENGTH = ALIAS_LENGTH + 1

_REPLACEMENT_CHAR = ord("?")

_TO_URL_SAFE = str.maketrans({"/": "_", "+": ".", "=": "~"})
_FROM_URL_SAFE = str.maketrans({"_": "/", ".": "+", "~": "="})


def alias_content(url: str) -> str:
    """
    Canonical identity of a URL used for fingerprinting.

    Host (with port), path and query; the scheme is left out so the http and
    https variants of a resource share an alias, and the fragment never
    reaches the server anyway. No other normalization happens: a trailing
    slash or a different query-parameter order gives a different identity.

    Example:
        alias_content("https://example.org/a?b=1") -> "example.org/a?b=1"
    """
    parts = urlsplit(url)
    content = parts.netloc + parts.path
    if parts.query:
        content += "?" + parts.query
    return content


def fingerprint(content: str) -> str:
    """
    Fingerprint `content` into a 16 character alias.

    Args:
        content: Non-blank text (normally the output of alias_content)

    Returns:
        16 character ASCII string

    Raises:
        ValueError: If content is None, empty or whitespace (caller bug)
    """
    if not isinstance(content, str) or not content.strip():
        raise ValueError(f"content cannot be null/whitespace. Was: '{content}'")

    digest = hashlib.md5(content.encode("utf-8"), usedforsecurity=False).digest()
    if len(digest) != ALIAS_LENGTH:
        raise RuntimeError(
            f"Unexpected behavior: MD5 produced {len(digest)} bytes instead of {ALIAS_LENGTH}"
        )

    return bytes(b if b < 0x80 else _REPLACEMENT_CHAR for b in digest).decode("ascii")


def encode(alias: str, offset: int) -> str:
    """
    Build the url-safe token for an alias and its collision offset.

    Example:
        encode("abcdefghijklmnop", 0) -> "YWJjZGVmZ2hpamtsbW5vcDA~"

    Raises:
        ValueError: If alias is not 16 ASCII characters or offset is outside [0, 9]
    """
    if not isinstance(alias, str) or len(alias) != ALIAS_LENGTH or not alias.isascii():
        raise ValueError(f"alias must be {ALIAS_LENGTH} ASCII characters. Was: '{alias}'")
    if not isinstance(offset, int) or isinstance(offset, bool) or not 0 <= offset <= MAX_OFFSET:
        raise ValueError(f"offset must be between 0 and {MAX_OFFSET}. Was: {offset}")

    raw = (alias + str(offset)).encode("ascii")
    return base64.b64encode(raw).decode("ascii").translate(_TO_URL_SAFE)


def decode(token: str) -> tuple[str, int]:
    """
    Turn a url-safe token back into (alias, offset).

    Raises:
        AliasDecodeError: If the token is not valid base64, does not hold
            exactly 17 bytes, or does not end in a decimal digit
    """
    try:
        raw = base64.b64decode(token.translate(_FROM_URL_SAFE), validate=True)
    except (binascii.Error, ValueError) as e:
        raise AliasDecodeError(token, f"Alias '{token}' is not base64-encoded.") from e

    if len(raw) != TOKEN_BYTE_LENGTH:
        raise AliasDecodeError(
            token,
            f"Alias '{token}' decoded to {len(raw)} bytes, expected exactly {TOKEN_BYTE_LENGTH}."
        )

    alias_bytes, offset_byte = raw[:ALIAS_LENGTH], raw[ALIAS_LENGTH]
    if not alias_bytes.isascii():
        raise AliasDecodeError(token, f"Alias '{token}' does not decode to ASCII text.")

    if not ord("0") <= offset_byte <= ord("9"):
        raise AliasDecodeError(
            token,
            f"Last byte '{chr(offset_byte)}' did not parse to a valid offset for alias '{token}' "
            f"(decoded: {raw.decode('ascii', errors='replace')})."
        )

    return alias_bytes.decode("ascii"), offset_byte - ord("0")
