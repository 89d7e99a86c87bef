"""Decoding of the combined tenant/access-token secret.

The hosting platform provisions the tenant id and its grafana.com API key as a
single secret, ``base64("tenant:token")``.
"""

from __future__ import annotations
import base64
import binascii
from typing import Tuple
from loguru import logger  # type: ignore

from .errors import InvalidAccessToken, InvalidAPIKey, InvalidSecret, InvalidTenant


def decode_access_token(encoded: str) -> Tuple[str, str]:
    """Return ``(tenant, api_key)`` decoded from ``encoded``.

    Raises:
        InvalidSecret: the value is not valid base64 (or not UTF-8 once decoded).
        InvalidAccessToken: the decoded value does not split into exactly two parts on ':'.
        InvalidTenant: the tenant part is blank.
        InvalidAPIKey: the token part is blank.
    """
    try:
        token = base64.b64decode(encoded, validate=True).decode("utf-8")
    except (binascii.Error, ValueError) as e:
        logger.error(f"Failed to decode access token: {e}")
        raise InvalidSecret(f"decode access token: {e}") from e

    parts = token.strip().split(":")
    if len(parts) != 2:
        raise InvalidAccessToken()
    tenant = parts[0].strip()
    if not tenant:
        raise InvalidTenant()
    api_key = parts[1].strip()
    if not api_key:
        raise InvalidAPIKey()
    return tenant, api_key
