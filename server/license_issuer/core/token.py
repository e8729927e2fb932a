from __future__ import annotations

import base64
import binascii
import gzip
import json
import zlib

from license_issuer.core.errors import TokenDecodeError
from license_issuer.core.signing import License, canonical_json


def encode_token(license: License) -> str:
    """Serialize, gzip and base64 a license into the string handed to customers."""
    raw = canonical_json(license.as_dict())
    # mtime=0 keeps the gzip header free of the wall clock.
    compressed = gzip.compress(raw, mtime=0)
    return base64.b64encode(compressed).decode("ascii")


def decode_token(token: str) -> License:
    """Unpack a token back into its license. Does not check the signature."""
    compact = "".join(token.split())
    try:
        compressed = base64.b64decode(compact, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise TokenDecodeError("Token is not valid base64") from exc
    try:
        raw = gzip.decompress(compressed)
    except (OSError, EOFError, zlib.error) as exc:
        raise TokenDecodeError("Token is not gzip-compressed data") from exc
    try:
        payload = json.loads(raw)
    except (UnicodeDecodeError, ValueError) as exc:
        raise TokenDecodeError("Token does not contain a JSON license") from exc
    if not isinstance(payload, dict):
        raise TokenDecodeError("Token does not contain a JSON license")
    data = payload.get("data")
    signature = payload.get("signature")
    if not isinstance(data, str) or not isinstance(signature, str):
        raise TokenDecodeError("Token license is missing data or signature")
    return License(data=data, signature=signature)
