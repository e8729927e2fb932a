from __future__ import annotations

import base64
import binascii
import json
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding, rsa, utils

from license_issuer.core.errors import (
    InvalidMachineIDError,
    SerializationError,
    SigningError,
    TokenDecodeError,
)

# Matches encoding/json's HTML-safe output so verifiers in other languages
# re-serialize the same bytes.
_JSON_ESCAPES = {
    "&": "\\u0026",
    "<": "\\u003c",
    ">": "\\u003e",
    "\u2028": "\\u2028",
    "\u2029": "\\u2029",
}


@dataclass(frozen=True)
class LicenseData:
    machine_id: str
    expiry_utc: int

    def as_dict(self) -> dict[str, Any]:
        return {"machine_id": self.machine_id, "expiry_utc": self.expiry_utc}


@dataclass(frozen=True)
class License:
    data: str
    signature: str

    def as_dict(self) -> dict[str, str]:
        return {"data": self.data, "signature": self.signature}

    def payload_bytes(self) -> bytes:
        try:
            return base64.b64decode(self.data, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise TokenDecodeError("License data is not valid base64") from exc

    def payload(self) -> LicenseData:
        return parse_license_data(self.payload_bytes())

    def signature_bytes(self) -> bytes:
        try:
            return base64.b64decode(self.signature, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise TokenDecodeError("License signature is not valid base64") from exc


def canonical_json(payload: dict[str, Any]) -> bytes:
    try:
        text = json.dumps(payload, ensure_ascii=False, separators=(",", ":"), allow_nan=False)
        for char, escaped in _JSON_ESCAPES.items():
            text = text.replace(char, escaped)
        return text.encode("utf-8")
    except (TypeError, ValueError) as exc:
        raise SerializationError("License payload could not be serialized") from exc


def serialize_license_data(data: LicenseData) -> bytes:
    return canonical_json(data.as_dict())


def parse_license_data(raw: bytes) -> LicenseData:
    try:
        payload = json.loads(raw)
    except (UnicodeDecodeError, ValueError) as exc:
        raise TokenDecodeError("License data is not valid JSON") from exc
    if not isinstance(payload, dict):
        raise TokenDecodeError("License data must be a JSON object")
    machine_id = payload.get("machine_id")
    expiry_utc = payload.get("expiry_utc")
    if not isinstance(machine_id, str) or not isinstance(expiry_utc, int) or isinstance(expiry_utc, bool):
        raise TokenDecodeError("License data is missing machine_id or expiry_utc")
    return LicenseData(machine_id=machine_id, expiry_utc=expiry_utc)


def signature_padding() -> padding.PSS:
    return padding.PSS(mgf=padding.MGF1(hashes.SHA256()), salt_length=padding.PSS.DIGEST_LENGTH)


def digest(data: bytes) -> bytes:
    hasher = hashes.Hash(hashes.SHA256())
    hasher.update(data)
    return hasher.finalize()


def to_epoch_seconds(expiry: datetime | int) -> int:
    if isinstance(expiry, datetime):
        if expiry.tzinfo is None:
            expiry = expiry.replace(tzinfo=UTC)
        return int(expiry.timestamp())
    if isinstance(expiry, bool) or not isinstance(expiry, int):
        raise SerializationError("Expiry must be a datetime or integer epoch seconds")
    return expiry


def sign_license(machine_id: str, expiry: datetime | int, private_key: rsa.RSAPrivateKey) -> License:
    """Sign ``{machine_id, expiry_utc}`` and return the detached license.

    ``License.data`` carries the exact bytes that were hashed. PSS draws a fresh
    salt for every call, so two licenses for the same payload have identical
    data and different signatures. Verifiers must check RSA-PSS (MGF1-SHA-256,
    salt length equal to the digest length, e.g. Go's ``rsa.VerifyPSS``);
    a PKCS#1 v1.5 verifier such as ``rsa.VerifyPKCS1v15`` rejects these tokens.
    """
    if not machine_id:
        raise InvalidMachineIDError("Machine ID cannot be empty")
    payload = LicenseData(machine_id=machine_id, expiry_utc=to_epoch_seconds(expiry))
    data = serialize_license_data(payload)
    try:
        signature = private_key.sign(digest(data), signature_padding(), utils.Prehashed(hashes.SHA256()))
    except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
        raise SigningError("Failed to sign license payload") from exc
    return License(
        data=base64.b64encode(data).decode("ascii"),
        signature=base64.b64encode(signature).decode("ascii"),
    )
