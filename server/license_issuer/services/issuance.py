from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from functools import lru_cache
from typing import Protocol

from license_issuer.core.config import settings
from license_issuer.core.errors import InvalidMachineIDError, LicenseError
from license_issuer.core.expiry import ExpiryPolicy
from license_issuer.core.keys import CachedKeyLoader, KeyMaterial, build_key_loader
from license_issuer.core.signing import License, sign_license
from license_issuer.core.token import encode_token

logger = logging.getLogger(__name__)


class KeyLoader(Protocol):
    def load(self) -> KeyMaterial:
        ...


@dataclass(frozen=True)
class IssuedLicense:
    token: str
    machine_id: str
    expiry_date: date
    expires_at: datetime
    expiry_utc: int
    license: License


def normalize_machine_id(machine_id: str | None, min_length: int = 1) -> str:
    value = (machine_id or "").strip()
    if not value:
        raise InvalidMachineIDError("Machine ID cannot be empty")
    if len(value) < min_length:
        raise InvalidMachineIDError(f"Machine ID is too short; expected at least {min_length} characters")
    return value


def issue_license(
    machine_id: str,
    expiry_date: str,
    *,
    loader: KeyLoader,
    policy: ExpiryPolicy,
    now: datetime | None = None,
    min_machine_id_length: int = 1,
) -> IssuedLicense:
    """Issue a token binding ``machine_id`` to the end of ``expiry_date``.

    Input checks run before the key is touched so bad requests cost no I/O or
    crypto. Every failure is a ``LicenseError`` and is raised as-is.
    """
    try:
        clean_id = normalize_machine_id(machine_id, min_machine_id_length)
        expires_at = policy.validate(expiry_date, now)
        material = loader.load()
        license = sign_license(clean_id, expires_at, material.private_key)
        token = encode_token(license)
    except LicenseError as exc:
        logger.warning("license_issue_failed", extra={"code": exc.code, "machine_id": machine_id})
        raise

    expiry_utc = int(expires_at.timestamp())
    logger.info(
        "license_issued",
        extra={"machine_id": clean_id, "expiry_utc": expiry_utc, "key_provenance": material.provenance},
    )
    return IssuedLicense(
        token=token,
        machine_id=clean_id,
        expiry_date=expires_at.date(),
        expires_at=expires_at,
        expiry_utc=expiry_utc,
        license=license,
    )


@lru_cache
def get_key_loader() -> CachedKeyLoader:
    return CachedKeyLoader(build_key_loader(settings.LICENSE_PRIVATE_KEY_PATH, settings.LICENSE_PRIVATE_KEY))


def get_expiry_policy() -> ExpiryPolicy:
    return ExpiryPolicy(
        utc_offset_hours=settings.LICENSE_UTC_OFFSET_HOURS,
        max_months=settings.LICENSE_MAX_MONTHS,
        grace_days=settings.LICENSE_GRACE_DAYS,
    )
