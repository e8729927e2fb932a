from __future__ import annotations

from collections.abc import Generator
from datetime import UTC, date, datetime, timedelta, timezone
from pathlib import Path

import pytest
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from fastapi.testclient import TestClient

from license_issuer.core.config import settings
from license_issuer.core.keys import KeyMaterial
from license_issuer.core.signing import License, signature_padding
from license_issuer.main import app
from license_issuer.services.issuance import get_key_loader

ADMIN_SECRET = "test-admin-secret"
CIVIL_TZ = timezone(timedelta(hours=8))


class StaticKeyLoader:
    def __init__(self, material: KeyMaterial) -> None:
        self.material = material
        self.calls = 0

    def load(self) -> KeyMaterial:
        self.calls += 1
        return self.material


def verify_license(license: License, public_key: rsa.RSAPublicKey) -> None:
    public_key.verify(license.signature_bytes(), license.payload_bytes(), signature_padding(), hashes.SHA256())


def civil_today() -> date:
    return datetime.now(UTC).astimezone(CIVIL_TZ).date()


@pytest.fixture(scope="session")
def private_key() -> rsa.RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def pkcs1_pem(private_key: rsa.RSAPrivateKey) -> bytes:
    return private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.TraditionalOpenSSL,
        encryption_algorithm=serialization.NoEncryption(),
    )


@pytest.fixture(scope="session")
def pkcs8_pem(private_key: rsa.RSAPrivateKey) -> bytes:
    return private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )


@pytest.fixture()
def key_file(tmp_path: Path, pkcs1_pem: bytes) -> Path:
    path = tmp_path / "private.pem"
    path.write_bytes(pkcs1_pem)
    return path


@pytest.fixture()
def key_loader(private_key: rsa.RSAPrivateKey) -> StaticKeyLoader:
    return StaticKeyLoader(KeyMaterial(private_key=private_key, provenance="file"))


@pytest.fixture()
def valid_expiry_date() -> str:
    return (civil_today() + timedelta(days=5)).isoformat()


@pytest.fixture()
def client(monkeypatch: pytest.MonkeyPatch, key_loader: StaticKeyLoader) -> Generator[TestClient, None, None]:
    monkeypatch.setattr(settings, "ADMIN_SECRET", ADMIN_SECRET)
    app.dependency_overrides.clear()
    app.dependency_overrides[get_key_loader] = lambda: key_loader
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
