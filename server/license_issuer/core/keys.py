from __future__ import annotations

import logging
import re
import threading
from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from license_issuer.core.errors import (
    KeyFormatError,
    KeyMaterialMissing,
    KeyParseError,
    LicenseError,
    UnsupportedKeyTypeError,
)

logger = logging.getLogger(__name__)

Provenance = Literal["file", "environment"]

PKCS1_LABEL = "RSA PRIVATE KEY"
PKCS8_LABEL = "PRIVATE KEY"
PEM_LINE_WIDTH = 64

_ESCAPED_NEWLINE = re.compile(r"\\r\\n|\\n|\\r")
_NON_PEM_CHARS = re.compile(r"[^A-Za-z0-9+/=\-]")
_PEM_MARKER = re.compile(r"-*(?:BEGIN|END)(?:RSA)?PRIVATEKEY-*")


@dataclass(frozen=True)
class KeyMaterial:
    private_key: rsa.RSAPrivateKey = field(repr=False)
    provenance: Provenance


def extract_base64_body(value: str) -> str:
    """Recover the base64 payload of a PEM key whose framing was damaged.

    Handles keys pasted into environment variables with newlines stripped,
    escaped as ``\\n`` or with the header words run together.
    """
    text = _ESCAPED_NEWLINE.sub("\n", value)
    text = _NON_PEM_CHARS.sub("", text)
    text = _PEM_MARKER.sub("", text)
    return text.replace("-", "")


def frame_pem(body: str, label: str = PKCS1_LABEL) -> bytes:
    lines = [body[i : i + PEM_LINE_WIDTH] for i in range(0, len(body), PEM_LINE_WIDTH)]
    pem = "\n".join([f"-----BEGIN {label}-----", *lines, f"-----END {label}-----", ""])
    return pem.encode("ascii")


def rebuild_pem(value: str) -> bytes:
    return frame_pem(extract_base64_body(value), PKCS1_LABEL)


def _load_rsa_key(pem: bytes, error_cls: type[LicenseError], message: str) -> rsa.RSAPrivateKey:
    try:
        key = serialization.load_pem_private_key(pem, password=None)
    except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
        raise error_cls(message) from exc
    if not isinstance(key, rsa.RSAPrivateKey):
        raise UnsupportedKeyTypeError(f"Expected an RSA private key, got {type(key).__name__}")
    return key


class KeySource(ABC):
    provenance: Provenance

    @abstractmethod
    def available(self) -> bool:
        """Whether this source has anything to offer."""

    @abstractmethod
    def read(self) -> bytes:
        """Return PEM bytes ready for parsing."""

    @abstractmethod
    def load(self) -> KeyMaterial:
        ...


class FileKeySource(KeySource):
    provenance: Provenance = "file"

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def available(self) -> bool:
        return self.path.is_file()

    def read(self) -> bytes:
        try:
            return self.path.read_bytes()
        except OSError as exc:
            raise KeyMaterialMissing(f"Private key file '{self.path}' could not be read") from exc

    def load(self) -> KeyMaterial:
        # Operator-managed files are never repaired.
        key = _load_rsa_key(
            self.read(),
            KeyFormatError,
            f"Private key file '{self.path}' is not a valid PEM private key",
        )
        return KeyMaterial(private_key=key, provenance=self.provenance)


class EnvironmentKeySource(KeySource):
    provenance: Provenance = "environment"

    def __init__(self, value: str | None, name: str = "LICENSE_PRIVATE_KEY") -> None:
        self.value = value or ""
        self.name = name

    def available(self) -> bool:
        return bool(self.value.strip())

    def read(self) -> bytes:
        return rebuild_pem(self.value)

    def load(self) -> KeyMaterial:
        body = extract_base64_body(self.value)
        if not body:
            raise KeyParseError(f"{self.name} does not contain any key data")
        message = f"{self.name} could not be parsed as an RSA private key"
        try:
            key = _load_rsa_key(self.read(), KeyParseError, message)
        except KeyParseError:
            key = _load_rsa_key(frame_pem(body, PKCS8_LABEL), KeyParseError, message)
        logger.debug("license_key_reconstructed", extra={"source": self.name})
        return KeyMaterial(private_key=key, provenance=self.provenance)


class KeyMaterialLoader:
    """Load the signing key from the first configured source.

    Sources are tried in preference order; the first one that is available is
    authoritative, so a broken key file never silently falls through to the
    environment.
    """

    def __init__(self, sources: Sequence[KeySource]) -> None:
        self.sources = list(sources)

    def load(self) -> KeyMaterial:
        for source in self.sources:
            if source.available():
                material = source.load()
                logger.info("license_key_loaded", extra={"provenance": material.provenance})
                return material
        raise KeyMaterialMissing(
            "No private key configured. Run 'license-keygen generate' or set LICENSE_PRIVATE_KEY."
        )


class CachedKeyLoader:
    """Keep a loaded key for the lifetime of the process until invalidated."""

    def __init__(self, loader: KeyMaterialLoader) -> None:
        self._loader = loader
        self._material: KeyMaterial | None = None
        self._lock = threading.Lock()

    def load(self) -> KeyMaterial:
        material = self._material
        if material is not None:
            return material
        with self._lock:
            if self._material is None:
                self._material = self._loader.load()
            return self._material

    def invalidate(self) -> None:
        with self._lock:
            self._material = None


def build_key_loader(private_key_path: str | Path | None, private_key_value: str | None) -> KeyMaterialLoader:
    sources: list[KeySource] = []
    if private_key_path:
        sources.append(FileKeySource(private_key_path))
    sources.append(EnvironmentKeySource(private_key_value))
    return KeyMaterialLoader(sources)


def generate_key_pair(bits: int = 2048) -> tuple[bytes, bytes]:
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=bits)
    private_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.TraditionalOpenSSL,
        encryption_algorithm=serialization.NoEncryption(),
    )
    return private_pem, public_key_pem(private_key)


def public_key_pem(private_key: rsa.RSAPrivateKey) -> bytes:
    return private_key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )
