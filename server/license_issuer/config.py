from __future__ import annotations

from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent

# The private key lives outside the served tree; the public key is what ships to clients.
KEYS_DIR = BASE_DIR / "keygen-keys"
DEFAULT_PRIVATE_KEY_PATH = KEYS_DIR / "private.pem"
DEFAULT_PUBLIC_KEY_PATH = BASE_DIR / "public.pem"

