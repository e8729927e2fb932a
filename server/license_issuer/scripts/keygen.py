from __future__ import annotations

import argparse
import logging
import os
from collections.abc import Callable
from pathlib import Path

from license_issuer.core.config import settings
from license_issuer.core.errors import LicenseError
from license_issuer.core.keys import build_key_loader, generate_key_pair
from license_issuer.services.issuance import get_expiry_policy, issue_license

MIN_KEY_BITS = 1024


def _key_bits(value: str) -> int:
    try:
        bits = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid key size: '{value}'") from exc
    if bits < MIN_KEY_BITS:
        raise argparse.ArgumentTypeError(f"key size must be at least {MIN_KEY_BITS} bits")
    return bits


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="license-keygen",
        description="Generate the RSA signing key pair and issue machine-bound license tokens.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    generate = subparsers.add_parser("generate", help="Generate a new RSA key pair")
    generate.add_argument(
        "--private-key",
        default=settings.LICENSE_PRIVATE_KEY_PATH,
        help="Where to write the private signing key (kept secret)",
    )
    generate.add_argument(
        "--public-key",
        default=settings.LICENSE_PUBLIC_KEY_PATH,
        help="Where to write the public key shipped with the client",
    )
    generate.add_argument("--bits", type=_key_bits, default=settings.LICENSE_KEY_BITS, help="RSA modulus size")
    generate.add_argument("--force", action="store_true", help="Overwrite an existing private key without asking")

    issue = subparsers.add_parser("issue", help="Issue a new license token")
    issue.add_argument("--machine-id", help="Customer machine ID (prompted when omitted)")
    issue.add_argument("--expiry", help="Expiry date, YYYY-MM-DD (prompted when omitted)")
    issue.add_argument(
        "--private-key",
        default=settings.LICENSE_PRIVATE_KEY_PATH,
        help="Path to the RSA private key that signs licenses",
    )
    return parser.parse_args(argv)


def _prompt(message: str, input_fn: Callable[[str], str] = input) -> str:
    try:
        return input_fn(message).strip()
    except EOFError as exc:
        raise SystemExit("Error: no input received") from exc


def ask_for_confirmation(prompt: str, input_fn: Callable[[str], str] = input) -> bool:
    while True:
        answer = _prompt(prompt, input_fn).lower()
        if answer in {"y", "yes"}:
            return True
        if answer in {"n", "no"}:
            return False


def _write_private_key(path: Path, pem: bytes) -> None:
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "wb") as handle:
        handle.write(pem)
    os.chmod(path, 0o600)


def handle_generate(args: argparse.Namespace, input_fn: Callable[[str], str] = input) -> None:
    private_path = Path(args.private_key)
    public_path = Path(args.public_key)

    if private_path.exists() and not args.force:
        if not ask_for_confirmation("Warning: the private key already exists. Overwrite it? (y/n): ", input_fn):
            print("Operation cancelled.")
            return

    print("Generating a new RSA key pair...")
    private_pem, public_pem = generate_key_pair(args.bits)

    private_path.parent.mkdir(parents=True, exist_ok=True)
    _write_private_key(private_path, private_pem)
    public_path.parent.mkdir(parents=True, exist_ok=True)
    public_path.write_bytes(public_pem)

    print("\nKey pair generated:")
    print(f"   private key: '{private_path}'")
    print(f"   public key:  '{public_path}'")


def handle_issue(args: argparse.Namespace, input_fn: Callable[[str], str] = input) -> None:
    machine_id = args.machine_id if args.machine_id is not None else _prompt("Customer machine ID: ", input_fn)
    expiry = args.expiry if args.expiry is not None else _prompt("License expiry date (YYYY-MM-DD): ", input_fn)

    loader = build_key_loader(args.private_key, settings.LICENSE_PRIVATE_KEY)
    try:
        issued = issue_license(
            machine_id,
            expiry.strip(),
            loader=loader,
            policy=get_expiry_policy(),
            min_machine_id_length=settings.LICENSE_MIN_MACHINE_ID_LENGTH,
        )
    except LicenseError as exc:
        raise SystemExit(f"Error: {exc}") from exc

    print("\n************** License token **************")
    print(issued.token)
    print("*******************************************")
    print("\nLicense details:")
    print(f"  Machine ID:  {issued.machine_id}")
    print(f"  Expires:     {issued.expires_at.isoformat(sep=' ')}")
    print("  The token only activates on the machine above.")


def main(argv: list[str] | None = None) -> None:
    logging.basicConfig(level=settings.LOG_LEVEL.upper(), format="%(levelname)s %(name)s: %(message)s")
    args = parse_args(argv)
    if args.command == "generate":
        handle_generate(args)
    else:
        handle_issue(args)


if __name__ == "__main__":
    main()
