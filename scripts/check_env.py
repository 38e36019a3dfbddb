"""Verify that the uploader's environment configuration is usable.

Two checks are available:

1. Load ``AppSettings`` from the given ``.env`` file and confirm the X OAuth
   client credentials are present, so ``/api/auth/connect`` and the callback
   will not fail with a configuration error at runtime.
2. Record and later verify a checksum of the ``.env`` file to catch
   unexpected edits.

Example usages::

    python -m scripts.check_env check --env-file .env

    python -m scripts.check_env record --env-file /srv/uploader/.env \
        --hash-file /srv/uploader/.env.sha256
    python -m scripts.check_env verify --env-file /srv/uploader/.env \
        --hash-file /srv/uploader/.env.sha256
"""

from __future__ import annotations

import argparse
import hashlib
import sys
from pathlib import Path
from typing import Callable

from pydantic import ValidationError

from x_uploader.core.config import (
    AppSettings,
    OAuthSettings,
    SecuritySettings,
    UploadSettings,
    XApiSettings,
)

EXIT_OK = 0
EXIT_VALIDATION_ERROR = 2
EXIT_CHECKSUM_ERROR = 3
EXIT_RUNTIME_ERROR = 5

REQUIRED_X_SETTINGS = {
    "client_id": "X_CLIENT_ID",
    "client_secret": "X_CLIENT_SECRET",
}


class MissingSettingsError(Exception):
    """Raised when settings load but values needed at runtime are empty."""

    def __init__(self, names: list[str]) -> None:
        super().__init__(", ".join(names))
        self.names = names


def _compute_hash(env_file: Path) -> str:
    return hashlib.sha256(env_file.read_bytes()).hexdigest()


def _validate_settings(env_file: Path) -> AppSettings:
    """Load settings from ``env_file`` and require the X client credentials.

    Each settings group reads the file itself; the process environment is
    left untouched.
    """
    settings = AppSettings(  # type: ignore[call-arg]
        _env_file=env_file,
        security=SecuritySettings(_env_file=env_file),  # type: ignore[call-arg]
        oauth=OAuthSettings(_env_file=env_file),  # type: ignore[call-arg]
        x=XApiSettings(_env_file=env_file),  # type: ignore[call-arg]
        upload=UploadSettings(_env_file=env_file),  # type: ignore[call-arg]
    )
    missing = [
        env_name
        for field_name, env_name in REQUIRED_X_SETTINGS.items()
        if not getattr(settings.x, field_name)
    ]
    if missing:
        raise MissingSettingsError(missing)
    return settings


def _record_checksum(env_file: Path, hash_file: Path) -> int:
    checksum = _compute_hash(env_file)
    hash_file.write_text(f"{checksum}\n", encoding="utf-8")
    print(f"Recorded checksum to {hash_file} ({checksum})")
    return EXIT_OK


def _verify_checksum(env_file: Path, hash_file: Path) -> int:
    if not hash_file.exists():
        print(
            f"Expected checksum file {hash_file} is missing. "
            "Re-run with the 'record' command to establish a baseline.",
            file=sys.stderr,
        )
        return EXIT_RUNTIME_ERROR

    expected = hash_file.read_text(encoding="utf-8").strip()
    actual = _compute_hash(env_file)
    if expected == actual:
        print("Environment checksum OK.")
        return EXIT_OK

    print(
        "Environment checksum mismatch!\n"
        f"  expected: {expected}\n"
        f"  actual:   {actual}",
        file=sys.stderr,
    )
    return EXIT_CHECKSUM_ERROR


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Validate uploader settings and detect .env drift."
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    def add_env_file(subparser: argparse.ArgumentParser) -> None:
        subparser.add_argument(
            "--env-file",
            default=".env",
            type=Path,
            help="Path to the environment file (default: .env in the working directory).",
        )

    for name, help_text in (
        ("record", "Validate settings and store the checksum baseline."),
        ("verify", "Validate settings and compare the checksum with the baseline."),
    ):
        subparser = subparsers.add_parser(name, help=help_text)
        add_env_file(subparser)
        subparser.add_argument("--hash-file", required=True, type=Path)

    add_env_file(
        subparsers.add_parser("check", help="Validate settings only.")
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    env_file: Path = args.env_file

    if not env_file.exists():
        print(f"Environment file {env_file} does not exist.", file=sys.stderr)
        return EXIT_RUNTIME_ERROR

    try:
        _validate_settings(env_file)
    except ValidationError as exc:
        print(
            "Settings validation failed. Invalid values detected:\n"
            f"{exc.json(indent=2)}",
            file=sys.stderr,
        )
        return EXIT_VALIDATION_ERROR
    except MissingSettingsError as exc:
        print(f"Missing required settings: {exc}", file=sys.stderr)
        return EXIT_VALIDATION_ERROR

    handlers: dict[str, Callable[[], int]] = {
        "record": lambda: _record_checksum(env_file, args.hash_file),
        "verify": lambda: _verify_checksum(env_file, args.hash_file),
        "check": lambda: EXIT_OK,
    }
    return handlers[args.command]()


if __name__ == "__main__":  # pragma: no cover - script entry point
    sys.exit(main())
