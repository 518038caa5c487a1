"""Seed or inspect the persisted credential without running the consent flow.

Operators who already hold a refresh token for the service identity (for
example one minted with ``gcloud auth application-default login``) can write
it straight into the configured credential store. The gateway then mints
access tokens from it on the first ``/ask`` request.

Example usages::

    # Store a pre-provisioned refresh token in the configured backend.
    python -m scripts.seed_credentials seed --refresh-token "$REFRESH_TOKEN"

    # Show what is stored, with token values redacted.
    python -m scripts.seed_credentials show --env-file /opt/gateway/.env
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

from pydantic import ValidationError

from vertex_gateway.core.config import AppSettings, _load_env_file
from vertex_gateway.core.errors import StorageError
from vertex_gateway.models.credentials import CredentialRecord
from vertex_gateway.services import (
    CredentialStore,
    TokenCipherService,
    build_credential_store,
)

EXIT_OK = 0
EXIT_VALIDATION_ERROR = 2
EXIT_NOT_FOUND = 3
EXIT_STORAGE_ERROR = 4


def _build_store(env_file: Path | None) -> CredentialStore:
    """Load settings (optionally from ``env_file``) and open the configured store."""
    if env_file is not None:
        _load_env_file(str(env_file))
    settings = AppSettings()  # type: ignore[call-arg]
    secret = settings.security.token_encryption_secret or settings.google.client_secret
    return build_credential_store(settings.storage, TokenCipherService(secret=secret))


def _seed(store: CredentialStore, args: argparse.Namespace) -> int:
    now = datetime.now(timezone.utc)
    expires_at = None
    if args.access_token and args.expires_in is not None:
        expires_at = now + timedelta(seconds=args.expires_in)

    record = CredentialRecord(
        access_token=args.access_token,
        refresh_token=args.refresh_token,
        expires_at=expires_at,
        updated_at=now,
    )
    asyncio.run(store.put(record))
    print("Credential record stored.")
    return EXIT_OK


def _show(store: CredentialStore) -> int:
    record = asyncio.run(store.get())
    if record is None:
        print("No credential record stored.", file=sys.stderr)
        return EXIT_NOT_FOUND

    expiry = record.expires_at.isoformat() if record.expires_at else "untracked"
    print(f"access_token:  {'present' if record.access_token else 'absent'}")
    print(f"refresh_token: {'present' if record.refresh_token else 'absent'}")
    print(f"expires_at:    {expiry}")
    return EXIT_OK


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    subparsers = parser.add_subparsers(dest="command", required=True)

    seed = subparsers.add_parser("seed", help="Overwrite the stored credential.")
    seed.add_argument("--refresh-token", required=True)
    seed.add_argument("--access-token", default=None)
    seed.add_argument(
        "--expires-in",
        type=int,
        default=None,
        help="Lifetime in seconds of --access-token; omitted means untracked.",
    )

    subparsers.add_parser("show", help="Print a redacted view of the stored credential.")

    for subparser in subparsers.choices.values():
        subparser.add_argument("--env-file", type=Path, default=None)
    return parser


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)

    try:
        store = _build_store(args.env_file)
        if args.command == "seed":
            return _seed(store, args)
        return _show(store)
    except ValidationError as exc:
        print(f"Configuration is invalid:\n{exc}", file=sys.stderr)
        return EXIT_VALIDATION_ERROR
    except StorageError as exc:
        print(f"Credential store error: {exc}", file=sys.stderr)
        return EXIT_STORAGE_ERROR


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
