"""Deployment readiness check for the Splitwise bridge.

Loads the settings the service would start with from an ``.env`` file and
reports what would break the OAuth handshake or the tool surface before any
user hits it: missing Splitwise credentials, a callback URL that does not point
back at this service, secrets that silently fall back to the consumer secret,
and an unusable credential store.

Example usages::

    python -m scripts.check_env --env-file /opt/splitwise-bridge/.env

    # Also connect to Redis, and treat warnings as failures.
    python -m scripts.check_env --env-file /opt/splitwise-bridge/.env \
        --ping-store --strict
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import urlsplit

from pydantic import ValidationError

from app.clients.credential_store import RedisCredentialStore
from app.core.config import (
    AppSettings,
    OAuthSettings,
    SecuritySettings,
    SplitwiseSettings,
    StoreSettings,
)
from app.core.exceptions import StoreUnavailable

EXIT_OK = 0
EXIT_VALIDATION_ERROR = 2
EXIT_STORE_ERROR = 4
EXIT_RUNTIME_ERROR = 5

REDIS_SCHEMES = ("redis", "rediss", "unix")


@dataclass(frozen=True)
class Finding:
    level: str
    setting: str
    message: str

    @property
    def is_error(self) -> bool:
        return self.level == "error"

    def __str__(self) -> str:
        return f"{self.level.upper():5} {self.setting}: {self.message}"


def load_settings(env_file: Path) -> AppSettings:
    """Build settings from ``env_file``; process environment values still win."""
    source = str(env_file)
    return AppSettings(  # type: ignore[call-arg]
        _env_file=source,
        splitwise=SplitwiseSettings(_env_file=source),  # type: ignore[call-arg]
        store=StoreSettings(_env_file=source),  # type: ignore[call-arg]
        oauth=OAuthSettings(_env_file=source),  # type: ignore[call-arg]
        security=SecuritySettings(_env_file=source),  # type: ignore[call-arg]
    )


def _splitwise_findings(settings: AppSettings) -> list[Finding]:
    findings: list[Finding] = []
    splitwise = settings.splitwise
    for setting, value in (
        ("SPLITWISE_CONSUMER_KEY", splitwise.consumer_key),
        ("SPLITWISE_CONSUMER_SECRET", splitwise.consumer_secret),
    ):
        if not value:
            findings.append(Finding("error", setting, "required to talk to Splitwise"))

    expected_callback = f"{settings.backend_url}/callback"
    if not splitwise.callback_url:
        level = "error" if settings.auth_mode == "oauth1" else "warn"
        findings.append(
            Finding(level, "SPLITWISE_CALLBACK_URL", f"not set; expected {expected_callback}")
        )
    elif splitwise.callback_url.rstrip("/") != expected_callback:
        findings.append(
            Finding(
                "warn",
                "SPLITWISE_CALLBACK_URL",
                f"{splitwise.callback_url} does not match {expected_callback}; "
                "Splitwise will send users somewhere this service does not answer",
            )
        )
    return findings


def _secret_findings(settings: AppSettings) -> list[Finding]:
    findings: list[Finding] = []
    security = settings.security
    if not security.token_encryption_secret:
        findings.append(
            Finding(
                "warn",
                "TOKEN_ENCRYPTION_SECRET",
                "not set; stored tokens are encrypted with the consumer secret",
            )
        )
    if settings.auth_mode == "oauth2" and not security.cookie_secret:
        findings.append(
            Finding(
                "warn",
                "COOKIE_SECRET",
                "not set; OAuth state and approval cookies are signed with the consumer secret",
            )
        )
    return findings


def _store_findings(settings: AppSettings) -> list[Finding]:
    store = settings.store
    if store.backend == "memory":
        level = "error" if settings.environment == "production" else "warn"
        return [
            Finding(
                level,
                "STORE_BACKEND",
                "memory keeps credentials in one process; use redis for deployments",
            )
        ]
    scheme = urlsplit(store.redis_url).scheme
    if scheme not in REDIS_SCHEMES:
        return [
            Finding(
                "error",
                "REDIS_URL",
                f"unsupported scheme {scheme or '(none)'!r}; use one of {', '.join(REDIS_SCHEMES)}",
            )
        ]
    return []


def collect_findings(settings: AppSettings) -> list[Finding]:
    return [
        *_splitwise_findings(settings),
        *_secret_findings(settings),
        *_store_findings(settings),
    ]


async def _ping_store(settings: AppSettings) -> None:
    store = RedisCredentialStore.from_url(
        settings.store.redis_url,
        token=settings.store.redis_token,
        key_prefix=settings.store.key_prefix,
    )
    try:
        await store.ping()
    finally:
        await store.close()


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Check that the bridge configuration can serve the OAuth flow."
    )
    parser.add_argument(
        "--env-file",
        default=".env",
        type=Path,
        help="Path to the environment file (default: .env in the repo root).",
    )
    parser.add_argument(
        "--ping-store",
        action="store_true",
        help="Connect to the Redis credential store and ping it.",
    )
    parser.add_argument(
        "--strict",
        action="store_true",
        help="Fail on warnings as well as errors.",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    env_file: Path = args.env_file

    if not env_file.exists():
        print(
            f"Environment file {env_file} does not exist. "
            "Ensure the path is correct or create it before running this tool.",
            file=sys.stderr,
        )
        return EXIT_RUNTIME_ERROR

    try:
        settings = load_settings(env_file)
    except ValidationError as exc:
        print(
            "Settings validation failed. Missing or invalid values detected:\n"
            f"{exc.json(indent=2)}",
            file=sys.stderr,
        )
        return EXIT_VALIDATION_ERROR

    findings = collect_findings(settings)
    for finding in findings:
        print(finding, file=sys.stderr if finding.is_error else sys.stdout)
    if any(f.is_error for f in findings) or (args.strict and findings):
        return EXIT_VALIDATION_ERROR

    if args.ping_store and settings.store.backend == "redis":
        try:
            asyncio.run(_ping_store(settings))
        except StoreUnavailable as exc:
            print(f"Credential store at {settings.store.redis_url} is unreachable: {exc}", file=sys.stderr)
            return EXIT_STORE_ERROR

    print(
        f"Configuration OK (auth_mode={settings.auth_mode}, "
        f"store={settings.store.backend}, warnings={len(findings)})"
    )
    return EXIT_OK


if __name__ == "__main__":  # pragma: no cover - script entry point
    sys.exit(main())
