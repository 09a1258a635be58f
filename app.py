"""Command line front end for the MedRep Google Sheets record store."""

from __future__ import annotations

import argparse
import json
import sys
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence

from core.errors import SheetsStoreError
from core.google_auth import AuthService
from core.logging_config import configure_logging
from core.record_store import RecordStore
from core.records import VARIANTS, variant_for
from core.sheet_resolver import SpreadsheetResolver
from settings import load_app_settings


def _build_auth(args: argparse.Namespace) -> AuthService:
    return AuthService(load_app_settings(args.settings))


def _error(message: object) -> int:
    print(f"Error: {message}", file=sys.stderr)
    return 1


def _format_expiry(expires_at_ms: int) -> str:
    moment = datetime.fromtimestamp(expires_at_ms / 1000, tz=timezone.utc)
    return moment.isoformat(timespec="seconds").replace("+00:00", "Z")


def parse_assignments(pairs: Sequence[str]) -> Dict[str, str]:
    """Parse ``field=value`` arguments into a mapping."""

    values: Dict[str, str] = {}
    for pair in pairs:
        name, separator, value = pair.partition("=")
        if not separator or not name.strip():
            raise ValueError(f"Expected field=value, got {pair!r}")
        values[name.strip()] = value
    return values


def command_signin(args: argparse.Namespace) -> int:
    auth = _build_auth(args)
    try:
        auth.initialize()
        session = auth.sign_in(force_consent=args.force_consent)
    except SheetsStoreError as exc:
        return _error(exc)

    print(f"Signed in. Token valid until {_format_expiry(session.expires_at_ms)}")
    url = SpreadsheetResolver(auth).sheet_url()
    if url:
        print(f"Sheet: {url}")
    return 0


def command_signout(args: argparse.Namespace) -> int:
    auth = _build_auth(args)
    try:
        auth.initialize()
    except SheetsStoreError as exc:
        auth.clear_cached_session()
        print(f"Token could not be revoked ({exc}); local session cleared.")
        return 0

    auth.restore_session()
    try:
        auth.sign_out()
    except SheetsStoreError as exc:
        return _error(exc)
    print("Signed out.")
    return 0


def command_status(args: argparse.Namespace) -> int:
    auth = _build_auth(args)
    session = auth.current_session()
    if session is None:
        print("Not signed in.")
    elif auth.is_authenticated():
        print(f"Signed in. Token valid until {_format_expiry(session.expires_at_ms)}")
    else:
        print(f"Session expired at {_format_expiry(session.expires_at_ms)}")

    url = SpreadsheetResolver(auth).sheet_url()
    print(f"Sheet: {url}" if url else "Sheet: not resolved yet")
    return 0


def command_url(args: argparse.Namespace) -> int:
    url = SpreadsheetResolver(_build_auth(args)).sheet_url()
    if not url:
        print("No sheet resolved yet.")
        return 1
    print(url)
    return 0


def command_forget_sheet(args: argparse.Namespace) -> int:
    SpreadsheetResolver(_build_auth(args)).forget()
    print("Cached sheet id cleared; the next access searches Drive again.")
    return 0


def command_list(args: argparse.Namespace) -> int:
    auth = _build_auth(args)
    variant = variant_for(args.kind)
    try:
        auth.initialize()
        records = RecordStore(auth).read_all(variant)
    except SheetsStoreError as exc:
        return _error(exc)

    for record in records:
        print(json.dumps(record.to_dict(), ensure_ascii=False))
    print(f"{len(records)} {variant.plural}", file=sys.stderr)
    return 0


def command_add(args: argparse.Namespace) -> int:
    auth = _build_auth(args)
    variant = variant_for(args.kind)
    try:
        partial = parse_assignments(args.fields)
        auth.initialize()
        record = RecordStore(auth).append(variant, partial)
    except (SheetsStoreError, ValueError) as exc:
        return _error(exc)

    print(json.dumps(record.to_dict(), ensure_ascii=False))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="MedRep Google Sheets record store")
    parser.add_argument("--settings", help="Path to settings.json (defaults to the app directory)")
    parser.add_argument("--verbose", action="store_true", help="Echo log records to stderr")
    subparsers = parser.add_subparsers(dest="command", required=True)

    signin_parser = subparsers.add_parser("signin", help="Connect to Google Sheets")
    signin_parser.add_argument(
        "--force-consent",
        action="store_true",
        help="Show the Google consent screen even when a session is cached",
    )
    signin_parser.set_defaults(func=command_signin)

    signout_parser = subparsers.add_parser("signout", help="Revoke the token and clear local state")
    signout_parser.set_defaults(func=command_signout)

    status_parser = subparsers.add_parser("status", help="Show the cached session and sheet")
    status_parser.set_defaults(func=command_status)

    url_parser = subparsers.add_parser("url", help="Print the URL of the backing sheet")
    url_parser.set_defaults(func=command_url)

    forget_parser = subparsers.add_parser("forget-sheet", help="Clear only the cached sheet id")
    forget_parser.set_defaults(func=command_forget_sheet)

    plural_choices: List[str] = [variant.plural for variant in VARIANTS]
    list_parser = subparsers.add_parser("list", help="Print every record of one type as JSON lines")
    list_parser.add_argument("kind", choices=plural_choices)
    list_parser.set_defaults(func=command_list)

    singular_choices: List[str] = [variant.singular for variant in VARIANTS]
    add_parser = subparsers.add_parser("add", help="Append a record")
    add_parser.add_argument("kind", choices=singular_choices)
    add_parser.add_argument("fields", nargs="*", help="field=value pairs, e.g. email=a@b.mx lat=19.4")
    add_parser.set_defaults(func=command_add)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(console=args.verbose)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
