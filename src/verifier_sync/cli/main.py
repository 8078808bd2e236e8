"""
CLI for verifier-sync

Command-line interface for syncing signing keys and the revocation list.

Usage:
    verifier-sync sync                       # Run one sync cycle
    verifier-sync status                     # Show progress counters
    verifier-sync check --revoked ID         # Is a certificate id revoked?
    verifier-sync check --kid KID            # Show a stored signing certificate
    verifier-sync reset                      # Clear all local state
"""

import argparse
import json
import logging
import sys

from verifier_sync.config import SyncConfig
from verifier_sync.exceptions import SyncError
from verifier_sync.sync import SyncEngine

logger = logging.getLogger(__name__)


def _build_engine(args) -> SyncEngine:
    config = SyncConfig.from_env(
        data_dir=args.data_dir,
        base_url=args.base_url,
        timeout=args.timeout,
    )
    return SyncEngine(config)


def cmd_sync(args) -> int:
    """Run one sync cycle."""
    with _build_engine(args) as engine:
        success = engine.sync()
        result = engine.last_result

    keys = result.get("keys", {})
    revocation = result.get("revocation", {})

    print(f"\n{'=' * 50}")
    print(f"SYNC {'COMPLETE' if success else 'FAILED'}")
    print(f"{'=' * 50}")
    print(f"Valid KIDs:           {keys.get('kids_valid', 0)}")
    print(f"Keys stored:          {keys.get('keys_stored', 0)}")
    print(f"Keys discarded:       {keys.get('keys_discarded', 0)}")
    print(f"Keys pruned:          {keys.get('keys_pruned', 0)}")
    print(f"Revocation status:    {revocation.get('status', 'skipped')}")
    print(f"Revocation version:   {revocation.get('version', 'N/A')}")
    print(f"Chunks applied:       {revocation.get('chunks_applied', 0)}")
    if result.get("resets"):
        print(f"Self-heal resets:     {result['resets']}")
    if result.get("error"):
        print(f"Error: {result['error']}")

    return 0 if success else 1


def cmd_status(args) -> int:
    """Show sync progress."""
    with _build_engine(args) as engine:
        status = engine.get_sync_status()

    if args.json:
        print(json.dumps(status, indent=2, default=str))
        return 0

    print(f"\n{'=' * 50}")
    print("STATUS")
    print(f"{'=' * 50}")
    print(f"Last key fetch:         {status.get('date_last_fetch') or 'Never'}")
    print(f"Resume token:           {status.get('resume_token')}")
    print(f"Stored keys:            {status.get('key_count', 0)}")
    print(f"Revocation version:     {status.get('last_downloaded_version', 0)}")
    print(f"Pending version:        {status.get('current_version', 0)}")
    print(
        f"Chunks downloaded:      "
        f"{status.get('last_downloaded_chunk', 0)}/{status.get('total_chunks', 0)}"
    )
    print(f"Revoked ids:            {status.get('revoked_count', 0)}")
    return 0


def cmd_check(args) -> int:
    """Look up a revoked id or a stored signing certificate."""
    with _build_engine(args) as engine:
        if args.revoked:
            revoked = engine.is_revoked(args.revoked)
            print(f"{args.revoked}: {'REVOKED' if revoked else 'not revoked'}")
            return 2 if revoked else 0

        try:
            cert = engine.get_certificate(args.kid)
        except SyncError as e:
            print(f"Error decoding key {args.kid}: {e}")
            return 1

    if cert is None:
        print(f"Unknown KID: {args.kid}")
        return 1

    print(f"KID:       {args.kid}")
    print(f"Subject:   {cert.subject.rfc4514_string()}")
    print(f"Issuer:    {cert.issuer.rfc4514_string()}")
    print(f"Serial:    {cert.serial_number}")
    return 0


def cmd_reset(args) -> int:
    """Clear all local state."""
    with _build_engine(args) as engine:
        engine.reset()
    print("Local sync state cleared")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="verifier-sync",
        description="Sync signing keys and revocation lists for certificate verification",
    )
    parser.add_argument("--data-dir", help="Directory for local state (default: ./data)")
    parser.add_argument("--base-url", help="Override API base URL")
    parser.add_argument("--timeout", type=int, help="Request timeout in seconds")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    subparsers = parser.add_subparsers(dest="command", required=True)

    sync_parser = subparsers.add_parser("sync", help="Run one sync cycle")
    sync_parser.set_defaults(func=cmd_sync)

    status_parser = subparsers.add_parser("status", help="Show sync progress")
    status_parser.add_argument("--json", action="store_true", help="Output as JSON")
    status_parser.set_defaults(func=cmd_status)

    check_parser = subparsers.add_parser("check", help="Look up local data")
    group = check_parser.add_mutually_exclusive_group(required=True)
    group.add_argument("--revoked", metavar="ID", help="Certificate id to check")
    group.add_argument("--kid", help="Key identifier to show")
    check_parser.set_defaults(func=cmd_check)

    reset_parser = subparsers.add_parser("reset", help="Clear all local state")
    reset_parser.set_defaults(func=cmd_reset)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(levelname)s - %(message)s",
    )

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
