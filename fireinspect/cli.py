#!/usr/bin/env python3
"""
fireinspect Command Line Interface

Usage:
    fireinspect canonicalize --file <content.json>
    fireinspect hash --file <content.json> [--expected <hex>]
    fireinspect verify-signature --file <content.json> --signature <b64> --signed-at <iso> --key-file <key.json>
"""

import argparse
import base64
import json
import os
import sys
from datetime import datetime


def load_json(path: str) -> dict:
    """Load JSON from file."""
    with open(path, 'r', encoding='utf-8') as f:
        return json.load(f)


def load_content(path: str):
    from fireinspect import InspectionContent
    return InspectionContent.from_dict(load_json(path))


def load_key(args) -> bytes:
    """Signing key from a {"kid", "secret_b64"} file or a base64 env var."""
    if args.key_file:
        return base64.b64decode(load_json(args.key_file)["secret_b64"])
    raw = os.getenv(args.key_env)
    if not raw:
        raise SystemExit(f"No signing key: pass --key-file or set {args.key_env}")
    return base64.b64decode(raw)


def cmd_canonicalize(args):
    """Print the canonical form of inspection content."""
    from fireinspect import canonicalize_str

    print(canonicalize_str(load_content(args.file)))
    return 0


def cmd_hash(args):
    """Compute (and optionally check) the content hash."""
    from fireinspect import compute_hash, hashes_match

    h = compute_hash(load_content(args.file))
    print(f"content_hash: {h}")
    if args.expected is None:
        return 0
    if hashes_match(h, args.expected):
        print("✓ hash matches", file=sys.stderr)
        return 0
    print(f"✗ hash mismatch (expected {args.expected})", file=sys.stderr)
    return 1


def cmd_verify_signature(args):
    """Verify an inspector signature against content."""
    from fireinspect import InspectorSigner, compute_hash

    content = load_content(args.file)
    content_hash = args.content_hash or compute_hash(content)
    signed_at = datetime.fromisoformat(args.signed_at.replace("Z", "+00:00"))
    signer = InspectorSigner(load_key(args))

    if signer.verify(args.signature, content.inspector_id, content_hash, signed_at):
        print(f"✓ signature valid for inspector {content.inspector_id}")
        return 0
    print("✗ INVALID: signature does not match inspector, content hash and timestamp")
    return 1


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="Fire inspection integrity CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  fireinspect canonicalize -f content.json
  fireinspect hash -f content.json -x 3f5a...
  fireinspect verify-signature -f content.json -s <b64> -t 2024-03-01T09:30:00Z -k key.json
        """
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # canonicalize
    canon_parser = subparsers.add_parser("canonicalize", help="Print canonical content bytes")
    canon_parser.add_argument("-f", "--file", required=True, help="Inspection content JSON file")

    # hash
    hash_parser = subparsers.add_parser("hash", help="Compute content hash")
    hash_parser.add_argument("-f", "--file", required=True, help="Inspection content JSON file")
    hash_parser.add_argument("-x", "--expected", help="Stored hash to compare against")

    # verify-signature
    sig_parser = subparsers.add_parser("verify-signature", help="Verify inspector signature")
    sig_parser.add_argument("-f", "--file", required=True, help="Inspection content JSON file")
    sig_parser.add_argument("-s", "--signature", required=True, help="Base64 signature")
    sig_parser.add_argument("-t", "--signed-at", required=True, help="Signing time (ISO-8601)")
    sig_parser.add_argument("-H", "--content-hash", help="Stored content hash (default: recompute)")
    sig_parser.add_argument("-k", "--key-file", help="Signing key JSON file")
    sig_parser.add_argument("--key-env", default="FIREINSPECT_SIGNING_KEY", help="Env var holding a base64 key")

    args = parser.parse_args(argv)

    if args.command == "canonicalize":
        return cmd_canonicalize(args)
    elif args.command == "hash":
        return cmd_hash(args)
    elif args.command == "verify-signature":
        return cmd_verify_signature(args)
    parser.print_help()
    return 2


if __name__ == "__main__":
    sys.exit(main())
