"""crxpack command line interface."""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from .assembler import PackageAssembler
from .identifier import derive_display_id
from .key_store import KeyStore, KeyStoreConfig
from .keys import identity_from_pem
from .reader import verify_package
from .types import CrxError


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="crxpack", description="Build signed CRX3 packages")
    parser.add_argument("-v", "--verbose", action="store_true")
    subparsers = parser.add_subparsers(dest="command", required=True)

    pack_parser = subparsers.add_parser("pack", help="Package an unpacked extension directory")
    pack_parser.add_argument("directory")
    pack_parser.add_argument("-o", "--output", default="extension.crx")
    pack_parser.add_argument("--key", default=None, help="PEM key to load, or create if missing")
    pack_parser.add_argument("--json", action="store_true")

    id_parser = subparsers.add_parser("id", help="Print the identifier for a PEM key")
    id_parser.add_argument("key")
    id_parser.add_argument("--json", action="store_true")

    verify_parser = subparsers.add_parser("verify", help="Verify a package signature")
    verify_parser.add_argument("package")
    verify_parser.add_argument("--json", action="store_true")

    return parser


def _key_store_config(key: Optional[str]) -> KeyStoreConfig:
    if key:
        return KeyStoreConfig(persist=True, storage_path=Path(key))
    return KeyStoreConfig.from_env()


def _pack(args: argparse.Namespace) -> int:
    assembler = PackageAssembler(KeyStore(_key_store_config(args.key)))
    packed = asyncio.run(assembler.assemble_package(args.directory))

    output = Path(args.output)
    output.write_bytes(packed.package_bytes)

    if args.json:
        print(
            json.dumps(
                {
                    "command": "pack",
                    "id": packed.identifier,
                    "output": str(output),
                    "size": len(packed.package_bytes),
                },
                sort_keys=True,
            )
        )
        return 0
    print(f"id: {packed.identifier}")
    print(f"output: {output}")
    return 0


def _id(args: argparse.Namespace) -> int:
    identity = identity_from_pem(Path(args.key).read_bytes())
    identifier = derive_display_id(identity.public_key_der)
    if args.json:
        print(json.dumps({"command": "id", "id": identifier}, sort_keys=True))
        return 0
    print(identifier)
    return 0


def _verify(args: argparse.Namespace) -> int:
    result = verify_package(Path(args.package).read_bytes())
    if args.json:
        print(
            json.dumps(
                {
                    "command": "verify",
                    "valid": result.valid,
                    "id": result.identifier,
                    "reason": result.reason,
                },
                sort_keys=True,
            )
        )
    elif result.valid:
        print(f"valid: {result.identifier}")
    else:
        print(f"invalid: {result.reason}")
    return 0 if result.valid else 1


def main(argv: Optional[List[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    handlers = {"pack": _pack, "id": _id, "verify": _verify}
    try:
        return handlers[args.command](args)
    except (CrxError, OSError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
