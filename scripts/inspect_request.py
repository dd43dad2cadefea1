#!/usr/bin/env python3
from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

from ledgermsg.config import load_codec_config
from ledgermsg.request.codec import RequestCodec
from ledgermsg.request.errors import WireDecodeError
from ledgermsg.request.verify import check
from ledgermsg.util.log_events import configure_structured_logging


def _parse_address(s: str) -> bytes:
    s = s.strip()
    if s.startswith(("0x", "0X")):
        s = s[2:]
    b = bytes.fromhex(s)
    if len(b) != 20:
        raise argparse.ArgumentTypeError(f"address must be 20 bytes, got {len(b)}")
    return b


def main(argv: list[str] | None = None) -> int:
    ap = argparse.ArgumentParser(description="Decode an encoded request and optionally verify it.")
    ap.add_argument("path", help="file containing the encoded request ('-' for stdin)")
    ap.add_argument("--config", default=None, help="codec config JSON (default: LEDGERMSG_CONFIG_PATH)")
    ap.add_argument("--self-address", type=_parse_address, default=None, help="verifying party address (hex)")
    ap.add_argument("--quiet", action="store_true", help="do not print the decoded tree")
    args = ap.parse_args(argv)

    cfg = load_codec_config(config_path=args.config)
    configure_structured_logging(cfg.log_level)
    codec = RequestCodec(config=cfg)

    data = sys.stdin.buffer.read() if args.path == "-" else Path(args.path).read_bytes()
    try:
        tree = codec.decode(data)
    except WireDecodeError as e:
        print(f"decode failed: {e.code}: {e}", file=sys.stderr)
        return 2

    if not args.quiet:
        print(json.dumps(tree.to_dict(), indent=2, sort_keys=False))

    if args.self_address is None:
        return 0

    verdict = check(tree, args.self_address)
    print(json.dumps({"ok": verdict.ok, "code": verdict.code.value, "reason": verdict.reason, "details": verdict.details}))
    return 0 if verdict.ok else 1


if __name__ == "__main__":
    sys.exit(main())
