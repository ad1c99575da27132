from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path

from .errors import LoadError
from .logging_config import configure_logging
from .save.codec import decode_snapshot, encode_snapshot
from .state.store import GameStateStore


def _load_store(path: Path) -> GameStateStore:
    store = GameStateStore()
    store.load(decode_snapshot(path.read_text(encoding="utf-8")))
    return store


def _cmd_inspect(args: argparse.Namespace) -> int:
    try:
        store = _load_store(Path(args.path))
    except (LoadError, OSError, UnicodeDecodeError) as e:
        print(f"INVALID: {args.path}: {e}")
        return 1
    summary = store.get_debug_info()
    summary["ending"] = store.resolve_ending().value
    print(json.dumps(summary, indent=2, sort_keys=True, ensure_ascii=False))
    return 0


def _cmd_migrate(args: argparse.Namespace) -> int:
    try:
        store = _load_store(Path(args.path))
    except (LoadError, OSError, UnicodeDecodeError) as e:
        print(f"INVALID: {args.path}: {e}")
        return 1
    out = Path(args.out) if args.out else Path(args.path)
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_text(encode_snapshot(store.serialize()), encoding="utf-8")
    print(f"OK: wrote {out}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="gakuen-save", description="Mahjong Gakuen save file tools")
    p.add_argument("--debug", action="store_true", help="Enable verbose debug logging.")
    sub = p.add_subparsers(dest="cmd", required=True)

    i = sub.add_parser("inspect", help="Print a summary and the reachable ending of a save file")
    i.add_argument("path", help="Path to a save file (JSON)")
    i.set_defaults(func=_cmd_inspect)

    m = sub.add_parser("migrate", help="Rewrite a save file at the current schema version")
    m.add_argument("path", help="Path to a save file (JSON)")
    m.add_argument("--out", help="Output file (defaults to rewriting in place)")
    m.set_defaults(func=_cmd_migrate)

    return p


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(logging.DEBUG if args.debug else logging.WARNING)
    return args.func(args)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
