from __future__ import annotations

"""
Command-line access to the resolver, mostly for debugging prompts and
heuristics without running the HTTP server.

    inventory-ai catalog
    inventory-ai analyze "antique piano"
    inventory-ai parse "antique piano and 2 dining chairs"
    inventory-ai session < typed_lines.txt
"""

import argparse
import asyncio
import json
import sys
from typing import Any, List, Optional

from .errors import InventoryError
from .logging_setup import configure_logging
from .pipeline import ItemResolver
from .session import InputSession


def _dump(obj: Any) -> None:
    print(json.dumps(obj, indent=2, ensure_ascii=False))


async def _analyze(name: str, offline: bool) -> None:
    async with ItemResolver() as resolver:
        if offline:
            resolver.aggregator.sources = []
        resp = await resolver.analyze(name, client_id="cli")
        _dump(resp.model_dump(by_alias=True))


async def _parse(text: str, basket: List[str], offline: bool) -> None:
    async with ItemResolver() as resolver:
        if offline:
            resolver.aggregator.sources = []
        resp = await resolver.parse_text(text, basket=basket)
        _dump(resp.model_dump(by_alias=True))


async def _session(lines: List[str], delay: float) -> None:
    async with ItemResolver() as resolver:
        session = InputSession(resolver, client_id="cli", delay=delay)
        task = None
        text = ""
        for line in lines:
            text = (text + " " + line.strip()).strip()
            task = session.on_input(text)
        if task is not None:
            await task
        _dump(session.snapshot())


def main(argv: Optional[List[str]] = None) -> int:
    ap = argparse.ArgumentParser(prog="inventory-ai")
    ap.add_argument("--log-level", default="WARNING")
    sub = ap.add_subparsers(dest="command", required=True)

    sub.add_parser("catalog", help="Print the base catalog")

    p_an = sub.add_parser("analyze", help="Resolve a single item name")
    p_an.add_argument("name")
    p_an.add_argument("--offline", action="store_true", help="Skip enrichment sources")

    p_parse = sub.add_parser("parse", help="Resolve a free-text description")
    p_parse.add_argument("text")
    p_parse.add_argument("--basket", nargs="*", default=[], help="Item names already in the basket")
    p_parse.add_argument("--offline", action="store_true", help="Skip enrichment sources")

    p_sess = sub.add_parser("session", help="Feed stdin lines as typing into a debounced session")
    p_sess.add_argument("--delay", type=float, default=0.2)

    args = ap.parse_args(argv)
    configure_logging(level=args.log_level.upper())

    if args.command == "catalog":
        from .catalog import load_catalog

        _dump([item.to_api() for item in load_catalog()])
    elif args.command in {"analyze", "parse"}:
        try:
            if args.command == "analyze":
                asyncio.run(_analyze(args.name, args.offline))
            else:
                asyncio.run(_parse(args.text, args.basket, args.offline))
        except InventoryError as e:
            print(json.dumps(e.to_dict()), file=sys.stderr)
            return 1
    elif args.command == "session":
        asyncio.run(_session(sys.stdin.read().splitlines(), args.delay))
    return 0


if __name__ == "__main__":
    sys.exit(main())
