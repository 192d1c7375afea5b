from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from . import pipeline
from .errors import PercollateError
from .model import VERSION, BundleOptions, OutputFormat

logger = logging.getLogger("percollate.cli")


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="percollate",
        description="Turn web pages into a single offline PDF, EPUB or HTML document.",
    )
    p.add_argument("--version", action="version", version=f"%(prog)s {VERSION}")
    p.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    sub = p.add_subparsers(dest="command", required=True)
    for fmt in OutputFormat:
        cmd = sub.add_parser(fmt.value, help=f"Bundle web pages into {fmt.value.upper()}")
        cmd.add_argument("urls", nargs="+", metavar="URL", help="Web pages to bundle, in order")
        cmd.add_argument(
            "--individual",
            action="store_true",
            help="Write one file per URL instead of a single merged file",
        )
        cmd.add_argument(
            "-o",
            "--output",
            default=None,
            help="Output path (defaults to the page title, or a timestamped name for several pages)",
        )
        cmd.add_argument("--style", default=None, help="Path to a CSS file replacing the default stylesheet")
        cmd.add_argument("--css", default=None, help="Extra CSS appended to the stylesheet")
        cmd.add_argument("--template", default=None, help="Path to a custom HTML (Jinja) template")
        cmd.add_argument(
            "--sandbox",
            action="store_true",
            help="Keep Chromium's sandbox enabled (it is disabled by default)",
        )
    return p


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    options = BundleOptions(
        individual=args.individual,
        output=args.output,
        style=args.style,
        css=args.css,
        template=args.template,
        sandbox=args.sandbox,
    )
    run = getattr(pipeline, args.command)

    try:
        written = asyncio.run(run(args.urls, options))
    except KeyboardInterrupt:
        print("Stopped by user.", file=sys.stderr)
        return 130
    except (PercollateError, OSError) as e:
        logger.error("%s", e)
        return 1

    if not written:
        logger.error("Nothing was written.")
        return 1
    for path in written:
        print(f"Wrote {args.command.upper()}: {path}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
