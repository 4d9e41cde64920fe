"""Entry point: uv run run.py https://example.com --wait "#main" --screenshot page.png"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

# Ensure src/ is on the path for direct execution
sys.path.insert(0, str(Path(__file__).parent / "src"))

from dotenv import load_dotenv


def build_chain(
    url: str,
    wait: str | None = None,
    screenshot: str | None = None,
    headless: bool = True,
):
    from webchain.chain import Chain
    from webchain.options import Options

    chain = Chain(Options.from_env(headless=headless))
    chain.goto(url)
    if wait:
        chain.wait(wait)
    if screenshot:
        chain.screenshot(screenshot)
    return chain


async def main(
    url: str,
    wait: str | None = None,
    screenshot: str | None = None,
    headless: bool = True,
) -> int:
    load_dotenv()

    chain = build_chain(url, wait=wait, screenshot=screenshot, headless=headless)
    await chain.run()
    chain.metrics.print_report()
    return 0 if chain.error is None and chain.timeout_count == 0 else 1


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Run a short browser automation chain")
    parser.add_argument("url", help="Page to open")
    parser.add_argument("--wait", type=str, default=None, help="Selector to wait for after loading")
    parser.add_argument("--screenshot", type=str, default=None, help="Where to save a screenshot")
    parser.add_argument("--no-headless", action="store_true", help="Run with visible browser")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log every step")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="[%(name)s] %(message)s",
    )
    exit_code = asyncio.run(
        main(args.url, wait=args.wait, screenshot=args.screenshot, headless=not args.no_headless)
    )
    sys.exit(exit_code)
