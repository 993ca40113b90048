#!/usr/bin/env python3
"""
EMob Upstream - PandaScore resilience layer
===========================================

Fetch one endpoint through the credential-rotating client and the
response cache.

Usage:
    python main.py matches/running                  # Fetch and print JSON
    python main.py matches/upcoming -p per_page=5   # With query parameters
    python main.py --preload                        # Warm critical endpoints
    python main.py --help                           # Show help
"""

import argparse
import asyncio
import sys
from pathlib import Path
from typing import List, Tuple

# Ensure project root is in path
sys.path.insert(0, str(Path(__file__).parent))

from rich.console import Console

from api import UpstreamService, create_pandascore_client
from cache import ResponseCache
from core.errors import UpstreamLayerError
from infra.config import ConfigManager, Settings
from infra.logging import RequestContext, configure_logging

console = Console()


def parse_params(raw: List[str]) -> List[Tuple[str, str]]:
    """Turn ``name=value`` strings into query pairs."""
    pairs = []
    for item in raw:
        name, sep, value = item.partition("=")
        if not sep:
            raise argparse.ArgumentTypeError(f"Expected name=value, got '{item}'")
        pairs.append((name, value))
    return pairs


async def run(args: argparse.Namespace, settings: Settings) -> int:
    cache = ResponseCache(
        ttl_seconds=settings.cache_ttl_seconds,
        max_size=settings.cache_max_size,
    )

    async with create_pandascore_client(settings) as client:
        service = UpstreamService(client, default_cache=cache)

        with RequestContext() as request_id:
            if args.preload:
                results = await service.preload()
                for endpoint, data in results.items():
                    status = "[green]ok[/green]" if data is not None else "[red]failed[/red]"
                    console.print(f"{endpoint}: {status}")
                return 0 if all(v is not None for v in results.values()) else 1

            try:
                data = await service.fetch_json(args.endpoint, parse_params(args.param))
            except UpstreamLayerError as e:
                console.print(f"[red]{type(e).__name__}[/red] ({request_id}): {e.message}")
                return 1

    console.print_json(data=data)
    return 0


def main() -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Fetch PandaScore data through the EMob resilience layer"
    )
    parser.add_argument("endpoint", nargs="?", default="matches/running",
                        help="Endpoint path or absolute URL")
    parser.add_argument("-p", "--param", action="append", default=[],
                        help="Query parameter as name=value (repeatable)")
    parser.add_argument("--preload", action="store_true",
                        help="Warm the cache for critical endpoints")
    parser.add_argument("--config", default="config.yaml",
                        help="Path to the YAML config file")
    args = parser.parse_args()

    settings = Settings.from_config(ConfigManager(args.config))
    configure_logging(
        level=settings.log_level,
        log_dir=settings.log_dir,
        file=settings.log_dir is not None,
    )

    try:
        return asyncio.run(run(args, settings))
    except argparse.ArgumentTypeError as e:
        parser.error(str(e))
        return 2


if __name__ == "__main__":
    sys.exit(main())
