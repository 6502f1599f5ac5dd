"""Equivalence cache management tool.

Usage: python scripts/manage_id_cache.py <command> [args...]
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path

sys.path.append(str(Path(__file__).parent.parent))

import colorama

from idbridge import log
from idbridge.config.settings import get_config
from idbridge.core.bridge import IdBridge
from idbridge.exceptions import IdBridgeError
from idbridge.models.identity import CachedIdentity, ContentType, Provider
from idbridge.models.schemas.cache import CacheStats


def _heading(text: str) -> None:
    print(f"{colorama.Style.BRIGHT}{text}{colorama.Style.RESET_ALL}\n")


def _ok(text: str) -> None:
    print(f"{colorama.Fore.GREEN}{text}{colorama.Style.RESET_ALL}")


def _na(value) -> str:
    return "N/A" if value is None else str(value)


def _print_summary(stats: CacheStats) -> None:
    print(f"   Total entries: {stats.total_entries:,}")
    print(f"   Estimated size: {stats.estimated_size_kb} KB")
    print(f"   Usage: {stats.usage_percentage}%")


def show_stats(bridge: IdBridge, args: argparse.Namespace) -> None:
    _heading("ID Cache Statistics")
    stats = bridge.manager.stats()

    print(f"Total Mappings: {stats.total_entries:,}")
    print(f"Estimated Size: {stats.estimated_size_kb} KB")
    print(
        f"Usage: {stats.usage_percentage}% "
        f"({stats.total_entries}/{stats.max_size:,})"
    )
    print(f"TTL: {stats.ttl_days} days")
    print(f"Last Optimized: {_na(stats.last_optimized)}\n")

    if not stats.by_type:
        print("No cache entries found.")
        return

    for stat in stats.by_type:
        print(f"{stat.content_type.upper()}:")
        print(f"  Total: {stat.total:,}")
        print(f"  With TMDB: {stat.with_tmdb:,}")
        print(f"  With TVDB: {stat.with_tvdb:,}")
        print(f"  With IMDb: {stat.with_imdb:,}")
        print(f"  With TVmaze: {stat.with_tvmaze:,}")
        print(f"  Complete: {stat.complete:,}")
        print(f"  Expired: {stat.expired:,}\n")


def clear_cache(bridge: IdBridge, args: argparse.Namespace) -> None:
    manager = bridge.manager
    if args.scope == "all":
        if not args.yes:
            answer = input(
                f"{colorama.Fore.YELLOW}Delete every cache entry? [y/N]: "
                f"{colorama.Style.RESET_ALL}"
            ).lower()
            if answer != "y":
                print("Aborted.")
                return
        count = manager.clear_all()
        _ok(f"Cleared all {count:,} cache entries")
    elif args.scope == "old":
        count = manager.expire(args.days)
        _ok(
            f"Cleared {count:,} cache entries older than "
            f"{args.days if args.days is not None else manager.ttl_days} days"
        )
    else:
        count = manager.expire()
        _ok(f"Cleared {count:,} expired cache entries")


def _print_entry(entry: CachedIdentity) -> None:
    print(
        f"   TMDB: {_na(entry.tmdb_id)} | TVDB: {_na(entry.tvdb_id)} | "
        f"IMDb: {_na(entry.imdb_id)} | TVmaze: {_na(entry.tvmaze_id)}"
    )
    print(f"   Updated: {entry.updated_at}\n")


def search_cache(bridge: IdBridge, args: argparse.Namespace) -> None:
    suffix = f" ({args.content_type})" if args.content_type else ""
    _heading(f"Searching for ID: {args.id}{suffix}")

    results = bridge.store.search(args.id, args.content_type, args.limit)
    if not results:
        print("No matches found.")
        return
    for index, entry in enumerate(results, start=1):
        print(f"{index}. {str(entry.content_type).upper()}:")
        _print_entry(entry)


def list_cache(bridge: IdBridge, args: argparse.Namespace) -> None:
    _heading(
        f"Recent {args.content_type} cache entries "
        f"(limit: {args.limit}, offset: {args.offset})"
    )
    entries = bridge.store.list_by_type(args.content_type, args.limit, args.offset)
    if not entries:
        print(f"No {args.content_type} cache entries found.")
        return
    for index, entry in enumerate(entries, start=args.offset + 1):
        print(f"{index}.")
        _print_entry(entry)


def add_mapping(bridge: IdBridge, args: argparse.Namespace) -> None:
    added = bridge.manager.add_mapping(
        args.content_type,
        args.tmdb_id,
        args.tvdb_id,
        args.imdb_id,
        args.tvmaze_id,
        overwrite=args.force,
    )
    if added:
        _ok("Mapping added successfully")
    else:
        raise IdBridgeError("A mapping needs at least two identifiers")


def import_mappings(bridge: IdBridge, args: argparse.Namespace) -> None:
    try:
        mappings = json.loads(args.file.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        raise IdBridgeError(f"Could not read mappings from {args.file}: {e}") from e
    if not isinstance(mappings, list) or not all(
        isinstance(mapping, dict) for mapping in mappings
    ):
        raise IdBridgeError(f"{args.file} must hold a JSON list of objects")

    added = bridge.manager.batch_add_mappings(mappings, batch_size=args.batch_size)
    _ok(f"Imported {added:,} of {len(mappings):,} mappings")


def optimize_storage(bridge: IdBridge, args: argparse.Namespace) -> None:
    _heading("Starting storage optimization...")
    result = bridge.manager.optimize()

    _ok("Storage optimization complete:")
    print(f"   Expired entries removed: {result.expired:,}")
    print(f"   Size-limited entries removed: {result.evicted:,}")

    print("\nUpdated Statistics:")
    _print_summary(bridge.manager.stats())


def show_recommendations(bridge: IdBridge, args: argparse.Namespace) -> None:
    _heading("Storage Recommendations")
    stats = bridge.manager.stats()
    recommendations = bridge.manager.recommendations(stats)

    if not recommendations:
        _ok("No recommendations. Cache is healthy!")
        return
    for index, recommendation in enumerate(recommendations, start=1):
        print(f"{index}. {recommendation}")

    print("\nCurrent Status:")
    _print_summary(stats)
    print(f"   TTL: {stats.ttl_days} days")


def show_config(bridge: IdBridge, args: argparse.Namespace) -> None:
    _heading("Cache Configuration")
    config = bridge.config
    print(f"Data Path: {config.data_path}")
    print(f"Max Cache Size: {config.cache.max_size:,} entries")
    print(f"TTL: {config.cache.ttl_days} days")
    print(f"Maintenance Interval: {config.cache.maintenance_interval}s")
    print(f"TMDB API Key: {'set' if config.providers.tmdb_api_key else 'not set'}")
    print(f"TVDB API Key: {'set' if config.providers.tvdb_api_key else 'not set'}")


async def _resolve(bridge: IdBridge, args: argparse.Namespace) -> None:
    await bridge.initialize()
    try:
        record = await bridge.resolver.resolve(
            args.content_type, args.seed, target_providers=args.target or None
        )
    finally:
        await bridge.close()

    _heading(f"Resolved {args.seed}")
    for provider in Provider:
        print(f"{provider.value:>8}: {_na(record.get(provider))}")


def resolve_id(bridge: IdBridge, args: argparse.Namespace) -> None:
    asyncio.run(_resolve(bridge, args))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="ID cache management tool")
    subparsers = parser.add_subparsers(dest="command", required=True)

    stats = subparsers.add_parser("stats", help="Show detailed cache statistics")
    stats.set_defaults(func=show_stats)

    clear = subparsers.add_parser("clear", help="Clear cache entries")
    clear.add_argument("scope", choices=["all", "old", "expired"])
    clear.add_argument(
        "days",
        nargs="?",
        type=int,
        default=None,
        help="Age in days for 'old' (default: the configured TTL)",
    )
    clear.add_argument(
        "--yes", "-y", action="store_true", help="Do not ask for confirmation"
    )
    clear.set_defaults(func=clear_cache)

    search = subparsers.add_parser("search", help="Search for an ID in the cache")
    search.add_argument("id", help="Identifier, optionally prefixed (tmdb:603)")
    search.add_argument(
        "content_type", nargs="?", default=None, choices=list(ContentType)
    )
    search.add_argument("limit", nargs="?", type=int, default=10)
    search.set_defaults(func=search_cache)

    list_ = subparsers.add_parser("list", help="List cache entries with pagination")
    list_.add_argument(
        "content_type", nargs="?", default="movie", choices=list(ContentType)
    )
    list_.add_argument("limit", nargs="?", type=int, default=10)
    list_.add_argument("offset", nargs="?", type=int, default=0)
    list_.set_defaults(func=list_cache)

    add = subparsers.add_parser("add", help="Manually add a mapping")
    add.add_argument("content_type", choices=list(ContentType))
    add.add_argument("tmdb_id", nargs="?", default=None)
    add.add_argument("tvdb_id", nargs="?", default=None)
    add.add_argument("imdb_id", nargs="?", default=None)
    add.add_argument("tvmaze_id", nargs="?", default=None)
    add.add_argument(
        "--force",
        "-f",
        action="store_true",
        help="Overwrite conflicting identifiers on an existing entry",
    )
    add.set_defaults(func=add_mapping)

    import_ = subparsers.add_parser(
        "import", help="Add mappings from a JSON list of objects"
    )
    import_.add_argument("file", type=Path)
    import_.add_argument("--batch-size", type=int, default=100)
    import_.set_defaults(func=import_mappings)

    optimize = subparsers.add_parser(
        "optimize", help="Clear expired entries, enforce limits and vacuum"
    )
    optimize.set_defaults(func=optimize_storage)

    recommendations = subparsers.add_parser(
        "recommendations", help="Show storage recommendations"
    )
    recommendations.set_defaults(func=show_recommendations)

    config = subparsers.add_parser("config", help="Show current configuration")
    config.set_defaults(func=show_config)

    resolve = subparsers.add_parser("resolve", help="Resolve a seed identifier")
    resolve.add_argument("content_type", choices=[*ContentType, "anime"])
    resolve.add_argument("seed", help="Seed identifier, e.g. tmdb:603 or tt0133093")
    resolve.add_argument(
        "--target",
        "-t",
        action="append",
        choices=list(Provider),
        help="Provider that must be resolved (repeatable)",
    )
    resolve.set_defaults(func=resolve_id)

    return parser


def main(argv: list[str] | None = None, bridge: IdBridge | None = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        bridge = bridge or IdBridge(get_config())
        args.func(bridge, args)
    except IdBridgeError as e:
        log.error(f"ManageIdCache: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
