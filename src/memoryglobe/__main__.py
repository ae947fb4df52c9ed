"""Entry point: python -m memoryglobe <command>

- list:    Print memories (optionally filtered by text or tag)
- add:     Pin a new memory at a position
- delete:  Remove a memory by identifier
- route:   Great-circle distance and arc between two memories
- export:  Write memories as Markdown files with YAML frontmatter
- view:    Open the configured globe with a console host
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from memoryglobe.config import GlobeConfig, load_config
from memoryglobe.errors import MemoryGlobeError


def _setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def _open_app(config: GlobeConfig, *, headless: bool = True, host=None):
    """Build the app and load memories. ``headless`` skips opening a window."""
    from memoryglobe.core import MemoryGlobe
    from memoryglobe.engines.headless import HeadlessGlobe

    engine = HeadlessGlobe(pick_tolerance_deg=config.engine.pick_tolerance_deg) if headless else None
    app = MemoryGlobe.from_config(config, host=host, engine=engine)
    asyncio.run(app.start())
    return app


def cmd_list(args: argparse.Namespace, config: GlobeConfig) -> None:
    from memoryglobe.gallery import filter_memories
    from memoryglobe.geodesy import format_coordinates

    app = _open_app(config)
    memories = filter_memories(app.store.snapshot(), search=args.search or "", tag=args.tag)
    if not memories:
        print("(no memories)")
        return
    for m in memories:
        tags = f"  [{', '.join(m.tags)}]" if m.tags else ""
        print(f"{m.identifier}  {m.date.isoformat()}  {m.title}")
        print(f"    {format_coordinates(m.latitude, m.longitude)}{tags}")


def cmd_add(args: argparse.Namespace, config: GlobeConfig) -> None:
    from memoryglobe.creation import MemoryDraft
    from memoryglobe.memory.models import GeoPosition

    app = _open_app(config)
    app.begin(GeoPosition(args.lat, args.lon))
    memory = app.commit(
        MemoryDraft(
            title=args.title,
            description=args.description,
            date=args.date,
            image_reference=args.image,
            tags=args.tags,
        )
    )
    print(f"Saved '{memory.title}' ({memory.identifier})")


def cmd_delete(args: argparse.Namespace, config: GlobeConfig) -> None:
    app = _open_app(config)
    if args.id not in app.store:
        print(f"No memory with id {args.id}")
        return
    app.delete(args.id)
    print(f"Deleted {args.id}")


def cmd_route(args: argparse.Namespace, config: GlobeConfig) -> None:
    from memoryglobe.geodesy import (
        format_coordinates,
        great_circle_distance_km,
        interpolate_great_circle_path,
    )

    app = _open_app(config)
    a = app.store.get(args.id_a)
    b = app.store.get(args.id_b)
    distance = great_circle_distance_km(a.latitude, a.longitude, b.latitude, b.longitude)
    print(f"{a.title} → {b.title}: {distance:,.1f} km")
    for point in interpolate_great_circle_path(a.latitude, a.longitude, b.latitude, b.longitude, args.steps):
        print(f"  {format_coordinates(point.latitude, point.longitude)}  +{point.height_km:,.0f} km")


def cmd_export(args: argparse.Namespace, config: GlobeConfig) -> None:
    from memoryglobe.gallery import export_markdown

    app = _open_app(config)
    paths = export_markdown(app.store.snapshot(), Path(args.directory))
    print(f"Exported {len(paths)} memories to {args.directory}")


def cmd_view(args: argparse.Namespace, config: GlobeConfig) -> None:
    from memoryglobe.hosts.console import ConsoleHost

    app = _open_app(config, headless=False, host=ConsoleHost())
    if not app.controller.ready:
        print(f"Globe unavailable: {app.controller.init_error}", file=sys.stderr)
        sys.exit(1)
    show = getattr(app.engine, "show", None)
    if not show or not callable(show):
        print(f"Engine '{app.engine.name}' has no window; set engine.name = \"pyvista\"")
        return
    show()


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(prog="memoryglobe", description="Pin memories on a globe.")
    parser.add_argument("--config", type=Path, default=None, help="Path to memoryglobe.toml")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("list", help="List memories")
    p.add_argument("--search", default="", help="Text to find in title or description")
    p.add_argument("--tag", default=None, help="Only memories with this tag")
    p.set_defaults(func=cmd_list)

    p = sub.add_parser("add", help="Pin a new memory")
    p.add_argument("title")
    p.add_argument("--lat", type=float, required=True)
    p.add_argument("--lon", type=float, required=True)
    p.add_argument("--description", default="")
    p.add_argument("--date", default=None, help="YYYY-MM-DD (default: today)")
    p.add_argument("--tags", default="", help="Comma-separated tags")
    p.add_argument("--image", default="", help="Image URL or data URI")
    p.set_defaults(func=cmd_add)

    p = sub.add_parser("delete", help="Delete a memory")
    p.add_argument("id")
    p.set_defaults(func=cmd_delete)

    p = sub.add_parser("route", help="Distance and arc between two memories")
    p.add_argument("id_a")
    p.add_argument("id_b")
    p.add_argument("--steps", type=int, default=8)
    p.set_defaults(func=cmd_route)

    p = sub.add_parser("export", help="Export memories as Markdown")
    p.add_argument("directory")
    p.set_defaults(func=cmd_export)

    p = sub.add_parser("view", help="Open the globe")
    p.set_defaults(func=cmd_view)

    args = parser.parse_args(argv)
    config = load_config(args.config)
    _setup_logging(config.log_level)

    try:
        args.func(args, config)
    except MemoryGlobeError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
