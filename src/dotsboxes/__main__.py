"""CLI entry point: python -m dotsboxes {host,join,list}"""

import argparse
import logging
import sys
import threading
from pathlib import Path

from dotenv import load_dotenv

from dotsboxes.config import ConfigError, apply_env_overrides, load_config
from dotsboxes.core.grid import Grid, GridPoint, MalformedCommand
from dotsboxes.core.session import GameSession
from dotsboxes.net.directory import DirectoryClient
from dotsboxes.net.service import HostService, ReplicaService
from dotsboxes.net.transport import DEFAULT_PORT, split_address
from dotsboxes.protocol.base import Engine, Hooks
from dotsboxes.protocol.commands import parse_orientation
from dotsboxes.protocol.host import HostEngine
from dotsboxes.protocol.replica import ReplicaEngine

HELP = "commands: start | restart | stop | play <x,y> <ver|hor> | chat <text> | name <name> | quit"


def _console_hooks(closed: threading.Event) -> Hooks:
    return Hooks(
        on_chat=lambda text: print(f"[chat] {text}"),
        on_status=lambda text: print(f"[status] {text}"),
        on_warning=lambda text: print(f"[!] {text}"),
        on_closed=closed.set,
    )


def _parse_move(rest: str) -> tuple[GridPoint, bool]:
    point, _, orientation = rest.partition(" ")
    return GridPoint.parse(point), parse_orientation(orientation.strip())


def _run_console(service, engine: Engine, lifecycle: dict, closed: threading.Event) -> None:
    """Read verbs from stdin and submit them to the service actor."""
    print(HELP)
    for raw in sys.stdin:
        if closed.is_set():
            break
        verb, _, rest = raw.strip().partition(" ")
        if not verb:
            continue
        if verb == "quit":
            break
        if verb in lifecycle:
            service.submit(lifecycle[verb])
        elif verb == "play":
            try:
                point, vertical = _parse_move(rest)
            except MalformedCommand as e:
                print(f"[!] {e}")
                continue
            service.submit(engine.on_move_attempt, point, vertical)
        elif verb == "chat":
            service.submit(engine.send_chat, rest)
        elif verb == "name":
            service.submit(engine.on_rename_request, rest)
        elif verb == "size" and "size" in lifecycle:
            try:
                grid = Grid.parse(rest)
            except MalformedCommand as e:
                print(f"[!] {e}")
                continue
            service.submit(lifecycle["size"], grid.width, grid.height)
        else:
            print(HELP)
    service.stop()


def _cmd_host(args) -> int:
    try:
        config = apply_env_overrides(load_config(args.config))
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    if args.port is not None:
        config.server.port = args.port
    if args.name:
        config.server.name = args.name
    if args.max_players is not None:
        config.server.max_players = args.max_players
    if args.width:
        config.grid.width = args.width
    if args.height:
        config.grid.height = args.height
    if args.advertise:
        config.directory.enabled = True

    directory = None
    if config.directory.enabled:
        directory = DirectoryClient(
            config.directory.host,
            config.directory.port,
            name=config.server.name,
            max_players=config.server.max_players,
        )

    closed = threading.Event()
    engine = HostEngine(
        GameSession(Grid(config.grid.width, config.grid.height)),
        host_name=config.server.name,
        max_players=config.server.max_players,
        hooks=_console_hooks(closed),
        telemetry_dir=config.telemetry.output_dir if config.telemetry.enabled else None,
        on_population=directory.update_current if directory else None,
    )
    service = HostService(
        engine, bind=config.server.bind, port=config.server.port, directory=directory,
    )
    try:
        service.start()
    except OSError as e:
        print(f"Error: cannot listen on port {config.server.port}: {e}", file=sys.stderr)
        return 1
    print(f"Hosting '{config.server.name}' on port {service.port} ({config.grid.width}x{config.grid.height})")
    _run_console(
        service,
        engine,
        {
            "start": engine.start_game,
            "restart": engine.restart_game,
            "stop": engine.stop_game,
            "size": engine.resize_grid,
        },
        closed,
    )
    return 0


def _cmd_join(args) -> int:
    try:
        host, port = split_address(args.address, args.port or DEFAULT_PORT)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    closed = threading.Event()
    engine = ReplicaEngine(GameSession(), hooks=_console_hooks(closed))
    service = ReplicaService(engine, host, port)
    try:
        service.start()
    except OSError as e:
        print(f"Error: cannot connect to {host}:{port}: {e}", file=sys.stderr)
        return 1
    print(f"Connected to {host}:{port}")
    _run_console(
        service,
        engine,
        {
            "start": engine.request_start,
            "restart": engine.request_restart,
            "stop": engine.request_stop,
        },
        closed,
    )
    return 0


def _cmd_list(args) -> int:
    try:
        config = load_config(args.config)
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    client = DirectoryClient(config.directory.host, config.directory.port)
    listings = client.fetch_listings(wait=args.wait)
    client.close()
    if not listings:
        print("No servers listed.")
    for listing in listings:
        print(f"  {listing.address:24s} {listing.label}")
    return 0


def main(argv: list[str] | None = None) -> None:
    load_dotenv()
    parser = argparse.ArgumentParser(
        prog="dotsboxes",
        description="Networked dots and boxes",
    )
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "-v", "--verbose",
        action="store_true",
        default=False,
        help="Show network traffic",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    host = sub.add_parser("host", parents=[common], help="Host a game")
    host.add_argument("--config", type=Path, default=None, help="Path to YAML config file")
    host.add_argument("--port", type=int, default=None)
    host.add_argument("--width", type=int, default=None, help="Dots per row")
    host.add_argument("--height", type=int, default=None, help="Dots per column")
    host.add_argument("--max-players", type=int, default=None, help="0 = unlimited")
    host.add_argument("--name", default=None, help="Server name")
    host.add_argument("--advertise", action="store_true", help="List on the directory")
    host.set_defaults(func=_cmd_host)

    join = sub.add_parser("join", parents=[common], help="Join a hosted game")
    join.add_argument("address", help="host[:port]")
    join.add_argument("--port", type=int, default=None)
    join.set_defaults(func=_cmd_join)

    listing = sub.add_parser("list", parents=[common], help="Show the public server list")
    listing.add_argument("--config", type=Path, default=None, help="Path to YAML config file")
    listing.add_argument("--wait", type=float, default=2.0, help="Seconds to wait for replies")
    listing.set_defaults(func=_cmd_list)

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    sys.exit(args.func(args))


if __name__ == "__main__":
    main()
