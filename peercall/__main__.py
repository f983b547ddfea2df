"""
Main entry point for the peercall module.
Run with: python -m peercall [serve | create-room | join ROOM_ID]
"""
import argparse
import asyncio
import sys

from .core.config import ServerConfig
from .core.exceptions import PeerCallError
from .core.logging import setup_logging


def main(argv=None):
    parser = argparse.ArgumentParser(prog="peercall", description="Peer-to-peer video call signaling")
    subparsers = parser.add_subparsers(dest="command")
    subparsers.add_parser("serve", help="run the signaling coordinator (default)")
    subparsers.add_parser("create-room", help="create a room and print its id")
    join = subparsers.add_parser("join", help="join a room with the local camera")
    join.add_argument("room_id")
    args = parser.parse_args(argv)

    config = ServerConfig()

    if args.command in (None, "serve"):
        from .server import main as serve
        asyncio.run(serve(config))
        return 0

    from . import client
    setup_logging(level=config.log_level, log_file="peercall_client.log")
    try:
        if args.command == "create-room":
            print(asyncio.run(client.create_room(config)))
        else:
            asyncio.run(client.join_room(args.room_id, config))
    except PeerCallError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
