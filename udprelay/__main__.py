"""``python -m udprelay server|client``"""

from __future__ import annotations

import argparse

from colorama import init

from . import client, server


def main() -> None:
    init(autoreset=True)
    parser = argparse.ArgumentParser(prog="udprelay", description="UDP chat relay")
    sub = parser.add_subparsers(dest="mode", required=True)

    srv = sub.add_parser("server", help="run the relay server")
    server.add_arguments(srv)
    srv.set_defaults(run=server.run)

    cli = sub.add_parser("client", help="run a chat client")
    client.add_arguments(cli)
    cli.set_defaults(run=client.run)

    args = parser.parse_args()
    args.run(args, parser)


if __name__ == "__main__":
    main()
