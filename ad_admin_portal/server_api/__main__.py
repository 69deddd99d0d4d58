from __future__ import annotations
from typing import Callable, Any
from types import CoroutineType
from argparse import ArgumentParser, Namespace
import asyncio
import logging


async def _check(args: Namespace) -> None:
    from . import get_settings

    settings = get_settings()
    directory = settings.ldap.create_directory()
    print(f"bound as {await directory.check()}")
    print(f"base dn: {directory.base_dn}")


async def _ous(args: Namespace) -> None:
    from . import get_settings
    from ..ou_tree import OuNode, build_tree

    def show(nodes: tuple[OuNode, ...], depth: int) -> None:
        for node in nodes:
            print(f"{'  ' * depth}{node.name}  ({node.distinguished_name})")
            show(node.children, depth + 1)

    directory = get_settings().ldap.create_directory()
    show(build_tree(await directory.get_organizational_units()), 0)


def _serve(args: Namespace) -> None:
    import uvicorn

    uvicorn.run(
        "ad_admin_portal.server_api:app",
        host=args.host,
        port=args.port,
        log_level=args.log_level.lower(),
    )


def _run(command: Callable[[Namespace], CoroutineType[Any, Any, None]]):
    def run(args: Namespace) -> None:
        asyncio.run(command(args))

    return run


def _main():
    parser = ArgumentParser(prog="python -m ad_admin_portal.server_api")
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=("DEBUG", "INFO", "WARNING", "ERROR"),
    )
    subparsers = parser.add_subparsers(required=True)
    subparser = subparsers.add_parser("serve", help="Run the HTTP API")
    subparser.add_argument("--host", default="127.0.0.1")
    subparser.add_argument("--port", type=int, default=8000)
    subparser.set_defaults(command=_serve)
    subparser = subparsers.add_parser(
        "check", help="Bind to the directory with the service account"
    )
    subparser.set_defaults(command=_run(_check))
    subparser = subparsers.add_parser(
        "ous", help="Print organizational unit tree"
    )
    subparser.set_defaults(command=_run(_ous))
    args = parser.parse_args()
    logging.basicConfig(
        level=args.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    args.command(args)


_main()
