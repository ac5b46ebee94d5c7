"""Command line tool for setting up a local container registry for test environments."""

import argparse
import asyncio
import logging
import pathlib
import sys
import traceback

from testenv_lcr.exceptions import LcrException

from . import images, kind, registry, version

_LOGGER = logging.getLogger(__name__)


def _make_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Command line utility for a local container registry in a kind cluster.",
    )
    parser.add_argument(
        "--log-level", choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
    )
    parser.add_argument(
        "--config",
        type=pathlib.Path,
        default=None,
        help="Path to the project configuration file (default testenv.yaml)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command", required=True)

    registry.SetupAction.register(subparsers)
    registry.TeardownAction.register(subparsers)
    images.PushAction.register(subparsers)
    images.PushAllAction.register(subparsers)
    images.CreateImagePullSecretAction.register(subparsers)
    images.ListImagePullSecretsAction.register(subparsers)
    kind.KindSetupAction.register(subparsers)
    kind.KindTeardownAction.register(subparsers)
    version.VersionAction.register(subparsers)
    return parser


def main(argv: list[str] | None = None) -> None:
    """testenv-lcr command line tool main entry point."""
    parser = _make_parser()
    args = parser.parse_args(argv)

    if args.log_level:
        logging.basicConfig(level=args.log_level)

    action = args.cls()
    try:
        asyncio.run(action.run(**vars(args)))
    except (LcrException, ExceptionGroup) as err:
        if args.log_level == "DEBUG":
            traceback.print_exc(file=sys.stderr)
        print("testenv-lcr error: ", err, file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
