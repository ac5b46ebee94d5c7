"""testenv-lcr version action."""

from argparse import ArgumentParser, _SubParsersAction as SubParsersAction
from typing import cast

from testenv_lcr import version


class VersionAction:
    """testenv-lcr version action."""

    @classmethod
    def register(
        cls, subparsers: SubParsersAction  # type: ignore[type-arg]
    ) -> ArgumentParser:
        """Register the subparser commands."""
        args = cast(
            ArgumentParser,
            subparsers.add_parser("version", help="Print version information"),
        )
        args.set_defaults(cls=cls)
        return args

    async def run(  # type: ignore[no-untyped-def]
        self,
        **kwargs,  # pylint: disable=unused-argument
    ) -> None:
        """Async Action implementation."""
        line = f"testenv-lcr {version.package_version()}"
        if revision := version.git_revision():
            line += f" ({revision})"
        print(line)
