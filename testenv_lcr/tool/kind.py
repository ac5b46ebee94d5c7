"""testenv-lcr actions for the kind cluster."""

from argparse import ArgumentParser, _SubParsersAction as SubParsersAction
import logging
from typing import cast

from testenv_lcr.kind import KindCluster

from . import common

_LOGGER = logging.getLogger(__name__)


class KindSetupAction:
    """testenv-lcr kind-setup action."""

    @classmethod
    def register(
        cls, subparsers: SubParsersAction  # type: ignore[type-arg]
    ) -> ArgumentParser:
        """Register the subparser commands."""
        args = cast(
            ArgumentParser,
            subparsers.add_parser(
                "kind-setup",
                help="Create the kind cluster named after the project",
                description="""Creates the cluster, waits up to 5 minutes for
                    it to be ready and writes its kubeconfig to the configured
                    path.""",
            ),
        )
        args.set_defaults(cls=cls)
        return args

    async def run(  # type: ignore[no-untyped-def]
        self,
        **kwargs,  # pylint: disable=unused-argument
    ) -> None:
        """Async Action implementation."""
        cluster = KindCluster(common.load_config(**kwargs), common.load_envs())
        await cluster.create()
        print(f"kind cluster {cluster.name} set up successfully")


class KindTeardownAction:
    """testenv-lcr kind-teardown action."""

    @classmethod
    def register(
        cls, subparsers: SubParsersAction  # type: ignore[type-arg]
    ) -> ArgumentParser:
        """Register the subparser commands."""
        args = cast(
            ArgumentParser,
            subparsers.add_parser(
                "kind-teardown",
                help="Delete the kind cluster and its kubeconfig",
            ),
        )
        args.set_defaults(cls=cls)
        return args

    async def run(  # type: ignore[no-untyped-def]
        self,
        **kwargs,  # pylint: disable=unused-argument
    ) -> None:
        """Async Action implementation."""
        cluster = KindCluster(common.load_config(**kwargs), common.load_envs())
        await cluster.delete()
        print(f"kind cluster {cluster.name} torn down successfully")
