"""testenv-lcr setup and teardown actions."""

from argparse import ArgumentParser, _SubParsersAction as SubParsersAction
import logging
from typing import cast

from testenv_lcr import manifest
from testenv_lcr.exceptions import LcrException
from testenv_lcr.provision import Provisioner, Teardown
from testenv_lcr.push import RegistryPusher

from . import common

_LOGGER = logging.getLogger(__name__)


class SetupAction:
    """testenv-lcr setup action."""

    @classmethod
    def register(
        cls, subparsers: SubParsersAction  # type: ignore[type-arg]
    ) -> ArgumentParser:
        """Register the subparser commands."""
        args = cast(
            ArgumentParser,
            subparsers.add_parser(
                "setup",
                help="Set up the local container registry in the kind cluster",
                description="""Deploys a TLS secured registry with generated
                    credentials, waits for it to be ready, and writes the
                    credentials and CA certificate to the configured paths.
                    Anything partially created is torn down on failure.""",
            ),
        )
        args.set_defaults(cls=cls)
        return args

    async def run(  # type: ignore[no-untyped-def]
        self,
        **kwargs,  # pylint: disable=unused-argument
    ) -> None:
        """Async Action implementation."""
        config = common.load_config(**kwargs)
        if not config.registry.enabled:
            print(f"{manifest.NAME} is disabled")
            return
        envs = common.load_envs()
        client = common.create_client(config)

        print(f"Setting up {manifest.NAME}")
        try:
            result = await Provisioner(config, envs, client).setup()
        except Exception as err:
            common.print_errors("Setup failed", err)
            print(f"Tearing down {manifest.NAME}")
            if teardown_errors := await Teardown(config, envs, client).run():
                common.print_errors("Teardown failed", teardown_errors)
            raise

        for secret_name in result.image_pull_secrets.values():
            print(f"Created image pull secret: {secret_name}")
        if result.image_pull_secret_errors:
            common.print_errors("Warning", result.image_pull_secret_errors)

        if config.registry.images:
            try:
                await RegistryPusher(config, envs).push(config.registry.images)
            except LcrException as err:
                print(f"Warning: failed to push images: {err}")

        print(f"Registry: {result.registry_fqdn}")
        print(f"Credentials: {result.credential_path}")
        print(f"CA certificate: {result.ca_crt_path}")
        print(f"Successfully set up {manifest.NAME}")


class TeardownAction:
    """testenv-lcr teardown action."""

    @classmethod
    def register(
        cls, subparsers: SubParsersAction  # type: ignore[type-arg]
    ) -> ArgumentParser:
        """Register the subparser commands."""
        args = cast(
            ArgumentParser,
            subparsers.add_parser(
                "teardown",
                help="Tear down the local container registry",
                description="""Deletes the registry namespace, labelled image
                    pull secrets, cert-manager, the hosts entry and local files.
                    Steps that fail are reported and the rest still run.""",
            ),
        )
        args.set_defaults(cls=cls)
        return args

    async def run(  # type: ignore[no-untyped-def]
        self,
        **kwargs,  # pylint: disable=unused-argument
    ) -> None:
        """Async Action implementation."""
        config = common.load_config(**kwargs)
        envs = common.load_envs()
        client = common.create_client(config)

        print(f"Tearing down {manifest.NAME}")
        teardown = Teardown(config, envs, client)
        errors = await teardown.run()
        for name in teardown.deleted:
            print(f"Deleted {name}")
        if errors:
            common.print_errors("Warning", errors)
            return
        print(f"Torn down {manifest.NAME} successfully")
