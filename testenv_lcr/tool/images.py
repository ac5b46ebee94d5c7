"""testenv-lcr actions for pushing images and managing image pull secrets."""

from argparse import ArgumentParser, _SubParsersAction as SubParsersAction
import logging
from pathlib import Path
from typing import cast

from testenv_lcr.exceptions import InputException
from testenv_lcr.provision.credential import read_credentials
from testenv_lcr.provision.image_pull_secret import (
    ImagePullSecret,
    list_image_pull_secrets,
)
from testenv_lcr.provision.registry import registry_fqdn
from testenv_lcr.push import RegistryPusher

from . import common

_LOGGER = logging.getLogger(__name__)


class PushAction:
    """testenv-lcr push action."""

    @classmethod
    def register(
        cls, subparsers: SubParsersAction  # type: ignore[type-arg]
    ) -> ArgumentParser:
        """Register the subparser commands."""
        args = cast(
            ArgumentParser,
            subparsers.add_parser(
                "push",
                help="Push a local image to the registry",
                description="""Forwards the registry port, logs in with the
                    generated credentials, then tags and pushes the image.""",
            ),
        )
        args.add_argument("image", type=str, help="Name of the local image")
        args.set_defaults(cls=cls)
        return args

    async def run(  # type: ignore[no-untyped-def]
        self,
        image: str,
        **kwargs,  # pylint: disable=unused-argument
    ) -> None:
        """Async Action implementation."""
        config = common.load_config(**kwargs)
        pushed = await RegistryPusher(config, common.load_envs()).push([image])
        for name in pushed:
            print(f"Pushed image: {name}")


class PushAllAction:
    """testenv-lcr push-all action."""

    @classmethod
    def register(
        cls, subparsers: SubParsersAction  # type: ignore[type-arg]
    ) -> ArgumentParser:
        """Register the subparser commands."""
        args = cast(
            ArgumentParser,
            subparsers.add_parser(
                "push-all",
                help="Push every image listed in the configuration",
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
        if not config.registry.images:
            print("No images configured")
            return
        pushed = await RegistryPusher(config, common.load_envs()).push(
            config.registry.images
        )
        for name in pushed:
            print(f"Pushed image: {name}")


class CreateImagePullSecretAction:
    """testenv-lcr create-image-pull-secret action."""

    @classmethod
    def register(
        cls, subparsers: SubParsersAction  # type: ignore[type-arg]
    ) -> ArgumentParser:
        """Register the subparser commands."""
        args = cast(
            ArgumentParser,
            subparsers.add_parser(
                "create-image-pull-secret",
                help="Create an image pull secret for the registry in a namespace",
                description="""Uses the credentials written by setup. The
                    namespace is created when it does not exist.""",
            ),
        )
        args.add_argument("namespace", type=str, help="Namespace of the secret")
        args.add_argument(
            "secret_name",
            type=str,
            nargs="?",
            default=None,
            help="Name of the secret, defaults to the configured name",
        )
        args.set_defaults(cls=cls)
        return args

    async def run(  # type: ignore[no-untyped-def]
        self,
        namespace: str,
        secret_name: str | None,
        **kwargs,  # pylint: disable=unused-argument
    ) -> None:
        """Async Action implementation."""
        config = common.load_config(**kwargs)
        if not config.registry.enabled:
            print("Local container registry is disabled")
            return
        if not namespace:
            raise InputException("A namespace is required")
        credentials = await read_credentials(Path(config.registry.credential_path))
        pull_secret = ImagePullSecret(
            common.create_client(config),
            secret_name or config.registry.image_pull_secret_name,
            registry_fqdn(config.registry.namespace),
            credentials,
        )
        full_name = await pull_secret.create_in_namespace(namespace)
        print(f"Created image pull secret: {full_name}")


class ListImagePullSecretsAction:
    """testenv-lcr list-image-pull-secrets action."""

    @classmethod
    def register(
        cls, subparsers: SubParsersAction  # type: ignore[type-arg]
    ) -> ArgumentParser:
        """Register the subparser commands."""
        args = cast(
            ArgumentParser,
            subparsers.add_parser(
                "list-image-pull-secrets",
                help="List the image pull secrets created by testenv-lcr",
            ),
        )
        args.add_argument(
            "namespace",
            type=str,
            nargs="?",
            default=None,
            help="Only list secrets in this namespace",
        )
        args.set_defaults(cls=cls)
        return args

    async def run(  # type: ignore[no-untyped-def]
        self,
        namespace: str | None,
        **kwargs,  # pylint: disable=unused-argument
    ) -> None:
        """Async Action implementation."""
        config = common.load_config(**kwargs)
        secrets = await list_image_pull_secrets(common.create_client(config), namespace)
        if not secrets:
            print("No image pull secrets found")
            return
        print(f"Found {len(secrets)} image pull secret(s):")
        for info in secrets:
            print(f"  - {info.full_name} (created: {info.created_at})")
