"""Credential stage for the registry.

Generates a random username and password for the run, keeps a local copy for
tools that push images, and stores an htpasswd file in the cluster so the
registry can authenticate clients.
"""

from dataclasses import dataclass
import logging
import os
from pathlib import Path
import secrets
import string

import aiofiles
from mashumaro import DataClassDictMixin
from mashumaro.codecs.yaml import yaml_decode, yaml_encode
from mashumaro.exceptions import InvalidFieldValue, MissingField
import yaml

from testenv_lcr import command, manifest
from testenv_lcr.cluster import ClusterClient
from testenv_lcr.config import Envs
from testenv_lcr.context import trace_context
from testenv_lcr.eventual import EventualConfig
from testenv_lcr.exceptions import (
    AlreadyExistsError,
    ClusterException,
    InputException,
    ResourceCreateError,
)
from testenv_lcr.manifest import Mount

from .keys import CREDENTIAL, CredentialReference

__all__ = [
    "Credentials",
    "CredentialStage",
    "read_credentials",
]

_LOGGER = logging.getLogger(__name__)

HTPASSWD_IMAGE = "docker.io/httpd:2"
CREDENTIAL_SECRET_NAME = f"{manifest.NAME}-credentials"
CREDENTIAL_MOUNT = Mount(directory="/etc/credentials", filename="credential.htpasswd")

CREDENTIAL_LENGTH = 32
_ALPHABET = string.ascii_letters + string.digits


def generate_random_string(length: int = CREDENTIAL_LENGTH) -> str:
    """Return a random alphanumeric string from a cryptographic source."""
    return "".join(secrets.choice(_ALPHABET) for _ in range(length))


@dataclass
class Credentials(DataClassDictMixin):
    """Username and password of the registry."""

    username: str
    password: str

    @classmethod
    def generate(cls) -> "Credentials":
        """Generate new random credentials."""
        return cls(username=generate_random_string(), password=generate_random_string())

    def yaml(self) -> str:
        """Return the YAML document written to the credential file."""
        return yaml_encode(self, Credentials)


async def write_private_file(path: Path, content: str | bytes) -> None:
    """Write a file readable only by its owner."""
    path.parent.mkdir(parents=True, exist_ok=True)
    mode = "wb" if isinstance(content, bytes) else "w"
    async with aiofiles.open(
        path, mode=mode, opener=lambda p, flags: os.open(p, flags, 0o600)
    ) as out:
        await out.write(content)
    # The opener mode only applies when the file is created
    os.chmod(path, 0o600)


async def read_credentials(path: Path) -> Credentials:
    """Read the credentials written by a previous setup."""
    try:
        async with aiofiles.open(path) as cred_file:
            content = await cred_file.read()
    except OSError as err:
        raise InputException(f"Unable to read credentials {path}: {err}") from err
    try:
        return yaml_decode(content, Credentials)
    except (yaml.YAMLError, MissingField, InvalidFieldValue) as err:
        raise InputException(f"Invalid credentials file {path}: {err}") from err


class CredentialStage:
    """Sets up the credentials of the registry."""

    def __init__(
        self,
        client: ClusterClient,
        envs: Envs,
        credential_path: Path,
        namespace: str,
        eventual_config: EventualConfig,
        credentials: Credentials | None = None,
    ) -> None:
        """Initialize CredentialStage."""
        self._client = client
        self._envs = envs
        self._credential_path = credential_path
        self._namespace = namespace
        self._ec = eventual_config
        self.credentials = credentials or Credentials.generate()

    async def setup(self) -> None:
        """Write the credentials, store their hash in the cluster and publish them."""
        with trace_context("Credentials"):
            await write_private_file(self._credential_path, self.credentials.yaml())
            _LOGGER.info("Wrote registry credentials to %s", self._credential_path)

            htpasswd = await self._hash_credentials()
            secret = manifest.secret(
                CREDENTIAL_SECRET_NAME,
                self._namespace,
                {
                    CREDENTIAL_MOUNT.filename: htpasswd,
                    "username": self.credentials.username.encode(),
                    "password": self.credentials.password.encode(),
                },
                labels=manifest.APP_LABELS,
            )
            await self._create_or_replace(secret)

            self._ec.set_value(
                CREDENTIAL,
                CredentialReference(
                    secret_name=CREDENTIAL_SECRET_NAME, mount=CREDENTIAL_MOUNT
                ),
            )

    async def _hash_credentials(self) -> bytes:
        """Return the credentials in bcrypt htpasswd format."""
        cmd = command.Command(
            self._envs.engine(
                "run",
                "--rm",
                "-i",
                "--entrypoint",
                "htpasswd",
                HTPASSWD_IMAGE,
                "-Bbn",
                self.credentials.username,
                self.credentials.password,
            ),
            secrets=[self.credentials.password],
            timeout=300.0,
        )
        out = await command.run(cmd)
        if not out:
            raise InputException("htpasswd produced an empty credential file")
        return f"{out}\n".encode()

    async def _create_or_replace(self, secret: dict) -> None:
        """Create the secret, replacing one left over from an earlier run.

        The secret must hold the credentials just written locally, so an
        existing one is never reused.
        """
        try:
            try:
                await self._client.create(secret)
            except AlreadyExistsError:
                _LOGGER.info(
                    "Replacing existing secret %s/%s",
                    self._namespace,
                    CREDENTIAL_SECRET_NAME,
                )
                await self._client.delete(
                    manifest.secret_key(CREDENTIAL_SECRET_NAME, self._namespace)
                )
                await self._client.create(secret)
        except ClusterException as err:
            raise ResourceCreateError(
                f"Secret {self._namespace}/{CREDENTIAL_SECRET_NAME}", str(err)
            ) from err
