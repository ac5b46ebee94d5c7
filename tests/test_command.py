"""Tests for command library."""

import pytest

from testenv_lcr.command import Command, run
from testenv_lcr.exceptions import CommandException, HelmException


async def test_command() -> None:
    """Test stdout parsing of a command."""
    result = await run(Command(["echo", "Hello"]))
    assert result == "Hello"


async def test_command_stdin() -> None:
    """Test passing input to a command."""
    result = await run(Command(["sed", "s/Hello/Goodbye/"]), stdin=b"Hello")
    assert result == "Goodbye"


async def test_command_env() -> None:
    """Test extra environment variables are passed to the child only."""
    result = await run(
        Command(["sh", "-c", "echo $KUBECONFIG"], env={"KUBECONFIG": "/tmp/kubeconfig"})
    )
    assert result == "/tmp/kubeconfig"


async def test_failed_command() -> None:
    """Test a failing command."""
    with pytest.raises(CommandException, match="return code 1"):
        await run(Command(["/bin/false"]))


async def test_failed_command_custom_exception() -> None:
    """Test the exception type of a failing command can be overridden."""
    with pytest.raises(HelmException, match="boom"):
        await run(Command(["sh", "-c", "echo boom >&2; exit 2"], exc=HelmException))


async def test_allowed_return_code() -> None:
    """Test a non-zero return code that is allowed."""
    result = await run(Command(["sh", "-c", "echo ok; exit 3"], retcodes=[3]))
    assert result == "ok"


async def test_command_not_found() -> None:
    """Test a command that cannot be started."""
    with pytest.raises(CommandException, match="could not be started"):
        await run(Command(["testenv-lcr-does-not-exist"]))


async def test_command_timeout() -> None:
    """Test a command that runs longer than its timeout."""
    with pytest.raises(CommandException, match="timed out"):
        await run(Command(["sleep", "5"], timeout=0.1))


def test_secrets_are_masked() -> None:
    """Test secret arguments are not rendered in logs."""
    cmd = Command(["htpasswd", "-Bbn", "user", "hunter2"], secrets=["hunter2"])
    assert str(cmd) == "htpasswd -Bbn user ***"
