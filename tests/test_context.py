"""Tests for stage tracing."""

import asyncio

from testenv_lcr.context import current_stage, trace_context


async def test_current_stage() -> None:
    """Test nested stages and their inheritance by tasks."""
    assert current_stage() == "<root>"

    async def child() -> str:
        with trace_context("Child"):
            return current_stage()

    with trace_context("Setup"):
        assert current_stage() == "Setup"
        assert await asyncio.create_task(child()) == "Setup > Child"
        assert current_stage() == "Setup"

    assert current_stage() == "<root>"


def test_stage_reset_after_failure() -> None:
    """Test the stage is restored when the traced block raises."""
    try:
        with trace_context("Failing"):
            raise ValueError("boom")
    except ValueError:
        pass
    assert current_stage() == "<root>"
