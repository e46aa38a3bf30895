import pytest

from freescribe.utils.subprocess import run_subprocess


@pytest.mark.asyncio
async def test_run_subprocess_executes_command() -> None:
    result = await run_subprocess(["bash", "-c", "echo -n hi"])
    assert result.returncode == 0
    assert result.stdout == b"hi"


@pytest.mark.asyncio
async def test_run_subprocess_feeds_stdin() -> None:
    result = await run_subprocess(["cat"], input=b"pcm bytes")
    assert result.returncode == 0
    assert result.stdout == b"pcm bytes"


@pytest.mark.asyncio
async def test_run_result_reports_failures() -> None:
    result = await run_subprocess(["bash", "-c", "echo -n 'bad input' >&2; exit 3"])
    assert not result.ok
    assert result.returncode == 3
    assert result.stderr_text() == "bad input"
    assert result.stderr_text(limit=5) == "input"
