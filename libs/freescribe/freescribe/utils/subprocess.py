"""Async-friendly subprocess helpers.

Commands run through `subprocess.run()` on a worker thread via
`asyncio.to_thread()`; whole audio files go in on stdin and raw PCM comes back
on stdout without touching the event loop.
"""

from __future__ import annotations

import asyncio
import subprocess
from dataclasses import dataclass
from typing import Sequence


@dataclass(frozen=True)
class RunResult:
    returncode: int
    stdout: bytes
    stderr: bytes

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    def stderr_text(self, limit: int = 2000) -> str:
        """Decoded stderr tail, enough to explain an ffmpeg failure."""
        text = self.stderr.decode("utf-8", errors="replace").strip()
        return text[-limit:] if limit and len(text) > limit else text


async def run_subprocess(
    args: Sequence[str],
    *,
    input: bytes | None = None,
    timeout_s: float | None = None,
) -> RunResult:
    cmd = [str(a) for a in args]

    def _run() -> subprocess.CompletedProcess[bytes]:
        return subprocess.run(
            cmd,
            input=input,
            stdin=None if input is not None else subprocess.DEVNULL,
            capture_output=True,
            check=False,
            timeout=timeout_s,
        )

    cp = await asyncio.to_thread(_run)
    return RunResult(returncode=int(cp.returncode), stdout=cp.stdout or b"", stderr=cp.stderr or b"")
