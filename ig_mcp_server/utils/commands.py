"""Async subprocess helper shared by the CLI-backed clients."""

import asyncio
from typing import Optional, Tuple


async def run_command(args: list[str], timeout: Optional[float] = None) -> Tuple[int, str, str]:
    """Run a command without a shell. Kills it and raises TimeoutError past `timeout`."""
    proc = await asyncio.create_subprocess_exec(
        *args, stdout=asyncio.subprocess.PIPE, stderr=asyncio.subprocess.PIPE)
    try:
        stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        proc.kill()
        await proc.wait()
        raise
    return proc.returncode, stdout.decode(errors="replace"), stderr.decode(errors="replace").strip()
