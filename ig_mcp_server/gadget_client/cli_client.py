"""GadgetClient backed by the kubectl-gadget / ig command line tools."""

from __future__ import annotations

import asyncio
import json
import math
import secrets
from typing import Optional

from ig_mcp_server.errors import GadgetClientError
from ig_mcp_server.gadget_client.base import GadgetClient
from ig_mcp_server.models import GadgetDescriptor
from ig_mcp_server.utils.commands import run_command
from ig_mcp_server.utils.logger import get_logger

logger = get_logger(__name__)

# Attaching to a detached gadget streams for ATTACH_SECONDS; the whole call is
# bounded by RESULTS_DEADLINE regardless of the gadget's own lifetime.
ATTACH_SECONDS = 1
RESULTS_DEADLINE = 5.0
# Extra time granted on top of a foreground run's own --timeout
RUN_GRACE_SECONDS = 15.0
INFO_DEADLINE = 60.0
CONTROL_DEADLINE = 30.0


def param_flags(params: dict[str, str]) -> list[str]:
    """Render gadget parameters as CLI flags.

    The runtime reports keys as prefix+key (e.g. operator.oci.ebpf.map-fetch-interval);
    the CLI only knows the bare key.
    """
    flags = []
    for full_key, value in sorted(params.items()):
        key = full_key.rsplit(".", 1)[-1]
        flags.append(f"--{key}={value}")
    return flags


def timeout_seconds(timeout: float) -> int:
    """Whole seconds for the CLI's --timeout flag, rounded up. 0 would mean no timeout."""
    return max(1, math.ceil(timeout))


def new_gadget_id() -> str:
    """32 hex chars of randomness; not derived from the image or params."""
    return secrets.token_hex(16)


class CliGadgetClient(GadgetClient):
    """Drives `kubectl-gadget` (Kubernetes) or `ig` (Linux) as a subprocess."""

    def __init__(self, binary: str = "kubectl-gadget", remote_address: Optional[str] = None):
        self._binary = binary
        self._remote_address = remote_address

    def _connection_flags(self) -> list[str]:
        if self._remote_address:
            return [f"--remote-address={self._remote_address}"]
        return []

    async def _call(self, action: str, args: list[str], timeout: float) -> str:
        cmd = [self._binary] + args + self._connection_flags()
        logger.debug("Running gadget command", extra={"extra": {"args": cmd}})
        try:
            code, stdout, stderr = await run_command(cmd, timeout=timeout)
        except asyncio.TimeoutError:
            raise GadgetClientError(f"{action}: timed out after {timeout:.0f}s") from None
        except OSError as exc:
            raise GadgetClientError(f"{action}: {exc}") from exc
        if code != 0:
            raise GadgetClientError(
                f"{action}: {stderr or f'command failed with exit code {code}'}",
                stderr=stderr,
            )
        return stdout

    async def get_info(self, image: str) -> GadgetDescriptor:
        stdout = await self._call(
            "get gadget info",
            ["image", "inspect", image, "--output", "json"],
            timeout=INFO_DEADLINE,
        )
        try:
            info = json.loads(stdout)
        except json.JSONDecodeError as exc:
            raise GadgetClientError(f"get gadget info: invalid JSON: {exc}") from exc

        try:
            return GadgetDescriptor.from_info(
                image_reference=info.get("imageName") or image,
                raw_metadata=info.get("metadata") or "",
                params=info.get("params") or [],
            )
        except ValueError as exc:
            raise GadgetClientError(f"get gadget info: {exc}") from exc

    async def run(self, image: str, params: dict[str, str], timeout: float) -> str:
        seconds = timeout_seconds(timeout)
        args = ["run", image, "--output", "json", f"--timeout={seconds}"]
        return await self._call(
            "running gadget",
            args + param_flags(params),
            timeout=seconds + RUN_GRACE_SECONDS,
        )

    async def run_detached(self, image: str, params: dict[str, str]) -> str:
        gadget_id = new_gadget_id()
        args = ["run", image, "--detach", f"--id={gadget_id}"]
        await self._call("running gadget", args + param_flags(params), timeout=CONTROL_DEADLINE)
        logger.info("Started detached gadget", extra={"image": image, "gadget_id": gadget_id})
        return gadget_id

    async def results(self, gadget_id: str) -> str:
        args = ["attach", gadget_id, "--output", "json", f"--timeout={ATTACH_SECONDS}"]
        return await self._call("attaching to gadget", args, timeout=RESULTS_DEADLINE)

    async def stop(self, gadget_id: str) -> None:
        await self._call("stopping gadget", ["delete", gadget_id], timeout=CONTROL_DEADLINE)
        logger.info("Stopped detached gadget", extra={"gadget_id": gadget_id})
