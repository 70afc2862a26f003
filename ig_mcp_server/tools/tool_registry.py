"""
Tool registry: the authoritative set of tools exposed to the agent.

Gadget tools are synthesized at runtime from each image's metadata. Subscribers
(the transport) are told about every change to the set.
"""

from __future__ import annotations

import asyncio
from typing import Callable, Optional

from ig_mcp_server.config import ServerConfig
from ig_mcp_server.deployer import Deployer, DeploymentProbe, wait_until_deployed
from ig_mcp_server.errors import DeploymentError
from ig_mcp_server.gadget_client.base import GadgetClient
from ig_mcp_server.models import GadgetDescriptor
from ig_mcp_server.tools.admin_tools import build_admin_tools
from ig_mcp_server.tools.handlers import GadgetHandler, RegisteredTool
from ig_mcp_server.tools.synthesis import synthesize
from ig_mcp_server.utils.logger import get_logger

logger = get_logger(__name__)

# Upper bound on simultaneous metadata fetches against the runtime
MAX_CONCURRENT_FETCHES = 8

ToolSetCallback = Callable[[list[RegisteredTool]], None]


class GadgetToolRegistry:
    """Maps tool names to (definition, handler) and publishes changes.

    The tool dict is replaced wholesale under the lock on every change, so a
    reader holding a reference never sees a half-built set.
    """

    def __init__(
        self,
        client: GadgetClient,
        config: ServerConfig,
        deployer: Optional[Deployer] = None,
        probe: Optional[DeploymentProbe] = None,
    ):
        self._client = client
        self._config = config
        self._deployer = deployer
        self._probe = probe
        self._tools: dict[str, RegisteredTool] = {}
        self._callbacks: list[ToolSetCallback] = []
        self._lock = asyncio.Lock()
        self._images: list[str] = []
        self._pending: set[asyncio.Task] = set()

    @property
    def environment(self) -> str:
        return self._config.environment

    def subscribe(self, callback: ToolSetCallback) -> None:
        self._callbacks.append(callback)

    def tools(self) -> list[RegisteredTool]:
        return list(self._tools.values())

    def get(self, name: str) -> Optional[RegisteredTool]:
        return self._tools.get(name)

    # ------------------------------------------------------------------
    # Bootstrap
    # ------------------------------------------------------------------

    async def prepare(self, images: list[str]) -> None:
        """Register admin tools, then gadget tools if the runtime is reachable.

        Never fails: problems with the runtime or single images are logged and
        the affected gadget tools are left out.
        """
        self._images = list(images)
        admin = build_admin_tools(
            self._client, self._config, self._deployer, self._probe,
            on_deployed=self._schedule_refresh,
        )
        async with self._lock:
            self._install(admin)

        if await self._runtime_available():
            await self.register_gadgets(self._images, notify=False)

        await self._notify()

    async def _runtime_available(self) -> bool:
        if not self._config.requires_deployment or self._probe is None:
            return True
        try:
            status = await self._probe.check()
        except DeploymentError as exc:
            logger.warning("Could not check if Inspektor Gadget is deployed, skipping gadget registration",
                           extra={"error": str(exc)})
            return False
        if not status.deployed:
            logger.warning("Inspektor Gadget is not deployed, skipping gadget registration")
            return False
        logger.info("Inspektor Gadget is deployed", extra={"namespace": status.namespace})
        return True

    # ------------------------------------------------------------------
    # Gadget registration
    # ------------------------------------------------------------------

    async def register_gadgets(self, images: list[str], notify: bool = True) -> int:
        """Fetch metadata for `images` and (re)install their tools.

        Images whose metadata cannot be fetched are skipped. Returns the number
        of gadget tools installed.
        """
        descriptors = await self._fetch_descriptors(images)
        tools = [
            RegisteredTool(
                definition=synthesize(d, self.environment),
                handler=GadgetHandler(d, self._client),
                image_reference=d.image_reference,
            )
            for d in descriptors
        ]
        async with self._lock:
            self._install(tools)
        logger.info("Registered gadget tools", extra={"tools_count": len(tools)})

        if notify:
            await self._notify()
        return len(tools)

    async def _fetch_descriptors(self, images: list[str]) -> list[GadgetDescriptor]:
        """Fetch descriptors with at most MAX_CONCURRENT_FETCHES in flight.

        A fixed pool of workers drains a queue of images. Results keep the
        input order so name collisions resolve the same way on every run.
        """
        if not images:
            return []

        queue: asyncio.Queue[tuple[int, str]] = asyncio.Queue()
        for item in enumerate(images):
            queue.put_nowait(item)
        results: list[Optional[GadgetDescriptor]] = [None] * len(images)

        async def worker() -> None:
            while True:
                try:
                    index, image = queue.get_nowait()
                except asyncio.QueueEmpty:
                    return
                results[index] = await self._fetch_one(image)

        workers = min(MAX_CONCURRENT_FETCHES, len(images))
        await asyncio.gather(*(worker() for _ in range(workers)))
        return [d for d in results if d is not None]

    async def _fetch_one(self, image: str) -> Optional[GadgetDescriptor]:
        try:
            return await self._client.get_info(image)
        except Exception as exc:
            logger.warning("Skipping gadget image due to error", extra={"image": image, "error": str(exc)})
            return None

    def _install(self, tools: list[RegisteredTool]) -> None:
        """Copy-on-write update. Caller holds the lock."""
        updated = dict(self._tools)
        for tool in tools:
            existing = updated.get(tool.name)
            if existing is not None and existing.image_reference != tool.image_reference:
                logger.warning("Duplicate tool name, replacing previous tool", extra={
                    "tool": tool.name,
                    "image": tool.image_reference,
                    "extra": {"replaced_image": existing.image_reference},
                })
            logger.debug("Adding tool", extra={"tool": tool.name, "image": tool.image_reference})
            updated[tool.name] = tool
        self._tools = updated

    async def _notify(self) -> None:
        async with self._lock:
            snapshot = list(self._tools.values())
            callbacks = list(self._callbacks)
        # Lock released: a callback may call back into the registry
        for callback in callbacks:
            logger.debug("Invoking tool registry callback", extra={"tools_count": len(snapshot)})
            callback(snapshot)

    # ------------------------------------------------------------------
    # Post-deploy refresh
    # ------------------------------------------------------------------

    def _schedule_refresh(self) -> None:
        task = asyncio.create_task(self.refresh_after_deploy())
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def refresh_after_deploy(self) -> None:
        """Re-register gadget tools once a fresh deployment is up.

        Waits the settle delay, then polls the deployment probe until the
        runtime's pods show up or the readiness timeout passes.
        """
        logger.debug("Waiting for Inspektor Gadget to be fully deployed before registering tools")
        try:
            await asyncio.sleep(self._config.settle_delay)
            if self._probe is not None:
                ready = await wait_until_deployed(self._probe, self._config.readiness_timeout)
                if not ready:
                    logger.warning("Inspektor Gadget pods not found after deploy, registering gadgets anyway")
            await self.register_gadgets(self._images)
        except Exception as exc:
            logger.warning("Failed to register gadget tools after deploy", extra={"error": str(exc)},
                           exc_info=True)

    async def close(self) -> None:
        """Cancel pending post-deploy refreshes."""
        for task in list(self._pending):
            task.cancel()
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)
