"""Abstract GadgetClient: adapter for the Inspektor Gadget runtime."""

from __future__ import annotations

from abc import ABC, abstractmethod

from ig_mcp_server.models import GadgetDescriptor


class GadgetClient(ABC):
    """Runs gadget images and manages detached gadget instances.

    Every method except run_detached() is safe to retry; run_detached()
    creates a new gadget instance on each call.
    """

    @abstractmethod
    async def get_info(self, image: str) -> GadgetDescriptor:
        """Fetch the metadata and parameter descriptions for an image."""
        ...

    @abstractmethod
    async def run(self, image: str, params: dict[str, str], timeout: float) -> str:
        """Run a gadget until `timeout` seconds pass; return its JSON-lines output."""
        ...

    @abstractmethod
    async def run_detached(self, image: str, params: dict[str, str]) -> str:
        """Start a gadget in the background and return its instance ID."""
        ...

    @abstractmethod
    async def results(self, gadget_id: str) -> str:
        """Return the output buffered so far by a detached gadget."""
        ...

    @abstractmethod
    async def stop(self, gadget_id: str) -> None:
        ...

    async def close(self) -> None:
        pass
