"""Mock GadgetClient that returns fixture data for demo/dev/testing."""

from __future__ import annotations

import json
import os
from typing import Any, Optional

from ig_mcp_server.errors import GadgetClientError
from ig_mcp_server.gadget_client.base import GadgetClient
from ig_mcp_server.gadget_client.cli_client import new_gadget_id
from ig_mcp_server.models import ExecutionSession, GadgetDescriptor, SessionState

FIXTURES_DIR = os.path.join(os.path.dirname(__file__), "..", "fixtures")


def _load_fixture(name: str) -> dict:
    path = os.path.join(FIXTURES_DIR, name)
    with open(path, "r") as f:
        return json.load(f)


class MockGadgetClient(GadgetClient):
    def __init__(self, gadgets: Optional[list[dict[str, Any]]] = None, failing_images: tuple[str, ...] = ()):
        if gadgets is None:
            gadgets = _load_fixture("gadgets_mock.json")["gadgets"]
        self._gadgets = {g["imageName"]: g for g in gadgets}
        self._failing = set(failing_images)
        self.sessions: dict[str, ExecutionSession] = {}
        self.run_calls: list[tuple[str, dict[str, str], float]] = []
        self.detached_calls: list[tuple[str, dict[str, str]]] = []

    @property
    def images(self) -> list[str]:
        return list(self._gadgets)

    def _gadget(self, image: str) -> dict[str, Any]:
        if image in self._failing or image not in self._gadgets:
            raise GadgetClientError(f"get gadget info: image {image} not found")
        return self._gadgets[image]

    async def get_info(self, image: str) -> GadgetDescriptor:
        gadget = self._gadget(image)
        return GadgetDescriptor.from_info(image, gadget["metadata"], gadget.get("params", []))

    async def run(self, image: str, params: dict[str, str], timeout: float) -> str:
        self.run_calls.append((image, dict(params), timeout))
        return self._gadget(image).get("output", "")

    async def run_detached(self, image: str, params: dict[str, str]) -> str:
        self._gadget(image)
        self.detached_calls.append((image, dict(params)))
        session = ExecutionSession(id=new_gadget_id(), image_reference=image)
        self.sessions[session.id] = session
        return session.id

    def _running(self, gadget_id: str) -> ExecutionSession:
        session = self.sessions.get(gadget_id)
        if session is None or session.state != SessionState.RUNNING:
            raise GadgetClientError(f"gadget instance {gadget_id} not found")
        return session

    async def results(self, gadget_id: str) -> str:
        session = self._running(gadget_id)
        return self._gadgets[session.image_reference].get("output", "")

    async def stop(self, gadget_id: str) -> None:
        self._running(gadget_id).state = SessionState.STOPPED
