"""Gadget image discovery."""
from ig_mcp_server.errors import UnknownSourceError

from .artifacthub import ArtifactHubDiscoverer
from .base import Discoverer

SOURCE_ARTIFACTHUB = "artifacthub"


def new_discoverer(source: str) -> Discoverer:
    if source == SOURCE_ARTIFACTHUB:
        return ArtifactHubDiscoverer()
    raise UnknownSourceError(f"unknown source: {source}")


__all__ = [
    'ArtifactHubDiscoverer',
    'Discoverer',
    'SOURCE_ARTIFACTHUB',
    'new_discoverer',
]
