"""Gadget discovery from Artifact Hub."""

from __future__ import annotations

from typing import Any, Optional

import requests

from ig_mcp_server.discovery.base import Discoverer
from ig_mcp_server.discovery.http_pool import DEFAULT_TIMEOUT, get_session
from ig_mcp_server.errors import DiscoveryError
from ig_mcp_server.utils.logger import get_logger

logger = get_logger(__name__)

ARTIFACTHUB_URL = "https://artifacthub.io"
# Gadget packages are listed under kind 22 in Artifact Hub
GADGET_KIND = 22
SEARCH_LIMIT = 60
GADGET_REPOSITORY = "inspektor-gadget"


class ArtifactHubDiscoverer(Discoverer):
    def __init__(self, base_url: str = ARTIFACTHUB_URL, session: Optional[requests.Session] = None):
        self._base_url = base_url.rstrip("/")
        self._session = session or get_session(self._base_url)

    def list_images(self) -> list[str]:
        packages = self._list_packages()

        images: list[str] = []
        for pkg in packages:
            name = pkg.get("normalized_name") or pkg.get("name") or ""
            if not _is_trusted(pkg):
                logger.debug("Skipping gadget", extra={"extra": {
                    "normalized_name": name,
                    "official": pkg.get("official", False),
                    "cncf": pkg.get("cncf", False),
                    "deprecated": pkg.get("deprecated", False),
                }})
                continue
            try:
                images.append(self._package_image(name))
            except DiscoveryError as exc:
                logger.warning("Skipping gadget package", extra={"extra": {"package": name}, "error": str(exc)})
        logger.info("Discovered gadget images", extra={"extra": {"count": len(images)}})
        return images

    def _get_json(self, url: str, params: Optional[dict[str, Any]] = None) -> Any:
        try:
            resp = self._session.get(url, params=params, timeout=DEFAULT_TIMEOUT)
        except requests.exceptions.RequestException as exc:
            raise DiscoveryError(f"fetching {url} from Artifact Hub: {exc}") from exc
        if resp.status_code != 200:
            raise DiscoveryError(f"unexpected status code from Artifact Hub: {resp.status_code}")
        try:
            return resp.json()
        except ValueError as exc:
            raise DiscoveryError(f"decoding response from Artifact Hub: {exc}") from exc

    def _list_packages(self) -> list[dict[str, Any]]:
        data = self._get_json(
            f"{self._base_url}/api/v1/packages/search",
            params={"kind": GADGET_KIND, "limit": SEARCH_LIMIT},
        )
        return list((data or {}).get("packages") or [])

    def _package_image(self, name: str) -> str:
        details = self._get_json(
            f"{self._base_url}/api/v1/packages/{GADGET_REPOSITORY}/gadgets/{name}"
        )
        images = (details or {}).get("containers_images") or []
        if not images or not images[0].get("image"):
            raise DiscoveryError(f"no container images found for package {name}")
        return images[0]["image"]


def _is_trusted(pkg: dict[str, Any]) -> bool:
    """Official, CNCF-backed (or from a verified publisher) and not deprecated."""
    if pkg.get("deprecated", False):
        return False
    repo = pkg.get("repository") or {}
    official = pkg.get("official", False) or repo.get("official", False)
    verified = pkg.get("cncf", False) or repo.get("verified_publisher", False)
    return bool(official and verified)
