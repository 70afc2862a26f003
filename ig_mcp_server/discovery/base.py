"""Discoverer contract: where gadget images come from."""

from abc import ABC, abstractmethod


class Discoverer(ABC):
    @abstractmethod
    def list_images(self) -> list[str]:
        """Return the available gadget image references."""
        ...
