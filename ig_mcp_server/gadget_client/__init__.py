"""Gadget execution clients."""
from .base import GadgetClient
from .cli_client import CliGadgetClient
from .mock_client import MockGadgetClient

__all__ = [
    'GadgetClient',
    'CliGadgetClient',
    'MockGadgetClient',
]
