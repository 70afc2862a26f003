import pytest

from ig_mcp_server.config import ServerConfig
from ig_mcp_server.gadget_client.mock_client import MockGadgetClient

TRACE_DNS = "ghcr.io/inspektor-gadget/gadget/trace_dns:latest"
SNAPSHOT_PROCESS = "ghcr.io/inspektor-gadget/gadget/snapshot_process:latest"
TOP_TCP = "ghcr.io/inspektor-gadget/gadget/top_tcp:latest"


@pytest.fixture
def config():
    return ServerConfig(
        gadget_images=[TRACE_DNS, SNAPSHOT_PROCESS, TOP_TCP],
        settle_delay=0,
        readiness_timeout=0,
    )


@pytest.fixture
def linux_config():
    return ServerConfig(
        environment="linux",
        gadget_images=[TRACE_DNS],
        settle_delay=0,
        readiness_timeout=0,
    )


@pytest.fixture
def mock_client():
    return MockGadgetClient()
