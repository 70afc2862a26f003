"""Tests for GadgetToolRegistry: bootstrap, concurrent registration,
collisions, subscriber notification and post-deploy refresh."""

import asyncio

import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from ig_mcp_server.errors import DeploymentError, GadgetClientError
from ig_mcp_server.gadget_client.mock_client import MockGadgetClient
from ig_mcp_server.models import DeploymentStatus
from ig_mcp_server.tools.admin_tools import DEPLOY_TOOL, WAIT_TOOL
from ig_mcp_server.tools.tool_registry import MAX_CONCURRENT_FETCHES, GadgetToolRegistry

TRACE_DNS = "ghcr.io/inspektor-gadget/gadget/trace_dns:latest"
SNAPSHOT_PROCESS = "ghcr.io/inspektor-gadget/gadget/snapshot_process:latest"
TOP_TCP = "ghcr.io/inspektor-gadget/gadget/top_tcp:latest"

ADMIN_TOOL_COUNT = 6


def _probe(status=None, side_effect=None):
    probe = MagicMock()
    probe.check = AsyncMock(return_value=status, side_effect=side_effect)
    return probe


def _deployed():
    return _probe(DeploymentStatus(deployed=True, namespace="gadget"))


def _gadget(image: str, name: str) -> dict:
    return {"imageName": image, "metadata": f"name: {name}\ndescription: {name} gadget\n", "params": []}


class CountingClient(MockGadgetClient):
    """Records the peak number of overlapping get_info calls."""

    def __init__(self, gadgets):
        super().__init__(gadgets)
        self.in_flight = 0
        self.peak = 0

    async def get_info(self, image):
        self.in_flight += 1
        self.peak = max(self.peak, self.in_flight)
        try:
            await asyncio.sleep(0.001)
            return await super().get_info(image)
        finally:
            self.in_flight -= 1


class TestPrepare:
    @pytest.mark.asyncio
    async def test_registers_admin_and_gadget_tools(self, mock_client, config):
        registry = GadgetToolRegistry(mock_client, config, probe=_deployed())
        await registry.prepare([TRACE_DNS, SNAPSHOT_PROCESS, TOP_TCP])

        names = {t.name for t in registry.tools()}
        assert len(names) == ADMIN_TOOL_COUNT + 3
        assert {"trace_dns", "snapshot_process", "top_tcp", DEPLOY_TOOL, WAIT_TOOL} <= names

    @pytest.mark.asyncio
    async def test_not_deployed_keeps_admin_tools_only(self, mock_client, config):
        registry = GadgetToolRegistry(mock_client, config, probe=_probe(DeploymentStatus(deployed=False)))
        await registry.prepare([TRACE_DNS])

        assert len(registry.tools()) == ADMIN_TOOL_COUNT
        assert registry.get("trace_dns") is None

    @pytest.mark.asyncio
    async def test_probe_error_does_not_fail_prepare(self, mock_client, config):
        probe = _probe(side_effect=DeploymentError("Failed to initialize K8s client: no config"))
        registry = GadgetToolRegistry(mock_client, config, probe=probe)
        await registry.prepare([TRACE_DNS])
        assert len(registry.tools()) == ADMIN_TOOL_COUNT

    @pytest.mark.asyncio
    async def test_linux_environment_skips_deployment_check(self, mock_client, linux_config):
        probe = _probe(DeploymentStatus(deployed=False))
        registry = GadgetToolRegistry(mock_client, linux_config, probe=probe)
        await registry.prepare([TRACE_DNS])

        probe.check.assert_not_called()
        assert registry.get("trace_dns") is not None

    @pytest.mark.asyncio
    async def test_prepare_notifies_once(self, mock_client, config):
        registry = GadgetToolRegistry(mock_client, config, probe=_deployed())
        callback = MagicMock()
        registry.subscribe(callback)
        await registry.prepare([TRACE_DNS, TOP_TCP])

        callback.assert_called_once()
        snapshot = callback.call_args.args[0]
        assert len(snapshot) == ADMIN_TOOL_COUNT + 2


class TestRegisterGadgets:
    @pytest.mark.asyncio
    async def test_failing_image_skipped(self, config):
        client = MockGadgetClient(failing_images=(TRACE_DNS,))
        registry = GadgetToolRegistry(client, config)

        count = await registry.register_gadgets([TRACE_DNS, SNAPSHOT_PROCESS])

        assert count == 1
        assert registry.get("trace_dns") is None
        assert registry.get("snapshot_process") is not None

    @pytest.mark.asyncio
    async def test_unexpected_error_skipped(self, mock_client, config):
        original = mock_client.get_info

        async def get_info(image):
            if image == TRACE_DNS:
                raise RuntimeError("boom")
            return await original(image)

        mock_client.get_info = get_info
        registry = GadgetToolRegistry(mock_client, config)
        assert await registry.register_gadgets([TRACE_DNS, TOP_TCP]) == 1

    @pytest.mark.asyncio
    async def test_all_failing_registers_nothing(self, config):
        client = MockGadgetClient(failing_images=(TRACE_DNS, TOP_TCP))
        registry = GadgetToolRegistry(client, config)
        assert await registry.register_gadgets([TRACE_DNS, TOP_TCP]) == 0
        assert registry.tools() == []

    @pytest.mark.asyncio
    async def test_empty_image_list(self, mock_client, config):
        registry = GadgetToolRegistry(mock_client, config)
        assert await registry.register_gadgets([]) == 0

    @pytest.mark.asyncio
    async def test_concurrency_bounded(self, config):
        gadgets = [_gadget(f"registry.example/gadget_{i}:v1", f"gadget_{i}") for i in range(100)]
        client = CountingClient(gadgets)
        registry = GadgetToolRegistry(client, config)

        count = await registry.register_gadgets([g["imageName"] for g in gadgets])

        assert count == 100
        assert 1 < client.peak <= MAX_CONCURRENT_FETCHES

    @pytest.mark.asyncio
    async def test_duplicate_name_last_wins(self, config):
        first = "registry.example/one/trace_dns:v1"
        second = "registry.example/two/trace_dns:v2"
        client = MockGadgetClient([_gadget(first, "trace_dns"), _gadget(second, "trace_dns")])
        registry = GadgetToolRegistry(client, config)

        with patch("ig_mcp_server.tools.tool_registry.logger") as logger:
            await registry.register_gadgets([first, second])

        assert registry.get("trace_dns").image_reference == second
        logger.warning.assert_called_once()

    @pytest.mark.asyncio
    async def test_reregistering_same_image_is_quiet(self, mock_client, config):
        registry = GadgetToolRegistry(mock_client, config)
        await registry.register_gadgets([TRACE_DNS])
        with patch("ig_mcp_server.tools.tool_registry.logger") as logger:
            await registry.register_gadgets([TRACE_DNS])
        logger.warning.assert_not_called()
        assert len(registry.tools()) == 1

    @pytest.mark.asyncio
    async def test_gadget_tools_dispatch_to_client(self, mock_client, config):
        registry = GadgetToolRegistry(mock_client, config)
        await registry.register_gadgets([TRACE_DNS])
        result = await registry.get("trace_dns").handler({"timeout": 2})
        assert result.is_error is False
        assert mock_client.run_calls[0][0] == TRACE_DNS


class TestSubscribers:
    @pytest.mark.asyncio
    async def test_callbacks_in_subscription_order(self, mock_client, config):
        registry = GadgetToolRegistry(mock_client, config)
        order = []
        registry.subscribe(lambda tools: order.append("first"))
        registry.subscribe(lambda tools: order.append("second"))

        await registry.register_gadgets([TRACE_DNS])

        assert order == ["first", "second"]

    @pytest.mark.asyncio
    async def test_snapshot_unaffected_by_later_changes(self, mock_client, config):
        registry = GadgetToolRegistry(mock_client, config)
        snapshots = []
        registry.subscribe(snapshots.append)

        await registry.register_gadgets([TRACE_DNS])
        await registry.register_gadgets([TOP_TCP])

        assert [t.name for t in snapshots[0]] == ["trace_dns"]
        assert {t.name for t in snapshots[1]} == {"trace_dns", "top_tcp"}

    @pytest.mark.asyncio
    async def test_callback_may_read_registry(self, mock_client, config):
        registry = GadgetToolRegistry(mock_client, config)
        seen = []
        registry.subscribe(lambda tools: seen.append(registry.get("trace_dns")))
        await registry.register_gadgets([TRACE_DNS])
        assert seen[0] is not None

    @pytest.mark.asyncio
    async def test_no_notification_when_suppressed(self, mock_client, config):
        registry = GadgetToolRegistry(mock_client, config)
        callback = MagicMock()
        registry.subscribe(callback)
        await registry.register_gadgets([TRACE_DNS], notify=False)
        callback.assert_not_called()


class TestRefreshAfterDeploy:
    @pytest.mark.asyncio
    async def test_refresh_registers_gadgets_once_deployed(self, mock_client, config):
        probe = _probe(DeploymentStatus(deployed=False))
        registry = GadgetToolRegistry(mock_client, config, probe=probe)
        await registry.prepare([TRACE_DNS, TOP_TCP])
        assert registry.get("trace_dns") is None

        probe.check = AsyncMock(return_value=DeploymentStatus(deployed=True, namespace="gadget"))
        callback = MagicMock()
        registry.subscribe(callback)
        await registry.refresh_after_deploy()

        assert registry.get("trace_dns") is not None
        assert registry.get("top_tcp") is not None
        callback.assert_called_once()

    @pytest.mark.asyncio
    async def test_refresh_registers_even_if_pods_never_appear(self, mock_client, config):
        registry = GadgetToolRegistry(mock_client, config, probe=_probe(DeploymentStatus(deployed=False)))
        await registry.prepare([TRACE_DNS])
        await registry.refresh_after_deploy()
        assert registry.get("trace_dns") is not None

    @pytest.mark.asyncio
    async def test_refresh_failure_is_logged_not_raised(self, mock_client, config):
        registry = GadgetToolRegistry(mock_client, config, probe=_deployed())
        await registry.prepare([TRACE_DNS])
        registry.register_gadgets = AsyncMock(side_effect=GadgetClientError("boom"))
        await registry.refresh_after_deploy()

    @pytest.mark.asyncio
    async def test_deploy_tool_schedules_refresh(self, mock_client, config):
        deployer = MagicMock()
        deployer.deploy = AsyncMock()
        probe = _probe(DeploymentStatus(deployed=False))
        registry = GadgetToolRegistry(mock_client, config, deployer=deployer, probe=probe)
        await registry.prepare([TRACE_DNS])

        probe.check = AsyncMock(return_value=DeploymentStatus(deployed=True, namespace="gadget"))
        result = await registry.get(DEPLOY_TOOL).handler({})
        assert result.is_error is False

        for _ in range(20):
            if registry.get("trace_dns") is not None:
                break
            await asyncio.sleep(0.01)
        assert registry.get("trace_dns") is not None
        await registry.close()

    @pytest.mark.asyncio
    async def test_close_cancels_pending_refresh(self, mock_client, config):
        config = config.model_copy(update={"settle_delay": 60})
        registry = GadgetToolRegistry(mock_client, config, probe=_deployed())
        await registry.prepare([TRACE_DNS])

        registry._schedule_refresh()
        assert len(registry._pending) == 1
        await registry.close()
        await asyncio.sleep(0)
        assert len(registry._pending) == 0
