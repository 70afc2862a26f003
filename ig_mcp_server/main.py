"""
ig-mcp-server entry point.

Usage:
    ig-mcp-server --gadget-images=trace_dns:latest,snapshot_process:latest
    ig-mcp-server --gadget-discoverer=artifacthub --transport=streamable-http
"""

from __future__ import annotations

import asyncio
import signal

import click

from ig_mcp_server import __version__
from ig_mcp_server.config import (
    DEFAULT_CHART_VERSION,
    KUBERNETES_ENV,
    LINUX_ENV,
    TRANSPORTS,
    ServerConfig,
    load_config,
)
from ig_mcp_server.deployer import DeploymentProbe, new_deployer
from ig_mcp_server.discovery import new_discoverer
from ig_mcp_server.discovery.http_pool import close_all
from ig_mcp_server.errors import ConfigurationError, DiscoveryError
from ig_mcp_server.gadget_client import CliGadgetClient
from ig_mcp_server.server import McpServer
from ig_mcp_server.tools.tool_registry import GadgetToolRegistry
from ig_mcp_server.utils.logger import configure_logging, get_logger

logger = get_logger("ig_mcp_server")


async def resolve_images(config: ServerConfig) -> list[str]:
    """Manual images win; otherwise ask the configured discoverer."""
    if config.gadget_images:
        return list(config.gadget_images)
    discoverer = new_discoverer(config.gadget_discoverer)
    return await asyncio.to_thread(discoverer.list_images)


async def serve(config: ServerConfig) -> None:
    client = CliGadgetClient(config.resolved_gadget_binary(), config.linux_remote_address)
    deployer = None
    probe = None
    if config.requires_deployment:
        deployer = new_deployer(config.environment, helm_binary=config.helm_binary)
        probe = DeploymentProbe()
    registry = GadgetToolRegistry(client, config, deployer=deployer, probe=probe)

    try:
        images = await resolve_images(config)
        server = McpServer(registry, __version__)
        await registry.prepare(images)

        stop = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, stop.set)

        serving = asyncio.create_task(
            server.start(config.transport, config.transport_host, config.transport_port)
        )
        stopping = asyncio.create_task(stop.wait())
        done, _ = await asyncio.wait({serving, stopping}, return_when=asyncio.FIRST_COMPLETED)

        if stopping in done:
            logger.info("Received shutdown signal, shutting down server")
            await server.shutdown()
            # stdio has no graceful stop; HTTP transports exit on their own
            if config.transport == "stdio":
                serving.cancel()
            await asyncio.gather(serving, return_exceptions=True)
        else:
            stopping.cancel()
            # Surface transport failures
            serving.result()
    finally:
        await registry.close()
        await client.close()
        close_all()


@click.command()
@click.option("--transport", type=click.Choice(TRANSPORTS), default="stdio", show_default=True,
              help="Transport to use")
@click.option("--transport-host", default="localhost", show_default=True, help="Host for the transport")
@click.option("--transport-port", type=int, default=8080, show_default=True, help="Port for the transport")
@click.option("--environment", type=click.Choice([KUBERNETES_ENV, LINUX_ENV]), default=KUBERNETES_ENV,
              show_default=True, help="Environment to use")
@click.option("--linux-remote-address", default=None,
              help="Remote address (gRPC) of the ig daemon, only with --environment=linux")
@click.option("--gadget-images", default="", envvar="IG_MCP_GADGET_IMAGES",
              help="Comma-separated list of gadget images (e.g. 'trace_dns:latest,trace_open:latest')")
@click.option("--gadget-discoverer", default=None, help="Gadget discoverer to use (artifacthub)")
@click.option("--log-level", default=None, help="Log level (debug, info, warn, error)")
@click.option("--chart-version", default=DEFAULT_CHART_VERSION, show_default=True,
              help="Default Inspektor Gadget Helm chart version to deploy")
@click.option("--settle-delay", type=float, default=10.0, show_default=True,
              help="Seconds to wait after a deploy before re-registering gadgets")
@click.option("--readiness-timeout", type=float, default=60.0, show_default=True,
              help="Max seconds to wait for Inspektor Gadget pods after a deploy")
@click.option("--gadget-binary", default=None, help="kubectl-gadget / ig binary to run gadgets with")
@click.option("--helm-binary", default="helm", show_default=True, help="helm binary used to deploy")
@click.version_option(version=__version__, prog_name="ig-mcp-server")
def cli(**options) -> None:
    """Expose Inspektor Gadget gadgets as MCP tools."""
    try:
        config = load_config(**options)
        if config.log_level:
            configure_logging(config.log_level)
    except ConfigurationError as exc:
        logger.error("Invalid configuration", extra={"error": str(exc)})
        click.echo(click.style("Error: ", fg="red") + str(exc), err=True)
        raise SystemExit(1)

    try:
        asyncio.run(serve(config))
    except (ConfigurationError, DiscoveryError) as exc:
        logger.error("Failed to start server", extra={"error": str(exc)})
        click.echo(click.style("Error: ", fg="red") + str(exc), err=True)
        raise SystemExit(1)


if __name__ == "__main__":
    cli()
