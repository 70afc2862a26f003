"""Exception hierarchy shared by the registry and its collaborators."""


class IgMcpError(Exception):
    """Base class for all server errors."""


class ConfigurationError(IgMcpError):
    """Invalid or incomplete configuration. Fatal before serving."""


class InvalidArgumentsError(IgMcpError):
    """Tool call arguments failed validation."""


class GadgetClientError(IgMcpError):
    """The tracing runtime rejected or failed a request."""

    def __init__(self, message: str, stderr: str = ""):
        super().__init__(message)
        self.stderr = stderr


class DeploymentError(IgMcpError):
    """Installing, removing or inspecting the runtime failed."""


class NotDeployedByManagerError(DeploymentError):
    """The release exists without our managed-by marker, or does not exist at all."""


class AmbiguousDeploymentError(DeploymentError):
    """Runtime pods were found in more than one namespace."""

    def __init__(self, namespaces: list[str]):
        super().__init__(
            f"multiple namespaces found for Inspektor Gadget pods: {', '.join(namespaces)}"
        )
        self.namespaces = namespaces


class UnsupportedEnvironmentError(DeploymentError):
    """No deployer exists for the requested environment."""


class DiscoveryError(IgMcpError):
    """Listing gadget images from a package index failed."""


class UnknownSourceError(DiscoveryError):
    """The requested discovery source is not known."""
