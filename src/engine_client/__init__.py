"""Public surface for the container-engine client."""

from .archive import extract_single_entry
from .auth import AuthConfig, AuthConfigStore, decode_auth, encode_auth, encode_auth_config
from .client import DockerClient
from .demux import collect_output, demultiplex, demultiplex_response
from .endpoint import Endpoint, EndpointKind, EndpointResolver, EndpointSettings, resolve_endpoint
from .errors import (
    ConfigurationError,
    EngineClientError,
    FormatError,
    OperationError,
    ProtocolError,
    TransportError,
)
from .http_client import HttpEngineClient, ensure_successful_response
from .lifecycle import ContainerLifecycle, parse_repository_tag
from .transport import HttpTransport, UnixSocketTransport
from .types import Response, RunResult, StreamChannel, StreamFrame, TarEntryResult
from .version import __version__

__all__ = [
    "__version__",
    "AuthConfig",
    "AuthConfigStore",
    "ConfigurationError",
    "ContainerLifecycle",
    "DockerClient",
    "Endpoint",
    "EndpointKind",
    "EndpointResolver",
    "EndpointSettings",
    "EngineClientError",
    "FormatError",
    "HttpEngineClient",
    "HttpTransport",
    "OperationError",
    "ProtocolError",
    "Response",
    "RunResult",
    "StreamChannel",
    "StreamFrame",
    "TarEntryResult",
    "TransportError",
    "UnixSocketTransport",
    "collect_output",
    "decode_auth",
    "demultiplex",
    "demultiplex_response",
    "encode_auth",
    "encode_auth_config",
    "ensure_successful_response",
    "extract_single_entry",
    "parse_repository_tag",
    "resolve_endpoint",
]
