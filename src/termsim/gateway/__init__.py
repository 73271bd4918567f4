"""Gateway - round-trips to the assistant backend."""

from termsim.gateway.client import (
    BackendClient,
    BackendConfig,
    CircuitBreaker,
    CircuitState,
    OfflineBackend,
)
from termsim.gateway.errors import (
    BackendError,
    CircuitOpenError,
    MalformedResponseError,
    OfflineError,
    UpstreamError,
)
from termsim.gateway.types import (
    AgentReply,
    AgentRequest,
    AssistantReply,
    AssistantRequest,
    Backend,
    InterpretRequest,
    ModelReply,
)

__all__ = [
    "Backend",
    "BackendClient",
    "BackendConfig",
    "CircuitBreaker",
    "CircuitState",
    "OfflineBackend",
    "BackendError",
    "CircuitOpenError",
    "MalformedResponseError",
    "OfflineError",
    "UpstreamError",
    "AgentReply",
    "AgentRequest",
    "AssistantReply",
    "AssistantRequest",
    "InterpretRequest",
    "ModelReply",
]
