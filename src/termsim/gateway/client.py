"""HTTP client for the assistant backend.

One aiohttp.ClientSession serves all four round-trips:

    POST /interpret   model fallback for unknown shell commands
    POST /assistant   guided assistant turns
    POST /agent       agent channel messages
    POST /scan        archive image fetch for ``scan`` steps

Features:
- Circuit breaker for fault tolerance
- Retry with exponential backoff on 429/5xx and connection errors
- Timeout handling
"""

import asyncio
import logging
import time
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any

import aiohttp

from termsim.core.interpreter import ScanError, ScanResult
from termsim.core.sequence import sequence_from_response, text_sequence
from termsim.core.steps import ScanStep
from termsim.gateway.errors import (
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
    InterpretRequest,
    ModelReply,
    scan_payload,
)

logger = logging.getLogger(__name__)


class CircuitState(Enum):
    """Circuit breaker states."""

    CLOSED = auto()  # Normal operation
    OPEN = auto()  # Failing, reject requests
    HALF_OPEN = auto()  # Testing recovery


@dataclass
class BackendConfig:
    """Configuration for the backend client."""

    base_url: str
    api_key: str | None = None

    # Timeouts (seconds)
    connect_timeout: float = 10.0
    read_timeout: float = 60.0

    # Retry configuration
    max_retries: int = 2
    retry_base_delay: float = 0.5
    retry_max_delay: float = 8.0
    retryable_status_codes: frozenset[int] = frozenset({429, 500, 502, 503, 504})

    # Circuit breaker
    circuit_failure_threshold: int = 5
    circuit_recovery_timeout: float = 30.0


@dataclass
class CircuitBreaker:
    """Simple circuit breaker for backend resilience.

    States:
    - CLOSED: Normal operation, requests pass through
    - OPEN: Too many failures, requests are rejected immediately
    - HALF_OPEN: Testing if the backend recovered, one request allowed
    """

    failure_threshold: int
    recovery_timeout: float
    state: CircuitState = CircuitState.CLOSED
    failure_count: int = 0
    last_failure_time: float = 0.0

    def record_success(self) -> None:
        self.failure_count = 0
        self.state = CircuitState.CLOSED

    def record_failure(self) -> None:
        self.failure_count += 1
        self.last_failure_time = time.time()
        if self.failure_count >= self.failure_threshold:
            logger.warning("Circuit breaker opened after %d failures", self.failure_count)
            self.state = CircuitState.OPEN

    def can_execute(self) -> bool:
        if self.state == CircuitState.CLOSED:
            return True

        if self.state == CircuitState.OPEN:
            if time.time() - self.last_failure_time > self.recovery_timeout:
                logger.info("Circuit breaker entering half-open state")
                self.state = CircuitState.HALF_OPEN
                return True
            return False

        # HALF_OPEN - allow one request
        return True


@dataclass
class BackendClient:
    """aiohttp client implementing the Backend protocol.

    Example:
        >>> client = BackendClient(BackendConfig(base_url="http://localhost:8787/api"))
        >>> await client.connect()
        >>> reply = await client.interpret(InterpretRequest("lsblk", "/root"))
        >>> await client.close()
    """

    config: BackendConfig
    _session: aiohttp.ClientSession | None = None
    _circuit: CircuitBreaker = field(default_factory=lambda: CircuitBreaker(5, 30.0))

    async def connect(self) -> None:
        """Initialize HTTP session and circuit breaker."""
        timeout = aiohttp.ClientTimeout(
            connect=self.config.connect_timeout,
            total=self.config.read_timeout,
        )
        headers = {"Content-Type": "application/json"}
        if self.config.api_key:
            headers["Authorization"] = f"Bearer {self.config.api_key}"
        self._session = aiohttp.ClientSession(headers=headers, timeout=timeout)
        self._circuit = CircuitBreaker(
            failure_threshold=self.config.circuit_failure_threshold,
            recovery_timeout=self.config.circuit_recovery_timeout,
        )

    async def close(self) -> None:
        if self._session:
            await self._session.close()
            self._session = None

    async def __aenter__(self) -> "BackendClient":
        await self.connect()
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    # =========================================================================
    # Round-trips
    # =========================================================================

    async def interpret(self, request: InterpretRequest) -> ModelReply:
        data = await self._post("/interpret", request.to_payload())
        output = data.get("output")
        error = data.get("error")
        if output is not None and not isinstance(output, str):
            raise MalformedResponseError("'output' must be a string")
        return ModelReply(output=output, error=None if error is None else str(error))

    async def assistant(self, request: AssistantRequest) -> AssistantReply:
        data = await self._post("/assistant", request.to_payload())
        state_update = data.get("stateUpdate")
        return AssistantReply(
            sequence=sequence_from_response(data),
            state_update=dict(state_update) if isinstance(state_update, Mapping) else {},
        )

    async def agent(self, request: AgentRequest) -> AgentReply:
        data = await self._post("/agent", request.to_payload())
        if "sequence" in data:
            sequence = sequence_from_response(data)
            text = data.get("output") or _sequence_text(data["sequence"])
            return AgentReply(sequence=sequence, text=text)
        output = data.get("output")
        if not isinstance(output, str):
            raise MalformedResponseError("agent reply has neither 'sequence' nor 'output'")
        return AgentReply(sequence=text_sequence(output), text=output)

    async def scan(self, step: ScanStep) -> ScanResult:
        data = await self._post("/scan", scan_payload(step))
        if data.get("error"):
            raise ScanError(str(data["error"]))
        image = data.get("image")
        if not isinstance(image, str) or not image:
            raise MalformedResponseError("scan reply is missing 'image'")
        metadata = data.get("metadata")
        return ScanResult(
            image=image,
            mime_type=data.get("mimeType") or "image/png",
            metadata=dict(metadata) if isinstance(metadata, Mapping) else {},
        )

    # =========================================================================
    # Transport
    # =========================================================================

    async def _post(self, path: str, body: dict[str, Any]) -> dict[str, Any]:
        """POST with circuit breaker and retry.

        Raises:
            CircuitOpenError: If circuit breaker is open
            UpstreamError: If the backend returns an error status
            MalformedResponseError: If the body is not a JSON object
        """
        trace_id = f"req_{int(time.time() * 1000)}"
        if not self._circuit.can_execute():
            raise CircuitOpenError("Circuit breaker is open")

        try:
            data = await self._execute_with_retry(path, body, trace_id)
        except Exception:
            self._circuit.record_failure()
            raise
        self._circuit.record_success()

        if not isinstance(data, dict):
            raise MalformedResponseError(f"{path} returned {type(data).__name__}, expected object")
        return data

    def _backoff(self, attempt: int) -> float:
        return min(self.config.retry_base_delay * (2**attempt), self.config.retry_max_delay)

    async def _execute_with_retry(self, path: str, body: dict[str, Any], trace_id: str) -> Any:
        last_error: Exception | None = None
        url = f"{self.config.base_url.rstrip('/')}{path}"

        for attempt in range(self.config.max_retries + 1):
            try:
                if self._session is None:
                    raise RuntimeError("Client not connected. Call connect() first.")

                async with self._session.post(url, json=body) as response:
                    if response.status == 200:
                        try:
                            return await response.json(content_type=None)
                        except ValueError as e:
                            raise MalformedResponseError(f"{path} returned invalid JSON") from e

                    error_body = await response.text()

                    if (
                        response.status in self.config.retryable_status_codes
                        and attempt < self.config.max_retries
                    ):
                        last_error = UpstreamError(
                            f"Backend returned {response.status}",
                            response.status,
                            error_body,
                        )
                        delay = self._backoff(attempt)
                        logger.warning(
                            "Request %s failed with %d, retrying in %.1fs (attempt %d/%d)",
                            trace_id,
                            response.status,
                            delay,
                            attempt + 1,
                            self.config.max_retries,
                        )
                        await asyncio.sleep(delay)
                        continue

                    raise UpstreamError(
                        f"Backend returned {response.status}: {error_body[:200]}",
                        response.status,
                        error_body,
                    )

            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                last_error = e
                if attempt < self.config.max_retries:
                    delay = self._backoff(attempt)
                    logger.warning(
                        "Request %s failed with %s, retrying in %.1fs (attempt %d/%d)",
                        trace_id,
                        type(e).__name__,
                        delay,
                        attempt + 1,
                        self.config.max_retries,
                    )
                    await asyncio.sleep(delay)
                    continue
                raise UpstreamError(f"Backend unreachable: {e or type(e).__name__}", 0) from e

        if last_error:
            raise last_error
        raise RuntimeError("Retry loop exited without result or error")


def _sequence_text(raw: Any) -> str:
    """Concatenate the text steps of a raw sequence, for thread storage."""
    if not isinstance(raw, Mapping):
        return ""
    parts = [
        str(step.get("content", ""))
        for step in raw.get("steps") or []
        if isinstance(step, Mapping) and step.get("tool") == "text" and step.get("content")
    ]
    return "\n".join(parts)


class OfflineBackend:
    """Backend used with ``--offline``: every round-trip fails immediately."""

    async def interpret(self, request: InterpretRequest) -> ModelReply:
        raise OfflineError("offline")

    async def assistant(self, request: AssistantRequest) -> AssistantReply:
        raise OfflineError("offline")

    async def agent(self, request: AgentRequest) -> AgentReply:
        raise OfflineError("offline")

    async def scan(self, step: ScanStep) -> ScanResult:
        raise OfflineError("archive offline")
