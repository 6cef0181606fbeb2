"""Protocol clients for provider plugins.

``ProtocolClient`` owns one plugin subprocess and exactly one connection
variant, chosen by the handshake. ``UniversalProviderClient`` layers the
generation fallback on top: it prefers generation B and retries once over
generation A before giving up.

Examples:
    >>> with UniversalProviderClient("/path/to/terraform-provider-foo") as client:
    ...     schema = client.schema()
"""

from __future__ import annotations

import logging
import threading
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple, Type

import grpc

from tfpluginschema.exceptions import (
    ClientStateError,
    PluginError,
    RPCError,
    SchemaFetchError,
    TransportError,
)
from tfpluginschema.plugin.launcher import Launcher, PluginLauncher
from tfpluginschema.plugin.wire import Generation, messages_for
from tfpluginschema.schema.models import CanonicalSchema
from tfpluginschema.schema.translate import translate

logger = logging.getLogger(__name__)


class ClientState(Enum):
    UNCONNECTED = "unconnected"
    NEGOTIATING = "negotiating"
    CONNECTED = "connected"
    CLOSED = "closed"


class _Connection:
    """Schema RPC stub bound to one channel and one generation."""

    generation: Generation

    def __init__(self, channel: Any, *, timeout: Optional[float] = None) -> None:
        messages = messages_for(self.generation)
        self._request_cls = messages.Request
        self._timeout = timeout
        self._call = channel.unary_unary(
            self.generation.schema_method,
            request_serializer=messages.Request.SerializeToString,
            response_deserializer=messages.Response.FromString,
        )

    def get_provider_schema(self) -> Any:
        try:
            return self._call(self._request_cls(), timeout=self._timeout)
        except grpc.RpcError as exc:
            raise RPCError(
                f"{self.generation.schema_method} failed: {_describe_rpc_error(exc)}",
                context={"generation": self.generation.name},
            ) from exc


class GenerationAConnection(_Connection):
    generation = Generation.A


class GenerationBConnection(_Connection):
    generation = Generation.B


_CONNECTIONS: Dict[Generation, Type[_Connection]] = {
    Generation.A: GenerationAConnection,
    Generation.B: GenerationBConnection,
}


def _describe_rpc_error(exc: grpc.RpcError) -> str:
    code = getattr(exc, "code", None)
    details = getattr(exc, "details", None)
    if callable(code) and callable(details):
        return f"{code()}: {details()}"
    return str(exc) or type(exc).__name__


class ProtocolClient:
    """Client for a single plugin process.

    State moves ``UNCONNECTED -> NEGOTIATING -> CONNECTED -> CLOSED``; a
    transport failure while negotiating goes straight to ``CLOSED``.

    Args:
        executable: Path of the provider binary.
        launcher: Starts the plugin and returns a connected handle.
        generations: Generations to advertise, most preferred first.
        rpc_timeout: Per-call deadline in seconds, ``None`` for no deadline.
    """

    def __init__(
        self,
        executable: str,
        *,
        launcher: Launcher,
        generations: Sequence[Generation],
        rpc_timeout: Optional[float] = None,
    ) -> None:
        self._executable = executable
        self._launcher = launcher
        self._generations = tuple(generations)
        self._rpc_timeout = rpc_timeout
        self._state = ClientState.UNCONNECTED
        self._handle: Any = None
        self._connection: Optional[_Connection] = None
        self._lock = threading.Lock()

    @property
    def state(self) -> ClientState:
        return self._state

    @property
    def generation(self) -> Optional[Generation]:
        """Negotiated generation, ``None`` unless connected."""

        if self._state is not ClientState.CONNECTED or self._connection is None:
            return None
        return self._connection.generation

    @property
    def connection(self) -> Optional[_Connection]:
        return self._connection

    def connect(self) -> Generation:
        """Launch the plugin and bind the connection variant it negotiated.

        Raises:
            ClientStateError: If the client was already connected or closed.
            TransportError: If the plugin could not be started or dialled.
        """
        with self._lock:
            if self._state is not ClientState.UNCONNECTED:
                raise ClientStateError(f"cannot connect a client in state {self._state.value}")
            self._state = ClientState.NEGOTIATING

        try:
            handle = self._launcher.launch(self._executable, self._generations)
        except TransportError:
            self._state = ClientState.CLOSED
            raise
        except Exception as exc:
            self._state = ClientState.CLOSED
            raise TransportError(
                f"failed to launch plugin {self._executable}: {exc}",
                context={"executable": self._executable},
            ) from exc

        with self._lock:
            self._handle = handle
            self._connection = _CONNECTIONS[handle.generation](handle.channel, timeout=self._rpc_timeout)
            self._state = ClientState.CONNECTED
        return handle.generation

    def get_provider_schema(self, generation: Generation) -> Any:
        """Call the schema RPC of ``generation`` and return the raw response.

        Raises:
            ClientStateError: If not connected, or connected over another generation.
            RPCError: If the call itself fails.
        """
        if self._state is not ClientState.CONNECTED or self._connection is None:
            raise ClientStateError(f"client is {self._state.value}, not connected")
        if self._connection.generation is not generation:
            raise ClientStateError(
                f"generation {generation.name} not negotiated "
                f"(plugin chose generation {self._connection.generation.name})"
            )
        return self._connection.get_provider_schema()

    def close(self) -> None:
        with self._lock:
            if self._state is ClientState.CLOSED and self._handle is None:
                return
            handle, self._handle = self._handle, None
            self._connection = None
            self._state = ClientState.CLOSED
        if handle is not None:
            handle.close()

    def __enter__(self) -> ProtocolClient:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


class UniversalProviderClient:
    """Fetches a provider schema over whichever generation the plugin supports.

    Generation B is attempted first while advertising both generations. Any
    B failure leads to exactly one generation A attempt, reusing the existing
    connection when the plugin already chose A.
    """

    def __init__(
        self,
        executable: str,
        *,
        launcher: Optional[Launcher] = None,
        rpc_timeout: Optional[float] = None,
    ) -> None:
        self._executable = executable
        self._launcher = launcher or PluginLauncher()
        self._rpc_timeout = rpc_timeout
        self._client: Optional[ProtocolClient] = None

    @property
    def generation(self) -> Optional[Generation]:
        return None if self._client is None else self._client.generation

    def schema(self) -> CanonicalSchema:
        """Return the provider's schema in canonical form.

        Raises:
            SchemaFetchError: If neither generation produced a schema.
        """
        failures: List[Tuple[str, BaseException]] = []

        try:
            response = self._attempt_b()
        except PluginError as exc:
            logger.debug("Generation B schema fetch from %s failed: %s", self._executable, exc)
            failures.append((Generation.B.name, exc))
        else:
            return translate(Generation.B, response)

        try:
            response = self._attempt_a()
        except PluginError as exc:
            failures.append((Generation.A.name, exc))
            raise SchemaFetchError(failures) from exc

        logger.info(
            "Fetched schema from %s over generation A after generation B failed: %s",
            self._executable,
            failures[0][1],
        )
        return translate(Generation.A, response)

    def _attempt_b(self) -> Any:
        client = self._client
        if client is None or client.state is not ClientState.CONNECTED:
            client = self._replace_client((Generation.B, Generation.A))
            client.connect()
        return client.get_provider_schema(Generation.B)

    def _attempt_a(self) -> Any:
        client = self._client
        if client is None or client.generation is not Generation.A:
            client = self._replace_client((Generation.A,))
            client.connect()
        return client.get_provider_schema(Generation.A)

    def _replace_client(self, generations: Sequence[Generation]) -> ProtocolClient:
        if self._client is not None:
            self._client.close()
        self._client = ProtocolClient(
            self._executable,
            launcher=self._launcher,
            generations=generations,
            rpc_timeout=self._rpc_timeout,
        )
        return self._client

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None

    def __enter__(self) -> UniversalProviderClient:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


__all__ = [
    "ClientState",
    "GenerationAConnection",
    "GenerationBConnection",
    "ProtocolClient",
    "UniversalProviderClient",
]
