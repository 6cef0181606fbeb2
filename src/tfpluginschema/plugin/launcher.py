"""Launch provider plugin subprocesses and connect to their gRPC servers.

Providers speak the go-plugin handshake: the host sets a magic cookie and the
list of protocol versions it supports in the child's environment, the plugin
binds a socket and prints a single line to stdout,

    CORE-PROTOCOL|APP-PROTOCOL|NETWORK|ADDRESS|PROTOCOL[|SERVER-CERT]

and the host then dials ``ADDRESS`` over gRPC. The app protocol number is the
wire generation the plugin picked from the advertised set.
"""

from __future__ import annotations

import logging
import os
import queue
import subprocess
import threading
from dataclasses import dataclass, field
from typing import IO, Optional, Protocol, Sequence

import grpc

from tfpluginschema.exceptions import TransportError
from tfpluginschema.plugin.wire import Generation

logger = logging.getLogger(__name__)

MAGIC_COOKIE_KEY = "TF_PLUGIN_MAGIC_COOKIE"
MAGIC_COOKIE_VALUE = "d602bf8f470bc67ca7faa0386276bbdd4330efaf76d1a219cb4d6991ca9872b2"

CORE_PROTOCOL_VERSION = 1

_KILL_GRACE_SECONDS = 2.0


@dataclass(frozen=True)
class HandshakeConfig:
    magic_cookie_key: str = MAGIC_COOKIE_KEY
    magic_cookie_value: str = MAGIC_COOKIE_VALUE


@dataclass(frozen=True)
class Handshake:
    """A parsed plugin handshake line."""

    core_version: int
    protocol_version: int
    network: str
    address: str
    protocol: str

    @classmethod
    def parse(cls, line: str) -> Handshake:
        """Parse the line a plugin prints once its server is listening.

        Raises:
            TransportError: If the line is malformed or asks for something this
                client cannot do (another core version, net/rpc, TLS).
        """
        parts = line.strip().split("|")
        if len(parts) < 5:
            raise TransportError(f"unrecognized plugin handshake: {line.strip()!r}")

        try:
            core_version = int(parts[0])
            protocol_version = int(parts[1])
        except ValueError:
            raise TransportError(f"unrecognized plugin handshake: {line.strip()!r}") from None

        if core_version != CORE_PROTOCOL_VERSION:
            raise TransportError(
                f"incompatible plugin core protocol version {core_version}, expected {CORE_PROTOCOL_VERSION}"
            )

        network, address, protocol = parts[2], parts[3], parts[4]
        if network not in ("unix", "tcp"):
            raise TransportError(f"unsupported plugin network type: {network}")
        if protocol != "grpc":
            raise TransportError(f"unsupported plugin protocol: {protocol}")
        if len(parts) > 5 and parts[5]:
            raise TransportError("plugin requested TLS, which is not supported")

        return cls(core_version, protocol_version, network, address, protocol)

    @property
    def target(self) -> str:
        """gRPC dial target for the advertised address."""

        if self.network == "unix":
            return f"unix:{self.address}"
        return self.address


@dataclass
class PluginHandle:
    """A running plugin and the channel connected to it."""

    generation: Generation
    channel: grpc.Channel
    process: subprocess.Popen
    _closed: bool = field(default=False, init=False, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    def close(self) -> None:
        """Close the channel and stop the subprocess. Safe to call repeatedly."""

        with self._lock:
            if self._closed:
                return
            self._closed = True
        self.channel.close()
        _terminate(self.process)


class Launcher(Protocol):
    """Anything that can start a plugin and hand back a connected channel."""

    def launch(self, executable: str, generations: Sequence[Generation]) -> PluginHandle:
        """Start ``executable`` advertising ``generations`` and connect to it."""


class PluginLauncher:
    """Starts provider binaries as go-plugin subprocesses.

    Args:
        handshake: Magic cookie to present to the plugin.
        start_timeout: Seconds to wait for the handshake line.
        connect_timeout: Seconds to wait for the gRPC channel to become ready.
        min_port: Lower bound of the TCP port range offered to the plugin.
        max_port: Upper bound of the TCP port range offered to the plugin.
    """

    def __init__(
        self,
        handshake: Optional[HandshakeConfig] = None,
        *,
        start_timeout: float = 60.0,
        connect_timeout: float = 10.0,
        min_port: int = 10000,
        max_port: int = 25000,
    ) -> None:
        self._handshake = handshake or HandshakeConfig()
        self._start_timeout = start_timeout
        self._connect_timeout = connect_timeout
        self._min_port = min_port
        self._max_port = max_port

    def launch(self, executable: str, generations: Sequence[Generation]) -> PluginHandle:
        if not generations:
            raise ValueError("at least one protocol generation must be advertised")

        logger.debug(
            "Launching plugin %s advertising protocols %s",
            executable,
            [g.value for g in generations],
        )
        try:
            process = subprocess.Popen(
                [executable],
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                env=self._environment(generations),
                text=True,
            )
        except OSError as exc:
            raise TransportError(
                f"failed to start plugin {executable}: {exc}",
                context={"executable": executable},
            ) from exc

        try:
            handshake = Handshake.parse(self._read_handshake(process))
            generation = self._negotiated(handshake, generations)
            channel = self._connect(handshake)
        except BaseException:
            _terminate(process)
            raise

        logger.debug(
            "Plugin %s negotiated protocol %d at %s",
            executable,
            generation.value,
            handshake.target,
        )
        return PluginHandle(generation=generation, channel=channel, process=process)

    def _environment(self, generations: Sequence[Generation]) -> dict:
        env = dict(os.environ)
        env[self._handshake.magic_cookie_key] = self._handshake.magic_cookie_value
        env["PLUGIN_PROTOCOL_VERSIONS"] = ",".join(str(g.value) for g in generations)
        env["PLUGIN_MIN_PORT"] = str(self._min_port)
        env["PLUGIN_MAX_PORT"] = str(self._max_port)
        return env

    def _read_handshake(self, process: subprocess.Popen) -> str:
        lines: "queue.Queue[Optional[str]]" = queue.Queue()
        threading.Thread(
            target=_pump_stdout, args=(process.stdout, lines), daemon=True
        ).start()
        threading.Thread(
            target=_drain_stderr, args=(process.stderr,), daemon=True
        ).start()

        try:
            line = lines.get(timeout=self._start_timeout)
        except queue.Empty:
            raise TransportError(
                f"timeout after {self._start_timeout}s waiting for plugin handshake"
            ) from None

        if line is None:
            raise TransportError(
                f"plugin exited before completing handshake (exit code {process.poll()})"
            )
        return line

    @staticmethod
    def _negotiated(handshake: Handshake, generations: Sequence[Generation]) -> Generation:
        try:
            generation = Generation(handshake.protocol_version)
        except ValueError:
            raise TransportError(
                f"plugin chose unsupported protocol version {handshake.protocol_version}"
            ) from None
        if generation not in generations:
            raise TransportError(
                f"plugin chose protocol version {generation.value}, which was not offered"
            )
        return generation

    def _connect(self, handshake: Handshake) -> grpc.Channel:
        channel = grpc.insecure_channel(handshake.target)
        try:
            grpc.channel_ready_future(channel).result(timeout=self._connect_timeout)
        except grpc.FutureTimeoutError:
            channel.close()
            raise TransportError(
                f"timeout after {self._connect_timeout}s connecting to plugin at {handshake.target}"
            ) from None
        return channel


def _pump_stdout(stream: IO[str], lines: "queue.Queue[Optional[str]]") -> None:
    # First line is the handshake; the rest is drained so the plugin never blocks.
    first = True
    for line in stream:
        if first:
            lines.put(line)
            first = False
        else:
            logger.debug("plugin stdout: %s", line.rstrip())
    if first:
        lines.put(None)


def _drain_stderr(stream: IO[str]) -> None:
    for line in stream:
        logger.debug("plugin stderr: %s", line.rstrip())


def _terminate(process: subprocess.Popen) -> None:
    if process.poll() is not None:
        return
    process.terminate()
    try:
        process.wait(timeout=_KILL_GRACE_SECONDS)
    except subprocess.TimeoutExpired:
        logger.debug("Plugin %d did not exit after terminate, killing", process.pid)
        process.kill()
        process.wait()


__all__ = [
    "MAGIC_COOKIE_KEY",
    "MAGIC_COOKIE_VALUE",
    "HandshakeConfig",
    "Handshake",
    "PluginHandle",
    "Launcher",
    "PluginLauncher",
]
