# Copyright (c) 2025 Marc Schütze <scharc@gmail.com>
# SPDX-License-Identifier: MIT
# See LICENSE file in the project root for full license information.

"""Connection state machine for the wireup tunnel.

ConnectionManager sequences config validation, container lifecycle and
readiness checks, owns the connection state, and tells listeners about
every transition.

Thread model:
- connect/disconnect/reconnect each run on their own daemon thread and
  return an Operation immediately.
- One operation lock per manager serialises those workers, so a disconnect
  issued mid-connect waits for the connect to finish and then tears down.
- The health monitor runs on its own thread and may move CONNECTED to
  ERROR at any time, except while a disconnect is stopping the container.
- Listeners run synchronously on whichever thread made the transition.
"""

import threading
import time
from enum import Enum
from typing import Callable, List, Optional

from wireup.docker.health import ContainerHealthMonitor
from wireup.docker.manager import DockerManager
from wireup.models.host_config import HostConfigModel
from wireup.utils.exceptions import ConfigInvalidError, ContainerCrashedError, ProxyNotReadyError
from wireup.utils.logging import get_logger
from wireup.vpn.config import TunnelConfig
from wireup.vpn.readiness import ReadinessVerifier

logger = get_logger(__name__)


class ConnectionState(Enum):
    """Connection status."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    ERROR = "error"


StateListener = Callable[[ConnectionState], None]

# Marker for "leave this field alone" in _set_state()
_UNCHANGED = object()


class Operation:
    """Started signal for an asynchronous connect/disconnect/reconnect."""

    def __init__(self, name: str):
        self.name = name
        self._finished = threading.Event()

    def done(self) -> bool:
        return self._finished.is_set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until the operation has finished.

        Returns:
            True if it finished within the timeout
        """
        return self._finished.wait(timeout)

    def _finish(self) -> None:
        self._finished.set()

    def __repr__(self) -> str:
        return f"Operation({self.name!r}, done={self.done()})"


class ConnectionManager:
    """Drives one tunnel through DISCONNECTED/CONNECTING/CONNECTED/ERROR."""

    def __init__(
        self,
        docker_manager: DockerManager,
        verifier: Optional[ReadinessVerifier] = None,
        health_monitor: Optional[ContainerHealthMonitor] = None,
        settings: Optional[HostConfigModel] = None,
        sleep: Callable[[float], None] = time.sleep,
        start_monitoring: bool = True,
    ):
        self.docker_manager = docker_manager
        self.settings = settings or docker_manager.settings
        self.verifier = verifier or ReadinessVerifier(settings=self.settings)
        self.health_monitor = health_monitor or ContainerHealthMonitor(
            docker_manager.is_running,
            interval=self.settings.timing.health_check_interval_seconds,
        )
        self._sleep = sleep

        self._state = ConnectionState.DISCONNECTED
        self._error_message: Optional[str] = None
        self._vpn_ip: Optional[str] = None
        self._current_config: Optional[TunnelConfig] = None
        self._listeners: List[StateListener] = []
        # Set while _disconnect() stops the container on purpose
        self._disconnecting = False

        # Guards the fields above; never held while listeners run
        self._state_lock = threading.Lock()
        # Held for the whole body of every connect/disconnect worker
        self._operation_lock = threading.Lock()

        if start_monitoring:
            self.health_monitor.start(self._on_container_state_change)

    # ========== Snapshot reads ==========

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def error_message(self) -> Optional[str]:
        return self._error_message

    @property
    def vpn_ip(self) -> Optional[str]:
        return self._vpn_ip

    @property
    def current_config(self) -> Optional[TunnelConfig]:
        return self._current_config

    def is_connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED

    def add_state_change_listener(self, listener: StateListener) -> None:
        with self._state_lock:
            self._listeners.append(listener)

    # ========== Operations ==========

    def connect(self, config: TunnelConfig) -> Operation:
        """Start connecting with a config. Returns immediately."""
        return self._spawn("connect", lambda: self._locked(self._connect, config))

    def disconnect(self) -> Operation:
        """Start tearing the tunnel down. Returns immediately."""
        return self._spawn("disconnect", lambda: self._locked(self._disconnect))

    def reconnect(self) -> Optional[Operation]:
        """Disconnect, wait, then connect again with the last config.

        Returns:
            The Operation, or None when no config has been used yet
        """
        config = self._current_config
        if config is None:
            logger.warning("Nothing to reconnect: no previous configuration")
            return None

        def _reconnect() -> None:
            self._locked(self._disconnect)
            self._sleep(self.settings.timing.reconnect_delay_seconds)
            self._locked(self._connect, config)

        return self._spawn("reconnect", _reconnect)

    def shutdown(self, keep_failed: bool = False) -> bool:
        """Stop monitoring, disconnect and remove staged files (blocking).

        Args:
            keep_failed: Leave the container in place if the state is ERROR

        Returns:
            True if a failed container was left behind
        """
        logger.info("wireup shutting down...")
        self.health_monitor.stop()
        with self._operation_lock:
            kept = keep_failed and self._state is ConnectionState.ERROR
            if not kept:
                self._disconnect()

        if kept:
            logger.info(
                "Failed container left in place for inspection "
                f"(docker logs {self.settings.docker.container_name})"
            )
        self.docker_manager.cleanup(remove_container=not kept)
        return kept

    def _spawn(self, name: str, work: Callable[[], None]) -> Operation:
        operation = Operation(name)

        def _run() -> None:
            try:
                work()
            finally:
                operation._finish()

        thread = threading.Thread(target=_run, daemon=True, name=f"wireup-{name}")
        thread.start()
        return operation

    def _locked(self, func, *args) -> None:
        with self._operation_lock:
            func(*args)

    def _connect(self, config: TunnelConfig) -> None:
        self._set_state(ConnectionState.CONNECTING, error_message=None, vpn_ip=None)
        try:
            logger.info("Initiating VPN connection...")

            # Validate again; callers may hand over anything
            if not config.is_valid:
                raise ConfigInvalidError(f"Invalid config: {config.error_message}")

            with self._state_lock:
                self._current_config = config

            logger.info(f"Config validated successfully: {config.vpn_type.display_name}")
            logger.debug(config.summary())

            container_id = self.docker_manager.create_and_start(config)
            logger.info(f"Container started: {container_id[:12]}")

            try:
                vpn_ip = self.verifier.wait_until_ready()
            except ProxyNotReadyError:
                logs = self.docker_manager.get_logs()
                logger.error(f"Container logs:\n{logs}")
                raise

            self._set_state(ConnectionState.CONNECTED, vpn_ip=vpn_ip)
            host, port = self.verifier.proxy_address
            logger.success(f"VPN connection established (exit IP {vpn_ip})")
            logger.info(f"SOCKS5 proxy available at {host}:{port}")

        except Exception as e:
            logger.error("Connection failed", exc=e)
            self._set_state(ConnectionState.ERROR, error_message=str(e))
            self._handle_failed_container()

    def _handle_failed_container(self) -> None:
        if self.settings.behavior.cleanup_on_error:
            logger.info("Cleaning up failed connection...")
            self.docker_manager.stop_and_remove()
        elif self.docker_manager.container_id is not None:
            logger.info(
                "Failed container left in place for inspection "
                f"(docker logs {self.settings.docker.container_name}); "
                "disconnect to remove it"
            )

    def _disconnect(self) -> None:
        logger.info("Disconnecting VPN...")
        with self._state_lock:
            self._disconnecting = True
        try:
            try:
                self.docker_manager.stop_and_remove()
            except Exception as e:
                logger.error("Error during disconnect", exc=e)

            # Config is kept so reconnect() can reuse it
            self._set_state(ConnectionState.DISCONNECTED, vpn_ip=None, error_message=None)
        finally:
            with self._state_lock:
                self._disconnecting = False
        logger.info("VPN disconnected")

    def _on_container_state_change(self, running: bool) -> None:
        """Health monitor callback."""
        if running:
            return
        crashed = ContainerCrashedError()
        if self._set_state(
            ConnectionState.ERROR,
            error_message=str(crashed),
            only_from=ConnectionState.CONNECTED,
            unless_disconnecting=True,
        ):
            logger.warning("Container stopped unexpectedly!")

    # ========== Transitions ==========

    def _set_state(
        self,
        new_state: ConnectionState,
        error_message=_UNCHANGED,
        vpn_ip=_UNCHANGED,
        only_from: Optional[ConnectionState] = None,
        unless_disconnecting: bool = False,
    ) -> bool:
        """Apply a transition and notify listeners.

        The only writer of state, error_message and vpn_ip. A transition to
        the current state changes nothing and notifies nobody.

        Args:
            new_state: Target state
            error_message: New error message (default: unchanged)
            vpn_ip: New tunnel IP (default: unchanged)
            only_from: Apply only if the current state is this one
            unless_disconnecting: Skip while a disconnect is stopping the container

        Returns:
            True if the transition happened
        """
        with self._state_lock:
            if self._state is new_state:
                return False
            if only_from is not None and self._state is not only_from:
                return False
            if unless_disconnecting and self._disconnecting:
                return False

            self._state = new_state
            if error_message is not _UNCHANGED:
                self._error_message = error_message
            if vpn_ip is not _UNCHANGED:
                self._vpn_ip = vpn_ip
            listeners = list(self._listeners)

        logger.debug(f"State changed to: {new_state.name}")
        for listener in listeners:
            try:
                listener(new_state)
            except Exception as e:
                logger.error("Error notifying listener", exc=e, console_output=False)
        return True
