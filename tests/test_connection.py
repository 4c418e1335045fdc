# Copyright (c) 2025 Marc Schütze <scharc@gmail.com>
# SPDX-License-Identifier: MIT
# See LICENSE file in the project root for full license information.

"""Tests for the connection state machine."""

import threading
import time
from unittest.mock import Mock

import pytest

from wireup.docker.health import ContainerHealthMonitor
from wireup.docker.manager import DockerManager
from wireup.utils.exceptions import ContainerStartError
from wireup.vpn.config import WireGuardConfig
from wireup.vpn.connection import ConnectionManager, ConnectionState
from wireup.vpn.readiness import ReadinessVerifier

WAIT = 5.0
EXIT_IP = "203.0.113.7"


@pytest.fixture
def lifecycle():
    """DockerManager double."""
    manager = Mock(spec=DockerManager)
    manager.create_and_start.return_value = "abc123def4567890"
    manager.container_id = None
    manager.get_logs.return_value = "Starting WireGuard...\n"
    return manager


@pytest.fixture
def verifier():
    verifier = Mock(spec=ReadinessVerifier)
    verifier.wait_until_ready.return_value = EXIT_IP
    verifier.proxy_address = ("127.0.0.1", 1080)
    return verifier


@pytest.fixture
def monitor():
    return Mock(spec=ContainerHealthMonitor)


@pytest.fixture
def connection(lifecycle, verifier, monitor, settings):
    return ConnectionManager(
        lifecycle,
        verifier=verifier,
        health_monitor=monitor,
        settings=settings,
        sleep=lambda seconds: None,
    )


@pytest.fixture
def states(connection):
    """Every state the connection announces, in order."""
    seen = []
    connection.add_state_change_listener(seen.append)
    return seen


def _health_callback(monitor):
    return monitor.start.call_args.args[0]


class TestConnect:
    """Test connect and disconnect"""

    def test_initial_state(self, connection, monitor):
        assert connection.state is ConnectionState.DISCONNECTED
        assert connection.vpn_ip is None
        assert connection.error_message is None
        assert connection.current_config is None
        monitor.start.assert_called_once()

    def test_connect_then_disconnect(self, connection, states, lifecycle, wireguard_config):
        operation = connection.connect(wireguard_config)

        assert operation.wait(WAIT)
        assert operation.done()
        assert states == [ConnectionState.CONNECTING, ConnectionState.CONNECTED]
        assert connection.is_connected()
        assert connection.vpn_ip == EXIT_IP
        assert connection.current_config is wireguard_config
        lifecycle.create_and_start.assert_called_once_with(wireguard_config)

        assert connection.disconnect().wait(WAIT)

        assert states[-1] is ConnectionState.DISCONNECTED
        assert connection.vpn_ip is None
        assert not connection.is_connected()
        lifecycle.stop_and_remove.assert_called()
        # Kept for reconnect
        assert connection.current_config is wireguard_config

    def test_invalid_config(self, connection, states, lifecycle):
        config = WireGuardConfig("[Interface]\nAddress = 10.0.0.2/32\n")

        assert connection.connect(config).wait(WAIT)

        assert states == [ConnectionState.CONNECTING, ConnectionState.ERROR]
        assert connection.error_message == "Invalid config: Missing PrivateKey in [Interface]"
        assert connection.current_config is None
        lifecycle.create_and_start.assert_not_called()

    def test_start_failure(self, connection, lifecycle, wireguard_config):
        lifecycle.create_and_start.side_effect = ContainerStartError(
            "Container failed to start", "wg-quick: RTNETLINK answers"
        )

        assert connection.connect(wireguard_config).wait(WAIT)

        assert connection.state is ConnectionState.ERROR
        assert "RTNETLINK" in connection.error_message
        assert connection.vpn_ip is None

    def test_disconnect_is_best_effort(self, connection, lifecycle, wireguard_config):
        connection.connect(wireguard_config).wait(WAIT)
        lifecycle.stop_and_remove.side_effect = RuntimeError("engine gone")

        assert connection.disconnect().wait(WAIT)

        assert connection.state is ConnectionState.DISCONNECTED

    def test_error_cleared_on_disconnect(self, connection, lifecycle, wireguard_config):
        lifecycle.create_and_start.side_effect = ContainerStartError("Container failed to start")
        connection.connect(wireguard_config).wait(WAIT)

        connection.disconnect().wait(WAIT)

        assert connection.state is ConnectionState.DISCONNECTED
        assert connection.error_message is None


class TestProxyFailure:
    """Test readiness failure handling"""

    @pytest.fixture
    def connection(self, lifecycle, monitor, settings):
        verifier = ReadinessVerifier(
            probe=lambda host, port: "Error: SOCKS5 proxy refused connection",
            settings=settings,
            sleep=lambda seconds: None,
        )
        return ConnectionManager(
            lifecycle, verifier=verifier, health_monitor=monitor, settings=settings
        )

    def test_error_after_three_attempts(self, connection, states, lifecycle, wireguard_config):
        assert connection.connect(wireguard_config).wait(WAIT)

        assert states == [ConnectionState.CONNECTING, ConnectionState.ERROR]
        assert "3 attempts" in connection.error_message
        lifecycle.get_logs.assert_called_once()

    def test_failed_container_kept_by_default(self, connection, lifecycle, wireguard_config):
        connection.connect(wireguard_config).wait(WAIT)

        lifecycle.stop_and_remove.assert_not_called()

    def test_cleanup_on_error(self, connection, settings, lifecycle, wireguard_config):
        settings.behavior.cleanup_on_error = True

        connection.connect(wireguard_config).wait(WAIT)

        assert connection.state is ConnectionState.ERROR
        lifecycle.stop_and_remove.assert_called_once()


class TestTransitions:
    """Test listener delivery and transition rules"""

    def test_same_state_is_not_announced(self, connection, states):
        assert connection.disconnect().wait(WAIT)

        assert connection.state is ConnectionState.DISCONNECTED
        assert states == []

    def test_listener_failure_is_isolated(self, connection, wireguard_config):
        def broken_listener(state):
            raise RuntimeError("listener bug")

        delivered = []
        connection.add_state_change_listener(broken_listener)
        connection.add_state_change_listener(delivered.append)

        assert connection.connect(wireguard_config).wait(WAIT)

        assert delivered == [ConnectionState.CONNECTING, ConnectionState.CONNECTED]
        assert connection.is_connected()

    def test_crash_while_connected(self, connection, states, monitor, wireguard_config):
        connection.connect(wireguard_config).wait(WAIT)

        _health_callback(monitor)(False)

        assert connection.state is ConnectionState.ERROR
        assert connection.error_message == "Container stopped unexpectedly"
        assert states[-1] is ConnectionState.ERROR

    def test_stop_outside_connected_is_ignored(self, connection, states, monitor):
        _health_callback(monitor)(False)
        _health_callback(monitor)(True)

        assert connection.state is ConnectionState.DISCONNECTED
        assert states == []

    def test_disconnect_waits_for_connect(self, connection, states, lifecycle, wireguard_config):
        started = threading.Event()
        release = threading.Event()

        def slow_start(config):
            started.set()
            release.wait(WAIT)
            return "abc123def4567890"

        lifecycle.create_and_start.side_effect = slow_start

        connect_op = connection.connect(wireguard_config)
        assert started.wait(WAIT)
        disconnect_op = connection.disconnect()

        assert not disconnect_op.wait(0.2)
        release.set()

        assert connect_op.wait(WAIT)
        assert disconnect_op.wait(WAIT)
        assert states == [
            ConnectionState.CONNECTING,
            ConnectionState.CONNECTED,
            ConnectionState.DISCONNECTED,
        ]
        assert connection.state is ConnectionState.DISCONNECTED


class TestReconnectAndShutdown:
    """Test reconnect and shutdown"""

    def test_reconnect_without_config(self, connection):
        assert connection.reconnect() is None

    def test_reconnect(self, connection, states, lifecycle, wireguard_config):
        connection.connect(wireguard_config).wait(WAIT)

        operation = connection.reconnect()

        assert operation.wait(WAIT)
        assert states == [
            ConnectionState.CONNECTING,
            ConnectionState.CONNECTED,
            ConnectionState.DISCONNECTED,
            ConnectionState.CONNECTING,
            ConnectionState.CONNECTED,
        ]
        assert lifecycle.create_and_start.call_count == 2

    def test_reconnect_waits_between_steps(
        self, lifecycle, verifier, monitor, settings, wireguard_config
    ):
        sleeps = []
        settings.timing.reconnect_delay_seconds = 2.0
        connection = ConnectionManager(
            lifecycle,
            verifier=verifier,
            health_monitor=monitor,
            settings=settings,
            sleep=sleeps.append,
        )
        connection.connect(wireguard_config).wait(WAIT)

        connection.reconnect().wait(WAIT)

        assert sleeps == [2.0]

    def test_shutdown(self, connection, lifecycle, monitor, wireguard_config):
        connection.connect(wireguard_config).wait(WAIT)

        assert connection.shutdown() is False

        monitor.stop.assert_called_once()
        lifecycle.cleanup.assert_called_once_with(remove_container=True)
        assert connection.state is ConnectionState.DISCONNECTED

    def test_shutdown_keeps_failed_container(self, connection, lifecycle, wireguard_config):
        lifecycle.create_and_start.side_effect = ContainerStartError("Container failed to start")
        connection.connect(wireguard_config).wait(WAIT)
        lifecycle.stop_and_remove.reset_mock()

        assert connection.shutdown(keep_failed=True) is True

        lifecycle.stop_and_remove.assert_not_called()
        lifecycle.cleanup.assert_called_once_with(remove_container=False)
        assert connection.state is ConnectionState.ERROR

    def test_shutdown_keep_failed_ignored_when_healthy(
        self, connection, lifecycle, wireguard_config
    ):
        connection.connect(wireguard_config).wait(WAIT)

        assert connection.shutdown(keep_failed=True) is False

        lifecycle.cleanup.assert_called_once_with(remove_container=True)
        assert connection.state is ConnectionState.DISCONNECTED


class TestLiveMonitor:
    """Test the state machine against a polling ContainerHealthMonitor"""

    @pytest.fixture
    def running(self, lifecycle):
        """Container liveness as seen by the monitor."""
        running = threading.Event()
        lifecycle.is_running.side_effect = running.is_set

        def start(config):
            running.set()
            return "abc123def4567890"

        def slow_stop():
            running.clear()
            time.sleep(0.2)

        lifecycle.create_and_start.side_effect = start
        lifecycle.stop_and_remove.side_effect = slow_stop
        return running

    @pytest.fixture
    def live_monitor(self, lifecycle):
        monitor = ContainerHealthMonitor(lifecycle.is_running, interval=0.01)
        yield monitor
        monitor.stop()

    @pytest.fixture
    def connection(self, lifecycle, verifier, live_monitor, settings):
        return ConnectionManager(
            lifecycle, verifier=verifier, health_monitor=live_monitor, settings=settings
        )

    def _wait_until_seen_running(self, monitor):
        deadline = time.monotonic() + WAIT
        while not monitor.last_known_state and time.monotonic() < deadline:
            time.sleep(0.01)
        assert monitor.last_known_state

    def test_disconnect_is_not_a_crash(
        self, connection, states, running, live_monitor, wireguard_config
    ):
        assert connection.connect(wireguard_config).wait(WAIT)
        self._wait_until_seen_running(live_monitor)

        assert connection.disconnect().wait(WAIT)

        assert states == [
            ConnectionState.CONNECTING,
            ConnectionState.CONNECTED,
            ConnectionState.DISCONNECTED,
        ]
        assert connection.error_message is None

    def test_real_crash_still_reported(
        self, connection, states, running, live_monitor, wireguard_config
    ):
        crashed = threading.Event()
        connection.add_state_change_listener(
            lambda state: state is ConnectionState.ERROR and crashed.set()
        )
        assert connection.connect(wireguard_config).wait(WAIT)
        self._wait_until_seen_running(live_monitor)

        running.clear()

        assert crashed.wait(WAIT)
        assert connection.error_message == "Container stopped unexpectedly"
