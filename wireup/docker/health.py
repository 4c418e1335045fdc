# Copyright (c) 2025 Marc Schütze <scharc@gmail.com>
# SPDX-License-Identifier: MIT
# See LICENSE file in the project root for full license information.

"""Background liveness monitor for the tunnel container."""

import threading
from typing import Callable, Optional

from wireup.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_CHECK_INTERVAL = 5.0

StatusCallback = Callable[[bool], None]


class ContainerHealthMonitor:
    """Polls a liveness probe and reports only changes.

    The probe is any zero-argument callable returning bool (normally
    DockerManager.is_running). The baseline is "not running", so the first
    successful start is reported too.
    """

    def __init__(
        self,
        probe: Callable[[], bool],
        interval: float = DEFAULT_CHECK_INTERVAL,
        callback: Optional[StatusCallback] = None,
    ):
        self.probe = probe
        self.interval = interval
        self.last_known_state = False
        self._callback = callback
        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._lock = threading.Lock()

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self, callback: StatusCallback) -> None:
        """Start polling; restarts the loop if it is already running."""
        with self._lock:
            self._stop_locked()
            self._callback = callback
            self._stop_event = threading.Event()
            self._thread = threading.Thread(
                target=self._monitor_loop,
                args=(self._stop_event,),
                daemon=True,
                name="wireup-health-monitor",
            )
            self._thread.start()
        logger.debug("Health monitoring started")

    def stop(self) -> None:
        """Stop polling. Safe to call repeatedly."""
        with self._lock:
            self._stop_locked()

    def _stop_locked(self) -> None:
        thread = self._thread
        if thread is None:
            return
        self._stop_event.set()
        if thread is not threading.current_thread():
            thread.join(timeout=max(2.0, self.interval))
        self._thread = None
        logger.debug("Health monitoring stopped")

    def _monitor_loop(self, stop_event: threading.Event) -> None:
        """Poll until stopped; polls never overlap."""
        while not stop_event.is_set():
            self.check_once()
            stop_event.wait(self.interval)

    def check_once(self) -> Optional[bool]:
        """Run one poll; fire the callback if liveness changed.

        Returns:
            The new state when it changed, otherwise None.
        """
        try:
            current = bool(self.probe())
            if current == self.last_known_state:
                return None

            logger.info(
                f"Container state changed: {'RUNNING' if current else 'STOPPED'}",
                console_output=False,
            )
            self.last_known_state = current
            if self._callback is not None:
                self._callback(current)
            return current
        except Exception as e:
            # A single failed poll must never end the loop
            logger.debug(f"Error during health check: {e}")
            return None
