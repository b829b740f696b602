"""Client-side clock synchronisation and round timer.

Clients never count down with a local interval alone. They keep an estimate
of ``server_time - local_time`` and derive every remaining duration from the
absolute deadlines carried in the session state.
"""

import logging
import time
from typing import Callable, Optional

log = logging.getLogger(__name__)

TIMESTAMP_CALIBRATION_ERROR_MS = 50.0
MIN_RTT_CALIBRATION_ERROR_MS = 30.0

PHASE_IDLE = 'idle'
PHASE_COUNTDOWN = 'countdown'
PHASE_PLAYING = 'playing'
PHASE_EXPIRED = 'expired'


def now_ms() -> int:
    return int(time.time() * 1000)


class ClockSync:
    """Offset estimate between the local clock and the authoritative server clock.

    A calibration is only replaced by one at least as confident (an equal or
    smaller error bound). :meth:`reset` forgets everything, for a full
    reconnect.
    """

    def __init__(self, local_clock: Optional[Callable[[], float]] = None):
        self._local_clock = local_clock or now_ms
        self.offset = 0.0
        self.calibration_error: Optional[float] = None
        self.latency_estimate = 0.0

    @property
    def is_calibrated(self) -> bool:
        return self.calibration_error is not None

    def local_now(self) -> float:
        return self._local_clock()

    def calibrate_with_server_time(self, server_now: float, local_now: Optional[float] = None) -> bool:
        """Calibrate from a server timestamp pushed alongside the round timing."""
        received_at = self.local_now() if local_now is None else local_now
        return self._apply(server_now - received_at, TIMESTAMP_CALIBRATION_ERROR_MS, 0.0, 'timestamp')

    def calibrate_with_rtt(self, server_now: float, rtt: float, local_now: Optional[float] = None) -> bool:
        """Calibrate from a request/response round trip, assuming symmetric latency."""
        if rtt < 0:
            return False
        received_at = self.local_now() if local_now is None else local_now
        latency = rtt / 2.0
        error = max(MIN_RTT_CALIBRATION_ERROR_MS, latency * 0.5)
        return self._apply((server_now + latency) - received_at, error, latency, 'rtt')

    def _apply(self, offset: float, error: float, latency: float, source: str) -> bool:
        if self.is_calibrated and error > self.calibration_error:
            log.debug(f"[clock-skip] source={source} error={error:.1f} current={self.calibration_error:.1f}")
            return False
        self.offset = offset
        self.calibration_error = error
        self.latency_estimate = latency
        log.debug(f"[clock-calibrate] source={source} offset={offset:.1f} error={error:.1f}")
        return True

    def get_server_time(self) -> float:
        return self.local_now() + self.offset

    def remaining(self, deadline: Optional[float]) -> float:
        if deadline is None:
            return 0.0
        return max(0.0, deadline - self.get_server_time())

    def reset(self) -> None:
        self.offset = 0.0
        self.calibration_error = None
        self.latency_estimate = 0.0

    def to_dict(self):
        return {
            'is_calibrated': self.is_calibrated,
            'offset': self.offset,
            'calibration_error': self.calibration_error,
            'latency_estimate': self.latency_estimate,
            'server_time': self.get_server_time(),
        }


class RoundTimer:
    """Countdown and round timer driven by a session snapshot (``to_dict`` shape)."""

    def __init__(self, clock: ClockSync, state: Optional[dict] = None):
        self.clock = clock
        self.state = state or {}

    def update(self, payload: dict) -> None:
        """Take a ``{"server_now", "state"}`` response and recalibrate from it."""
        state = payload.get('state') or {}
        server_now = payload.get('server_now')
        if server_now is not None:
            self.clock.calibrate_with_server_time(server_now)
        self.state = state

    def _deadline(self, key):
        return self.state.get(key)

    def phase(self) -> str:
        if self.state.get('status') != 'playing' or self._deadline('round_ends_at') is None:
            return PHASE_IDLE
        now = self.clock.get_server_time()
        if now < self._deadline('round_starts_at'):
            return PHASE_COUNTDOWN
        if now < self._deadline('round_ends_at'):
            return PHASE_PLAYING
        return PHASE_EXPIRED

    def countdown_remaining(self) -> float:
        if self.phase() != PHASE_COUNTDOWN:
            return 0.0
        return self.clock.remaining(self._deadline('round_starts_at'))

    def remaining(self) -> float:
        if self.phase() == PHASE_IDLE:
            return 0.0
        return self.clock.remaining(self._deadline('round_ends_at'))

    def is_hurry_up(self) -> bool:
        threshold = self.state.get('hurry_up_threshold') or 0
        return self.phase() == PHASE_PLAYING and 0 < self.remaining() <= threshold

    def should_end_round(self) -> bool:
        """True once the synchronised clock has crossed the round deadline."""
        return self.phase() == PHASE_EXPIRED
