import time
from typing import Set, Tuple

from unanimo import socketio
from unanimo.errors import GameError
from .clock import now_ms

_scheduled_round_keys: Set[Tuple[str, int, int]] = set()


def schedule_round_expiry(app, session_id: str, round_number: int, ends_at: int) -> None:
    """Schedule an authoritative end for a running round.

    - No-ops when AUTO_END_ROUNDS is off, and in TESTING unless
      ENABLE_SCHEDULER_IN_TESTS is set
    - Ensures a single timer per (session, round, ends_at); a reset or a
      moved deadline arms a fresh timer and leaves the old one stale
    - Fires end_round(expected_round, expected_ends_at) once ``ends_at`` plus
      the grace period has passed; a client that already ended the round wins
    """
    if not app.config.get('AUTO_END_ROUNDS', True):
        return
    if app.config.get('TESTING') and not app.config.get('ENABLE_SCHEDULER_IN_TESTS'):
        return

    key = (session_id, int(round_number), int(ends_at))
    if key in _scheduled_round_keys:
        app.logger.info(f"[timer-skip] session={session_id} round={round_number} already scheduled")
        return
    _scheduled_round_keys.add(key)

    grace_ms = int(float(app.config.get('AUTO_END_GRACE_SEC', 2)) * 1000)
    fire_at = key[2] + grace_ms
    app.logger.info(f"[timer-set] session={session_id} round={round_number} ends_at={ends_at} fire_at={fire_at}")

    def _worker(sid: str, expected_round: int, expected_ends_at: int, deadline: int):
        hb = int(app.config.get('TIMER_HEARTBEAT_SEC', 0) or 0)
        remaining = max(0.0, (deadline - now_ms()) / 1000.0)
        while remaining > 0:
            step = min(hb, remaining) if hb > 0 else remaining
            time.sleep(step)
            remaining = max(0.0, (deadline - now_ms()) / 1000.0) if hb > 0 else 0.0
            if hb > 0 and remaining > 0:
                app.logger.info(f"[timer-heartbeat] session={sid} round={expected_round} remaining={remaining:.1f}s")

        with app.app_context():
            _scheduled_round_keys.discard((sid, expected_round, expected_ends_at))
            app.logger.info(f"[timer-fire] session={sid} expected_round={expected_round} ends_at={expected_ends_at}")
            lifecycle = app.extensions['unanimo.lifecycle']
            try:
                lifecycle.end_round(sid, expected_round=expected_round, expected_ends_at=expected_ends_at)
            except GameError as exc:
                app.logger.info(f"[timer-abort] session={sid} round={expected_round} reason={exc.message}")

    if app.config.get('TESTING'):
        _worker(session_id, key[1], key[2], fire_at)
    else:
        socketio.start_background_task(_worker, session_id, key[1], key[2], fire_at)
