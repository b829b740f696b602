"""Round lifecycle: the per-session state machine.

    waiting -> playing -> round_ended -> playing ... -> finished
    finished / round_ended --reset--> waiting
    any --close--> closed (terminal)

Every operation is a read-modify-write of one session snapshot, serialized
per session id and committed through the store's compare-and-swap. Nothing
ticks on the server: a round ends when someone calls :meth:`end_round`, and
only the first such call after the deadline does anything.
"""

import logging
import threading
from contextlib import contextmanager
from typing import Callable, Dict, Iterable, Optional, Tuple

from unanimo.errors import InvalidTransitionError, NotFoundError, ValidationError
from .clock import now_ms
from .content import ContentProvider
from .dictionary import RoundContext, build_dictionary
from .matching import MatchClassifier, MatchType
from .normalize import normalize_word
from .scoring import score_round, top_words
from .settings import (
    COUNTDOWN_RANGE,
    HURRY_UP_RANGE,
    NAME_LENGTH_RANGE,
    PLAYERS_RANGE,
    ROUND_DURATION_RANGE,
    TOTAL_ROUNDS_RANGE,
    WORD_LENGTH_RANGE,
    WORDS_PER_PLAYER_RANGE,
    GameSettings,
    coerce_in_range,
)
from .state import (
    DEFAULT_PALETTE,
    MAX_CODE_LENGTH,
    PLAYER_CONNECTED,
    PLAYER_DISCONNECTED,
    PLAYER_PLAYING,
    PLAYER_READY,
    STATUS_CLOSED,
    STATUS_FINISHED,
    STATUS_PLAYING,
    STATUS_ROUND_ENDED,
    STATUS_WAITING,
    Player,
    Session,
    generate_session_code,
    normalize_code,
    validate_color,
)
from .store import SessionStore

log = logging.getLogger(__name__)

EVENT_JOINED = 'joined'
EVENT_LEFT = 'left'
EVENT_READY = 'ready'
EVENT_ROUND_STARTED = 'round_started'
EVENT_ROUND_ENDED = 'round_ended'
EVENT_SYNC = 'sync'
EVENT_CLOSED = 'closed'

Notifier = Callable[[str, str], None]


def _no_notify(session_id: str, event: str) -> None:
    return None


class RoundLifecycle:
    def __init__(self, store: SessionStore, content: ContentProvider,
                 settings: Optional[GameSettings] = None,
                 notify: Optional[Notifier] = None,
                 clock: Optional[Callable[[], int]] = None):
        self.store = store
        self.content = content
        self.settings = settings or GameSettings()
        self.notify = notify or _no_notify
        self.clock = clock or now_ms
        self._locks: Dict[str, threading.RLock] = {}
        self._locks_guard = threading.Lock()

    # ---- plumbing ----

    @contextmanager
    def _locked(self, session_id: str):
        with self._locks_guard:
            lock = self._locks.setdefault(session_id, threading.RLock())
        with lock:
            yield

    def _forget_lock(self, session_id: str) -> None:
        with self._locks_guard:
            self._locks.pop(session_id, None)

    def _load(self, session_id: str) -> Session:
        session = self.store.load(session_id)
        if session is None:
            self._forget_lock(session_id)
            raise NotFoundError(f'Game {session_id} not found')
        return session

    def _commit(self, session: Session, event: Optional[str] = None) -> Session:
        session.updated_at = self.clock()
        self.store.save(session)
        if event:
            self.notify(session.id, event)
        return session

    def _config_fields(self):
        s = self.settings
        return (
            ('total_rounds', TOTAL_ROUNDS_RANGE, s.total_rounds),
            ('round_duration', ROUND_DURATION_RANGE, s.round_duration),
            ('countdown_duration', COUNTDOWN_RANGE, s.countdown_duration),
            ('min_players', PLAYERS_RANGE, s.min_players),
            ('max_players', PLAYERS_RANGE, s.max_players),
            ('max_words_per_player', WORDS_PER_PLAYER_RANGE, s.max_words_per_player),
            ('max_word_length', WORD_LENGTH_RANGE, s.max_word_length),
            ('hurry_up_threshold', HURRY_UP_RANGE, s.hurry_up_threshold),
        )

    def _apply_config(self, session: Session, changes: dict) -> None:
        for key, bounds, default in self._config_fields():
            if changes.get(key) is not None:
                setattr(session, key, coerce_in_range(changes[key], bounds, default))
        if session.min_players > session.max_players:
            raise ValidationError('min_players cannot exceed max_players')
        session.total_rounds = max(session.total_rounds, session.round)

    @staticmethod
    def _finish_game(session: Session, now: int, shared) -> None:
        session.game_history.append({
            'rounds': session.round,
            'final_scores': {pid: p.score for pid, p in session.players.items()},
            'last_prompt': session.current_prompt,
            'round_top_words': list(shared),
            'finished_at': now,
        })
        session.status = STATUS_FINISHED

    @staticmethod
    def _validate_name(name) -> str:
        name = name.strip() if isinstance(name, str) else ''
        low, high = NAME_LENGTH_RANGE
        if not (low <= len(name) <= high):
            raise ValidationError(f'Name must be between {low} and {high} characters')
        return name

    @staticmethod
    def _require_open(session: Session) -> None:
        if session.status == STATUS_CLOSED:
            raise InvalidTransitionError('Game is closed')

    def _clean_answers(self, session: Session, words) -> list:
        if isinstance(words, str):
            words = [words]
        cleaned, seen = [], set()
        for word in words or []:
            if not isinstance(word, str):
                continue
            word = word.strip()[:session.max_word_length].strip()
            if not word:
                continue
            key = normalize_word(word)
            if key:
                if key in seen:
                    continue
                seen.add(key)
            cleaned.append(word)
            if len(cleaned) >= session.max_words_per_player:
                break
        return cleaned

    def _resolve_round_category(self, session: Session, requested) -> str:
        if requested:
            resolved = self.content.resolve_category(requested)
            if resolved is None:
                raise ValidationError(f'Unknown category: {requested}')
            return resolved
        if session.selected_category:
            resolved = self.content.resolve_category(session.selected_category)
            if resolved is not None:
                return resolved
        resolved = self.content.random_category()
        if resolved is None:
            raise NotFoundError('No categories available')
        return resolved

    # ---- session management ----

    def create_session(self, session_id=None, category=None, **config) -> Session:
        code = normalize_code(session_id)
        if code:
            if len(code) > MAX_CODE_LENGTH or not code.isalnum():
                raise ValidationError('Invalid game code')
            if self.store.exists(code):
                raise ValidationError('Game code already in use')
        else:
            code = generate_session_code(self.store.exists)

        selected = None
        if category:
            selected = self.content.resolve_category(category)
            if selected is None:
                raise ValidationError(f'Unknown category: {category}')

        session = Session.new(code, self.settings, self.clock())
        session.selected_category = selected
        self._apply_config(session, config)
        with self._locked(code):
            self.store.save(session)
        log.info(f"[session-create] session={code} category={selected} total_rounds={session.total_rounds}")
        return session

    def get_state(self, session_id) -> Session:
        return self._load(normalize_code(session_id))

    def discard(self, session_id) -> None:
        """Drop a session from the store once it is no longer needed."""
        code = normalize_code(session_id)
        with self._locked(code):
            self.store.delete(code)
        self._forget_lock(code)

    def purge(self, max_age_ms: int) -> int:
        """Delete closed sessions and sessions idle for longer than ``max_age_ms``."""
        now = self.clock()
        removed = 0
        for code in self.store.session_ids():
            with self._locked(code):
                session = self.store.load(code)
                if session is not None:
                    idle = now - (session.updated_at or session.created_at or 0)
                    if session.status != STATUS_CLOSED and idle <= max_age_ms:
                        continue
                    self.store.delete(code)
                    removed += 1
            self._forget_lock(code)
        if removed:
            log.info(f"[purge] removed={removed}")
        return removed

    # ---- players ----

    def join(self, session_id, player_id, name, color=None) -> Tuple[Session, bool]:
        """Add a player. A known player id is a reconnect and returns ``created=False``."""
        code = normalize_code(session_id)
        player_id = str(player_id or '').strip()
        if not player_id:
            raise ValidationError('player_id is required')
        with self._locked(code):
            session = self._load(code)
            self._require_open(session)

            existing = session.get_player(player_id)
            if existing is not None:
                if existing.disconnected:
                    self._restore(session, existing)
                    self._commit(session, EVENT_JOINED)
                return session, False

            name = self._validate_name(name)
            if color is not None:
                token = validate_color(color)
                if token is None:
                    raise ValidationError('Invalid color')
            else:
                token = DEFAULT_PALETTE[len(session.players) % len(DEFAULT_PALETTE)]
            if len(session.active_players()) >= session.max_players:
                raise InvalidTransitionError('Game is full')

            session.players[player_id] = Player(
                id=player_id,
                name=name,
                color=token,
                status=PLAYER_PLAYING if session.status == STATUS_PLAYING else PLAYER_CONNECTED,
                joined_at=self.clock(),
            )
            log.info(f"[join] session={code} player={player_id} players={len(session.players)}")
            return self._commit(session, EVENT_JOINED), True

    @staticmethod
    def _restore(session: Session, player: Player) -> None:
        player.disconnected = False
        player.status = PLAYER_PLAYING if session.status == STATUS_PLAYING else PLAYER_CONNECTED

    def reconnect(self, session_id, player_id) -> Session:
        code = normalize_code(session_id)
        with self._locked(code):
            session = self._load(code)
            self._require_open(session)
            player = session.get_player(player_id)
            if player is None:
                raise NotFoundError('Player not found')
            if not player.disconnected:
                return session
            self._restore(session, player)
            return self._commit(session, EVENT_JOINED)

    def leave(self, session_id, player_id) -> Session:
        """Mark a player disconnected; the record stays for reconnection."""
        code = normalize_code(session_id)
        with self._locked(code):
            session = self._load(code)
            player = session.get_player(player_id)
            if player is None or player.disconnected:
                return session
            player.disconnected = True
            player.status = PLAYER_DISCONNECTED
            log.info(f"[leave] session={code} player={player.id}")
            return self._commit(session, EVENT_LEFT)

    def update_player(self, session_id, player_id, name=None, color=None) -> Session:
        code = normalize_code(session_id)
        with self._locked(code):
            session = self._load(code)
            self._require_open(session)
            player = session.get_player(player_id)
            if player is None:
                raise NotFoundError('Player not found')
            if name is not None:
                player.name = self._validate_name(name)
            if color is not None:
                token = validate_color(color)
                if token is None:
                    raise ValidationError('Invalid color')
                player.color = token
            return self._commit(session, EVENT_SYNC)

    # ---- configuration ----

    def set_category(self, session_id, category) -> Session:
        code = normalize_code(session_id)
        with self._locked(code):
            session = self._load(code)
            self._require_open(session)
            if not category:
                session.selected_category = None
            else:
                resolved = self.content.resolve_category(category)
                if resolved is None:
                    raise ValidationError(f'Unknown category: {category}')
                session.selected_category = resolved
            return self._commit(session, EVENT_SYNC)

    def update_config(self, session_id, **changes) -> Session:
        code = normalize_code(session_id)
        with self._locked(code):
            session = self._load(code)
            self._require_open(session)
            if session.status == STATUS_PLAYING:
                raise InvalidTransitionError('Cannot change settings during a round')
            self._apply_config(session, changes)
            if session.status == STATUS_ROUND_ENDED and session.round >= session.total_rounds:
                self._finish_game(session, self.clock(), session.round_top_words)
                log.info(f"[game-finish] session={code} rounds={session.round} reason=config")
            return self._commit(session, EVENT_SYNC)

    # ---- rounds ----

    def start_round(self, session_id, category=None, duration=None, total_rounds=None) -> Session:
        code = normalize_code(session_id)
        with self._locked(code):
            session = self._load(code)
            if session.status not in (STATUS_WAITING, STATUS_ROUND_ENDED):
                raise InvalidTransitionError(f'Cannot start a round while the game is {session.status}')
            active = session.active_players()
            if len(active) < session.min_players:
                raise InvalidTransitionError(f'At least {session.min_players} players are required')

            if duration is not None:
                session.round_duration = coerce_in_range(duration, ROUND_DURATION_RANGE, self.settings.round_duration)
            if total_rounds is not None:
                session.total_rounds = coerce_in_range(total_rounds, TOTAL_ROUNDS_RANGE, session.total_rounds)
            if session.round >= session.total_rounds:
                raise InvalidTransitionError(f'All {session.total_rounds} rounds have been played')

            category_name = self._resolve_round_category(session, category)
            card = self.content.draw_prompt(category_name, exclude=session.used_prompts)
            if card is None:
                raise NotFoundError(f'No prompts available for category {category_name}')

            now = self.clock()
            session.round += 1
            session.status = STATUS_PLAYING
            session.current_category = category_name
            session.current_prompt_id = card.prompt_id
            session.current_prompt = card.question
            session.round_context = RoundContext.from_answers(card.question, card.canonical_answers)
            if card.prompt_id not in session.used_prompts:
                session.used_prompts.append(card.prompt_id)
            session.countdown_starts_at = now
            session.round_starts_at = now + session.countdown_duration
            session.round_ends_at = session.round_starts_at + session.round_duration
            session.round_top_words = []
            for player in active:
                player.current_answers = []
                player.round_results = {}
                player.status = PLAYER_PLAYING

            dictionary = build_dictionary(session.round_context)
            log.info(
                f"[round-start] session={code} round={session.round}/{session.total_rounds} "
                f"category={category_name} prompt={card.prompt_id} entries={len(dictionary)} ends_at={session.round_ends_at}"
            )
            return self._commit(session, EVENT_ROUND_STARTED)

    def submit_answers(self, session_id, player_id, words, forced_pass=False) -> Session:
        """Replace the player's answers for the running round (last write wins)."""
        code = normalize_code(session_id)
        with self._locked(code):
            session = self._load(code)
            player = session.get_player(player_id)
            if player is None:
                raise NotFoundError('Player not found')
            if session.status != STATUS_PLAYING:
                raise InvalidTransitionError('No round in progress')
            if player.disconnected:
                raise InvalidTransitionError('Player has left the game')
            player.current_answers = self._clean_answers(session, words)
            player.status = PLAYER_READY if forced_pass else PLAYER_PLAYING
            return self._commit(session, EVENT_READY if forced_pass else EVENT_SYNC)

    def end_round(self, session_id, expected_round=None, expected_ends_at=None) -> Session:
        """Score the running round and move to ``round_ended`` or ``finished``.

        Raises InvalidTransitionError when no round is running, or when
        ``expected_round`` names a round that is no longer current; racing
        callers after the first therefore change nothing. ``expected_ends_at``
        pins one particular round start, so a timer armed before a reset
        cannot end a later round that reuses the same number.
        """
        code = normalize_code(session_id)
        if expected_round is not None:
            try:
                expected_round = int(expected_round)
            except (TypeError, ValueError):
                raise ValidationError('Invalid round number')
        with self._locked(code):
            session = self._load(code)
            if session.status != STATUS_PLAYING:
                raise InvalidTransitionError('Round is not in progress')
            if expected_round is not None and expected_round != session.round:
                raise InvalidTransitionError(f'Round {expected_round} is no longer current')
            if expected_ends_at is not None and expected_ends_at != session.round_ends_at:
                raise InvalidTransitionError('Round deadline has changed')

            now = self.clock()
            dictionary = build_dictionary(session.round_context) if session.round_context else None
            active = session.active_players()
            names = {p.id: p.name for p in session.players.values()}
            results = score_round({p.id: list(p.current_answers) for p in active}, dictionary, names)
            deltas = {pid: r.score_delta for pid, r in results.items()}

            for player in active:
                result = results[player.id]
                player.score += result.score_delta
                player.round_results = result.to_dict()
                player.round_history.append({
                    'round': session.round,
                    'answers': list(player.current_answers),
                    'score_delta': result.score_delta,
                })
            for player in session.players.values():
                player.current_answers = []
                player.status = PLAYER_DISCONNECTED if player.disconnected else PLAYER_CONNECTED

            shared = top_words(results, names)
            session.round_top_words = shared
            session.round_history.append({
                'game': len(session.game_history) + 1,
                'round': session.round,
                'category': session.current_category,
                'prompt_id': session.current_prompt_id,
                'prompt': session.current_prompt,
                'score_deltas': deltas,
                'top_words': shared,
                'ended_at': now,
            })

            if session.round >= session.total_rounds:
                self._finish_game(session, now, shared)
            else:
                session.status = STATUS_ROUND_ENDED

            session.clear_timing()
            session.round_context = None
            log.info(
                f"[round-end] session={code} round={session.round} status={session.status} "
                f"deltas={deltas}"
            )
            return self._commit(session, EVENT_ROUND_ENDED)

    def update_round_timer(self, session_id, round_ends_at) -> Session:
        code = normalize_code(session_id)
        with self._locked(code):
            session = self._load(code)
            if session.status != STATUS_PLAYING:
                raise InvalidTransitionError('No round in progress')
            try:
                deadline = int(round_ends_at)
            except (TypeError, ValueError):
                raise ValidationError('Invalid round end time')
            if deadline <= (session.round_starts_at or 0):
                raise ValidationError('Round end must be after the round start')
            session.round_ends_at = deadline
            session.round_duration = deadline - session.round_starts_at
            return self._commit(session, EVENT_SYNC)

    def reset(self, session_id) -> Session:
        """Back to ``waiting`` with round 0 and every score and player history cleared."""
        code = normalize_code(session_id)
        with self._locked(code):
            session = self._load(code)
            self._require_open(session)
            for player in session.players.values():
                player.score = 0
                player.round_history = []
                player.round_results = {}
                player.current_answers = []
                player.status = PLAYER_DISCONNECTED if player.disconnected else PLAYER_CONNECTED
            session.round = 0
            session.status = STATUS_WAITING
            session.current_category = None
            session.current_prompt_id = None
            session.current_prompt = None
            session.round_context = None
            session.used_prompts = []
            session.round_top_words = []
            session.clear_timing()
            log.info(f"[reset] session={code}")
            return self._commit(session, EVENT_SYNC)

    def close(self, session_id) -> Session:
        code = normalize_code(session_id)
        with self._locked(code):
            session = self._load(code)
            if session.status == STATUS_CLOSED:
                return session
            for player in session.players.values():
                player.disconnected = True
                player.status = PLAYER_DISCONNECTED
            session.status = STATUS_CLOSED
            session.round_context = None
            session.clear_timing()
            log.info(f"[close] session={code}")
            return self._commit(session, EVENT_CLOSED)

    # ---- matching ----

    def classify_answers(self, session_id, word_a: str, word_b: str) -> MatchType:
        """Classify two words against the current round's dictionary, if any."""
        session = self.get_state(session_id)
        dictionary = build_dictionary(session.round_context) if session.round_context else None
        return MatchClassifier(dictionary).classify(word_a, word_b)

    def list_categories(self) -> Iterable[str]:
        return self.content.categories()
