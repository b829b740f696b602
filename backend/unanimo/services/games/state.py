"""Session and player values owned by the round lifecycle.

These are plain values: the lifecycle loads a snapshot from the store,
mutates it and saves it back. ``to_dict``/``from_dict`` define the persisted
shape; ``public_dict`` is the projection handed to clients.
"""

import random
import re
import string
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from .dictionary import RoundContext
from .settings import GameSettings

STATUS_WAITING = 'waiting'
STATUS_PLAYING = 'playing'
STATUS_ROUND_ENDED = 'round_ended'
STATUS_FINISHED = 'finished'
STATUS_CLOSED = 'closed'
SESSION_STATUSES = (STATUS_WAITING, STATUS_PLAYING, STATUS_ROUND_ENDED, STATUS_FINISHED, STATUS_CLOSED)

PLAYER_CONNECTED = 'connected'
PLAYER_PLAYING = 'playing'
PLAYER_READY = 'ready'
PLAYER_DISCONNECTED = 'disconnected'

CODE_ALPHABET = string.ascii_uppercase + string.digits
CODE_LENGTH = 4
MAX_CODE_LENGTH = 8

_COLOR_PART = re.compile(r'^#[0-9A-Fa-f]{6}$')
DEFAULT_PALETTE = (
    '#FF6B6B,#FFD93D',
    '#4D96FF,#6BCB77',
    '#9D4EDD,#F72585',
    '#00B4D8,#90E0EF',
    '#F77F00,#FCBF49',
    '#2A9D8F,#E9C46A',
    '#E63946,#A8DADC',
    '#3A86FF,#FFBE0B',
)


def generate_session_code(exists: Callable[[str], bool], length: int = CODE_LENGTH) -> str:
    """Generate a unique, short session code."""
    while True:
        code = ''.join(random.choices(CODE_ALPHABET, k=length))
        if not exists(code):
            return code


def normalize_code(code) -> str:
    return str(code or '').strip().upper()


def validate_color(color) -> Optional[str]:
    """Return the colour token if it is two ``#RRGGBB`` values, else None."""
    if not color or not isinstance(color, str):
        return None
    parts = [p.strip() for p in color.split(',')]
    if len(parts) != 2 or not all(_COLOR_PART.match(p) for p in parts):
        return None
    return ','.join(p.upper() for p in parts)


@dataclass
class Player:
    id: str
    name: str
    color: str = ''
    score: int = 0
    status: str = PLAYER_CONNECTED
    disconnected: bool = False
    current_answers: List[str] = field(default_factory=list)
    round_results: dict = field(default_factory=dict)
    round_history: List[dict] = field(default_factory=list)
    joined_at: Optional[int] = None

    @property
    def is_active(self) -> bool:
        return not self.disconnected

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'color': self.color,
            'score': self.score,
            'status': self.status,
            'disconnected': self.disconnected,
            'current_answers': list(self.current_answers),
            'round_results': self.round_results,
            'round_history': list(self.round_history),
            'joined_at': self.joined_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'Player':
        return cls(
            id=str(data['id']),
            name=data.get('name') or '',
            color=data.get('color') or '',
            score=int(data.get('score') or 0),
            status=data.get('status') or PLAYER_CONNECTED,
            disconnected=bool(data.get('disconnected')),
            current_answers=list(data.get('current_answers') or []),
            round_results=dict(data.get('round_results') or {}),
            round_history=list(data.get('round_history') or []),
            joined_at=data.get('joined_at'),
        )


@dataclass
class Session:
    id: str
    status: str = STATUS_WAITING
    round: int = 0
    total_rounds: int = 3
    selected_category: Optional[str] = None
    current_category: Optional[str] = None
    current_prompt_id: Optional[str] = None
    current_prompt: Optional[str] = None
    round_context: Optional[RoundContext] = None
    used_prompts: List[str] = field(default_factory=list)
    countdown_starts_at: Optional[int] = None
    round_starts_at: Optional[int] = None
    round_ends_at: Optional[int] = None
    countdown_duration: int = 3_000
    round_duration: int = 120_000
    min_players: int = 2
    max_players: int = 12
    max_words_per_player: int = 6
    max_word_length: int = 30
    hurry_up_threshold: int = 10_000
    players: Dict[str, Player] = field(default_factory=dict)
    round_history: List[dict] = field(default_factory=list)
    game_history: List[dict] = field(default_factory=list)
    round_top_words: List[dict] = field(default_factory=list)
    version: int = 0
    created_at: Optional[int] = None
    updated_at: Optional[int] = None

    @classmethod
    def new(cls, session_id: str, settings: GameSettings, now: int) -> 'Session':
        return cls(
            id=session_id,
            total_rounds=settings.total_rounds,
            countdown_duration=settings.countdown_duration,
            round_duration=settings.round_duration,
            min_players=settings.min_players,
            max_players=settings.max_players,
            max_words_per_player=settings.max_words_per_player,
            max_word_length=settings.max_word_length,
            hurry_up_threshold=settings.hurry_up_threshold,
            created_at=now,
            updated_at=now,
        )

    def get_player(self, player_id) -> Optional[Player]:
        if player_id is None:
            return None
        return self.players.get(str(player_id))

    def active_players(self) -> List[Player]:
        return [p for p in self.players.values() if p.is_active]

    def clear_timing(self) -> None:
        self.countdown_starts_at = None
        self.round_starts_at = None
        self.round_ends_at = None

    def to_dict(self):
        return {
            'game_id': self.id,
            'status': self.status,
            'round': self.round,
            'total_rounds': self.total_rounds,
            'selected_category': self.selected_category,
            'current_category': self.current_category,
            'current_prompt_id': self.current_prompt_id,
            'current_prompt': self.current_prompt,
            'round_context': self.round_context.to_dict() if self.round_context else None,
            'used_prompts': list(self.used_prompts),
            'countdown_starts_at': self.countdown_starts_at,
            'round_starts_at': self.round_starts_at,
            'round_ends_at': self.round_ends_at,
            'countdown_duration': self.countdown_duration,
            'round_duration': self.round_duration,
            'min_players': self.min_players,
            'max_players': self.max_players,
            'max_words_per_player': self.max_words_per_player,
            'max_word_length': self.max_word_length,
            'hurry_up_threshold': self.hurry_up_threshold,
            'players': {pid: p.to_dict() for pid, p in self.players.items()},
            'round_history': list(self.round_history),
            'game_history': list(self.game_history),
            'round_top_words': list(self.round_top_words),
            'version': self.version,
            'created_at': self.created_at,
            'updated_at': self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'Session':
        defaults = cls(id='')
        return cls(
            id=data['game_id'],
            status=data.get('status') or STATUS_WAITING,
            round=int(data.get('round') or 0),
            total_rounds=int(data.get('total_rounds') or defaults.total_rounds),
            selected_category=data.get('selected_category'),
            current_category=data.get('current_category'),
            current_prompt_id=data.get('current_prompt_id'),
            current_prompt=data.get('current_prompt'),
            round_context=RoundContext.from_dict(data.get('round_context')),
            used_prompts=list(data.get('used_prompts') or []),
            countdown_starts_at=data.get('countdown_starts_at'),
            round_starts_at=data.get('round_starts_at'),
            round_ends_at=data.get('round_ends_at'),
            countdown_duration=int(data.get('countdown_duration') or 0),
            round_duration=int(data.get('round_duration') or defaults.round_duration),
            min_players=int(data.get('min_players') or defaults.min_players),
            max_players=int(data.get('max_players') or defaults.max_players),
            max_words_per_player=int(data.get('max_words_per_player') or defaults.max_words_per_player),
            max_word_length=int(data.get('max_word_length') or defaults.max_word_length),
            hurry_up_threshold=int(data.get('hurry_up_threshold') or 0),
            players={str(pid): Player.from_dict(p) for pid, p in (data.get('players') or {}).items()},
            round_history=list(data.get('round_history') or []),
            game_history=list(data.get('game_history') or []),
            round_top_words=list(data.get('round_top_words') or []),
            version=int(data.get('version') or 0),
            created_at=data.get('created_at'),
            updated_at=data.get('updated_at'),
        )

    def public_dict(self, viewer_id: Optional[str] = None):
        """Client projection.

        While a round is being played, other players' answers are reduced to
        a count and the round's accepted answers are withheld.
        """
        payload = self.to_dict()
        payload.pop('round_context', None)
        payload.pop('used_prompts', None)
        if self.status != STATUS_PLAYING:
            return payload
        viewer_id = str(viewer_id) if viewer_id is not None else None
        for pid, player in payload['players'].items():
            if pid == viewer_id:
                continue
            player['answer_count'] = len(player['current_answers'])
            player['current_answers'] = []
        return payload
