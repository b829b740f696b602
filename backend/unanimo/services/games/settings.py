from dataclasses import dataclass

TOTAL_ROUNDS_RANGE = (1, 10)
ROUND_DURATION_RANGE = (10_000, 300_000)
COUNTDOWN_RANGE = (0, 10_000)
PLAYERS_RANGE = (2, 20)
WORDS_PER_PLAYER_RANGE = (1, 10)
WORD_LENGTH_RANGE = (3, 50)
HURRY_UP_RANGE = (0, 60_000)

NAME_LENGTH_RANGE = (2, 20)


def coerce_in_range(value, bounds, default: int) -> int:
    """Return ``value`` as an int inside ``bounds``, else ``default``.

    Malformed and out-of-range input both fall back to the default so that
    room creation survives sloppy clients.
    """
    if value is None or isinstance(value, bool):
        return default
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    low, high = bounds
    if number < low or number > high:
        return default
    return number


@dataclass(frozen=True)
class GameSettings:
    """Defaults applied to new sessions. Durations are milliseconds."""

    total_rounds: int = 3
    round_duration: int = 120_000
    countdown_duration: int = 3_000
    min_players: int = 2
    max_players: int = 12
    max_words_per_player: int = 6
    max_word_length: int = 30
    hurry_up_threshold: int = 10_000

    @classmethod
    def from_config(cls, config) -> 'GameSettings':
        base = cls()

        def seconds(key, fallback_ms):
            raw = config.get(key)
            if raw is None:
                return fallback_ms
            try:
                return int(float(raw) * 1000)
            except (TypeError, ValueError):
                return fallback_ms

        return cls(
            total_rounds=coerce_in_range(config.get('TOTAL_ROUNDS'), TOTAL_ROUNDS_RANGE, base.total_rounds),
            round_duration=coerce_in_range(seconds('ROUND_DURATION_SEC', base.round_duration),
                                           ROUND_DURATION_RANGE, base.round_duration),
            countdown_duration=coerce_in_range(seconds('COUNTDOWN_SEC', base.countdown_duration),
                                               COUNTDOWN_RANGE, base.countdown_duration),
            min_players=coerce_in_range(config.get('MIN_PLAYERS'), PLAYERS_RANGE, base.min_players),
            max_players=coerce_in_range(config.get('MAX_PLAYERS'), PLAYERS_RANGE, base.max_players),
            max_words_per_player=coerce_in_range(config.get('MAX_WORDS_PER_PLAYER'),
                                                 WORDS_PER_PLAYER_RANGE, base.max_words_per_player),
            max_word_length=coerce_in_range(config.get('MAX_WORD_LENGTH'), WORD_LENGTH_RANGE, base.max_word_length),
            hurry_up_threshold=coerce_in_range(seconds('HURRY_UP_SEC', base.hurry_up_threshold),
                                               HURRY_UP_RANGE, base.hurry_up_threshold),
        )
