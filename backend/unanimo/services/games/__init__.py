"""Game domain services: word matching, scoring, clock sync and the round lifecycle.

This package contains pure(ish) domain logic that should be imported by
HTTP routes and socket handlers, keeping transport concerns separated
from core game mechanics.
"""

from .dictionary import EquivalenceDictionary, RoundContext, build_dictionary
from .lifecycle import RoundLifecycle
from .matching import MatchClassifier, MatchType
from .normalize import normalize_word
from .scoring import score_round
