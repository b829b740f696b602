import re
from enum import Enum
from typing import Optional

from .dictionary import GENDER_VOWELS, EquivalenceDictionary, get_stem
from .normalize import normalize_word

_DIMINUTIVE_LIKE = re.compile(r'(IT[AO]|CH[AO]|LL[AO])$')
MIN_FALLBACK_STEM = 3


class MatchType(str, Enum):
    EXACT = 'EXACT'
    PLURAL = 'PLURAL'
    GENDER = 'GENDER'
    SYNONYM = 'SYNONYM'
    STEM_SIMILAR = 'STEM_SIMILAR'
    NONE = 'NONE'


def looks_plural(word: str) -> bool:
    return word.endswith('S') or bool(_DIMINUTIVE_LIKE.search(word))


class MatchClassifier:
    """Decides whether two free-text answers name the same thing, and why.

    With a round dictionary the full tier ladder applies. Without one (no
    round context loaded) only exact equality and plain stem equality on
    stems longer than two characters count.
    """

    def __init__(self, dictionary: Optional[EquivalenceDictionary] = None):
        self.dictionary = dictionary

    @property
    def has_dictionary(self) -> bool:
        return self.dictionary is not None and self.dictionary.loaded

    def classify(self, word_a: str, word_b: str) -> MatchType:
        norm_a = normalize_word(word_a)
        norm_b = normalize_word(word_b)
        if not norm_a or not norm_b:
            return MatchType.NONE
        if norm_a == norm_b:
            return MatchType.EXACT

        if not self.has_dictionary:
            stem_a = get_stem(norm_a)
            if len(stem_a) >= MIN_FALLBACK_STEM and stem_a == get_stem(norm_b):
                return MatchType.STEM_SIMILAR
            return MatchType.NONE

        stem_a = self.dictionary.get_stem(norm_a)
        stem_b = self.dictionary.get_stem(norm_b)
        same_group = self._same_canonical(norm_a, stem_a, norm_b, stem_b)

        if stem_a != stem_b:
            # Declared synonyms rarely share a stem (AUTO / CARRO).
            return MatchType.SYNONYM if same_group else MatchType.NONE

        if looks_plural(norm_a) or looks_plural(norm_b):
            return MatchType.PLURAL

        last_a, last_b = norm_a[-1], norm_b[-1]
        if last_a in GENDER_VOWELS and last_b in GENDER_VOWELS and last_a != last_b:
            return MatchType.GENDER

        if same_group:
            return MatchType.SYNONYM
        return MatchType.STEM_SIMILAR

    def is_match(self, word_a: str, word_b: str) -> bool:
        return self.classify(word_a, word_b) is not MatchType.NONE

    def _same_canonical(self, norm_a, stem_a, norm_b, stem_b) -> bool:
        entries = self.dictionary.entries
        id_a = entries.get(norm_a) or entries.get(stem_a)
        id_b = entries.get(norm_b) or entries.get(stem_b)
        return id_a is not None and id_a == id_b
