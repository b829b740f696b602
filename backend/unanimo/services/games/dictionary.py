"""Round-scoped word equivalence dictionary.

Every round carries a list of canonical answer groups such as ``"AUTO|CARRO"``
or ``"PENA."``. Members of a group are separated by ``|`` and the first member
is the group's canonical form. A trailing ``.`` marks a strict form: a
spelling whose final vowel must survive stemming.

The dictionary is a pure function of the :class:`RoundContext`. It is never
persisted; sessions store the context and rebuild (or reuse a memoized)
dictionary whenever they need one.
"""

import logging
import re
from dataclasses import dataclass
from functools import lru_cache
from types import MappingProxyType
from typing import Dict, FrozenSet, Iterable, List, Optional, Tuple

from .normalize import normalize_word

log = logging.getLogger(__name__)

GROUP_DELIMITER = '|'
STRICT_MARKER = '.'
GENDER_VOWELS = frozenset('AEO')
VOWELS = frozenset('AEIOU')

_DIMINUTIVE_SUFFIXES = (
    re.compile(r'C?IT[AO]$'),
    re.compile(r'[AO]CH[AO]$'),
    re.compile(r'[AO]LL[AO]$'),
)
# Most specific suffix first; only the first matching rule applies.
_GENDER_RULES = (
    ('TRIZ', 'TOR'),
    ('TOR', 'TRIZ'),
    ('ONA', 'ON'),
    ('ON', 'ONA'),
    ('INA', 'IN'),
    ('IN', 'INA'),
    ('O', 'A'),
    ('A', 'O'),
)
MIN_DIMINUTIVE_STEM = 3


@dataclass(frozen=True)
class RoundContext:
    prompt: str
    answers: Tuple[str, ...] = ()

    @classmethod
    def from_answers(cls, prompt: Optional[str], answers: Iterable) -> 'RoundContext':
        kept = tuple(a.strip() for a in answers or () if isinstance(a, str) and a.strip())
        return cls(prompt=(prompt or '').strip(), answers=kept)

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> Optional['RoundContext']:
        if not data:
            return None
        return cls.from_answers(data.get('prompt'), data.get('answers') or [])

    def to_dict(self):
        return {'prompt': self.prompt, 'answers': list(self.answers)}


def split_group(entry: str) -> List[Tuple[str, bool]]:
    """Split a group entry into ``(spelling, is_strict)`` members, in order."""
    members = []
    for part in entry.split(GROUP_DELIMITER):
        part = part.strip()
        strict = part.endswith(STRICT_MARKER)
        if strict:
            part = part[:-1].strip()
        if part:
            members.append((part, strict))
    return members


def get_stem(word: str, strict_forms: FrozenSet[str] = frozenset()) -> str:
    """Reduce a normalized word to the stem used for loose comparison.

    Plural and diminutive endings are always stripped. The trailing gender
    vowel is stripped afterwards unless the partially stemmed form is strict.
    """
    stem = word
    if stem.endswith('CES'):
        stem = stem[:-3] + 'Z'
    elif stem.endswith('ES') and len(stem) > 4 and stem[-3] not in VOWELS:
        stem = stem[:-2]
    elif stem.endswith('S') and len(stem) > 3:
        stem = stem[:-1]

    for pattern in _DIMINUTIVE_SUFFIXES:
        shorter = pattern.sub('', stem)
        if len(shorter) >= MIN_DIMINUTIVE_STEM:
            stem = shorter

    if stem in strict_forms:
        return stem

    if len(stem) > 2 and stem[-1] in GENDER_VOWELS:
        stem = stem[:-1]
    return stem


def plural_variants(word: str) -> List[str]:
    variants = []
    if word.endswith('CES') and len(word) > 3:
        variants.append(word[:-3] + 'Z')
    elif word.endswith('ES') and len(word) > 4:
        variants.append(word[:-2])
    if word.endswith('S') and len(word) > 1:
        variants.append(word[:-1])

    last = word[-1:]
    if last == 'Z':
        variants.append(word[:-1] + 'CES')
    elif last in VOWELS:
        variants.append(word + 'S')
    elif last and last != 'S':
        variants.append(word + 'ES')
    return _unique(v for v in variants if v and v != word)


def gender_variants(word: str) -> List[str]:
    for suffix, replacement in _GENDER_RULES:
        if word.endswith(suffix) and len(word) > len(suffix):
            return [word[:-len(suffix)] + replacement]
    return []


def _unique(items: Iterable[str]) -> List[str]:
    seen = []
    for item in items:
        if item not in seen:
            seen.append(item)
    return seen


def _derived_forms(word: str, strict: bool, strict_forms: FrozenSet[str]) -> List[str]:
    forms = plural_variants(word)
    if not strict:
        for variant in gender_variants(word):
            forms.append(variant)
            forms.extend(plural_variants(variant))
    forms.append(get_stem(word, strict_forms))
    return _unique(f for f in forms if f and f != word)


class EquivalenceDictionary:
    """Normalized word-form -> canonical id map for one round."""

    def __init__(self, entries: Optional[Dict[str, str]] = None,
                 strict_forms: Iterable[str] = (), context: Optional[RoundContext] = None):
        self.entries = MappingProxyType(dict(entries or {}))
        self.strict_forms = frozenset(strict_forms)
        self.context = context

    @classmethod
    def from_context(cls, context: Optional[RoundContext]) -> 'EquivalenceDictionary':
        if context is None:
            return cls()

        entries: Dict[str, str] = {}
        strict = set()
        groups = []
        # Explicit spellings of every group go in first so that no generated
        # variant of an earlier group can claim them.
        for raw in context.answers:
            members = [(normalize_word(text), is_strict) for text, is_strict in split_group(raw)]
            members = [(norm, is_strict) for norm, is_strict in members if norm]
            if not members:
                continue
            canonical = members[0][0]
            for norm, is_strict in members:
                entries.setdefault(norm, canonical)
                if is_strict:
                    strict.add(norm)
            groups.append((canonical, members))

        strict_forms = frozenset(strict)
        for canonical, members in groups:
            for norm, is_strict in members:
                for form in _derived_forms(norm, is_strict, strict_forms):
                    entries.setdefault(form, canonical)

        log.debug(f"[dictionary-build] prompt={context.prompt!r} groups={len(groups)} entries={len(entries)} strict={len(strict_forms)}")
        return cls(entries, strict_forms, context)

    def __len__(self):
        return len(self.entries)

    def __contains__(self, word):
        return normalize_word(word) in self.entries

    @property
    def loaded(self) -> bool:
        return self.context is not None

    def get_stem(self, word: str) -> str:
        return get_stem(word, self.strict_forms)

    def is_strict(self, word: str) -> bool:
        return normalize_word(word) in self.strict_forms

    def canonical_id(self, word: str) -> Optional[str]:
        norm = normalize_word(word)
        if not norm:
            return None
        return self.entries.get(norm) or self.entries.get(self.get_stem(norm))

    def canonical_for(self, word: str) -> str:
        """Canonical id when known, otherwise the stem, for grouping results."""
        norm = normalize_word(word)
        if not norm:
            return ''
        found = self.entries.get(norm) or self.entries.get(self.get_stem(norm))
        if found:
            return found
        return self.get_stem(norm) or norm


@lru_cache(maxsize=256)
def build_dictionary(context: Optional[RoundContext]) -> EquivalenceDictionary:
    """Memoized :meth:`EquivalenceDictionary.from_context`, keyed by the context value."""
    return EquivalenceDictionary.from_context(context)
