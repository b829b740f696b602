from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence

from .dictionary import EquivalenceDictionary
from .matching import MatchClassifier, MatchType

TOP_WORDS_LIMIT = 10


@dataclass
class AnswerMatch:
    player_id: str
    player_name: str
    matched_word: str
    match_type: MatchType

    def to_dict(self):
        return {
            'player_id': self.player_id,
            'name': self.player_name,
            'matched_word': self.matched_word,
            'type': self.match_type.value,
        }


@dataclass
class ScoredAnswer:
    word: str
    canonical: str
    matches: List[AnswerMatch] = field(default_factory=list)

    def to_dict(self):
        return {
            'word': self.word,
            'canonical': self.canonical,
            'matches': [m.to_dict() for m in self.matches],
        }


@dataclass
class PlayerRoundResult:
    player_id: str
    answers: List[ScoredAnswer] = field(default_factory=list)
    score_delta: int = 0

    def to_dict(self):
        return {
            'answers': [a.to_dict() for a in self.answers],
            'score_delta': self.score_delta,
        }


def score_round(answers_by_player: Mapping[str, Sequence[str]],
                dictionary: Optional[EquivalenceDictionary] = None,
                names: Optional[Mapping[str, str]] = None) -> Dict[str, PlayerRoundResult]:
    """Pairwise match every answer of every active player against the others.

    Each match is annotated on both answers. A player earns one point per
    answer that matched at least one other player's answer, however many
    opponents matched it.
    """
    names = names or {}
    classifier = MatchClassifier(dictionary)
    canonical_for = dictionary.canonical_for if dictionary is not None else (lambda w: w.strip().upper())

    results: Dict[str, PlayerRoundResult] = OrderedDict()
    for player_id, words in answers_by_player.items():
        results[player_id] = PlayerRoundResult(
            player_id=player_id,
            answers=[ScoredAnswer(word=w, canonical=canonical_for(w)) for w in words],
        )

    player_ids = list(results)
    for i, pid_a in enumerate(player_ids):
        for pid_b in player_ids[i + 1:]:
            for item_a in results[pid_a].answers:
                for item_b in results[pid_b].answers:
                    match_type = classifier.classify(item_a.word, item_b.word)
                    if match_type is MatchType.NONE:
                        continue
                    item_a.matches.append(AnswerMatch(pid_b, names.get(pid_b, pid_b), item_b.word, match_type))
                    item_b.matches.append(AnswerMatch(pid_a, names.get(pid_a, pid_a), item_a.word, match_type))

    for result in results.values():
        result.score_delta = sum(1 for answer in result.answers if answer.matches)
    return results


def top_words(results: Mapping[str, PlayerRoundResult],
              names: Optional[Mapping[str, str]] = None,
              limit: int = TOP_WORDS_LIMIT) -> List[dict]:
    """Most shared matched answers of the round, grouped by canonical form."""
    names = names or {}
    grouped: Dict[str, List[str]] = OrderedDict()
    for player_id, result in results.items():
        for answer in result.answers:
            if not answer.matches or not answer.canonical:
                continue
            players = grouped.setdefault(answer.canonical, [])
            name = names.get(player_id, player_id)
            if name not in players:
                players.append(name)

    shared = [(word, players) for word, players in grouped.items() if len(players) > 1]
    shared.sort(key=lambda item: len(item[1]), reverse=True)
    return [{'word': word, 'count': len(players), 'players': players} for word, players in shared[:limit]]
