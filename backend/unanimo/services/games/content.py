"""Content collaborator: categories and prompt cards with their answer groups.

Corpus files use the shape ``{CATEGORY: [{QUESTION: [answer groups...]}, ...]}``.
"""

import json
import logging
import random
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple

from unanimo import db
from unanimo.models import Category, Prompt, ValidWord

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class PromptCard:
    prompt_id: str
    question: str
    canonical_answers: Tuple[str, ...] = ()

    def to_dict(self):
        return {
            'prompt_id': self.prompt_id,
            'question': self.question,
            'canonical_answers': list(self.canonical_answers),
        }


def iter_corpus(corpus: dict):
    """Yield ``(category, question, answers)`` from a corpus mapping."""
    for category, items in (corpus or {}).items():
        if not isinstance(items, list):
            continue
        for item in items:
            if not isinstance(item, dict):
                continue
            for question, answers in item.items():
                if isinstance(answers, list):
                    yield category, question, [a for a in answers if isinstance(a, str) and a.strip()]


def load_corpus_file(path: str) -> dict:
    with open(path, encoding='utf-8') as fh:
        return json.load(fh)


class ContentProvider:
    def categories(self) -> List[str]:
        raise NotImplementedError

    def resolve_category(self, name) -> Optional[str]:
        raise NotImplementedError

    def random_category(self) -> Optional[str]:
        raise NotImplementedError

    def draw_prompt(self, category: str, exclude: Iterable[str] = ()) -> Optional[PromptCard]:
        raise NotImplementedError


class StaticContentProvider(ContentProvider):
    """In-memory corpus, used in tests and for single-process setups."""

    def __init__(self, corpus: dict, rng: Optional[random.Random] = None):
        self._rng = rng or random.Random()
        self._cards: Dict[str, List[PromptCard]] = {}
        for category, question, answers in iter_corpus(corpus):
            cards = self._cards.setdefault(category, [])
            cards.append(PromptCard(f'{category}:{len(cards) + 1}', question.strip(), tuple(answers)))

    def categories(self):
        return list(self._cards)

    def resolve_category(self, name):
        wanted = str(name or '').strip().upper()
        for category in self._cards:
            if category.upper() == wanted:
                return category
        return None

    def random_category(self):
        available = [c for c, cards in self._cards.items() if cards]
        return self._rng.choice(available) if available else None

    def draw_prompt(self, category, exclude=()):
        cards = self._cards.get(category) or []
        if not cards:
            return None
        excluded = set(exclude)
        fresh = [c for c in cards if c.prompt_id not in excluded]
        return self._rng.choice(fresh or cards)


class SqlContentProvider(ContentProvider):
    """Reads the content tables; requires an application context."""

    def categories(self):
        rows = Category.query.filter_by(is_active=True).order_by(Category.position, Category.name).all()
        return [row.name for row in rows]

    def resolve_category(self, name):
        wanted = str(name or '').strip().upper()
        if not wanted:
            return None
        row = Category.query.filter(
            db.func.upper(Category.name) == wanted,
            Category.is_active.is_(True),
        ).first()
        return row.name if row else None

    def random_category(self):
        row = (
            Category.query.filter(Category.is_active.is_(True), Category.prompts.any(Prompt.is_active.is_(True)))
            .order_by(db.func.random())
            .first()
        )
        return row.name if row else None

    def draw_prompt(self, category, exclude=()):
        query = Prompt.query.join(Prompt.categories).filter(
            Category.name == category,
            Category.is_active.is_(True),
            Prompt.is_active.is_(True),
        )
        excluded = [int(pid) for pid in exclude if str(pid).isdigit()]
        prompt = None
        if excluded:
            prompt = query.filter(~Prompt.id.in_(excluded)).order_by(db.func.random()).first()
        if prompt is None:
            prompt = query.order_by(db.func.random()).first()
        if prompt is None:
            return None
        answers = [w.word_group for w in prompt.valid_words.order_by(ValidWord.id).all()]
        return PromptCard(str(prompt.id), prompt.text.strip(), tuple(answers))


def seed_corpus(corpus: dict) -> int:
    """Load a corpus mapping into the content tables. Returns the number of prompts added."""
    categories: Dict[str, Category] = {}
    added = 0
    for category_name, question, answers in iter_corpus(corpus):
        category = categories.get(category_name)
        if category is None:
            category = Category.query.filter_by(name=category_name).first()
            if category is None:
                category = Category(name=category_name, position=len(categories))
                db.session.add(category)
            categories[category_name] = category
        prompt = Prompt(text=question.strip())
        prompt.categories.append(category)
        db.session.add(prompt)
        db.session.flush()
        for group in answers:
            db.session.add(ValidWord(prompt_id=prompt.id, word_group=group.strip()))
        added += 1
    db.session.commit()
    log.info(f"[seed-content] categories={len(categories)} prompts={added}")
    return added
