import itertools

import pytest

from unanimo.services.games.dictionary import RoundContext, build_dictionary
from unanimo.services.games.matching import MatchClassifier, MatchType


@pytest.fixture()
def classifier():
    ctx = RoundContext.from_answers('Cosas con ruedas', ['AUTO|CARRO|COCHE', 'GATO', 'PENA.', 'TREN'])
    return MatchClassifier(build_dictionary(ctx))


@pytest.mark.parametrize('a, b, expected', [
    ('Camión', 'camion', MatchType.EXACT),
    ('auto', 'carro', MatchType.SYNONYM),
    ('carros', 'AUTO', MatchType.SYNONYM),
    ('auto', 'autos', MatchType.PLURAL),
    ('gato', 'gatito', MatchType.PLURAL),
    ('gato', 'gata', MatchType.GENDER),
    ('pena', 'penas', MatchType.PLURAL),
    ('pena', 'peno', MatchType.NONE),
    ('sole', 'sol', MatchType.STEM_SIMILAR),
    ('auto', 'tren', MatchType.NONE),
])
def test_classify_with_dictionary(classifier, a, b, expected):
    assert classifier.classify(a, b) is expected


def test_empty_input_never_matches(classifier):
    assert classifier.classify('', 'auto') is MatchType.NONE
    assert classifier.classify('!!', '??') is MatchType.NONE
    assert not classifier.is_match('   ', '   ')


def test_without_dictionary_only_exact_and_stem():
    plain = MatchClassifier()
    assert plain.classify('Gato', 'GATO') is MatchType.EXACT
    assert plain.classify('gato', 'gata') is MatchType.STEM_SIMILAR
    assert plain.classify('auto', 'carro') is MatchType.NONE
    # two-letter stems are too short to trust
    assert plain.classify('pie', 'pies') is MatchType.NONE


def test_classification_is_symmetric_and_reflexive(classifier):
    words = ['auto', 'Carros', 'coche', 'gato', 'gatas', 'gatito', 'pena', 'peno', 'tren', 'trenes', 'sol', '']
    for a, b in itertools.combinations(words, 2):
        assert classifier.classify(a, b) is classifier.classify(b, a), (a, b)
    for word in words:
        if word:
            assert classifier.classify(word, word) is MatchType.EXACT
