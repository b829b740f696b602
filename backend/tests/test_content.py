import random

from unanimo.models import Category, Prompt
from unanimo.services.games.content import SqlContentProvider, StaticContentProvider, iter_corpus, seed_corpus

from conftest import TEST_CORPUS


def test_iter_corpus_skips_malformed_items():
    corpus = {
        'OK': [{'Pregunta': ['A|B', '', 3]}],
        'BAD': 'not a list',
        'MIXED': ['nope', {'Otra': 'nope'}],
    }
    assert list(iter_corpus(corpus)) == [('OK', 'Pregunta', ['A|B'])]


def test_static_provider():
    provider = StaticContentProvider(TEST_CORPUS, rng=random.Random(3))
    assert provider.categories() == ['TRANSPORTE', 'CIELO', 'SENTIMIENTOS']
    assert provider.resolve_category(' cielo ') == 'CIELO'
    assert provider.resolve_category('DEPORTES') is None
    assert provider.random_category() in TEST_CORPUS

    card = provider.draw_prompt('TRANSPORTE')
    assert card.prompt_id == 'TRANSPORTE:1'
    assert card.canonical_answers[0] == 'AUTO|CARRO|COCHE'
    # with every prompt used, one is reused rather than failing
    assert provider.draw_prompt('TRANSPORTE', exclude=['TRANSPORTE:1']) == card
    assert provider.draw_prompt('CIELO', exclude=['CIELO:1']).prompt_id == 'CIELO:2'
    assert provider.draw_prompt('DEPORTES') is None


def test_sql_provider(flask_app):
    provider = SqlContentProvider()
    assert provider.categories() == ['TRANSPORTE', 'CIELO', 'SENTIMIENTOS']
    assert provider.resolve_category('sentimientos') == 'SENTIMIENTOS'
    assert provider.resolve_category('') is None
    assert provider.random_category() in TEST_CORPUS

    card = provider.draw_prompt('SENTIMIENTOS')
    assert card.question == 'Que sentis al perder'
    assert card.canonical_answers == ('PENA.', 'TRISTEZA', 'BRONCA|ENOJO|IRA')
    assert provider.draw_prompt('SENTIMIENTOS', exclude=[card.prompt_id]).prompt_id == card.prompt_id

    cielo = provider.draw_prompt('CIELO')
    other = provider.draw_prompt('CIELO', exclude=[cielo.prompt_id])
    assert other.prompt_id != cielo.prompt_id
    assert provider.draw_prompt('DEPORTES') is None


def test_inactive_content_is_skipped(flask_app):
    category = Category.query.filter_by(name='SENTIMIENTOS').first()
    category.is_active = False
    for prompt in Prompt.query.all():
        if prompt.text == 'Cosas con ruedas':
            prompt.is_active = False
    from unanimo import db
    db.session.commit()

    provider = SqlContentProvider()
    assert 'SENTIMIENTOS' not in provider.categories()
    assert provider.resolve_category('sentimientos') is None
    assert provider.draw_prompt('TRANSPORTE') is None


def test_seed_corpus_reuses_categories(flask_app):
    added = seed_corpus({'CIELO': [{'Cosas azules': ['CIELO', 'MAR']}]})
    assert added == 1
    assert Category.query.filter_by(name='CIELO').count() == 1
    assert len(Category.query.filter_by(name='CIELO').first().prompts) == 3


def test_sql_provider_keeps_seeded_answer_order(flask_app):
    # overlapping groups: the first listed one claims CARRO
    seed_corpus({'AUTOS': [{'Compartidas': ['CARRO|COCHE', 'AUTO|CARRO']}]})
    card = SqlContentProvider().draw_prompt('AUTOS')
    assert card.canonical_answers == ('CARRO|COCHE', 'AUTO|CARRO')
