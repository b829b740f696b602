from unanimo.services.games.normalize import normalize_word


def test_strips_accents_case_and_punctuation():
    assert normalize_word('  Café! ') == 'CAFE'
    assert normalize_word('Pingüino') == 'PINGUINO'
    assert normalize_word('niño') == 'NINO'
    assert normalize_word('Camión') == 'CAMION'


def test_keeps_digits_and_drops_spaces():
    assert normalize_word('auto 2') == 'AUTO2'
    assert normalize_word('fin-de-semana') == 'FINDESEMANA'


def test_empty_results():
    assert normalize_word(None) == ''
    assert normalize_word('') == ''
    assert normalize_word('¿?!  ') == ''


def test_idempotent():
    for raw in ['Árbol', 'corazón', 'PEÑA', 'x-y z', '¡Olé!']:
        once = normalize_word(raw)
        assert normalize_word(once) == once
