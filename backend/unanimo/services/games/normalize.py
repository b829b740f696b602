import re
import unicodedata

_NON_ALNUM = re.compile(r'[^A-Z0-9]')


def normalize_word(raw) -> str:
    """Uppercase, strip diacritics and drop everything outside A-Z0-9.

    An empty result means no match is possible for this input.
    """
    if not raw:
        return ''
    text = unicodedata.normalize('NFD', str(raw))
    text = ''.join(ch for ch in text if not unicodedata.combining(ch))
    return _NON_ALNUM.sub('', text.upper())
