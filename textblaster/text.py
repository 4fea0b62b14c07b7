"""Text helpers: sentence and word segmentation, punctuation and stop words."""

from __future__ import annotations

import unicodedata

import regex

__all__ = [
    "DANISH_STOP_WORDS",
    "PUNCTUATION",
    "split_into_sentences",
    "split_into_words",
]

DANISH_STOP_WORDS: frozenset[str] = frozenset(
    """
    ad af aldrig alle alt anden andet andre at bare begge blev blive bliver da de
    dem den denne der deres det dette dig din dine disse dit dog du efter ej eller
    en end ene eneste enhver er et far fem fik fire flere fleste for fordi forrige
    fra få får før god godt ham han hans har havde have hej helt hende hendes her
    hos hun hvad hvem hver hvilken hvis hvor hvordan hvorfor hvornår i ikke ind
    ingen intet ja jeg jer jeres jo kan kom komme kommer kun kunne lad lav lidt
    lige lille man mand mange med meget men mens mere mig min mine mit mod må ned
    nej ni nogen noget nogle nu ny nyt når nær næste næsten og også okay om op os
    otte over på se seks selv ser ses sig sige sin sine sit skal skulle som stor
    store syv så sådan tag tage thi ti til to tre ud under var ved vi vil ville vor
    vores være været
    """.split()
)

_PUNCTUATION_LITERAL = (
    "!/—”:％１〈&(、━\\【#%「」，】；+^]~“《„';’{|∶´[=-`*．（–？！：$～«〉,><》)?）。…@_.\"}►»"
)

# Half-open code point ranges of control characters treated as punctuation.
_PUNCTUATION_RANGES = ((0, 9), (11, 13), (13, 32), (127, 160))

PUNCTUATION: frozenset[str] = frozenset(_PUNCTUATION_LITERAL) | frozenset(
    chr(cp) for start, end in _PUNCTUATION_RANGES for cp in range(start, end)
)

# --- sentence segmentation -------------------------------------------------

_PARA_SEPARATORS = frozenset("\n\r\x85\u2028\u2029")
_STERMS = frozenset("!?‼‽⁇⁈⁉。！？｡։؟۔܀܁܂।॥")
_ATERMS = frozenset(".․﹒．")
_SCONTINUE = frozenset(",;:-–—、，；：﹐﹑﹕")


def _is_close(ch: str) -> bool:
    return ch in "\"'" or unicodedata.category(ch) in {"Ps", "Pe", "Pi", "Pf"}


def _is_space(ch: str) -> bool:
    return ch.isspace() and ch not in _PARA_SEPARATORS


def _is_terminator(ch: str) -> bool:
    return ch in _STERMS or ch in _ATERMS


def _continues_after_full_stop(text: str, pos: int) -> bool:
    """Whether a lower-case letter follows before any sentence-level character."""
    for ch in text[pos:]:
        if ch.islower():
            return True
        if ch.isalpha() or ch in _PARA_SEPARATORS or _is_terminator(ch):
            return False
    return False


def _sentence_breaks(text: str):
    """Yield the offsets at which a new sentence starts."""
    length = len(text)
    i = 0
    while i < length:
        ch = text[i]
        if ch in _PARA_SEPARATORS:
            i += 2 if text.startswith("\r\n", i) else 1
            yield i
            continue
        if not _is_terminator(ch):
            i += 1
            continue

        start = i
        while i < length and _is_terminator(text[i]):
            i += 1
        only_full_stop = all(c in _ATERMS for c in text[start:i])
        after_terms = i

        while i < length and _is_close(text[i]):
            i += 1
        while i < length and _is_space(text[i]):
            i += 1
        if i < length and text[i] in _PARA_SEPARATORS:
            i += 2 if text.startswith("\r\n", i) else 1
            yield i
            continue
        if i >= length:
            return

        nxt = text[i]
        if nxt in _SCONTINUE:
            continue
        if only_full_stop:
            follower = text[after_terms] if after_terms < length else ""
            if follower.isdigit():
                continue
            if (
                start > 0
                and text[start - 1].isalpha()
                and follower.isupper()
                and after_terms == i
            ):
                continue
            if _continues_after_full_stop(text, i):
                continue
        yield i


def split_into_sentences(text: str) -> list[str]:
    """Split text into trimmed, non-empty sentences."""
    trimmed = text.strip()
    if not trimmed:
        return []
    bounds = [0, *_sentence_breaks(trimmed), len(trimmed)]
    sentences = (trimmed[a:b].strip() for a, b in zip(bounds, bounds[1:]))
    return [sentence for sentence in sentences if sentence]


# --- word segmentation -----------------------------------------------------

_WORD_PATTERN = regex.compile(
    r"""
    [\p{L}\p{M}\p{N}\p{Pc}]+
    (?:
        (?:
            (?<=\p{L}\p{M}*)[.:'’·\uFE13\uFE52\uFE55\uFF07\uFF0E\uFF1A](?=\p{L})
          | (?<=\p{N})[.,;'’\u066C\uFE50\uFE54\uFF0C\uFF1B](?=\p{N})
        )
        [\p{L}\p{M}\p{N}\p{Pc}]+
    )*
    """,
    regex.VERBOSE,
)
_HAS_WORD_CHAR = regex.compile(r"[\p{L}\p{N}]")


def split_into_words(text: str) -> list[str]:
    """Return the word-like segments of text, without spaces or punctuation."""
    return [
        match.group()
        for match in _WORD_PATTERN.finditer(text)
        if _HAS_WORD_CHAR.search(match.group())
    ]