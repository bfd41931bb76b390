"""
Phrase tables for intent detection, tagged by language.

Keyword categories match on exact phrases, prefixes, or (sparingly) contained
fragments. Confirmation tables match whole messages or a whole-word prefix
("yes, mark it" counts as yes).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Tuple


@dataclass(frozen=True)
class PhraseRule:
    """Match rules for one category in one language."""
    exact: Tuple[str, ...] = ()
    prefixes: Tuple[str, ...] = ()
    contains: Tuple[str, ...] = ()

    def matches(self, text: str) -> bool:
        if text in self.exact:
            return True
        if any(text.startswith(p) for p in self.prefixes):
            return True
        return any(fragment in text for fragment in self.contains)


COMPLETED_PHRASES: Dict[str, PhraseRule] = {
    "en": PhraseRule(
        exact=("completed", "complete", "done", "finished"),
        prefixes=("i completed", "i finished", "i did it", "i'm done", "i am done"),
    ),
    "pt": PhraseRule(
        exact=("concluído", "concluido", "feito", "pronto", "terminei"),
        prefixes=("concluí", "eu concluí", "terminei", "eu terminei", "eu fiz", "consegui fazer"),
    ),
}

COULDNT_PHRASES: Dict[str, PhraseRule] = {
    "en": PhraseRule(
        exact=("couldn't do it", "couldn't", "could not", "can't", "cant"),
        prefixes=("i couldn't", "i can't", "i didn't", "i failed"),
        contains=("couldn't do",),
    ),
    "pt": PhraseRule(
        exact=("não consegui", "nao consegui", "não deu", "nao deu"),
        prefixes=("não consegui", "nao consegui", "eu não consegui", "não fiz", "nao fiz", "falhei"),
        contains=("não consegui fazer", "nao consegui fazer"),
    ),
}

ADJUST_PHRASES: Dict[str, PhraseRule] = {
    "en": PhraseRule(
        exact=("adjust", "change", "modify"),
        prefixes=("i need to adjust", "can you adjust", "please adjust"),
        contains=("adjust the",),
    ),
    "pt": PhraseRule(
        exact=("ajustar", "ajuste", "mudar", "alterar"),
        prefixes=("preciso ajustar", "pode ajustar", "quero ajustar", "vamos ajustar"),
        contains=("ajustar a",),
    ),
}

AFFIRMATIVE_PHRASES: Dict[str, Tuple[str, ...]] = {
    "en": ("yes", "y", "yep", "yeah", "yup", "sure", "confirm", "correct", "ok", "okay"),
    "pt": ("sim", "claro", "confirmo", "isso", "pode marcar", "com certeza", "certo"),
}

NEGATIVE_PHRASES: Dict[str, Tuple[str, ...]] = {
    "en": ("no", "n", "nope", "not yet", "nah", "cancel"),
    "pt": ("não", "nao", "ainda não", "ainda nao", "negativo"),
}
