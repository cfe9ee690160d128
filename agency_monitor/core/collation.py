from __future__ import annotations

import unicodedata
from dataclasses import dataclass
from typing import Iterable


@dataclass(frozen=True, slots=True)
class Collator:
    """
    Locale-style ordering for user-visible labels.

    Primary comparison ignores case and accents (so "Éboli" sorts with "e"),
    the secondary one puts unaccented before accented, and the tertiary one
    puts lowercase before uppercase ("a" before "A").
    """

    locale: str = "it"

    def key(self, value: str | None) -> tuple[str, str, str, str]:
        text = str(value or "")
        decomposed = unicodedata.normalize("NFKD", text.casefold())
        base = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
        return (" ".join(base.split()), decomposed, text.swapcase(), text)

    def sorted(self, values: Iterable[str], reverse: bool = False) -> list[str]:
        return sorted(values, key=self.key, reverse=reverse)


ITALIAN = Collator("it")
