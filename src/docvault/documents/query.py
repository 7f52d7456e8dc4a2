from __future__ import annotations

import re
from dataclasses import dataclass

# Characters with meaning in Postgres tsquery syntax.
_TSQUERY_SPECIALS = re.compile(r"[&|!():*'\\<>]")


def parse_keywords(raw: str | None) -> list[str]:
    """``"a, b,,c "`` -> ``["a", "b", "c"]``; order kept."""
    if not raw:
        return []
    return [k.strip() for k in raw.split(",") if k.strip()]


@dataclass(frozen=True)
class SearchQuery:
    """Sanitized full-text query: every token is a required prefix."""

    tokens: tuple[str, ...]

    @classmethod
    def parse(cls, text: str | None) -> "SearchQuery":
        tokens = []
        for raw in (text or "").split():
            token = _TSQUERY_SPECIALS.sub("", raw)
            if token:
                tokens.append(token)
        return cls(tuple(tokens))

    @property
    def is_empty(self) -> bool:
        return not self.tokens

    def to_tsquery(self) -> str:
        return " & ".join(f"{t}:*" for t in self.tokens)

    def __str__(self) -> str:
        return self.to_tsquery()


def build_tsquery(text: str | None) -> str:
    """``"annual report"`` -> ``"annual:* & report:*"``; blank -> ``""``."""
    return SearchQuery.parse(text).to_tsquery()
