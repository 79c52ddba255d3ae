from __future__ import annotations

import re
import unicodedata
from dataclasses import dataclass, field
from typing import Any, Iterable, NamedTuple, Sequence

from orderhub.core.config import MATCH_MIN_SCORE

_CLAUSE_SPLIT = re.compile(r"\s*(?:,|;|\+|&|\band\b)\s*", re.IGNORECASE)
_MULTIPLIER = re.compile(r"^(?:(\d+)x|x(\d+))$")

_NUMBER_WORDS = {
    "a": 1,
    "an": 1,
    "single": 1,
    "one": 1,
    "two": 2,
    "three": 3,
    "four": 4,
    "five": 5,
    "six": 6,
    "seven": 7,
    "eight": 8,
    "nine": 9,
    "ten": 10,
    "eleven": 11,
    "twelve": 12,
    "dozen": 12,
}

_STOPWORDS = {
    "order",
    "of",
    "please",
    "add",
    "i",
    "want",
    "would",
    "like",
    "to",
    "for",
    "with",
    "the",
    "some",
    "me",
    "get",
    "give",
    "can",
    "have",
    "x",
    "plate",
    "plates",
    "portion",
    "portions",
}


class ItemMatch(NamedTuple):
    item: Any
    quantity: int
    confidence: float


@dataclass
class MatchResult:
    matches: list[ItemMatch] = field(default_factory=list)
    unresolved: list[str] = field(default_factory=list)

    def __iter__(self):
        return iter(self.matches)

    def __len__(self) -> int:
        return len(self.matches)


def normalize(text: str) -> str:
    text = text.lower()
    text = unicodedata.normalize("NFKD", text)
    text = "".join(char for char in text if not unicodedata.combining(char))
    text = re.sub(r"[-_]", " ", text)
    text = re.sub(r"[^\w\s]", " ", text)
    text = re.sub(r"\s+", " ", text).strip()
    return text


def _singular(token: str) -> str:
    if len(token) > 3 and token.endswith("es") and token[:-2].endswith(("s", "x", "z", "ch", "sh")):
        return token[:-2]
    if len(token) > 3 and token.endswith("s") and not token.endswith("ss"):
        return token[:-1]
    return token


def _tokens(text: str) -> list[str]:
    return [_singular(token) for token in normalize(text).split()]


def _parse_quantity(token: str) -> int | None:
    if token.isdigit():
        return int(token)
    multiplier = _MULTIPLIER.match(token)
    if multiplier:
        return int(multiplier.group(1) or multiplier.group(2))
    return _NUMBER_WORDS.get(token)


def split_clauses(text: str) -> list[str]:
    return [part.strip() for part in _CLAUSE_SPLIT.split(text or "") if part and part.strip()]


def _extract_quantity(
    raw_tokens: list[str], names: Sequence[Sequence[str]] = ()
) -> tuple[int | None, list[str]]:
    """Pulls the quantity cue at either edge of the clause, after stopwords are gone.

    An edge number that belongs to a menu name contained in the clause
    ("chicken 65") stays in the phrase.
    """
    tokens = [token for token in raw_tokens if token not in _STOPWORDS]
    if not tokens:
        return None, []
    contained = [name for name in names if _contains(tokens, name)]

    def part_of_name(token: str) -> bool:
        return any(token in name for name in contained)

    leading = _parse_quantity(tokens[0])
    if leading is not None and not part_of_name(tokens[0]):
        return leading, tokens[1:]
    trailing = _parse_quantity(tokens[-1])
    if trailing is not None and len(tokens) > 1 and not part_of_name(tokens[-1]):
        return trailing, tokens[:-1]
    return None, tokens


def _contains(haystack: Sequence[str], needle: Sequence[str]) -> bool:
    size = len(needle)
    if not size or size > len(haystack):
        return False
    return any(list(haystack[i : i + size]) == list(needle) for i in range(len(haystack) - size + 1))


def _score_overlap(phrase: Sequence[str], name: Sequence[str]) -> float:
    phrase_set = set(phrase)
    name_set = set(name)
    if not phrase_set or not name_set:
        return 0.0
    shared = phrase_set & name_set
    if not shared:
        return 0.0
    return 0.5 * len(shared) / len(phrase_set) + 0.5 * len(shared) / len(name_set)


def _named(catalog: Sequence[Any]) -> list[tuple[Any, list[str]]]:
    named = [(item, _tokens(str(item.name or ""))) for item in catalog]
    return [(item, name) for item, name in named if name]


def _best_item(phrase: list[str], named: Sequence[tuple[Any, list[str]]], min_score: float) -> tuple[Any, float] | None:
    # whole menu name inside the clause, longest name wins
    contained = [(item, name) for item, name in named if _contains(phrase, name)]
    if contained:
        item, _ = max(contained, key=lambda entry: len(entry[1]))
        return item, 1.0

    # clause is a fragment of a menu name, closest (shortest) name wins
    partial = [(item, name) for item, name in named if _contains(name, phrase)]
    if partial:
        item, name = min(partial, key=lambda entry: len(entry[1]))
        return item, round(0.5 + 0.5 * len(phrase) / len(name), 3)

    best: tuple[Any, float] | None = None
    for item, name in named:
        score = _score_overlap(phrase, name)
        if score > min_score and (best is None or score > best[1]):
            best = (item, round(score, 3))
    return best


def match(text: str, catalog: Iterable[Any], *, min_score: float = MATCH_MIN_SCORE) -> MatchResult:
    """Resolves item mentions in free text against a catalog snapshot.

    Each clause (split on commas, "and", "&", "+") is matched on its own. Clauses
    with no acceptable candidate, or with a zero quantity, are reported in
    ``unresolved`` verbatim instead of being guessed.
    """
    named = _named(list(catalog))
    names = [name for _, name in named]
    result = MatchResult()
    for clause in split_clauses(text):
        quantity, phrase = _extract_quantity(_tokens(clause), names)
        if not phrase or quantity == 0:
            result.unresolved.append(clause)
            continue
        best = _best_item(phrase, named, min_score)
        if best is None:
            result.unresolved.append(clause)
            continue
        item, confidence = best
        result.matches.append(ItemMatch(item=item, quantity=quantity or 1, confidence=confidence))
    return result
