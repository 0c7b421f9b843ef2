"""Split a chat message into a passage and an optional commentator name.

Messages look like ``"Romans 8:28 by Charles Spurgeon"``: everything before the
last ``" by "`` is the passage, everything after it is the commentator.

Known limitation: a topical message that contains the word "by" on its own
("the baby born by the river") is split as if it named a commentator. The
``known_name`` strategy only splits when the trailing clause looks like a name
from the allow-list.
"""
import re
from typing import Iterable, Tuple

BY_CLAUSE_RE = re.compile(r"\s+by\s+", re.IGNORECASE)
# zero-width, so adjacent clauses ("A by by B") are all found
BY_CLAUSE_START_RE = re.compile(r"(?=\s+by\s)", re.IGNORECASE)


def split_last_by(message: str) -> Tuple[str, str]:
    """Split on the last case-insensitive " by "; returns (passage, theologian)."""
    starts = [m.start() for m in BY_CLAUSE_START_RE.finditer(message)]
    if not starts:
        return message.strip(), ""
    clause = BY_CLAUSE_RE.match(message, starts[-1])
    return message[:clause.start()].strip(), message[clause.end():].strip()


class ReferenceParser:
    """Base split strategy"""

    name = "base"

    def split(self, message: str) -> Tuple[str, str]:
        raise NotImplementedError


class LastByParser(ReferenceParser):
    name = "last_by"

    def split(self, message: str) -> Tuple[str, str]:
        return split_last_by(message)


class KnownCommentatorParser(ReferenceParser):
    """Only accept the " by " clause when it names a known commentator.

    The clause matches when it is a case-insensitive prefix of an allowed name.
    Anything else stays part of the passage.
    """

    name = "known_name"

    def __init__(self, allow_list: Iterable[str]):
        self._names = tuple(n.strip().lower() for n in allow_list if n.strip())

    def split(self, message: str) -> Tuple[str, str]:
        passage, theologian = split_last_by(message)
        if not theologian:
            return passage, theologian
        candidate = theologian.lower()
        if any(name.startswith(candidate) for name in self._names):
            return passage, theologian
        return message.strip(), ""


def get_reference_parser(strategy: str, allow_list: Iterable[str] = ()) -> ReferenceParser:
    """Build the parser for a COMMENTATOR_SPLIT_STRATEGY value"""
    strategy = (strategy or "").strip().lower()
    if strategy == LastByParser.name:
        return LastByParser()
    if strategy == KnownCommentatorParser.name:
        return KnownCommentatorParser(allow_list)
    raise ValueError(f"Unknown commentator split strategy: {strategy!r}")
