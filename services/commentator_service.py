from typing import Iterable, Tuple

from models import CommentatorResolution


class CommentatorResolver:
    """Match a requested commentator against a fixed allow-list.

    The allow-list is injected so tests and deployments can substitute their own.
    Matching trims whitespace and ignores case; an unknown name is reported back
    as typed and commentary falls back to the general style.
    """

    def __init__(self, allow_list: Iterable[str]):
        self._names: Tuple[str, ...] = tuple(allow_list)
        self._by_key = {name.strip().casefold(): name for name in self._names}

    @property
    def names(self) -> Tuple[str, ...]:
        return self._names

    def resolve(self, candidate: str) -> CommentatorResolution:
        raw = (candidate or "").strip()
        if not raw:
            return CommentatorResolution(
                outcome="absent",
                status_message="Generating general theological commentary...",
            )

        canonical = self._by_key.get(raw.casefold())
        if canonical:
            return CommentatorResolution(
                outcome="matched",
                name=canonical,
                status_message=f"Generating commentary in the style of {canonical}...",
            )

        return CommentatorResolution(
            outcome="rejected",
            name=raw,
            status_message=(
                f'"{raw}" is not an allowed theologian. '
                "Generating a general theological commentary instead."
            ),
        )
