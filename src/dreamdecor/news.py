from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from typing import Deque, List, Optional, Protocol, Tuple, runtime_checkable

from dreamdecor.goals.models import GoalContext
from dreamdecor.rng import RNG

logger = logging.getLogger(__name__)

SNIPPET_CATEGORIES = ("trend", "critique", "tip")


@dataclass(frozen=True)
class Snippet:
    snippet_id: str
    text: str
    category: str


@runtime_checkable
class SnippetGenerator(Protocol):
    def generate_snippet(self, context: GoalContext) -> Optional[Snippet]:
        ...


LOCAL_SNIPPETS: List[Tuple[str, str]] = [
    ("Smart TV sets are becoming the focal point of modern living rooms.", "trend"),
    ("Natural light from large windows can boost your style score significantly.", "tip"),
    ("A bookshelf isn't just for books; it's a statement piece.", "trend"),
    ("Try grouping your seating around a large dining table for a social vibe.", "tip"),
    ("Empty walls feel cold. Use windows or decor to break the monotony.", "critique"),
    ("The industrial look of exposed walls is making a huge comeback.", "trend"),
]


class LocalSnippetGenerator:
    """Uniform pick from the bundled magazine snippets."""

    def __init__(self, rng: Optional[RNG] = None, snippets: Optional[List[Tuple[str, str]]] = None) -> None:
        self._rng = rng or RNG()
        self._snippets = list(snippets if snippets is not None else LOCAL_SNIPPETS)

    def generate_snippet(self, context: GoalContext) -> Optional[Snippet]:
        if not self._snippets:
            return None
        text, category = self._rng.choice(self._snippets)
        return Snippet(snippet_id=self._rng.token_hex(), text=text, category=category)


class FallbackSnippetGenerator:
    """Use the primary generator and fall back when it yields nothing."""

    def __init__(self, primary: SnippetGenerator, fallback: SnippetGenerator) -> None:
        self._primary = primary
        self._fallback = fallback

    def generate_snippet(self, context: GoalContext) -> Optional[Snippet]:
        snippet = self._primary.generate_snippet(context)
        if snippet is None:
            return self._fallback.generate_snippet(context)
        return snippet


class NewsFeed:
    """Bounded, order-preserving feed; the oldest entries drop first."""

    def __init__(self, capacity: int = 11) -> None:
        if capacity < 1:
            raise ValueError("NewsFeed capacity must be >= 1")
        self._items: Deque[Snippet] = deque(maxlen=capacity)

    @property
    def capacity(self) -> int:
        return self._items.maxlen or 0

    def append(self, snippet: Snippet) -> None:
        self._items.append(snippet)
        logger.debug("News feed: +%s (%d/%d)", snippet.category, len(self._items), self.capacity)

    def items(self) -> List[Snippet]:
        return list(self._items)

    def clear(self) -> None:
        self._items.clear()

    def __len__(self) -> int:
        return len(self._items)
