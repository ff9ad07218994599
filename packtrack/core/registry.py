from __future__ import annotations

import threading
from collections import OrderedDict
from dataclasses import dataclass
from typing import Optional
from uuid import UUID

from packtrack.core.content_state import ContentState
from packtrack.core.view_context import ViewSession

DEFAULT_MAX_ENTRIES = 512
LOCK_STRIPES = 64


@dataclass(frozen=True)
class CachedState:
    state: ContentState
    # Store revision the state was read at or built on
    revision: int
    ahead_of_store: bool = False


class ContentStateRegistry:
    """Locally applied state per content item, bounded and least recently used first out.

    An entry is only as good as its ``revision``: callers compare it with the
    store before trusting it. Entries marked ``ahead_of_store`` hold changes
    whose persist failed and are evicted last.
    """

    def __init__(self, max_entries: int = DEFAULT_MAX_ENTRIES) -> None:
        self.max_entries = max_entries
        self._states: OrderedDict[UUID, CachedState] = OrderedDict()
        self._views: OrderedDict[UUID, ViewSession] = OrderedDict()
        self._locks = tuple(threading.RLock() for _ in range(LOCK_STRIPES))
        self._guard = threading.Lock()

    def __len__(self) -> int:
        return len(self._states)

    def entry(self, content_item_id: UUID) -> Optional[CachedState]:
        with self._guard:
            cached = self._states.get(content_item_id)
            if cached is not None:
                self._states.move_to_end(content_item_id)
            return cached

    def get(self, content_item_id: UUID) -> Optional[ContentState]:
        cached = self.entry(content_item_id)
        return cached.state if cached is not None else None

    def put(
        self, state: ContentState, revision: int, ahead_of_store: bool = False
    ) -> None:
        with self._guard:
            self._states[state.content_item_id] = CachedState(
                state=state, revision=revision, ahead_of_store=ahead_of_store
            )
            self._states.move_to_end(state.content_item_id)
            self._evict_states()

    def drop(self, content_item_id: UUID) -> None:
        with self._guard:
            self._states.pop(content_item_id, None)

    def lock(self, content_item_id: UUID) -> threading.RLock:
        return self._locks[content_item_id.int % LOCK_STRIPES]

    def view_session(self, content_item_id: UUID) -> ViewSession:
        with self._guard:
            session = self._views.get(content_item_id)
            if session is None:
                session = self._views[content_item_id] = ViewSession()
            self._views.move_to_end(content_item_id)
            while len(self._views) > self.max_entries:
                self._views.popitem(last=False)
            return session

    def clear(self) -> None:
        with self._guard:
            self._states.clear()
            self._views.clear()

    def _evict_states(self) -> None:
        while len(self._states) > self.max_entries:
            victim = next(
                (k for k, v in self._states.items() if not v.ahead_of_store),
                next(iter(self._states)),
            )
            del self._states[victim]
