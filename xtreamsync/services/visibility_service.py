"""Visibility service — which categories and custom groups are shown, per server and kind.

The map is sparse: a ``(kind, id)`` without an entry is visible.
"""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Iterable, Union

from xtreamsync.models.catalog import Category, ContentKind

if TYPE_CHECKING:
    from xtreamsync.database import KeyValueStore
    from xtreamsync.models.library import CustomGroup

logger = logging.getLogger(__name__)

GroupId = Union[int, str]


def visibility_key(kind: ContentKind, group_id: GroupId) -> str:
    return f"{ContentKind(kind).value}_{group_id}"


class VisibilityService:
    def __init__(self, store: "KeyValueStore"):
        self.store = store
        self._visibility: dict[str, dict[str, bool]] = {}

    def load(self) -> None:
        self._visibility = {
            server_id: {k: bool(v) for k, v in (entries or {}).items()}
            for server_id, entries in self.store.load().items()
        }

    def _save(self, server_id: str) -> None:
        self.store.save({server_id: self._visibility.get(server_id, {})})

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def is_visible(self, server_id: str, kind: ContentKind, group_id: GroupId) -> bool:
        return self._visibility.get(server_id, {}).get(visibility_key(kind, group_id), True)

    def get_map(self, server_id: str, kind: ContentKind) -> dict[str, bool]:
        prefix = f"{ContentKind(kind).value}_"
        return {
            key[len(prefix):]: value
            for key, value in self._visibility.get(server_id, {}).items()
            if key.startswith(prefix)
        }

    def filter_categories(self, server_id: str, kind: ContentKind, categories: Iterable[Category]) -> list[Category]:
        return [cat for cat in categories if self.is_visible(server_id, kind, cat.id)]

    def visible_category_ids(self, server_id: str, kind: ContentKind, categories: Iterable[Category]) -> set[int]:
        return {cat.id for cat in self.filter_categories(server_id, kind, categories)}

    def visible_groups(self, server_id: str, kind: ContentKind, groups: Iterable["CustomGroup"]) -> list["CustomGroup"]:
        kind = ContentKind(kind)
        return [g for g in groups if g.kind == kind and self.is_visible(server_id, kind, g.id)]

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def set_visible(self, server_id: str, kind: ContentKind, group_id: GroupId, visible: bool) -> None:
        self._visibility.setdefault(server_id, {})[visibility_key(kind, group_id)] = bool(visible)
        self._save(server_id)

    def set_all_visible(
        self, server_id: str, kind: ContentKind, group_ids: Iterable[GroupId], visible: bool
    ) -> None:
        entries = self._visibility.setdefault(server_id, {})
        for group_id in group_ids:
            entries[visibility_key(kind, group_id)] = bool(visible)
        self._save(server_id)

    def show_only(
        self, server_id: str, kind: ContentKind, group_ids: Iterable[GroupId], selected: GroupId
    ) -> None:
        """Accordion behaviour: hide every id in *group_ids*, then show *selected*."""
        entries = self._visibility.setdefault(server_id, {})
        for group_id in group_ids:
            entries[visibility_key(kind, group_id)] = False
        entries[visibility_key(kind, selected)] = True
        self._save(server_id)

    def toggle(
        self,
        server_id: str,
        kind: ContentKind,
        group_id: GroupId,
        all_ids: Iterable[GroupId] = (),
        one_at_a_time: bool = False,
    ) -> bool:
        """Flip one id's visibility. Returns the new value."""
        currently_visible = self.is_visible(server_id, kind, group_id)
        if one_at_a_time and not currently_visible:
            self.show_only(server_id, kind, all_ids, group_id)
            return True
        self.set_visible(server_id, kind, group_id, not currently_visible)
        return not currently_visible

    def forget_server(self, server_id: str) -> None:
        self._visibility.pop(server_id, None)
        self.store.delete(server_id)
