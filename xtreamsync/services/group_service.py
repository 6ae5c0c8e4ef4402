"""Custom group service — user-defined groupings of item ids, per server."""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Iterable, Optional

from pydantic import ValidationError

from xtreamsync.models.catalog import ContentKind
from xtreamsync.models.library import CustomGroup

if TYPE_CHECKING:
    from xtreamsync.database import KeyValueStore

logger = logging.getLogger(__name__)


class GroupService:
    """Manages custom groups. Membership changes never touch the content cache."""

    def __init__(self, store: "KeyValueStore"):
        self.store = store
        self._groups: dict[str, list[CustomGroup]] = {}

    def load(self) -> None:
        self._groups = {}
        for server_id, raw_groups in self.store.load().items():
            groups: list[CustomGroup] = []
            for raw in raw_groups or []:
                try:
                    groups.append(CustomGroup.model_validate(raw))
                except ValidationError as e:
                    logger.warning(f"Skipping malformed custom group for server {server_id}: {e}")
            self._groups[server_id] = groups

    def _save(self, server_id: str) -> None:
        self.store.save({server_id: [g.model_dump(mode="json") for g in self._groups.get(server_id, [])]})

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def list_groups(self, server_id: str, kind: Optional[ContentKind] = None) -> list[CustomGroup]:
        groups = self._groups.get(server_id, [])
        if kind is None:
            return list(groups)
        kind = ContentKind(kind)
        return [g for g in groups if g.kind == kind]

    def get(self, server_id: str, group_id: str) -> Optional[CustomGroup]:
        for group in self._groups.get(server_id, []):
            if group.id == group_id:
                return group
        return None

    def groups_containing(self, server_id: str, kind: ContentKind, content_id: int) -> list[CustomGroup]:
        return [g for g in self.list_groups(server_id, kind) if int(content_id) in g.content_ids]

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def create(
        self,
        server_id: str,
        name: str,
        kind: ContentKind,
        content_ids: Optional[Iterable[int]] = None,
    ) -> CustomGroup:
        unique_ids = list(dict.fromkeys(int(cid) for cid in (content_ids or [])))
        group = CustomGroup(name=name, kind=ContentKind(kind), content_ids=unique_ids)
        self._groups.setdefault(server_id, []).append(group)
        self._save(server_id)
        logger.info(f"Created {group.kind.value} group '{name}' ({group.id})")
        return group

    def delete(self, server_id: str, group_id: str) -> bool:
        groups = self._groups.get(server_id, [])
        remaining = [g for g in groups if g.id != group_id]
        if len(remaining) == len(groups):
            return False
        self._groups[server_id] = remaining
        self._save(server_id)
        return True

    def add_content(self, server_id: str, group_id: str, content_id: int) -> Optional[CustomGroup]:
        group = self.get(server_id, group_id)
        if group is None:
            return None
        if int(content_id) not in group.content_ids:
            group.content_ids.append(int(content_id))
            self._save(server_id)
        return group

    def remove_content(self, server_id: str, group_id: str, content_id: int) -> Optional[CustomGroup]:
        group = self.get(server_id, group_id)
        if group is None:
            return None
        group.content_ids = [cid for cid in group.content_ids if cid != int(content_id)]
        self._save(server_id)
        return group

    def forget_server(self, server_id: str) -> None:
        self._groups.pop(server_id, None)
        self.store.delete(server_id)
