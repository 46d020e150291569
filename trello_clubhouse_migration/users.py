"""
Translation table from Trello member ids to Clubhouse member ids.

Built once from the "users" section of the config before any card is
processed, and only read afterwards.
"""

from types import MappingProxyType
from typing import Optional


class UserMap:
    def __init__(self, mapping: Optional[dict] = None):
        cleaned = {}
        for trello_id, clubhouse_id in (mapping or {}).items():
            if trello_id and clubhouse_id:
                cleaned[str(trello_id)] = str(clubhouse_id)
        self._mapping = MappingProxyType(cleaned)

    @classmethod
    def from_config(cls, config: dict) -> "UserMap":
        """Build the map from the config's "users" object."""
        users = config.get("users") or {}
        if not isinstance(users, dict):
            raise ValueError('"users" in the config must map Trello ids to Clubhouse ids')
        return cls(users)

    def get(self, trello_id: Optional[str]) -> Optional[str]:
        """Return the Clubhouse id for a Trello member, or None when unmapped."""
        if not trello_id:
            return None
        return self._mapping.get(trello_id)

    def get_creator(self, trello_id: Optional[str], default: Optional[str] = None) -> Optional[str]:
        """Like get(), but falls back to `default` for unmapped members."""
        return self.get(trello_id) or default

    def map_all(self, trello_ids) -> list:
        """Translate a collection of ids, dropping the unmapped ones."""
        mapped = []
        for trello_id in trello_ids:
            clubhouse_id = self.get(trello_id)
            if clubhouse_id and clubhouse_id not in mapped:
                mapped.append(clubhouse_id)
        return mapped
