"""StateReader backed by a JSON snapshot file.

The file holds one key per query (``game_state``, ``combat_state``, ...)
plus ``in_game`` / ``in_combat`` flags. A game-side exporter can rewrite
it every frame; each query re-reads the file.
"""

import json
from pathlib import Path

QUERIES = ["game_state", "combat_state", "screen", "deck", "relics", "potions", "map"]


class SnapshotReader:
    def __init__(self, path):
        self.path = Path(path)

    def _load(self) -> dict:
        try:
            return json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            return {}

    def _section(self, key: str, missing: str) -> str:
        value = self._load().get(key)
        if value is None:
            return missing
        return value if isinstance(value, str) else json.dumps(value)

    def is_in_game(self) -> bool:
        return bool(self._load().get("in_game"))

    def is_in_combat(self) -> bool:
        return bool(self._load().get("in_combat"))

    def get_game_state(self) -> str:
        return self._section("game_state", "Not in game.")

    def get_combat_state(self) -> str:
        if not self.is_in_combat():
            return "Not in combat."
        return self._section("combat_state", "Not in combat.")

    def get_screen(self) -> str:
        return self._section("screen", "No screen information.")

    def get_deck(self) -> str:
        return self._section("deck", "No deck information.")

    def get_relics(self) -> str:
        return self._section("relics", "No relics.")

    def get_potions(self) -> str:
        return self._section("potions", "No potions.")

    def get_map(self) -> str:
        return self._section("map", "No map information.")
