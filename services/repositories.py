"""
In-memory farm and season repositories.
"""

import threading
from typing import Dict, Iterable, Optional

from schemas.farm_schemas import Farm, Season


class InMemoryFarmRepository:
    def __init__(self, farms: Iterable[Farm] = ()):
        self._farms: Dict[str, Farm] = {f.id: f for f in farms}
        self._lock = threading.Lock()

    def add(self, farm: Farm) -> None:
        with self._lock:
            self._farms[farm.id] = farm

    def get(self, farm_id: str) -> Optional[Farm]:
        with self._lock:
            return self._farms.get(farm_id)


class InMemorySeasonRepository:
    def __init__(self, seasons: Iterable[Season] = ()):
        self._seasons: Dict[str, Season] = {s.id: s for s in seasons}
        self._lock = threading.Lock()

    def add(self, season: Season) -> None:
        with self._lock:
            self._seasons[season.id] = season

    def get(self, season_id: str) -> Optional[Season]:
        with self._lock:
            return self._seasons.get(season_id)
