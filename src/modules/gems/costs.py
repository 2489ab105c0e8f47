"""Feature cost resolution with a synchronous and an authoritative path."""

import asyncio
from collections.abc import Mapping

from src.utils.logger import get_logger
from src.utils.settings.gems import GemSettings

from .store import BalanceStore, FeatureCost

# Compiled-in fallback table, mirrored by the seed migration
DEFAULT_GEM_COSTS: dict[str, int] = {
    "dress-change": 15,
    "apply-makeup": 15,
    "generate-character-image": 15,
    "pose-transfer": 15,
    "face-swap": 15,
    "cinematic-transform": 15,
    "extract-dress-to-dummy": 15,
    "generate-background": 15,
    "enhance-photo": 12,
    "apply-branding": 12,
    "remove-people-from-image": 12,
    "generate-caption": 1,
    "extract-image-prompt": 1,
    "refine-prompt": 1,
}

FEATURE_CATEGORIES: dict[str, str] = {
    "high-impact": "High-Impact Features",
    "studio-utility": "Studio Utility Features",
    "quick-tools": "Quick Tools",
}


class FeatureCostResolver:
    """Answers "how many gems does feature X cost".

    ``get_cost_sync`` reads the in-memory table (compiled-in defaults,
    overwritten by the last good remote fetch). ``get_cost_async`` loads the
    remote table once per resolver, sharing a single in-flight fetch between
    concurrent callers. A failed fetch never wipes the table.
    """

    def __init__(
        self,
        store: BalanceStore,
        defaults: Mapping[str, int] | None = None,
        default_cost: int | None = None,
    ):
        self.store = store
        self.default_cost = max(
            1, default_cost if default_cost is not None else GemSettings().DEFAULT_FEATURE_COST
        )
        self._costs: dict[str, int] = dict(DEFAULT_GEM_COSTS if defaults is None else defaults)
        self._entries: dict[str, FeatureCost] = {}
        self._loaded = False
        self._inflight: asyncio.Task | None = None
        self.logger = get_logger(self.__class__.__name__)

    @property
    def loaded(self) -> bool:
        return self._loaded

    def get_cost_sync(self, feature_key: str) -> int:
        return self._costs.get(feature_key, self.default_cost)

    async def get_cost_async(self, feature_key: str) -> int:
        await self.ensure_loaded()
        return self.get_cost_sync(feature_key)

    async def ensure_loaded(self) -> None:
        if not self._loaded:
            await self._load()

    def preload(self) -> asyncio.Task | None:
        """Start loading the remote table in the background if not loaded yet."""
        if self._loaded:
            return None
        return self._ensure_inflight()

    async def refresh(self) -> None:
        """Re-read the remote table; a fetch started before this call never wins."""
        pending = self._inflight
        if pending is not None and not pending.done():
            await asyncio.shield(pending)

        self._loaded = False
        self._inflight = asyncio.create_task(self._fetch())
        await asyncio.shield(self._inflight)

    def invalidate(self) -> None:
        self._loaded = False

    def table(self) -> list[FeatureCost]:
        """Current resolved table, remote entries first, then defaults missing remotely."""
        entries = dict(self._entries)
        for feature_key, cost in self._costs.items():
            if feature_key not in entries:
                entries[feature_key] = FeatureCost(
                    feature_key=feature_key,
                    cost=cost,
                    feature_name=feature_key,
                    category=self._category_for(cost),
                )
        return sorted(entries.values(), key=lambda e: (e.category, e.feature_name))

    async def _load(self) -> None:
        await asyncio.shield(self._ensure_inflight())

    def _ensure_inflight(self) -> asyncio.Task:
        if self._inflight is None or self._inflight.done():
            self._inflight = asyncio.create_task(self._fetch())
        return self._inflight

    async def _fetch(self) -> None:
        try:
            rows = await self.store.read_feature_costs()
        except Exception as e:
            self.logger.error(f"Failed to fetch feature costs, keeping previous table: {e}")
            return

        for row in rows:
            if row.cost < 0:
                self.logger.warning(
                    "Ignoring negative feature cost",
                    feature_key=row.feature_key,
                    cost=row.cost,
                )
                continue
            self._costs[row.feature_key] = row.cost
            self._entries[row.feature_key] = row

        self._loaded = True
        self.logger.debug(f"Loaded {len(rows)} feature costs")

    @staticmethod
    def _category_for(cost: int) -> str:
        if cost >= 15:
            return "high-impact"
        if cost > 1:
            return "studio-utility"
        return "quick-tools"
