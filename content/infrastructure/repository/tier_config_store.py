import logging
from pathlib import Path

from content.domain.collection_policy import TierConfig
from content.infrastructure.repository.json_file import atomic_write_json, read_json

logger = logging.getLogger(__name__)


class TierConfigStore:
    """config/channels-tiered.json ({tier1, tier2, tier3, metadata}) 읽기/쓰기."""

    def __init__(self, path: str | Path = "config/channels-tiered.json"):
        self.path = Path(path)

    def load(self) -> TierConfig:
        if not self.path.exists():
            logger.warning("[COLLECT] tier config %s not found, no channels are tracked", self.path)
            return TierConfig()
        try:
            return TierConfig.from_record(read_json(self.path))
        except (ValueError, AttributeError) as exc:
            logger.warning("[COLLECT] tier config %s unreadable: %s", self.path, exc)
            return TierConfig()

    def save(self, tiers: TierConfig) -> None:
        atomic_write_json(self.path, tiers.to_record())
