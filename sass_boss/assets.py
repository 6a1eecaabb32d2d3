"""Registry of output files produced by compile sessions."""

from __future__ import annotations

import logging
from pathlib import Path

logger = logging.getLogger(__name__)


class AssetRegistry:
    def __init__(self):
        self.assets: list[Path] = []

    def add(self, path: str | Path):
        path = Path(path)
        if path not in self.assets:
            self.assets.append(path)
            logger.debug(f"Registered asset {path}")

    def __contains__(self, path: str | Path) -> bool:
        return Path(path) in self.assets

    def __len__(self) -> int:
        return len(self.assets)
