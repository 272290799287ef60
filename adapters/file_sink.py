"""
Filesystem sink for stitched captures
"""

import asyncio
import logging
from pathlib import Path

from adapters.base import CaptureSink
from utils.error_handler import PersistenceError

logger = logging.getLogger(__name__)


class FileCaptureSink(CaptureSink):
    """Writes final images into an output directory"""

    def __init__(self, output_dir: str = "data/captures"):
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)
        logger.info(f"[FileCaptureSink] Initialized with storage: {self.output_dir}")

    def _unique_path(self, filename: str) -> Path:
        path = self.output_dir / filename
        counter = 1
        while path.exists():
            path = self.output_dir / f"{Path(filename).stem}_{counter}{Path(filename).suffix}"
            counter += 1
        return path

    def _write(self, image: bytes, filename: str) -> Path:
        path = self._unique_path(filename)
        try:
            with open(path, "wb") as f:
                f.write(image)
        except OSError as e:
            raise PersistenceError(f"Failed to write {path}: {e}", filename=filename) from e
        logger.info(f"[FileCaptureSink] Saved {len(image)} bytes to {path}")
        return path

    async def save(self, image: bytes, filename: str) -> Path:
        return await asyncio.to_thread(self._write, image, filename)
