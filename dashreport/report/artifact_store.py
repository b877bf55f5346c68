"""Scratch storage for one report run.

Each run gets its own uniquely named directory holding the fetched panel
images and the rendered PDF.  The whole directory is removed by
:meth:`ArtifactStore.cleanup`.
"""

from __future__ import annotations

import logging
import os
import shutil
from pathlib import Path
from uuid import uuid4

from dashreport.constants import IMAGE_DIR_NAME, REPORT_FILE_NAME, TMP_DIR

logger = logging.getLogger(__name__)


class ArtifactStore:
    """Per-run temporary area rooted at ``<base_dir>/<random hex>``."""

    def __init__(self, base_dir: str | os.PathLike[str] = TMP_DIR) -> None:
        self.root = Path(base_dir) / uuid4().hex

    @property
    def image_dir(self) -> Path:
        return self.root / IMAGE_DIR_NAME

    @property
    def report_path(self) -> Path:
        return self.root / REPORT_FILE_NAME

    def prepare(self) -> Path:
        """Create the run directory and its image subdirectory.

        Raises ``OSError`` if the filesystem refuses.
        """
        self.image_dir.mkdir(parents=True, exist_ok=True)
        logger.debug("Prepared artifact store %s", self.root)
        return self.root

    def path_for(self, panel_id: int) -> Path:
        """Image path for *panel_id*.  Pure: no filesystem access."""
        return self.image_dir / f"image{panel_id}.png"

    def cleanup(self) -> None:
        """Delete the run directory.  Never raises; safe to call repeatedly."""
        try:
            shutil.rmtree(self.root)
        except FileNotFoundError:
            return
        except OSError as exc:
            logger.error("Cleaning up tmp dir %s failed: %s", self.root, exc)
            return
        logger.debug("Removed artifact store %s", self.root)
