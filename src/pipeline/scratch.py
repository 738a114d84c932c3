"""Per-request scratch directory for uploads, cleaned audio and chunk files."""

from __future__ import annotations

import logging
import shutil
import tempfile
from pathlib import Path
from types import TracebackType

from src.pipeline.errors import AudioProcessingError

logger = logging.getLogger(__name__)


class ScratchSpace:
    """Owns one temporary directory for the lifetime of a single request.

    Use as a context manager: the directory and everything written into it is
    removed on exit, whether the block returned, raised or was cancelled.
    """

    def __init__(self, prefix: str = "meeting-", base_dir: Path | None = None) -> None:
        self.prefix = prefix
        self.base_dir = base_dir
        self.root: Path | None = None

    def open(self) -> Path:
        try:
            self.root = Path(tempfile.mkdtemp(prefix=self.prefix, dir=self.base_dir))
        except OSError as exc:
            raise AudioProcessingError(f"Cannot create scratch directory: {exc}") from exc
        logger.debug("Created scratch directory %s", self.root)
        return self.root

    def path(self, name: str) -> Path:
        """Path for *name* inside the scratch directory (not created)."""
        if self.root is None:
            raise RuntimeError("ScratchSpace is not open")
        return self.root / name

    def cleanup(self) -> None:
        """Remove the directory tree. Failures are logged, not raised."""
        if self.root is None:
            return
        root, self.root = self.root, None
        try:
            shutil.rmtree(root)
        except FileNotFoundError:
            pass
        except OSError:
            logger.warning("Could not remove scratch directory %s", root, exc_info=True)
        else:
            logger.debug("Removed scratch directory %s", root)

    def __enter__(self) -> ScratchSpace:
        self.open()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.cleanup()
