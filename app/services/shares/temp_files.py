import secrets
import tempfile
import time
from pathlib import Path
from typing import Iterable, Optional

from loguru import logger

from app.core.settings import settings
from app.libs.formats.datetime import timestamp_ms


class TempFileScope:
    """
    Track every temp path created for one thumbnail attempt and delete all of
    them on exit, together with leftovers from earlier attempts for the same
    book (``book_<id>_*.pdf``, ``thumb_<id>_*.png``). A leftover is only
    swept once it is older than ``stale_after`` seconds, so files of a
    concurrent attempt on the same book survive. A failed delete is logged
    and skipped.
    """

    def __init__(
        self,
        book_id: int | str,
        temp_dir: Optional[str | Path] = None,
        stale_after: Optional[float] = None,
    ):
        self.book_id = book_id
        self.temp_dir = Path(temp_dir or tempfile.gettempdir())
        self.stale_after = (
            settings.RASTERIZE_TIMEOUT_SECONDS if stale_after is None else stale_after
        )
        self.paths: list[Path] = []

    @property
    def leftover_patterns(self) -> tuple[str, ...]:
        return (f"book_{self.book_id}_*.pdf", f"thumb_{self.book_id}_*.png")

    def new_path(self, prefix: str, suffix: str) -> Path:
        path = self.temp_dir / f"{prefix}_{self.book_id}_{timestamp_ms()}_{secrets.token_hex(4)}{suffix}"
        self.paths.append(path)
        return path

    def pdf_path(self) -> Path:
        return self.new_path("book", ".pdf")

    def png_path(self) -> Path:
        return self.new_path("thumb", ".png")

    def register(self, path: Path) -> Path:
        self.paths.append(path)
        return path

    def _is_stale(self, path: Path, cutoff: float) -> bool:
        try:
            return path.stat().st_mtime <= cutoff
        except OSError:
            return False

    def _candidates(self) -> Iterable[Path]:
        cutoff = time.time() - self.stale_after
        seen: set[Path] = set()
        for path in self.paths:
            if path not in seen:
                seen.add(path)
                yield path
        for pattern in self.leftover_patterns:
            for path in self.temp_dir.glob(pattern):
                if path not in seen and self._is_stale(path, cutoff):
                    seen.add(path)
                    yield path

    def cleanup(self) -> int:
        removed = 0
        for path in self._candidates():
            try:
                path.unlink()
                removed += 1
            except FileNotFoundError:
                continue
            except OSError as e:
                logger.warning(f"⚠️ Could not delete temp file {path}: {e}")
        self.paths.clear()
        return removed

    def __enter__(self) -> "TempFileScope":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.cleanup()
        return False

    async def __aenter__(self) -> "TempFileScope":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        self.cleanup()
        return False
