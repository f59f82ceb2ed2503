import asyncio
import sys
from pathlib import Path
from typing import Optional, Sequence

from loguru import logger

from app.core.exceptions import ConversionFailedError, ConversionTimeoutError
from app.core.settings import settings

PROJECT_ROOT = Path(__file__).resolve().parents[3]
WORKER_COMMAND = (sys.executable, "-m", "app.services.shares.pdf_raster")


class Rasterizer:
    """
    Render page 1 of a PDF to PNG in a child process.
    - The child is bounded by ``timeout`` seconds; past that it is killed
      and its output path is never trusted.
    """

    def __init__(
        self,
        timeout: Optional[float] = None,
        dpi: Optional[int] = None,
        command: Sequence[str] = WORKER_COMMAND,
    ):
        self.timeout = timeout if timeout is not None else settings.RASTERIZE_TIMEOUT_SECONDS
        self.dpi = dpi or settings.THUMBNAIL_DPI
        self.command = tuple(command)

    async def rasterize(self, pdf_path: Path, out_path: Path) -> Path:
        argv = [*self.command, str(pdf_path), str(out_path), str(self.dpi)]
        logger.info(f"🖨️ Rasterizing {pdf_path.name} (dpi={self.dpi}, timeout={self.timeout}s)")

        try:
            proc = await asyncio.create_subprocess_exec(
                *argv,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
                cwd=str(PROJECT_ROOT),
            )
        except OSError as e:
            logger.exception("❌ Could not start rasterizer process")
            raise ConversionFailedError(details=f"spawn failed: {e}") from e

        try:
            _, stderr = await asyncio.wait_for(proc.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError:
            await self._abandon(proc)
            logger.error(f"⏱️ Rasterizer timed out after {self.timeout}s on {pdf_path.name}")
            raise ConversionTimeoutError(details=f"timed out after {self.timeout}s")

        if proc.returncode != 0:
            reason = (stderr or b"").decode("utf-8", "replace").strip()
            logger.error(f"❌ Rasterizer exited {proc.returncode}: {reason}")
            raise ConversionFailedError(details=reason or f"exit code {proc.returncode}")

        if not out_path.exists() or out_path.stat().st_size == 0:
            logger.error(f"❌ Rasterizer produced no output for {pdf_path.name}")
            raise ConversionFailedError(details="no output image")

        return out_path

    @staticmethod
    async def _abandon(proc: asyncio.subprocess.Process) -> None:
        try:
            proc.kill()
        except ProcessLookupError:
            return
        await proc.wait()
