"""Standalone PDF → PNG worker.

Run as ``python -m app.services.shares.pdf_raster <pdf> <out.png> [dpi]``.
Renders only the first page. Exit code 0 on success, 1 on failure with the
reason on stderr, 2 on bad arguments.
"""
import sys
from pathlib import Path

import fitz  # PyMuPDF
from loguru import logger


def render_first_page(pdf_path: Path, out_path: Path, dpi: int = 150) -> Path:
    with fitz.open(str(pdf_path)) as doc:
        if doc.page_count == 0:
            raise ValueError(f"{pdf_path.name} has no pages")
        pix = doc[0].get_pixmap(dpi=dpi, alpha=False)
        pix.save(str(out_path))
    return out_path


def main(argv: list[str] | None = None) -> int:
    args = list(sys.argv[1:] if argv is None else argv)
    if len(args) not in (2, 3):
        print("usage: pdf_raster <pdf> <out.png> [dpi]", file=sys.stderr)
        return 2

    pdf_path, out_path = Path(args[0]), Path(args[1])
    dpi = int(args[2]) if len(args) == 3 else 150

    try:
        render_first_page(pdf_path, out_path, dpi)
    except Exception as e:
        logger.error(f"❌ Rasterize failed for {pdf_path}: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
