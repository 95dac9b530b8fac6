"""Batch OCR over many images with per-image error isolation."""

import csv
import io
import json
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from card_scanner.models.ocr_result import OCRResult
from card_scanner.models.options import OCROptions

logger = logging.getLogger(__name__)


class TextRecognizer(Protocol):
    def recognize_text(
        self, image_data: bytes, options: OCROptions | None = None
    ) -> OCRResult: ...


@dataclass(frozen=True)
class BatchOCRItem:
    """A successful batch entry."""

    index: int
    result: OCRResult


@dataclass(frozen=True)
class BatchOCRError:
    """A failed batch entry; ``error`` is the stringified cause."""

    index: int
    error: str


@dataclass
class BatchOCRResult:
    """Outcome of a batch, both lists ordered by input index."""

    successful: list[BatchOCRItem] = field(default_factory=list)
    failed: list[BatchOCRError] = field(default_factory=list)
    total_time_ms: float = 0.0

    @property
    def total(self) -> int:
        return len(self.successful) + len(self.failed)

    @property
    def success_rate(self) -> float:
        """Share of successful items; 0.0 for an empty batch."""
        if self.total == 0:
            return 0.0
        return len(self.successful) / self.total


class BatchProcessor:
    """Recognize multiple images, collecting failures instead of aborting."""

    IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".bmp", ".webp", ".tif", ".tiff"}

    def __init__(self, recognizer: TextRecognizer, max_workers: int = 1):
        """
        Args:
            recognizer: Object providing ``recognize_text``, normally an
                OCRRepository so each image consults the cache.
            max_workers: Images recognized concurrently.
        """
        self._recognizer = recognizer
        self._max_workers = max(1, max_workers)

    def process(
        self, images: list[bytes], options: OCROptions | None = None
    ) -> BatchOCRResult:
        """
        Recognize every image in ``images``.

        Args:
            images: Encoded image bytes.
            options: Options applied to every image.

        Returns:
            BatchOCRResult indexed by position in ``images``.
        """
        start = time.perf_counter()

        def run(index: int) -> BatchOCRItem | BatchOCRError:
            try:
                return BatchOCRItem(index, self._recognizer.recognize_text(images[index], options))
            except Exception as e:
                logger.warning("Batch item %d failed: %s", index, e)
                return BatchOCRError(index, str(e))

        if self._max_workers == 1 or len(images) <= 1:
            outcomes = [run(i) for i in range(len(images))]
        else:
            with ThreadPoolExecutor(max_workers=self._max_workers) as pool:
                outcomes = list(pool.map(run, range(len(images))))

        result = BatchOCRResult(
            successful=[o for o in outcomes if isinstance(o, BatchOCRItem)],
            failed=[o for o in outcomes if isinstance(o, BatchOCRError)],
            total_time_ms=round((time.perf_counter() - start) * 1000, 2),
        )
        logger.info(
            "Batch finished: %d/%d succeeded in %.0f ms",
            len(result.successful),
            result.total,
            result.total_time_ms,
        )
        return result

    def process_paths(
        self, paths: list[Path], options: OCROptions | None = None
    ) -> BatchOCRResult:
        """Read ``paths`` and process them; unreadable files count as failures."""
        start = time.perf_counter()
        images: list[bytes] = []
        unreadable: list[BatchOCRError] = []
        positions: list[int] = []
        for index, path in enumerate(paths):
            try:
                images.append(path.read_bytes())
                positions.append(index)
            except OSError as e:
                unreadable.append(BatchOCRError(index, str(e)))

        inner = self.process(images, options)
        return BatchOCRResult(
            successful=[BatchOCRItem(positions[i.index], i.result) for i in inner.successful],
            failed=sorted(
                [BatchOCRError(positions[e.index], e.error) for e in inner.failed] + unreadable,
                key=lambda e: e.index,
            ),
            total_time_ms=round((time.perf_counter() - start) * 1000, 2),
        )

    def collect_images(self, inputs: list[Path]) -> list[Path]:
        """
        Expand files and directories into a sorted list of image paths.

        Args:
            inputs: Image files or directories containing images.

        Returns:
            Image paths, sorted and without duplicates.
        """
        images: set[Path] = set()
        for path in inputs:
            if path.is_dir():
                images.update(
                    p for p in path.iterdir()
                    if p.is_file() and p.suffix.lower() in self.IMAGE_EXTENSIONS
                )
            elif path.is_file() and path.suffix.lower() in self.IMAGE_EXTENSIONS:
                images.add(path)
        return sorted(images)

    def to_json(self, result: BatchOCRResult, paths: list[Path] | None = None) -> str:
        """Format a batch as JSON with a metadata block, results and errors."""
        output = {
            "metadata": {
                "total": result.total,
                "succeeded": len(result.successful),
                "failed": len(result.failed),
                "success_rate": round(result.success_rate, 4),
                "total_time_ms": result.total_time_ms,
            },
            "results": [
                {
                    "index": item.index,
                    "image_path": _path_at(paths, item.index),
                    **item.result.model_dump(
                        mode="json", exclude={"image_data", "blocks"}
                    ),
                }
                for item in result.successful
            ],
            "errors": [
                {"index": e.index, "image_path": _path_at(paths, e.index), "error": e.error}
                for e in result.failed
            ],
        }
        return json.dumps(output, indent=2, ensure_ascii=False)

    def to_csv(self, result: BatchOCRResult, paths: list[Path] | None = None) -> str:
        """Format a batch as CSV, one row per image in input order."""
        output = io.StringIO()
        fieldnames = [
            "index",
            "image_path",
            "confidence",
            "ocr_engine",
            "processing_time_ms",
            "emails",
            "phones",
            "raw_text",
            "error",
        ]
        writer = csv.DictWriter(output, fieldnames=fieldnames)
        writer.writeheader()

        rows = []
        for item in result.successful:
            rows.append({
                "index": item.index,
                "image_path": _path_at(paths, item.index) or "",
                "confidence": round(item.result.confidence, 4),
                "ocr_engine": item.result.ocr_engine or "",
                "processing_time_ms": item.result.processing_time_ms,
                "emails": ";".join(item.result.extract_emails()),
                "phones": ";".join(item.result.extract_phone_numbers()),
                "raw_text": item.result.raw_text,
                "error": "",
            })
        for error in result.failed:
            row = {k: "" for k in fieldnames}
            row.update(index=error.index, image_path=_path_at(paths, error.index) or "", error=error.error)
            rows.append(row)

        writer.writerows(sorted(rows, key=lambda r: r["index"]))
        return output.getvalue()


def _path_at(paths: list[Path] | None, index: int) -> str | None:
    if paths is None or index >= len(paths):
        return None
    return str(paths[index])
