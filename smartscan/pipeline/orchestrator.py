"""Document processing pipeline.

Sequences normalization, OCR, classification, field extraction and AI
structuring as a per-run state machine::

    IDLE -> EXTRACTING_TEXT -> CLASSIFYING -> EXTRACTING_FIELDS
         -> AWAITING_STRUCTURING -> READY

Any stage may end the run in ``ERROR``. Blank OCR text and collaborator
failures are the only fatal conditions; retries are left to the caller.
"""

import threading
import time
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path

import cv2

from smartscan.classification.catalog import load_catalog
from smartscan.classification.classifier import ClassificationResult, DocumentClassifier
from smartscan.extraction.rule_extractor import FieldExtractor
from smartscan.ocr.tesseract_engine import OCRProvider, TesseractEngine
from smartscan.preprocessing.images import RawImage
from smartscan.preprocessing.normalizer import ImageNormalizer, NormalizedImage
from smartscan.structuring.gemini import GeminiStructurer, StructuringProvider
from smartscan.structuring.prompts import schema_hint_for
from smartscan.structuring.schemas import StructuredRecord
from smartscan.utils.config import AppConfig
from smartscan.utils.exceptions import (
    ConfigurationError,
    NoTextExtractedError,
    PipelineCancelledError,
    PipelineError,
)
from smartscan.utils.logger import get_logger

logger = get_logger(__name__)


class PipelineState(StrEnum):
    """States of a single pipeline run."""

    IDLE = "idle"
    EXTRACTING_TEXT = "extracting_text"
    CLASSIFYING = "classifying"
    EXTRACTING_FIELDS = "extracting_fields"
    AWAITING_STRUCTURING = "awaiting_structuring"
    READY = "ready"
    ERROR = "error"


@dataclass
class PipelineResult:
    """Outputs of a successful run."""

    state: PipelineState
    text: str
    classification: ClassificationResult
    fields: dict[str, str]
    record: StructuredRecord | None = None
    normalized: NormalizedImage | None = None
    history: list[PipelineState] = field(default_factory=list)
    timings_ms: dict[str, float] = field(default_factory=dict)


class _Run:
    """Mutable bookkeeping owned by exactly one ``run`` call."""

    def __init__(self, cancel: threading.Event | None) -> None:
        self.cancel = cancel
        self.state = PipelineState.IDLE
        self.history = [PipelineState.IDLE]
        self.timings_ms: dict[str, float] = {}
        self._started = time.perf_counter()

    def advance(self, state: PipelineState) -> None:
        if self.cancel is not None and self.cancel.is_set():
            raise PipelineCancelledError(
                "Pipeline run cancelled", state=self.state, history=self.history
            )
        logger.debug("Pipeline %s -> %s", self.state, state)
        self.state = state
        self.history.append(state)

    def timed(self, name: str, started: float) -> None:
        self.timings_ms[name] = (time.perf_counter() - started) * 1000.0

    def finish(self) -> None:
        self.timed("total", self._started)

    def fail(self) -> None:
        self.history.append(PipelineState.ERROR)


class DocumentPipeline:
    """Runs a document photo through the whole processing chain.

    Holds only immutable collaborators, so one instance can serve
    concurrent runs; each ``run`` call owns its own state.

    Args:
        normalizer: Image normalizer.
        classifier: Document classifier.
        extractor: Field extractor.
        ocr: OCR provider.
        structurer: AI structuring provider, or ``None`` when unavailable.
    """

    def __init__(
        self,
        normalizer: ImageNormalizer,
        classifier: DocumentClassifier,
        extractor: FieldExtractor,
        ocr: OCRProvider,
        structurer: StructuringProvider | None = None,
    ) -> None:
        self.normalizer = normalizer
        self.classifier = classifier
        self.extractor = extractor
        self.ocr = ocr
        self.structurer = structurer

    @classmethod
    def from_config(cls, config: AppConfig) -> "DocumentPipeline":
        """Build a pipeline with Tesseract OCR and Gemini structuring."""
        catalog_path = config.classification.catalog_path
        catalog = load_catalog(Path(catalog_path) if catalog_path else None)
        return cls(
            normalizer=ImageNormalizer(config.normalizer),
            classifier=DocumentClassifier(catalog),
            extractor=FieldExtractor(catalog),
            ocr=TesseractEngine(
                tesseract_cmd=config.ocr.tesseract_cmd,
                default_lang=config.ocr.default_lang,
                psm=config.ocr.psm,
                timeout_s=config.ocr.timeout_s,
            ),
            structurer=GeminiStructurer(config.structuring),
        )

    def run(
        self,
        raw: RawImage,
        structure: bool = True,
        cancel: threading.Event | None = None,
    ) -> PipelineResult:
        """Process one decoded photo.

        Args:
            raw: Decoded document photo.
            structure: Whether to call the AI structuring provider. When
                ``False`` the run is ready after field extraction.
            cancel: Event checked at every state boundary; once set the
                run stops with ``PipelineCancelledError``.

        Returns:
            Result of the run in state ``READY``.

        Raises:
            PipelineCancelledError: If ``cancel`` was set.
            PipelineError: If OCR yields no text or a collaborator fails;
                ``cause`` holds the triggering exception.
        """
        run = _Run(cancel)
        try:
            return self._run(run, raw, structure)
        except PipelineCancelledError as exc:
            run.fail()
            exc.history = run.history
            logger.warning("Pipeline cancelled in state %s", run.state)
            raise
        except Exception as exc:
            failed_state = run.state
            run.fail()
            message = getattr(exc, "message", None) or str(exc) or type(exc).__name__
            logger.error("Pipeline failed in state %s: %s", failed_state, message)
            raise PipelineError(
                message, state=failed_state, cause=exc, history=run.history
            ) from exc

    def run_file(
        self,
        path: Path,
        structure: bool = True,
        cancel: threading.Event | None = None,
    ) -> PipelineResult:
        """Decode an image file and process it.

        Raises:
            ImageDecodeError: If the file is not a decodable image.
        """
        return self.run(RawImage.from_path(path), structure=structure, cancel=cancel)

    def _run(self, run: _Run, raw: RawImage, structure: bool) -> PipelineResult:
        run.advance(PipelineState.EXTRACTING_TEXT)
        started = time.perf_counter()
        normalized, text = self._extract_text(raw)
        run.timed("ocr", started)
        if not text.strip():
            raise NoTextExtractedError({"width": raw.width, "height": raw.height})

        run.advance(PipelineState.CLASSIFYING)
        started = time.perf_counter()
        classification = self.classifier.classify(text)
        run.timed("classification", started)
        logger.info(
            "Document classified as %s (%s)",
            classification.category,
            classification.specific_type,
        )

        run.advance(PipelineState.EXTRACTING_FIELDS)
        fields = self.extractor.extract_fields(text, classification.specific_type)

        record = None
        if structure:
            run.advance(PipelineState.AWAITING_STRUCTURING)
            started = time.perf_counter()
            record = self._structure(text, classification)
            run.timed("structuring", started)

        run.advance(PipelineState.READY)
        run.finish()
        return PipelineResult(
            state=run.state,
            text=text,
            classification=classification,
            fields=fields,
            record=record,
            normalized=normalized,
            history=run.history,
            timings_ms=run.timings_ms,
        )

    def _extract_text(self, raw: RawImage) -> tuple[NormalizedImage | None, str]:
        """Normalize and OCR the photo, reading the file directly if normalization breaks."""
        try:
            normalized = self.normalizer.normalize(raw)
        except cv2.error as exc:
            if raw.source_path is None:
                raise
            logger.warning(
                "Normalization failed (%s), running OCR on %s directly",
                exc,
                raw.source_path,
            )
            return None, self.ocr.extract_text_from_path(raw.source_path)
        return normalized, self.ocr.extract_text(normalized.pixels)

    def _structure(
        self, text: str, classification: ClassificationResult
    ) -> StructuredRecord:
        if self.structurer is None:
            raise ConfigurationError("No structuring provider configured")
        definition = self.extractor.catalog.find(classification.specific_type)
        return self.structurer.structure(
            text,
            classification.category,
            schema_hint_for(classification.category),
            definition=definition,
        )
