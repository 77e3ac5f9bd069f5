"""Tests for the document processing pipeline."""

import threading
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from unittest.mock import MagicMock, patch

import cv2
import numpy as np
import pytest

from smartscan.classification.catalog import DEFAULT_CATALOG, DocumentCategory
from smartscan.classification.classifier import DocumentClassifier
from smartscan.extraction.rule_extractor import FieldExtractor
from smartscan.ocr.tesseract_engine import TesseractEngine
from smartscan.pipeline.orchestrator import DocumentPipeline, PipelineState
from smartscan.preprocessing.images import RawImage
from smartscan.preprocessing.normalizer import ImageNormalizer
from smartscan.structuring.gemini import GeminiStructurer
from smartscan.structuring.prompts import INVOICE_SCHEMA
from smartscan.structuring.schemas import Invoice
from smartscan.utils.config import AppConfig
from smartscan.utils.exceptions import (
    ConfigurationError,
    NoTextExtractedError,
    PipelineCancelledError,
    PipelineError,
    StructuringError,
)

S = PipelineState


def _pipeline(
    text: str = "",
    structurer: MagicMock | None = None,
    normalizer: ImageNormalizer | None = None,
) -> DocumentPipeline:
    ocr = MagicMock()
    ocr.extract_text.return_value = text
    ocr.extract_text_from_path.return_value = text
    return DocumentPipeline(
        normalizer=normalizer or ImageNormalizer(),
        classifier=MagicMock(wraps=DocumentClassifier()),
        extractor=FieldExtractor(),
        ocr=ocr,
        structurer=structurer,
    )


@pytest.fixture
def raw(sample_color_image: np.ndarray) -> RawImage:
    return RawImage.from_array(sample_color_image)


class TestPipelineRun:
    """Tests for successful runs."""

    def test_invoice_without_structuring(self, raw: RawImage, invoice_text: str) -> None:
        pipeline = _pipeline(invoice_text)
        result = pipeline.run(raw, structure=False)

        assert result.state == S.READY
        assert result.classification.category == DocumentCategory.INVOICE
        assert result.fields["RUT Emisor"] == "12.345.678-9"
        assert "10.000" in result.fields["Total"]
        assert result.record is None
        assert result.history == [S.IDLE, S.EXTRACTING_TEXT, S.CLASSIFYING, S.EXTRACTING_FIELDS, S.READY]

    def test_ocr_receives_normalized_pixels(self, raw: RawImage, invoice_text: str) -> None:
        pipeline = _pipeline(invoice_text)
        result = pipeline.run(raw, structure=False)
        pixels = pipeline.ocr.extract_text.call_args.args[0]
        assert pixels is result.normalized.pixels
        assert pixels.ndim == 2

    def test_with_structuring(self, raw: RawImage, invoice_text: str) -> None:
        structurer = MagicMock()
        structurer.structure.return_value = Invoice(invoice_number="F-1", date="05/03/2024")
        result = _pipeline(invoice_text, structurer).run(raw)

        assert result.state == S.READY
        assert result.record.invoice_number == "F-1"
        assert S.AWAITING_STRUCTURING in result.history
        args, kwargs = structurer.structure.call_args
        assert args == (invoice_text, DocumentCategory.INVOICE, INVOICE_SCHEMA)
        assert kwargs["definition"] is DEFAULT_CATALOG.find("Factura Electrónica")

    def test_timings(self, raw: RawImage, invoice_text: str) -> None:
        result = _pipeline(invoice_text).run(raw, structure=False)
        assert {"ocr", "classification", "total"} <= set(result.timings_ms)
        assert all(v >= 0 for v in result.timings_ms.values())

    def test_unknown_document_is_ready(self, raw: RawImage) -> None:
        result = _pipeline("hola mundo").run(raw, structure=False)
        assert result.classification.category == DocumentCategory.UNKNOWN
        assert result.fields == {}
        assert result.state == S.READY

    def test_concurrent_runs(self, raw: RawImage, invoice_text: str, delivery_text: str) -> None:
        ocr = MagicMock()
        ocr.extract_text.side_effect = lambda pixels: texts[threading.get_ident()]
        pipeline = DocumentPipeline(ImageNormalizer(), DocumentClassifier(), FieldExtractor(), ocr)
        texts: dict[int, str] = {}

        def work(text: str) -> DocumentCategory:
            texts[threading.get_ident()] = text
            return pipeline.run(raw, structure=False).classification.category

        with ThreadPoolExecutor(max_workers=4) as pool:
            categories = list(pool.map(work, [invoice_text, delivery_text] * 4))
        assert categories == [DocumentCategory.INVOICE, DocumentCategory.DELIVERY_NOTE] * 4


class TestPipelineFailures:
    """Tests for runs ending in the error state."""

    def test_blank_ocr(self, raw: RawImage) -> None:
        pipeline = _pipeline("  \n ")
        with pytest.raises(PipelineError) as exc_info:
            pipeline.run(raw)

        error = exc_info.value
        assert isinstance(error.cause, NoTextExtractedError)
        assert error.state == S.EXTRACTING_TEXT
        assert error.history == [S.IDLE, S.EXTRACTING_TEXT, S.ERROR]
        assert error.message == "no text extracted"
        pipeline.classifier.classify.assert_not_called()

    def test_structuring_failure(self, raw: RawImage, invoice_text: str) -> None:
        structurer = MagicMock()
        structurer.structure.side_effect = StructuringError("Structuring request timed out")
        with pytest.raises(PipelineError) as exc_info:
            _pipeline(invoice_text, structurer).run(raw)

        assert exc_info.value.state == S.AWAITING_STRUCTURING
        assert isinstance(exc_info.value.cause, StructuringError)
        assert exc_info.value.history[-1] == S.ERROR

    def test_missing_structurer(self, raw: RawImage, invoice_text: str) -> None:
        with pytest.raises(PipelineError) as exc_info:
            _pipeline(invoice_text).run(raw, structure=True)
        assert isinstance(exc_info.value.cause, ConfigurationError)

    def test_ocr_failure(self, raw: RawImage) -> None:
        pipeline = _pipeline()
        pipeline.ocr.extract_text.side_effect = RuntimeError("engine crashed")
        with pytest.raises(PipelineError, match="engine crashed") as exc_info:
            pipeline.run(raw)
        assert exc_info.value.state == S.EXTRACTING_TEXT

    def test_failed_run_does_not_poison_pipeline(self, raw: RawImage, invoice_text: str) -> None:
        pipeline = _pipeline("")
        with pytest.raises(PipelineError):
            pipeline.run(raw)
        pipeline.ocr.extract_text.return_value = invoice_text
        assert pipeline.run(raw, structure=False).state == S.READY


class TestCancellation:
    """Tests for cooperative cancellation."""

    def test_cancelled_before_start(self, raw: RawImage, invoice_text: str) -> None:
        cancel = threading.Event()
        cancel.set()
        pipeline = _pipeline(invoice_text)
        with pytest.raises(PipelineCancelledError) as exc_info:
            pipeline.run(raw, cancel=cancel)

        assert exc_info.value.state == S.IDLE
        assert exc_info.value.history == [S.IDLE, S.ERROR]
        pipeline.ocr.extract_text.assert_not_called()

    def test_cancelled_during_ocr(self, raw: RawImage, invoice_text: str) -> None:
        cancel = threading.Event()
        pipeline = _pipeline()

        def recognise(pixels: np.ndarray) -> str:
            cancel.set()
            return invoice_text

        pipeline.ocr.extract_text.side_effect = recognise
        with pytest.raises(PipelineCancelledError) as exc_info:
            pipeline.run(raw, cancel=cancel)

        assert exc_info.value.state == S.EXTRACTING_TEXT
        pipeline.classifier.classify.assert_not_called()


class TestRunFile:
    """Tests for running from an image file."""

    def test_run_file(self, tmp_path: Path, sample_color_image: np.ndarray, invoice_text: str) -> None:
        path = tmp_path / "factura.png"
        cv2.imwrite(str(path), sample_color_image)
        result = _pipeline(invoice_text).run_file(path, structure=False)
        assert result.state == S.READY
        assert result.normalized is not None

    def test_falls_back_to_file_ocr(
        self, tmp_path: Path, sample_color_image: np.ndarray, delivery_text: str
    ) -> None:
        path = tmp_path / "guia.png"
        cv2.imwrite(str(path), sample_color_image)
        normalizer = MagicMock()
        normalizer.normalize.side_effect = cv2.error("broken buffer")

        pipeline = _pipeline(delivery_text, normalizer=normalizer)
        result = pipeline.run_file(path, structure=False)

        assert result.normalized is None
        assert result.classification.category == DocumentCategory.DELIVERY_NOTE
        pipeline.ocr.extract_text_from_path.assert_called_once_with(path)

    def test_normalizer_error_without_file(self, raw: RawImage, delivery_text: str) -> None:
        normalizer = MagicMock()
        normalizer.normalize.side_effect = cv2.error("broken buffer")
        with pytest.raises(PipelineError) as exc_info:
            _pipeline(delivery_text, normalizer=normalizer).run(raw)
        assert isinstance(exc_info.value.cause, cv2.error)


class TestFromConfig:
    """Tests for building a pipeline from configuration."""

    def test_default_collaborators(self) -> None:
        pipeline = DocumentPipeline.from_config(AppConfig())
        assert isinstance(pipeline.normalizer, ImageNormalizer)
        assert isinstance(pipeline.ocr, TesseractEngine)
        assert isinstance(pipeline.structurer, GeminiStructurer)
        assert pipeline.classifier.catalog is DEFAULT_CATALOG

    def test_catalog_path(self, tmp_path: Path) -> None:
        catalog_file = tmp_path / "catalog.json"
        catalog_file.write_text(
            '[{"type": "Vale", "keywords": ["vale"], "fields": ["Monto"]}]', encoding="utf-8"
        )
        config = AppConfig(classification={"catalog_path": str(catalog_file)})
        pipeline = DocumentPipeline.from_config(config)
        assert [d.name for d in pipeline.classifier.catalog] == ["Vale"]
        assert pipeline.extractor.catalog is pipeline.classifier.catalog

    @patch("smartscan.pipeline.orchestrator.TesseractEngine")
    def test_ocr_settings(self, mock_engine: MagicMock) -> None:
        config = AppConfig(ocr={"default_lang": "eng", "psm": 6, "timeout_s": 10})
        DocumentPipeline.from_config(config)
        mock_engine.assert_called_once_with(
            tesseract_cmd=None, default_lang="eng", psm=6, timeout_s=10
        )
