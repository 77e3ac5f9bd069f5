"""Shared test fixtures for the SmartScan test suite."""

from pathlib import Path

import cv2
import numpy as np
import pytest

from smartscan.classification.catalog import (
    Catalog,
    DocumentCategory,
    DocumentTypeDefinition,
)


@pytest.fixture
def invoice_text() -> str:
    """OCR text of a small Chilean invoice."""
    return "FACTURA\nRUT 12.345.678-9\nTotal: $10.000\n"


@pytest.fixture
def delivery_text() -> str:
    return "Guía de Despacho\nRemitente: ACME\nPatente: AB1234\n"


@pytest.fixture
def sample_image() -> np.ndarray:
    """Create a simple synthetic grayscale test image."""
    image = np.zeros((200, 300), dtype=np.uint8)
    image[50:150, 50:250] = 255
    return image


@pytest.fixture
def sample_color_image() -> np.ndarray:
    """Create a simple synthetic BGR test image."""
    image = np.zeros((200, 300, 3), dtype=np.uint8)
    image[50:150, 50:250] = (255, 255, 255)
    return image


@pytest.fixture
def document_photo() -> np.ndarray:
    """A bright, tilted sheet of paper on a dark table."""
    image = np.full((400, 400, 3), 30, dtype=np.uint8)
    corners = np.array([[60, 50], [330, 80], [350, 340], [40, 320]], dtype=np.int32)
    cv2.fillPoly(image, [corners], (235, 235, 235))
    cv2.putText(image, "FACTURA", (110, 200), cv2.FONT_HERSHEY_SIMPLEX, 1.0, (20, 20, 20), 2)
    return image


@pytest.fixture
def pentagon_photo() -> np.ndarray:
    """A large bright pentagon, which cannot be warped as a page."""
    image = np.zeros((300, 300, 3), dtype=np.uint8)
    angles = np.deg2rad(np.arange(5) * 72 - 90)
    points = np.stack([150 + 120 * np.cos(angles), 150 + 120 * np.sin(angles)], axis=1)
    cv2.fillPoly(image, [points.astype(np.int32)], (255, 255, 255))
    return image


@pytest.fixture
def encoded_photo(document_photo: np.ndarray) -> bytes:
    ok, buffer = cv2.imencode(".png", document_photo)
    assert ok
    return buffer.tobytes()


@pytest.fixture
def small_catalog() -> Catalog:
    """Two overlapping definitions to exercise catalog order."""
    return Catalog(
        [
            DocumentTypeDefinition(
                name="Primera",
                keywords=("alfa", "beta"),
                field_names=("Fecha",),
                category=DocumentCategory.INVOICE,
            ),
            DocumentTypeDefinition(
                name="Segunda Etiqueta",
                keywords=("alfa", "gamma"),
                field_names=("Lote",),
                category=DocumentCategory.WAREHOUSE_LABEL,
            ),
        ]
    )


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def config_dir(project_root: Path) -> Path:
    """Return the configs directory path."""
    return project_root / "configs"
