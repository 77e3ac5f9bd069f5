"""Geometric and photometric normalization of document photos.

Detects the document boundary, corrects perspective when a clean
quadrilateral is found and binarizes the result for OCR. Every
geometric failure degrades to basic enhancement of the source photo.
"""

from dataclasses import dataclass

import cv2
import numpy as np

from smartscan.utils.config import NormalizerConfig
from smartscan.utils.logger import get_logger

from .binarize import enhance_basic, to_gray
from .geometry import (
    DEGENERATE_DIMENSIONS,
    destination_size,
    find_document_quad,
    warp_to_rectangle,
)
from .images import RawImage

logger = get_logger(__name__)

GEOMETRY_ERROR = "geometry_error"


@dataclass
class QualityMetrics:
    """Before/after image quality measurements."""

    sharpness_before: float
    sharpness_after: float
    contrast_before: float
    contrast_after: float


@dataclass(frozen=True)
class NormalizedImage:
    """Flattened, binarized scan ready for OCR.

    Attributes:
        pixels: Grayscale binary image.
        perspective_corrected: Whether a perspective warp was applied.
        fallback_reason: Why the warp was skipped, or ``None``.
        metrics: Sharpness and contrast before and after normalization.
    """

    pixels: np.ndarray
    perspective_corrected: bool
    fallback_reason: str | None
    metrics: QualityMetrics

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])


def calculate_sharpness(image: np.ndarray) -> float:
    """Calculate image sharpness using Laplacian variance.

    Args:
        image: Input image (BGR or grayscale).

    Returns:
        Sharpness score (higher means sharper).
    """
    return float(cv2.Laplacian(to_gray(image), cv2.CV_64F).var())


def calculate_contrast(image: np.ndarray) -> float:
    """Calculate image contrast as the standard deviation of pixel intensities.

    Args:
        image: Input image (BGR or grayscale).

    Returns:
        Contrast score (higher means more contrast).
    """
    return float(to_gray(image).std())


class ImageNormalizer:
    """Turns a photographed document into a flat, binarized scan.

    Stateless apart from its configuration, so one instance can serve
    concurrent callers.

    Args:
        config: Normalizer configuration. Defaults are used when omitted.
    """

    def __init__(self, config: NormalizerConfig | None = None) -> None:
        self.config = config or NormalizerConfig()

    def normalize(self, raw: RawImage) -> NormalizedImage:
        """Normalize a raw photo.

        Args:
            raw: Decoded document photo.

        Returns:
            Normalized image. Always produced for decodable input.
        """
        metrics = QualityMetrics(
            sharpness_before=calculate_sharpness(raw.pixels),
            contrast_before=calculate_contrast(raw.pixels),
            sharpness_after=0.0,
            contrast_after=0.0,
        )

        corrected, reason = self._correct_perspective(raw.pixels)
        if corrected is None:
            logger.info("No usable document boundary (%s), applying basic enhancement", reason)
            result = enhance_basic(to_gray(raw.pixels), self.config)
        else:
            result = enhance_basic(corrected, self.config)

        metrics.sharpness_after = calculate_sharpness(result)
        metrics.contrast_after = calculate_contrast(result)

        logger.info(
            "Normalization complete: %dx%d, warped=%s, sharpness %.1f->%.1f",
            result.shape[1],
            result.shape[0],
            corrected is not None,
            metrics.sharpness_before,
            metrics.sharpness_after,
        )
        return NormalizedImage(
            pixels=result,
            perspective_corrected=corrected is not None,
            fallback_reason=reason,
            metrics=metrics,
        )

    def _correct_perspective(
        self, pixels: np.ndarray
    ) -> tuple[np.ndarray | None, str | None]:
        """Detect the document quadrilateral and warp it flat.

        Intermediate grayscale and edge buffers live only inside this
        call and the helpers it invokes.

        Returns:
            ``(warped, None)`` on success, otherwise ``(None, reason)``.
        """
        try:
            quad, reason = find_document_quad(to_gray(pixels), self.config)
            if quad is None:
                return None, reason

            width, height = destination_size(quad)
            limit = self.config.max_dimension
            if width <= 0 or height <= 0 or width > limit or height > limit:
                logger.warning(
                    "Rejected destination size %dx%d (limit %d)", width, height, limit
                )
                return None, DEGENERATE_DIMENSIONS

            return warp_to_rectangle(pixels, quad, width, height), None
        except cv2.error as exc:
            logger.warning("Perspective correction failed: %s", exc)
            return None, GEOMETRY_ERROR
