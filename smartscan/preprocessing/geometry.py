"""Document boundary detection and perspective correction.

Finds the dominant four-cornered contour in a photo, orders its corners
and warps the enclosed region onto an axis-aligned rectangle.
"""

from dataclasses import dataclass

import cv2
import numpy as np

from smartscan.utils.config import NormalizerConfig
from smartscan.utils.logger import get_logger

logger = get_logger(__name__)

Point = tuple[float, float]

NO_CONTOURS = "no_contours"
CONTOUR_TOO_SMALL = "contour_too_small"
NOT_QUADRILATERAL = "not_quadrilateral"
DEGENERATE_DIMENSIONS = "degenerate_dimensions"


@dataclass(frozen=True)
class Quadrilateral:
    """Four ordered corners of a detected document boundary."""

    top_left: Point
    top_right: Point
    bottom_right: Point
    bottom_left: Point

    def as_array(self) -> np.ndarray:
        """Return the corners as a ``(4, 2)`` float32 array in TL, TR, BR, BL order."""
        return np.array(
            [self.top_left, self.top_right, self.bottom_right, self.bottom_left],
            dtype=np.float32,
        )


def order_corners(points: np.ndarray | list[Point]) -> Quadrilateral:
    """Assign four points to top-left, top-right, bottom-right, bottom-left.

    Top-left has the smallest ``x + y``, bottom-right the largest,
    top-right the largest ``x - y`` and bottom-left the smallest. Points
    are sorted first so ties resolve the same way for any input order.

    Args:
        points: Four ``(x, y)`` points in any order.

    Returns:
        Ordered quadrilateral.

    Raises:
        ValueError: If the input does not hold exactly four points.
    """
    pts = np.asarray(points, dtype=np.float64).reshape(-1, 2)
    if len(pts) != 4:
        raise ValueError(f"Expected 4 points, got {len(pts)}")

    pts = pts[np.lexsort((pts[:, 1], pts[:, 0]))]
    sums = pts[:, 0] + pts[:, 1]
    diffs = pts[:, 0] - pts[:, 1]

    def _point(index: np.intp) -> Point:
        return float(pts[index, 0]), float(pts[index, 1])

    return Quadrilateral(
        top_left=_point(np.argmin(sums)),
        top_right=_point(np.argmax(diffs)),
        bottom_right=_point(np.argmax(sums)),
        bottom_left=_point(np.argmin(diffs)),
    )


def _distance(p1: Point, p2: Point) -> float:
    return float(np.hypot(p2[0] - p1[0], p2[1] - p1[1]))


def destination_size(quad: Quadrilateral) -> tuple[int, int]:
    """Compute the output rectangle size for a quadrilateral.

    Returns:
        ``(width, height)`` as the longer of each pair of opposite edges.
    """
    width = max(
        _distance(quad.top_left, quad.top_right),
        _distance(quad.bottom_right, quad.bottom_left),
    )
    height = max(
        _distance(quad.top_left, quad.bottom_left),
        _distance(quad.top_right, quad.bottom_right),
    )
    return int(width), int(height)


def detect_edges(gray: np.ndarray, config: NormalizerConfig) -> np.ndarray:
    """Blur, run Canny and dilate to close broken edge segments.

    Args:
        gray: Grayscale image.
        config: Normalizer settings with kernel sizes and Canny thresholds.

    Returns:
        Dilated binary edge map.
    """
    k = config.blur_kernel_size
    blurred = cv2.GaussianBlur(gray, (k, k), 0)
    edges = cv2.Canny(blurred, config.canny_low, config.canny_high)
    kernel = cv2.getStructuringElement(
        cv2.MORPH_RECT, (config.dilate_kernel_size, config.dilate_kernel_size)
    )
    return cv2.dilate(edges, kernel)


def approximate_polygon(contour: np.ndarray, epsilon_ratio: float) -> np.ndarray:
    """Douglas-Peucker approximation with epsilon relative to the perimeter.

    Returns:
        ``(n, 2)`` array of polygon vertices.
    """
    curve = contour.astype(np.float32)
    epsilon = epsilon_ratio * cv2.arcLength(curve, True)
    return cv2.approxPolyDP(curve, epsilon, True).reshape(-1, 2)


def find_document_quad(
    gray: np.ndarray, config: NormalizerConfig
) -> tuple[Quadrilateral | None, str | None]:
    """Locate the document boundary in a grayscale photo.

    Args:
        gray: Grayscale image.
        config: Normalizer settings.

    Returns:
        ``(quad, None)`` when a usable boundary exists, otherwise
        ``(None, reason)`` naming why the boundary was rejected.
    """
    edges = detect_edges(gray, config)
    contours, _ = cv2.findContours(
        edges, cv2.RETR_EXTERNAL, cv2.CHAIN_APPROX_SIMPLE
    )
    if not contours:
        logger.debug("No contours found on edge map")
        return None, NO_CONTOURS

    areas = [cv2.contourArea(c) for c in contours]
    best = int(np.argmax(areas))
    image_area = gray.shape[0] * gray.shape[1]
    if areas[best] < config.min_area_ratio * image_area:
        logger.debug(
            "Largest contour covers %.1f%% of the image",
            100.0 * areas[best] / image_area,
        )
        return None, CONTOUR_TOO_SMALL

    polygon = approximate_polygon(contours[best], config.approx_epsilon_ratio)
    if len(polygon) != 4:
        logger.debug("Contour approximated to %d vertices", len(polygon))
        return None, NOT_QUADRILATERAL

    return order_corners(polygon), None


def warp_to_rectangle(
    image: np.ndarray, quad: Quadrilateral, width: int, height: int
) -> np.ndarray:
    """Warp the quadrilateral region onto a ``width`` x ``height`` rectangle."""
    destination = np.array(
        [[0, 0], [width, 0], [width, height], [0, height]], dtype=np.float32
    )
    matrix = cv2.getPerspectiveTransform(quad.as_array(), destination)
    result = cv2.warpPerspective(image, matrix, (width, height))
    logger.debug("Warped document region to %dx%d", width, height)
    return result
