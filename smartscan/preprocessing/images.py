"""Image containers passed between the normalizer and OCR.

Decodes raw file bytes into pixel buffers and rejects anything that
cannot be interpreted as an image.
"""

from dataclasses import dataclass
from pathlib import Path

import cv2
import numpy as np

from smartscan.utils.exceptions import ImageDecodeError
from smartscan.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class RawImage:
    """Decoded photo of a document, consumed once by the normalizer."""

    pixels: np.ndarray
    source_path: Path | None = None

    def __post_init__(self) -> None:
        if self.pixels is None or self.pixels.size == 0:
            raise ImageDecodeError("Image contains no pixel data")
        if self.pixels.ndim not in (2, 3):
            raise ImageDecodeError(
                "Unsupported pixel buffer shape",
                {"shape": tuple(self.pixels.shape)},
            )
        if self.channels not in (1, 3, 4):
            raise ImageDecodeError(
                "Unsupported number of channels",
                {"shape": tuple(self.pixels.shape)},
            )
        if self.pixels.dtype != np.uint8:
            raise ImageDecodeError(
                "Pixel data must be 8-bit", {"dtype": str(self.pixels.dtype)}
            )
        self.pixels.setflags(write=False)

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def channels(self) -> int:
        return 1 if self.pixels.ndim == 2 else int(self.pixels.shape[2])

    @classmethod
    def from_array(cls, pixels: np.ndarray) -> "RawImage":
        """Copy an 8-bit pixel array (grayscale, BGR or BGRA).

        Raises:
            ImageDecodeError: If the array is not 8-bit or has an
                unsupported shape.
        """
        return cls(pixels=np.ascontiguousarray(pixels).copy())

    @classmethod
    def from_bytes(cls, data: bytes) -> "RawImage":
        """Decode encoded image bytes (PNG, JPEG, TIFF, ...).

        Args:
            data: Encoded file contents.

        Returns:
            Decoded raw image.

        Raises:
            ImageDecodeError: If the bytes are not a decodable image.
        """
        if not data:
            raise ImageDecodeError("Empty image data")
        buffer = np.frombuffer(data, dtype=np.uint8)
        pixels = cv2.imdecode(buffer, cv2.IMREAD_COLOR)
        if pixels is None:
            raise ImageDecodeError(
                "Could not decode image data", {"size_bytes": len(data)}
            )
        logger.debug("Decoded image %dx%d", pixels.shape[1], pixels.shape[0])
        return cls(pixels=pixels)

    @classmethod
    def from_path(cls, path: Path) -> "RawImage":
        """Read and decode an image file.

        Raises:
            ImageDecodeError: If the file is missing or not an image.
        """
        path = Path(path)
        try:
            data = path.read_bytes()
        except OSError as exc:
            raise ImageDecodeError(
                f"Could not read image file: {exc}", {"path": str(path)}
            ) from exc
        image = cls.from_bytes(data)
        return cls(pixels=image.pixels, source_path=path)
