"""Tesseract OCR provider.

Reads text from normalized document images, or straight from an image
file when normalization could not produce a usable buffer.
"""

from pathlib import Path
from typing import Protocol

import numpy as np
import pytesseract
from PIL import Image
from pytesseract import TesseractError, TesseractNotFoundError

from smartscan.utils.exceptions import OCRError
from smartscan.utils.logger import get_logger

logger = get_logger(__name__)


class OCRProvider(Protocol):
    """Turns an image into recognised text."""

    def extract_text(self, image: np.ndarray) -> str: ...

    def extract_text_from_path(self, path: Path) -> str: ...


class TesseractEngine:
    """Wrapper around Tesseract OCR for document text extraction.

    Args:
        tesseract_cmd: Path to the Tesseract executable.
            If ``None``, uses the system default.
        default_lang: OCR language code.
        psm: Tesseract page segmentation mode.
        timeout_s: Seconds before a Tesseract call is aborted; 0 disables.
    """

    def __init__(
        self,
        tesseract_cmd: str | None = None,
        default_lang: str = "spa",
        psm: int = 3,
        timeout_s: float = 0,
    ) -> None:
        if tesseract_cmd:
            pytesseract.pytesseract.tesseract_cmd = tesseract_cmd
        self.default_lang = default_lang
        self.psm = psm
        self.timeout_s = timeout_s

    def extract_text(self, image: np.ndarray) -> str:
        """Extract text from an image buffer.

        Args:
            image: Grayscale or RGB image as a numpy array.

        Returns:
            Recognised text (possibly empty).

        Raises:
            OCRError: If Tesseract is missing, fails or times out.
        """
        return self._recognise(Image.fromarray(image))

    def extract_text_from_path(self, path: Path) -> str:
        """Extract text directly from an image file.

        Raises:
            OCRError: If the file cannot be opened or Tesseract fails.
        """
        path = Path(path)
        try:
            with Image.open(path) as pil_image:
                pil_image.load()
                return self._recognise(pil_image)
        except OSError as exc:
            raise OCRError(f"Could not open image for OCR: {exc}", {"path": str(path)}) from exc

    def _recognise(self, pil_image: Image.Image) -> str:
        try:
            text = pytesseract.image_to_string(
                pil_image,
                lang=self.default_lang,
                config=f"--psm {self.psm}",
                timeout=self.timeout_s,
            )
        except TesseractNotFoundError as exc:
            raise OCRError("Tesseract executable not found") from exc
        except TesseractError as exc:
            raise OCRError(f"Tesseract failed: {exc}") from exc
        except RuntimeError as exc:
            raise OCRError(
                f"Tesseract did not finish: {exc}", {"timeout_s": self.timeout_s}
            ) from exc

        logger.info("OCR extracted %d characters", len(text))
        return text
