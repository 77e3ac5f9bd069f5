"""AI structuring provider backed by the Gemini REST API.

Sends the OCR text with a category-specific JSON skeleton to the
``generateContent`` endpoint and validates the reply into a structured
record.
"""

import os
import re
from typing import Protocol

import requests
from pydantic import ValidationError

from smartscan.classification.catalog import DocumentCategory, DocumentTypeDefinition
from smartscan.utils.config import StructuringConfig
from smartscan.utils.exceptions import ConfigurationError, StructuringError
from smartscan.utils.logger import get_logger

from .prompts import build_prompt, structuring_category
from .schemas import DeliveryNote, Invoice, StructuredRecord, WarehouseLabel

logger = get_logger(__name__)

_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")

RECORD_TYPES: dict[DocumentCategory, type[StructuredRecord]] = {
    DocumentCategory.INVOICE: Invoice,
    DocumentCategory.DELIVERY_NOTE: DeliveryNote,
    DocumentCategory.WAREHOUSE_LABEL: WarehouseLabel,
}


class StructuringProvider(Protocol):
    """Turns raw OCR text into a typed business document."""

    def structure(
        self,
        raw_text: str,
        category: DocumentCategory,
        schema_hint: str,
        definition: DocumentTypeDefinition | None = None,
    ) -> StructuredRecord: ...


def extract_json_object(reply: str) -> str:
    """Cut the outermost ``{...}`` span out of a model reply.

    Raises:
        StructuringError: If the reply holds no JSON object.
    """
    match = _JSON_OBJECT.search(reply)
    if match is None:
        raise StructuringError(
            "Could not find a JSON object in the model response",
            {"response": reply[:200]},
        )
    return match.group(0)


def parse_record(reply: str, category: DocumentCategory) -> StructuredRecord:
    """Validate a model reply into the record type of ``category``.

    Raises:
        StructuringError: If the JSON is invalid or misses required data.
    """
    record_type = RECORD_TYPES[structuring_category(category)]
    try:
        record = record_type.model_validate_json(extract_json_object(reply))
    except ValidationError as exc:
        raise StructuringError(
            f"Malformed {record_type.__name__} response",
            {"errors": exc.error_count()},
        ) from exc

    missing = record.missing_required()
    if missing:
        raise StructuringError(
            f"Response is missing required {record_type.__name__} data",
            {"missing": missing},
        )
    return record


class GeminiStructurer:
    """Structuring provider calling Gemini's ``generateContent`` endpoint.

    Args:
        config: Structuring configuration (credential, model, timeout).
        session: HTTP session; a new one is created when omitted.
    """

    def __init__(
        self,
        config: StructuringConfig | None = None,
        session: requests.Session | None = None,
    ) -> None:
        self.config = config or StructuringConfig()
        self.session = session or requests.Session()

    def _api_key(self) -> str:
        api_key = self.config.api_key or os.environ.get(self.config.api_key_env, "")
        if not api_key.strip():
            raise ConfigurationError(
                "Gemini API key is not configured",
                {"env": self.config.api_key_env},
            )
        return api_key

    def structure(
        self,
        raw_text: str,
        category: DocumentCategory,
        schema_hint: str,
        definition: DocumentTypeDefinition | None = None,
    ) -> StructuredRecord:
        """Ask the model for a structured record of the document.

        Args:
            raw_text: OCR text of the document.
            category: Document category; selects the record type.
            schema_hint: JSON skeleton the reply must follow.
            definition: Catalog definition of the specific type, if known.

        Returns:
            Validated structured record.

        Raises:
            ConfigurationError: If no API key is available.
            StructuringError: On HTTP failure, timeout or a bad reply.
        """
        api_key = self._api_key()
        prompt = build_prompt(raw_text, category, schema_hint, definition)
        url = f"{self.config.endpoint}/{self.config.model_name}:generateContent"
        payload = {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {"temperature": self.config.temperature},
        }

        logger.info(
            "Requesting %s structuring from %s (%d characters)",
            category,
            self.config.model_name,
            len(raw_text),
        )
        try:
            resp = self.session.post(
                url,
                params={"key": api_key},
                json=payload,
                timeout=self.config.timeout_s,
            )
            resp.raise_for_status()
            body = resp.json()
        except requests.Timeout as exc:
            raise StructuringError(
                "Structuring request timed out",
                {"timeout_s": self.config.timeout_s},
            ) from exc
        except ValueError as exc:
            raise StructuringError("Structuring response is not JSON") from exc
        except requests.RequestException as exc:
            raise StructuringError(f"Structuring request failed: {exc}") from exc

        try:
            reply = body["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError) as exc:
            raise StructuringError("Model returned no content") from exc

        logger.debug("Model reply: %s", reply[:100])
        return parse_record(reply, category)
