"""Keyword-based document classification.

Scores recognised text against the catalog, then falls back to generic
invoice, delivery-note and label markers.
"""

from dataclasses import dataclass

from smartscan.utils.logger import get_logger

from .catalog import DEFAULT_CATALOG, Catalog, DocumentCategory

logger = get_logger(__name__)

UNKNOWN_LABEL = "Documento Desconocido"

# (category, label, any-of markers, co-occurring marker pairs)
_GENERIC_RULES: list[tuple[DocumentCategory, str, tuple[str, ...], tuple[tuple[str, tuple[str, ...]], ...]]] = [
    (
        DocumentCategory.INVOICE,
        "Factura",
        ("factura", "invoice", "recibo", "receipt"),
        (("total", ("iva", "impuesto")),),
    ),
    (
        DocumentCategory.DELIVERY_NOTE,
        "Albarán",
        ("albarán", "delivery note", "nota de entrega", "guía de despacho"),
        (("entrega", ("mercancía",)),),
    ),
    (
        DocumentCategory.WAREHOUSE_LABEL,
        "Etiqueta",
        ("ref:", "lote:", "peso:", "etiqueta"),
        (("producto", ("código",)),),
    ),
]


@dataclass(frozen=True)
class ClassificationResult:
    """Category and specific type label assigned to a document."""

    category: DocumentCategory
    specific_type: str


class DocumentClassifier:
    """Assigns a category and specific type to recognised text.

    Args:
        catalog: Document type definitions, in priority order.
    """

    def __init__(self, catalog: Catalog = DEFAULT_CATALOG) -> None:
        self.catalog = catalog

    def classify(self, text: str) -> ClassificationResult:
        """Classify OCR text.

        A catalog definition matches when at least half of its keywords
        (rounded down) occur in the text; the first match in catalog
        order wins.

        Args:
            text: Recognised document text.

        Returns:
            Classification result; ``UNKNOWN`` when nothing matches.
        """
        lower_text = text.lower()

        for definition in self.catalog:
            matches = sum(1 for kw in definition.keywords if kw.lower() in lower_text)
            if matches >= len(definition.keywords) // 2:
                logger.debug(
                    "Matched '%s' with %d/%d keywords",
                    definition.name,
                    matches,
                    len(definition.keywords),
                )
                return ClassificationResult(definition.category, definition.name)

        for category, label, markers, pairs in _GENERIC_RULES:
            if any(m in lower_text for m in markers) or any(
                first in lower_text and any(s in lower_text for s in seconds)
                for first, seconds in pairs
            ):
                logger.debug("Generic markers classified document as %s", category)
                return ClassificationResult(category, label)

        logger.debug("Could not determine document type")
        return ClassificationResult(DocumentCategory.UNKNOWN, UNKNOWN_LABEL)
