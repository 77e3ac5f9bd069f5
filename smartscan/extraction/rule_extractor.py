"""Rule-based field extraction using regex patterns.

Extracts tax identifiers (RUT), dates, amounts, VAT, document numbers,
entity names and generic labelled values from OCR text. Field names are
dispatched to extractors through a lookup table; names without a
dedicated extractor use the generic labelled-value rule.
"""

import re
from collections.abc import Callable, Mapping

from smartscan.classification.catalog import DEFAULT_CATALOG, Catalog
from smartscan.utils.logger import get_logger

logger = get_logger(__name__)

Extractor = Callable[[str, str], str | None]

_TAX_ID_PATTERN = re.compile(r"\b\d{1,2}(?:\.\d{3}){2}-[\dkK]\b|\b\d{7,8}-[\dkK]\b")

_DATE_PATTERNS: list[re.Pattern[str]] = [
    re.compile(r"\b(\d{1,2})/(\d{1,2})/(\d{2,4})\b"),
    re.compile(r"\b(\d{1,2})-(\d{1,2})-(\d{2,4})\b"),
    re.compile(r"\b(\d{1,2})\.(\d{1,2})\.(\d{2,4})\b"),
    re.compile(r"\b(\d{1,2}) de ([a-zA-ZáéíóúÁÉÍÓÚ]+),? (\d{4})\b"),
]
_LABELLED_DATE_PATTERN = re.compile(
    r"fecha:?\s*([0-9]{1,2}[/.-][0-9]{1,2}[/.-][0-9]{2,4})", re.IGNORECASE
)

# Label placeholder is filled with the escaped field name.
_AMOUNT_TEMPLATES: list[str] = [
    r"{label}:?\s*\$?\s*([0-9.,]+)",
    r"{label}:?\s*\$?\s*(\d{{1,3}}(?:\.\d{{3}})*,\d{{2}})",
    r"{label}:?\s*\$?\s*(\d{{1,3}}(?:,\d{{3}})*\.\d{{2}})",
    r"{label}:?\s*\$?\s*(\d+)",
]
_CURRENCY_PATTERN = re.compile(r"\$\s*([0-9.,]+)")

_PERCENT = r"(?:\s*\d{1,2}(?:[.,]\d+)?\s*%)?"
_TAX_AMOUNT_PATTERNS: list[re.Pattern[str]] = [
    re.compile(rf"\bIVA{_PERCENT}:?\s*\$?\s*([0-9.,]+)", re.IGNORECASE),
    re.compile(rf"\bI\.V\.A\.?{_PERCENT}:?\s*\$?\s*([0-9.,]+)", re.IGNORECASE),
]

_DOCUMENT_NUMBER_PATTERNS: list[re.Pattern[str]] = [
    re.compile(r"Folio:?\s*([0-9]+)", re.IGNORECASE),
    re.compile(r"N[°º]\s*:?\s*([0-9]+)", re.IGNORECASE),
    re.compile(r"Numero:?\s*([0-9]+)", re.IGNORECASE),
    re.compile(r"Número:?\s*([0-9]+)", re.IGNORECASE),
    re.compile(r"Orden:?\s*([0-9]+)", re.IGNORECASE),
    re.compile(r"N[°º]\s*Orden:?\s*([0-9]+)", re.IGNORECASE),
]

# A value ends at a line break, a run of two or more spaces or end of text.
_VALUE_END = r"(?=\r|\n|\s{2,}|\Z)"
_ENTITY_WORD = r"[A-Za-zÁÉÍÓÚáéíóúÑñ0-9.]+"
_GENERIC_WORD = r"[\w.,]+"


def _label(field_name: str) -> str:
    return re.escape(field_name)


def _labelled_value(field_name: str, word: str) -> str:
    """Pattern for single-space separated ``word`` runs after a label."""
    return rf"{_label(field_name)}:?\s*({word}(?:[ \t]{word})*){_VALUE_END}"


def extract_tax_id(text: str, field_name: str = "RUT") -> str | None:
    """Find a RUT such as ``12.345.678-9`` or ``12345678-K``."""
    match = _TAX_ID_PATTERN.search(text)
    return match.group(0) if match else None


def extract_date(text: str, field_name: str = "Fecha") -> str | None:
    """Find the first numeric or worded date in the text."""
    for pattern in _DATE_PATTERNS:
        match = pattern.search(text)
        if match:
            return match.group(0)
    match = _LABELLED_DATE_PATTERN.search(text)
    return match.group(1) if match else None


def extract_amount(text: str, field_name: str = "Total") -> str | None:
    """Find the amount following ``field_name``.

    Falls back to the first ``$``-prefixed number anywhere in the text.
    """
    label = _label(field_name)
    for template in _AMOUNT_TEMPLATES:
        match = re.search(template.format(label=label), text, re.IGNORECASE)
        if match:
            return match.group(1)
    match = _CURRENCY_PATTERN.search(text)
    return match.group(1) if match else None


def extract_tax_amount(text: str, field_name: str = "IVA") -> str | None:
    """Find the VAT amount, e.g. ``IVA 19%: 1.900`` or ``I.V.A: 1.900``."""
    for pattern in _TAX_AMOUNT_PATTERNS:
        match = pattern.search(text)
        if match:
            return match.group(1)
    return None


def extract_document_number(text: str, field_name: str = "Folio") -> str | None:
    """Find a folio, order or document number."""
    for pattern in _DOCUMENT_NUMBER_PATTERNS:
        match = pattern.search(text)
        if match:
            return match.group(1)
    return None


def extract_entity_name(text: str, field_name: str) -> str | None:
    """Find the company or person name following ``field_name``."""
    pattern = _labelled_value(field_name, _ENTITY_WORD)
    match = re.search(pattern, text, re.IGNORECASE)
    if not match:
        return None
    return re.sub(r"\s+", " ", match.group(1).strip()) or None


def extract_generic(text: str, field_name: str) -> str | None:
    """Find the value written after ``field_name``, as in ``Patente: AB1234``."""
    pattern = _labelled_value(field_name, _GENERIC_WORD)
    match = re.search(pattern, text, re.IGNORECASE)
    if not match:
        return None
    return match.group(1).strip() or None


FIELD_EXTRACTORS: dict[str, Extractor] = {
    "RUT": extract_tax_id,
    "RUT Emisor": extract_tax_id,
    "Fecha": extract_date,
    "Total": extract_amount,
    "Monto": extract_amount,
    "Total Neto": extract_amount,
    "IVA": extract_tax_amount,
    "Folio": extract_document_number,
    "Número de Orden": extract_document_number,
    "Razón Social": extract_entity_name,
    "Cliente": extract_entity_name,
    "Proveedor": extract_entity_name,
}


class FieldExtractor:
    """Extracts the fields a catalog definition declares.

    Args:
        catalog: Document type definitions used to look up field names.
        extractors: Extra or replacement extractors keyed by field name.
    """

    def __init__(
        self,
        catalog: Catalog = DEFAULT_CATALOG,
        extractors: Mapping[str, Extractor] | None = None,
    ) -> None:
        self.catalog = catalog
        self.extractors: dict[str, Extractor] = {**FIELD_EXTRACTORS, **(extractors or {})}

    def extractor_for(self, field_name: str) -> Extractor:
        """Return the extractor for a field, or the generic one."""
        return self.extractors.get(field_name, extract_generic)

    def extract_fields(self, text: str, specific_type: str) -> dict[str, str]:
        """Extract the fields declared for ``specific_type``.

        Args:
            text: OCR text to search.
            specific_type: Catalog definition name (case-insensitive).

        Returns:
            Field name to value mapping in declaration order. Unknown
            types give an empty mapping and unmatched fields are omitted.
        """
        definition = self.catalog.find(specific_type)
        if definition is None:
            logger.debug("No catalog definition for type '%s'", specific_type)
            return {}

        fields: dict[str, str] = {}
        for field_name in definition.field_names:
            value = self.extractor_for(field_name)(text, field_name)
            if value:
                fields[field_name] = value

        logger.info(
            "Extracted %d/%d fields for '%s'",
            len(fields),
            len(definition.field_names),
            definition.name,
        )
        return fields
