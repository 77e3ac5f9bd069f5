"""Catalog of known document types.

Each definition lists the keywords that identify a document type, the
fields worth extracting from it and its coarse category. The catalog is
built once and never mutated, so concurrent readers need no locking.
"""

import json
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path

from pydantic import BaseModel, TypeAdapter, ValidationError

from smartscan.utils.exceptions import CatalogError
from smartscan.utils.logger import get_logger

logger = get_logger(__name__)


class DocumentCategory(StrEnum):
    """Coarse document classes."""

    INVOICE = "invoice"
    DELIVERY_NOTE = "delivery_note"
    WAREHOUSE_LABEL = "warehouse_label"
    UNKNOWN = "unknown"

    @property
    def display_name(self) -> str:
        return _DISPLAY_NAMES[self]


_DISPLAY_NAMES = {
    DocumentCategory.INVOICE: "Factura",
    DocumentCategory.DELIVERY_NOTE: "Albarán",
    DocumentCategory.WAREHOUSE_LABEL: "Etiqueta",
    DocumentCategory.UNKNOWN: "Documento desconocido",
}


@dataclass(frozen=True)
class DocumentTypeDefinition:
    """A specific document type recognised by keyword matching."""

    name: str
    keywords: tuple[str, ...]
    field_names: tuple[str, ...]
    category: DocumentCategory


class CatalogEntry(BaseModel):
    """Persisted shape of one catalog entry."""

    type: str
    keywords: list[str]
    fields: list[str]


_ENTRIES = TypeAdapter(list[CatalogEntry])


def category_for_name(name: str) -> DocumentCategory:
    """Infer the category of a document type from its name."""
    if "Guía" in name or "Despacho" in name:
        return DocumentCategory.DELIVERY_NOTE
    if "Etiqueta" in name:
        return DocumentCategory.WAREHOUSE_LABEL
    return DocumentCategory.INVOICE


def _definition(
    name: str, keywords: Iterable[str], fields: Iterable[str]
) -> DocumentTypeDefinition:
    return DocumentTypeDefinition(
        name=name,
        keywords=tuple(keywords),
        field_names=tuple(fields),
        category=category_for_name(name),
    )


class Catalog:
    """Immutable, ordered collection of document type definitions.

    Order matters: classification returns the first definition that
    reaches its keyword threshold.

    Args:
        definitions: Definitions in priority order.
    """

    __slots__ = ("_definitions", "_by_name")

    def __init__(self, definitions: Iterable[DocumentTypeDefinition]) -> None:
        defs = tuple(definitions)
        by_name: dict[str, DocumentTypeDefinition] = {}
        for definition in defs:
            by_name.setdefault(definition.name.casefold(), definition)
        object.__setattr__(self, "_definitions", defs)
        object.__setattr__(self, "_by_name", by_name)

    def __setattr__(self, name: str, value: object) -> None:
        raise AttributeError("Catalog is read-only")

    def __iter__(self) -> Iterator[DocumentTypeDefinition]:
        return iter(self._definitions)

    def __len__(self) -> int:
        return len(self._definitions)

    def __getitem__(self, index: int) -> DocumentTypeDefinition:
        return self._definitions[index]

    def find(self, name: str) -> DocumentTypeDefinition | None:
        """Look up a definition by name, ignoring case."""
        return self._by_name.get(name.casefold())

    def to_json(self, indent: int = 2) -> str:
        """Serialize the catalog to its JSON array format.

        The category is not persisted; it is re-derived from the name.
        """
        entries = [
            {"type": d.name, "keywords": list(d.keywords), "fields": list(d.field_names)}
            for d in self._definitions
        ]
        return json.dumps(entries, indent=indent, ensure_ascii=False)

    @classmethod
    def from_json(cls, data: str | bytes) -> "Catalog":
        """Build a catalog from its JSON array format.

        Raises:
            CatalogError: If the JSON is malformed or holds no entries.
        """
        try:
            entries = _ENTRIES.validate_json(data)
        except ValidationError as exc:
            raise CatalogError(
                "Invalid document type catalog",
                {"errors": exc.error_count()},
            ) from exc
        if not entries:
            raise CatalogError("Document type catalog is empty")

        catalog = cls(_definition(e.type, e.keywords, e.fields) for e in entries)
        logger.info("Loaded %d document type definitions", len(catalog))
        return catalog


DEFAULT_CATALOG = Catalog(
    [
        _definition(
            "Factura Electrónica",
            ["factura", "rut", "razón social", "neto", "iva", "total"],
            ["RUT Emisor", "Razón Social", "Fecha", "Folio", "Total Neto", "IVA", "Total"],
        ),
        _definition(
            "Boleta",
            ["boleta", "total", "neto", "rut", "cliente"],
            ["RUT", "Fecha", "Total Neto", "IVA", "Total"],
        ),
        _definition(
            "Guía de Despacho",
            ["guía de despacho", "remitente", "destinatario", "vehículo"],
            ["Remitente", "Destinatario", "Patente", "Folio", "Fecha", "Productos"],
        ),
        _definition(
            "Nota de Crédito",
            ["nota de crédito", "devolución", "referencia", "factura"],
            ["Fecha", "Monto", "Referencia Factura", "RUT", "Motivo"],
        ),
        _definition(
            "Cotización",
            ["cotización", "precio", "validez", "producto", "total"],
            ["RUT", "Cliente", "Fecha", "Detalle Productos", "Subtotal", "IVA", "Total"],
        ),
        _definition(
            "Orden de Compra",
            ["orden de compra", "proveedor", "cantidad", "número orden"],
            ["Fecha", "Número de Orden", "Proveedor", "RUT", "Monto", "Productos"],
        ),
        _definition(
            "Recibo / Comprobante",
            ["recibo", "comprobante", "cancelado", "efectivo"],
            ["Fecha", "Monto", "Pagador", "Motivo"],
        ),
        _definition(
            "Liquidación de Sueldo",
            ["liquidación", "renta", "imposiciones", "afp", "salud"],
            ["Nombre", "RUT", "Fecha", "Sueldo Base", "Descuentos", "Líquido a Pagar"],
        ),
        _definition(
            "Cartola Bancaria",
            ["cartola", "saldo", "abono", "cargo", "movimientos"],
            ["Nombre", "RUT", "Banco", "Número de Cuenta", "Fecha", "Saldo", "Movimientos"],
        ),
        _definition(
            "Cheque",
            ["cheque", "banco", "orden de", "monto", "fecha"],
            ["Banco", "Fecha", "Monto", "A nombre de"],
        ),
        _definition(
            "Etiqueta de Bodega",
            ["producto", "lote", "peso", "ref", "código"],
            ["Producto", "Código", "Lote", "Fecha", "Peso"],
        ),
    ]
)


def load_catalog(path: Path | None = None) -> Catalog:
    """Load a catalog from a JSON file.

    Args:
        path: JSON catalog file. ``None`` or a missing file yields the
            built-in catalog.

    Returns:
        Loaded catalog.

    Raises:
        CatalogError: If the file exists but is not a valid catalog.
    """
    if path is None:
        return DEFAULT_CATALOG
    path = Path(path)
    if not path.exists():
        logger.debug("No catalog file at %s, using built-in definitions", path)
        return DEFAULT_CATALOG
    logger.info("Loading document type catalog from %s", path)
    return Catalog.from_json(path.read_bytes())
