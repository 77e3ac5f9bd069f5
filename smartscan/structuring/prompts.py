"""Prompt construction for the AI structuring provider.

Holds the JSON skeleton requested for each document category and
builds the instruction text sent along with the OCR output.
"""

from smartscan.classification.catalog import DocumentCategory, DocumentTypeDefinition

INVOICE_SCHEMA = """{
  "invoiceNumber": "",
  "date": "",
  "dueDate": "",
  "supplier": {"name": "", "taxId": "", "address": "", "contactInfo": ""},
  "client": {"name": "", "taxId": "", "address": "", "contactInfo": ""},
  "items": [{"code": "", "description": "", "quantity": 0, "unitPrice": 0, "totalPrice": 0, "taxRate": 0}],
  "subtotal": 0,
  "taxAmount": 0,
  "totalAmount": 0,
  "paymentTerms": "",
  "notes": "",
  "barcode": ""
}"""

DELIVERY_NOTE_SCHEMA = """{
  "deliveryNoteNumber": "",
  "date": "",
  "origin": {"name": "", "address": "", "contactPerson": "", "contactPhone": ""},
  "destination": {"name": "", "address": "", "contactPerson": "", "contactPhone": ""},
  "carrier": "",
  "items": [{"code": "", "description": "", "quantity": 0, "packageType": "", "weight": 0}],
  "totalPackages": 0,
  "totalWeight": 0,
  "observations": ""
}"""

WAREHOUSE_LABEL_SCHEMA = """{
  "labelId": "",
  "productCode": "",
  "productName": "",
  "quantity": 0,
  "batchNumber": "",
  "expirationDate": "",
  "location": "",
  "barcode": ""
}"""

SCHEMA_HINTS: dict[DocumentCategory, str] = {
    DocumentCategory.INVOICE: INVOICE_SCHEMA,
    DocumentCategory.DELIVERY_NOTE: DELIVERY_NOTE_SCHEMA,
    DocumentCategory.WAREHOUSE_LABEL: WAREHOUSE_LABEL_SCHEMA,
}


def structuring_category(category: DocumentCategory) -> DocumentCategory:
    """Category whose schema is requested; unknown documents are tried as invoices."""
    if category is DocumentCategory.UNKNOWN:
        return DocumentCategory.INVOICE
    return category


def schema_hint_for(category: DocumentCategory) -> str:
    return SCHEMA_HINTS[structuring_category(category)]


def build_prompt(
    text: str,
    category: DocumentCategory,
    schema_hint: str,
    definition: DocumentTypeDefinition | None = None,
) -> str:
    """Build the structuring instruction for one document.

    Args:
        text: OCR text of the document.
        category: Category the schema was chosen for.
        schema_hint: JSON skeleton the reply must follow.
        definition: Catalog definition of the specific type, when known;
            its field names are listed as extra hints.

    Returns:
        Prompt text.
    """
    kind = definition.name if definition else category.display_name
    lines = [
        f'Analiza el siguiente texto OCR de un documento tipo "{kind}" '
        "y extrae los datos estructurados.",
        "",
        "Texto OCR:",
        text,
        "",
    ]
    if definition and definition.field_names:
        lines += [f"Campos relevantes: {', '.join(definition.field_names)}", ""]
    lines += [
        "Formatea la respuesta como JSON estrictamente con la siguiente estructura:",
        schema_hint,
        "",
        "Si no puedes identificar algún campo, déjalo vacío o en 0 según corresponda.",
        "Responde únicamente con el JSON, sin texto adicional.",
    ]
    return "\n".join(lines)
