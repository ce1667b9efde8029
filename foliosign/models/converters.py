from __future__ import annotations

from typing import Any, Dict

from .document import Document


def document_from_row(row: Dict[str, Any]) -> Document:
    """
    Convert a raw metadata-store row into a Document.
    Empty strings in nullable columns (JSON backend) become None.
    """
    return Document(
        id=str(row.get("id", "")),
        name=row.get("name", ""),
        storage_key=row.get("storage_key", ""),
        owner_id=(row.get("owner_id") or None),
        visitor_id=(row.get("visitor_id") or None),
        version=int(row.get("version") or 0),
        created_at=row.get("created_at") or "",
        updated_at=row.get("updated_at") or "",
    )
