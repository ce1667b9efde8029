from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional


@dataclass
class Document:
    """
    Domain model for a document record.

    This is a pure data object that is easy to map:
      - from metadata store rows (dict[str, Any])
      - to Pydantic schemas (DocumentOut, etc.)
    """
    id: str
    name: str
    storage_key: str

    owner_id: Optional[str] = None         # None = guest document
    visitor_id: Optional[str] = None       # last signer seen by the viewer

    # Bumped on every successful sign (compare-and-set token)
    version: int = 0

    created_at: str = ""
    updated_at: str = ""

    @property
    def is_guest(self) -> bool:
        return not self.owner_id

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
