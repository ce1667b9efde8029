"""
Pydantic schemas for signature capture and placement.
"""
from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


class SignDocumentRequest(BaseModel):
    """
    Placement request.

    x, y are the centre of the stamp relative to the top-left of the page,
    already divided by the viewer zoom. width, height are the stamp size in
    the same space.
    """
    document_id: str = Field(..., min_length=1, alias="documentId")
    signature_data_uri: str = Field(..., min_length=1, alias="signatureDataUri", description="data:image/...;base64,... or bare base64")
    visitor_id: Optional[str] = Field(None, alias="visitorId")
    page: int = Field(1, description="1-based page number")
    x: float
    y: float
    width: float
    height: float

    model_config = ConfigDict(populate_by_name=True)


class SignDocumentOut(BaseModel):
    success: bool = True


class TypedSignatureRequest(BaseModel):
    text: str = ""
    color: str = Field("#000000", description="Hex colour, e.g. #0000FF")


class DrawnSignatureRequest(BaseModel):
    """Strokes replayed onto an off-screen pad; each stroke is a list of [x, y]."""
    strokes: List[List[Tuple[float, float]]] = Field(default_factory=list)
    width: int = Field(600, gt=0, le=4000)
    height: int = Field(200, gt=0, le=4000)
    color: str = "#000000"
    pen_width: int = Field(2, gt=0, le=50, alias="penWidth")

    model_config = ConfigDict(populate_by_name=True)


class SignatureOut(BaseModel):
    data_uri: str = Field(..., serialization_alias="dataUri")
    width: int
    height: int
    format: str
