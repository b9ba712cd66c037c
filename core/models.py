"""Pydantic models for the store snapshot, markers, GC reports and API bodies"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field, model_validator


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class GcMode(str, Enum):
    interactive = "interactive"
    automatic = "automatic"


class ReviewState(str, Enum):
    idle = "idle"
    reviewing = "reviewing"


class ReviewDecision(str, Enum):
    skip = "skip"
    delete = "delete"


# ---------------------------------------------------------------------------
# Store snapshot
# ---------------------------------------------------------------------------

class StoreSnapshot(BaseModel):
    """Immutable in-memory view of the persisted identifier -> payload map."""

    entries: dict[str, str] = Field(default_factory=dict)

    model_config = {"frozen": True}

    def __len__(self) -> int:
        return len(self.entries)

    def __contains__(self, identifier: object) -> bool:
        return identifier in self.entries

    def keys(self) -> set[str]:
        return set(self.entries)

    def get(self, identifier: str) -> str | None:
        return self.entries.get(identifier)

    # Linear scan over values; one entry per distinct payload is an invariant
    def find_identifier(self, payload: str) -> str | None:
        for identifier, value in self.entries.items():
            if value == payload:
                return identifier
        return None


# ---------------------------------------------------------------------------
# Document markers
# ---------------------------------------------------------------------------

class MarkerFields(BaseModel):
    name: str
    id: str | None = None


class DocumentReference(BaseModel):
    document_path: str
    display_name: str
    identifier: str


# ---------------------------------------------------------------------------
# Garbage collection
# ---------------------------------------------------------------------------

class ReviewItem(BaseModel):
    id: str
    payload: str | None = None


class ReviewRecord(BaseModel):
    id: str
    decision: ReviewDecision


class GcReport(BaseModel):
    mode: GcMode
    examined: int = Field(..., ge=0)
    live: int = Field(..., ge=0)
    orphans: list[str] = Field(default_factory=list)
    deleted: list[str] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# API request/response models
# ---------------------------------------------------------------------------

# Request body for POST /images/payload
class PayloadCreateRequest(BaseModel):
    payload: str | None = None
    html: str | None = None
    destination: str
    name: str | None = None
    multi: bool = False
    # Text of the line at the insertion point; a non-empty line gets the marker wrapped in newlines
    current_line: str | None = None

    @model_validator(mode="after")
    def validate_source(self) -> PayloadCreateRequest:
        if (self.payload is None) == (self.html is None):
            raise ValueError("exactly one of 'payload' or 'html' is required")
        return self


# Request body for POST /images/import; path is relative to the vault root
class ImageImportRequest(BaseModel):
    path: str = Field(..., min_length=1)
    destination: str
    name: str | None = None
    multi: bool = False
    current_line: str | None = None


class ImageCreateResponse(BaseModel):
    id: str
    name: str
    marker: str


class ImageResponse(BaseModel):
    id: str
    payload: str


class DeleteResponse(BaseModel):
    id: str
    deleted: bool


# Request body for POST /images/markers/resolve: the text of one image-base64 block
class MarkerResolveRequest(BaseModel):
    source: str


class MarkerResolveResponse(BaseModel):
    name: str
    id: str
    payload: str


# Request body for POST /gc/orphans and POST /gc/reviews; omitted documents means "scan the vault"
class OrphanScanRequest(BaseModel):
    documents: dict[str, str] | None = None


class OrphanScanResponse(BaseModel):
    orphans: list[str]
    live: int


class ReviewStatus(BaseModel):
    session_id: str
    state: ReviewState
    index: int
    total: int
    current: ReviewItem | None = None
    decisions: list[ReviewRecord] = Field(default_factory=list)
