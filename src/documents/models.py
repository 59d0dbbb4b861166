# src/documents/models.py - v1
"""Document domain models: Document, workflow/step/history records,
category-tagged metadata and BackupMetadata.

Category-specific metadata is a tagged variant: a shared base record plus
one extension per category, discriminated by ``category`` and validated
when a document crosses the store boundary.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator


_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Category(str, Enum):
    CIRCULARS = "circulars"
    GUIDELINES = "guidelines"
    CONSULTATIONS = "consultations"
    NEWS = "news"


class WorkflowStatus(str, Enum):
    PENDING = "PENDING"
    DISCOVERED = "DISCOVERED"
    DOWNLOADING = "DOWNLOADING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    RETRYING = "RETRYING"
    RE_RUNNING = "RE_RUNNING"
    STALE = "STALE"


class StepStatus(str, Enum):
    PENDING = "PENDING"
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    SKIPPED = "SKIPPED"


# === CATEGORY METADATA ===


class _MetadataBase(BaseModel):
    """Fields shared by every category."""

    model_config = ConfigDict(extra="forbid")

    title: str | None = None
    language: str | None = None


class CircularMetadata(_MetadataBase):
    category: Literal["circulars"] = "circulars"
    ref_no: str | None = None
    ref_format: str | None = None
    issue_date: str | None = None
    year: int | None = None
    document_type: str | None = None
    department_code: str | None = None
    has_appendices: bool = False
    appendix_count: int = 0
    is_modern_format: bool | None = None
    is_legacy_format: bool | None = None
    post_doc_type: str | None = None
    post_doc_subtype: str | None = None
    has_html: bool = False
    last_modified: str | None = None

    @model_validator(mode="after")
    def derive_format_flags(self) -> CircularMetadata:
        # Circulars moved to the modern layout in 2012.
        if self.year is not None:
            if self.is_modern_format is None:
                self.is_modern_format = self.year >= 2012
            if self.is_legacy_format is None:
                self.is_legacy_format = self.year < 2012
        return self


class GuidelineMetadata(_MetadataBase):
    category: Literal["guidelines"] = "guidelines"
    guideline_id: str | None = None
    topics: list[str] = Field(default_factory=list)
    effective_date: str | None = None
    has_version_history: bool = False
    version_count: int = 0


class ConsultationMetadata(_MetadataBase):
    category: Literal["consultations"] = "consultations"
    cp_ref_no: str | None = None
    cp_issue_date: str | None = None
    is_concluded: bool = False
    comment_deadline: str | None = None
    cc_ref_no: str | None = None
    cc_issue_date: str | None = None
    year: int | None = None


class NewsMetadata(_MetadataBase):
    category: Literal["news"] = "news"
    news_ref_no: str | None = None
    issue_date: str | None = None
    year: int | None = None
    news_type: str | None = None
    has_external_link: bool = False
    has_images: bool = False
    image_count: int = 0
    has_appendices: bool = False


CategoryMetadata = Annotated[
    Union[CircularMetadata, GuidelineMetadata, ConsultationMetadata, NewsMetadata],
    Field(discriminator="category"),
]

# Metadata field that mirrors the document id, per category.
METADATA_ID_FIELDS: dict[Category, str] = {
    Category.CIRCULARS: "ref_no",
    Category.GUIDELINES: "guideline_id",
    Category.CONSULTATIONS: "cp_ref_no",
    Category.NEWS: "news_ref_no",
}


class SourceInfo(BaseModel):
    """Where and how a document was discovered."""

    model_config = ConfigDict(extra="forbid")

    discovery_method: str | None = None
    search_endpoint: str | None = None
    content_endpoint: str | None = None
    download_endpoint: str | None = None
    consultation_endpoint: str | None = None
    conclusion_endpoint: str | None = None
    scrape_url: str | None = None
    discovered_at: datetime | None = None
    source_version: str | None = None


# === WORKFLOW / STEPS / HISTORY ===


class WorkflowState(BaseModel):
    status: WorkflowStatus = WorkflowStatus.PENDING
    current_step: str | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    duration_seconds: int = 0
    retry_count: int = 0
    re_run_count: int = 0


class StepError(BaseModel):
    attempt: int
    timestamp: datetime
    error_type: str
    message: str


class StepRecord(BaseModel):
    """One named unit of work; extra fields merged by complete_step are kept."""

    model_config = ConfigDict(extra="allow")

    step: str
    status: StepStatus = StepStatus.PENDING
    started_at: datetime | None = None
    completed_at: datetime | None = None
    duration_ms: int | None = None
    attempts: int = 0
    errors: list[StepError] = Field(default_factory=list)


class Subworkflow(BaseModel):
    steps: list[StepRecord] = Field(default_factory=list)

    def find(self, step: str) -> StepRecord | None:
        for record in self.steps:
            if record.step == step:
                return record
        return None

    def last_failed(self) -> StepRecord | None:
        """The FAILED step that failed most recently (by ``completed_at``)."""
        failed = [r for r in self.steps if r.status == StepStatus.FAILED]
        if not failed:
            return None
        # On ties the later-listed step wins.
        return max(reversed(failed), key=lambda r: r.completed_at or _EPOCH)


class RunEntry(BaseModel):
    run_id: str
    reason: str
    started_at: datetime
    status: WorkflowStatus
    completed_at: datetime | None = None


class ReRunEntry(BaseModel):
    re_run_id: str
    reason: str
    triggered_at: datetime
    previous_markdown_path: str | None = None


class RetryEntry(BaseModel):
    retry_id: str
    reason: str
    from_step: str | None = None
    triggered_at: datetime


class History(BaseModel):
    """Append-only lifecycle logs."""

    runs: list[RunEntry] = Field(default_factory=list)
    re_runs: list[ReRunEntry] = Field(default_factory=list)
    retries: list[RetryEntry] = Field(default_factory=list)


# === DOCUMENT ===


class Document(BaseModel):
    """A tracked regulatory document, one per (category, id)."""

    id: str
    category: Category
    metadata: CategoryMetadata
    source: SourceInfo = Field(default_factory=SourceInfo)
    content: dict[str, Any] = Field(default_factory=dict)
    workflow: WorkflowState = Field(default_factory=WorkflowState)
    subworkflow: Subworkflow = Field(default_factory=Subworkflow)
    history: History = Field(default_factory=History)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @model_validator(mode="before")
    @classmethod
    def tag_metadata(cls, data: Any) -> Any:
        """Fill the metadata tag from the document category when omitted."""
        if not isinstance(data, dict):
            return data
        category = data.get("category")
        if isinstance(category, Category):
            category = category.value
        metadata = data.get("metadata")
        if metadata is None:
            metadata = {}
        if isinstance(metadata, dict) and "category" not in metadata and category:
            data = {**data, "metadata": {**metadata, "category": category}}
        return data

    @model_validator(mode="after")
    def check_metadata_tag(self) -> Document:
        if self.metadata.category != self.category.value:
            raise ValueError(
                f"metadata tagged {self.metadata.category!r} on a "
                f"{self.category.value!r} document"
            )
        return self

    @property
    def year(self) -> int | None:
        return getattr(self.metadata, "year", None)


class DocumentFilters(BaseModel):
    status: WorkflowStatus | None = None
    year: int | None = None
    limit: int | None = None
    offset: int | None = None


class BackupMetadata(BaseModel):
    """Record of one successful dehydrate; never mutated."""

    model_config = ConfigDict(frozen=True)

    backup_id: str
    created_at: datetime = Field(default_factory=utcnow)
    commit_hash: str
    documents_count: int
    size_bytes: int
    compressed_size_bytes: int


def new_document(
    category: Category | str,
    document_id: str,
    metadata: dict[str, Any] | None = None,
    source: dict[str, Any] | None = None,
    now: datetime | None = None,
) -> Document:
    """Build a PENDING document with category-appropriate metadata defaults."""
    cat = Category(category)
    ts = now or utcnow()
    meta: dict[str, Any] = {METADATA_ID_FIELDS[cat]: document_id}
    meta.update(metadata or {})
    meta["category"] = cat.value
    return Document(
        id=document_id,
        category=cat,
        metadata=meta,
        source=SourceInfo(**(source or {})),
        created_at=ts,
        updated_at=ts,
    )
