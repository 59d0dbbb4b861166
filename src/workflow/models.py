# src/workflow/models.py - v1
"""Result and view models returned by the workflow engine."""

from __future__ import annotations

from pydantic import BaseModel, Field

from docvault.documents.models import (
    Category,
    History,
    StepError,
    StepRecord,
    WorkflowState,
    WorkflowStatus,
)


class RetryResult(BaseModel):
    document_id: str
    category: Category
    previous_status: WorkflowStatus
    current_status: WorkflowStatus
    retry_count: int
    resuming_from_step: str | None = None


class ReRunResult(BaseModel):
    document_id: str
    category: Category
    previous_status: WorkflowStatus
    current_status: WorkflowStatus
    re_run_id: str
    re_run_count: int
    previous_content_archived: bool = False
    previous_markdown_path: str | None = None


class WorkflowStatusView(BaseModel):
    """Workflow state plus derived retry / re-run eligibility."""

    document_id: str
    category: Category
    workflow: WorkflowState
    is_retryable: bool
    is_re_runnable: bool
    last_failed_step: str | None = None
    last_error: StepError | None = None


class StepsView(BaseModel):
    document_id: str
    category: Category
    current_step: str | None = None
    steps: list[StepRecord] = Field(default_factory=list)


class HistoryView(BaseModel):
    document_id: str
    category: Category
    history: History
