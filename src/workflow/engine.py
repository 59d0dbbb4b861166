# src/workflow/engine.py - v1
"""Per-document workflow state machine.

Every mutating operation is a read-modify-write of the whole document
through the injected store, serialized per (category, id) by an in-process
lock. Status changes are checked against the transition table.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
import weakref
from collections.abc import AsyncIterator, Callable, Mapping
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any

from docvault.content.content_store import ContentStore, archived_content_path
from docvault.core.errors import InvalidTransitionError, NotFoundError
from docvault.documents.models import (
    Category,
    Document,
    ReRunEntry,
    RetryEntry,
    RunEntry,
    StepError,
    StepRecord,
    StepStatus,
    WorkflowStatus,
    utcnow,
)
from docvault.logging.context import clear_context, set_document_context
from docvault.store.base_document_store import BaseDocumentStore
from docvault.workflow.models import (
    HistoryView,
    ReRunResult,
    RetryResult,
    StepsView,
    WorkflowStatusView,
)
from docvault.workflow.transitions import (
    ensure_transition,
    is_re_runnable,
    is_retryable,
)

logger = logging.getLogger(__name__)

DEFAULT_RUN_REASON = "initial_download"
DEFAULT_RETRY_REASON = "manual_retry"
DEFAULT_RE_RUN_REASON = "manual_re_run"

_RESERVED_STEP_FIELDS = frozenset(StepRecord.model_fields)


class WorkflowEngine:
    """Drives documents through the workflow state machine."""

    def __init__(
        self,
        store: BaseDocumentStore,
        content_store: ContentStore | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._store = store
        self._content = content_store
        self._clock = clock
        # Entries drop out once no operation holds or awaits the lock.
        self._locks: weakref.WeakValueDictionary[tuple[Category, str], asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    # --- run lifecycle ---

    async def start_workflow(
        self, category: Category | str, document_id: str, reason: str = DEFAULT_RUN_REASON
    ) -> Document:
        async with self._editing(category, document_id, "start_workflow") as doc:
            ensure_transition(doc.workflow.status, WorkflowStatus.DISCOVERED)
            now = self._clock()
            wf = doc.workflow
            wf.status = WorkflowStatus.DISCOVERED
            wf.current_step = None
            wf.completed_at = None
            wf.duration_seconds = 0
            wf.started_at = now
            doc.history.runs.append(
                RunEntry(
                    run_id=str(uuid.uuid4()),
                    reason=reason,
                    started_at=now,
                    status=WorkflowStatus.DISCOVERED,
                )
            )
            logger.info("Workflow started (%s)", reason)
        return doc

    async def complete_workflow(self, category: Category | str, document_id: str) -> Document:
        async with self._editing(category, document_id, "complete_workflow") as doc:
            ensure_transition(doc.workflow.status, WorkflowStatus.COMPLETED)
            now = self._clock()
            wf = doc.workflow
            wf.status = WorkflowStatus.COMPLETED
            wf.completed_at = now
            wf.duration_seconds = (
                max(0, int((now - wf.started_at).total_seconds())) if wf.started_at else 0
            )
            if doc.history.runs:
                latest = doc.history.runs[-1]
                latest.completed_at = now
                latest.status = WorkflowStatus.COMPLETED
            logger.info("Workflow completed in %ds", doc.workflow.duration_seconds)
        return doc

    async def transition_status(
        self, category: Category | str, document_id: str, new_status: WorkflowStatus | str
    ) -> Document:
        """Move the document along one edge of the transition table."""
        target = WorkflowStatus(new_status)
        async with self._editing(category, document_id, "transition_status") as doc:
            previous = doc.workflow.status
            ensure_transition(previous, target)
            doc.workflow.status = target
            logger.info("Status %s -> %s", previous.value, target.value)
        return doc

    # --- steps ---

    async def start_step(self, category: Category | str, document_id: str, step: str) -> Document:
        async with self._editing(category, document_id, "start_step") as doc:
            now = self._clock()
            doc.workflow.current_step = step
            record = doc.subworkflow.find(step)
            if record is None:
                doc.subworkflow.steps.append(
                    StepRecord(step=step, status=StepStatus.RUNNING, started_at=now, attempts=1)
                )
            else:
                record.status = StepStatus.RUNNING
                record.started_at = now
                record.attempts += 1
            logger.debug("Step %s started", step)
        return doc

    async def complete_step(
        self,
        category: Category | str,
        document_id: str,
        step: str,
        extra_fields: Mapping[str, Any] | None = None,
    ) -> Document:
        extra = dict(extra_fields or {})
        reserved = _RESERVED_STEP_FIELDS.intersection(extra)
        if reserved:
            raise ValueError(f"Step fields cannot be overridden: {sorted(reserved)}")

        async with self._editing(category, document_id, "complete_step") as doc:
            record = self._step(doc, step)
            now = self._clock()
            record.status = StepStatus.COMPLETED
            record.completed_at = now
            record.duration_ms = _elapsed_ms(record.started_at, now)
            for key, value in extra.items():
                setattr(record, key, value)
            logger.debug("Step %s completed in %sms", step, record.duration_ms)
        return doc

    async def fail_step(
        self,
        category: Category | str,
        document_id: str,
        step: str,
        error: Mapping[str, str] | BaseException,
    ) -> Document:
        """Mark a step failed and move the document to FAILED.

        ``error`` is either a ``{"type", "message"}`` mapping or an exception.
        A document already in FAILED only gets the error recorded.
        """
        if isinstance(error, BaseException):
            error_type, message = type(error).__name__, str(error)
        else:
            error_type = error.get("type") or "Error"
            message = error.get("message") or ""

        async with self._editing(category, document_id, "fail_step") as doc:
            record = self._step(doc, step)
            if doc.workflow.status != WorkflowStatus.FAILED:
                ensure_transition(doc.workflow.status, WorkflowStatus.FAILED)
            now = self._clock()
            record.status = StepStatus.FAILED
            record.completed_at = now
            record.errors.append(
                StepError(
                    attempt=record.attempts,
                    timestamp=now,
                    error_type=error_type,
                    message=message,
                )
            )
            doc.workflow.status = WorkflowStatus.FAILED
            logger.warning("Step %s failed: %s: %s", step, error_type, message)
        return doc

    # --- retry / re-run ---

    async def retry_document(
        self,
        category: Category | str,
        document_id: str,
        reason: str | None = None,
        from_step: str | None = None,
    ) -> RetryResult:
        async with self._editing(category, document_id, "retry_document") as doc:
            previous = doc.workflow.status
            if not is_retryable(previous):
                raise InvalidTransitionError(previous.value, "retry")

            resume_from = from_step
            if resume_from is None:
                failed = doc.subworkflow.last_failed()
                resume_from = failed.step if failed is not None else doc.workflow.current_step

            wf = doc.workflow
            wf.status = WorkflowStatus.RETRYING
            wf.current_step = resume_from
            wf.retry_count += 1
            doc.history.retries.append(
                RetryEntry(
                    retry_id=str(uuid.uuid4()),
                    reason=reason or DEFAULT_RETRY_REASON,
                    from_step=resume_from,
                    triggered_at=self._clock(),
                )
            )
            logger.info("Retry #%d from step %s", doc.workflow.retry_count, resume_from)
        return RetryResult(
            document_id=doc.id,
            category=doc.category,
            previous_status=previous,
            current_status=doc.workflow.status,
            retry_count=doc.workflow.retry_count,
            resuming_from_step=resume_from,
        )

    async def re_run_document(
        self,
        category: Category | str,
        document_id: str,
        reason: str | None = None,
        preserve_previous: bool = True,
    ) -> ReRunResult:
        async with self._editing(category, document_id, "re_run_document") as doc:
            previous = doc.workflow.status
            if not is_re_runnable(previous):
                raise InvalidTransitionError(previous.value, "re-run")

            now = self._clock()
            markdown_path = doc.content.get("markdown_path")
            archived: str | None = None
            copied = False
            if preserve_previous and markdown_path:
                if self._content is not None:
                    archived = await self._content.archive(markdown_path)
                    copied = archived is not None
                else:
                    archived = archived_content_path(
                        markdown_path, now.strftime("%Y%m%dT%H%M%S%fZ")
                    )

            wf = doc.workflow
            wf.status = WorkflowStatus.RE_RUNNING
            wf.re_run_count += 1
            wf.current_step = None
            wf.completed_at = None
            wf.started_at = now
            doc.content = {}
            re_run_id = f"rr-{int(now.timestamp() * 1000)}"
            doc.history.re_runs.append(
                ReRunEntry(
                    re_run_id=re_run_id,
                    reason=reason or DEFAULT_RE_RUN_REASON,
                    triggered_at=now,
                    previous_markdown_path=archived,
                )
            )
            logger.info(
                "Re-run #%d started, previous content at %s", doc.workflow.re_run_count, archived
            )
        return ReRunResult(
            document_id=doc.id,
            category=doc.category,
            previous_status=previous,
            current_status=doc.workflow.status,
            re_run_id=re_run_id,
            re_run_count=doc.workflow.re_run_count,
            previous_content_archived=copied,
            previous_markdown_path=archived,
        )

    # --- content ---

    async def record_content(
        self, category: Category | str, document_id: str, content: Mapping[str, Any]
    ) -> Document:
        """Store converter output (paths, sizes, hashes) on the document."""
        async with self._editing(category, document_id, "record_content") as doc:
            doc.content.update(content)
        return doc

    # --- reads ---

    async def get_workflow_status(
        self, category: Category | str, document_id: str
    ) -> WorkflowStatusView | None:
        doc = await self._store.get_document(Category(category), document_id)
        if doc is None:
            return None
        failed = doc.subworkflow.last_failed()
        return WorkflowStatusView(
            document_id=doc.id,
            category=doc.category,
            workflow=doc.workflow,
            is_retryable=is_retryable(doc.workflow.status),
            is_re_runnable=is_re_runnable(doc.workflow.status),
            last_failed_step=failed.step if failed is not None else None,
            last_error=failed.errors[-1] if failed is not None and failed.errors else None,
        )

    async def get_steps(self, category: Category | str, document_id: str) -> StepsView | None:
        doc = await self._store.get_document(Category(category), document_id)
        if doc is None:
            return None
        return StepsView(
            document_id=doc.id,
            category=doc.category,
            current_step=doc.workflow.current_step,
            steps=doc.subworkflow.steps,
        )

    async def get_history(self, category: Category | str, document_id: str) -> HistoryView | None:
        doc = await self._store.get_document(Category(category), document_id)
        if doc is None:
            return None
        return HistoryView(document_id=doc.id, category=doc.category, history=doc.history)

    # --- internals ---

    @asynccontextmanager
    async def _editing(
        self, category: Category | str, document_id: str, operation: str
    ) -> AsyncIterator[Document]:
        """Load a document under its lock and upsert it if the block succeeds.

        The document log context is set for the duration of the block.
        """
        cat = Category(category)
        lock = self._locks.setdefault((cat, document_id), asyncio.Lock())
        set_document_context(cat.value, document_id, operation)
        try:
            async with lock:
                doc = await self._store.get_document(cat, document_id)
                if doc is None:
                    raise NotFoundError(cat.value, document_id)
                yield doc
                stored = await self._store.upsert_document(cat, document_id, doc)
                doc.updated_at = stored.updated_at
        finally:
            clear_context()

    @staticmethod
    def _step(doc: Document, step: str) -> StepRecord:
        record = doc.subworkflow.find(step)
        if record is None:
            raise NotFoundError(doc.category.value, doc.id, step=step)
        return record


def _elapsed_ms(started_at: datetime | None, completed_at: datetime) -> int:
    if started_at is None:
        return 0
    return max(0, int((completed_at - started_at).total_seconds() * 1000))
