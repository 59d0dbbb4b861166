# src/core/errors.py - v1
"""Error taxonomy shared by the workflow engine and the backup engine.

Every error carries a stable message; structured attributes are kept for
diagnosis by callers (HTTP layer, CLI, tests).
"""

from __future__ import annotations


class DocVaultError(Exception):
    """Base class for all docvault errors."""


class NotFoundError(DocVaultError):
    """Document (or step within a document) does not exist."""

    def __init__(self, category: str, document_id: str, step: str | None = None) -> None:
        self.category = category
        self.document_id = document_id
        self.step = step
        if step is None:
            message = f"Document not found: {category}/{document_id}"
        else:
            message = f"Step not found: {step!r} on {category}/{document_id}"
        super().__init__(message)


class InvalidTransitionError(DocVaultError):
    """Action attempted from a workflow status that does not allow it."""

    def __init__(self, current_status: str, action: str) -> None:
        self.current_status = current_status
        self.action = action
        super().__init__(f"Cannot {action} document in status: {current_status}")


class VersionControlError(DocVaultError):
    """A version-control command failed or timed out."""

    def __init__(self, command: str, detail: str, returncode: int | None = None) -> None:
        self.command = command
        self.detail = detail
        self.returncode = returncode
        super().__init__(f"{command} failed: {detail}")


class ArchiveError(DocVaultError):
    """Backup archive is corrupt, unsafe or holds no recognizable entries."""


class NoBackupFoundError(DocVaultError):
    """Requested backup archive is not present locally or in the repository."""

    def __init__(self, backup_id: str | None = None) -> None:
        self.backup_id = backup_id
        if backup_id:
            message = f"Backup not found: {backup_id}"
        else:
            message = "No backup found in git repository"
        super().__init__(message)
