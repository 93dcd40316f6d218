"""Operation executor: applies file operations to a project tree on disk."""

import logging
import os
import shutil
import tempfile
from pathlib import Path

from plugin_bot.agents.exceptions import OperationError, UnsafePathError
from plugin_bot.models import (
    FileOperation,
    OperationKind,
    OperationResult,
    is_safe_relative_path,
)

logger = logging.getLogger(__name__)


def resolve_inside(root: Path, relative_path: str) -> Path:
    """Resolve ``relative_path`` under ``root`` and refuse any escape.

    Args:
        root: Already-resolved project root.
        relative_path: Path as given by the operation.

    Returns:
        Absolute target path inside ``root``.

    Raises:
        UnsafePathError: If the path is absolute, contains ``..`` or
            backslashes, points at the root itself, or resolves outside it.
    """
    if not is_safe_relative_path(relative_path):
        raise UnsafePathError(f"Unsafe path rejected: '{relative_path}'")
    target = (root / relative_path).resolve()
    if target == root or not target.is_relative_to(root):
        raise UnsafePathError(
            f"Path traversal attempt detected: '{relative_path}' "
            f"resolves outside of the project root."
        )
    return target


def atomic_write_text(target: Path, content: str) -> None:
    """Write ``content`` to a temp file beside ``target`` and rename it over."""
    target.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(
        dir=target.parent, prefix=f".{target.name}.", suffix=".tmp"
    )
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as handle:
            handle.write(content)
        os.replace(tmp_name, target)
    except Exception:
        Path(tmp_name).unlink(missing_ok=True)
        raise


class OperationExecutor:
    """Applies create/update/delete/rename operations to a project root.

    Each operation is reported individually; one failing operation never
    stops the rest of the batch. The executor does no locking, so callers
    must not run two batches against the same project concurrently.
    """

    def apply(
        self,
        operations: list[FileOperation],
        project_root: str | Path,
    ) -> list[OperationResult]:
        """Apply operations in order and return one result per operation.

        Raises:
            PermissionError: Filesystem permission failures are not recorded
                per operation; they propagate to the caller.
        """
        root = Path(project_root).resolve()
        results: list[OperationResult] = []

        for operation in operations:
            try:
                self._apply_one(operation, root)
            except PermissionError:
                raise
            except (OperationError, OSError) as exc:
                logger.warning("Operation failed: %s (%s)", operation.describe(), exc)
                results.append(
                    OperationResult(success=False, operation=operation, error=str(exc))
                )
                continue

            logger.debug("Applied %s: %s", operation.describe(), operation.reason)
            results.append(OperationResult(success=True, operation=operation))

        applied = sum(1 for result in results if result.success)
        logger.info("Applied %d/%d operations in %s", applied, len(results), root)
        return results

    def _apply_one(self, operation: FileOperation, root: Path) -> None:
        if operation.kind in (OperationKind.CREATE, OperationKind.UPDATE):
            target = resolve_inside(root, operation.path or "")
            if target.is_dir():
                raise OperationError(f"Target is a directory: {operation.path}")
            atomic_write_text(target, operation.content or "")
            return

        if operation.kind == OperationKind.DELETE:
            target = resolve_inside(root, operation.path or "")
            if not target.exists():
                logger.debug("Delete target already absent: %s", operation.path)
                return
            if target.is_dir():
                shutil.rmtree(target)
            else:
                target.unlink()
            return

        if operation.kind == OperationKind.RENAME:
            source = resolve_inside(root, operation.old_path or "")
            destination = resolve_inside(root, operation.new_path or "")
            if not source.exists():
                raise OperationError(
                    f"Source file not found for rename: {operation.old_path}"
                )
            destination.parent.mkdir(parents=True, exist_ok=True)
            os.replace(source, destination)
            return

        raise OperationError(f"Unsupported operation kind: {operation.kind}")
