"""File operation and patch models produced by the fix planner."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator


class OperationKind(str, Enum):
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    RENAME = "RENAME"


class FileOperation(BaseModel):
    """One file mutation against a project tree.

    Wire form (as emitted by the model)::

        {"type": "UPDATE", "file": {"path": ..., "content": ..., "reason": ...}}

    Use ``from_wire`` / ``to_wire`` to convert; attribute names are snake_case.
    """

    model_config = ConfigDict(frozen=False, populate_by_name=True)

    kind: OperationKind
    path: str | None = None
    old_path: str | None = Field(default=None, alias="oldPath")
    new_path: str | None = Field(default=None, alias="newPath")
    content: str | None = None
    reason: str

    @model_validator(mode="after")
    def _check_required_fields(self) -> "FileOperation":
        if not self.reason or not self.reason.strip():
            raise ValueError("reason must be non-empty")
        if self.kind in (OperationKind.CREATE, OperationKind.UPDATE):
            if not self.path or self.content is None:
                raise ValueError(f"{self.kind.value} requires path and content")
        elif self.kind == OperationKind.DELETE:
            if not self.path:
                raise ValueError("DELETE requires path")
        elif self.kind == OperationKind.RENAME:
            if not self.old_path or not self.new_path:
                raise ValueError("RENAME requires oldPath and newPath")
        return self

    def target_paths(self) -> list[str]:
        """Every path this operation touches."""
        if self.kind == OperationKind.RENAME:
            return [p for p in (self.old_path, self.new_path) if p]
        return [self.path] if self.path else []

    def describe(self) -> str:
        if self.kind == OperationKind.RENAME:
            return f"{self.kind.value} {self.old_path} -> {self.new_path}"
        return f"{self.kind.value} {self.path}"

    @classmethod
    def from_wire(cls, payload: dict) -> "FileOperation":
        file_payload = payload.get("file") or {}
        return cls(
            kind=OperationKind(str(payload.get("type", "")).upper()),
            path=file_payload.get("path"),
            old_path=file_payload.get("oldPath"),
            new_path=file_payload.get("newPath"),
            content=file_payload.get("content"),
            reason=file_payload.get("reason", ""),
        )

    def to_wire(self) -> dict:
        file_payload = {
            "path": self.path,
            "oldPath": self.old_path,
            "newPath": self.new_path,
            "content": self.content,
            "reason": self.reason,
        }
        return {
            "type": self.kind.value,
            "file": {k: v for k, v in file_payload.items() if v is not None},
        }


class FixPatch(BaseModel):
    model_config = ConfigDict(frozen=False, populate_by_name=True)

    description: str = Field(alias="fixDescription")
    operations: list[FileOperation] = Field(default_factory=list)
    build_commands: list[str] = Field(default_factory=list, alias="buildCommands")
    expected_outcome: str = Field(default="", alias="expectedOutcome")

    @property
    def is_actionable(self) -> bool:
        return bool(self.operations)

    def to_wire(self) -> dict:
        return {
            "fixDescription": self.description,
            "operations": [op.to_wire() for op in self.operations],
            "buildCommands": list(self.build_commands),
            "expectedOutcome": self.expected_outcome,
        }


class OperationResult(BaseModel):
    model_config = ConfigDict(frozen=False)

    success: bool
    operation: FileOperation
    error: str | None = None
