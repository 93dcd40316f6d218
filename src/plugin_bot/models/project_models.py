"""Project models for generated plugin source trees."""

from pathlib import PurePosixPath

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


def normalize_line_endings(content: str) -> str:
    """Convert CRLF and lone CR line endings to LF."""
    return content.replace("\r\n", "\n").replace("\r", "\n")


def file_type_for(path: str) -> str:
    """Return the extension of ``path`` without the dot, or ``txt``."""
    suffix = PurePosixPath(path).suffix
    return suffix[1:].lower() if suffix else "txt"


def is_safe_relative_path(path: str) -> bool:
    """Return True when ``path`` is relative and cannot escape its root.

    Rejects empty paths, absolute paths, backslashes and any occurrence of
    ``..``.
    """
    if not path or not path.strip():
        return False
    if "\\" in path or path.startswith("/"):
        return False
    return ".." not in path


class PluginFile(BaseModel):
    model_config = ConfigDict(frozen=False)

    path: str
    content: str
    type: str = ""        # "java" | "yml" | "yaml" | "xml" | "md" | ...

    @field_validator("path")
    @classmethod
    def _check_path(cls, value: str) -> str:
        if not is_safe_relative_path(value):
            raise ValueError(f"Unsafe file path: {value!r}")
        return value

    @model_validator(mode="after")
    def _fill_defaults(self) -> "PluginFile":
        self.content = normalize_line_endings(self.content)
        if not self.type:
            self.type = file_type_for(self.path)
        return self


class PluginProject(BaseModel):
    """A generated plugin: metadata plus the full file set."""

    model_config = ConfigDict(frozen=False, populate_by_name=True)

    name: str = Field(alias="projectName")
    target_version: str = Field(alias="minecraftVersion")
    files: list[PluginFile] = Field(min_length=1)
    dependencies: list[str] = Field(default_factory=list)
    build_instructions: str = Field(default="", alias="buildInstructions")

    def file_paths(self) -> list[str]:
        return [f.path for f in self.files]

    def get_file(self, path: str) -> PluginFile | None:
        for plugin_file in self.files:
            if plugin_file.path == path:
                return plugin_file
        return None

    def to_wire(self) -> dict:
        """Serialize with the camelCase keys the model emits."""
        return self.model_dump(by_alias=True)
