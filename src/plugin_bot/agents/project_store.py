"""Project store: persists generated projects and reads them back off disk."""

import json
import logging
import re
import shutil
from datetime import datetime
from pathlib import Path

from pydantic import ValidationError

from plugin_bot.agents.exceptions import OperationError, ProjectStoreError
from plugin_bot.agents.operation_executor import atomic_write_text, resolve_inside
from plugin_bot.models import FixPatch, PluginFile, PluginProject

logger = logging.getLogger(__name__)

# Constants
DEFAULT_WORKSPACE_DIR = "generated"
PROJECT_INFO_FILE = "project-info.json"
SOURCE_EXTENSIONS = frozenset(
    {".java", ".yml", ".yaml", ".xml", ".md", ".json", ".properties", ".txt"}
)
SKIPPED_DIRS = frozenset({"target", ".git", "node_modules", ".idea", ".vscode"})
DEFAULT_DETECTED_VERSION = "1.20.1"
DEFAULT_DETECTED_DEPENDENCIES = ("org.bukkit:bukkit:1.20.1-R0.1-SNAPSHOT",)
DEFAULT_READ_BUILD_INSTRUCTIONS = "mvn clean package"
MAX_SOURCE_FILE_BYTES = 5_000_000

_SEGMENT_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.-]*$")
_POM_VERSION_RE = re.compile(r"spigot-api.*?(\d+\.\d+\.\d+)", re.DOTALL)
_API_VERSION_RE = re.compile(r"api-version:\s*['\"]?(\d+\.\d+)['\"]?")
_POM_DEPENDENCY_RE = re.compile(
    r"<groupId>(.*?)</groupId>\s*<artifactId>(.*?)</artifactId>\s*<version>(.*?)</version>"
)


def detect_target_version(files: list[PluginFile]) -> str:
    """Detect the Minecraft version from pom.xml, then plugin.yml."""
    for plugin_file in files:
        if plugin_file.path == "pom.xml":
            match = _POM_VERSION_RE.search(plugin_file.content)
            if match:
                return match.group(1)
    for plugin_file in files:
        if plugin_file.path.endswith("plugin.yml"):
            match = _API_VERSION_RE.search(plugin_file.content)
            if match:
                return f"{match.group(1)}.1"
    return DEFAULT_DETECTED_VERSION


def detect_dependencies(files: list[PluginFile]) -> list[str]:
    for plugin_file in files:
        if plugin_file.path == "pom.xml":
            found = [
                f"{group}:{artifact}:{version}"
                for group, artifact, version in _POM_DEPENDENCY_RE.findall(plugin_file.content)
            ]
            if found:
                return found
    return list(DEFAULT_DETECTED_DEPENDENCIES)


class ProjectStore:
    """Lays projects out as ``<workspace>/<user_id>/<plugin_name>``."""

    def __init__(self, workspace_dir: str | Path = DEFAULT_WORKSPACE_DIR) -> None:
        self.workspace_dir: Path = Path(workspace_dir)

    def project_path(self, user_id: str, plugin_name: str) -> Path:
        """Return the project root for a user and plugin.

        Raises:
            ProjectStoreError: If either segment could escape the workspace.
        """
        for label, segment in (("user id", user_id), ("plugin name", plugin_name)):
            if not segment or ".." in segment or not _SEGMENT_RE.match(segment):
                raise ProjectStoreError(f"Invalid {label}: {segment!r}")
        return self.workspace_dir / user_id / plugin_name

    def write_project(
        self,
        project: PluginProject,
        project_root: str | Path,
        metadata: dict | None = None,
    ) -> Path:
        """Write every project file plus ``project-info.json``.

        Returns:
            Resolved project root.

        Raises:
            ProjectStoreError: If a file path escapes the project root.
        """
        root = Path(project_root).resolve()
        root.mkdir(parents=True, exist_ok=True)
        for plugin_file in project.files:
            try:
                target = resolve_inside(root, plugin_file.path)
            except OperationError as exc:
                raise ProjectStoreError(str(exc)) from exc
            atomic_write_text(target, plugin_file.content)

        info = project.model_dump(by_alias=True, exclude={"files"})
        info["files"] = [
            {"path": f.path, "type": f.type} for f in project.files
        ]
        info.update(metadata or {})
        info.setdefault("generatedAt", datetime.now().isoformat())
        atomic_write_text(root / PROJECT_INFO_FILE, json.dumps(info, indent=2))
        logger.info("Wrote %d files to %s", len(project.files), root)
        return root

    def read_metadata(self, project_root: str | Path) -> dict:
        """Return ``project-info.json`` contents, or {} when absent or unreadable."""
        info_path = Path(project_root) / PROJECT_INFO_FILE
        if not info_path.is_file():
            return {}
        try:
            data = json.loads(info_path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning("Could not read %s: %s", info_path, exc)
            return {}
        return data if isinstance(data, dict) else {}

    def _read_source_files(self, root: Path) -> list[PluginFile]:
        files: list[PluginFile] = []
        for path in root.rglob("*"):
            relative = path.relative_to(root)
            if any(part in SKIPPED_DIRS for part in relative.parts[:-1]):
                continue
            if not path.is_file() or path.suffix.lower() not in SOURCE_EXTENSIONS:
                continue
            if relative.as_posix() == PROJECT_INFO_FILE:
                continue
            if path.stat().st_size > MAX_SOURCE_FILE_BYTES:
                logger.warning("Skipping oversized file %s", relative)
                continue
            try:
                content = path.read_text(encoding="utf-8")
                files.append(
                    PluginFile(
                        path=relative.as_posix(),
                        content=content,
                        type=path.suffix.lower()[1:],
                    )
                )
            except (OSError, UnicodeDecodeError, ValidationError) as exc:
                logger.warning("Could not read file %s: %s", relative, exc)
        return sorted(files, key=lambda f: f.path)

    def read_project(self, project_root: str | Path) -> PluginProject:
        """Rebuild a PluginProject from the files on disk.

        Metadata comes from ``project-info.json`` when present and is
        otherwise detected from pom.xml and plugin.yml.

        Raises:
            ProjectStoreError: If the directory is missing or holds no
                readable source files.
        """
        root = Path(project_root)
        if not root.is_dir():
            raise ProjectStoreError(f"Project not found: {root}")

        files = self._read_source_files(root)
        if not files:
            raise ProjectStoreError(f"No source files found in {root}")

        metadata = self.read_metadata(root)
        dependencies = metadata.get("dependencies")
        if not isinstance(dependencies, list) or not dependencies:
            dependencies = detect_dependencies(files)
        return PluginProject(
            name=metadata.get("projectName") or root.name,
            target_version=metadata.get("minecraftVersion") or detect_target_version(files),
            files=files,
            dependencies=[str(d) for d in dependencies],
            build_instructions=(
                metadata.get("buildInstructions") or DEFAULT_READ_BUILD_INSTRUCTIONS
            ),
        )

    def write_fix_audit(
        self,
        project_root: str | Path,
        patch: FixPatch,
        operations_applied: int,
    ) -> bool:
        """Record the last fix attempt in ``project-info.json``.

        Returns:
            True if the record was written; False when the project has no
            metadata file to update.
        """
        info_path = Path(project_root) / PROJECT_INFO_FILE
        if not info_path.is_file():
            return False
        info = self.read_metadata(project_root)
        info["lastFixAttempt"] = {
            "timestamp": datetime.now().isoformat(),
            "fixDescription": patch.description,
            "operationsApplied": operations_applied,
            "expectedOutcome": patch.expected_outcome,
            "touchedFiles": [
                path for operation in patch.operations for path in operation.target_paths()
            ],
        }
        atomic_write_text(info_path, json.dumps(info, indent=2))
        logger.debug("Recorded fix audit in %s", info_path)
        return True

    def remove_project(self, project_root: str | Path) -> None:
        root = Path(project_root)
        if root.exists():
            logger.info("Removing project directory %s", root)
            shutil.rmtree(root)
