"""Build runner: compiles a plugin project with Maven."""

import logging
import shutil
import subprocess
import time
from datetime import datetime
from pathlib import Path
from typing import Protocol

from plugin_bot.models import BuildFailureKind, BuildStatus, CompilationResult

logger = logging.getLogger(__name__)

DEFAULT_BUILD_TIMEOUT = 120
BUILD_COMMAND = ("mvn", "clean", "package")
BUILD_MANIFEST = "pom.xml"
TARGET_DIR = "target"
SECONDARY_JAR_SUFFIXES = ("-sources.jar", "-javadoc.jar", "-original.jar")
MAX_SUMMARY_LINES = 10
ERROR_LINE_MARKERS = (
    "[ERROR]",
    "error:",
    "cannot find symbol",
    "package does not exist",
    "cannot resolve",
)
NO_ERROR_DETAILS_MESSAGE = "Compilation failed but no specific error details found"


class BuildRunner(Protocol):
    def build(self, project_root: str | Path) -> CompilationResult: ...


def find_jar_files(target_dir: Path) -> list[Path]:
    if not target_dir.is_dir():
        return []
    return sorted(p for p in target_dir.iterdir() if p.is_file() and p.suffix == ".jar")


def select_main_jar(jar_files: list[Path]) -> Path | None:
    """Prefer a jar that is not a sources/javadoc/original variant."""
    if not jar_files:
        return None
    for jar in jar_files:
        if not jar.name.endswith(SECONDARY_JAR_SUFFIXES):
            return jar
    return jar_files[0]


def extract_error_summary(build_output: str) -> str:
    """Return up to ten compiler lines that look like errors."""
    error_lines = [
        line
        for line in build_output.splitlines()
        if any(marker in line for marker in ERROR_LINE_MARKERS)
    ]
    summary = "\n".join(error_lines[:MAX_SUMMARY_LINES])
    return summary or NO_ERROR_DETAILS_MESSAGE


class MavenBuildRunner:
    """Runs ``mvn clean package`` in a project root and reports the outcome."""

    def __init__(
        self,
        timeout_seconds: int = DEFAULT_BUILD_TIMEOUT,
        command: tuple[str, ...] = BUILD_COMMAND,
    ) -> None:
        self.timeout_seconds: int = timeout_seconds
        self.command: tuple[str, ...] = command

    def build(self, project_root: str | Path) -> CompilationResult:
        """Compile the project and locate the produced jar.

        Flow:
        1. Missing project directory -> MISSING_PROJECT
        2. Missing pom.xml -> MISSING_MANIFEST
        3. Run the build with a timeout (TIMEOUT / TOOL_NOT_FOUND / BUILD_FAILED)
        4. Exit 0 but no jar under target/ -> NO_ARTIFACT

        Args:
            project_root: Directory containing pom.xml.

        Returns:
            CompilationResult; ``success`` is True only when a jar was produced.
        """
        root = Path(project_root)
        started = time.monotonic()

        if not root.is_dir():
            logger.warning("Project directory not found: %s", root)
            return CompilationResult(
                success=False,
                message="Project directory not found",
                errors="Project directory does not exist",
                failure_kind=BuildFailureKind.MISSING_PROJECT,
            )

        if not (root / BUILD_MANIFEST).is_file():
            logger.warning("pom.xml not found in %s", root)
            return CompilationResult(
                success=False,
                message="pom.xml not found in project directory",
                errors="No pom.xml file found",
                failure_kind=BuildFailureKind.MISSING_MANIFEST,
            )

        logger.info("Running %s in %s", " ".join(self.command), root)
        try:
            completed = subprocess.run(
                list(self.command),
                capture_output=True,
                text=True,
                timeout=self.timeout_seconds,
                cwd=str(root),
            )
        except subprocess.TimeoutExpired as exc:
            return CompilationResult(
                success=False,
                message="Maven compilation failed",
                build_output=_decode(exc.stdout),
                errors=f"Build timed out after {self.timeout_seconds}s",
                failure_kind=BuildFailureKind.TIMEOUT,
                duration_seconds=time.monotonic() - started,
            )
        except FileNotFoundError as exc:
            return CompilationResult(
                success=False,
                message="Maven compilation failed",
                errors=f"Build tool not found: {exc}",
                failure_kind=BuildFailureKind.TOOL_NOT_FOUND,
                duration_seconds=time.monotonic() - started,
            )

        duration = time.monotonic() - started
        if completed.returncode != 0:
            logger.info("Build failed with exit code %d after %.1fs", completed.returncode, duration)
            return CompilationResult(
                success=False,
                message="Maven compilation failed",
                build_output=completed.stdout,
                errors=completed.stderr or f"Build exited with code {completed.returncode}",
                failure_kind=BuildFailureKind.BUILD_FAILED,
                duration_seconds=duration,
            )

        main_jar = select_main_jar(find_jar_files(root / TARGET_DIR))
        if main_jar is None:
            logger.warning("Build finished but produced no jar in %s", root / TARGET_DIR)
            return CompilationResult(
                success=False,
                message="Compilation completed but no JAR file was generated",
                build_output=completed.stdout,
                errors=completed.stderr or None,
                failure_kind=BuildFailureKind.NO_ARTIFACT,
                duration_seconds=duration,
            )

        logger.info("Build succeeded in %.1fs: %s", duration, main_jar.name)
        return CompilationResult(
            success=True,
            message="Plugin compiled successfully",
            build_output=completed.stdout,
            artifact_path=str(main_jar),
            duration_seconds=duration,
        )

    def clean(self, project_root: str | Path) -> bool:
        """Remove the target/ directory. Returns True if one was removed."""
        target = Path(project_root) / TARGET_DIR
        if not target.exists():
            return False
        logger.info("Removing %s", target)
        shutil.rmtree(target)
        return True

    def status(self, project_root: str | Path) -> BuildStatus:
        target = Path(project_root) / TARGET_DIR
        if not target.is_dir():
            return BuildStatus(has_target=False, has_jar=False)
        jars = find_jar_files(target)
        last_modified = (
            datetime.fromtimestamp(jars[0].stat().st_mtime) if jars else None
        )
        return BuildStatus(
            has_target=True,
            has_jar=bool(jars),
            jar_files=[str(j) for j in jars],
            last_modified=last_modified,
        )


def _decode(output) -> str:
    if output is None:
        return ""
    if isinstance(output, bytes):
        return output.decode("utf-8", errors="replace")
    return output
