"""Tests for sanitizing candidates and the parse/validate/sanitize pipeline."""

import json

from plugin_bot.models import OperationKind
from plugin_bot.structured import (
    recover_patch,
    recover_project,
    sanitize_patch,
    sanitize_project,
)
from plugin_bot.structured.fallback import build_fallback_project
from plugin_bot.structured.sanitizer import (
    DEFAULT_BUILD_COMMANDS,
    DEFAULT_EXPECTED_OUTCOME,
    DEFAULT_FIX_DESCRIPTION,
    DEFAULT_OPERATION_REASON,
)


def patch_json(*operations: dict, description: str = "Fix missing import") -> str:
    return json.dumps(
        {
            "fixDescription": description,
            "operations": list(operations),
            "buildCommands": ["mvn clean compile"],
            "expectedOutcome": "Build succeeds",
        }
    )


def update_op(path: str, content: str, reason: str = "Fix compile error") -> dict:
    return {"type": "UPDATE", "file": {"path": path, "content": content, "reason": reason}}


# ---------------------------------------------------------------------------
# sanitize_project
# ---------------------------------------------------------------------------

class TestSanitizeProject:
    def test_round_trip_preserves_valid_project(self, sample_project, sample_project_json):
        recovered = recover_project(sample_project_json, "Greeter", "Greets players")
        assert recovered == sample_project

    def test_round_trip_through_fenced_output(self, sample_project, sample_project_json):
        raw = f"Here is your plugin:\n```json\n{sample_project_json}\n```\n"
        recovered = recover_project(raw, "Greeter", "Greets players")
        assert recovered.file_paths() == sample_project.file_paths()

    def test_none_candidate_becomes_fallback(self):
        project = sanitize_project(None, "Greeter", "Greets players")
        assert project == build_fallback_project("Greeter", "Greets players")

    def test_unsafe_files_dropped(self):
        candidate = {
            "projectName": "Greeter",
            "files": [
                {"path": "../evil.sh", "content": "rm -rf /", "type": "sh"},
                {"path": "pom.xml", "content": "<project/>", "type": "xml"},
            ],
        }
        project = sanitize_project(candidate, "Greeter", "x")
        assert project.file_paths() == ["pom.xml"]

    def test_defaults_fill_missing_scalars(self):
        candidate = {"files": [{"path": "README", "content": "hi"}]}
        project = sanitize_project(candidate, "Greeter", "x")
        assert project.name == "Greeter"
        assert project.target_version == "1.20.1"
        assert project.files[0].type == "txt"
        assert project.dependencies
        assert project.build_instructions

    def test_no_surviving_files_uses_fallback(self):
        candidate = {"projectName": "Greeter", "files": [{"path": "/abs", "content": 1}]}
        project = sanitize_project(candidate, "Greeter", "x")
        assert "pom.xml" in project.file_paths()

    def test_line_endings_normalized(self):
        candidate = {"files": [{"path": "a.txt", "content": "a\r\nb\rc", "type": "txt"}]}
        project = sanitize_project(candidate, "Greeter", "x")
        assert project.files[0].content == "a\nb\nc"


class TestRecoverProject:
    def test_unparseable_text_returns_fallback(self):
        project = recover_project("Sorry, I cannot help with that.", "Greeter", "x")
        assert project == build_fallback_project("Greeter", "x")

    def test_empty_text_returns_fallback(self):
        project = recover_project("   ", "Greeter", "x")
        assert project == build_fallback_project("Greeter", "x")

    def test_partially_valid_candidate_is_sanitized(self):
        raw = json.dumps(
            {
                "projectName": "Greeter",
                "minecraftVersion": "latest",
                "files": [{"path": "pom.xml", "content": "<project/>", "type": "xml"}],
            }
        )
        project = recover_project(raw, "Greeter", "x")
        assert project.file_paths() == ["pom.xml"]
        assert project.target_version == "latest"


# ---------------------------------------------------------------------------
# sanitize_patch / recover_patch
# ---------------------------------------------------------------------------

class TestSanitizePatch:
    def test_non_dict_gives_empty_patch_with_defaults(self):
        patch = sanitize_patch("nope")
        assert patch.operations == []
        assert patch.description == DEFAULT_FIX_DESCRIPTION
        assert patch.expected_outcome == DEFAULT_EXPECTED_OUTCOME
        assert patch.build_commands == list(DEFAULT_BUILD_COMMANDS)
        assert patch.is_actionable is False

    def test_unsafe_and_invalid_operations_dropped(self):
        candidate = {
            "fixDescription": "Fix",
            "operations": [
                update_op("../outside.java", "x"),
                {"type": "EXPLODE", "file": {"path": "a.txt", "reason": "?"}},
                {"type": "RENAME", "file": {"oldPath": "a.txt", "reason": "Move"}},
                update_op("src/A.java", "class A {}"),
            ],
        }
        patch = sanitize_patch(candidate)
        assert [op.path for op in patch.operations] == ["src/A.java"]

    def test_lowercase_kind_accepted(self):
        patch = sanitize_patch(
            {"operations": [{"type": "delete", "file": {"path": "a.txt", "reason": "x"}}]}
        )
        assert patch.operations[0].kind == OperationKind.DELETE

    def test_missing_reason_gets_default(self):
        patch = sanitize_patch(
            {"operations": [{"type": "DELETE", "file": {"path": "a.txt"}}]}
        )
        assert patch.operations[0].reason == DEFAULT_OPERATION_REASON


class TestRecoverPatch:
    def test_valid_patch(self):
        raw = patch_json(update_op("src/A.java", "class A {}"))
        patch = recover_patch(raw)
        assert patch.description == "Fix missing import"
        assert patch.operations[0].content == "class A {}"

    def test_unparseable_text_returns_none(self):
        assert recover_patch("I don't know how to fix this.") is None

    def test_whitespace_returns_none(self):
        assert recover_patch(" \n ") is None

    def test_patch_with_only_unsafe_operations_is_not_actionable(self):
        patch = recover_patch(patch_json(update_op("/etc/passwd", "root")))
        assert patch is not None
        assert patch.is_actionable is False

    def test_patch_with_broken_escaping_recovered(self):
        raw = (
            '{"fixDescription": "Fix", "operations": [{"type": "UPDATE", "file": '
            '{"path": "src/A.java", "content": "class A {\n  String s = "x";\n}", '
            '"reason": "Fix"}}], "buildCommands": [], "expectedOutcome": "ok"}'
        )
        patch = recover_patch(raw)
        assert patch.operations[0].content == 'class A {\n  String s = "x";\n}'
