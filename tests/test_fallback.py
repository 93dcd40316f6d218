"""Tests for the fallback skeleton and required-file completion."""

import json

from plugin_bot.models import PluginFile, PluginProject
from plugin_bot.structured.fallback import (
    BUILD_MANIFEST_PATH,
    DEFAULT_TARGET_VERSION,
    PLUGIN_DESCRIPTOR_PATH,
    build_fallback_project,
    ensure_required_files,
    main_class_name_for,
    main_class_path_for,
    package_name_for,
)
from plugin_bot.structured.validator import Shape, validate


class TestNaming:
    def test_package_name_strips_non_alphanumerics(self):
        assert package_name_for("My-Cool_Plugin 2") == "mycoolplugin2"

    def test_package_name_never_empty(self):
        assert package_name_for("---") == "plugin"

    def test_main_class_name(self):
        assert main_class_name_for("greeter") == "GreeterPlugin"
        assert main_class_name_for("my-plugin") == "MypluginPlugin"

    def test_main_class_path(self):
        assert main_class_path_for("Greeter") == (
            "src/main/java/com/example/greeter/GreeterPlugin.java"
        )


class TestBuildFallbackProject:
    def test_skeleton_is_deterministic(self):
        assert build_fallback_project("Greeter", "Say hi") == build_fallback_project(
            "Greeter", "Say hi"
        )

    def test_skeleton_contents(self):
        project = build_fallback_project("Greeter", "Say hi")
        assert project.name == "Greeter"
        assert project.target_version == DEFAULT_TARGET_VERSION
        assert project.file_paths() == [
            main_class_path_for("Greeter"),
            PLUGIN_DESCRIPTOR_PATH,
            BUILD_MANIFEST_PATH,
            "README.md",
        ]
        assert [f.type for f in project.files] == ["java", "yaml", "xml", "md"]

    def test_skeleton_is_schema_valid(self):
        project = build_fallback_project("Greeter", "Say hi")
        assert validate(project.to_wire(), Shape.PROJECT).valid

    def test_descriptor_references_main_class(self):
        project = build_fallback_project("Greeter", "Say hi")
        descriptor = project.get_file(PLUGIN_DESCRIPTOR_PATH).content
        assert "main: com.example.greeter.GreeterPlugin" in descriptor
        assert "greeter:" in descriptor

    def test_multiline_requirements_stay_on_one_descriptor_line(self):
        project = build_fallback_project("Greeter", 'Say "hi"\nto players')
        descriptor = project.get_file(PLUGIN_DESCRIPTOR_PATH).content
        line = next(l for l in descriptor.splitlines() if l.startswith("description:"))
        assert json.loads(line.split(":", 1)[1]) == 'Say "hi" to players'


class TestEnsureRequiredFiles:
    def test_complete_project_unchanged(self, sample_project):
        before = sample_project.file_paths()
        assert ensure_required_files(sample_project, "Greeter", "x") == []
        assert sample_project.file_paths() == before

    def test_missing_files_added(self):
        project = PluginProject(
            name="Greeter",
            target_version="1.20.1",
            files=[PluginFile(path="README.md", content="# Greeter")],
        )
        added = ensure_required_files(project, "Greeter", "x")
        assert added == [main_class_path_for("Greeter"), PLUGIN_DESCRIPTOR_PATH, BUILD_MANIFEST_PATH]
        assert project.file_paths()[0] == "README.md"
        assert len(project.files) == 4

    def test_only_missing_manifest_added(self, sample_project):
        sample_project.files = [f for f in sample_project.files if f.path != "pom.xml"]
        assert ensure_required_files(sample_project, "Greeter", "x") == [BUILD_MANIFEST_PATH]
