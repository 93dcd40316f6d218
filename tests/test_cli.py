"""Unit tests for the CLI module (plugin_bot.cli.main)."""

from __future__ import annotations

import json
from unittest.mock import MagicMock, patch

import pytest

from plugin_bot.agents.exceptions import ModelConfigError, RequestValidationError
from plugin_bot.cli.main import (
    DEFAULT_BUILD_TIMEOUT,
    DEFAULT_FIX_ITERATIONS,
    DEFAULT_GENERATE_ITERATIONS,
    DEFAULT_USER_ID,
    DEFAULT_WORKSPACE_DIR,
    EXIT_AGENT_ERROR,
    EXIT_FIX_FAILED,
    EXIT_INVALID_INPUT,
    EXIT_KEYBOARD_INTERRUPT,
    EXIT_ORCHESTRATOR_ERROR,
    EXIT_SUCCESS,
    EXIT_UNEXPECTED,
    build_config,
    build_parser,
    create_workflow,
    format_result_json,
    main,
    run_command,
    summarize_analysis,
    summarize_fix,
    summarize_generation,
)
from plugin_bot.models import (
    CompilationResult,
    ErrorAnalysis,
    FixOutcome,
    FixResult,
    GenerationReport,
    GenerationRequest,
)
from plugin_bot.orchestrator.exceptions import GraphBuildError


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _fix_result(success: bool = True) -> FixResult:
    return FixResult(
        success=success,
        outcome=FixOutcome.SUCCESS if success else FixOutcome.EXHAUSTED,
        message="done",
        iterations=2,
        max_iterations_reached=not success,
        final_compilation_result=CompilationResult(
            success=success,
            message="m",
            artifact_path="/tmp/x.jar" if success else None,
        ),
    )


def _report(compiled: bool = True, fix_result: FixResult | None = None) -> GenerationReport:
    return GenerationReport(
        request=GenerationRequest(user_id="u", plugin_name="Greeter", requirements="r"),
        project_path="/tmp/generated/u/Greeter",
        compiled=compiled,
        fix_result=fix_result,
    )


# ---------------------------------------------------------------------------
# TestBuildParser
# ---------------------------------------------------------------------------

class TestBuildParser:
    def test_generate_defaults(self):
        args = build_parser().parse_args(["generate", "Greeter", "Greets players"])
        assert args.command == "generate"
        assert args.plugin_name == "Greeter"
        assert args.requirements == "Greets players"
        assert args.user_id == DEFAULT_USER_ID
        assert args.max_iterations == DEFAULT_GENERATE_ITERATIONS
        assert args.no_compile is False
        assert args.enhance_prompt is False
        assert args.build_timeout == DEFAULT_BUILD_TIMEOUT
        assert args.llm_provider is None

    def test_generate_all_flags(self):
        args = build_parser().parse_args([
            "generate", "Greeter", "r",
            "--user-id", "alice",
            "--max-iterations", "4",
            "--no-compile",
            "--enhance-prompt",
            "--workspace-dir", "/tmp/ws",
            "--model", "gpt-4o",
            "--llm-provider", "openai",
            "--llm-fallback-provider", "anthropic",
            "--allow-llm-fallback",
            "--build-timeout", "60",
            "--verbose",
            "--dry-run",
            "--output-json",
        ])
        assert args.user_id == "alice"
        assert args.max_iterations == 4
        assert args.no_compile is True
        assert args.llm_fallback_provider == "anthropic"
        assert args.allow_llm_fallback is True
        assert args.build_timeout == 60

    def test_fix_defaults(self):
        args = build_parser().parse_args(["fix", "alice", "Greeter"])
        assert args.user_id == "alice"
        assert args.max_iterations == DEFAULT_FIX_ITERATIONS

    def test_analyze(self):
        args = build_parser().parse_args(["analyze", "alice", "Greeter"])
        assert args.command == "analyze"
        assert not hasattr(args, "max_iterations")

    def test_command_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])

    def test_unknown_provider_rejected(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["analyze", "u", "p", "--llm-provider", "gemini"])

    def test_parser_no_api_key_flags(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["analyze", "u", "p", "--api-key", "sk-x"])


# ---------------------------------------------------------------------------
# TestBuildConfig
# ---------------------------------------------------------------------------

class TestBuildConfig:
    def test_environment_fallbacks(self, monkeypatch):
        monkeypatch.setenv("PLUGIN_BOT_WORKSPACE_DIR", "/srv/plugins")
        monkeypatch.setenv("PLUGIN_BOT_LLM_PROVIDER", "openrouter")
        config = build_config(build_parser().parse_args(["fix", "u", "Greeter"]))
        assert config["workspace_dir"] == "/srv/plugins"
        assert config["llm_provider"] == "openrouter"
        assert config["max_iterations"] == DEFAULT_FIX_ITERATIONS
        assert "compile" not in config

    def test_defaults_without_environment(self, monkeypatch):
        monkeypatch.delenv("PLUGIN_BOT_WORKSPACE_DIR", raising=False)
        monkeypatch.delenv("PLUGIN_BOT_LLM_PROVIDER", raising=False)
        config = build_config(build_parser().parse_args(["generate", "G", "r", "--no-compile"]))
        assert config["workspace_dir"] == DEFAULT_WORKSPACE_DIR
        assert config["llm_provider"] == "auto"
        assert config["compile"] is False


# ---------------------------------------------------------------------------
# TestDryRun
# ---------------------------------------------------------------------------

class TestDryRun:
    def test_dry_run_exits_zero(self):
        assert main(["generate", "Greeter", "r", "--dry-run"]) == EXIT_SUCCESS

    def test_dry_run_json_output(self, capsys):
        code = main(["fix", "alice", "Greeter", "--dry-run", "--output-json"])
        assert code == EXIT_SUCCESS
        data = json.loads(capsys.readouterr().out)
        assert data["command"] == "fix"
        assert data["user_id"] == "alice"
        assert not any("key" in k.lower() for k in data)

    def test_dry_run_does_not_build_workflow(self):
        with patch("plugin_bot.cli.main.create_workflow") as mock_create:
            main(["analyze", "u", "Greeter", "--dry-run"])
        mock_create.assert_not_called()


# ---------------------------------------------------------------------------
# TestCreateWorkflow
# ---------------------------------------------------------------------------

class TestCreateWorkflow:
    def test_wires_agents(self, monkeypatch, tmp_path):
        monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-ant-test")
        args = build_parser().parse_args([
            "fix", "u", "Greeter", "--workspace-dir", str(tmp_path), "--build-timeout", "30",
        ])
        with patch("plugin_bot.agents.model_client.ModelClient") as mock_client:
            workflow = create_workflow(args, build_config(args))

        config = mock_client.call_args.args[0]
        assert config.anthropic_api_key == "sk-ant-test"
        assert workflow.runner.timeout_seconds == 30
        assert workflow.store.workspace_dir == tmp_path

    def test_model_flag_overrides_every_role(self, tmp_path):
        args = build_parser().parse_args(["analyze", "u", "G", "--model", "m-1"])
        with patch("plugin_bot.agents.model_client.ModelClient") as mock_client:
            create_workflow(args, build_config(args))

        config = mock_client.call_args.args[0]
        assert config.generation_model == "m-1"
        assert config.fix_model == "m-1"
        assert config.enhancement_model == "m-1"


# ---------------------------------------------------------------------------
# TestOutputFormatting
# ---------------------------------------------------------------------------

class TestOutputFormatting:
    def test_format_result_json_valid(self):
        output = format_result_json({"fix": _fix_result(), "name": "Greeter", "none": None})
        data = json.loads(output)
        assert data["fix"]["outcome"] == "success"
        assert data["name"] == "Greeter"
        assert data["none"] is None

    def test_summarize_fix(self):
        summary = summarize_fix(_fix_result())
        assert summary["success"] is True
        assert summary["outcome"] == "success"
        assert summary["artifact_path"] == "/tmp/x.jar"

    def test_summarize_generation_with_fix(self):
        summary = summarize_generation(_report(compiled=False, fix_result=_fix_result(False)))
        assert summary["success"] is False
        assert summary["iterations"] == 2
        assert summary["fix_result"]["max_iterations_reached"] is True

    def test_summarize_generation_without_compile(self):
        summary = summarize_generation(_report(compiled=False))
        assert summary["success"] is True
        assert summary["files"] == []

    def test_summarize_analysis(self):
        summary = summarize_analysis(
            ErrorAnalysis(has_errors=True, error_summary="[ERROR] x", can_attempt_fix=True)
        )
        assert summary["success"] is False
        assert summary["can_attempt_fix"] is True


# ---------------------------------------------------------------------------
# TestRunCommand
# ---------------------------------------------------------------------------

class TestRunCommand:
    def _run(self, argv, workflow):
        args = build_parser().parse_args(argv)
        with patch("plugin_bot.cli.main.create_workflow", return_value=workflow):
            return run_command(args, build_config(args))

    def test_generate(self):
        workflow = MagicMock()
        workflow.generate_plugin.return_value = _report(fix_result=_fix_result())
        summary, code = self._run(["generate", "Greeter", "r", "--enhance-prompt"], workflow)

        assert code == EXIT_SUCCESS
        assert summary["compiled"] is True
        request = workflow.generate_plugin.call_args.args[0]
        assert request.plugin_name == "Greeter"
        assert request.max_iterations == DEFAULT_GENERATE_ITERATIONS
        assert workflow.generate_plugin.call_args.kwargs == {
            "compile_project": True,
            "enhance_prompt": True,
        }

    def test_fix_failure_exit_code(self):
        workflow = MagicMock()
        workflow.fix_plugin.return_value = _fix_result(success=False)
        _, code = self._run(["fix", "u", "Greeter", "--max-iterations", "2"], workflow)

        assert code == EXIT_FIX_FAILED
        workflow.fix_plugin.assert_called_once_with("u", "Greeter", 2)

    def test_analyze_clean(self):
        workflow = MagicMock()
        workflow.analyze.return_value = ErrorAnalysis(has_errors=False, error_summary="No errors")
        _, code = self._run(["analyze", "u", "Greeter"], workflow)
        assert code == EXIT_SUCCESS


# ---------------------------------------------------------------------------
# TestErrorHandling
# ---------------------------------------------------------------------------

class TestErrorHandling:
    @pytest.mark.parametrize("flag", ["--max-iterations", "--build-timeout"])
    def test_non_positive_values_rejected(self, flag):
        assert main(["fix", "u", "Greeter", flag, "0"]) == EXIT_INVALID_INPUT

    @pytest.mark.parametrize(
        "exc, expected",
        [
            (RequestValidationError("Plugin name is required"), EXIT_INVALID_INPUT),
            (ModelConfigError("No LLM provider configured"), EXIT_AGENT_ERROR),
            (GraphBuildError("broken"), EXIT_ORCHESTRATOR_ERROR),
            (KeyboardInterrupt(), EXIT_KEYBOARD_INTERRUPT),
            (RuntimeError("boom"), EXIT_UNEXPECTED),
        ],
    )
    def test_exit_codes(self, exc, expected):
        with patch("plugin_bot.cli.main.run_command", side_effect=exc):
            assert main(["analyze", "u", "Greeter"]) == expected

    def test_error_message_on_stderr(self, capsys):
        with patch("plugin_bot.cli.main.run_command", side_effect=ModelConfigError("no key")):
            main(["analyze", "u", "Greeter"])
        assert "Agent error: no key" in capsys.readouterr().err


# ---------------------------------------------------------------------------
# TestMainHappyPath
# ---------------------------------------------------------------------------

class TestMainHappyPath:
    def test_json_output(self, capsys):
        summary = {"success": True, "message": "ok", "iterations": 1}
        with patch("plugin_bot.cli.main.run_command", return_value=(summary, EXIT_SUCCESS)):
            code = main(["fix", "u", "Greeter", "--output-json"])

        assert code == EXIT_SUCCESS
        assert json.loads(capsys.readouterr().out) == summary

    def test_human_output(self, capsys):
        summary = {"success": False, "plugin_name": "Greeter", "error_summary": "[ERROR] x"}
        with patch("plugin_bot.cli.main.run_command", return_value=(summary, EXIT_FIX_FAILED)):
            code = main(["analyze", "u", "Greeter"])

        out = capsys.readouterr().out
        assert code == EXIT_FIX_FAILED
        assert "Success: no" in out
        assert "[ERROR] x" in out
