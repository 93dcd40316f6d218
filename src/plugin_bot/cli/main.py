"""CLI entry point for the plugin bot."""
import argparse
from dotenv import load_dotenv
import json
import logging
import os
import sys
import traceback

from plugin_bot.agents.exceptions import AgentError, RequestValidationError
from plugin_bot.orchestrator.exceptions import OrchestratorError

load_dotenv()

# Exit codes
EXIT_SUCCESS = 0
EXIT_INVALID_INPUT = 1
EXIT_AGENT_ERROR = 2
EXIT_ORCHESTRATOR_ERROR = 3
EXIT_FIX_FAILED = 4
EXIT_UNEXPECTED = 5
EXIT_KEYBOARD_INTERRUPT = 130

# Defaults
DEFAULT_GENERATE_ITERATIONS = 3
DEFAULT_FIX_ITERATIONS = 5
DEFAULT_BUILD_TIMEOUT = 120
DEFAULT_WORKSPACE_DIR = "generated"
DEFAULT_USER_ID = "local"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

# Safe keys allowed in config output (no secrets)
_SAFE_CONFIG_KEYS = frozenset({
    "command", "plugin_name", "user_id", "max_iterations", "compile",
    "enhance_prompt", "workspace_dir", "model", "llm_provider",
    "llm_fallback_provider", "allow_llm_fallback", "build_timeout",
    "verbose", "dry_run", "output_json",
})


def _add_shared_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--workspace-dir",
        type=str,
        default=None,
        help=(
            "Directory holding generated projects "
            f"(default: $PLUGIN_BOT_WORKSPACE_DIR or {DEFAULT_WORKSPACE_DIR})"
        ),
    )
    parser.add_argument(
        "--model",
        type=str,
        default=None,
        help="Model ID to use (default: $PLUGIN_BOT_MODEL or the provider default)",
    )
    parser.add_argument(
        "--llm-provider",
        type=str,
        default=None,
        choices=("auto", "anthropic", "openai", "openrouter"),
        help="LLM provider: auto (default), anthropic, openai or openrouter",
    )
    parser.add_argument(
        "--llm-fallback-provider",
        type=str,
        default="",
        choices=("", "anthropic", "openai", "openrouter"),
        help="Optional fallback provider when the primary provider fails",
    )
    parser.add_argument(
        "--allow-llm-fallback",
        action="store_true",
        help="Allow falling back to --llm-fallback-provider when the primary fails",
    )
    parser.add_argument(
        "--build-timeout",
        type=int,
        default=DEFAULT_BUILD_TIMEOUT,
        help=f"Maven build timeout in seconds (default: {DEFAULT_BUILD_TIMEOUT})",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable verbose output")
    parser.add_argument(
        "--dry-run", action="store_true", help="Print config and exit without running"
    )
    parser.add_argument(
        "--output-json", action="store_true", help="Output results as JSON"
    )


def build_parser() -> argparse.ArgumentParser:
    """Build and return the argument parser."""
    parser = argparse.ArgumentParser(
        prog="plugin-bot",
        description="Generate Spigot plugins with an LLM and heal them until they compile",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    generate = subparsers.add_parser("generate", help="Generate, build and fix a plugin")
    generate.add_argument("plugin_name", type=str, help="Plugin name")
    generate.add_argument("requirements", type=str, help="What the plugin should do")
    generate.add_argument(
        "--user-id",
        type=str,
        default=DEFAULT_USER_ID,
        help=f"Owner of the generated project (default: {DEFAULT_USER_ID})",
    )
    generate.add_argument(
        "--max-iterations",
        type=int,
        default=DEFAULT_GENERATE_ITERATIONS,
        help=f"Maximum build attempts (default: {DEFAULT_GENERATE_ITERATIONS})",
    )
    generate.add_argument(
        "--no-compile",
        action="store_true",
        help="Write the project without building it",
    )
    generate.add_argument(
        "--enhance-prompt",
        action="store_true",
        help="Expand the requirements with the model before generating",
    )
    _add_shared_arguments(generate)

    fix = subparsers.add_parser("fix", help="Build and fix an existing plugin")
    fix.add_argument("user_id", type=str, help="Owner of the project")
    fix.add_argument("plugin_name", type=str, help="Plugin name")
    fix.add_argument(
        "--max-iterations",
        type=int,
        default=DEFAULT_FIX_ITERATIONS,
        help=f"Maximum build attempts (default: {DEFAULT_FIX_ITERATIONS})",
    )
    _add_shared_arguments(fix)

    analyze = subparsers.add_parser("analyze", help="Build once and summarize errors")
    analyze.add_argument("user_id", type=str, help="Owner of the project")
    analyze.add_argument("plugin_name", type=str, help="Plugin name")
    _add_shared_arguments(analyze)

    return parser


def build_config(args: argparse.Namespace) -> dict:
    """Collect the resolved run configuration from parsed arguments."""
    config = {
        "command": args.command,
        "plugin_name": args.plugin_name,
        "user_id": args.user_id,
        "workspace_dir": (
            args.workspace_dir
            or os.getenv("PLUGIN_BOT_WORKSPACE_DIR")
            or DEFAULT_WORKSPACE_DIR
        ),
        "model": args.model or os.getenv("PLUGIN_BOT_MODEL") or "default",
        "llm_provider": args.llm_provider or os.getenv("PLUGIN_BOT_LLM_PROVIDER") or "auto",
        "llm_fallback_provider": args.llm_fallback_provider,
        "allow_llm_fallback": args.allow_llm_fallback,
        "build_timeout": args.build_timeout,
        "verbose": args.verbose,
        "dry_run": args.dry_run,
        "output_json": args.output_json,
    }
    if args.command in ("generate", "fix"):
        config["max_iterations"] = args.max_iterations
    if args.command == "generate":
        config["compile"] = not args.no_compile
        config["enhance_prompt"] = args.enhance_prompt
    return config


def create_workflow(args: argparse.Namespace, config: dict):
    """Create the workflow and its agents from CLI arguments.

    Agent imports are deferred to avoid loading the model SDKs and langgraph
    for --help and --dry-run paths.

    Args:
        args: Parsed CLI arguments.
        config: Resolved configuration from build_config().

    Returns:
        PluginWorkflow wired to a ModelClient built from the environment.

    Raises:
        ModelConfigError: If no usable provider is configured.
    """
    from plugin_bot.agents.build_runner import MavenBuildRunner
    from plugin_bot.agents.fix_planner import FixPlanner
    from plugin_bot.agents.generator import PluginGenerator
    from plugin_bot.agents.model_client import ModelClient, ModelConfig
    from plugin_bot.agents.project_store import ProjectStore
    from plugin_bot.orchestrator.workflow import PluginWorkflow

    overrides = {
        "provider": args.llm_provider,
        "fallback_provider": args.llm_fallback_provider or None,
        "allow_fallback": args.allow_llm_fallback,
    }
    if args.model:
        overrides.update(
            generation_model=args.model,
            fix_model=args.model,
            enhancement_model=args.model,
        )
    client = ModelClient(ModelConfig.from_env(**overrides))

    return PluginWorkflow(
        generator=PluginGenerator(client),
        planner=FixPlanner(client),
        store=ProjectStore(config["workspace_dir"]),
        runner=MavenBuildRunner(timeout_seconds=args.build_timeout),
    )


def format_result_json(result: dict) -> str:
    """Serialize result dict to JSON string.

    Calls .model_dump(mode="json") on Pydantic model values; anything else
    that is not JSON-native falls back to str().
    """

    def _serialize(obj):
        if obj is None:
            return None
        if hasattr(obj, "model_dump"):
            return obj.model_dump(mode="json")
        return obj

    prepared = {k: _serialize(v) for k, v in result.items()}
    return json.dumps(prepared, indent=2, default=str)


def summarize_fix(fix_result) -> dict:
    return {
        "success": fix_result.success,
        "outcome": fix_result.outcome.value,
        "message": fix_result.message,
        "iterations": fix_result.iterations,
        "max_iterations_reached": fix_result.max_iterations_reached,
        "operations_applied": fix_result.operations_applied,
        "artifact_path": fix_result.artifact_path,
        "original_errors": fix_result.original_errors,
    }


def summarize_generation(report) -> dict:
    summary = {
        "success": report.compiled or report.fix_result is None,
        "plugin_name": report.request.plugin_name,
        "project_path": report.project_path,
        "reused_existing": report.reused_existing,
        "compiled": report.compiled,
        "artifact_path": report.artifact_path,
        "files": report.project.file_paths() if report.project else [],
        "iterations": 0,
    }
    if report.fix_result is not None:
        summary["iterations"] = report.fix_result.iterations
        summary["fix_result"] = summarize_fix(report.fix_result)
    return summary


def summarize_analysis(analysis) -> dict:
    return {
        "success": not analysis.has_errors,
        "has_errors": analysis.has_errors,
        "error_summary": analysis.error_summary,
        "can_attempt_fix": analysis.can_attempt_fix,
    }


def print_result_human(summary: dict) -> None:
    """Print a result summary in human-readable format."""
    print(f"\n{'='*60}")
    print("Plugin Bot Results")
    print(f"{'='*60}")

    print(f"\nSuccess: {'yes' if summary.get('success') else 'no'}")
    for key in ("plugin_name", "project_path", "message", "iterations", "artifact_path"):
        if summary.get(key) not in (None, ""):
            print(f"{key.replace('_', ' ').capitalize()}: {summary[key]}")

    files = summary.get("files") or []
    if files:
        print(f"\nFiles ({len(files)}):")
        for path in files:
            print(f"  - {path}")

    fix = summary.get("fix_result")
    if fix:
        print(f"\nFix session: {fix['message']} ({fix['iterations']} build(s))")

    if summary.get("error_summary"):
        print(f"\nErrors:\n{summary['error_summary']}")

    print(f"\n{'='*60}")


def print_config_human(config: dict) -> None:
    """Print configuration in human-readable format.

    Only prints keys in the safe allowlist to prevent secret leakage.
    """
    print("\nConfiguration:")
    print(f"{'='*40}")
    for key, value in config.items():
        if key in _SAFE_CONFIG_KEYS:
            print(f"  {key}: {value}")
    print(f"{'='*40}")


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format=LOG_FORMAT,
    )


def _handle_error(label: str, exc: BaseException, verbose: bool, exit_code: int) -> int:
    """Print error message to stderr and return the exit code."""
    print(f"{label}: {exc}", file=sys.stderr)
    if verbose:
        traceback.print_exc(file=sys.stderr)
    return exit_code


def run_command(args: argparse.Namespace, config: dict) -> tuple[dict, int]:
    """Run the selected subcommand.

    Returns:
        (summary dict, exit code)
    """
    from plugin_bot.models import GenerationRequest

    workflow = create_workflow(args, config)

    if args.command == "generate":
        report = workflow.generate_plugin(
            GenerationRequest(
                user_id=args.user_id,
                plugin_name=args.plugin_name,
                requirements=args.requirements,
                max_iterations=args.max_iterations,
            ),
            compile_project=not args.no_compile,
            enhance_prompt=args.enhance_prompt,
        )
        summary = summarize_generation(report)
    elif args.command == "fix":
        summary = summarize_fix(
            workflow.fix_plugin(args.user_id, args.plugin_name, args.max_iterations)
        )
    else:
        summary = summarize_analysis(workflow.analyze(args.user_id, args.plugin_name))

    return summary, EXIT_SUCCESS if summary["success"] else EXIT_FIX_FAILED


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point.

    Args:
        argv: Command-line arguments (defaults to sys.argv[1:]).

    Returns:
        Exit code integer.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    if getattr(args, "max_iterations", 1) < 1:
        print("Error: --max-iterations must be at least 1.", file=sys.stderr)
        return EXIT_INVALID_INPUT
    if args.build_timeout < 1:
        print("Error: --build-timeout must be at least 1 second.", file=sys.stderr)
        return EXIT_INVALID_INPUT

    config = build_config(args)

    if args.dry_run:
        safe = {k: v for k, v in config.items() if k in _SAFE_CONFIG_KEYS}
        if args.output_json:
            print(json.dumps(safe, indent=2))
        else:
            print_config_human(config)
        return EXIT_SUCCESS

    configure_logging(args.verbose)

    try:
        summary, exit_code = run_command(args, config)

        if args.output_json:
            print(format_result_json(summary))
        else:
            print_result_human(summary)

        return exit_code

    except RequestValidationError as exc:
        return _handle_error("Invalid request", exc, args.verbose, EXIT_INVALID_INPUT)

    except AgentError as exc:
        return _handle_error("Agent error", exc, args.verbose, EXIT_AGENT_ERROR)

    except OrchestratorError as exc:
        return _handle_error("Orchestrator error", exc, args.verbose, EXIT_ORCHESTRATOR_ERROR)

    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        return EXIT_KEYBOARD_INTERRUPT

    except Exception as exc:
        return _handle_error("Unexpected error", exc, args.verbose, EXIT_UNEXPECTED)


if __name__ == "__main__":
    sys.exit(main())
