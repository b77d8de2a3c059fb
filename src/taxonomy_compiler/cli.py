"""Command-line interface (CLI) entrypoint.

Objective:
    Provide a human-friendly CLI wrapper around
    :class:`src.taxonomy_compiler.compiler.TaxonomyCompiler`.

Responsibilities:
    - Parse arguments (profile file, verticals, scope override, output mode).
    - Configure logging.
    - Invoke the compiler and print the label plan, the prompt or the full
      JSON bundle.

High-level call tree:
    - :func:`main`
        - :func:`setup_logging`
        - :func:`load_profile`
        - instantiate :class:`TaxonomyCompiler`
        - :meth:`TaxonomyCompiler.compile`
        - :func:`print_label_plan` / :func:`print_verticals`

Operational notes:
    - Logs go to stderr so ``--output json`` and ``--output prompt`` can be
      piped.
    - This module supports being run both as a package module
      (``python -m src.taxonomy_compiler.cli``) and as a script
      (``python src/taxonomy_compiler/cli.py``). The import fallback handles
      the script case.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

try:
    from .compiler import TaxonomyCompiler
    from .config import get_settings
    from .errors import CompilerError
    from .models import BusinessProfile, CompiledArtifacts, DepartmentScope
except ImportError:  # pragma: no cover
    src_root = Path(__file__).resolve().parents[1]
    if str(src_root) not in sys.path:
        sys.path.insert(0, str(src_root))

    from taxonomy_compiler.compiler import TaxonomyCompiler
    from taxonomy_compiler.config import get_settings
    from taxonomy_compiler.errors import CompilerError
    from taxonomy_compiler.models import BusinessProfile, CompiledArtifacts, DepartmentScope


def setup_logging(level: str = "INFO") -> None:
    """
    Configure logging for the application.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR).
    """
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[
            logging.StreamHandler(sys.stderr),
        ],
    )


def load_profile(
    profile_path: Optional[str], verticals: Optional[list[str]] = None
) -> BusinessProfile:
    """
    Build the business profile from a JSON file and/or CLI verticals.

    Verticals passed on the command line replace the file's
    ``business_types``.

    Args:
        profile_path: JSON file holding a business profile.
        verticals: Vertical ids/names from ``--vertical``.

    Returns:
        BusinessProfile: Parsed profile.

    Raises:
        OSError: If the file cannot be read.
        ValidationError: If the file is not a valid profile.
    """
    if profile_path:
        profile = BusinessProfile.model_validate_json(
            Path(profile_path).read_text(encoding="utf-8")
        )
    else:
        profile = BusinessProfile()

    if verticals:
        profile = profile.model_copy(update={"business_types": list(verticals)})
    return profile


def print_verticals(verticals: list[tuple[str, str]]) -> None:
    """Print available verticals as an aligned two-column list."""
    if not verticals:
        print("\nNo verticals available.")
        return

    width = max(len(vertical_id) for vertical_id, _ in verticals)
    print(f"\nAvailable verticals ({len(verticals)}):\n")
    for vertical_id, display_name in verticals:
        print(f"  {vertical_id.ljust(width)}  {display_name}")
    print()


def print_label_plan(artifacts: CompiledArtifacts, verbose: bool = False) -> None:
    """
    Print the compiled label plan to console.

    Output format:
        - One block per category with its color and subcategories.
        - The allowed categories and retained managers in a summary.
        - Label identifiers when ``verbose=True``.

    Args:
        artifacts: Compiled artifacts.
        verbose: If True, print label identifiers too.
    """
    plan = artifacts.label_plan

    print(f"\n{'='*60}")
    print(f"LABEL PLAN: {len(plan.nodes)} categories ({', '.join(artifacts.source_verticals)})")
    print(f"{'='*60}\n")

    for node in plan.nodes:
        color = f" [{node.color.background_color}]" if node.color else ""
        print(f"\n📁 {node.name}{color} ({len(node.children)} subcategories)")
        print("-" * 40)
        for child in node.children:
            print(f"  └ {child.name}")

    if verbose:
        print("\nLabel identifiers:")
        for path, key in zip(plan.paths(), plan.env_keys()):
            print(f"  {key} = {path}")

    managers = ", ".join(m.name for m in artifacts.manager_view) or "none"
    scope_note = " (out-of-scope fallback enabled)" if artifacts.out_of_scope_enabled else ""

    print(f"\n{'='*60}")
    print(f"ALLOWED: {', '.join(artifacts.allowed_categories)}{scope_note}")
    print(f"MANAGERS: {managers}")
    print(f"PROMPT: {len(artifacts.prompt_text)} characters")
    print(f"{'='*60}\n")


def main(args: Optional[list[str]] = None) -> int:
    """
    Main CLI entry point.

    This function is structured to be testable: pass an explicit ``args`` list
    instead of relying on ``sys.argv``.

    Args:
        args: Command line arguments (uses sys.argv if None).

    Returns:
        int: Exit code (0 for success, 1 for error).
    """
    parser = argparse.ArgumentParser(
        description="Taxonomy Compiler - mailbox labels and classification policy",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s --list-verticals                     Show available verticals
  %(prog)s --vertical electrician -t plumber    Compile two verticals
  %(prog)s --profile profile.json               Compile a business profile
  %(prog)s --profile profile.json --scope sales --output prompt
  %(prog)s --profile profile.json --output json > artifacts.json
        """,
    )

    parser.add_argument(
        "--profile",
        "-p",
        type=str,
        default=None,
        help="JSON file holding the business profile",
    )

    parser.add_argument(
        "--vertical",
        "-t",
        action="append",
        default=None,
        help="Vertical id or name (repeatable; overrides the profile's business types)",
    )

    parser.add_argument(
        "--scope",
        "-s",
        type=str,
        default=None,
        help="Department scope override: 'all' or comma-separated tags (e.g. 'sales,support')",
    )

    parser.add_argument(
        "--output",
        "-o",
        type=str,
        default="plan",
        choices=["plan", "prompt", "json"],
        help="What to print: label plan summary, prompt text, or full JSON bundle",
    )

    parser.add_argument(
        "--list-verticals",
        action="store_true",
        help="List available verticals and exit",
    )

    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose output",
    )

    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (defaults to the LOG_LEVEL setting)",
    )

    parsed_args = parser.parse_args(args)

    settings = get_settings()

    # Setup logging
    log_level = "DEBUG" if parsed_args.verbose else (parsed_args.log_level or settings.log_level)
    setup_logging(log_level)

    logger = logging.getLogger(__name__)

    try:
        compiler = TaxonomyCompiler.from_settings(settings)

        if parsed_args.list_verticals:
            print_verticals(compiler.list_verticals())
            return 0

        profile = load_profile(parsed_args.profile, parsed_args.vertical)
        if parsed_args.scope:
            profile = profile.model_copy(
                update={"department_scope": DepartmentScope(mode=parsed_args.scope)}
            )

        artifacts = compiler.compile(profile)

        if parsed_args.output == "prompt":
            print(artifacts.prompt_text)
        elif parsed_args.output == "json":
            print(artifacts.model_dump_json(indent=2))
        else:
            print_label_plan(artifacts, verbose=parsed_args.verbose)
        return 0

    except CompilerError as e:
        logger.error(f"Compile failed: {e.to_dict()}")
        print(f"\n❌ Error: {e}\n", file=sys.stderr)
        return 1
    except (OSError, ValidationError) as e:
        logger.error(f"Invalid profile: {e}")
        print(f"\n❌ Invalid profile: {e}\n", file=sys.stderr)
        return 1
    except Exception as e:
        logger.exception("Fatal error")
        print(f"\n❌ Error: {e}\n", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
