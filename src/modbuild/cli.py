"""
Command-line interface for modbuild.

This module provides the `modbuild` CLI tool for inspecting the module build
plan (compile order, BMI files, header units) of a C++ modules project.
"""

import argparse
import logging
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from modbuild import __version__
from modbuild.build.build_context import BuildScope
from modbuild.build.fallback_scanner import ModuleScanError
from modbuild.build.module_cache import ModuleCaches
from modbuild.build.module_info import ModuleInfoError
from modbuild.build.module_sorter import CyclicModuleDependencyError
from modbuild.build.modules_support import plan_module_build
from modbuild.build.plan_display import render_plan
from modbuild.output import TimedLogger, init_timer, log_detail, log_error, log_header, set_verbose
from modbuild.toolchains import UnsupportedCompilerError

# Source extensions picked up when no sources are given explicitly
SOURCE_EXTENSIONS = (".mpp", ".mxx", ".cppm", ".ixx", ".cpp", ".cc", ".cxx")


@dataclass
class PlanArgs:
    """Arguments for the plan command."""

    project_dir: Path
    compiler: str
    name: Optional[str] = None
    build_dir: Optional[Path] = None
    sources: list[Path] = field(default_factory=list)
    include_dirs: list[Path] = field(default_factory=list)
    verbose: bool = False


def discover_sources(project_dir: Path) -> list[Path]:
    """Find module sources under <project_dir>/src, sorted for a stable batch order."""
    src_dir = project_dir / "src"
    if not src_dir.is_dir():
        return []
    return sorted(p.relative_to(project_dir) for p in src_dir.rglob("*") if p.suffix in SOURCE_EXTENSIONS)


def plan_command(args: PlanArgs) -> int:
    """Print the module build plan of a project.

    Examples:
        modbuild plan                          # Scan ./src with g++
        modbuild plan app --compiler clang++   # Use clang
        modbuild plan -s src/hello.mpp -s src/main.cpp -I include

    Returns:
        Process exit code
    """
    project_dir = args.project_dir.absolute()
    sources = args.sources or discover_sources(project_dir)
    scope = BuildScope(
        name=args.name or project_dir.name,
        project_dir=project_dir,
        build_dir=args.build_dir or project_dir / "build",
        compiler=args.compiler,
        include_dirs=tuple(args.include_dirs),
        module_sources=tuple(sources),
    )
    caches = ModuleCaches.for_scope(scope)

    try:
        with TimedLogger(f"Planning {len(sources)} module sources for {scope.name}", phase=(1, 1)):
            plan = plan_module_build(scope, caches)
    except (
        UnsupportedCompilerError,
        ModuleScanError,
        ModuleInfoError,
        CyclicModuleDependencyError,
    ) as e:
        log_error(str(e))
        return 1
    except OSError as e:
        log_error(f"{type(e).__name__}: {e}")
        return 1

    log_detail(
        f"{len(plan.compile_order)} units, {len(plan.bmi_files)} providing modules",
        verbose_only=True,
    )
    render_plan(plan)
    return 0


def main(argv: Optional[list[str]] = None) -> None:
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(
        prog="modbuild",
        description="Resolve compile order and artifacts of C++ module sources",
    )
    parser.add_argument("--version", action="version", version=f"modbuild {__version__}")
    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    plan_parser = subparsers.add_parser(
        "plan",
        help="Show the module build plan of a project",
    )
    plan_parser.add_argument(
        "project_dir",
        nargs="?",
        type=Path,
        default=Path.cwd(),
        help="Project directory (default: current directory)",
    )
    plan_parser.add_argument(
        "--compiler",
        default="g++",
        help="C++ compiler (default: g++)",
    )
    plan_parser.add_argument(
        "-n",
        "--name",
        default=None,
        help="Target name (default: project directory name)",
    )
    plan_parser.add_argument(
        "-b",
        "--build-dir",
        type=Path,
        default=None,
        help="Build directory (default: <project_dir>/build)",
    )
    plan_parser.add_argument(
        "-s",
        "--source",
        dest="sources",
        action="append",
        type=Path,
        default=[],
        help="Module source file, repeatable (default: all sources under src/)",
    )
    plan_parser.add_argument(
        "-I",
        "--include-dir",
        dest="include_dirs",
        action="append",
        type=Path,
        default=[],
        help="Include directory, repeatable",
    )
    plan_parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show verbose output",
    )

    parsed_args = parser.parse_args(argv)

    if not parsed_args.command:
        parser.print_help()
        sys.exit(0)

    if not parsed_args.project_dir.is_dir():
        log_error(f"Path is not a directory: {parsed_args.project_dir}")
        sys.exit(2)

    init_timer()
    set_verbose(parsed_args.verbose)
    logging.basicConfig(level=logging.DEBUG if parsed_args.verbose else logging.WARNING)
    log_header("modbuild", __version__)

    if parsed_args.command == "plan":
        args = PlanArgs(
            project_dir=parsed_args.project_dir,
            compiler=parsed_args.compiler,
            name=parsed_args.name,
            build_dir=parsed_args.build_dir,
            sources=parsed_args.sources,
            include_dirs=parsed_args.include_dirs,
            verbose=parsed_args.verbose,
        )
        sys.exit(plan_command(args))


if __name__ == "__main__":
    main()
