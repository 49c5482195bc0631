"""Command-line interface for daisy-graph."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from daisy_graph.builder import build_graph
from daisy_graph.compile import GenerationResult, generate
from daisy_graph.errors import BuildError
from daisy_graph.models import BLOCK_SIZES, GenerateOptions, PatchDescriptor, TargetDescriptor
from daisy_graph.normalize import normalize_target
from daisy_graph.project import run_make, write_project
from daisy_graph.validate import GraphValidationError, validate_graph
from daisy_graph.visualize import graph_to_dot, graph_to_dot_file


def _load_json(path: str) -> Any:
    return json.loads(Path(path).read_text())


def _load_target(path: str) -> TargetDescriptor:
    """Load and parse a target JSON file."""
    return TargetDescriptor.model_validate(_load_json(path))


def _load_patch(path: str) -> PatchDescriptor:
    """Load a patch descriptor, accepting an exported ``description.json`` too."""
    data = _load_json(path)
    if "meta" in data or "externalDataRefs" in data:
        return PatchDescriptor.from_description(data)
    return PatchDescriptor.model_validate(data)


def _options(args: argparse.Namespace) -> GenerateOptions:
    return GenerateOptions(
        samplerate=args.samplerate,
        blocksize=args.blocksize,
        boost=args.boost,
        fastmath=args.fastmath,
        nooled=args.nooled,
        midi=args.midi,
    )


def _report(diagnostics: list[GraphValidationError]) -> bool:
    """Print diagnostics to stderr; return True if any is an error."""
    for diag in diagnostics:
        prefix = "warning" if diag.severity == "warning" else "error"
        print(f"{prefix}: {diag}", file=sys.stderr)
    return any(d.severity == "error" for d in diagnostics)


def _generate(args: argparse.Namespace) -> GenerationResult:
    target = _load_target(args.target)
    patches = [_load_patch(p) for p in args.patches]
    result = generate(target, patches, _options(args))
    _report(result.diagnostics)
    return result


# ---------------------------------------------------------------------------
# Subcommands
# ---------------------------------------------------------------------------


def _cmd_generate(args: argparse.Namespace) -> int:
    result = _generate(args)
    if args.output:
        cpp_path, makefile_path = write_project(result, args.output, args.libdaisy, args.rnbo)
        print(f"wrote {cpp_path}")
        print(f"wrote {makefile_path}")
    else:
        sys.stdout.write(result.source)
    return 0


def _cmd_build(args: argparse.Namespace) -> int:
    result = _generate(args)
    cpp_path, _makefile = write_project(result, args.output, args.libdaisy, args.rnbo)
    print(f"wrote {cpp_path}")
    run_make(args.output, upload=args.upload)
    print(f"built {result.build_name} for {result.target}")
    if args.upload:
        print("flashed")
    return 0


def _cmd_validate(args: argparse.Namespace) -> int:
    hardware = normalize_target(_load_target(args.target))
    diagnostics: list[GraphValidationError] = []
    for path in args.patches:
        graph = build_graph(hardware, _load_patch(path), diagnostics)
        diagnostics.extend(validate_graph(graph))

    has_errors = _report(diagnostics)
    if has_errors:
        return 1
    if diagnostics:
        print("valid (with warnings)")
    else:
        print("valid")
    return 0


def _cmd_dot(args: argparse.Namespace) -> int:
    hardware = normalize_target(_load_target(args.target))
    graph = build_graph(hardware, _load_patch(args.patch))
    if args.output:
        print(f"wrote {graph_to_dot_file(graph, args.output)}")
    else:
        sys.stdout.write(graph_to_dot(graph))
    return 0


def _add_generate_options(p: argparse.ArgumentParser) -> None:
    p.add_argument("target", help="Target JSON file")
    p.add_argument("patches", nargs="+", help="Patch JSON file(s), one per app")
    p.add_argument("--samplerate", type=int, choices=(32, 48, 96), default=48, help="kHz")
    p.add_argument("--blocksize", type=int, choices=BLOCK_SIZES, default=48)
    p.add_argument("--boost", action="store_true", help="Run the CPU at 480MHz")
    p.add_argument("--fastmath", action="store_true", help="Use approximate math functions")
    p.add_argument("--nooled", action="store_true", help="Disable the display")
    p.add_argument("--midi", choices=("none", "usb", "uart"), default="none")
    p.add_argument("--libdaisy", default="libdaisy", help="libDaisy directory")
    p.add_argument("--rnbo", help="RNBO C++ library directory")


def main(argv: list[str] | None = None) -> int:
    """Entry point for the daisy-graph CLI."""
    parser = argparse.ArgumentParser(
        prog="daisy-graph",
        description="Generate, build, validate, and visualize Daisy firmware for RNBO patches.",
    )
    sub = parser.add_subparsers(dest="command")

    # generate
    p_generate = sub.add_parser("generate", help="Generate C++ source")
    _add_generate_options(p_generate)
    p_generate.add_argument("-o", "--output", help="Build directory (cpp + Makefile)")

    # build
    p_build = sub.add_parser("build", help="Generate and compile with make")
    _add_generate_options(p_build)
    p_build.add_argument("-o", "--output", required=True, help="Build directory")
    p_build.add_argument("--upload", action="store_true", help="Flash over DFU after building")

    # validate
    p_validate = sub.add_parser("validate", help="Validate target and patch descriptors")
    p_validate.add_argument("target", help="Target JSON file")
    p_validate.add_argument("patches", nargs="+", help="Patch JSON file(s)")

    # dot
    p_dot = sub.add_parser("dot", help="Generate DOT visualization")
    p_dot.add_argument("target", help="Target JSON file")
    p_dot.add_argument("patch", help="Patch JSON file")
    p_dot.add_argument("-o", "--output", help="Output directory")

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help(sys.stderr)
        return 1

    try:
        if args.command == "generate":
            return _cmd_generate(args)
        elif args.command == "build":
            return _cmd_build(args)
        elif args.command == "validate":
            return _cmd_validate(args)
        elif args.command == "dot":
            return _cmd_dot(args)
    except FileNotFoundError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    except json.JSONDecodeError as e:
        print(f"error: invalid JSON: {e}", file=sys.stderr)
        return 1
    except ValidationError as e:
        print(f"error: invalid descriptor: {e}", file=sys.stderr)
        return 1
    except ValueError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    except BuildError as e:
        print(f"error: {e}", file=sys.stderr)
        if e.output:
            print(e.output, file=sys.stderr)
        return 1

    return 0  # pragma: no cover


if __name__ == "__main__":
    sys.exit(main())
