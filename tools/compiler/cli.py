# SPDX-License-Identifier: MIT
"""
FAF Compiler CLI

Command-line interface for compiling, validating and verifying .faf
project-context documents.

Usage:
    python -m tools.compiler.cli compile <file>
    python -m tools.compiler.cli validate <file>
    python -m tools.compiler.cli verify <file> <checksum>
    python -m tools.compiler.cli parse <file>
    python -m tools.compiler.cli discover <dir>
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from collections.abc import Mapping
from dataclasses import replace
from pathlib import Path
from typing import Any, List, Optional, Set

from .compiler import CompileResult, FafCompiler
from .config import CompilerConfig, license_key_from_env
from .discovery import DiscoveryProvider
from .license import LicenseAuthority
from .parser import DocumentError, DocumentReadError, find_context_file, load_document
from .validator import ValidationResult, UnknownSchemaError, validate_document

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def format_compile_result(result: CompileResult, capped: Optional[str] = None) -> str:
    """
    Format a compile result for display.

    Args:
        result: The compile result to format
        capped: Optional license line to append

    Returns:
        Formatted string for display
    """
    lines: List[str] = []

    lines.append("VALID" if result.valid else "INVALID")
    lines.append(f"  Score: {result.score}% ({result.filled_slots}/{result.total_slots} slots)")
    lines.append(f"  Checksum: {result.checksum}")
    if capped:
        lines.append(f"  {capped}")

    lines.append("  Breakdown:")
    for name, bucket in result.breakdown.items():
        lines.append(f"    {name:<16} {bucket.filled}/{bucket.total}")

    for fact in result.discovered:
        lines.append(f"  Discovered {fact.key} = {fact.value} ({fact.source})")

    if result.errors:
        lines.append(f"  Errors: {len(result.errors)}")
        for d in result.errors:
            lines.append(f"    - [{d.path}] {d.message}")

    if result.warnings:
        lines.append(f"  Warnings: {len(result.warnings)}")
        for d in result.warnings:
            lines.append(f"    - [{d.path}] {d.message}")

    if result.trace:
        lines.append("  Trace:")
        for p in result.trace:
            lines.append(f"    {p.name:<16} {p.duration_ms:.3f}ms")

    return "\n".join(lines)


def format_validation_result(result: ValidationResult) -> str:
    """Format a validation result for display."""
    lines: List[str] = []

    lines.append("VALID" if result.valid else "INVALID")
    lines.append(f"  Schema: {result.schema_version}")
    lines.append(
        f"  Required fields: {result.required_fields_found}/{result.required_fields_total}"
    )
    lines.append(f"  Core sections found: {result.sections_found}")

    if result.errors:
        lines.append(f"  Errors: {len(result.errors)}")
        for d in result.errors:
            lines.append(f"    - [{d.path}] {d.message}")

    if result.warnings:
        lines.append(f"  Warnings: {len(result.warnings)}")
        for d in result.warnings:
            lines.append(f"    - [{d.path}] {d.message}")

    return "\n".join(lines)


def resolve_document_path(path: str) -> Path:
    """
    Accept either a .faf file or a project directory holding one.

    Raises:
        DocumentReadError: If a directory contains no context file
    """
    target = Path(path)
    if target.is_dir():
        found = find_context_file(target)
        if found is None:
            raise DocumentReadError(target, "no .faf file found in directory")
        return found
    return target


def to_json_compatible(value: Any, _active: Optional[Set[int]] = None) -> Any:
    """
    Convert parsed YAML into something json.dumps accepts.

    Mapping keys become strings; self-referencing aliases raise ValueError.
    """
    if not isinstance(value, (Mapping, list, tuple)):
        return value
    active = _active if _active is not None else set()
    if id(value) in active:
        raise ValueError("Circular reference detected")
    active.add(id(value))
    try:
        if isinstance(value, Mapping):
            return {str(k): to_json_compatible(v, active) for k, v in value.items()}
        return [to_json_compatible(v, active) for v in value]
    finally:
        active.discard(id(value))


def load_config(args: argparse.Namespace) -> CompilerConfig:
    config = CompilerConfig.from_env()
    if getattr(args, "no_discovery", False):
        config = replace(config, discovery_enabled=False)
    return config


def cmd_compile(args: argparse.Namespace) -> int:
    """
    Compile a .faf document and report its score.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for valid, 1 for invalid or unreadable)
    """
    try:
        compiler = FafCompiler(load_config(args))
    except UnknownSchemaError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    try:
        path = resolve_document_path(args.file)
        if args.trace:
            result = compiler.compile_with_trace(path, project_root=args.project_root)
        else:
            result = compiler.compile(path, project_root=args.project_root)
    except DocumentError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    license_key = args.license_key or license_key_from_env()
    capped_line = None
    capped_score = None
    if license_key:
        authority = LicenseAuthority()
        info = authority.validate_license(license_key)
        capped_score = authority.cap_score(result.score, info)
        capped_line = f"{authority.license_message(info)}: {capped_score}%"

    if args.json:
        output = result.to_dict()
        if capped_score is not None:
            output["capped_score"] = capped_score
        print(json.dumps(output, indent=2))
    else:
        print(format_compile_result(result, capped_line))

    return 0 if result.valid else 1


def cmd_validate(args: argparse.Namespace) -> int:
    """
    Validate a .faf document against the schema.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for valid, 1 for invalid)
    """
    try:
        document = load_document(resolve_document_path(args.file))
    except DocumentError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    try:
        result = validate_document(document, load_config(args).schema_version)
    except UnknownSchemaError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if args.json:
        print(json.dumps(result.to_dict(), indent=2))
    else:
        print(format_validation_result(result))

    return 0 if result.valid else 1


def cmd_verify(args: argparse.Namespace) -> int:
    """
    Check a .faf document against a previously recorded checksum.

    Returns:
        Exit code (0 when the checksum matches, 1 otherwise)
    """
    try:
        compiler = FafCompiler(load_config(args))
    except UnknownSchemaError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    try:
        path = resolve_document_path(args.file)
    except DocumentError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if compiler.verify(path, args.checksum, project_root=args.project_root):
        print("VERIFIED")
        return 0
    print("MISMATCH")
    return 1


def cmd_parse(args: argparse.Namespace) -> int:
    """
    Parse and display a .faf document structure.

    Returns:
        Exit code (0 for success, 1 for failure)
    """
    try:
        document = load_document(resolve_document_path(args.file))
    except DocumentError as e:
        print(f"Parse error: {e}", file=sys.stderr)
        return 1

    try:
        output = json.dumps(to_json_compatible(document.data), indent=2, default=str)
    except ValueError as e:
        print(f"Parse error: {e}", file=sys.stderr)
        return 1
    print(output)
    return 0


def cmd_discover(args: argparse.Namespace) -> int:
    """
    Run discovery against a project directory and print the facts.

    Returns:
        Exit code (always 0; an empty tree simply yields no facts)
    """
    config = CompilerConfig.from_env()
    provider = DiscoveryProvider(
        max_workers=config.discovery_max_workers,
        timeout=config.discovery_timeout,
        max_bytes=config.discovery_max_bytes,
    )
    facts = provider.discover(args.directory)

    if args.json:
        print(json.dumps([f.to_dict() for f in facts], indent=2))
    else:
        if not facts:
            print("No facts discovered")
        for fact in facts:
            print(f"{fact.key} = {fact.value} ({fact.source})")
    return 0


def build_parser() -> argparse.ArgumentParser:
    """
    Build the argument parser for the CLI.

    Returns:
        Configured argument parser
    """
    parser = argparse.ArgumentParser(
        prog="faf-compile",
        description="FAF project-context compiler and scorer",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # compile command
    compile_parser = subparsers.add_parser(
        "compile",
        help="Compile and score a .faf document",
    )
    compile_parser.add_argument("file", help="Path to the .faf document or its project directory")
    compile_parser.add_argument("--json", action="store_true", help="Output results as JSON")
    compile_parser.add_argument(
        "--trace",
        action="store_true",
        help="Record per-pass timing",
    )
    compile_parser.add_argument(
        "--no-discovery",
        action="store_true",
        help="Do not back-fill slots from the project tree",
    )
    compile_parser.add_argument(
        "--project-root",
        default=None,
        help="Directory to run discovery against (default: the document's directory)",
    )
    compile_parser.add_argument(
        "--license-key",
        default=None,
        help="License key used to cap the displayed score (or FAF_LICENSE_KEY)",
    )
    compile_parser.set_defaults(func=cmd_compile)

    # validate command
    validate_parser = subparsers.add_parser(
        "validate",
        help="Validate a .faf document against the schema",
    )
    validate_parser.add_argument("file", help="Path to the .faf document or its project directory")
    validate_parser.add_argument("--json", action="store_true", help="Output results as JSON")
    validate_parser.set_defaults(func=cmd_validate)

    # verify command
    verify_parser = subparsers.add_parser(
        "verify",
        help="Check a document against a recorded checksum",
    )
    verify_parser.add_argument("file", help="Path to the .faf document or its project directory")
    verify_parser.add_argument("checksum", help="Previously recorded checksum")
    verify_parser.add_argument(
        "--no-discovery",
        action="store_true",
        help="Do not back-fill slots from the project tree",
    )
    verify_parser.add_argument(
        "--project-root",
        default=None,
        help="Directory to run discovery against (default: the document's directory)",
    )
    verify_parser.set_defaults(func=cmd_verify)

    # parse command
    parse_parser = subparsers.add_parser(
        "parse",
        help="Parse and display document structure",
    )
    parse_parser.add_argument("file", help="Path to the .faf document or its project directory")
    parse_parser.set_defaults(func=cmd_parse)

    # discover command
    discover_parser = subparsers.add_parser(
        "discover",
        help="Show facts discovered in a project tree",
    )
    discover_parser.add_argument("directory", help="Project directory")
    discover_parser.add_argument("--json", action="store_true", help="Output results as JSON")
    discover_parser.set_defaults(func=cmd_discover)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point for the CLI.

    Args:
        argv: Command-line arguments (defaults to sys.argv)

    Returns:
        Exit code
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format=LOG_FORMAT,
    )

    if hasattr(args, "func"):
        return args.func(args)

    parser.print_help()
    return 1


if __name__ == "__main__":
    sys.exit(main())
