"""Command line interface for running and checking workflow definitions."""

import argparse
import asyncio
import sys
from pathlib import Path
from typing import List, Optional

from .config import (
    EngineConfig,
    LogLevel,
    get_development_config,
    get_production_config,
    get_testing_config,
    load_config,
)
from .core import WorkflowEngine, WorkflowEngineError, WorkflowGraph, load_definition, validate_definition
from .core.logging import get_logger, setup_logging
from .models import AuditReport, NodeKind, NodeStatus, WorkflowDefinition, WorkflowStatus
from .templates import TEMPLATES, get_template, list_templates

logger = get_logger(__name__)


def create_argument_parser() -> argparse.ArgumentParser:
    """Create command line argument parser."""
    parser = argparse.ArgumentParser(
        prog="workflow-engine",
        description="Step-gated workflow engine with audit and compliance reporting"
    )

    # Environment configuration
    parser.add_argument(
        "--env",
        choices=["development", "production", "testing"],
        help="Environment configuration preset"
    )

    parser.add_argument(
        "--config",
        help="Path to a .env configuration file"
    )

    # Logging configuration
    parser.add_argument(
        "--log-level",
        choices=[level.value for level in LogLevel],
        help="Logging level"
    )

    parser.add_argument(
        "--log-file",
        help="Path to log file"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    run_parser = subparsers.add_parser("run", help="Walk a workflow to completion and print its audit report")
    source = run_parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--file", help="Path to a workflow definition JSON file")
    source.add_argument("--template", choices=sorted(TEMPLATES), help="Built-in template to run")
    run_parser.add_argument(
        "--fail-criteria",
        action="store_true",
        help="Treat every validation criterion as failing"
    )

    subparsers.add_parser("templates", help="List the built-in workflow templates")

    validate_parser = subparsers.add_parser("validate", help="Validate a workflow definition file")
    validate_parser.add_argument("file", help="Path to a workflow definition JSON file")

    return parser


def load_configuration(args: argparse.Namespace) -> EngineConfig:
    """Load configuration based on command line arguments."""

    # Load environment-specific configuration
    if args.env == "development":
        config = get_development_config()
    elif args.env == "production":
        config = get_production_config()
    elif args.env == "testing":
        config = get_testing_config()
    else:
        # Load from config file or environment
        config = load_config(args.config)

    # Override with command line arguments
    if args.log_level:
        config.log_level = LogLevel(args.log_level)
    if args.log_file:
        config.log_file = args.log_file

    return config


async def walk_workflow(engine: WorkflowEngine, max_steps: Optional[int] = None) -> AuditReport:
    """
    Drive an engine from start to an end node along the first usable edge.

    At each node the first outgoing edge whose target has not been completed
    is followed. The walk stops at an end node, on a rejected transition, at a
    node without outgoing edges, or after ``max_steps`` navigations.

    Returns:
        AuditReport: Report generated once the walk stops
    """
    graph = engine.graph
    max_steps = max_steps if max_steps is not None else 2 * len(graph)

    await engine.start()
    for _ in range(max_steps):
        node = engine.current_node
        if node is None or engine.is_completed:
            break
        if node.kind == NodeKind.END:
            await engine.complete_node(node.id, {"completed_by": "cli"})
            break

        edges = graph.edges_from(node.id)
        if not edges:
            logger.warning(f"Node {node.id} has no outgoing edges; stopping")
            break
        pending = [edge for edge in edges if engine.node_status(edge.target) != NodeStatus.COMPLETED]
        edge = (pending or edges)[0]
        if not await engine.navigate_to_node(edge.target):
            logger.warning(f"Transition {edge.source} -> {edge.target} was rejected")
            break

    await engine.stop()
    return engine.generate_audit_report()


def run_workflow(definition: WorkflowDefinition, config: EngineConfig, fail_criteria: bool = False) -> AuditReport:
    """Run a definition with an evaluator that passes or fails every criterion."""
    engine = WorkflowEngine(
        definition,
        config=config,
        criterion_evaluator=lambda criterion: not fail_criteria,
    )
    return asyncio.run(walk_workflow(engine))


def show_templates():
    """Print the built-in templates."""
    print("Available workflow templates:")
    for name in list_templates():
        definition = get_template(name)
        level = definition.compliance_level.value if definition.compliance_level else "none"
        print(f"  {name}: {definition.name} ({len(definition.nodes)} nodes, compliance: {level})")
        print(f"    {definition.description}")


def validate_file(path: str) -> bool:
    """Validate a definition file and print the results."""
    graph: WorkflowGraph = load_definition(Path(path), validate=False)
    result = validate_definition(graph.definition)

    print(f"Workflow: {graph.name} ({graph.id})")
    for error in result.errors:
        print(f"  ERROR: {error}")
    for warning in result.warnings:
        print(f"  WARNING: {warning}")

    if result.is_valid:
        print("Workflow validation: PASSED")
    else:
        print("Workflow validation: FAILED")
    return result.is_valid


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the command line interface."""
    parser = create_argument_parser()
    args = parser.parse_args(argv)

    try:
        config = load_configuration(args)
        setup_logging(
            level=config.log_level.value,
            log_file=config.log_file,
            log_format=config.log_format,
            structured=config.log_structured,
            max_size=config.log_max_size,
            backup_count=config.log_backup_count,
        )

        if args.command == "run":
            definition = get_template(args.template) if args.template else load_definition(Path(args.file)).definition
            report = run_workflow(definition, config, fail_criteria=args.fail_criteria)
            print(report.model_dump_json(indent=2))
            return 0 if report.status == WorkflowStatus.COMPLETED else 1

        elif args.command == "templates":
            show_templates()
            return 0

        elif args.command == "validate":
            return 0 if validate_file(args.file) else 1

        else:
            parser.print_help()
            return 1

    except WorkflowEngineError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
