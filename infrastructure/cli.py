"""Command line entry point: ``stack-graph plan`` and ``stack-graph synth``.

``plan`` walks the stack graph with placeholder outputs and prints the run
summary; ``synth`` provisions real CDK stacks into an App and writes the
cloud assembly. Both exit 0 on success and 1 with a JSON diagnostic on
stderr otherwise.
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Optional, Sequence

import aws_cdk as cdk

from infrastructure.catalog import DEFAULT_REVISION, REVISIONS, declare_stacks
from infrastructure.composition import (
    CompositionGraph,
    DeploymentEnvironment,
    DryRunProvisioner,
    OrchestrationError,
    OrchestrationReport,
    Orchestrator,
    Provisioner,
    build_graph,
)
from infrastructure.composition.report import RunSummary
from infrastructure.config.environments import get_environment_config
from infrastructure.config.types import EnvironmentConfig

ENVIRONMENTS = ("dev", "staging", "prod")


def resolve_deployment(config: EnvironmentConfig) -> DeploymentEnvironment:
    """Account/region from the process environment, falling back to config."""
    detected = DeploymentEnvironment.from_env()
    return DeploymentEnvironment(
        account=detected.account or config.get("account_id"),
        region=detected.region or config.get("region"),
    )


def resolve_revision(config: EnvironmentConfig, revision: Optional[str] = None) -> str:
    return revision or config.get("revision") or DEFAULT_REVISION


def tag_app(app: cdk.App, environment: str, revision: str, config: EnvironmentConfig) -> None:
    cdk.Tags.of(app).add("Environment", environment)
    cdk.Tags.of(app).add("Revision", revision)
    cdk.Tags.of(app).add("ManagedBy", "CDK")
    for key, value in (config.get("tags") or {}).items():
        cdk.Tags.of(app).add(key, value)


def run_revision(
    provisioner: Provisioner,
    environment: str,
    revision: Optional[str] = None,
) -> RunSummary:
    """Declare, validate and instantiate every stack of ``revision``.

    Orchestration failures do not propagate; they come back as a summary
    with ``succeeded`` false and the structured error attached.
    """
    config = get_environment_config(environment)
    revision_name = resolve_revision(config, revision)
    deployment = resolve_deployment(config)
    instances = declare_stacks(dict(config), revision_name)

    graph: Optional[CompositionGraph] = None
    report: Optional[OrchestrationReport] = None
    error: Optional[OrchestrationError] = None
    try:
        graph = build_graph(instances)
        report = Orchestrator(provisioner, deployment).run(graph)
    except OrchestrationError as exc:
        error = exc

    if report is not None:
        order = report.order
    elif graph is not None:
        order = [instance.name for instance in graph.topological_order()]
    else:
        order = []
    return RunSummary.build(
        environment=environment,
        revision=revision_name,
        deployment=deployment,
        graph=graph,
        instances=instances,
        order=order,
        run_id=report.run_id if report is not None else None,
        error=error,
    )


def build_app(app: cdk.App, environment: str, revision: Optional[str] = None) -> RunSummary:
    """Provision every stack of ``revision`` into ``app`` and tag it."""
    # Imported lazily so ``plan`` never loads the stack classes
    from infrastructure.stacks.provisioner import CdkProvisioner

    config = get_environment_config(environment)
    summary = run_revision(CdkProvisioner(app, environment, config), environment, revision)
    if summary.succeeded:
        tag_app(app, environment, summary.revision, config)
    return summary


def _parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="stack-graph", description="Plan or synthesize the ECS blue/green stacks")
    subparsers = parser.add_subparsers(dest="command", required=True)
    for name, help_text in (
        ("plan", "Resolve the stack graph with placeholder outputs"),
        ("synth", "Provision CDK stacks and write the cloud assembly"),
    ):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument("--environment", "-e", choices=ENVIRONMENTS, default="dev", help="Target environment")
        sub.add_argument("--revision", "-r", choices=sorted(REVISIONS), help="Declaration sequence to use")
        sub.add_argument("--output-json", help="Also write the run summary to this path")
        if name == "synth":
            sub.add_argument("--outdir", help="Cloud assembly output directory (default: cdk.out)")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = _parser().parse_args(argv)
    try:
        if args.command == "synth":
            app = cdk.App(outdir=args.outdir) if args.outdir else cdk.App()
            summary = build_app(app, args.environment, args.revision)
            if summary.succeeded:
                app.synth()
        else:
            summary = run_revision(DryRunProvisioner(), args.environment, args.revision)
    except (ValueError, RuntimeError) as exc:
        # jsii surfaces synth-time CDK errors as RuntimeError
        print(json.dumps({"error": type(exc).__name__, "message": str(exc)}, indent=2), file=sys.stderr)
        return 1

    payload = summary.model_dump_json(indent=2)
    if args.output_json:
        Path(args.output_json).write_text(payload + "\n", encoding="utf-8")
    if not summary.succeeded:
        print(payload, file=sys.stderr)
        return 1
    print(payload)
    return 0


if __name__ == "__main__":
    sys.exit(main())
