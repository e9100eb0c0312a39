#!/usr/bin/env python3
"""Check that every declared stack is deployed and publishes its outputs.

Steps
-----
1. Build the declaration list for the environment's revision.
2. For each stack, describe its CloudFormation stack and require a
   successful ``*_COMPLETE`` status (rollbacks and deletes count as failures).
3. Compare the stack's outputs with the CloudFormation output keys its
   template declares.
4. Emit a machine-readable summary and exit non-zero if anything is missing.
"""

from __future__ import annotations

import argparse
import json
import sys
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from infrastructure.catalog import cloudformation_stack_name, declare_stacks
from infrastructure.composition import StackInstance
from infrastructure.config.environments import get_environment_config

FAILED_MARKERS = ("ROLLBACK", "DELETE", "FAILED")


@dataclass
class StackCheck:
    name: str
    stack_id: str
    status: Optional[str] = None
    missing_outputs: List[str] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None and not self.missing_outputs and is_healthy(self.status)


def is_healthy(status: Optional[str]) -> bool:
    if not status or not status.endswith("_COMPLETE"):
        return False
    return not any(marker in status for marker in FAILED_MARKERS)


def expected_outputs(instance: StackInstance) -> List[str]:
    return [spec.cfn_output for spec in instance.descriptor.outputs if spec.cfn_output]


def check_stack(cfn_client: Any, environment: str, instance: StackInstance) -> StackCheck:
    check = StackCheck(name=instance.name, stack_id=cloudformation_stack_name(environment, instance.name))
    try:
        resp = cfn_client.describe_stacks(StackName=check.stack_id)
    except ClientError as exc:
        check.error = exc.response.get("Error", {}).get("Message", str(exc))
        return check

    stacks = resp.get("Stacks", [])
    if not stacks:
        check.error = "Stack not found"
        return check

    stack = stacks[0]
    check.status = stack.get("StackStatus")
    present = {output.get("OutputKey") for output in stack.get("Outputs", [])}
    check.missing_outputs = [key for key in expected_outputs(instance) if key not in present]
    return check


def validate(cfn_client: Any, environment: str, revision: Optional[str] = None) -> Dict[str, Any]:
    config = get_environment_config(environment)
    instances = declare_stacks(dict(config), revision)
    checks = [check_stack(cfn_client, environment, instance) for instance in instances]
    return {
        "environment": environment,
        "revision": revision or config.get("revision"),
        "succeeded": all(check.ok for check in checks),
        "stacks": [{**asdict(check), "ok": check.ok} for check in checks],
    }


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Validate deployed ECS blue/green stacks")
    parser.add_argument("--environment", "-e", default="dev", help="Target environment (dev|staging|prod)")
    parser.add_argument("--revision", "-r", help="Declaration sequence to validate (default: from config)")
    parser.add_argument("--region", help="AWS region (default: session or config region)")
    parser.add_argument("--output-json", default="stack_validation_summary.json", help="Summary JSON output path")
    args = parser.parse_args(argv)

    try:
        config = get_environment_config(args.environment)
        session = boto3.Session()
        region = args.region or session.region_name or config["region"]
        summary = validate(session.client("cloudformation", region_name=region), args.environment, args.revision)
    except (ValueError, BotoCoreError) as exc:
        print(json.dumps({"error": type(exc).__name__, "message": str(exc)}), file=sys.stderr)
        return 1

    payload = json.dumps(summary, indent=2, ensure_ascii=False)
    Path(args.output_json).write_text(payload + "\n", encoding="utf-8")
    print(payload)
    return 0 if summary["succeeded"] else 1


if __name__ == "__main__":
    sys.exit(main())
