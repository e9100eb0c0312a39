#!/usr/bin/env python3
"""Deployment script for the ECS blue/green CDK application."""

import argparse
import os
import shlex
import subprocess
import sys
from typing import List, Mapping, Optional, Sequence

from infrastructure.catalog import REVISIONS, cloudformation_stack_name, declare_stacks
from infrastructure.config.environments import get_environment_config


def run_command(
    command: Sequence[str], *, check: bool = True, env: Optional[Mapping[str, str]] = None
) -> subprocess.CompletedProcess[str]:
    """Execute a subprocess without shell interpolation."""

    printable = " ".join(shlex.quote(part) for part in command)
    print(f"Running: {printable}")

    result = subprocess.run(command, capture_output=True, text=True, env=env, check=False)

    if check and result.returncode != 0:
        print(f"Command failed with return code {result.returncode}")
        if result.stdout:
            print(f"stdout: {result.stdout}")
        if result.stderr:
            print(f"stderr: {result.stderr}")
        sys.exit(result.returncode)

    return result


def context_args(environment: str, revision: Optional[str]) -> List[str]:
    args = ["--context", f"environment={environment}"]
    if revision:
        args.extend(["--context", f"revision={revision}"])
    return args


def resolve_stacks(environment: str, revision: Optional[str], stacks: Optional[str]) -> List[str]:
    """Map short stack names (``NetStack Alb2Stack``) to CloudFormation stack ids.

    Unknown names are rejected before cdk runs.
    """
    if not stacks:
        return ["--all"]
    config = get_environment_config(environment)
    declared = {instance.name for instance in declare_stacks(dict(config), revision)}
    selected = []
    for name in shlex.split(stacks):
        if name not in declared:
            raise ValueError(f"Stack '{name}' is not declared in revision {revision or config.get('revision')}")
        selected.append(cloudformation_stack_name(environment, name))
    return selected


def deploy_stacks(environment: str, revision: Optional[str] = None, stacks: Optional[str] = None) -> None:
    """Deploy CDK stacks to the specified environment."""
    print(f"Deploying to environment: {environment} (revision: {revision or 'config default'})")

    config = get_environment_config(environment)
    exec_env = {**os.environ}
    exec_env.setdefault("CDK_DEFAULT_REGION", config["region"])

    # Bootstrap CDK if needed
    print("Checking CDK bootstrap status...")
    run_command(
        ["cdk", "bootstrap", *context_args(environment, revision)],
        check=False,
        env=exec_env,
    )

    deploy_cmd = ["cdk", "deploy", *resolve_stacks(environment, revision, stacks)]
    deploy_cmd.extend([*context_args(environment, revision), "--require-approval", "never"])

    run_command(deploy_cmd, env=exec_env)
    print(f"Deployment to {environment} completed successfully!")


def main() -> None:
    """Main deployment function."""
    parser = argparse.ArgumentParser(description="Deploy ECS blue/green CDK stacks")
    parser.add_argument(
        "--environment", "-e", choices=["dev", "staging", "prod"], default="dev", help="Target environment"
    )
    parser.add_argument("--revision", "-r", choices=sorted(REVISIONS), help="Declaration sequence to deploy")
    parser.add_argument("--stacks", "-s", help="Specific stacks to deploy (space-separated short names)")
    parser.add_argument("--skip-install", action="store_true", help="Do not reinstall the project first")

    args = parser.parse_args()

    if not args.skip_install:
        print("Installing Python dependencies...")
        run_command([sys.executable, "-m", "pip", "install", "-e", "."])

    deploy_stacks(args.environment, args.revision, args.stacks)


if __name__ == "__main__":
    main()
