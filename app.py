#!/usr/bin/env python3
"""
ECS Blue/Green Platform CDK App
Stacks are declared per revision and instantiated in dependency order.
"""

import sys

import aws_cdk as cdk

from infrastructure.cli import build_app

app = cdk.App()

# Environment / revision come from CDK context (-c environment=prod -c revision=bluegreen)
environment = app.node.try_get_context("environment") or "dev"
revision = app.node.try_get_context("revision")

summary = build_app(app, environment, revision)
if not summary.succeeded:
    print(summary.model_dump_json(indent=2), file=sys.stderr)
    sys.exit(1)

app.synth()
