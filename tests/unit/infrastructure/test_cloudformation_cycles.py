"""Ensure synthesized CloudFormation templates have no circular dependencies.

The tests instantiate stacks with literal inputs and analyse the generated
CloudFormation template dependency graph (based on ``DependsOn``, ``Ref``, and
``Fn::GetAtt``). If a cycle is detected, the test fails with the offending path
so we can catch regressions early.
"""

from __future__ import annotations

from typing import Dict, Iterator, List, Set

import pytest
from aws_cdk import App, Environment, Stack
from aws_cdk.assertions import Template

from infrastructure.config.environments.dev import dev_config
from infrastructure.stacks.build_stack import BuildStack
from infrastructure.stacks.deploy_stack import DeployStack
from infrastructure.stacks.net_stack import NetStack
from infrastructure.stacks.pipeline_stack import PipelineStack
from infrastructure.stacks.rds_stack import RdsStack
from infrastructure.stacks.vpce_stack import VpceStack

ACCOUNT = "111122223333"
ENV = Environment(account=ACCOUNT, region="ap-northeast-1")


def _role(name: str) -> str:
    return f"arn:aws:iam::{ACCOUNT}:role/{name}"


def _collect_refs(value: object) -> Iterator[str]:
    """Yield logical IDs referenced via Ref/GetAtt inside a CFN structure."""

    if isinstance(value, dict):
        if set(value.keys()) == {"Ref"}:
            target = value["Ref"]
            if isinstance(target, str):
                yield target
        elif "Fn::GetAtt" in value:
            target = value["Fn::GetAtt"]
            if isinstance(target, list) and target:
                logical_id = target[0]
            elif isinstance(target, str):
                logical_id = target.split(".", 1)[0]
            else:
                logical_id = None
            if isinstance(logical_id, str):
                yield logical_id
        for nested in value.values():
            yield from _collect_refs(nested)
    elif isinstance(value, list):
        for item in value:
            yield from _collect_refs(item)


def _build_dependency_graph(template_dict: Dict[str, object]) -> Dict[str, Set[str]]:
    resources = template_dict.get("Resources", {})
    graph: Dict[str, Set[str]] = {name: set() for name in resources}

    for name, definition in resources.items():
        if not isinstance(definition, dict):
            continue

        deps: Set[str] = set()

        depends_on = definition.get("DependsOn")
        if isinstance(depends_on, str):
            deps.add(depends_on)
        elif isinstance(depends_on, list):
            deps.update(dep for dep in depends_on if isinstance(dep, str))

        for key in ("Properties", "Metadata"):
            section = definition.get(key)
            if section is not None:
                deps.update(_collect_refs(section))

        graph[name] = {dep for dep in deps if dep in resources and dep != name}

    return graph


def _detect_cycles(graph: Dict[str, Set[str]]) -> List[List[str]]:
    visited: Set[str] = set()
    active: Set[str] = set()
    path: List[str] = []
    cycles: List[List[str]] = []

    def dfs(node: str) -> None:
        if node in active:
            cycle_start = path.index(node)
            cycles.append(path[cycle_start:] + [node])
            return
        if node in visited:
            return

        visited.add(node)
        active.add(node)
        path.append(node)

        for neighbour in graph.get(node, ()):  # iterate dependencies
            dfs(neighbour)

        path.pop()
        active.remove(node)

    for resource in graph:
        if resource not in visited:
            dfs(resource)

    return cycles


def _assert_no_cycles(stack: Stack) -> None:
    template = Template.from_stack(stack).to_json()
    graph = _build_dependency_graph(template)
    cycles = _detect_cycles(graph)
    if cycles:
        readable = ", ".join(" -> ".join(cycle) for cycle in cycles)
        pytest.fail(f"Detected CloudFormation dependency cycle(s): {readable}")


def _create_app_with_network() -> tuple[App, NetStack]:
    app = App()
    net = NetStack(app, "NetStack", environment="dev", config=dev_config, env=ENV, app_names=["customer-info"])
    return app, net


def test_net_stack_has_no_cycles() -> None:
    app, net = _create_app_with_network()
    _assert_no_cycles(net)


def test_vpce_stack_has_no_cycles() -> None:
    app, net = _create_app_with_network()
    vpce = VpceStack(
        app,
        "VpceStack",
        environment="dev",
        config=dev_config,
        env=ENV,
        vpc=net.vpc,
        vpce_sg=net.vpce_sg,
        jump_sg=net.jump_sg,
    )
    _assert_no_cycles(vpce)


def test_rds_stack_has_no_cycles() -> None:
    app, net = _create_app_with_network()
    rds = RdsStack(
        app,
        "RdsStack",
        environment="dev",
        config=dev_config,
        env=ENV,
        vpc=net.vpc,
        db_sg=net.db_sg,
        app_names=["customer-info", "fortune-telling"],
    )
    _assert_no_cycles(rds)


def test_deploy_stack_has_no_cycles() -> None:
    deploy = DeployStack(
        App(),
        "DeployStack",
        environment="dev",
        config=dev_config,
        env=ENV,
        cluster_name="customer-info-cluster",
        service_name="customer-info-service",
        prod_listener_arn="arn:aws:elasticloadbalancing:ap-northeast-1:111122223333:listener/app/alb/1/2",
        test_listener_arn="arn:aws:elasticloadbalancing:ap-northeast-1:111122223333:listener/app/alb/1/3",
        tg_blue_name="tg-blue",
        tg_green_name="tg-green",
        code_deploy_role_arn=_role("CodeDeployRole"),
        application_name="CustomerInfoEcsApp",
        deployment_group_name="CustomerInfoDG",
    )
    _assert_no_cycles(deploy)


def test_pipeline_stack_has_no_cycles() -> None:
    pipeline = PipelineStack(
        App(),
        "PipelineStack",
        environment="dev",
        config=dev_config,
        env=ENV,
        pipeline_name="CustomerInfoPipeline",
        code_build_role_arn=_role("CodeBuildRole"),
        code_deploy_role_arn=_role("CodeDeployRole"),
        code_pipeline_role_arn=_role("CodePipelineRole"),
        ecs_task_execution_role_arn=_role("EcsTaskExecutionRole"),
        build_project_name="customer-info-app",
        github_connection_arn="arn:aws:codestar-connections:ap-northeast-1:111122223333:connection/abc",
        github_owner="example-org",
        github_repo="customer-info",
        ecr_repo_name="customer-info/app",
        ecs_app_name="CustomerInfoEcsApp",
        ecs_deployment_group_name="CustomerInfoDG",
    )
    _assert_no_cycles(pipeline)

    # Task role falls back to the execution role when none is given
    template = Template.from_stack(pipeline).to_json()
    (pipeline_resource,) = [
        resource for resource in template["Resources"].values() if resource["Type"] == "AWS::CodePipeline::Pipeline"
    ]
    build_action = pipeline_resource["Properties"]["Stages"][1]["Actions"][0]
    variables = build_action["Configuration"]["EnvironmentVariables"]
    assert '"name":"TASK_ROLE_ARN"' in variables
    assert _role("EcsTaskExecutionRole") in variables


def test_literal_role_arn_must_be_well_formed() -> None:
    """
    Given: 형식이 잘못된 리터럴 역할 ARN
    When: BuildStack 생성
    Then: 합성 전에 ValueError
    """
    with pytest.raises(ValueError, match="code_build_role_arn is invalid"):
        BuildStack(
            App(),
            "BuildStack",
            environment="dev",
            config=dev_config,
            env=ENV,
            code_build_role_arn="arn:aws:iam::123:user/not-a-role",
            ecr_repo_name="customer-info/app",
            project_name="customer-info-app",
        )
