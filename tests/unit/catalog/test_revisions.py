from __future__ import annotations

import copy

import pytest

from infrastructure.catalog import (
    REVISIONS,
    TEMPLATES,
    cloudformation_stack_name,
    declare_stacks,
    numbered,
)
from infrastructure.catalog.descriptors import ALB_STACK, APPLICATIONS_GROUP, IAM_STACK
from infrastructure.composition import DryRunProvisioner, Orchestrator, StackState, build_graph
from infrastructure.config.environments import dev_config, get_environment_config

pytestmark = pytest.mark.unit


def _plan(config, revision, deployment):
    graph = build_graph(declare_stacks(config, revision))
    report = Orchestrator(DryRunProvisioner(), deployment).run(graph)
    return graph, report


@pytest.mark.parametrize("environment", ["dev", "staging", "prod"])
@pytest.mark.parametrize("revision", sorted(REVISIONS))
def test_every_revision_plans_cleanly(environment, revision, deployment) -> None:
    """
    Given: 환경 설정과 리비전 조합
    When: 드라이런 오케스트레이션
    Then: 모든 스택이 PROVISIONED, 생산자가 항상 먼저
    """
    graph, report = _plan(dict(get_environment_config(environment)), revision, deployment)

    assert all(instance.state is StackState.PROVISIONED for instance in graph.nodes)
    for producer, consumer in graph.edges:
        assert report.order.index(producer) < report.order.index(consumer)


def test_network_revision_stacks() -> None:
    names = [instance.name for instance in declare_stacks(dict(dev_config), "network")]

    assert names == ["NetStack", "VpceStack", "AlbStack"]


def test_multi_app_declares_per_application_stacks() -> None:
    """
    Given: 애플리케이션 2개(dev)
    When: multi-app 리비전 선언
    Then: 앱별 ALB/ECS/Build/Deploy/Pipeline 스택이 번호를 붙여 생성
    """
    names = [instance.name for instance in declare_stacks(dict(dev_config), "multi-app")]

    assert names == [
        "NetStack",
        "VpceStack",
        "AcmStack",
        "AlbStack",
        "Alb2Stack",
        "EcrStack",
        "RdsStack",
        "EcsStack",
        "Ecs2Stack",
        "ConnectionStack",
        "IamStack",
        "BuildStack",
        "Build2Stack",
        "DeployStack",
        "Deploy2Stack",
        "PipelineStack",
        "Pipeline2Stack",
    ]


def test_multi_app_binds_per_application_items(deployment) -> None:
    graph, _ = _plan(dict(dev_config), "multi-app", deployment)

    ecs2 = graph.instance("Ecs2Stack").bound_inputs
    assert ecs2["repository"] == "${EcrStack.repositories[fortune-telling/app]}"
    assert ecs2["target_group"] == "${Alb2Stack.target_group_blue}"
    assert ecs2["app_name"] == "fortune-telling"

    pipeline2 = graph.instance("Pipeline2Stack").bound_inputs
    assert pipeline2["db_secret_arn"] == "${RdsStack.app_secret_arns[fortune-telling]}"
    assert pipeline2["build_project_name"] == "${Build2Stack.project_name}"
    assert pipeline2["ecs_app_name"] == "${Deploy2Stack.application_name}"

    alb = graph.instance("AlbStack").bound_inputs
    alb2 = graph.instance("Alb2Stack").bound_inputs
    assert alb["certificate_arn"] == "${AcmStack.certificate_arn}"
    assert alb2["certificate_arn"] is None
    assert alb2["alb_sg"] == "${NetStack.alb_sgs[fortune-telling]}"


def test_iam_arrays_stay_in_lock_step(deployment) -> None:
    """
    Given: multi-app 리비전
    When: IamStack 입력 바인딩
    Then: applications 상관 그룹의 배열 길이가 모두 앱 수와 같음
    """
    graph, _ = _plan(dict(dev_config), "multi-app", deployment)
    bound = graph.instance("IamStack").bound_inputs

    group = IAM_STACK.correlation_groups()[APPLICATIONS_GROUP]
    assert {len(bound[name]) for name in group} == {len(dev_config["applications"])}
    assert bound["github_repos"][1] == {
        "owner": dev_config["github_owner"],
        "repo": "fortune-telling",
        "branches": ["main"],
    }


def test_bluegreen_without_https_skips_certificate() -> None:
    config = copy.deepcopy(dict(dev_config))
    config["applications"][0]["https"] = False

    names = [instance.name for instance in declare_stacks(config, "bluegreen")]

    assert "AcmStack" not in names
    assert names[-1] == "PipelineStack"


def test_revision_defaults_to_config() -> None:
    config = dict(dev_config, revision="foundation")

    names = [instance.name for instance in declare_stacks(config)]

    assert names[-1] == "BuildStack"


def test_unknown_revision_rejected() -> None:
    with pytest.raises(ValueError, match="Unknown revision"):
        declare_stacks(dict(dev_config), "serverless")


def test_no_applications_rejected() -> None:
    with pytest.raises(ValueError, match="no applications"):
        declare_stacks(dict(dev_config, applications=[]), "network")


def test_duplicate_application_names_rejected() -> None:
    """
    Given: 같은 name 을 가진 애플리케이션 두 개
    When: multi-app 리비전 선언
    Then: ALB 보안그룹 매핑이 겹치지 않도록 ValueError
    """
    app = dev_config["applications"][0]
    with pytest.raises(ValueError, match="Duplicate application name"):
        declare_stacks(dict(dev_config, applications=[app, dict(app)]), "multi-app")


def test_numbered_copies() -> None:
    assert numbered(ALB_STACK, 0) is ALB_STACK
    assert numbered(ALB_STACK, 1).name == "Alb2Stack"
    assert numbered(ALB_STACK, 2).template == "AlbStack"


def test_cloudformation_stack_name() -> None:
    assert cloudformation_stack_name("dev", "Alb2Stack") == "EcsDemo-dev-Alb2Stack"


def test_cfn_output_keys_unique_per_template() -> None:
    for descriptor in TEMPLATES.values():
        keys = [spec.cfn_output for spec in descriptor.outputs if spec.cfn_output]
        assert len(keys) == len(set(keys)), descriptor.name
