from __future__ import annotations

from typing import Any, List, Mapping

import pytest

from infrastructure.composition import (
    CallableProvisioner,
    CorrelationLengthMismatchError,
    DeploymentEnvironment,
    DryRunProvisioner,
    InvalidInputError,
    MissingInputError,
    Orchestrator,
    OutputRegistry,
    OutputSpec,
    ParamKind,
    ProvisioningError,
    StackDescriptor,
    StackState,
    build_graph,
    declare,
    ref,
    required,
)
from tests.fixtures.stack_builders import ALB, IAM, NET, RDS, SECRETS, net_alb, service_chain

pytestmark = pytest.mark.unit


def _recording_provisioner(calls: List[str]) -> CallableProvisioner:
    def _provision(descriptor: StackDescriptor, inputs: Mapping[str, Any], env: DeploymentEnvironment):
        calls.append(descriptor.name)
        return {name: f"{descriptor.name}:{name}" for name in descriptor.output_names}

    return CallableProvisioner(_provision)


def test_net_then_alb_end_to_end(deployment, dry_run) -> None:
    """
    Given: NetStack(출력 vpcId, ecsSgId)과 AlbStack(vpc=NetStack.vpcId)
    When: 오케스트레이터 실행
    Then: NetStack이 먼저 생성되고 AlbStack.vpc에 vpcId 값이 바인딩되며
          레지스트리에는 두 스택의 출력만 존재
    """
    graph = build_graph(net_alb())

    report = Orchestrator(dry_run, deployment).run(graph)

    assert report.order == ["NetStack", "AlbStack"]
    assert dry_run.provisioned == ["NetStack", "AlbStack"]
    assert set(report.registry.keys()) == {
        ("NetStack", "vpcId"),
        ("NetStack", "ecsSgId"),
        ("AlbStack", "targetGroupArn"),
        ("AlbStack", "dnsName"),
    }
    alb = graph.instance("AlbStack")
    assert alb.bound_inputs["vpc"] == report.registry.get("NetStack", "vpcId").value
    assert alb.bound_inputs["listenerPort"] == 80
    assert all(instance.state is StackState.PROVISIONED for instance in graph.nodes)


def test_environment_passed_to_every_stack(deployment, dry_run) -> None:
    Orchestrator(dry_run, deployment).run(build_graph(service_chain()))

    assert {env for _, _, env in dry_run.calls} == {deployment}


def test_environment_read_from_process_env() -> None:
    orchestrator = Orchestrator(DryRunProvisioner())

    assert orchestrator.environment == DeploymentEnvironment("111122223333", "ap-northeast-1")


def test_missing_environment_is_not_fatal(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("CDK_DEFAULT_ACCOUNT", raising=False)
    monkeypatch.delenv("CDK_DEFAULT_REGION", raising=False)
    provisioner = DryRunProvisioner()

    Orchestrator(provisioner).run(build_graph(net_alb()))

    assert provisioner.calls[0][2] == DeploymentEnvironment(None, None)


def test_missing_required_input_halts_before_provisioning(deployment) -> None:
    """
    Given: RdsStack의 필수 입력 dbSg가 미바인딩이고 기본값 없음
    When: 오케스트레이터 실행
    Then: MissingInputError(RdsStack, dbSg), 어떤 스택도 프로비저닝되지 않음
    """
    calls: List[str] = []
    decls = [declare(NET), declare(RDS, vpc=ref("NetStack", "vpcId")), declare(ALB, vpc=ref("NetStack", "vpcId"))]
    graph = build_graph(decls)

    with pytest.raises(MissingInputError) as excinfo:
        Orchestrator(_recording_provisioner(calls), deployment).run(graph)

    assert excinfo.value.stack == "RdsStack"
    assert excinfo.value.param == "dbSg"
    assert calls == []
    assert graph.instance("RdsStack").state is StackState.FAILED
    assert graph.instance("AlbStack").state is StackState.PENDING


def test_provisioner_failure_is_wrapped_and_halts(deployment) -> None:
    """
    Given: AlbStack 프로비저닝이 예외를 던짐
    When: 오케스트레이터 실행
    Then: ProvisioningError로 감싸지고 원인이 체인되며 이후 스택은 PENDING 유지
    """
    boom = RuntimeError("quota exceeded")
    provisioner = DryRunProvisioner(failures={"AlbStack": boom})
    graph = build_graph(service_chain())
    registry = OutputRegistry()

    with pytest.raises(ProvisioningError) as excinfo:
        Orchestrator(provisioner, deployment).run(graph, registry)

    err = excinfo.value
    assert err.stack == "AlbStack"
    assert err.cause is boom
    assert err.__cause__ is boom
    assert graph.instance("AlbStack").state is StackState.FAILED
    assert graph.instance("NetStack").state is StackState.PROVISIONED
    assert graph.instance("EcsStack").state is StackState.PENDING
    # No rollback: outputs recorded before the failure stay in the registry
    assert registry.is_provisioned("NetStack")
    assert registry.outputs_of("AlbStack") == {}


def test_missing_declared_output_fails_stack(deployment) -> None:
    provisioner = CallableProvisioner(lambda descriptor, inputs, env: {"vpcId": "vpc-1"})
    graph = build_graph([declare(NET)])

    with pytest.raises(ProvisioningError) as excinfo:
        Orchestrator(provisioner, deployment).run(graph)

    assert "ecsSgId" in str(excinfo.value)
    assert graph.instance("NetStack").state is StackState.FAILED


def test_undeclared_outputs_are_ignored(deployment) -> None:
    provisioner = CallableProvisioner(
        lambda descriptor, inputs, env: {"vpcId": "vpc-1", "ecsSgId": "sg-1", "extra": "x"}
    )

    report = Orchestrator(provisioner, deployment).run(build_graph([declare(NET)]))

    assert ("NetStack", "extra") not in report.registry
    assert len(report.registry) == 2


def test_idempotent_runs(deployment) -> None:
    """
    Given: 같은 그래프
    When: 새 레지스트리로 두 번 실행
    Then: 생성 순서와 바인딩 값이 동일
    """
    graph = build_graph(service_chain())
    orchestrator = Orchestrator(DryRunProvisioner(), deployment)

    first = orchestrator.run(graph, OutputRegistry())
    first_inputs = first.bound_inputs()
    second = orchestrator.run(graph, OutputRegistry())

    assert first.order == second.order
    assert first_inputs == second.bound_inputs()


def test_rerun_with_same_registry_starts_clean(deployment, registry) -> None:
    graph = build_graph(net_alb())
    orchestrator = Orchestrator(DryRunProvisioner(), deployment)

    orchestrator.run(graph, registry)
    orchestrator.run(graph, registry)

    assert len(registry) == 4


def test_defaults_fill_only_unbound_optionals(deployment, dry_run) -> None:
    """
    Given: 선택 입력 하나는 미바인딩, 하나는 리터럴로 바인딩
    When: 실행
    Then: 미바인딩 입력만 기본값으로 채워짐
    """
    decls = [
        declare(NET),
        declare(RDS, vpc=ref("NetStack", "vpcId"), dbSg=ref("NetStack", "ecsSgId"), instanceType=None),
        declare(ALB, vpc=ref("NetStack", "vpcId"), listenerPort=443),
    ]
    graph = build_graph(decls)

    Orchestrator(dry_run, deployment).run(graph)

    assert graph.instance("RdsStack").bound_inputs["instanceType"] == "t3.micro"
    assert graph.instance("AlbStack").bound_inputs["listenerPort"] == 443


def test_keyed_item_selection(deployment, dry_run) -> None:
    """
    Given: 앱별 시크릿 ARN 목록을 출력하는 스택과 인덱스로 하나를 선택하는 소비자
    When: 실행
    Then: 선택한 항목만 바인딩
    """
    consumer = StackDescriptor(name="Pipeline", inputs=(required("secretArn"),), outputs=(OutputSpec("name"),))
    decls = [
        declare(SECRETS, appNames=["customer-info", "fortune-telling"]),
        declare(consumer, secretArn=ref("SecretsStack", "secretArns", 1)),
    ]
    graph = build_graph(decls)

    Orchestrator(dry_run, deployment).run(graph)

    assert graph.instance("Pipeline").bound_inputs["secretArn"] == "${SecretsStack.secretArns[fortune-telling]}"


def test_out_of_range_item_is_invalid(deployment, dry_run) -> None:
    consumer = StackDescriptor(name="Pipeline", inputs=(required("secretArn"),), outputs=(OutputSpec("name"),))
    decls = [
        declare(SECRETS, appNames=["customer-info"]),
        declare(consumer, secretArn=ref("SecretsStack", "secretArns", 3)),
    ]
    graph = build_graph(decls)

    with pytest.raises(InvalidInputError):
        Orchestrator(dry_run, deployment).run(graph)

    assert graph.instance("Pipeline").state is StackState.FAILED


def test_correlation_rechecked_after_resolution(deployment, dry_run) -> None:
    """
    Given: appSecretArns가 앱 3개 분량의 참조 배열, ecrRepoNames는 2개
    When: 실행
    Then: 바인딩 시점에 CorrelationLengthMismatchError(lengths=(2, 3))
    """
    decls = [
        declare(SECRETS, appNames=["a", "b", "c"]),
        declare(IAM, ecrRepoNames=["a", "b"], appSecretArns=ref("SecretsStack", "secretArns")),
    ]
    graph = build_graph(decls)

    with pytest.raises(CorrelationLengthMismatchError) as excinfo:
        Orchestrator(dry_run, deployment).run(graph)

    assert excinfo.value.lengths == (2, 3)
    assert graph.instance("IamStack").state is StackState.FAILED


def test_resolved_list_kind_is_checked(deployment) -> None:
    producer = StackDescriptor(name="Names", outputs=(OutputSpec("value"),))
    consumer = StackDescriptor(name="Consumer", inputs=(required("names", ParamKind.LIST),))
    graph = build_graph([declare(producer), declare(consumer, names=ref("Names", "value"))])
    provisioner = CallableProvisioner(lambda d, i, e: {"value": "not-a-list"} if d.name == "Names" else {})

    with pytest.raises(InvalidInputError):
        Orchestrator(provisioner, deployment).run(graph)
