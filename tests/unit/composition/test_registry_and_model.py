from __future__ import annotations

from types import MappingProxyType

import pytest

from infrastructure.composition import (
    DeploymentEnvironment,
    DuplicateOutputError,
    OutputRegistry,
    OutputSpec,
    ParamKind,
    ParamSpec,
    ResourceHandle,
    StackDescriptor,
    StackState,
    UnresolvedOutputError,
    declare,
    optional,
    ref,
    required,
)
from tests.fixtures.stack_builders import ALB, IAM, NET

pytestmark = pytest.mark.unit


def _handle(stack: str, output: str, value: object = "v") -> ResourceHandle:
    return ResourceHandle(stack_name=stack, output_name=output, value=value)


def test_put_rejects_duplicate_key(registry: OutputRegistry) -> None:
    """
    Given: 이미 기록된 (NetStack, vpcId)
    When: 같은 키로 다시 put
    Then: DuplicateOutputError, 기존 값 유지
    """
    registry.put("NetStack", "vpcId", _handle("NetStack", "vpcId", "vpc-1"))

    with pytest.raises(DuplicateOutputError) as excinfo:
        registry.put("NetStack", "vpcId", _handle("NetStack", "vpcId", "vpc-2"))

    assert excinfo.value.to_dict() == {
        "error": "DuplicateOutputError",
        "message": "Output NetStack.vpcId is already recorded",
        "stack": "NetStack",
        "output": "vpcId",
    }
    registry.mark_provisioned("NetStack")
    assert registry.get("NetStack", "vpcId").value == "vpc-1"


def test_get_requires_provisioned_producer(registry: OutputRegistry) -> None:
    """
    Given: 출력은 기록됐지만 생산자가 아직 PROVISIONED 아님
    When: get
    Then: UnresolvedOutputError
    """
    registry.put("NetStack", "vpcId", _handle("NetStack", "vpcId"))

    with pytest.raises(UnresolvedOutputError):
        registry.get("NetStack", "vpcId")

    registry.mark_provisioned("NetStack")
    assert registry.get("NetStack", "vpcId").stack_name == "NetStack"

    with pytest.raises(UnresolvedOutputError):
        registry.get("NetStack", "subnetIds")


def test_put_rejects_mismatched_handle(registry: OutputRegistry) -> None:
    with pytest.raises(ValueError):
        registry.put("NetStack", "vpcId", _handle("AlbStack", "vpcId"))


def test_clear_and_views(registry: OutputRegistry) -> None:
    registry.put("NetStack", "vpcId", _handle("NetStack", "vpcId", "vpc-1"))
    registry.mark_provisioned("NetStack")

    assert ("NetStack", "vpcId") in registry
    assert list(registry) == [("NetStack", "vpcId")]
    assert registry.snapshot() == {"NetStack.vpcId": "vpc-1"}
    assert set(registry.outputs_of("NetStack")) == {"vpcId"}

    registry.clear()

    assert len(registry) == 0
    assert not registry.is_provisioned("NetStack")


def test_resource_handle_freezes_payload() -> None:
    handle = _handle("RdsStack", "secrets", {"customer-info": ["arn:a"], "other": ["arn:b"]})

    assert isinstance(handle.value, MappingProxyType)
    assert handle.value["customer-info"] == ("arn:a",)
    with pytest.raises(TypeError):
        handle.value["new"] = ()  # type: ignore[index]
    assert handle.key == ("RdsStack", "secrets")


def test_resource_handle_freezes_nested_tuples() -> None:
    handle = _handle("IamStack", "grants", (["a"], {"k": "v"}, {"x"}))

    assert handle.value[0] == ("a",)
    assert isinstance(handle.value[1], MappingProxyType)
    assert handle.value[2] == frozenset({"x"})
    with pytest.raises((TypeError, AttributeError)):
        handle.value[0].append("b")  # type: ignore[union-attr]
    with pytest.raises(TypeError):
        handle.value[1]["k"] = "w"  # type: ignore[index]
    with pytest.raises(AttributeError):
        handle.value[2].add("y")  # type: ignore[union-attr]


def test_param_spec_rules() -> None:
    """
    Given: 기본값이 있는 필수 파라미터 / 리스트가 아닌 상관 파라미터
    When: ParamSpec 생성
    Then: ValueError
    """
    with pytest.raises(ValueError):
        ParamSpec("vpc", required=True, default="x")
    with pytest.raises(ValueError):
        ParamSpec("names", kind=ParamKind.SCALAR, correlation_group="apps")

    spec = optional("names", ["a"], kind=ParamKind.LIST)
    assert spec.default == ("a",)


def test_descriptor_views() -> None:
    assert [p.name for p in ALB.required_inputs] == ["vpc"]
    assert [p.name for p in ALB.optional_inputs] == ["listenerPort"]
    assert NET.output_names == ("vpcId", "ecsSgId")
    assert IAM.correlation_groups() == {"apps": ("ecrRepoNames", "appSecretArns")}


def test_descriptor_rejects_duplicates_and_bad_keys() -> None:
    with pytest.raises(ValueError):
        StackDescriptor(name="X", inputs=(required("a"), required("a")))
    with pytest.raises(ValueError):
        StackDescriptor(name="X", outputs=(OutputSpec("o", ParamKind.LIST, keyed_by="missing"),))


def test_named_copy_keeps_template() -> None:
    copy = ALB.named("Alb2Stack")

    assert copy.name == "Alb2Stack"
    assert copy.template == "AlbStack"
    assert copy.inputs == ALB.inputs


def test_state_transitions() -> None:
    """
    Given: PENDING 인스턴스
    When: 허용/비허용 전이
    Then: 종료 상태에서는 재시도(전이) 불가
    """
    instance = declare(NET)
    instance.transition(StackState.RESOLVING)
    instance.transition(StackState.PROVISIONED)

    with pytest.raises(ValueError):
        instance.transition(StackState.RESOLVING)

    instance.reset()
    assert instance.state is StackState.PENDING
    with pytest.raises(ValueError):
        instance.transition(StackState.PROVISIONED)


def test_references_are_found_in_nested_bindings() -> None:
    instance = declare(
        IAM,
        ecrRepoNames=["a"],
        appSecretArns=[ref("RdsStack", "app_secret_arns", 0)],
    )

    assert [(param, str(found)) for param, found in instance.references()] == [
        ("appSecretArns", "RdsStack.app_secret_arns[0]")
    ]


def test_bindings_are_read_only() -> None:
    instance = declare(NET)

    with pytest.raises(TypeError):
        instance.bindings["vpc"] = "x"  # type: ignore[index]


def test_deployment_environment_from_env() -> None:
    assert DeploymentEnvironment.from_env({"CDK_DEFAULT_ACCOUNT": "123456789012"}) == DeploymentEnvironment(
        account="123456789012", region=None
    )
    assert DeploymentEnvironment.from_env({"CDK_DEFAULT_REGION": " "}).region is None
