import os
import sys
from pathlib import Path
from typing import Iterator

import pytest

# Ensure project root is on sys.path so 'infrastructure' and 'tests.fixtures' import
_repo_root = Path(__file__).resolve().parents[1]
_repo_root_str = str(_repo_root)
if _repo_root_str not in sys.path:
    sys.path.insert(0, _repo_root_str)

from infrastructure.composition import DeploymentEnvironment, DryRunProvisioner, OutputRegistry  # noqa: E402

pytest_plugins = [
    "tests.fixtures.stack_builders",
]

TEST_ACCOUNT = "111122223333"
TEST_REGION = "ap-northeast-1"


@pytest.fixture(autouse=True)
def aws_env(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Pin account/region for CDK and moto, and clear cross-test env leaks.

    Provides dummy credentials so botocore signing doesn't fail under moto.
    """
    monkeypatch.setenv("AWS_REGION", os.environ.get("AWS_REGION", "us-east-1"))
    monkeypatch.setenv("AWS_DEFAULT_REGION", os.environ.get("AWS_DEFAULT_REGION", "us-east-1"))
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_SESSION_TOKEN", "testing")
    monkeypatch.setenv("CDK_DEFAULT_ACCOUNT", TEST_ACCOUNT)
    monkeypatch.setenv("CDK_DEFAULT_REGION", TEST_REGION)

    # OIDC provider lookups fall back to this variable
    monkeypatch.delenv("GITHUB_OIDC_PROVIDER_ARN", raising=False)
    yield


@pytest.fixture
def deployment() -> DeploymentEnvironment:
    return DeploymentEnvironment(account=TEST_ACCOUNT, region=TEST_REGION)


@pytest.fixture
def dry_run() -> DryRunProvisioner:
    return DryRunProvisioner()


@pytest.fixture
def registry() -> OutputRegistry:
    return OutputRegistry()
