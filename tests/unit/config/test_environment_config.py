from __future__ import annotations

import pytest

from infrastructure.catalog import REVISIONS
from infrastructure.config.environments import get_environment_config

pytestmark = pytest.mark.unit

APPLICATION_KEYS = {
    "name",
    "ecr_repo_name",
    "pipeline_name",
    "github_repo",
    "deploy_application_name",
    "deployment_group_name",
    "build_project_name",
}


@pytest.mark.parametrize("environment", ["dev", "staging", "prod"])
def test_environment_configs_are_complete(environment) -> None:
    """
    Given: 각 환경 설정
    When: 필수 키 확인
    Then: 리전, 리비전, 애플리케이션 필수 필드가 모두 존재
    """
    config = get_environment_config(environment)

    assert config["region"]
    assert config["revision"] in REVISIONS
    assert config["applications"]
    for app in config["applications"]:
        assert APPLICATION_KEYS <= set(app), app.get("name")


@pytest.mark.parametrize("environment", ["dev", "staging", "prod"])
def test_application_names_are_unique(environment) -> None:
    apps = get_environment_config(environment)["applications"]

    for key in ("name", "ecr_repo_name", "pipeline_name", "build_project_name"):
        values = [app[key] for app in apps]
        assert len(values) == len(set(values)), key


def test_unknown_environment_rejected() -> None:
    with pytest.raises(ValueError, match="Unknown environment"):
        get_environment_config("qa")
