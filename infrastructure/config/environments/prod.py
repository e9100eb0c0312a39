"""Production environment configuration."""

import os

prod_config = {
    "account_id": os.environ.get("CDK_DEFAULT_ACCOUNT"),
    "region": os.environ.get("CDK_DEFAULT_REGION", "ap-northeast-1"),
    "revision": "multi-app",
    "vpc_cidr": "10.2.0.0/16",
    "max_azs": 2,
    "domain_name": "www.example.com",
    "hosted_zone_name": "example.com",
    "hosted_zone_id": os.environ.get("HOSTED_ZONE_ID", ""),
    "github_owner": os.environ.get("GITHUB_OWNER", "example-org"),
    "github_connection_name": "CustomerInfoGitHubProd",
    "db_instance_type": os.environ.get("DB_INSTANCE_TYPE", "t3.medium"),
    "db_name": "customer_info",
    "db_instance_identifier": "customer-info-db-prod",
    "ecr_max_image_age_days": 30,
    "applications": [
        {
            "name": "customer-info",
            "ecr_repo_name": "customer-info/app",
            "pipeline_name": "CustomerInfoPipeline",
            "github_repo": "customer-info",
            "github_branches": ["main"],
            "deploy_application_name": "CustomerInfoEcsApp",
            "deployment_group_name": "CustomerInfoDG",
            "load_balancer_name": "CustomerInfoAlb",
            "build_project_name": "customer-info-app",
            "test_build_spec_file": "buildspec.test.yml",
            "cluster_name": "customer-info-cluster",
            "service_name": "customer-info-service",
            "task_family": "customer-info-task",
            "image_tag": "v0.2.2",
            "desired_count": 2,
            "https": True,
        },
        {
            "name": "fortune-telling",
            "ecr_repo_name": "fortune-telling/app",
            "pipeline_name": "FortuneTellingPipeline",
            "github_repo": "fortune-telling",
            "github_branches": ["main"],
            "deploy_application_name": "FortuneTellingEcsApp",
            "deployment_group_name": "FortuneTellingDG",
            "load_balancer_name": "FortuneTellingAlb",
            "build_project_name": "fortune-telling-app",
            "cluster_name": "fortune-telling-cluster",
            "service_name": "fortune-telling-service",
            "task_family": "fortune-telling-task",
            "image_tag": "v0.2.2",
            "desired_count": 2,
            "https": False,
        },
    ],
    "tags": {
        "Environment": "prod",
        "Project": "EcsBlueGreen",
        "Owner": "PlatformTeam",
        "CostCenter": "Production",
    },
}
