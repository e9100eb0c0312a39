"""Staging environment configuration."""

import os

staging_config = {
    "account_id": os.environ.get("CDK_DEFAULT_ACCOUNT"),
    "region": os.environ.get("CDK_DEFAULT_REGION", "ap-northeast-1"),
    "revision": "bluegreen",
    "vpc_cidr": "10.1.0.0/16",
    "max_azs": 2,
    "domain_name": "staging.example.com",
    "hosted_zone_name": "example.com",
    "hosted_zone_id": os.environ.get("HOSTED_ZONE_ID", ""),
    "github_owner": os.environ.get("GITHUB_OWNER", "example-org"),
    "github_connection_name": "CustomerInfoGitHubStaging",
    "db_instance_type": os.environ.get("DB_INSTANCE_TYPE", "t3.small"),
    "db_name": "customer_info",
    "db_instance_identifier": "customer-info-db-staging",
    "ecr_max_image_age_days": 14,
    "applications": [
        {
            "name": "customer-info",
            "ecr_repo_name": "customer-info/app",
            "pipeline_name": "CustomerInfoPipeline",
            "github_repo": "customer-info",
            "github_branches": ["main", "release"],
            "deploy_application_name": "CustomerInfoEcsApp",
            "deployment_group_name": "CustomerInfoDG",
            "load_balancer_name": "CustomerInfoAlb",
            "build_project_name": "customer-info-app",
            "test_build_spec_file": "buildspec.test.yml",
            "cluster_name": "customer-info-cluster",
            "service_name": "customer-info-service",
            "task_family": "customer-info-task",
            "image_tag": "latest",
            "desired_count": 2,
            "https": True,
        },
    ],
    "tags": {
        "Environment": "staging",
        "Project": "EcsBlueGreen",
        "Owner": "PlatformTeam",
        "CostCenter": "Engineering",
    },
}
