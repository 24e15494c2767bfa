"""Shared test fixtures."""

import boto3
import pytest
from moto import mock_aws

from statewarden.aws.database import Database

COMPLIANCE_OUTPUT = """
terraform-compliance v1.0.37 initiated

. Converting terraform plan file.
* Features  : /tmp/statewarden-check-abc/features
* Plan File : /tmp/statewarden-check-abc/compliance_input.json

. Running tests.
Feature: Credentials should not be within the code  # /tmp/statewarden-check-abc/features/credentials.feature
    In order to prevent any credentials leakage
    As engineers
    We'll enforce credentials will not be hardcoded

    Scenario Outline: AWS Credentials should not be hardcoded
        Given I have aws provider configured
        When it contains <key>
        Then its value must not match the "<regex>" regex

    Examples:
        | key        | regex                                                   |
        SKIPPING: Skipping the step since provider type does not have access_key property.
        | access_key | (?<![A-Z0-9])[A-Z0-9]{20}(?![A-Z0-9])                   |

Feature: Data example feature  # /tmp/statewarden-check-abc/features/data.example.feature

    Scenario: Subnet Count
        SKIPPING: Can not find aws_availability_zones data defined in target terraform plan.
        Given I have aws_availability_zones data defined

Feature: Resources should be properly tagged  # /tmp/statewarden-check-abc/features/other.feature
    In order to keep track of resource ownership

    Scenario: Ensure all resources have tags
        Given I have resource that supports tags defined
        Then it must contain tags
          Failure: aws_instance.example (aws_instance) does not have tags property.
        And its value must not be null

    Examples:
        | tags        | value            |
        | Name        | .+               |
          Failure: aws_instance.example2 (resource that supports tags) does not have Name property.
        | environment | ^(prod|uat|dev)$ |
          Failure: aws_instance.example2 (resource that supports tags) does not have environment property.
"""


@pytest.fixture
def compliance_output():
    return COMPLIANCE_OUTPUT


@pytest.fixture
def aws_credentials(monkeypatch):
    """Set dummy AWS credentials for moto."""
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_SECURITY_TOKEN", "testing")
    monkeypatch.setenv("AWS_SESSION_TOKEN", "testing")
    monkeypatch.setenv("AWS_DEFAULT_REGION", "us-east-1")


@pytest.fixture
def database(aws_credentials):
    """A moto-backed Database with every table created."""
    with mock_aws():
        db = Database("test", region="us-east-1")
        db.init_tables()
        yield db


@pytest.fixture
def s3_client(aws_credentials):
    """Create a moto-mocked S3 boto3 client with one bucket."""
    with mock_aws():
        client = boto3.client("s3", region_name="us-east-1")
        client.create_bucket(Bucket="states")
        yield client
