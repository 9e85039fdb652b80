"""A provisioning run wired to moto-backed IAM and S3."""

import json

import pytest
from moto import mock_aws

from stratus.aws.cloudformation import CloudFormationTarget
from stratus.aws.identity import IAMIdentityService
from stratus.aws.session import aws_clients, create_session
from stratus.aws.storage import S3ObjectStorage
from stratus.core.errors import ConvergeError
from stratus.model.declarations import ServiceDefinition, handle_function
from stratus.provision.clients import ProvisionClients
from stratus.provision.engine import provision
from tests._support.fakes import FakeTarget, FakeToolchain
from tests._support.handlers import hello

BUCKET = "artifacts"


@pytest.fixture
def session(monkeypatch):
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    with mock_aws():
        session = create_session(region="us-east-1")
        session.client("s3").create_bucket(Bucket=BUCKET)
        session.client("iam").create_role(
            RoleName="existing-role",
            AssumeRolePolicyDocument=json.dumps(
                {
                    "Version": "2012-10-17",
                    "Statement": [
                        {
                            "Effect": "Allow",
                            "Principal": {"Service": "lambda.amazonaws.com"},
                            "Action": "sts:AssumeRole",
                        }
                    ],
                }
            ),
        )
        yield session


def _clients(session, target):
    return ProvisionClients(
        identity=IAMIdentityService.from_session(session),
        storage=S3ObjectStorage.from_session(session),
        target=target,
        toolchain=FakeToolchain(),
        session=session,
    )


def _keys(session):
    return [o["Key"] for o in session.client("s3").list_objects_v2(Bucket=BUCKET).get("Contents", [])]


class TestSession:
    def test_create_session_region(self, session):
        assert create_session(region="eu-west-1").region_name == "eu-west-1"

    def test_aws_clients(self, session):
        clients = aws_clients(session, BUCKET, toolchain=FakeToolchain())
        assert isinstance(clients.identity, IAMIdentityService)
        assert isinstance(clients.storage, S3ObjectStorage)
        assert isinstance(clients.target, CloudFormationTarget)
        assert clients.target.bucket == BUCKET
        assert clients.session is session


class TestProvisionAgainstMoto:
    def test_archive_uploaded(self, session, tmp_path):
        service = ServiceDefinition(name="hello-svc", functions=[handle_function(hello, "existing-role")])
        result = provision(service, bucket=BUCKET, build_id="1", clients=_clients(session, FakeTarget()), work_dir=tmp_path)
        assert _keys(session) == [result.archive_key]
        role_arn = session.client("iam").get_role(RoleName="existing-role")["Role"]["Arn"]
        fn = json.loads(result.template)["Resources"][service.functions[0].logical_name]
        assert fn["Properties"]["Role"] == role_arn

    def test_converge_failure_removes_archive(self, session, tmp_path):
        service = ServiceDefinition(name="hello-svc", functions=[handle_function(hello, "existing-role")])
        with pytest.raises(ConvergeError):
            provision(
                service,
                bucket=BUCKET,
                build_id="1",
                clients=_clients(session, FakeTarget(fail=True)),
                work_dir=tmp_path,
            )
        assert _keys(session) == []
