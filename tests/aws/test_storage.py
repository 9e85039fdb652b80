"""S3 object storage against moto."""

import boto3
import pytest
from moto import mock_aws

from stratus.aws.storage import S3ObjectStorage
from stratus.core.errors import StorageError

BUCKET = "artifacts"


@pytest.fixture
def s3(monkeypatch):
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    with mock_aws():
        client = boto3.client("s3", region_name="us-east-1")
        client.create_bucket(Bucket=BUCKET)
        yield client


class TestS3ObjectStorage:
    def test_put_and_delete(self, s3):
        storage = S3ObjectStorage(s3)
        storage.put(BUCKET, "svc/template.json", b"{}")
        assert s3.get_object(Bucket=BUCKET, Key="svc/template.json")["Body"].read() == b"{}"

        storage.delete(BUCKET, "svc/template.json")
        assert s3.list_objects_v2(Bucket=BUCKET).get("KeyCount") == 0

    def test_upload_file(self, s3, tmp_path):
        path = tmp_path / "code.zip"
        path.write_bytes(b"zip")
        S3ObjectStorage(s3).upload_file(path, BUCKET, "svc/code.zip")
        assert s3.get_object(Bucket=BUCKET, Key="svc/code.zip")["Body"].read() == b"zip"

    def test_put_to_missing_bucket(self, s3):
        with pytest.raises(StorageError) as exc_info:
            S3ObjectStorage(s3).put("no-such-bucket", "k", b"x")
        assert exc_info.value.context.bucket == "no-such-bucket"

    def test_no_lifecycle_configuration(self, s3):
        assert S3ObjectStorage(s3).get_lifecycle_rules(BUCKET) is None

    def test_lifecycle_rules(self, s3):
        s3.put_bucket_lifecycle_configuration(
            Bucket=BUCKET,
            LifecycleConfiguration={
                "Rules": [{"ID": "expire", "Status": "Enabled", "Filter": {"Prefix": ""}, "Expiration": {"Days": 7}}]
            },
        )
        rules = S3ObjectStorage(s3).get_lifecycle_rules(BUCKET)
        assert rules[0]["Expiration"] == {"Days": 7}

    def test_region(self, s3):
        assert S3ObjectStorage(s3).region == "us-east-1"
