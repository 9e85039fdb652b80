"""Static website bundle and its template export.

The site directory is zipped during upload and copied into a public website
bucket at stack time by the built-in ZipToS3Bucket custom resource. The
gateway outputs are handed over as a manifest so the site can find its API.
"""

from __future__ import annotations

import zipfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from stratus.core.errors import StorageError
from stratus.core.hashing import derive, sanitized_name
from stratus.graph.export import physical_function_name
from stratus.graph.registry import ZIP_TO_S3_BUCKET, export_name
from stratus.graph.template import Output, Resource, ResourceGraph, get_att, join, ref
from stratus.model.iam import ASSUME_ROLE_POLICY, POLICY_VERSION, CommonStatements

SITE_URL_OUTPUT = "S3SiteURL"


@dataclass
class Site:
    """A directory of static resources published as an S3 website."""

    resources_dir: Path
    index_document: str = "index.html"
    error_document: str = "error.html"

    def __post_init__(self) -> None:
        self.resources_dir = Path(self.resources_dir).resolve()

    def validate(self) -> list[str]:
        if not self.resources_dir.is_dir():
            return [f"Site resources directory does not exist: {self.resources_dir}"]
        return []

    @property
    def bucket_logical_name(self) -> str:
        return derive("S3Site", str(self.resources_dir.name))

    def archive(self, work_dir: Path, service_name: str) -> Path:
        """Zip the resources directory into ``work_dir``."""
        if not self.resources_dir.is_dir():
            raise StorageError(f"Site resources directory does not exist: {self.resources_dir}")
        work_dir.mkdir(parents=True, exist_ok=True)
        target = work_dir / f"{sanitized_name(service_name)}-S3Site.zip"
        with zipfile.ZipFile(target, "w", compression=zipfile.ZIP_DEFLATED) as archive:
            for path in sorted(self.resources_dir.rglob("*")):
                if path.is_file():
                    archive.write(path, arcname=path.relative_to(self.resources_dir).as_posix())
        return target

    def export(
        self,
        service_name: str,
        graph: ResourceGraph,
        *,
        bucket: str,
        archive_key: str,
        site_key: str,
        runtime: str,
        gateway_outputs: dict[str, Output],
        logger: Any = None,
    ) -> None:
        site_bucket = self.bucket_logical_name
        bucket_arn = join("", ["arn:aws:s3:::", ref(site_bucket)])
        bucket_keys_arn = join("", ["arn:aws:s3:::", ref(site_bucket), "/*"])

        graph.add_resource(
            site_bucket,
            Resource(
                "AWS::S3::Bucket",
                {
                    "AccessControl": "PublicRead",
                    "WebsiteConfiguration": {
                        "ErrorDocument": self.error_document,
                        "IndexDocument": self.index_document,
                    },
                },
            ),
        )
        graph.add_output(
            SITE_URL_OUTPUT,
            Output(get_att(site_bucket, "WebsiteURL"), description="S3 Website URL"),
        )
        graph.add_resource(
            derive("S3SiteBucketPolicy", site_bucket),
            Resource(
                "AWS::S3::BucketPolicy",
                {
                    "Bucket": ref(site_bucket),
                    "PolicyDocument": {
                        "Version": POLICY_VERSION,
                        "Statement": [
                            {
                                "Sid": "PublicReadGetObject",
                                "Effect": "Allow",
                                "Principal": {"AWS": "*"},
                                "Action": "s3:GetObject",
                                "Resource": bucket_keys_arn,
                            }
                        ],
                    },
                },
            ),
        )

        statements = [dict(s) for s in CommonStatements.CORE]
        statements.append({"Effect": "Allow", "Action": ["s3:ListBucket"], "Resource": bucket_arn})
        statements.append(
            {
                "Effect": "Allow",
                "Action": ["s3:DeleteObject", "s3:PutObject"],
                "Resource": bucket_keys_arn,
            }
        )
        statements.append(
            {
                "Effect": "Allow",
                "Action": ["s3:GetObject"],
                "Resource": f"arn:aws:s3:::{bucket}/{site_key}",
            }
        )
        role = derive("S3SiteIAMRole", site_bucket)
        graph.add_resource(
            role,
            Resource(
                "AWS::IAM::Role",
                {
                    "AssumeRolePolicyDocument": ASSUME_ROLE_POLICY,
                    "Policies": [
                        {
                            "PolicyName": "S3SiteMgmnt",
                            "PolicyDocument": {"Version": POLICY_VERSION, "Statement": statements},
                        }
                    ],
                },
                depends_on=[site_bucket],
            ),
        )

        handler_name = export_name(ZIP_TO_S3_BUCKET)
        creator = derive("S3SiteCreator", site_bucket)
        graph.add_resource(
            creator,
            Resource(
                "AWS::Lambda::Function",
                {
                    "Code": {"S3Bucket": bucket, "S3Key": archive_key},
                    "Description": f"{service_name}: S3 static site",
                    "FunctionName": physical_function_name(service_name, sanitized_name(handler_name)),
                    "Handler": f"index.{handler_name}",
                    "MemorySize": 256,
                    "Role": get_att(role, "Arn"),
                    "Runtime": runtime,
                    "Timeout": 180,
                },
                depends_on=[site_bucket, role],
            ),
        )

        manifest = {
            name: {"Description": output.description, "Value": output.value}
            for name, output in sorted(gateway_outputs.items())
        }
        builder = graph.custom_resource(
            derive("S3SiteBuilder", site_bucket),
            ZIP_TO_S3_BUCKET,
            {
                "DestBucket": ref(site_bucket),
                "Manifest": manifest,
                "ServiceToken": get_att(creator, "Arn"),
                "SrcBucket": bucket,
                "SrcKeyName": site_key,
            },
        )
        builder.add_dependency(creator, site_bucket)
        if logger is not None:
            logger.info("site.exported", bucket=site_bucket, manifest_keys=sorted(manifest))
