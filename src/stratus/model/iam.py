"""
IAM role definitions and the statements every execution role carries.

Manifesto:
    A RoleDefinition is declared once and may be shared by many functions.
    It resolves to exactly one role resource per (service, first owning
    function) pair, keyed by object identity rather than by content: two
    structurally equal definitions created separately are two roles.

Tags:
    iam, roles, policy, stratus
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from stratus.core.hashing import derive
from stratus.graph.template import Resource, join, ref

POLICY_VERSION = "2012-10-17"


@dataclass
class RolePrivilege:
    """One Allow statement: a list of actions on a resource expression."""

    actions: list[str]
    resource: Any = "*"

    def statement(self) -> dict[str, Any]:
        return {"Effect": "Allow", "Action": list(self.actions), "Resource": self.resource}


def _allow(actions: list[str], resource: Any) -> dict[str, Any]:
    return {"Effect": "Allow", "Action": actions, "Resource": resource}


class CommonStatements:
    """Statements automatically attached to inline roles."""

    CORE: list[dict[str, Any]] = [
        _allow(
            ["logs:CreateLogGroup", "logs:CreateLogStream", "logs:PutLogEvents"],
            join("", ["arn:aws:logs:", ref("AWS::Region"), ":", ref("AWS::AccountId"), ":*"]),
        ),
        _allow(["cloudwatch:PutMetricData"], "*"),
        _allow(
            ["cloudformation:DescribeStacks", "cloudformation:DescribeStackResource"],
            join(
                "",
                [
                    "arn:aws:cloudformation:",
                    ref("AWS::Region"),
                    ":",
                    ref("AWS::AccountId"),
                    ":stack/",
                    ref("AWS::StackName"),
                    "/*",
                ],
            ),
        ),
        _allow(["xray:PutTraceSegments", "xray:PutTelemetryRecords"], "*"),
    ]

    VPC: list[dict[str, Any]] = [
        _allow(
            [
                "ec2:CreateNetworkInterface",
                "ec2:DescribeNetworkInterfaces",
                "ec2:DeleteNetworkInterface",
            ],
            "*",
        ),
    ]

    DYNAMODB_ACTIONS = [
        "dynamodb:DescribeStream",
        "dynamodb:GetRecords",
        "dynamodb:GetShardIterator",
        "dynamodb:ListStreams",
    ]

    KINESIS_ACTIONS = [
        "kinesis:GetRecords",
        "kinesis:GetShardIterator",
        "kinesis:DescribeStream",
        "kinesis:ListStreams",
    ]


ASSUME_ROLE_POLICY: dict[str, Any] = {
    "Version": POLICY_VERSION,
    "Statement": [
        {
            "Effect": "Allow",
            "Principal": {
                "Service": [
                    "lambda.amazonaws.com",
                    "ec2.amazonaws.com",
                    "apigateway.amazonaws.com",
                ]
            },
            "Action": ["sts:AssumeRole"],
        }
    ],
}

POLICY_NAME = "LambdaPolicy"


@dataclass(eq=False)
class RoleDefinition:
    """Inline role: the common statements plus ``privileges``.

    ``eq=False`` keeps hashing and equality by identity, which is what
    deduplication keys on.
    """

    privileges: list[RolePrivilege] = field(default_factory=list)
    _logical_name: str | None = field(default=None, init=False, repr=False)

    def logical_name(self, service_name: str, function_name: str) -> str:
        """Stable logical name, fixed by the first owner that asks."""
        if self._logical_name is None:
            self._logical_name = derive("IAMRole", service_name, function_name)
        return self._logical_name

    def statements(self, *, vpc: bool = False) -> list[dict[str, Any]]:
        statements = [dict(s) for s in CommonStatements.CORE]
        statements.extend(p.statement() for p in self.privileges)
        if vpc:
            statements.extend(dict(s) for s in CommonStatements.VPC)
        return statements

    def to_resource(self, *, vpc: bool = False) -> Resource:
        return Resource(
            type="AWS::IAM::Role",
            properties={
                "AssumeRolePolicyDocument": ASSUME_ROLE_POLICY,
                "Policies": [
                    {
                        "PolicyName": POLICY_NAME,
                        "PolicyDocument": {
                            "Version": POLICY_VERSION,
                            "Statement": self.statements(vpc=vpc),
                        },
                    }
                ],
            },
        )


def append_statement(role: Resource, statement: dict[str, Any]) -> bool:
    """Add ``statement`` to a role resource's inline policy unless present."""
    for policy in role.properties.get("Policies", []):
        if policy.get("PolicyName") != POLICY_NAME:
            continue
        existing = policy["PolicyDocument"]["Statement"]
        if statement in existing:
            return False
        existing.append(statement)
        return True
    return False
