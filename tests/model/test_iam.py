"""Tests for inline role definitions."""

from stratus.core.hashing import derive
from stratus.model.iam import (
    POLICY_NAME,
    CommonStatements,
    RoleDefinition,
    RolePrivilege,
    append_statement,
)


class TestRoleDefinition:
    def test_logical_name_fixed_by_first_owner(self):
        role = RoleDefinition()
        first = role.logical_name("svc", "hello")
        assert first == derive("IAMRole", "svc", "hello")
        assert role.logical_name("svc", "goodbye") == first

    def test_equal_content_is_not_equal_identity(self):
        a = RoleDefinition(privileges=[RolePrivilege(["s3:GetObject"])])
        b = RoleDefinition(privileges=[RolePrivilege(["s3:GetObject"])])
        assert a != b
        assert len({a, b}) == 2

    def test_statements_include_common_and_privileges(self):
        role = RoleDefinition(privileges=[RolePrivilege(["sqs:SendMessage"], "arn:aws:sqs:::q")])
        statements = role.statements()
        assert len(statements) == len(CommonStatements.CORE) + 1
        assert statements[-1] == {"Effect": "Allow", "Action": ["sqs:SendMessage"], "Resource": "arn:aws:sqs:::q"}

    def test_vpc_statements_only_on_request(self):
        role = RoleDefinition()
        assert len(role.statements(vpc=True)) == len(role.statements()) + len(CommonStatements.VPC)

    def test_to_resource(self):
        resource = RoleDefinition().to_resource()
        assert resource.type == "AWS::IAM::Role"
        policy = resource.properties["Policies"][0]
        assert policy["PolicyName"] == POLICY_NAME
        principals = resource.properties["AssumeRolePolicyDocument"]["Statement"][0]["Principal"]["Service"]
        assert "lambda.amazonaws.com" in principals


class TestAppendStatement:
    def test_appends_once(self):
        resource = RoleDefinition().to_resource()
        statement = {"Effect": "Allow", "Action": ["kinesis:GetRecords"], "Resource": "arn"}
        assert append_statement(resource, statement) is True
        assert append_statement(resource, statement) is False
        statements = resource.properties["Policies"][0]["PolicyDocument"]["Statement"]
        assert statements.count(statement) == 1
