"""Tests for the final annotation pass."""

from stratus.graph.annotate import (
    LOGICAL_RESOURCE_ID,
    STACK_NAME,
    annotate_discovery,
    annotate_event_source_policies,
)
from stratus.graph.template import Resource, ResourceGraph, get_att, ref
from stratus.model.declarations import EventSourceMapping, handle_function
from stratus.model.iam import CommonStatements, RoleDefinition
from tests._support.handlers import hello


def _statements(graph, role_name):
    return graph.resources[role_name].properties["Policies"][0]["PolicyDocument"]["Statement"]


class TestDiscovery:
    def test_function_gets_dependency_outputs(self):
        graph = ResourceGraph()
        graph.add_resource("Table", Resource("AWS::DynamoDB::Table"))
        graph.add_resource("Fn", Resource("AWS::Lambda::Function", depends_on=["Table", "Missing"]))

        assert annotate_discovery(graph) == 1

        metadata = graph.resources["Fn"].metadata
        assert metadata["Table"]["Ref"] == ref("Table")
        assert metadata["Table"]["Arn"] == get_att("Table", "Arn")
        assert "Missing" not in metadata
        assert metadata[LOGICAL_RESOURCE_ID] == "Fn"
        assert metadata[STACK_NAME] == ref("AWS::StackName")

    def test_other_resources_untouched(self):
        graph = ResourceGraph()
        graph.add_resource("Topic", Resource("AWS::SNS::Topic"))
        assert annotate_discovery(graph) == 0
        assert graph.resources["Topic"].metadata == {}


class TestEventSourcePolicies:
    def _setup(self, arn):
        role = RoleDefinition()
        fn = handle_function(hello, role, event_source_mappings=[EventSourceMapping(arn)])
        graph = ResourceGraph()
        role_name = role.logical_name("svc", fn.function_name)
        graph.add_resource(role_name, role.to_resource())
        return graph, fn, role_name

    def test_kinesis_arn(self):
        graph, fn, role_name = self._setup("arn:aws:kinesis:us-east-1:1:stream/s")
        assert annotate_event_source_policies(graph, "svc", [fn]) == 1
        assert _statements(graph, role_name)[-1]["Action"] == CommonStatements.KINESIS_ACTIONS

    def test_dynamodb_reference_resolved_through_graph(self):
        graph, fn, role_name = self._setup(get_att("Table", "StreamArn"))
        graph.add_resource("Table", Resource("AWS::DynamoDB::Table"))
        assert annotate_event_source_policies(graph, "svc", [fn]) == 1
        assert _statements(graph, role_name)[-1]["Resource"] == get_att("Table", "StreamArn")

    def test_idempotent(self):
        graph, fn, _ = self._setup("arn:aws:dynamodb:us-east-1:1:table/t/stream/x")
        annotate_event_source_policies(graph, "svc", [fn])
        assert annotate_event_source_policies(graph, "svc", [fn]) == 0

    def test_other_sources_ignored(self):
        graph, fn, _ = self._setup("arn:aws:sqs:us-east-1:1:queue")
        assert annotate_event_source_policies(graph, "svc", [fn]) == 0

    def test_named_roles_skipped(self):
        fn = handle_function(hello, "existing", event_source_mappings=[EventSourceMapping("arn:aws:kinesis:x")])
        assert annotate_event_source_policies(ResourceGraph(), "svc", [fn]) == 0
