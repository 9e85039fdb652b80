"""Final annotation pass over an assembled graph.

Runs after every exporter has written its resources:

- each function resource gets discovery metadata (its own logical id, the
  stack identity, and the outputs of every resource it depends on) so the
  running code can find its infrastructure without an API call;
- inline roles of functions with stream event sources get the matching
  DynamoDB or Kinesis read statements.
"""

from __future__ import annotations

from typing import Any

from stratus.graph.template import ResourceGraph, outputs_for_resource, ref
from stratus.model.declarations import FunctionDeclaration, InlineRole
from stratus.model.iam import CommonStatements, append_statement

FUNCTION_TYPE = "AWS::Lambda::Function"

LOGICAL_RESOURCE_ID = "StratusLogicalResourceId"
STACK_REGION = "StratusStackRegion"
STACK_ID = "StratusStackId"
STACK_NAME = "StratusStackName"


def annotate_discovery(graph: ResourceGraph) -> int:
    """Inject discovery metadata into every function resource.

    Returns:
        Number of function resources annotated
    """
    count = 0
    for name, resource in graph.resources.items():
        if resource.type != FUNCTION_TYPE:
            continue
        for dependency in resource.depends_on:
            target = graph.get(dependency)
            if target is not None:
                resource.metadata[dependency] = outputs_for_resource(dependency, target)
        resource.metadata[LOGICAL_RESOURCE_ID] = name
        resource.metadata[STACK_REGION] = ref("AWS::Region")
        resource.metadata[STACK_ID] = ref("AWS::StackId")
        resource.metadata[STACK_NAME] = ref("AWS::StackName")
        count += 1
    return count


def _stream_actions(graph: ResourceGraph, arn: Any) -> list[str] | None:
    if isinstance(arn, dict):
        target_name = None
        if "Fn::GetAtt" in arn:
            target_name = arn["Fn::GetAtt"][0]
        elif "Ref" in arn:
            target_name = arn["Ref"]
        target = graph.get(target_name) if target_name else None
        if target is not None:
            if target.type == "AWS::DynamoDB::Table":
                return CommonStatements.DYNAMODB_ACTIONS
            if target.type == "AWS::Kinesis::Stream":
                return CommonStatements.KINESIS_ACTIONS
        return None
    text = str(arn)
    if ":dynamodb:" in text:
        return CommonStatements.DYNAMODB_ACTIONS
    if ":kinesis:" in text:
        return CommonStatements.KINESIS_ACTIONS
    return None


def annotate_event_source_policies(
    graph: ResourceGraph,
    service_name: str,
    functions: list[FunctionDeclaration],
) -> int:
    """Grant inline roles read access to the streams their functions consume.

    Returns:
        Number of statements added
    """
    added = 0
    for fn in functions:
        if not isinstance(fn.identity, InlineRole):
            continue
        role = graph.get(fn.identity.key(service_name, fn.function_name))
        if role is None:
            continue
        for mapping in fn.event_source_mappings:
            actions = _stream_actions(graph, mapping.event_source_arn)
            if actions is None:
                continue
            statement = {"Effect": "Allow", "Action": list(actions), "Resource": mapping.event_source_arn}
            if append_statement(role, statement):
                added += 1
    return added
