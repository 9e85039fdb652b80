"""Minimal REST gateway exporter.

Any object with the ``GatewayExporter`` shape can be attached to a
ServiceDefinition. ``RestApi`` is the built-in one: routes bound to
functions through proxy integrations, one deployment, one stage and a URL
output.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from stratus.core.hashing import derive
from stratus.graph.template import Output, Resource, ResourceGraph, get_att, join, ref
from stratus.model.declarations import FunctionDeclaration

URL_OUTPUT = "APIGatewayURL"
_METHODS = {"ANY", "DELETE", "GET", "HEAD", "OPTIONS", "PATCH", "POST", "PUT"}


@runtime_checkable
class GatewayExporter(Protocol):
    def export(
        self,
        service_name: str,
        graph: ResourceGraph,
        bucket: str,
        archive_key: str,
        build_id: str,
        role_refs: dict[str, Any],
        logger: Any,
    ) -> None: ...


@dataclass
class Route:
    path: str
    method: str
    function: FunctionDeclaration


@dataclass
class RestApi:
    name: str
    stage_name: str = "v1"
    description: str = ""
    routes: list[Route] = field(default_factory=list)

    def add_route(self, path: str, method: str, function: FunctionDeclaration) -> Route:
        method = method.upper()
        if method not in _METHODS:
            raise ValueError(f"Unsupported HTTP method: {method}")
        if not path.startswith("/"):
            raise ValueError(f"Route paths must start with '/': {path}")
        route = Route(path.rstrip("/") or "/", method, function)
        self.routes.append(route)
        return route

    @property
    def logical_name(self) -> str:
        return derive("APIGateway", self.name)

    def _resource_for(self, graph: ResourceGraph, path: str) -> Any:
        """Declare the path resources for ``path``; return its resource id expression."""
        api = self.logical_name
        parent: Any = get_att(api, "RootResourceId")
        prefix = ""
        for part in [p for p in path.split("/") if p]:
            prefix = f"{prefix}/{part}"
            name = derive("APIResource", api, prefix)
            graph.add_resource(
                name,
                Resource(
                    "AWS::ApiGateway::Resource",
                    {"ParentId": parent, "PathPart": part, "RestApiId": ref(api)},
                ),
            )
            parent = ref(name)
        return parent

    def export(
        self,
        service_name: str,
        graph: ResourceGraph,
        bucket: str,
        archive_key: str,
        build_id: str,
        role_refs: dict[str, Any],
        logger: Any,
    ) -> None:
        api = self.logical_name
        graph.add_resource(
            api,
            Resource(
                "AWS::ApiGateway::RestApi",
                {"Name": self.name, "Description": self.description or f"{service_name} API"},
            ),
        )
        methods = []
        for route in self.routes:
            target = route.function.logical_name
            resource_id = self._resource_for(graph, route.path)
            method_name = derive("APIMethod", api, route.path, route.method)
            uri = join(
                "",
                [
                    "arn:aws:apigateway:",
                    ref("AWS::Region"),
                    ":lambda:path/2015-03-31/functions/",
                    get_att(target, "Arn"),
                    "/invocations",
                ],
            )
            graph.add_resource(
                method_name,
                Resource(
                    "AWS::ApiGateway::Method",
                    {
                        "AuthorizationType": "NONE",
                        "HttpMethod": route.method,
                        "Integration": {
                            "IntegrationHttpMethod": "POST",
                            "Type": "AWS_PROXY",
                            "Uri": uri,
                        },
                        "ResourceId": resource_id,
                        "RestApiId": ref(api),
                    },
                    depends_on=[target],
                ),
            )
            methods.append(method_name)
            graph.add_resource(
                derive("APIPermission", api, target),
                Resource(
                    "AWS::Lambda::Permission",
                    {
                        "Action": "lambda:InvokeFunction",
                        "FunctionName": get_att(target, "Arn"),
                        "Principal": "apigateway.amazonaws.com",
                        "SourceArn": join(
                            "",
                            [
                                "arn:aws:execute-api:",
                                ref("AWS::Region"),
                                ":",
                                ref("AWS::AccountId"),
                                ":",
                                ref(api),
                                "/*",
                            ],
                        ),
                    },
                    depends_on=[target],
                ),
            )

        graph.add_resource(
            derive("APIDeployment", api, build_id),
            Resource(
                "AWS::ApiGateway::Deployment",
                {"RestApiId": ref(api), "StageName": self.stage_name},
                depends_on=methods,
            ),
        )
        graph.add_output(
            URL_OUTPUT,
            Output(
                join(
                    "",
                    [
                        "https://",
                        ref(api),
                        ".execute-api.",
                        ref("AWS::Region"),
                        ".amazonaws.com/",
                        self.stage_name,
                    ],
                ),
                description="API Gateway URL",
            ),
        )
        if logger is not None:
            logger.info("gateway.exported", api=self.name, routes=len(self.routes), stage=self.stage_name)
