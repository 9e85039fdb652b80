"""Tests for function, identity and service declarations."""

import warnings

import pytest

from stratus.core.errors import InvalidIdentityError
from stratus.core.hashing import derive
from stratus.model.declarations import (
    CustomResourceDeclaration,
    FunctionOptions,
    InlineRole,
    NamedRole,
    S3Permission,
    ServiceDefinition,
    coerce_identity,
    handle_function,
)
from stratus.model.iam import RoleDefinition
from stratus.model.naming import ExplicitNaming, HandlerNaming, qualified_name
from tests._support.handlers import Handler, goodbye, hello, on_stack_event


class TestIdentity:
    def test_string_becomes_named_role(self):
        identity = coerce_identity("existing-role")
        assert isinstance(identity, NamedRole)
        assert identity.key("svc", "fn") == "existing-role"

    def test_definition_becomes_inline_role(self):
        definition = RoleDefinition()
        identity = coerce_identity(definition)
        assert isinstance(identity, InlineRole)
        assert identity.definition is definition

    def test_existing_identity_passes_through(self):
        identity = NamedRole("r")
        assert coerce_identity(identity) is identity

    @pytest.mark.parametrize("value", [None, 42, ["role"], {"name": "x"}])
    def test_unsupported_values_rejected(self, value):
        with pytest.raises(InvalidIdentityError):
            coerce_identity(value)

    def test_blank_role_name_rejected(self):
        with pytest.raises(InvalidIdentityError):
            NamedRole("  ")

    def test_rejected_at_declaration_time(self):
        with pytest.raises(InvalidIdentityError):
            handle_function(hello, 3.14)


class TestNaming:
    def test_handler_naming_uses_name(self):
        assert HandlerNaming().function_name(hello) == "hello"

    def test_handler_naming_for_callable_instance(self):
        assert HandlerNaming().function_name(Handler()) == "Handler"

    def test_explicit_naming_sanitized(self):
        assert ExplicitNaming("hello-world").function_name(hello) == "helloworld"

    def test_explicit_naming_requires_characters(self):
        with pytest.raises(ValueError):
            ExplicitNaming("--")

    def test_qualified_name(self):
        assert qualified_name(hello) == "tests._support.handlers.hello"


class TestFunctionDeclaration:
    def test_defaults(self):
        fn = handle_function(hello, "existing-role")
        assert fn.function_name == "hello"
        assert fn.options.memory_size == 128
        assert fn.options.timeout == 3
        assert isinstance(fn.naming, HandlerNaming)

    def test_explicit_name_wins(self):
        fn = handle_function(hello, "r", name="greeter")
        assert fn.function_name == "greeter"
        assert isinstance(fn.naming, ExplicitNaming)

    def test_name_is_cached(self):
        fn = handle_function(hello, "r")
        first = fn.function_name
        fn.handler = goodbye
        assert fn.function_name == first

    def test_logical_name_is_derived(self):
        fn = handle_function(hello, "r")
        assert fn.logical_name == derive("helloLambda", "hello")

    def test_logical_name_strips_underscores(self):
        fn = handle_function(hello, "r", name="say_hello")
        assert fn.logical_name.startswith("sayhelloLambda")

    def test_declarations_compare_by_identity(self):
        assert handle_function(hello, "r") != handle_function(hello, "r")

    def test_lists_are_copied(self):
        permissions = [S3Permission(source_arn="arn:aws:s3:::bucket")]
        fn = handle_function(hello, "r", permissions=permissions)
        permissions.clear()
        assert len(fn.permissions) == 1


class TestDeprecatedDecorator:
    def test_single_decorator_warns_and_goes_first(self):
        def legacy(*args):
            pass

        def modern(*args):
            pass

        with pytest.warns(DeprecationWarning):
            fn = handle_function(hello, "r", decorator=legacy, decorators=[modern])
        assert fn.decorators == [legacy, modern]

    def test_list_form_does_not_warn(self):
        with warnings.catch_warnings():
            warnings.simplefilter("error")
            handle_function(hello, "r", decorators=[lambda *a: None])


class TestCustomResources:
    def test_require_returns_stable_logical_name(self):
        fn = handle_function(hello, "r")
        name = fn.require_custom_resource("cr-role", on_stack_event, properties={"Answer": 42})
        again = CustomResourceDeclaration(handler=on_stack_event, identity="cr-role").logical_name()
        assert name == again
        assert fn.custom_resources[0].properties == {"Answer": 42}

    def test_require_rejects_non_callable(self):
        fn = handle_function(hello, "r")
        with pytest.raises(TypeError):
            fn.require_custom_resource("r", None)

    def test_require_validates_identity(self):
        fn = handle_function(hello, "r")
        with pytest.raises(InvalidIdentityError):
            fn.require_custom_resource(7, on_stack_event)

    def test_option_name_overrides_qualified_name(self):
        cr = CustomResourceDeclaration(
            handler=on_stack_event,
            identity="r",
            options=FunctionOptions(name="seed.data"),
        )
        assert cr.user_function_name == "seed.data"
        assert cr.export_name == "seeddata"

    def test_service_collects_custom_resources(self):
        one = handle_function(hello, "r")
        two = handle_function(goodbye, "r")
        one.require_custom_resource("r", on_stack_event)
        two.require_custom_resource("r", on_stack_event)
        service = ServiceDefinition(name="svc", functions=[one, two])
        assert len(service.custom_resources()) == 2
