"""
Contract enforcement tests using the multi-driver approach.

Each test class builds a ContractApplication and runs its requests through
every driver, so the direct and ASGI paths are checked alike.
"""

import logging

import pytest
from lxml import etree

from restcontract import (
    AmbiguousStatusCode,
    ConfigurationError,
    ContractApplication,
    ErrorCode,
    HandlerNotFound,
    HandlerRegistry,
    ParameterSpec,
    ParameterType,
    RouteContract,
    UnsupportedFormat,
)
from tests.framework import MultiDriverTestBase

ITEM_SCHEMA = {
    "type": "object",
    "required": ["id", "name"],
    "properties": {"id": {"type": "integer"}, "name": {"type": "string"}},
}


class TestItemRetrieval(MultiDriverTestBase):
    """GET /items/{id} over HTTPS with an integer id of at least 1."""

    def create_app(self) -> ContractApplication:
        app = ContractApplication()

        @app.route(RouteContract(
            path="/items/{id}",
            protocols=["HTTPS"],
            response_content_types=["application/json", "application/xml"],
            status_codes=[200, 400, 404],
            parameters=[ParameterSpec("id", ParameterType.INTEGER, location="path", minimum=1)],
        ))
        def get_item(id):
            return {"id": id, "type": type(id).__name__}

        return app

    def test_handler_sees_casted_parameter(self, api):
        """The id reaches the handler as an integer."""
        api_client, driver_name = api

        response = api_client.get_resource("/items/5")
        data = api_client.expect_successful_retrieval(response)
        assert data == {"id": 5, "type": "int"}
        assert response.get_header("Content-Type") == "application/json"

    def test_plain_http_is_forbidden(self, api):
        api_client, driver_name = api

        request = api_client.get("/items/5").accepts("application/json")
        errors = api_client.expect_forbidden(api_client.execute(request))
        assert errors[0]["code"] == 403

    def test_constraint_violation(self, api):
        api_client, driver_name = api

        errors = api_client.expect_bad_request(api_client.get_resource("/items/0"))
        assert errors == [{"message": "Id parameter must be greater than or equal to 1", "code": 43}]

    def test_non_integer_id(self, api):
        api_client, driver_name = api

        errors = api_client.expect_bad_request(api_client.get_resource("/items/abc"))
        assert errors == [{"message": "Id parameter must be of type integer", "code": ErrorCode.PARAMETER_TYPE}]

    def test_unacceptable_type(self, api):
        api_client, driver_name = api

        request = api_client.get("/items/0").over_https().accepts("text/csv")
        errors = api_client.expect_not_acceptable(api_client.execute(request))
        assert errors[0]["code"] == 406

    def test_xml_response(self, api):
        """Accept selects the XML format family."""
        api_client, driver_name = api

        response = api_client.get_as_xml("/items/5")
        assert response.status_code == 200
        assert response.get_header("Content-Type") == "application/xml"
        root = etree.fromstring(response.get_text_body().encode("utf-8"))
        assert root.tag == "response"
        assert root.findtext("id") == "5"

    def test_errors_in_negotiated_format(self, api):
        api_client, driver_name = api

        response = api_client.get_as_xml("/items/0")
        assert response.status_code == 400
        assert response.get_header("Content-Type") == "application/xml"
        root = etree.fromstring(response.get_text_body().encode("utf-8"))
        assert root.findtext("errors/code") == "43"

    def test_unknown_path(self, api):
        api_client, driver_name = api
        api_client.expect_not_found(api_client.get_resource("/nothing"))

    def test_wrong_method(self, api):
        api_client, driver_name = api

        response = api_client.execute(api_client.delete("/items/5").over_https())
        api_client.expect_method_not_allowed(response)
        assert response.get_header("Allow") == "GET"


class TestItemCreation(MultiDriverTestBase):
    """POST /items with a JSON body checked against its schema."""

    def create_app(self) -> ContractApplication:
        app = ContractApplication()

        @app.route(RouteContract(
            path="/items",
            method="POST",
            request_content_types=["application/json"],
            status_codes=[201, 400],
            schemas={"application/json": ITEM_SCHEMA},
        ))
        def create_item(body, response):
            response.location = f"/items/{body['id']}"
            return body

        return app

    def test_created_with_location(self, api):
        api_client, driver_name = api

        response = api_client.create_resource("/items", {"id": 7, "name": "box"})
        data = api_client.expect_successful_creation(response)
        assert data == {"id": 7, "name": "box"}
        assert response.get_header("Location") == "/items/7"

    def test_truncated_body(self, api):
        api_client, driver_name = api

        request = api_client.post("/items").with_raw_body('{"id": 7', "application/json")
        errors = api_client.expect_bad_request(api_client.execute(request))
        assert len(errors) == 1
        assert errors[0]["code"] == ErrorCode.JSON_PARSE

    def test_schema_violations(self, api):
        api_client, driver_name = api

        errors = api_client.expect_bad_request(api_client.create_resource("/items", {"id": "x"}))
        assert sorted(error["message"] for error in errors) == [
            "Id property: 'x' is not of type 'integer'",
            "Name property: 'name' is a required property",
        ]
        assert {error["code"] for error in errors} == {ErrorCode.JSON_SCHEMA_PROPERTY}

    def test_unsupported_content_type(self, api):
        api_client, driver_name = api

        request = api_client.post("/items").with_raw_body("id=7", "text/plain")
        errors = api_client.expect_unsupported_media_type(api_client.execute(request))
        assert errors[0]["code"] == 415

    def test_charset_is_ignored(self, api):
        api_client, driver_name = api

        request = api_client.post("/items").with_raw_body(
            '{"id": 1, "name": "a"}', "application/json; charset=utf-8"
        )
        assert api_client.execute(request).status_code == 201


class TestQueryParameters(MultiDriverTestBase):
    """Query parameters, repeated values and optional parameters."""

    def create_app(self) -> ContractApplication:
        app = ContractApplication()

        @app.route(RouteContract(
            path="/search",
            parameters=[
                ParameterSpec("tag", ParameterType.ARRAY),
                ParameterSpec("limit", ParameterType.INTEGER, maximum=50),
                ParameterSpec("exact", ParameterType.BOOLEAN),
            ],
        ))
        def search(tag, limit, exact, params):
            return {"tag": tag, "limit": limit, "exact": exact, "names": sorted(params)}

        return app

    def test_repeated_values(self, api):
        api_client, driver_name = api

        response = api_client.get_resource("/search", tag=["a", "b"], limit=5, exact="true")
        data = api_client.expect_successful_retrieval(response)
        assert data == {"tag": ["a", "b"], "limit": 5, "exact": True, "names": ["exact", "limit", "tag"]}

    def test_comma_separated_array(self, api):
        api_client, driver_name = api

        data = api_client.expect_successful_retrieval(api_client.get_resource("/search", tag="a,b"))
        assert data["tag"] == ["a", "b"]

    def test_optional_parameters_absent(self, api):
        api_client, driver_name = api

        data = api_client.expect_successful_retrieval(api_client.get_resource("/search"))
        assert data == {"tag": None, "limit": None, "exact": None, "names": []}

    def test_errors_are_aggregated(self, api):
        api_client, driver_name = api

        errors = api_client.expect_bad_request(api_client.get_resource("/search", limit=99, exact="maybe"))
        assert [error["code"] for error in errors] == [ErrorCode.PARAMETER_MAXIMUM, ErrorCode.PARAMETER_TYPE]


class TestHandlerFailures(MultiDriverTestBase):
    """Unexpected handler errors and empty responses."""

    def create_app(self) -> ContractApplication:
        app = ContractApplication()

        @app.route(RouteContract(path="/broken"))
        def broken():
            raise RuntimeError("boom")

        @app.route(RouteContract(
            path="/items/{id}",
            method="DELETE",
            status_codes=[204],
            parameters=[ParameterSpec("id", ParameterType.INTEGER, location="path")],
        ))
        def delete_item(id):
            return None

        return app

    def test_internal_error(self, api):
        api_client, driver_name = api

        response = api_client.get_resource("/broken")
        errors = api_client.expect_errors(response, 500)
        assert errors == [{"message": "Internal server error", "code": 500}]

    def test_no_content(self, api):
        api_client, driver_name = api

        response = api_client.execute(api_client.delete("/items/3"))
        assert response.status_code == 204
        assert response.get_text_body() == ""
        assert not response.has_header("Content-Type")


class TestParameterLocations(MultiDriverTestBase):
    """Parameters read from their declared location: path, header or form."""

    def create_app(self) -> ContractApplication:
        app = ContractApplication()

        @app.route(RouteContract(
            path="/items/{id}",
            status_codes=[200, 400],
            parameters=[ParameterSpec("id", ParameterType.INTEGER, location="path", minimum=1)],
        ))
        def get_item(id, params):
            return {"id": id, "params_id": params["id"]}

        @app.route(RouteContract(
            path="/secrets",
            status_codes=[200, 400],
            parameters=[ParameterSpec("X-Api-Key", location="header", required=True, min_length=4)],
        ))
        def list_secrets(params):
            return {"key": params["X-Api-Key"]}

        @app.route(RouteContract(
            path="/login",
            method="POST",
            status_codes=[200, 400],
            parameters=[ParameterSpec("attempts", ParameterType.INTEGER, location="form", maximum=3)],
        ))
        def login(attempts):
            return {"attempts": attempts}

        return app

    def test_path_value_checked_despite_query_duplicate(self, api):
        api_client, driver_name = api

        errors = api_client.expect_bad_request(api_client.get_resource("/items/abc", id=5))
        assert errors == [{"message": "Id parameter must be of type integer", "code": ErrorCode.PARAMETER_TYPE}]

    def test_handler_sees_validated_path_value(self, api):
        """A query value under the same name never reaches the handler."""
        api_client, driver_name = api

        data = api_client.expect_successful_retrieval(api_client.get_resource("/items/7", id="abc"))
        assert data == {"id": 7, "params_id": 7}

    def test_header_parameter(self, api):
        api_client, driver_name = api

        request = api_client.get("/secrets").accepts("application/json").with_header("x-api-key", "secret")
        data = api_client.expect_successful_retrieval(api_client.execute(request))
        assert data == {"key": "secret"}

    def test_missing_header_parameter(self, api):
        api_client, driver_name = api

        errors = api_client.expect_bad_request(api_client.get_resource("/secrets"))
        assert errors == [{"message": "X-api-key parameter is required", "code": ErrorCode.PARAMETER_REQUIRED}]

    def test_header_parameter_is_not_read_from_query(self, api):
        api_client, driver_name = api

        response = api_client.get_resource("/secrets", **{"X-Api-Key": "secret"})
        errors = api_client.expect_bad_request(response)
        assert errors[0]["code"] == ErrorCode.PARAMETER_REQUIRED

    def test_form_parameter(self, api):
        api_client, driver_name = api

        request = api_client.post("/login").accepts("application/json").with_form_body(attempts=2)
        data = api_client.expect_successful_retrieval(api_client.execute(request))
        assert data == {"attempts": 2}

    def test_form_parameter_constraint(self, api):
        api_client, driver_name = api

        request = api_client.post("/login").accepts("application/json").with_form_body(attempts=9)
        errors = api_client.expect_bad_request(api_client.execute(request))
        assert errors[0]["code"] == ErrorCode.PARAMETER_MAXIMUM


class TestRegistration:
    """Broken contracts and handlers are rejected when routes are registered."""

    def test_ambiguous_status_codes(self):
        app = ContractApplication()
        with pytest.raises(AmbiguousStatusCode):
            app.add_contract(RouteContract(path="/items", status_codes=[200, 201]), lambda: None)

    def test_invalid_json_schema(self):
        app = ContractApplication()
        contract = RouteContract(path="/items", method="POST", schemas={"application/json": {"type": 12}})
        with pytest.raises(ConfigurationError):
            app.add_contract(contract, lambda body: body)

    def test_handler_argument_without_source(self):
        app = ContractApplication()

        def handler(user):
            return user

        with pytest.raises(ConfigurationError, match="'user'"):
            app.add_contract(RouteContract(path="/items"), handler)

    def test_registration_is_logged(self, caplog):
        app = ContractApplication()

        def list_items():
            return []

        with caplog.at_level(logging.INFO, logger="restcontract.application"):
            app.add_contract(RouteContract(path="/items"), list_items)
        assert "Registered GET /items -> list_items" in caplog.text

    def test_register_resource_from_registry(self):
        registry = HandlerRegistry()

        class Item:
            def getAction(self, id):
                return {"id": id}

        registry.register("Item", Item())
        app = ContractApplication(handler_registry=registry)
        route = app.register_resource(RouteContract(
            path="/item/{id}",
            parameters=[ParameterSpec("id", ParameterType.INTEGER)],
        ))
        assert route.handler.__name__ == "getAction"

    def test_register_resource_without_handler(self):
        app = ContractApplication()
        with pytest.raises(HandlerNotFound):
            app.register_resource(RouteContract(path="/order/{id}"))


class TestConfiguration:
    """Default format resolution: argument > environment > table default."""

    def test_default(self, monkeypatch):
        monkeypatch.delenv("RESTCONTRACT_DEFAULT_FORMAT", raising=False)
        assert ContractApplication().formats.default == "json"

    def test_environment(self, monkeypatch):
        monkeypatch.setenv("RESTCONTRACT_DEFAULT_FORMAT", "xml")
        assert ContractApplication().formats.default == "xml"

    def test_argument_wins(self, monkeypatch):
        monkeypatch.setenv("RESTCONTRACT_DEFAULT_FORMAT", "xml")
        assert ContractApplication(default_format="json").formats.default == "json"

    def test_unknown_format(self):
        with pytest.raises(UnsupportedFormat):
            ContractApplication(default_format="yaml")
