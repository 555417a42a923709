"""Tests for Accept matching and the format table."""

import logging

import pytest

from restcontract import DEFAULT_FORMATS, FormatTable, UnsupportedFormat, negotiate
from restcontract.negotiation import parse_accept


class TestParseAccept:

    def test_missing_header_accepts_anything(self):
        assert parse_accept(None) == ["*/*"]
        assert parse_accept("") == ["*/*"]

    def test_list_drops_parameters(self):
        assert parse_accept("text/html;q=0.9, Application/JSON") == ["text/html", "application/json"]

    def test_refused_ranges_are_dropped(self):
        assert parse_accept("application/xml;q=0, application/json") == ["application/json"]


class TestNegotiate:
    """Picking the offered content type the client asks for."""

    def test_exact_match(self):
        assert negotiate("application/json", ["application/json"]) == "application/json"

    def test_case_insensitive(self):
        assert negotiate("APPLICATION/JSON", ["application/json"]) == "application/json"

    def test_mismatch(self):
        assert negotiate("application/xml", ["application/json"]) is None

    def test_wildcard_takes_first_offered(self):
        assert negotiate("*/*", ["application/xml", "application/json"]) == "application/xml"

    def test_subtype_wildcard(self):
        assert negotiate("application/*", ["text/xml", "application/json"]) == "application/json"

    def test_client_order_wins(self):
        offered = ["application/json", "application/xml"]
        assert negotiate("application/xml, application/json", offered) == "application/xml"

    def test_offered_type_returned_as_declared(self):
        assert negotiate("application/json", ["Application/JSON"]) == "Application/JSON"


class TestFormatTable:
    """Resolution of negotiated MIME types to format families."""

    def test_json_family(self):
        assert DEFAULT_FORMATS.resolve("application/json") == "json"
        assert DEFAULT_FORMATS.resolve("application/x-json") == "json"

    def test_xml_family(self):
        for mime in ("text/xml", "application/xml", "application/x-xml"):
            assert DEFAULT_FORMATS.resolve(mime) == "xml"

    def test_unknown_type_falls_back_to_default(self, caplog):
        with caplog.at_level(logging.DEBUG, logger="restcontract.negotiation"):
            assert DEFAULT_FORMATS.resolve("text/html") == "json"
        assert "falling back to json" in caplog.text

    def test_missing_type_falls_back(self):
        assert DEFAULT_FORMATS.resolve(None) == "json"

    def test_family_for(self):
        assert DEFAULT_FORMATS.family_for("application/xml; charset=utf-8") == "xml"
        assert DEFAULT_FORMATS.family_for("text/html") is None

    def test_first_mime_type_of_family(self):
        assert DEFAULT_FORMATS.mime_types("xml")[0] == "text/xml"

    def test_unknown_family(self):
        with pytest.raises(UnsupportedFormat):
            DEFAULT_FORMATS.assert_supported("yaml")

    def test_unknown_default(self):
        with pytest.raises(UnsupportedFormat):
            FormatTable({"json": ["application/json"]}, default="yaml")

    def test_with_default(self):
        table = DEFAULT_FORMATS.with_default("xml")
        assert table.default == "xml"
        assert table.resolve("text/html") == "xml"
        assert DEFAULT_FORMATS.default == "json"

    def test_families_in_order(self):
        assert DEFAULT_FORMATS.families == ("json", "xml")
