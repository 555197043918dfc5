"""
Tests for sap_calm.odata.normalize module.
"""

import pytest

from conftest import make_raw
from sap_calm.core.errors import NormalizeError
from sap_calm.core.models import ToolResult, ToolStatus
from sap_calm.odata.normalize import normalize


class TestODataNormalize:
    """OData v4 envelopes."""

    def test_collection(self, sample_collection):
        result = normalize(make_raw(200, sample_collection), is_odata=True)
        assert result.status is ToolStatus.SUCCESS
        assert [r["uuid"] for r in result.payload] == ["f-1", "f-2"]
        assert result.count == 2

    def test_collection_without_count(self):
        result = normalize(make_raw(200, {"value": [{"id": 1}]}), is_odata=True)
        assert result.count is None
        assert result.payload == [{"id": 1}]

    def test_next_link(self):
        body = {"value": [], "@odata.nextLink": "Features?$skip=100"}
        result = normalize(make_raw(200, body), is_odata=True)
        assert result.next_link == "Features?$skip=100"
        assert result.to_dict()["next_link"] == "Features?$skip=100"

    def test_single_entity(self):
        entity = {"@odata.context": "$metadata#Features/$entity", "uuid": "f-1"}
        result = normalize(make_raw(200, entity), is_odata=True)
        assert result.payload == entity

    def test_non_object_rejected(self):
        with pytest.raises(NormalizeError):
            normalize(make_raw(200, [1, 2]), is_odata=True)


class TestRestNormalize:
    """REST bodies pass through."""

    def test_list_body(self):
        result = normalize(make_raw(200, [{"id": "t1"}]), is_odata=False)
        assert result.payload == [{"id": "t1"}]
        assert result.count is None

    def test_value_key_not_unwrapped(self):
        body = {"value": [1], "total": 1}
        assert normalize(make_raw(200, body), is_odata=False).payload == body


class TestEmptyAndInvalid:
    @pytest.mark.parametrize("is_odata", [True, False])
    def test_no_content(self, is_odata):
        result = normalize(make_raw(204, None, content_type=""), is_odata)
        assert result.ok
        assert result.payload is None

    def test_empty_200(self):
        result = normalize(make_raw(201, None), is_odata=True)
        assert result.ok
        assert result.payload is None

    def test_malformed_json(self):
        with pytest.raises(NormalizeError) as exc:
            normalize(make_raw(200, text="{not json"), is_odata=True)
        assert exc.value.to_detail()["kind"] == "invalid_body"

    def test_untyped_json_body_parsed(self):
        result = normalize(make_raw(200, {"a": 1}, content_type=""), is_odata=False)
        assert result.payload == {"a": 1}

    def test_non_json_content_type(self):
        result = normalize(make_raw(200, text="<html/>", content_type="text/html"), is_odata=False)
        assert result.ok
        assert result.payload is None


class TestToolResult:
    """ToolResult invariants."""

    def test_success_cannot_carry_error(self):
        with pytest.raises(ValueError):
            ToolResult(ToolStatus.SUCCESS, error_detail={"kind": "x"})

    def test_error_requires_detail(self):
        with pytest.raises(ValueError):
            ToolResult(ToolStatus.ERROR)

    def test_error_dict(self):
        result = ToolResult(ToolStatus.ERROR, error_detail={"kind": "timeout", "message": "slow"})
        assert result.to_dict() == {"status": "error", "error": {"kind": "timeout", "message": "slow"}}
