import json

import pytest

from httpstages.exceptions import BodyMismatch, ExtractionError, HeaderMismatch, InvalidJsonBody, SchemaViolation, StatusMismatch
from httpstages.response import process_compare_step, process_extract_step, process_verify_step
from httpstages.transport import HttpResponse
from httpstages_models import CompareSpec, ExtractRule, ResponseSpec


def json_response(body, status=200, headers=None):
    return HttpResponse(status=status, headers={"content-type": "application/json", **(headers or {})}, content=json.dumps(body).encode())


def spec(**fields):
    return ResponseSpec.model_validate(fields)


class TestVerify:
    def test_all_match(self):
        response = json_response({"id": 1, "name": "a"}, headers={"X-Request-Id": "r1"})
        assert process_verify_step(spec(status=200, headers={"x-request-id": "r1"}, body={"id": 1, "name": "a"}), response) == []

    def test_status_mismatch(self):
        failures = process_verify_step(spec(status=201), json_response({}, status=200))
        assert len(failures) == 1
        assert isinstance(failures[0], StatusMismatch)
        assert failures[0].message == "Status code doesn't match: expected 201, got 200"

    def test_status_specification(self):
        assert process_verify_step(spec(status={"min": 200, "max": 299}), json_response({}, status=204)) == []
        failures = process_verify_step(spec(status={"oneOf": [200, 201]}), json_response({}, status=404))
        assert failures[0].message == "Status code doesn't match: expected one of [200, 201], got 404"

    def test_header_mismatch(self):
        failures = process_verify_step(spec(headers={"X-Version": 2}), json_response({}))
        assert isinstance(failures[0], HeaderMismatch)
        assert "got None" in failures[0].message

    def test_collects_several_failures(self):
        failures = process_verify_step(spec(status=404, body={"id": 2}), json_response({"id": 1}))
        assert [type(failure) for failure in failures] == [StatusMismatch, BodyMismatch]

    def test_ignore_prunes_both_sides(self):
        response = json_response({"id": 1, "meta": {"etag": "xyz", "v": 1}})
        expected = spec(body={"id": 1, "meta": {"etag": "abc", "v": 1}}, ignore=["meta.etag"])
        assert process_verify_step(expected, response) == []

    def test_strict_numeric_types(self):
        assert process_verify_step(spec(body={"n": 1}), json_response({"n": 1.0})) != []

    def test_non_strict_is_inclusive(self):
        expected = spec(body={"n": 1}, strict=False)
        assert process_verify_step(expected, json_response({"n": 1.0, "extra": True})) == []

    def test_schema(self):
        expected = spec(bodySchema={"type": "Object", "schema": {"user": {"type": "Object", "schema": {"username": {"type": "String"}}}}})
        failures = process_verify_step(expected, json_response({"user": {}}))
        assert isinstance(failures[0], SchemaViolation)
        assert "user.username: missing required field" in failures[0].message

    def test_invalid_json_with_body_check(self):
        response = HttpResponse(status=200, content=b"<html>")
        failures = process_verify_step(spec(status=200, body={"a": 1}), response)
        assert len(failures) == 1
        assert isinstance(failures[0], InvalidJsonBody)

    def test_invalid_json_without_body_check(self):
        response = HttpResponse(status=200, content=b"<html>")
        assert process_verify_step(spec(status=200), response) == []

    def test_empty_body_is_null(self):
        assert process_verify_step(spec(body=None), HttpResponse(status=204)) == []


class TestCompare:
    def test_same(self):
        assert process_compare_step(None, json_response({"a": [1, 2]}), json_response({"a": [1, 2]})) == []

    def test_status_differs(self):
        failures = process_compare_step(None, json_response({}, status=200), json_response({}, status=500))
        assert isinstance(failures[0], StatusMismatch)
        assert failures[0].message.startswith("Compare status code")

    def test_bodies_compared_symmetrically(self):
        failures = process_compare_step(None, json_response({"a": 1}), json_response({"a": 1, "b": 2}))
        assert isinstance(failures[0], BodyMismatch)

    def test_ignored_paths(self):
        primary = json_response({"a": 1, "meta": {"ts": 1}})
        compare = json_response({"a": 1, "meta": {"ts": 2}})
        assert process_compare_step(spec(ignore=["meta.ts"]), primary, compare) == []

    def test_non_strict_relaxes_numbers(self):
        assert process_compare_step(spec(strict=False), json_response({"a": 1}), json_response({"a": 1.0})) == []
        assert process_compare_step(spec(strict=True), json_response({"a": 1}), json_response({"a": 1.0})) != []

    def test_compare_strict_overrides_response(self):
        primary, compare = json_response({"a": 1}), json_response({"a": 1.0})
        assert process_compare_step(spec(strict=True), primary, compare, CompareSpec(url="http://new", strict=False)) == []
        assert process_compare_step(spec(strict=False), primary, compare, CompareSpec(url="http://new", strict=True)) != []
        assert process_compare_step(spec(strict=False), primary, compare, CompareSpec(url="http://new")) == []

    def test_raw_bodies_without_body_checks(self):
        same = process_compare_step(spec(status=200), HttpResponse(200, content=b"ok"), HttpResponse(200, content=b"ok"))
        different = process_compare_step(spec(status=200), HttpResponse(200, content=b"ok"), HttpResponse(200, content=b"ko"))
        assert same == []
        assert isinstance(different[0], BodyMismatch)

    def test_invalid_json_with_body_checks(self):
        failures = process_compare_step(spec(ignore=["a"]), HttpResponse(200, content=b"ok"), HttpResponse(200, content=b"ok"))
        assert isinstance(failures[0], InvalidJsonBody)


class TestExtract:
    def test_field_and_expression(self):
        response = json_response({"token": "t-1", "users": [{"id": 1, "active": True}, {"id": 2, "active": False}]})
        rules = [
            ExtractRule(name="token", field="token"),
            ExtractRule(name="ids", field="users.id"),
            ExtractRule(name="active", expression="users[?active].id | [0]"),
        ]
        assert process_extract_step(rules, response) == {"token": "t-1", "ids": [1, 2], "active": 1}

    def test_no_rules(self):
        assert process_extract_step([], HttpResponse(200, content=b"not json")) == {}

    def test_missing_field(self):
        with pytest.raises(ExtractionError, match="Error extracting variable token"):
            process_extract_step([ExtractRule(name="token", field="auth.token")], json_response({}))

    def test_expression_matching_nothing(self):
        with pytest.raises(ExtractionError, match="matched nothing"):
            process_extract_step([ExtractRule(name="x", expression="missing")], json_response({}))

    def test_not_json(self):
        with pytest.raises(ExtractionError, match="not valid JSON"):
            process_extract_step([ExtractRule(name="x", field="a")], HttpResponse(200, content=b"<html>"))
