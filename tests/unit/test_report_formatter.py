from httpstages.constants import OutcomeStatus
from httpstages.report_formatter import format_outcome, format_request, format_response, format_summary
from httpstages.results import TestOutcome
from httpstages.transport import HttpRequest, HttpResponse


class TestFormatRequest:
    def test_simple_get_request(self):
        result = format_request(HttpRequest(method="GET", url="https://example.com/api/users"))
        assert result == "GET https://example.com/api/users"

    def test_params_are_appended(self):
        result = format_request(HttpRequest(method="GET", url="https://example.com/api?x=1", params={"page": "2"}))
        assert result.startswith("GET https://example.com/api?x=1&page=2")

    def test_request_with_json_body(self):
        request = HttpRequest(method="POST", url="https://example.com/api/users", headers={"content-type": "application/json"}, body={"name": "Alice", "age": 30}, has_body=True)
        result = format_request(request)

        assert "content-type: application/json" in result
        assert '"name": "Alice"' in result
        assert '"age": 30' in result

    def test_explicit_null_body(self):
        result = format_request(HttpRequest(method="POST", url="https://example.com", body=None, has_body=True))
        assert result.endswith("\nnull")


class TestFormatResponse:
    def test_json_body(self):
        response = HttpResponse(status=200, headers={"content-type": "application/json"}, content=b'{"id": 1}', elapsed=0.25)
        result = format_response(response)

        assert result.startswith("HTTP 200 (0.250s)")
        assert '"id": 1' in result

    def test_text_body(self):
        result = format_response(HttpResponse(status=500, content=b"Internal error"))
        assert "Internal error" in result

    def test_binary_body(self):
        result = format_response(HttpResponse(status=200, content=bytes(range(256))))
        assert "<Binary content: 256 bytes>" in result

    def test_empty_body(self):
        assert format_response(HttpResponse(status=204)) == "HTTP 204 (0.000s)\n"


class TestFormatOutcome:
    def test_passed(self):
        outcome = TestOutcome(test_id="t1", name="List users", iteration=0, status=OutcomeStatus.PASSED, elapsed=0.5)
        assert format_outcome(outcome) == "[PASSED] List users (t1) iteration 0 in 0.500s"

    def test_failed_includes_detail(self):
        outcome = TestOutcome(test_id="t1", name="t1", iteration=2, status=OutcomeStatus.FAILED, detail="Stage 'x' failed: boom")
        assert format_outcome(outcome).endswith("\n  Stage 'x' failed: boom")

    def test_summary(self):
        outcomes = [
            TestOutcome(test_id="a", name="a", iteration=0, status=OutcomeStatus.PASSED),
            TestOutcome(test_id="b", name="b", iteration=0, status=OutcomeStatus.FAILED),
            TestOutcome(test_id="c", name="c", iteration=0, status=OutcomeStatus.PASSED),
        ]
        assert format_summary(outcomes) == "2 passed, 1 failed, 0 skipped"
