import json
import logging
from collections.abc import Mapping
from typing import Any

import jmespath
import jmespath.exceptions
from httpstages_models import CompareSpec, ExtractRule, ResponseSpec, StatusSpec
from httpstages_vars.substitution import render_text, walk

from .documents import PathNotFoundError, diff_documents, extract, prune_all
from .exceptions import BodyMismatch, ExtractionError, HeaderMismatch, InvalidJsonBody, SchemaViolation, StatusMismatch, VerificationError
from .schema_check import check_schema
from .transport import HttpResponse

logger = logging.getLogger(__name__)


def _json_body(response: HttpResponse, what: str) -> Any:
    try:
        return response.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise InvalidJsonBody(f"Cannot {what}, response is not valid JSON: {str(e)}") from None


def _status_matches(spec: ResponseSpec, status: int) -> bool:
    match spec.status:
        case None:
            return True
        case StatusSpec():
            return spec.status.accepts(status)
        case _:
            return status == spec.status


def render_expectations(spec: ResponseSpec, context: Mapping[str, Any]) -> ResponseSpec:
    """Resolve references inside expected header values and the expected body."""
    update: dict[str, Any] = {"headers": {name: render_text(value, context) for name, value in spec.headers.items()}}
    if spec.has_body:
        update["body"] = walk(spec.body, context)
    return spec.model_copy(update=update)


def process_verify_step(spec: ResponseSpec, response: HttpResponse) -> list[VerificationError]:
    """Check one response against its expectations, collecting every failure."""
    failures: list[VerificationError] = []

    if not _status_matches(spec, response.status):
        failures.append(StatusMismatch(spec.status, response.status))

    for header_name, expected_value in spec.headers.items():
        actual_value = response.header(header_name)
        if actual_value != str(expected_value):
            failures.append(HeaderMismatch(header_name, str(expected_value), actual_value))

    if not spec.checks_body:
        return failures

    try:
        actual = prune_all(_json_body(response, "validate body"), spec.ignore)
    except InvalidJsonBody as e:
        failures.append(e)
        return failures

    if spec.has_body:
        expected = prune_all(spec.body, spec.ignore)
        diff = diff_documents(expected, actual, strict=spec.strict, inclusive=not spec.strict)
        if diff is not None:
            failures.append(BodyMismatch(diff))

    if spec.body_schema is not None:
        violations = check_schema(spec.body_schema, actual, strict=spec.strict)
        if violations:
            failures.append(SchemaViolation(violations))

    return failures


def process_compare_step(
    spec: ResponseSpec | None,
    primary: HttpResponse,
    compare: HttpResponse,
    compare_spec: CompareSpec | None = None,
) -> list[VerificationError]:
    """Two-endpoint mode: both responses must agree on status and pruned body.

    The compare request's own ``strict`` wins over the response's.
    """
    failures: list[VerificationError] = []
    if primary.status != compare.status:
        failures.append(StatusMismatch(primary.status, compare.status, what="Compare status code"))

    strict = spec.strict if spec else True
    if compare_spec is not None and compare_spec.strict is not None:
        strict = compare_spec.strict
    ignore = spec.ignore if spec else []
    checks_body = spec.checks_body if spec else False

    try:
        primary_body = _json_body(primary, "compare bodies")
        compare_body = _json_body(compare, "compare bodies")
    except InvalidJsonBody as e:
        if checks_body:
            failures.append(e)
        elif primary.content != compare.content:
            failures.append(BodyMismatch("raw bodies differ", what="Compare body doesn't match"))
        return failures

    diff = diff_documents(prune_all(primary_body, ignore), prune_all(compare_body, ignore), strict=strict)
    if diff is not None:
        failures.append(BodyMismatch(diff, what="Compare body doesn't match"))
    return failures


def process_extract_step(rules: list[ExtractRule], response: HttpResponse) -> dict[str, Any]:
    result: dict[str, Any] = {}
    if not rules:
        return result

    try:
        document = response.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ExtractionError(f"Cannot extract variables, response is not valid JSON: {str(e)}") from None

    for rule in rules:
        if rule.field is not None:
            try:
                value = extract(document, rule.field)
            except PathNotFoundError as e:
                raise ExtractionError(f"Error extracting variable {rule.name}: {str(e)}") from None
        else:
            try:
                value = jmespath.search(rule.expression, document)
            except jmespath.exceptions.JMESPathError as e:
                raise ExtractionError(f"Error extracting variable {rule.name}: {str(e)}") from None
            if value is None:
                raise ExtractionError(f"Error extracting variable {rule.name}: expression '{rule.expression}' matched nothing")
        result[rule.name] = value
        logger.info(f"Extracted {rule.name} = {value}")

    return result
