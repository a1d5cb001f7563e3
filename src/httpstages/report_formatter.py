"""Formatting utilities for exchange dumps and session summaries.

This module renders requests, responses and outcomes as plain text for
logs and failure details.
"""

import json
from urllib.parse import urlencode

from .constants import OutcomeStatus
from .results import TestOutcome
from .transport import HttpRequest, HttpResponse


def format_request(request: HttpRequest) -> str:
    url = request.url
    if request.params:
        url += ("&" if "?" in url else "?") + urlencode(request.params)

    lines = [f"{request.method} {url}"]

    # Headers
    for key, value in request.headers.items():
        lines.append(f"{key}: {value}")

    if request.has_body:
        lines.append("")
        lines.append(json.dumps(request.body, indent=2, ensure_ascii=False))

    return "\n".join(lines)


def format_response(response: HttpResponse) -> str:
    lines = [f"HTTP {response.status} ({response.elapsed:.3f}s)"]

    # Headers
    for key, value in response.headers.items():
        lines.append(f"{key}: {value}")

    # Empty line between headers and body
    lines.append("")

    # Body
    if response.content:
        try:
            lines.append(json.dumps(response.json(), indent=2, ensure_ascii=False))
        except (json.JSONDecodeError, UnicodeDecodeError):
            try:
                lines.append(response.content.decode("utf-8"))
            except UnicodeDecodeError:
                lines.append(f"<Binary content: {len(response.content)} bytes>")

    return "\n".join(lines)


def format_outcome(outcome: TestOutcome) -> str:
    line = f"[{outcome.status.upper()}] {outcome.name} ({outcome.test_id}) iteration {outcome.iteration} in {outcome.elapsed:.3f}s"
    if outcome.status != OutcomeStatus.PASSED and outcome.detail:
        line += f"\n  {outcome.detail}"
    return line


def format_summary(outcomes: list[TestOutcome]) -> str:
    counts = {status: 0 for status in OutcomeStatus}
    for outcome in outcomes:
        counts[outcome.status] += 1
    return ", ".join(f"{counts[status]} {status}" for status in OutcomeStatus)
