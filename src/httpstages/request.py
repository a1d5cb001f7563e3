from collections.abc import Mapping
from typing import Any

from httpstages_models import CompareSpec, RequestSpec
from httpstages_vars.substitution import render_text, walk

from .constants import RequestKind
from .transport import HttpRequest


def _inherit(
    explicit: Mapping[str, Any] | None,
    inherited: Mapping[str, Any],
    added: Mapping[str, Any],
    ignored: list[str],
    case_insensitive: bool = False,
) -> dict[str, Any]:
    if explicit is not None:
        return dict(explicit)

    def _key(name: str) -> str:
        return name.lower() if case_insensitive else name

    dropped = {_key(name) for name in ignored}
    merged = {name: value for name, value in inherited.items() if _key(name) not in dropped}
    merged.update(added)
    return merged


def merge_compare(primary: RequestSpec, compare: CompareSpec) -> RequestSpec:
    """Build the comparison request from the primary one and the compare overrides.

    Explicit params/headers replace the primary's; otherwise the primary's
    are inherited, minus the ignored names, plus the added ones. Method and
    body are inherited when not overridden.
    """
    fields: dict[str, Any] = {
        "method": compare.method or primary.method,
        "url": compare.url,
        "params": _inherit(compare.params, primary.params, compare.add_params, compare.ignore_params),
        "headers": _inherit(compare.headers, primary.headers, compare.add_headers, compare.ignore_headers, case_insensitive=True),
    }
    if compare.has_body:
        fields["body"] = compare.body
    elif primary.has_body:
        fields["body"] = primary.body
    return RequestSpec(**fields)


def render_request(spec: RequestSpec, context: Mapping[str, Any], kind: RequestKind = RequestKind.PRIMARY) -> HttpRequest:
    """Resolve every ``${name}`` reference of a request against the scope."""
    return HttpRequest(
        method=str(spec.method),
        url=render_text(spec.url, context),
        headers={name: render_text(value, context) for name, value in spec.headers.items()},
        params={name: render_text(value, context) for name, value in spec.params.items()},
        body=walk(spec.body, context) if spec.has_body else None,
        has_body=spec.has_body,
        kind=kind,
    )
