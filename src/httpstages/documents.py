"""Dotted-path pruning and extraction over JSON documents, and document diffs."""

from typing import Any

from deepdiff import DeepDiff


class PathNotFoundError(LookupError):
    def __init__(self, path: str):
        super().__init__(f"Path not found: '{path}'")
        self.path = path


def prune(document: Any, path: str) -> Any:
    """Return a copy of ``document`` without the member addressed by ``path``.

    Object segments descend into the named member. An array applies the
    remaining path to every element. Missing members and scalars are left
    untouched, so pruning twice gives the same result as pruning once. The
    input is never modified; untouched subtrees are shared with it.
    """
    return _prune(document, path.split("."))


def _prune(value: Any, segments: list[str]) -> Any:
    match value:
        case dict():
            head, rest = segments[0], segments[1:]
            if head not in value:
                return value
            if not rest:
                return {key: item for key, item in value.items() if key != head}
            return {**value, head: _prune(value[head], rest)}
        case list():
            return [_prune(item, segments) for item in value]
        case _:
            return value


def prune_all(document: Any, paths: list[str]) -> Any:
    for path in paths:
        document = prune(document, path)
    return document


def extract(document: Any, path: str) -> Any:
    """Read the value at a dotted path.

    Arrays map the remaining path over their elements and flatten the
    results; a numeric segment indexes into an array instead.
    """
    return _extract(document, path.split("."), path)


def _extract(value: Any, segments: list[str], path: str) -> Any:
    if not segments:
        return value

    head, rest = segments[0], segments[1:]
    match value:
        case dict():
            if head not in value:
                raise PathNotFoundError(path)
            return _extract(value[head], rest, path)
        case list() if head.isdigit():
            index = int(head)
            if index >= len(value):
                raise PathNotFoundError(path)
            return _extract(value[index], rest, path)
        case list():
            results = []
            for item in value:
                found = _extract(item, segments, path)
                if isinstance(found, list):
                    results.extend(found)
                else:
                    results.append(found)
            return results
        case _:
            raise PathNotFoundError(path)


def _format_changes(report_type: str, changes: Any) -> list[str]:
    lines = [f"{report_type}:"]
    if isinstance(changes, dict):
        for location, change in changes.items():
            lines.append(f"  {location}: {change}")
    else:
        for location in changes:
            lines.append(f"  {location}")
    return lines


def diff_documents(expected: Any, actual: Any, strict: bool = True, inclusive: bool = False) -> str | None:
    """Describe how ``actual`` differs from ``expected``, or None when they match.

    Non-strict comparison treats numbers of different types as equal
    (``1 == 1.0``). Inclusive comparison tolerates members present only in
    ``actual``.
    """
    diff = DeepDiff(expected, actual, ignore_numeric_type_changes=not strict)
    lines: list[str] = []
    for report_type, changes in diff.items():
        if inclusive and report_type == "dictionary_item_added":
            continue
        lines.extend(_format_changes(report_type, changes))
    return "\n".join(lines) if lines else None
