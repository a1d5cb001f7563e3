"""YAML/JSON test document loading."""

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from httpstages_models.entities import TestDefinition
from httpstages_models.exceptions import DefinitionError

logger = logging.getLogger(__name__)

TIMESTAMP_TAG = "tag:yaml.org,2002:timestamp"


class DocumentLoader(yaml.SafeLoader):
    """Safe loader that keeps dates as plain strings so date formats stay in charge."""


DocumentLoader.yaml_implicit_resolvers = {
    first: [(tag, regexp) for tag, regexp in resolvers if tag != TIMESTAMP_TAG]
    for first, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}


@dataclass
class LoadResult:
    """Definitions that parsed, and the errors of those that did not."""

    definitions: list[TestDefinition] = field(default_factory=list)
    errors: list[DefinitionError] = field(default_factory=list)

    def extend(self, other: "LoadResult") -> None:
        self.definitions.extend(other.definitions)
        self.errors.extend(other.errors)


def format_validation_error(e: ValidationError) -> str:
    error_details = []
    for error in e.errors():
        loc = " -> ".join(str(x) for x in error["loc"])
        msg = error["msg"]
        error_details.append(f"  - {loc}: {msg}")
    return "Cannot parse test definition:\n" + "\n".join(error_details)


def load_documents(text: str, source: str = "<string>") -> list[Any]:
    """Parse every YAML (or JSON) document in ``text``, skipping empty ones."""
    try:
        return [document for document in yaml.load_all(text, Loader=DocumentLoader) if document is not None]
    except yaml.YAMLError as e:
        raise DefinitionError(f"Failed to parse document: {str(e)}", source=source) from None


def parse_definition(document: Any, source: str | None = None) -> TestDefinition:
    test_id = document.get("id") if isinstance(document, dict) else None
    try:
        return TestDefinition.model_validate(document)
    except ValidationError as e:
        raise DefinitionError(format_validation_error(e), source=source, test_id=test_id) from None


def parse_definitions(documents: Iterable[Any], source: str | None = None) -> LoadResult:
    """Parse documents independently: a bad one is reported and never stops the others."""
    result = LoadResult()
    for document in documents:
        try:
            result.definitions.append(parse_definition(document, source))
        except DefinitionError as e:
            logger.error(f"Skipping test definition: {e}")
            result.errors.append(e)
    return result


def load_text(text: str, source: str = "<string>") -> LoadResult:
    try:
        documents = load_documents(text, source)
    except DefinitionError as e:
        logger.error(str(e))
        return LoadResult(errors=[e])
    return parse_definitions(documents, source)


def load_file(path: Path) -> LoadResult:
    try:
        text = Path(path).read_text(encoding="utf-8")
    except OSError as e:
        error = DefinitionError(f"Cannot read file: {str(e)}", source=str(path))
        logger.error(str(error))
        return LoadResult(errors=[error])
    return load_text(text, source=str(path))


def load_paths(paths: Iterable[Path]) -> LoadResult:
    """Load files in the given order; file order is the resolver's tie-break."""
    result = LoadResult()
    for path in paths:
        result.extend(load_file(path))
    return result
