"""Layered variable scope.

Lookup order, highest precedence first:

1. extracted: values saved from responses during this iteration
2. inherited: values extracted by the tests this one requires
3. stage: variables declared on the running stage
4. local: variables declared on the test
5. environment: globals of the active environment
6. global: configuration globals and secrets

Each iteration builds a fresh scope; nothing written here survives it except
what the caller chooses to export from :attr:`extracted`.
"""

from collections import ChainMap
from collections.abc import Iterable, Mapping
from typing import Any, Self

REDACTED = "*****"


class VariableScope:
    def __init__(
        self,
        global_vars: Mapping[str, Any] | None = None,
        environment_vars: Mapping[str, Any] | None = None,
        inherited_vars: Mapping[str, Any] | None = None,
        secrets: Iterable[str] = (),
    ):
        self.global_vars: dict[str, Any] = dict(global_vars or {})
        self.environment_vars: dict[str, Any] = dict(environment_vars or {})
        self.inherited_vars: dict[str, Any] = dict(inherited_vars or {})
        self.local_vars: dict[str, Any] = {}
        self.stage_vars: dict[str, Any] = {}
        self.extracted: dict[str, Any] = {}
        self.secret_values: set[str] = {str(value) for value in secrets if str(value)}

    @property
    def context(self) -> ChainMap[str, Any]:
        return ChainMap(
            self.extracted,
            self.inherited_vars,
            self.stage_vars,
            self.local_vars,
            self.environment_vars,
            self.global_vars,
        )

    def declare_local(self, name: str, value: Any) -> None:
        self.local_vars[name] = value

    def enter_stage(self) -> Self:
        """Start a stage with an empty stage layer."""
        self.stage_vars = {}
        return self

    def declare_stage(self, name: str, value: Any) -> None:
        self.stage_vars[name] = value

    def record_extracted(self, values: Mapping[str, Any]) -> None:
        self.extracted.update(values)

    def lookup(self, name: str) -> Any:
        return self.context[name]

    def __contains__(self, name: str) -> bool:
        return name in self.context

    def redact(self, text: str) -> str:
        """Mask secret values inside a message."""
        for secret in sorted(self.secret_values, key=len, reverse=True):
            text = text.replace(secret, REDACTED)
        return text
