"""Producing variable values for a test iteration.

Declarations are resolved in order, so a value may reference globals and any
variable declared before it. Generated values are seeded from the session
seed, the owning test, the variable's name and constraints, and the
iteration index, which makes a session reproducible from its seed.
"""

import json
import logging
from collections.abc import Callable
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Any

from httpstages_models import VariableDefinition, VariableType
from httpstages_vars.dates import DEFAULT_DATE_FORMAT, DEFAULT_DATETIME_FORMAT, format_instant, parse_any, shift
from httpstages_vars.exceptions import VariableFileError, VariableFormatError, VariableGenerationError
from httpstages_vars.generation import ValueGenerator, derive_seed, number_bounds, string_length_bounds
from httpstages_vars.scope import VariableScope
from httpstages_vars.substitution import render_text, to_text, walk

from .clock import Clock

logger = logging.getLogger(__name__)

LOCAL_NOW_KEYWORDS = {"now", "today"}
UTC_NOW_KEYWORDS = {"now_utc", "today_utc"}
DEFAULT_DATE_SPAN = timedelta(days=3650)


class VariableEngine:
    def __init__(self, clock: Clock, session_seed: int, max_attempts: int = 100):
        self.clock = clock
        self.session_seed = session_seed
        self.generator = ValueGenerator(max_attempts=max_attempts)

    def builtins(self) -> dict[str, str]:
        now = self.clock.now()
        utc_now = self.clock.utc_now()
        return {
            "TODAY": format_instant(now.date(), DEFAULT_DATE_FORMAT),
            "TODAY_UTC": format_instant(utc_now.date(), DEFAULT_DATE_FORMAT),
            "NOW": format_instant(now, DEFAULT_DATETIME_FORMAT),
            "NOW_UTC": format_instant(utc_now, DEFAULT_DATETIME_FORMAT),
        }

    def materialize(
        self,
        definitions: list[VariableDefinition],
        iteration: int,
        scope: VariableScope,
        declare: Callable[[str, Any], None],
        salt: str = "",
    ) -> dict[str, Any]:
        produced: dict[str, Any] = {}
        for definition in definitions:
            value = self.produce(definition, iteration, scope, salt)
            declare(definition.name, value)
            produced[definition.name] = value
            logger.info(scope.redact(f"Variable {definition.name} = {value!r} (iteration {iteration})"))
        return produced

    def produce(self, definition: VariableDefinition, iteration: int, scope: VariableScope, salt: str = "") -> Any:
        if definition.has_value:
            return self.coerce(definition, walk(definition.value, scope.context))
        if definition.value_set is not None:
            raw = definition.value_set[iteration % len(definition.value_set)]
            return self.coerce(definition, walk(raw, scope.context))
        if definition.file is not None:
            return self.coerce(definition, self.read_file(definition, render_text(definition.file, scope.context)))
        return self.generate(definition, iteration, salt)

    def read_file(self, definition: VariableDefinition, path: str) -> Any:
        """Contents of a variable file; untyped `.json` files are decoded.

        Relative paths are taken from the working directory.
        """
        try:
            text = Path(path).read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise VariableFileError(f"Variable {definition.name}: cannot read '{path}': {str(e)}") from None
        if definition.type is None and Path(path).suffix.lower() == ".json":
            try:
                return json.loads(text)
            except json.JSONDecodeError as e:
                raise VariableFileError(f"Variable {definition.name}: '{path}' is not valid JSON: {str(e)}") from None
        return text.removesuffix("\n")

    def coerce(self, definition: VariableDefinition, raw: Any) -> Any:
        """Turn a literal (after substitution) into a value of the declared type."""
        match definition.type:
            case None:
                return raw
            case VariableType.DATE | VariableType.DATETIME:
                instant = self._instant(definition, raw)
                if definition.modifier is not None:
                    modifier = definition.modifier
                    instant = shift(instant, modifier.operation, modifier.value, modifier.unit)
                return self._format(definition, instant)
            case VariableType.INT:
                return self._convert(definition, raw, int)
            case VariableType.FLOAT:
                return self._convert(definition, raw, float)
            case VariableType.BOOLEAN:
                if isinstance(raw, bool):
                    return raw
                if isinstance(raw, str) and raw.lower() in ("true", "false"):
                    return raw.lower() == "true"
                raise VariableFormatError(f"Variable {definition.name}: {raw!r} is not a boolean")
            case _:
                return to_text(raw)

    def _convert(self, definition: VariableDefinition, raw: Any, kind: type) -> Any:
        if isinstance(raw, bool):
            raise VariableFormatError(f"Variable {definition.name}: {raw!r} is not {definition.type}")
        try:
            value = kind(raw)
        except (TypeError, ValueError):
            raise VariableFormatError(f"Variable {definition.name}: {raw!r} is not {definition.type}") from None
        if kind is int and isinstance(raw, float) and raw != value:
            raise VariableFormatError(f"Variable {definition.name}: {raw!r} is not {definition.type}")
        return value

    def _instant(self, definition: VariableDefinition, raw: Any) -> datetime:
        if not isinstance(raw, str):
            raise VariableFormatError(f"Variable {definition.name}: {raw!r} is not a date")
        keyword = raw.strip().lower()
        if keyword in LOCAL_NOW_KEYWORDS:
            return self.clock.now()
        if keyword in UTC_NOW_KEYWORDS:
            return self.clock.utc_now()
        return parse_any(raw, [definition.effective_format(), DEFAULT_DATETIME_FORMAT, DEFAULT_DATE_FORMAT])

    def _format(self, definition: VariableDefinition, instant: date) -> str:
        if definition.type == VariableType.DATE and isinstance(instant, datetime):
            instant = instant.date()
        return format_instant(instant, definition.effective_format())

    def generate(self, definition: VariableDefinition, iteration: int, salt: str = "") -> Any:
        constraints = definition.model_dump(mode="json", exclude_none=True, exclude={"name"})
        self.generator.reseed(derive_seed(self.session_seed, salt, definition.name, iteration, constraints))
        excluded = definition.none_of or []

        try:
            value = self.generator.satisfy(self._producer(definition), lambda v: v not in excluded, f"a value for {definition.name}")
        except VariableGenerationError as e:
            raise VariableGenerationError(f"Variable {definition.name}: {e.message}") from None

        if definition.one_of or definition.any_of:
            return self.coerce(definition, value)
        return value

    def _producer(self, definition: VariableDefinition) -> Callable[[int], Any]:
        generator = self.generator
        choices = definition.one_of or definition.any_of
        if choices:
            return lambda _: generator.choice(choices)

        match definition.type:
            case VariableType.INT:
                low, high = number_bounds(definition.min, definition.max)
                return lambda _: generator.integer(int(low), int(high))
            case VariableType.FLOAT:
                low, high = number_bounds(definition.min, definition.max)
                return lambda _: generator.floating(float(low), float(high))
            case VariableType.BOOLEAN:
                return lambda _: generator.boolean()
            case VariableType.NAME:
                return lambda _: generator.name()
            case VariableType.EMAIL:
                return lambda _: generator.email()
            case VariableType.DATE | VariableType.DATETIME:
                start, end = self._date_bounds(definition)
                return lambda _: self._format(definition, generator.instant(start, end))
            case _:
                low, high = string_length_bounds(definition.length, definition.min_length, definition.max_length)
                if definition.pattern is not None:
                    return lambda _: generator.matching_text(definition.pattern, low, high)
                return lambda _: generator.text(low, high)

    def _date_bounds(self, definition: VariableDefinition) -> tuple[datetime, datetime]:
        formats = [definition.effective_format()]
        now = self.clock.now()
        start = self._bound(definition.min, formats, now)
        end = self._bound(definition.max, formats, now)
        if start is None:
            start = (end or now) - DEFAULT_DATE_SPAN
        if end is None:
            end = max(start, now) + DEFAULT_DATE_SPAN
        return start, end

    @staticmethod
    def _bound(raw: Any, formats: list[str], now: datetime) -> datetime | None:
        if raw is None:
            return None
        bound = parse_any(str(raw), formats)
        # naive bounds are wall-clock times in the clock's zone
        if bound.tzinfo is None:
            bound = bound.replace(tzinfo=now.tzinfo)
        return bound
