"""Seeded value generation under constraints."""

import hashlib
import json
import logging
import re
import string
from collections.abc import Callable, Sequence
from datetime import datetime
from typing import Any, TypeVar

from faker import Faker

from httpstages_vars.exceptions import VariableGenerationError

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_ATTEMPTS = 100
DEFAULT_NUMBER_SPAN = 100

# Candidate alphabets tried in turn for pattern-constrained strings
_ALPHABETS = (
    string.ascii_letters,
    string.ascii_lowercase,
    string.ascii_uppercase,
    string.digits,
    string.ascii_letters + string.digits,
    string.ascii_lowercase + string.digits,
)


def derive_seed(*parts: Any) -> int:
    """Stable seed from arbitrary JSON-serializable parts."""
    payload = json.dumps(parts, sort_keys=True, default=str).encode()
    return int.from_bytes(hashlib.sha256(payload).digest()[:8], "big")


def string_length_bounds(length: int | None, min_length: int | None, max_length: int | None) -> tuple[int, int]:
    if length is not None:
        return length, length
    low = min_length if min_length is not None else min(5, max_length // 2 if max_length is not None else 5)
    high = max_length if max_length is not None else max(low * 2, 20)
    return low, high


def number_bounds(minimum: float | None, maximum: float | None) -> tuple[float, float]:
    if minimum is None and maximum is None:
        return 0, DEFAULT_NUMBER_SPAN
    if minimum is None:
        return min(0, maximum - DEFAULT_NUMBER_SPAN), maximum
    if maximum is None:
        return minimum, max(DEFAULT_NUMBER_SPAN, minimum + DEFAULT_NUMBER_SPAN)
    return minimum, maximum


class ValueGenerator:
    """Produces values from a Faker instance reseeded for every value.

    Each call to :meth:`reseed` makes the following draws reproducible, so a
    given seed always yields the same value for the same constraints.
    """

    def __init__(self, max_attempts: int = DEFAULT_MAX_ATTEMPTS, locale: str | None = None):
        self.max_attempts = max_attempts
        self.faker = Faker(locale)

    def reseed(self, seed: int) -> None:
        self.faker.seed_instance(seed)

    def satisfy(self, produce: Callable[[int], T], check: Callable[[T], bool], description: str) -> T:
        """Generate-and-check loop bounded by ``max_attempts``."""
        for attempt in range(self.max_attempts):
            candidate = produce(attempt)
            if check(candidate):
                return candidate
        raise VariableGenerationError(f"Could not generate {description} within {self.max_attempts} attempts")

    def choice(self, options: Sequence[T]) -> T:
        return self.faker.random.choice(list(options))

    def integer(self, minimum: int, maximum: int) -> int:
        if minimum > maximum:
            raise VariableGenerationError(f"Empty integer range [{minimum}, {maximum}]")
        return self.faker.random_int(min=minimum, max=maximum)

    def floating(self, minimum: float, maximum: float) -> float:
        if minimum > maximum:
            raise VariableGenerationError(f"Empty float range [{minimum}, {maximum}]")
        return round(self.faker.random.uniform(minimum, maximum), 3)

    def boolean(self) -> bool:
        return self.faker.pybool()

    def text(self, min_length: int, max_length: int, alphabet: str = string.ascii_letters) -> str:
        if min_length > max_length:
            raise VariableGenerationError(f"Empty length range [{min_length}, {max_length}]")
        size = self.faker.random_int(min=min_length, max=max_length)
        return "".join(self.faker.random.choices(alphabet, k=size))

    def matching_text(self, pattern: str, min_length: int, max_length: int) -> str:
        regex = re.compile(pattern)

        def produce(attempt: int) -> str:
            return self.text(min_length, max_length, _ALPHABETS[attempt % len(_ALPHABETS)])

        return self.satisfy(produce, lambda candidate: regex.search(candidate) is not None, f"a string matching '{pattern}'")

    def name(self) -> str:
        return f"{self.faker.first_name()} {self.faker.last_name()}"

    def email(self) -> str:
        return self.faker.email()

    def instant(self, start: datetime, end: datetime) -> datetime:
        if start > end:
            raise VariableGenerationError(f"Empty date range [{start}, {end}]")
        return self.faker.date_time_between_dates(datetime_start=start, datetime_end=end, tzinfo=start.tzinfo)
