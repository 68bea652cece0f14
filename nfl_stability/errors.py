from __future__ import annotations

from typing import Iterable


class StabilityError(Exception):
    """Base class for errors raised by the analysis core."""


class MissingColumn(StabilityError, KeyError):
    def __init__(self, columns: Iterable[str], table: str = "input") -> None:
        self.columns = list(columns)
        self.table = table
        super().__init__(f"{table} is missing required column(s): {', '.join(self.columns)}")

    def __str__(self) -> str:
        # KeyError would otherwise repr() the message
        return self.args[0]


class SchemaMismatch(StabilityError, ValueError):
    pass


class InsufficientData(StabilityError, ValueError):
    pass


class NonFiniteData(InsufficientData):
    pass
