"""Exceptions raised by the card inventory pipeline."""

from typing import Iterable, List


class InventoryError(Exception):
    """Base class for fatal pipeline errors."""


class MissingInputError(InventoryError):
    """One or more required input files do not exist.

    Raised before any output is written so a failed run never touches the
    previous canonical dataset.
    """

    def __init__(self, paths: Iterable[str]):
        self.paths: List[str] = [str(p) for p in paths]
        joined = ", ".join(self.paths)
        super().__init__(f"Missing input file(s): {joined}")


class ConfigError(InventoryError):
    """The configuration file could not be read or holds invalid values."""


class InputReadError(InventoryError):
    """An input file exists but could not be read."""

    def __init__(self, path: str, reason: str):
        self.path = str(path)
        super().__init__(f"Cannot read input file {self.path}: {reason}")
