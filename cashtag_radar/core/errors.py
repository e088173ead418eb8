"""Error taxonomy shared by every pipeline stage."""

from __future__ import annotations


class RadarError(Exception):
    """Base class for all pipeline errors."""


class BlockedError(RadarError):
    """The source platform served a bot-verification challenge."""

    def __init__(self, target: str, detail: str = "") -> None:
        self.target = target
        self.detail = detail
        msg = f"blocked while fetching {target}"
        if detail:
            msg = f"{msg}: {detail}"
        super().__init__(msg)


class ExtractionError(RadarError):
    """A card, comment page or message could not be parsed."""


class StorageError(RadarError):
    """A read or write against the relational store failed."""


class ConsecutiveCycleFailure(RadarError):
    """A scheduled loop failed too many cycles in a row."""

    def __init__(self, loop_name: str, failures: int) -> None:
        self.loop_name = loop_name
        self.failures = failures
        super().__init__(
            f"{loop_name} stopped after {failures} consecutive failed cycles"
        )


class ConfigurationError(RadarError):
    """Required configuration is missing or malformed."""

    def __init__(self, problems: list[str]) -> None:
        self.problems = problems
        super().__init__("; ".join(problems))
