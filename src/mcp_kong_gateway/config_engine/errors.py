"""Error taxonomy of the reconciliation pipeline.

ParseError / ValidationError abort before any remote call.
DependencyError / FetchError abort the whole run.
An update blocked by the override policy is not an error: the executor
reports it as a skipped ChangeOutcome.
"""
from typing import Optional


class GatewayConfigError(Exception):
    """Base class for pipeline errors."""

    kind: Optional[str] = None
    name: Optional[str] = None

    @property
    def context(self) -> Optional[str]:
        """'<Kind> <name>' of the resource being processed, if known."""
        if self.kind and self.name:
            return f"{self.kind} {self.name}"
        return None


class ParseError(GatewayConfigError):
    """Unrecognized document shape or malformed field."""
    pass


class ValidationError(GatewayConfigError):
    """Document is well-formed but logically invalid."""

    def __init__(self, errors: list[str] | str):
        if isinstance(errors, str):
            errors = [errors]
        self.errors = list(errors)
        super().__init__("; ".join(self.errors))


class DependencyError(GatewayConfigError):
    """A referenced resource neither exists nor is planned earlier in the run."""

    def __init__(self, kind: str, name: str, missing: str):
        self.kind = kind
        self.name = name
        self.missing = missing
        super().__init__(
            f"{kind} {name} references {missing}, which does not exist "
            f"and is not created earlier in this run"
        )


class FetchError(GatewayConfigError):
    """Looking up remote state failed for a reason other than 'not found'."""

    def __init__(self, kind: str, name: str, cause: Exception):
        self.kind = kind
        self.name = name
        self.cause = cause
        super().__init__(f"Failed to fetch {kind} {name}: {cause}")
