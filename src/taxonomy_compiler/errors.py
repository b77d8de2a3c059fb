"""Compiler error taxonomy.

Every error here is a deterministic input-validation failure: re-running the
compiler with the same inputs reproduces it, so nothing is retried. Each error
carries structured detail (offending id, mismatch list) and exposes it through
:meth:`CompilerError.to_dict` for the CLI and web entrypoints.
"""

from typing import Any, Iterable


class CompilerError(ValueError):
    """Base class for all compiler failures."""

    code = "compiler_error"

    def details(self) -> dict[str, Any]:
        """Return error-specific structured detail.

        Returns:
            dict[str, Any]: Detail payload (empty for the base class).
        """
        return {}

    def to_dict(self) -> dict[str, Any]:
        """Serialize the error for API responses.

        Returns:
            dict[str, Any]: ``{"error": code, "message": str, **details}``.
        """
        return {"error": self.code, "message": str(self), **self.details()}


class TemplateLoadError(CompilerError):
    """Raised when a catalog data file is missing or malformed."""

    code = "template_load_error"

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"Failed to load catalog file {path}: {reason}")
        self.path = path
        self.reason = reason

    def details(self) -> dict[str, Any]:
        return {"path": self.path, "reason": self.reason}


class UnknownVerticalError(CompilerError):
    """Raised when a vertical id has no template."""

    code = "unknown_vertical"

    def __init__(self, vertical_id: str, available: Iterable[str] = ()) -> None:
        self.vertical_id = vertical_id
        self.available = sorted(available)
        super().__init__(f"Unknown vertical: {vertical_id!r}")

    def details(self) -> dict[str, Any]:
        return {"vertical_id": self.vertical_id, "available": self.available}


class UnknownDepartmentError(CompilerError):
    """Raised when a department scope names an unknown department tag."""

    code = "unknown_department"

    def __init__(self, department: str, available: Iterable[str] = ()) -> None:
        self.department = department
        self.available = sorted(available)
        super().__init__(f"Unknown department: {department!r}")

    def details(self) -> dict[str, Any]:
        return {"department": self.department, "available": self.available}


class EmptyScopeError(CompilerError):
    """Raised when a department scope resolves to no allowed categories."""

    code = "empty_scope"

    def __init__(self, departments: Iterable[str]) -> None:
        self.departments = list(departments)
        super().__init__(
            "Department scope "
            f"{', '.join(self.departments) or '(none)'} allows no categories"
        )

    def details(self) -> dict[str, Any]:
        return {"departments": self.departments}


class SchemaConsistencyError(CompilerError):
    """Raised when the classifier config and label taxonomy disagree.

    Args:
        mismatches: Mismatch records reported by the validator.
        stage: Pipeline stage that produced the inconsistent artifacts.
    """

    code = "schema_inconsistent"

    def __init__(self, mismatches: list, stage: str = "") -> None:
        self.mismatches = list(mismatches)
        self.stage = stage
        where = f" after {stage}" if stage else ""
        super().__init__(
            f"Classifier config and label taxonomy disagree{where}: "
            f"{len(self.mismatches)} mismatch(es)"
        )

    def details(self) -> dict[str, Any]:
        return {
            "stage": self.stage,
            "mismatches": [
                m.model_dump() if hasattr(m, "model_dump") else m
                for m in self.mismatches
            ],
        }


class UnresolvedPlaceholderError(CompilerError):
    """Raised when a template placeholder reaches the prompt assembler."""

    code = "unresolved_placeholder"

    def __init__(self, placeholders: Iterable[str]) -> None:
        self.placeholders = sorted(set(placeholders))
        super().__init__(
            f"Unresolved placeholder(s): {', '.join(self.placeholders)}"
        )

    def details(self) -> dict[str, Any]:
        return {"placeholders": self.placeholders}


class NoVerticalsError(CompilerError):
    """Raised when a merge is requested without any vertical."""

    code = "no_verticals"

    def __init__(self) -> None:
        super().__init__("At least one vertical must be selected")
