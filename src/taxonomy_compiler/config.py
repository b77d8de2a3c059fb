"""Application configuration and settings.

Objective:
    Provide a single source of truth for runtime configuration and the fixed
    tables shared by every compiler stage (standard categories, department
    scope mapping, the synthetic out-of-scope category).

Responsibilities:
    - Define the closed set of cross-industry categories
      (:class:`StandardCategory`).
    - Define the department tag -> category table used by the scope resolver.
    - Load environment-driven settings via :class:`Settings` (Pydantic
      BaseSettings).

High-level call tree:
    - :func:`get_settings` -> returns :class:`Settings`
    - :class:`Settings`
        - :attr:`Settings.default_scope_list`

Operational notes:
    - ``Settings`` loads from ``.env`` by default via ``pydantic-settings``.
    - Compiler components accept catalogs and settings explicitly; only the
      CLI and web entrypoints fall back to :func:`get_settings`.
"""

from enum import Enum
from typing import Optional
import logging

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

# Synthetic category used only when a department scope is restricted
OUT_OF_SCOPE_CATEGORY = "OUT_OF_SCOPE"

# Confidence the classifier reports for OUT_OF_SCOPE results unless configured
DEFAULT_OUT_OF_SCOPE_CONFIDENCE = 0.9

# Scope mode meaning "no restriction"
ALL_DEPARTMENTS = "all"


class StandardCategory(str, Enum):
    """Cross-industry categories present in every vertical template.

    The Enum values are the user-facing label names.
    """

    BANKING = "BANKING"
    FORMSUB = "FORMSUB"
    GOOGLE_REVIEW = "GOOGLE_REVIEW"
    MANAGER = "MANAGER"
    SALES = "SALES"
    SUPPLIERS = "SUPPLIERS"
    SUPPORT = "SUPPORT"
    URGENT = "URGENT"
    MISC = "MISC"
    PHONE = "PHONE"
    PROMO = "PROMO"
    RECRUITMENT = "RECRUITMENT"
    SOCIALMEDIA = "SOCIALMEDIA"


STANDARD_CATEGORY_NAMES = frozenset(c.value for c in StandardCategory)

# Department tag -> categories the department is allowed to handle
DEPARTMENT_CATEGORIES: dict[str, tuple[str, ...]] = {
    "sales": (StandardCategory.SALES.value, StandardCategory.FORMSUB.value),
    "support": (StandardCategory.SUPPORT.value, StandardCategory.URGENT.value),
    "operations": (
        StandardCategory.MANAGER.value,
        StandardCategory.SUPPLIERS.value,
        StandardCategory.BANKING.value,
        StandardCategory.RECRUITMENT.value,
    ),
    "urgent": (StandardCategory.URGENT.value,),
}


def is_standard_category(name: str) -> bool:
    """Return True when ``name`` is one of the standard categories.

    Args:
        name: Category name (any case).

    Returns:
        bool: Whether the name belongs to the closed standard set.
    """
    return (name or "").strip().upper() in STANDARD_CATEGORY_NAMES


class Settings(BaseSettings):
    """
    Compiler settings loaded from environment variables.

    The settings model is intentionally flat and human-editable via `.env`.

    Attributes:
        template_dir: Directory holding vertical template JSON files.
        role_catalog_path: JSON file holding the manager role catalog.
        default_department_scope: Comma-separated scope used when a profile
            does not provide one.
        out_of_scope_confidence: Confidence embedded in the fallback directive.
        max_prompt_chars: Soft cap on the rendered prompt size.
        log_level: Logging level.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Catalog locations (packaged data is used when unset)
    template_dir: Optional[str] = Field(
        default=None, description="Override directory for vertical template files"
    )
    role_catalog_path: Optional[str] = Field(
        default=None, description="Override path for the role catalog JSON file"
    )

    # Scope behavior
    default_department_scope: str = Field(
        default=ALL_DEPARTMENTS,
        description="Comma-separated department tags, or 'all'",
    )
    out_of_scope_confidence: float = Field(
        default=DEFAULT_OUT_OF_SCOPE_CONFIDENCE,
        ge=0.0,
        le=1.0,
        description="Confidence the classifier must report for OUT_OF_SCOPE results",
    )

    # Prompt rendering
    max_prompt_chars: Optional[int] = Field(
        default=60000,
        ge=1000,
        description="Log a warning when the rendered prompt exceeds this size",
    )

    log_level: str = Field(default="INFO", description="Logging level")

    @property
    def default_scope_list(self) -> list[str]:
        """Parse the default department scope.

        Returns:
            list[str]: Lowercased department tags (``["all"]`` when blank).
        """
        if not self.default_department_scope.strip():
            return [ALL_DEPARTMENTS]
        return [
            tag.strip().lower()
            for tag in self.default_department_scope.split(",")
            if tag.strip()
        ]


def get_settings() -> Settings:
    """
    Load and return application settings.

    For tests, construct a :class:`Settings` instance directly instead.

    Returns:
        Settings: Application settings instance.

    Raises:
        ValidationError: If an environment variable holds an invalid value.
    """
    return Settings()
