"""Read-only store of per-vertical schema templates.

Objective:
    Load the authored vertical templates once at process start and hand out
    complete :class:`~src.taxonomy_compiler.models.VerticalTemplate` objects by
    id, display name or alias.

Catalog layout:
    - ``catalog/base.json``: the standard categories shared by every vertical.
    - ``catalog/verticals/<id>.json``: one file per vertical holding
      ``overrides`` (field replacements for standard categories) and
      ``additions`` (industry categories appended in order).

High-level call tree:
    - :meth:`TemplateStore.load`
        - :func:`read_catalog_json`
        - :func:`compose_template`
            - :func:`_apply_override`
        - :func:`validate_template`
    - :meth:`TemplateStore.get` / :meth:`TemplateStore.resolve`

Operational notes:
    - The packaged catalog lives next to this module. ``Settings.template_dir``
      can point at another directory with the same layout.
    - Templates returned by :meth:`TemplateStore.get` are deep copies, so a
      caller can never mutate the shared catalog.
"""

import json
import logging
from pathlib import Path
from typing import Any, Iterable, Optional, Union

from pydantic import ValidationError

from .config import OUT_OF_SCOPE_CATEGORY, is_standard_category
from .errors import TemplateLoadError, UnknownVerticalError
from .models import CategoryDef, SubcategoryDef, VerticalTemplate, normalize_name

logger = logging.getLogger(__name__)

DEFAULT_CATALOG_DIR = Path(__file__).resolve().parent / "catalog"


def read_catalog_json(path: Path) -> dict[str, Any]:
    """Read a catalog JSON file.

    Args:
        path: File to read.

    Returns:
        dict[str, Any]: Parsed document.

    Raises:
        TemplateLoadError: If the file is missing, unreadable or not an object.
    """
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        raise TemplateLoadError(str(path), "file not found") from None
    except (OSError, json.JSONDecodeError) as e:
        raise TemplateLoadError(str(path), str(e)) from e

    if not isinstance(data, dict):
        raise TemplateLoadError(str(path), "top-level JSON value must be an object")
    return data


def _apply_override(base: CategoryDef, override: dict[str, Any]) -> CategoryDef:
    """Replace base category fields with the fields present in ``override``.

    Subcategories named in the override that exist in the base inherit the
    base description and keywords when the override leaves them empty.

    Args:
        base: Standard category from the base catalog.
        override: Partial category document.

    Returns:
        CategoryDef: New category; ``base`` is left untouched.
    """
    merged = base.model_dump(by_alias=True)
    merged.update(override)
    merged["name"] = base.name
    merged["isStandard"] = True
    category = CategoryDef.model_validate(merged)

    base_subs = {normalize_name(s.name): s for s in base.subcategories}
    filled: list[SubcategoryDef] = []
    for sub in category.subcategories:
        inherited = base_subs.get(normalize_name(sub.name))
        if inherited is not None:
            sub = sub.model_copy(
                update={
                    "description": sub.description or inherited.description,
                    "keywords": sub.keywords or list(inherited.keywords),
                }
            )
        filled.append(sub)
    return category.model_copy(update={"subcategories": filled})


def compose_template(
    base_categories: list[CategoryDef], data: dict[str, Any], source: str
) -> VerticalTemplate:
    """Build a complete vertical template from the base and one vertical file.

    Args:
        base_categories: Standard categories in display order.
        data: Parsed vertical document.
        source: File path, used in error messages.

    Returns:
        VerticalTemplate: Composed template.

    Raises:
        TemplateLoadError: If the document is malformed.
    """
    overrides = data.get("overrides") or {}
    if not isinstance(overrides, dict):
        raise TemplateLoadError(source, "'overrides' must be an object")

    base_by_key = {c.key: c for c in base_categories}
    for name in overrides:
        if normalize_name(name) not in base_by_key:
            raise TemplateLoadError(source, f"override for non-standard category {name!r}")

    override_by_key = {normalize_name(k): v for k, v in overrides.items()}

    try:
        categories = [
            _apply_override(base, override_by_key[base.key])
            if base.key in override_by_key
            else base.model_copy(deep=True)
            for base in base_categories
        ]
        for addition in data.get("additions") or []:
            category = CategoryDef.model_validate(addition)
            categories.append(category.model_copy(update={"is_standard": False}))

        return VerticalTemplate.model_validate(
            {
                "id": data.get("id") or Path(source).stem,
                "displayName": data.get("displayName") or data.get("display_name") or "",
                "aliases": data.get("aliases") or [],
                "categories": categories,
            }
        )
    except ValidationError as e:
        raise TemplateLoadError(source, str(e)) from e


def validate_template(template: VerticalTemplate, source: str = "") -> None:
    """Check the authoring rules a template must satisfy.

    Rules:
        - Category names are unique (case-insensitive).
        - Subcategory names are unique within a category (case-insensitive).
        - ``is_standard`` agrees with the closed standard-category set.
        - No category uses the reserved ``OUT_OF_SCOPE`` name.

    Args:
        template: Template to check.
        source: File path, used in error messages.

    Raises:
        TemplateLoadError: On the first violated rule.
    """
    where = source or template.id
    seen: set[str] = set()
    for category in template.categories:
        if category.key == normalize_name(OUT_OF_SCOPE_CATEGORY):
            raise TemplateLoadError(
                where, f"category {category.name!r} uses the reserved name {OUT_OF_SCOPE_CATEGORY}"
            )
        if category.key in seen:
            raise TemplateLoadError(where, f"duplicate category {category.name!r}")
        seen.add(category.key)

        if category.is_standard != is_standard_category(category.name):
            raise TemplateLoadError(
                where, f"category {category.name!r} has inconsistent isStandard flag"
            )

        sub_seen: set[str] = set()
        for sub in category.subcategories:
            key = normalize_name(sub.name)
            if key in sub_seen:
                raise TemplateLoadError(
                    where, f"duplicate subcategory {sub.name!r} in {category.name!r}"
                )
            sub_seen.add(key)


class TemplateStore:
    """
    Versioned, read-only collection of vertical templates.

    Attributes:
        version: Catalog version string from ``base.json``.
    """

    def __init__(self, templates: Iterable[VerticalTemplate], version: str = "") -> None:
        """
        Index templates by id, display name and alias.

        Args:
            templates: Complete templates.
            version: Catalog version.

        Raises:
            TemplateLoadError: If two templates claim the same lookup name.
        """
        self.version = version
        self._templates: dict[str, VerticalTemplate] = {}
        self._lookup: dict[str, str] = {}

        for template in templates:
            self._templates[template.id] = template
            for name in [template.id, template.display_name, *template.aliases]:
                key = normalize_name(name)
                if not key:
                    continue
                owner = self._lookup.get(key)
                if owner is not None and owner != template.id:
                    raise TemplateLoadError(
                        template.id, f"name {name!r} already used by vertical {owner!r}"
                    )
                self._lookup[key] = template.id

    @classmethod
    def load(cls, catalog_dir: Optional[Union[str, Path]] = None) -> "TemplateStore":
        """
        Load every vertical template from a catalog directory.

        Args:
            catalog_dir: Directory with ``base.json`` and ``verticals/``
                (defaults to the packaged catalog).

        Returns:
            TemplateStore: Loaded store.

        Raises:
            TemplateLoadError: If any catalog file is missing or malformed.
        """
        root = Path(catalog_dir) if catalog_dir else DEFAULT_CATALOG_DIR
        base_path = root / "base.json"
        base = read_catalog_json(base_path)

        try:
            base_categories = [
                CategoryDef.model_validate({**c, "isStandard": True})
                for c in base.get("categories") or []
            ]
        except ValidationError as e:
            raise TemplateLoadError(str(base_path), str(e)) from e

        for category in base_categories:
            if not is_standard_category(category.name):
                raise TemplateLoadError(
                    str(base_path), f"{category.name!r} is not a standard category"
                )

        templates: list[VerticalTemplate] = []
        for path in sorted((root / "verticals").glob("*.json")):
            template = compose_template(base_categories, read_catalog_json(path), str(path))
            validate_template(template, str(path))
            templates.append(template)

        logger.debug(
            f"Loaded {len(templates)} vertical templates from {root} "
            f"(catalog version {base.get('version', 'unknown')})"
        )
        return cls(templates, version=str(base.get("version", "")))

    def __contains__(self, vertical: str) -> bool:
        return normalize_name(vertical) in self._lookup

    def __len__(self) -> int:
        return len(self._templates)

    def list_verticals(self) -> list[tuple[str, str]]:
        """Return ``(id, display_name)`` pairs sorted by id."""
        return sorted((t.id, t.display_name) for t in self._templates.values())

    def get(self, vertical: str) -> VerticalTemplate:
        """
        Return a copy of the template selected by id, display name or alias.

        Args:
            vertical: Vertical identifier (case-insensitive).

        Returns:
            VerticalTemplate: Deep copy of the stored template.

        Raises:
            UnknownVerticalError: If no template matches.
        """
        template_id = self._lookup.get(normalize_name(vertical))
        if template_id is None:
            raise UnknownVerticalError(vertical, self._templates.keys())
        return self._templates[template_id].model_copy(deep=True)

    def resolve(self, verticals: Iterable[str]) -> list[VerticalTemplate]:
        """
        Resolve vertical identifiers to templates, preserving input order.

        A vertical selected twice (for example by id and by alias) is returned
        once, at its first position.

        Args:
            verticals: Vertical identifiers.

        Returns:
            list[VerticalTemplate]: Templates in input order.

        Raises:
            UnknownVerticalError: On the first unknown identifier.
        """
        resolved: list[VerticalTemplate] = []
        seen: set[str] = set()
        for vertical in verticals:
            template = self.get(vertical)
            if template.id in seen:
                continue
            seen.add(template.id)
            resolved.append(template)
        return resolved
