"""Schema merge engine.

Objective:
    Reconcile one or more independently-authored vertical templates into a
    single deduplicated :class:`~src.taxonomy_compiler.models.MergedSchema`.

Merge rules:
    - Categories are matched by case-insensitive name. The first appearance
      fixes the display position, color, intent and description.
    - When a name appears again, either as a standard category shared by every
      template or as an industry category shared by related verticals (for
      example two aquatics verticals both defining ``SEASONAL``), the
      definitions are folded: subcategories unioned by case-insensitive name in
      first-seen order, keywords unioned with order preserved.
    - Standard and industry categories follow the same fold rule; the
      ``is_standard`` tag only records which kind a category is.

High-level call tree:
    - :func:`merge_business_types`
        - :meth:`TemplateStore.resolve`
        - :func:`merge`
            - :func:`_fold_category`
                - :func:`union_subcategories`
                - :func:`union_keywords`

Operational notes:
    - :func:`merge` is pure: input templates are never modified.
    - Input order matters for display order and metadata, never for the set
      of resulting names.
"""

import logging
from typing import Iterable, Sequence

from .config import is_standard_category
from .errors import NoVerticalsError
from .models import CategoryDef, MergedSchema, SubcategoryDef, VerticalTemplate, normalize_name
from .template_store import TemplateStore

logger = logging.getLogger(__name__)


def union_keywords(*keyword_lists: Iterable[str]) -> list[str]:
    """Union keyword lists, dropping case-insensitive duplicates.

    Args:
        keyword_lists: Keyword lists in priority order.

    Returns:
        list[str]: Keywords in first-seen order.
    """
    merged: list[str] = []
    seen: set[str] = set()
    for keywords in keyword_lists:
        for keyword in keywords:
            key = normalize_name(keyword)
            if not key or key in seen:
                continue
            seen.add(key)
            merged.append(keyword)
    return merged


def union_subcategories(*sub_lists: Iterable[SubcategoryDef]) -> list[SubcategoryDef]:
    """Union subcategory lists by case-insensitive name.

    The first occurrence keeps its position and spelling. Later occurrences
    contribute keywords, and a description when the first had none.

    Args:
        sub_lists: Subcategory lists in priority order.

    Returns:
        list[SubcategoryDef]: New subcategory objects in first-seen order.
    """
    merged: dict[str, SubcategoryDef] = {}
    for subs in sub_lists:
        for sub in subs:
            key = normalize_name(sub.name)
            existing = merged.get(key)
            if existing is None:
                merged[key] = sub.model_copy(deep=True)
                continue
            merged[key] = existing.model_copy(
                update={
                    "description": existing.description or sub.description,
                    "keywords": union_keywords(existing.keywords, sub.keywords),
                }
            )
    return list(merged.values())


def _fold_category(existing: CategoryDef, incoming: CategoryDef) -> CategoryDef:
    """Fold ``incoming`` into ``existing``; first-seen metadata wins."""
    return existing.model_copy(
        update={
            "description": existing.description or incoming.description,
            "intent": existing.intent or incoming.intent,
            "keywords": union_keywords(existing.keywords, incoming.keywords),
            "subcategories": union_subcategories(
                existing.subcategories, incoming.subcategories
            ),
        }
    )


def merge(verticals: Sequence[VerticalTemplate]) -> MergedSchema:
    """
    Merge vertical templates into one deduplicated schema.

    Args:
        verticals: Templates in priority order (first-seen wins).

    Returns:
        MergedSchema: Categories in first-appearance order.

    Raises:
        NoVerticalsError: If ``verticals`` is empty.
    """
    if not verticals:
        raise NoVerticalsError()

    folded: dict[str, CategoryDef] = {}
    for template in verticals:
        for category in template.categories:
            existing = folded.get(category.key)
            if existing is None:
                # Self-fold also collapses duplicate subcategories inside one template.
                folded[category.key] = _fold_category(
                    category.model_copy(
                        update={"subcategories": union_subcategories(category.subcategories)}
                    ),
                    category,
                )
                continue

            kind = "standard" if is_standard_category(category.name) else "industry"
            logger.debug(
                f"Folding {kind} category {category.name} from {template.id} "
                f"into {existing.name}"
            )
            folded[category.key] = _fold_category(existing, category)

    schema = MergedSchema(
        source_verticals=[t.id for t in verticals],
        categories=list(folded.values()),
    )
    logger.info(
        f"Merged {len(verticals)} vertical(s) "
        f"({', '.join(schema.source_verticals)}) into {len(schema.categories)} categories"
    )
    return schema


def merge_business_types(
    business_types: Iterable[str], store: TemplateStore
) -> MergedSchema:
    """
    Resolve vertical identifiers through the store and merge them.

    Args:
        business_types: Vertical ids, display names or aliases.
        store: Template store.

    Returns:
        MergedSchema: Merged schema.

    Raises:
        UnknownVerticalError: If an identifier has no template.
        NoVerticalsError: If no identifier is given.
    """
    return merge(store.resolve(business_types))
