"""Cross-artifact consistency checks.

Objective:
    Keep the two derived artifacts, the classifier config (AI side) and the
    label plan (mailbox side), structurally identical: same category names and
    the same subcategory-name set per category.

Responsibilities:
    - Derive both artifacts from a list of categories
      (:func:`build_classifier_config`, :func:`build_label_plan`).
    - Compare them and report every mismatch (:func:`validate`).
    - Turn a non-empty report into a hard stop (:func:`ensure_consistent`).

High-level call tree:
    - :func:`check_categories`
        - :func:`build_classifier_config`
        - :func:`build_label_plan`
        - :func:`ensure_consistent`
            - :func:`validate`

Operational notes:
    - Names are compared case-insensitively.
    - The classifier fallback category is selectable and must therefore have a
      label node too.
"""

import logging
from typing import Iterable, Optional, Sequence

from .errors import SchemaConsistencyError
from .models import (
    CategoryDef,
    ClassifierCategory,
    ClassifierConfig,
    LabelNode,
    LabelPlan,
    Mismatch,
    ValidationReport,
    normalize_name,
)

logger = logging.getLogger(__name__)

MISSING_IN_LABELS = "missing_in_labels"
MISSING_IN_AI_CONFIG = "missing_in_ai_config"
SUBCATEGORY_MISMATCH = "subcategory_mismatch"
DUPLICATE_CATEGORY = "duplicate_category"


def _classifier_category(category: CategoryDef, selectable: bool = True) -> ClassifierCategory:
    return ClassifierCategory(
        name=category.name,
        description=category.description,
        intent=category.intent,
        keywords=list(category.keywords),
        subcategories=category.subcategory_names,
        selectable=selectable,
    )


def build_classifier_config(
    categories: Sequence[CategoryDef],
    context_categories: Sequence[CategoryDef] = (),
    fallback: Optional[CategoryDef] = None,
) -> ClassifierConfig:
    """
    Derive the AI-side artifact.

    Args:
        categories: Selectable categories in display order.
        context_categories: Categories described to the classifier but never
            selectable.
        fallback: Synthetic fallback category, if the scope is restricted.

    Returns:
        ClassifierConfig: Classifier configuration.
    """
    return ClassifierConfig(
        categories=[_classifier_category(c) for c in categories],
        context_categories=[_classifier_category(c, selectable=False) for c in context_categories],
        fallback=_classifier_category(fallback) if fallback is not None else None,
    )


def build_label_plan(
    categories: Sequence[CategoryDef], fallback: Optional[CategoryDef] = None
) -> LabelPlan:
    """
    Derive the mailbox-side artifact.

    Args:
        categories: Categories to provision, in order.
        fallback: Synthetic fallback category, appended last when given.

    Returns:
        LabelPlan: Ordered label tree with colors on the top-level nodes.
    """
    items = list(categories)
    if fallback is not None:
        items.append(fallback)
    return LabelPlan(
        nodes=[
            LabelNode(
                name=c.name,
                color=c.color.model_copy(),
                children=[LabelNode(name=sub.name) for sub in c.subcategories],
            )
            for c in items
        ]
    )


def _duplicates(names: Iterable[str]) -> list[str]:
    seen: set[str] = set()
    dupes: list[str] = []
    for name in names:
        key = normalize_name(name)
        if key in seen and name not in dupes:
            dupes.append(name)
        seen.add(key)
    return dupes


def validate(ai_config: ClassifierConfig, label_taxonomy: LabelPlan) -> ValidationReport:
    """
    Compare the classifier config with the label plan.

    Args:
        ai_config: AI-side artifact. Its selectable categories (fallback
            included) are compared; context-only categories are ignored.
        label_taxonomy: Mailbox-side artifact.

    Returns:
        ValidationReport: ``consistent`` is True only when ``mismatches`` is empty.
    """
    mismatches: list[Mismatch] = []
    ai_categories = ai_config.selectable

    for name in _duplicates(c.name for c in ai_categories):
        mismatches.append(Mismatch(kind=DUPLICATE_CATEGORY, category=name))
    for name in _duplicates(label_taxonomy.category_names):
        mismatches.append(Mismatch(kind=DUPLICATE_CATEGORY, category=name))

    labels_by_key = {normalize_name(n.name): n for n in label_taxonomy.nodes}
    ai_keys = {normalize_name(c.name) for c in ai_categories}

    checked: set[str] = set()
    for category in ai_categories:
        key = normalize_name(category.name)
        if key in checked:
            continue
        checked.add(key)

        node = labels_by_key.get(key)
        if node is None:
            mismatches.append(Mismatch(kind=MISSING_IN_LABELS, category=category.name))
            continue

        label_subs = [child.name for child in node.children]
        label_keys = {normalize_name(s) for s in label_subs}
        ai_sub_keys = {normalize_name(s) for s in category.subcategories}
        if label_keys != ai_sub_keys:
            mismatches.append(
                Mismatch(
                    kind=SUBCATEGORY_MISMATCH,
                    category=category.name,
                    only_in_ai_config=[
                        s for s in category.subcategories if normalize_name(s) not in label_keys
                    ],
                    only_in_labels=[s for s in label_subs if normalize_name(s) not in ai_sub_keys],
                )
            )

    for node in label_taxonomy.nodes:
        if normalize_name(node.name) not in ai_keys:
            mismatches.append(Mismatch(kind=MISSING_IN_AI_CONFIG, category=node.name))

    return ValidationReport(consistent=not mismatches, mismatches=mismatches)


def ensure_consistent(
    ai_config: ClassifierConfig, label_taxonomy: LabelPlan, stage: str = ""
) -> ValidationReport:
    """
    Validate and raise on any mismatch.

    Args:
        ai_config: AI-side artifact.
        label_taxonomy: Mailbox-side artifact.
        stage: Pipeline stage name, included in the error.

    Returns:
        ValidationReport: The (consistent) report.

    Raises:
        SchemaConsistencyError: If any mismatch is found.
    """
    report = validate(ai_config, label_taxonomy)
    if not report.consistent:
        for mismatch in report.mismatches:
            logger.error(f"Consistency check failed after {stage or 'compile'}: {mismatch}")
        raise SchemaConsistencyError(report.mismatches, stage=stage)
    logger.debug(f"Consistency check passed after {stage or 'compile'}")
    return report


def check_categories(
    categories: Sequence[CategoryDef],
    stage: str,
    fallback: Optional[CategoryDef] = None,
) -> ValidationReport:
    """Derive both artifacts from ``categories`` and require parity."""
    return ensure_consistent(
        build_classifier_config(categories, fallback=fallback),
        build_label_plan(categories, fallback=fallback),
        stage=stage,
    )
