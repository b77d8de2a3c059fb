"""Department scope resolution.

Objective:
    Narrow a resolved schema to the categories a business elected to handle
    and derive the matching manager view and classifier restriction.

Responsibilities:
    - Map department tags to allowed categories via the fixed department table.
    - Drop excluded categories from the label plan while keeping their
      definitions for prompt context.
    - Filter managers (and their roles) to those routing into allowed
      categories.
    - Build the restriction directive and the synthetic ``OUT_OF_SCOPE``
      fallback category.

High-level call tree:
    - :func:`resolve_scope`
        - :func:`allowed_categories_for`
        - :func:`filter_managers`
            - :func:`manager_routes`
        - :func:`build_out_of_scope_category`
        - :func:`build_restriction_text`
"""

import json
import logging
from typing import Iterable, Optional, Sequence

from .config import (
    DEFAULT_OUT_OF_SCOPE_CONFIDENCE,
    DEPARTMENT_CATEGORIES,
    OUT_OF_SCOPE_CATEGORY,
)
from .errors import EmptyScopeError, UnknownDepartmentError
from .models import (
    CategoryDef,
    DepartmentScope,
    LabelColor,
    Manager,
    MergedSchema,
    ScopedSchema,
    Supplier,
    normalize_name,
)
from .role_catalog import RoleCatalog

logger = logging.getLogger(__name__)

OUT_OF_SCOPE_REASON = "Email does not belong to any category handled by this mailbox"


def allowed_categories_for(schema: MergedSchema, scope: DepartmentScope) -> list[str]:
    """
    Compute the categories a scope allows.

    Args:
        schema: Resolved schema.
        scope: Department scope.

    Returns:
        list[str]: Category names as spelled in the schema. Every category for
        an unrestricted scope; otherwise the department table union in table
        order, limited to categories present in the schema.

    Raises:
        UnknownDepartmentError: If a tag is not in the department table.
        EmptyScopeError: If nothing is allowed.
    """
    if scope.is_all:
        return list(schema.category_names)

    for tag in scope.departments:
        if tag not in DEPARTMENT_CATEGORIES:
            raise UnknownDepartmentError(tag, DEPARTMENT_CATEGORIES.keys())

    allowed: list[str] = []
    for tag, categories in DEPARTMENT_CATEGORIES.items():
        if tag not in scope.departments:
            continue
        for name in categories:
            category = schema.get(name)
            if category is not None and category.name not in allowed:
                allowed.append(category.name)

    if not allowed:
        raise EmptyScopeError(scope.departments)
    return allowed


def manager_routes(
    manager: Manager, role_catalog: RoleCatalog, allowed: Optional[Iterable[str]] = None
) -> list[str]:
    """
    Categories a manager's roles route to.

    Args:
        manager: Manager to summarize.
        role_catalog: Role catalog.
        allowed: If given, only routes into these categories are returned.

    Returns:
        list[str]: Routed categories in role order.
    """
    routes = role_catalog.routes_for_roles(manager.roles)
    if allowed is None:
        return routes
    allowed_keys = {normalize_name(name) for name in allowed}
    return [r for r in routes if normalize_name(r) in allowed_keys]


def filter_managers(
    managers: Sequence[Manager], allowed: Iterable[str], role_catalog: RoleCatalog
) -> list[Manager]:
    """
    Keep managers with at least one role routing into ``allowed``.

    A retained manager keeps only the roles whose routes intersect the allowed
    set. A manager left with no role is dropped entirely.

    Args:
        managers: Managers in display order.
        allowed: Allowed category names.
        role_catalog: Role catalog.

    Returns:
        list[Manager]: Filtered copies; inputs are not modified.
    """
    allowed_keys = {normalize_name(name) for name in allowed}
    view: list[Manager] = []
    for manager in managers:
        kept_roles = [
            role.id
            for role in role_catalog.known_roles(manager.roles)
            if any(normalize_name(c) in allowed_keys for c in role.routes_to_categories)
        ]
        if not kept_roles:
            logger.info(f"Dropping manager {manager.name}: no role routes into the scope")
            continue
        view.append(manager.model_copy(update={"roles": kept_roles}, deep=True))
    return view


def build_out_of_scope_category() -> CategoryDef:
    """Return the synthetic fallback category used by restricted scopes."""
    return CategoryDef(
        name=OUT_OF_SCOPE_CATEGORY,
        is_standard=False,
        color=LabelColor(background_color="#cccccc", text_color="#000000"),
        intent="ai.out_of_scope",
        description=(
            "Emails outside the departments this mailbox handles. "
            "No automatic reply is sent."
        ),
    )


def build_restriction_text(
    departments: Sequence[str],
    allowed: Sequence[str],
    confidence: float = DEFAULT_OUT_OF_SCOPE_CONFIDENCE,
) -> str:
    """
    Render the structured scope directive embedded in the prompt.

    Args:
        departments: Department tags of the scope.
        allowed: Allowed category names.
        confidence: Confidence value of the fallback object.

    Returns:
        str: Markdown directive naming the allowed list and the fallback object.
    """
    fallback = {
        "primary_category": OUT_OF_SCOPE_CATEGORY,
        "confidence": confidence,
        "reason": OUT_OF_SCOPE_REASON,
        "ai_can_reply": False,
    }
    lines = [
        "### Department Scope Restriction",
        "",
        f"This mailbox only handles the following department(s): {', '.join(departments)}.",
        "",
        "You may ONLY select one of these categories as `primary_category`:",
        *[f"- {name}" for name in allowed],
        "",
        "Categories described in this prompt but not listed above are for context only. "
        "Never select them, and never force-fit an email into an allowed category.",
        "",
        f"If an email does not belong to an allowed category, return exactly this "
        f"fallback classification with `primary_category` set to {OUT_OF_SCOPE_CATEGORY}:",
        "",
        "```json",
        json.dumps(fallback, indent=2),
        "```",
    ]
    return "\n".join(lines)


def resolve_scope(
    schema: MergedSchema,
    scope: DepartmentScope,
    managers: Sequence[Manager],
    role_catalog: RoleCatalog,
    suppliers: Sequence[Supplier] = (),
    out_of_scope_confidence: float = DEFAULT_OUT_OF_SCOPE_CONFIDENCE,
) -> ScopedSchema:
    """
    Narrow a schema to a department scope.

    Args:
        schema: Schema with placeholders resolved.
        scope: Department scope election.
        managers: Team members.
        role_catalog: Role catalog used to map roles to categories.
        suppliers: Known suppliers, passed through for the prompt directory.
        out_of_scope_confidence: Confidence value of the fallback directive.

    Returns:
        ScopedSchema: Scoped view; ``schema`` is not modified.

    Raises:
        UnknownDepartmentError: If a tag is not in the department table.
        EmptyScopeError: If the scope allows no category.
    """
    allowed = allowed_categories_for(schema, scope)
    allowed_keys = {normalize_name(name) for name in allowed}

    label_plan = [c.model_copy(deep=True) for c in schema.categories if c.key in allowed_keys]
    context = [c.model_copy(deep=True) for c in schema.categories if c.key not in allowed_keys]

    if scope.is_all:
        scoped = ScopedSchema(
            mode=list(scope.mode),
            source_verticals=list(schema.source_verticals),
            allowed_categories=allowed,
            label_plan=label_plan,
            manager_view=[m.model_copy(deep=True) for m in managers],
            suppliers=[s.model_copy(deep=True) for s in suppliers],
        )
        logger.info(f"Scope all: {len(allowed)} categories allowed")
        return scoped

    manager_view = filter_managers(managers, allowed, role_catalog)
    scoped = ScopedSchema(
        mode=list(scope.departments),
        source_verticals=list(schema.source_verticals),
        allowed_categories=allowed,
        label_plan=label_plan,
        context_categories=context,
        manager_view=manager_view,
        suppliers=[s.model_copy(deep=True) for s in suppliers],
        out_of_scope=build_out_of_scope_category(),
        restriction_text=build_restriction_text(
            scope.departments, allowed, out_of_scope_confidence
        ),
    )
    logger.info(
        f"Scope {', '.join(scope.departments)}: {len(allowed)} categories allowed "
        f"({', '.join(allowed)}), {len(context)} kept as context, "
        f"{len(manager_view)}/{len(managers)} manager(s) retained"
    )
    return scoped
