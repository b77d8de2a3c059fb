"""Final artifact assembly.

Objective:
    Turn a :class:`~src.taxonomy_compiler.models.ScopedSchema` into the
    artifacts handed to external collaborators: the label plan, the
    classification prompt and the manager view.

Core strategy:
    1. Derive the classifier config and label plan from the scoped schema and
       require parity between them.
    2. Reject any placeholder token that survived injection.
    3. Render the Markdown prompt template with safe placeholder substitution.

Responsibilities:
    - Load the prompt template shipped in ``prompts/``.
    - Render each prompt section (header, categories, keywords, team,
      suppliers, scope restriction).
    - Keep output deterministic: no timestamps and no unordered iteration.

High-level call tree:
    - :func:`assemble`
        - :func:`src.taxonomy_compiler.validator.build_classifier_config`
        - :func:`src.taxonomy_compiler.validator.build_label_plan`
        - :func:`src.taxonomy_compiler.validator.ensure_consistent`
        - :func:`render_prompt`
            - :func:`load_prompt_template`
            - :func:`render_prompt_template`
        - :func:`src.taxonomy_compiler.injector.find_unresolved_placeholders`

Operational notes:
    - Prompt templates are Markdown with JSON examples, so ``str.format`` is
      not usable; only the known ``{placeholder}`` keys are replaced, in one
      pass over the template.
    - A prompt above ``max_prompt_chars`` is logged, never truncated.
"""

import logging
import re
from pathlib import Path
from typing import Optional, Sequence

from .config import OUT_OF_SCOPE_CATEGORY
from .errors import TemplateLoadError, UnresolvedPlaceholderError
from .injector import find_unresolved_placeholders
from .models import (
    BusinessContext,
    CategoryDef,
    ClassifierConfig,
    CompiledArtifacts,
    Manager,
    ScopedSchema,
    Supplier,
)
from .role_catalog import RoleCatalog
from .scope import manager_routes
from .validator import build_classifier_config, build_label_plan, ensure_consistent

logger = logging.getLogger(__name__)

PROMPTS_DIR = Path(__file__).resolve().parent / "prompts"
DEFAULT_PROMPT_TEMPLATE = "classifier_system_prompt.md"


def load_prompt_template(name: str = DEFAULT_PROMPT_TEMPLATE) -> str:
    """Load a prompt template from the packaged ``prompts`` directory.

    Args:
        name: Template file name.

    Returns:
        str: Raw template text.

    Raises:
        TemplateLoadError: If the file cannot be read.
    """
    path = PROMPTS_DIR / name
    try:
        return path.read_text(encoding="utf-8")
    except OSError as e:
        raise TemplateLoadError(str(path), str(e)) from e


def render_prompt_template(template: str, replacements: dict[str, str]) -> str:
    """Replace known ``{key}`` placeholders, leaving other braces untouched.

    Substitution is a single pass, so braces inside replacement values are
    never expanded.

    Args:
        template: Raw template text.
        replacements: Placeholder name -> value.

    Returns:
        str: Rendered text.
    """
    if not replacements:
        return template
    pattern = re.compile(r"\{(" + "|".join(map(re.escape, replacements)) + r")\}")
    return pattern.sub(lambda match: replacements[match.group(1)], template)


def _business_header(context: BusinessContext, source_verticals: Sequence[str]) -> str:
    lines = []
    if context.business_name:
        lines.append(f"- Business: {context.business_name}")
    industries = context.business_types or list(source_verticals)
    if industries:
        lines.append(f"- Industry: {', '.join(industries)}")
    if context.email_domain:
        lines.append(f"- Email domain: {context.email_domain}")
    if context.service_area:
        lines.append(f"- Service area: {context.service_area}")
    if context.timezone:
        lines.append(f"- Timezone: {context.timezone}")
    return "\n".join(lines)


def _describe_category(category: CategoryDef, selectable: bool) -> str:
    title = f"### {category.name}"
    if not selectable:
        title += " (context only, do not select)"
    lines = [title]
    if category.description:
        lines.append(category.description)
    if category.intent:
        lines.append(f"Intent: `{category.intent}`")
    if category.subcategories:
        lines.append("Subcategories:")
        for sub in category.subcategories:
            lines.append(f"- {sub.name}: {sub.description}" if sub.description else f"- {sub.name}")
    return "\n".join(lines)


def _category_descriptions(scoped: ScopedSchema) -> str:
    blocks = [_describe_category(c, True) for c in scoped.label_plan]
    if scoped.out_of_scope is not None:
        blocks.append(_describe_category(scoped.out_of_scope, True))
    blocks.extend(_describe_category(c, False) for c in scoped.context_categories)
    return "\n\n".join(blocks)


def _keyword_dictionary(scoped: ScopedSchema) -> str:
    lines: list[str] = []
    for category in [*scoped.label_plan, *scoped.context_categories]:
        if category.keywords:
            lines.append(f"- {category.name}: {', '.join(category.keywords)}")
        for sub in category.subcategories:
            if sub.keywords:
                lines.append(f"  - {category.name}/{sub.name}: {', '.join(sub.keywords)}")
    return "\n".join(lines) or "No keywords configured."


def _team_directory(managers: Sequence[Manager], role_catalog: RoleCatalog) -> str:
    if not managers:
        return "No team members configured."

    lines: list[str] = []
    for manager in managers:
        contact = f"{manager.name} <{manager.email}>" if manager.email else manager.name
        roles = role_catalog.known_roles(manager.roles)
        role_labels = ", ".join(role.label for role in roles) or "No role"
        lines.append(f"- {contact}: {role_labels}")

        routes = manager_routes(manager, role_catalog)
        if routes:
            lines.append(f"  - Routes: {', '.join(routes)}")
        keywords = role_catalog.keywords_for_roles(manager.roles)
        if keywords:
            lines.append(f"  - Keywords: {', '.join(keywords)}")
    return "\n".join(lines)


def _supplier_directory(suppliers: Sequence[Supplier]) -> str:
    if not suppliers:
        return "No suppliers configured."
    lines = []
    for supplier in suppliers:
        if supplier.domains:
            lines.append(f"- {supplier.name} ({', '.join(supplier.domains)})")
        else:
            lines.append(f"- {supplier.name}")
    return "\n".join(lines)


def render_prompt(
    scoped: ScopedSchema,
    business_context: BusinessContext,
    role_catalog: RoleCatalog,
    classifier_config: ClassifierConfig,
    template: Optional[str] = None,
) -> str:
    """
    Render the classification prompt.

    Args:
        scoped: Scoped schema.
        business_context: Business facts for the header.
        role_catalog: Role catalog for the team directory.
        classifier_config: Classifier config providing the selectable names.
        template: Template text (defaults to the packaged template).

    Returns:
        str: Prompt text.
    """
    raw = template if template is not None else load_prompt_template()
    replacements = {
        "business_name": business_context.business_name or "this business",
        "business_header": _business_header(business_context, scoped.source_verticals),
        "category_descriptions": _category_descriptions(scoped),
        "keyword_dictionary": _keyword_dictionary(scoped),
        "team_directory": _team_directory(scoped.manager_view, role_catalog),
        "supplier_directory": _supplier_directory(scoped.suppliers),
        "scope_restriction": scoped.restriction_text if scoped.is_restricted else "",
        "allowed_categories": ", ".join(classifier_config.selectable_names),
    }
    rendered = render_prompt_template(raw, replacements)
    # Collapse the blank gap left by an empty section.
    while "\n\n\n" in rendered:
        rendered = rendered.replace("\n\n\n", "\n\n")
    return rendered.strip() + "\n"


def assemble(
    scoped: ScopedSchema,
    business_context: BusinessContext,
    role_catalog: RoleCatalog,
    max_prompt_chars: Optional[int] = None,
    template: Optional[str] = None,
) -> CompiledArtifacts:
    """
    Build the final artifacts for a scoped schema.

    Args:
        scoped: Scoped schema.
        business_context: Business facts for the prompt header.
        role_catalog: Role catalog.
        max_prompt_chars: Size above which a warning is logged.
        template: Prompt template text (defaults to the packaged template).

    Returns:
        CompiledArtifacts: Label plan, prompt text, manager view and
        classifier config.

    Raises:
        SchemaConsistencyError: If the derived artifacts disagree.
        UnresolvedPlaceholderError: If a placeholder token survived.
    """
    classifier_config = build_classifier_config(
        scoped.label_plan, scoped.context_categories, scoped.out_of_scope
    )
    label_plan = build_label_plan(scoped.label_plan, scoped.out_of_scope)
    ensure_consistent(classifier_config, label_plan, stage="assemble")

    unresolved = find_unresolved_placeholders(label_plan.paths())
    if unresolved:
        raise UnresolvedPlaceholderError(unresolved)

    prompt_text = render_prompt(
        scoped, business_context, role_catalog, classifier_config, template=template
    )
    unresolved = find_unresolved_placeholders([prompt_text])
    if unresolved:
        raise UnresolvedPlaceholderError(unresolved)

    if max_prompt_chars and len(prompt_text) > max_prompt_chars:
        logger.warning(
            f"Prompt is {len(prompt_text)} characters, above the {max_prompt_chars} cap"
        )

    allowed = list(scoped.allowed_categories)
    if scoped.out_of_scope is not None and OUT_OF_SCOPE_CATEGORY not in allowed:
        allowed.append(OUT_OF_SCOPE_CATEGORY)

    logger.info(
        f"Assembled {len(label_plan.nodes)} label categories and a "
        f"{len(prompt_text)}-character prompt"
    )
    return CompiledArtifacts(
        label_plan=label_plan,
        prompt_text=prompt_text,
        manager_view=[m.model_copy(deep=True) for m in scoped.manager_view],
        classifier_config=classifier_config,
        allowed_categories=allowed,
        source_verticals=list(scoped.source_verticals),
    )
