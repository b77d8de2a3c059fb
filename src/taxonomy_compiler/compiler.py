"""End-to-end compile pipeline.

Objective:
    Run a business profile through every compiler stage and return the
    artifacts consumed by the provisioning, deployment and routing
    collaborators.

Pipeline:
    1. Merge the selected vertical templates.
    2. Inject managers and suppliers into placeholder slots.
    3. Resolve the department scope.
    4. Assemble the label plan and prompt.

    Structural parity between the classifier config and the label plan is
    checked after merge, after injection and after scope resolution; the
    assembler re-checks its own output.

High-level call tree:
    - :class:`TaxonomyCompiler`
        - :meth:`TaxonomyCompiler.from_settings`
        - :meth:`TaxonomyCompiler.compile`
            - :func:`src.taxonomy_compiler.merger.merge_business_types`
            - :func:`src.taxonomy_compiler.injector.inject`
            - :func:`src.taxonomy_compiler.scope.resolve_scope`
            - :func:`src.taxonomy_compiler.prompt_assembler.assemble`
    - :func:`compile_profile`

Operational notes:
    - Catalogs are loaded once and passed in explicitly. A compiler instance
      holds no per-request state, so one instance can serve concurrent calls.
"""

import logging
from typing import Optional

from .config import Settings, get_settings
from .injector import inject
from .merger import merge_business_types
from .models import BusinessProfile, CompiledArtifacts, DepartmentScope
from .prompt_assembler import assemble
from .role_catalog import RoleCatalog
from .scope import resolve_scope
from .template_store import TemplateStore
from .validator import check_categories

logger = logging.getLogger(__name__)


class TaxonomyCompiler:
    """
    Compiles business profiles against loaded catalogs.

    Attributes:
        settings: Compiler settings.
        template_store: Vertical templates.
        role_catalog: Manager roles.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        template_store: Optional[TemplateStore] = None,
        role_catalog: Optional[RoleCatalog] = None,
    ) -> None:
        """
        Initialize the compiler.

        Args:
            settings: Compiler settings (defaults to :func:`get_settings`).
            template_store: Template store (loaded from ``settings.template_dir``
                or the packaged catalog when omitted).
            role_catalog: Role catalog (loaded from
                ``settings.role_catalog_path`` or the packaged catalog when
                omitted).

        Raises:
            TemplateLoadError: If a catalog file is missing or malformed.
        """
        self.settings = settings or get_settings()
        self.template_store = template_store or TemplateStore.load(self.settings.template_dir)
        self.role_catalog = role_catalog or RoleCatalog.load(self.settings.role_catalog_path)

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "TaxonomyCompiler":
        """Build a compiler with catalogs loaded from settings."""
        compiler = cls(settings=settings)
        logger.info(
            f"Loaded {len(compiler.template_store)} verticals "
            f"(catalog {compiler.template_store.version or 'unversioned'}) and "
            f"{len(compiler.role_catalog)} roles"
        )
        return compiler

    def list_verticals(self) -> list[tuple[str, str]]:
        """Return ``(id, display_name)`` pairs of the available verticals."""
        return self.template_store.list_verticals()

    def compile(self, profile: BusinessProfile) -> CompiledArtifacts:
        """
        Compile one business profile.

        A profile without an explicit department scope element uses
        ``settings.default_department_scope``.

        Args:
            profile: Business profile.

        Returns:
            CompiledArtifacts: Label plan, prompt text and manager view.

        Raises:
            CompilerError: Any compiler error (unknown vertical or department,
                empty scope, inconsistent artifacts, unresolved placeholder).
        """
        scope = profile.department_scope
        if "department_scope" not in profile.model_fields_set:
            scope = DepartmentScope(mode=self.settings.default_scope_list)

        logger.info(
            f"Compiling profile: verticals={profile.business_types}, "
            f"managers={len(profile.managers)}, suppliers={len(profile.suppliers)}, "
            f"scope={scope.mode}"
        )

        merged = merge_business_types(profile.business_types, self.template_store)
        check_categories(merged.categories, stage="merge")

        injected = inject(merged, profile.managers, profile.suppliers)
        check_categories(injected.categories, stage="inject")

        scoped = resolve_scope(
            injected,
            scope,
            profile.managers,
            self.role_catalog,
            suppliers=profile.suppliers,
            out_of_scope_confidence=self.settings.out_of_scope_confidence,
        )
        check_categories(scoped.label_plan, stage="scope", fallback=scoped.out_of_scope)

        context = profile.context
        if not context.business_types:
            context = context.model_copy(
                update={
                    "business_types": [
                        self.template_store.get(v).display_name for v in scoped.source_verticals
                    ]
                }
            )

        return assemble(
            scoped,
            context,
            self.role_catalog,
            max_prompt_chars=self.settings.max_prompt_chars,
        )


def compile_profile(
    profile: BusinessProfile, settings: Optional[Settings] = None
) -> CompiledArtifacts:
    """
    Compile a profile with freshly loaded catalogs.

    Convenience wrapper for one-off calls; long-running callers should keep a
    :class:`TaxonomyCompiler` instance instead.

    Args:
        profile: Business profile.
        settings: Compiler settings.

    Returns:
        CompiledArtifacts: Compiled artifacts.
    """
    return TaxonomyCompiler(settings=settings).compile(profile)
