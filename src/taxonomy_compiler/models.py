"""Pydantic data models used across the compiler.

Objective:
    Centralize all strongly-typed data structures representing:
    - Authored catalog data (vertical templates, categories, roles)
    - Runtime business profile input (managers, suppliers, department scope)
    - Intermediate schemas (merged, scoped)
    - The two derived artifacts (classifier config, label plan) and the final
      compiled bundle

Design notes:
    - Catalog files use camelCase keys in a few places (``displayName``,
      ``backgroundColor``, ``sub``, ``routes``); those are declared as aliases
      and ``model_config = ConfigDict(populate_by_name=True)`` lets callers use
      either spelling.
    - Compiler stages never mutate their inputs. They build new models or work
      on ``model_copy(deep=True)`` copies.

High-level structure:
    - Catalog primitives:
        - :class:`LabelColor`
        - :class:`SubcategoryDef`
        - :class:`CategoryDef`
        - :class:`VerticalTemplate`
        - :class:`RoleDef`
    - Profile primitives:
        - :class:`Manager`
        - :class:`Supplier`
        - :class:`DepartmentScope`
        - :class:`BusinessContext`
        - :class:`BusinessProfile`
    - Schemas:
        - :class:`MergedSchema`
        - :class:`ScopedSchema`
    - Artifacts:
        - :class:`ClassifierCategory` / :class:`ClassifierConfig`
        - :class:`LabelNode` / :class:`LabelPlan`
        - :class:`Mismatch` / :class:`ValidationReport`
        - :class:`CompiledArtifacts`
"""

import re
from typing import Any, Iterator, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .config import ALL_DEPARTMENTS, OUT_OF_SCOPE_CATEGORY


def normalize_name(name: str) -> str:
    """Return the case-insensitive identity key for a category or label name."""
    return (name or "").strip().casefold()


class LabelColor(BaseModel):
    """Label color pair as accepted by mailbox label APIs."""

    background_color: str = Field(default="#999999", alias="backgroundColor")
    text_color: str = Field(default="#ffffff", alias="textColor")

    model_config = ConfigDict(populate_by_name=True)


class SubcategoryDef(BaseModel):
    """Second-level label under a category.

    Template-authored subcategories may be placeholder slots such as
    ``{{Manager1}}``; the injector replaces them with real names.
    """

    name: str
    description: str = ""
    keywords: list[str] = Field(default_factory=list)


class CategoryDef(BaseModel):
    """
    Top-level category shared by the label taxonomy and the classifier.

    Attributes:
        name: Category name, unique (case-insensitive) within a template.
        is_standard: True for the closed cross-industry set.
        color: Label colors.
        intent: Classifier intent identifier (e.g. ``ai.sales_inquiry``).
        description: Human-readable meaning, used in the prompt.
        keywords: Keyword dictionary entries for the category.
        subcategories: Ordered subcategories.
    """

    name: str
    is_standard: bool = Field(default=False, alias="isStandard")
    color: LabelColor = Field(default_factory=LabelColor)
    intent: str = ""
    description: str = ""
    keywords: list[str] = Field(default_factory=list)
    subcategories: list[SubcategoryDef] = Field(default_factory=list, alias="sub")

    model_config = ConfigDict(populate_by_name=True)

    @property
    def key(self) -> str:
        """Case-insensitive identity key."""
        return normalize_name(self.name)

    @property
    def subcategory_names(self) -> list[str]:
        """Subcategory names in display order."""
        return [sub.name for sub in self.subcategories]


class VerticalTemplate(BaseModel):
    """
    Complete schema definition for one industry vertical.

    Attributes:
        id: Stable identifier (e.g. ``electrician``).
        display_name: User-facing name (e.g. ``Electrician``).
        aliases: Additional names the vertical may be selected by.
        categories: Standard and industry categories, in display order.
    """

    id: str
    display_name: str = Field(alias="displayName")
    aliases: list[str] = Field(default_factory=list)
    categories: list[CategoryDef] = Field(default_factory=list)

    model_config = ConfigDict(populate_by_name=True)

    @property
    def category_names(self) -> list[str]:
        return [c.name for c in self.categories]


class RoleDef(BaseModel):
    """Manager role from the role catalog.

    ``routes_to_categories`` lists the categories whose mail this role handles.
    """

    id: str
    label: str
    description: str = ""
    keywords: list[str] = Field(default_factory=list)
    routes_to_categories: list[str] = Field(default_factory=list, alias="routes")

    model_config = ConfigDict(populate_by_name=True)


class Manager(BaseModel):
    """Team member who can receive routed mail."""

    name: str
    email: str = ""
    roles: list[str] = Field(default_factory=list)


class Supplier(BaseModel):
    """Known vendor, identified by name and sender domains."""

    name: str
    domains: list[str] = Field(default_factory=list)

    @field_validator("domains", mode="before")
    @classmethod
    def _split_domains(cls, value: Any) -> Any:
        # Onboarding forms submit domains as one comma-separated string.
        if isinstance(value, str):
            return [d.strip().lower() for d in value.split(",") if d.strip()]
        return value


class DepartmentScope(BaseModel):
    """
    Department-scope election.

    ``mode`` is either ``["all"]`` (office hub mode, no restriction) or a list
    of department tags such as ``["sales", "support"]``. A bare string is
    accepted and split on commas.
    """

    mode: list[str] = Field(default_factory=lambda: [ALL_DEPARTMENTS])

    @field_validator("mode", mode="before")
    @classmethod
    def _coerce_mode(cls, value: Any) -> Any:
        if value is None:
            return [ALL_DEPARTMENTS]
        if isinstance(value, str):
            value = value.split(",")
        if isinstance(value, (set, frozenset, tuple)):
            value = sorted(value) if isinstance(value, (set, frozenset)) else list(value)
        tags: list[str] = []
        for tag in value:
            cleaned = str(tag).strip().lower()
            if cleaned and cleaned not in tags:
                tags.append(cleaned)
        return tags or [ALL_DEPARTMENTS]

    @property
    def is_all(self) -> bool:
        """Whether the scope is unrestricted."""
        return ALL_DEPARTMENTS in self.mode

    @property
    def departments(self) -> list[str]:
        """Department tags (empty when unrestricted)."""
        if self.is_all:
            return []
        return list(self.mode)

    @classmethod
    def all(cls) -> "DepartmentScope":
        return cls(mode=[ALL_DEPARTMENTS])

    @classmethod
    def of(cls, *departments: str) -> "DepartmentScope":
        return cls(mode=list(departments))


class BusinessContext(BaseModel):
    """Business facts rendered into the prompt header."""

    business_name: str = ""
    business_types: list[str] = Field(default_factory=list)
    email_domain: str = ""
    timezone: str = ""
    service_area: str = ""


class BusinessProfile(BaseModel):
    """
    Self-described business profile, the input to a full compile.

    Attributes:
        business_types: Selected vertical ids/names, in priority order.
        managers: Team members.
        suppliers: Known vendors.
        department_scope: Department-scope election.
        context: Business facts for the prompt header.
    """

    business_types: list[str] = Field(default_factory=list)
    managers: list[Manager] = Field(default_factory=list)
    suppliers: list[Supplier] = Field(default_factory=list)
    department_scope: DepartmentScope = Field(default_factory=DepartmentScope)
    context: BusinessContext = Field(default_factory=BusinessContext)

    @field_validator("department_scope", mode="before")
    @classmethod
    def _coerce_scope(cls, value: Any) -> Any:
        if value is None or isinstance(value, (str, list, tuple)):
            return {"mode": value}
        return value


class MergedSchema(BaseModel):
    """Deduplicated union of one or more vertical templates."""

    source_verticals: list[str] = Field(default_factory=list)
    categories: list[CategoryDef] = Field(default_factory=list)

    @property
    def category_names(self) -> list[str]:
        return [c.name for c in self.categories]

    def get(self, name: str) -> Optional[CategoryDef]:
        """Look up a category by case-insensitive name."""
        key = normalize_name(name)
        for category in self.categories:
            if category.key == key:
                return category
        return None


class ScopedSchema(BaseModel):
    """
    Merged schema narrowed to a department scope.

    Attributes:
        mode: Scope mode the schema was resolved for.
        source_verticals: Verticals the schema was merged from.
        allowed_categories: Categories the classifier may select.
        label_plan: Categories to provision (allowed only, schema order).
        context_categories: Excluded categories, kept for prompt context.
        manager_view: Managers retained for routing, with filtered roles.
        suppliers: Known suppliers, listed in the prompt directory.
        out_of_scope: Synthetic fallback category (restricted scopes only).
        restriction_text: Structured scope directive (restricted scopes only).
    """

    mode: list[str] = Field(default_factory=lambda: [ALL_DEPARTMENTS])
    source_verticals: list[str] = Field(default_factory=list)
    allowed_categories: list[str] = Field(default_factory=list)
    label_plan: list[CategoryDef] = Field(default_factory=list)
    context_categories: list[CategoryDef] = Field(default_factory=list)
    manager_view: list[Manager] = Field(default_factory=list)
    suppliers: list[Supplier] = Field(default_factory=list)
    out_of_scope: Optional[CategoryDef] = None
    restriction_text: str = ""

    @property
    def is_restricted(self) -> bool:
        return ALL_DEPARTMENTS not in self.mode


class ClassifierCategory(BaseModel):
    """One category as the classifier sees it."""

    name: str
    description: str = ""
    intent: str = ""
    keywords: list[str] = Field(default_factory=list)
    subcategories: list[str] = Field(default_factory=list)
    selectable: bool = True


class ClassifierConfig(BaseModel):
    """
    AI-side artifact: the categories the classifier may emit.

    ``categories`` and ``fallback`` are selectable; ``context_categories`` are
    described to the model but can never be chosen.
    """

    categories: list[ClassifierCategory] = Field(default_factory=list)
    context_categories: list[ClassifierCategory] = Field(default_factory=list)
    fallback: Optional[ClassifierCategory] = None

    @property
    def selectable(self) -> list[ClassifierCategory]:
        """Selectable categories, fallback last."""
        items = list(self.categories)
        if self.fallback is not None:
            items.append(self.fallback)
        return items

    @property
    def selectable_names(self) -> list[str]:
        return [c.name for c in self.selectable]


class LabelNode(BaseModel):
    """Node of the label tree."""

    name: str
    color: Optional[LabelColor] = None
    children: list["LabelNode"] = Field(default_factory=list)


class LabelPlan(BaseModel):
    """
    Ordered label tree to provision in a mailbox.

    The provisioning collaborator creates nodes in order and treats
    "already exists" responses as success.
    """

    nodes: list[LabelNode] = Field(default_factory=list)

    @property
    def category_names(self) -> list[str]:
        return [node.name for node in self.nodes]

    def get(self, name: str) -> Optional[LabelNode]:
        key = normalize_name(name)
        for node in self.nodes:
            if normalize_name(node.name) == key:
                return node
        return None

    def paths(self) -> Iterator[str]:
        """Yield ``CATEGORY`` and ``CATEGORY/Sub`` paths in provisioning order."""
        for node in self.nodes:
            yield node.name
            for child in node.children:
                yield f"{node.name}/{child.name}"

    def env_keys(self) -> list[str]:
        """Derive ``LABEL_<CATEGORY>[_<SUB>]`` identifiers for each path.

        Workflow deployments bind these identifiers to provisioned label ids.
        """
        keys: list[str] = []
        for path in self.paths():
            parts = [re.sub(r"[^A-Z0-9]+", "_", p.upper()).strip("_") for p in path.split("/")]
            keys.append("LABEL_" + "_".join(parts))
        return keys


class Mismatch(BaseModel):
    """
    One structural difference between the classifier config and label plan.

    Attributes:
        kind: ``missing_in_labels``, ``missing_in_ai_config``,
            ``subcategory_mismatch`` or ``duplicate_category``.
        category: Category the mismatch concerns.
        only_in_ai_config: Subcategories present only on the AI side.
        only_in_labels: Subcategories present only on the label side.
    """

    kind: str
    category: str
    only_in_ai_config: list[str] = Field(default_factory=list)
    only_in_labels: list[str] = Field(default_factory=list)


class ValidationReport(BaseModel):
    """Validator output."""

    consistent: bool = True
    mismatches: list[Mismatch] = Field(default_factory=list)


class CompiledArtifacts(BaseModel):
    """
    Final compiler output handed to external collaborators.

    Attributes:
        label_plan: Tree consumed by the mailbox-provisioning collaborator.
        prompt_text: Classification policy consumed by the deployment
            collaborator.
        manager_view: Managers consumed by the routing collaborator.
        classifier_config: Structured AI-side artifact.
        allowed_categories: Categories the classifier may select (fallback
            included when restricted).
        source_verticals: Verticals the schema was merged from.
    """

    label_plan: LabelPlan
    prompt_text: str
    manager_view: list[Manager] = Field(default_factory=list)
    classifier_config: ClassifierConfig
    allowed_categories: list[str] = Field(default_factory=list)
    source_verticals: list[str] = Field(default_factory=list)

    @property
    def out_of_scope_enabled(self) -> bool:
        return OUT_OF_SCOPE_CATEGORY in self.allowed_categories
