"""
Tests for the scope module.
"""

import json

import pytest

from src.taxonomy_compiler.config import Settings
from src.taxonomy_compiler.errors import EmptyScopeError, UnknownDepartmentError
from src.taxonomy_compiler.injector import inject
from src.taxonomy_compiler.merger import merge_business_types
from src.taxonomy_compiler.models import (
    CategoryDef,
    DepartmentScope,
    Manager,
    MergedSchema,
    Supplier,
)
from src.taxonomy_compiler.role_catalog import RoleCatalog
from src.taxonomy_compiler.scope import (
    build_restriction_text,
    filter_managers,
    manager_routes,
    resolve_scope,
)
from src.taxonomy_compiler.template_store import TemplateStore


@pytest.fixture(scope="module")
def roles():
    """Load the packaged role catalog."""
    return RoleCatalog.load()


@pytest.fixture(scope="module")
def schema():
    """Electrician + plumber schema with no entities injected."""
    merged = merge_business_types(["Electrician", "Plumber"], TemplateStore.load())
    return inject(merged, [], [])


@pytest.fixture
def team():
    """Create a team spanning several roles."""
    return [
        Manager(name="Hailey", email="hailey@example.com", roles=["sales_manager"]),
        Manager(name="Jillian", email="jillian@example.com", roles=["sales_manager", "owner"]),
        Manager(name="Aaron", email="aaron@example.com", roles=["service_manager", "sales_manager"]),
        Manager(name="Bea", email="bea@example.com", roles=["bookkeeper"]),
    ]


class TestUnrestrictedScope:
    """Tests for the 'all' scope."""

    def test_all_allows_every_category(self, schema, roles, team):
        """Test 'all' keeps every category and manager."""
        scoped = resolve_scope(schema, DepartmentScope.all(), team, roles)

        assert scoped.allowed_categories == schema.category_names
        assert [c.name for c in scoped.label_plan] == schema.category_names
        assert scoped.manager_view == team
        assert scoped.restriction_text == ""
        assert scoped.out_of_scope is None
        assert scoped.context_categories == []
        assert not scoped.is_restricted

    def test_all_mixed_with_tags_is_all(self, schema, roles, team):
        """Test a mode containing 'all' is unrestricted."""
        scoped = resolve_scope(schema, DepartmentScope.of("sales", "all"), team, roles)

        assert scoped.allowed_categories == schema.category_names
        assert scoped.out_of_scope is None


class TestRestrictedScope:
    """Tests for department-restricted scopes."""

    def test_sales_scope_label_plan(self, schema, roles, team):
        """Test the sales scope keeps only SALES and FORMSUB."""
        scoped = resolve_scope(schema, DepartmentScope.of("sales"), team, roles)

        assert scoped.allowed_categories == ["SALES", "FORMSUB"]
        # Schema order, not table order
        assert [c.name for c in scoped.label_plan] == ["FORMSUB", "SALES"]
        assert scoped.is_restricted

    def test_excluded_categories_kept_as_context(self, schema, roles, team):
        """Test excluded categories remain available for prompt context."""
        scoped = resolve_scope(schema, DepartmentScope.of("sales"), team, roles)
        context = [c.name for c in scoped.context_categories]

        assert "BANKING" in context
        assert "PERMITS" in context
        assert "SALES" not in context
        assert len(context) + len(scoped.label_plan) == len(schema.categories)

    def test_out_of_scope_only_when_restricted(self, schema, roles, team):
        """Test the fallback category and directive."""
        scoped = resolve_scope(
            schema, DepartmentScope.of("sales"), team, roles, out_of_scope_confidence=0.75
        )

        assert scoped.out_of_scope.name == "OUT_OF_SCOPE"
        assert "OUT_OF_SCOPE" not in [c.name for c in scoped.label_plan]
        assert '"primary_category": "OUT_OF_SCOPE"' in scoped.restriction_text
        assert '"confidence": 0.75' in scoped.restriction_text
        assert '"ai_can_reply": false' in scoped.restriction_text
        assert '"reason": ' in scoped.restriction_text

    def test_default_confidence_matches_settings(self, schema, roles, team):
        """Test the directive and the settings share one default confidence."""
        scoped = resolve_scope(schema, DepartmentScope.of("sales"), team, roles)
        default = Settings(_env_file=None).out_of_scope_confidence

        assert f'"confidence": {default}' in scoped.restriction_text

    def test_multiple_departments_union(self, schema, roles, team):
        """Test tags are unioned without duplicates."""
        scoped = resolve_scope(schema, DepartmentScope.of("urgent", "support"), team, roles)

        assert scoped.allowed_categories == ["SUPPORT", "URGENT"]

    def test_tag_order_does_not_matter(self, schema, roles, team):
        """Test the allowed list is deterministic for a set of tags."""
        first = resolve_scope(schema, DepartmentScope.of("sales", "support"), team, roles)
        second = resolve_scope(schema, DepartmentScope.of("support", "sales"), team, roles)

        assert first.allowed_categories == second.allowed_categories

    def test_unknown_department(self, schema, roles, team):
        """Test unknown tags are rejected."""
        with pytest.raises(UnknownDepartmentError) as exc_info:
            resolve_scope(schema, DepartmentScope.of("marketing"), team, roles)

        assert exc_info.value.department == "marketing"
        assert "sales" in exc_info.value.available

    def test_empty_scope(self, roles):
        """Test a scope matching no schema category is rejected."""
        schema = MergedSchema(source_verticals=["demo"], categories=[CategoryDef(name="PROJECTS")])

        with pytest.raises(EmptyScopeError):
            resolve_scope(schema, DepartmentScope.of("sales"), [], roles)

    def test_input_not_mutated(self, schema, roles, team):
        """Test resolve_scope is pure."""
        before_schema = schema.model_dump()
        before_team = [m.model_dump() for m in team]

        resolve_scope(schema, DepartmentScope.of("support"), team, roles)

        assert schema.model_dump() == before_schema
        assert [m.model_dump() for m in team] == before_team

    def test_suppliers_passed_through(self, schema, roles):
        """Test suppliers are carried for the prompt directory."""
        suppliers = [Supplier(name="Graybar", domains="graybar.com")]

        scoped = resolve_scope(schema, DepartmentScope.of("sales"), [], roles, suppliers=suppliers)

        assert scoped.suppliers == suppliers


class TestManagerView:
    """Tests for manager filtering."""

    def test_banking_only_manager_dropped_under_support(self, schema, roles, team):
        """Test a manager whose only role routes to BANKING is dropped."""
        scoped = resolve_scope(schema, DepartmentScope.of("support"), team, roles)

        assert "Bea" not in [m.name for m in scoped.manager_view]

    def test_roles_filtered_to_scope(self, schema, roles, team):
        """Test retained managers keep only in-scope roles."""
        scoped = resolve_scope(schema, DepartmentScope.of("support"), team, roles)
        view = {m.name: m.roles for m in scoped.manager_view}

        # Owner routes to URGENT, which support allows
        assert view == {"Jillian": ["owner"], "Aaron": ["service_manager"]}

    def test_no_manager_kept_with_empty_roles(self, schema, roles, team):
        """Test every retained manager keeps at least one role."""
        for tags in (["sales"], ["support"], ["operations"], ["urgent"]):
            scoped = resolve_scope(schema, DepartmentScope.of(*tags), team, roles)
            assert all(m.roles for m in scoped.manager_view)

    def test_unknown_roles_never_route(self, roles):
        """Test managers with unknown roles are dropped under a restriction."""
        view = filter_managers([Manager(name="X", roles=["astronaut"])], ["SALES"], roles)

        assert view == []

    def test_manager_routes(self, roles):
        """Test the routing summary for a manager."""
        manager = Manager(name="Jillian", roles=["sales_manager", "owner"])

        assert manager_routes(manager, roles) == ["SALES", "MANAGER", "URGENT"]
        assert manager_routes(manager, roles, allowed=["urgent"]) == ["URGENT"]


class TestRestrictionText:
    """Tests for the restriction directive."""

    def test_fallback_object_is_valid_json(self):
        """Test the embedded fallback object parses."""
        text = build_restriction_text(["sales"], ["SALES", "FORMSUB"], confidence=0.9)
        block = text.split("```json\n", 1)[1].split("\n```", 1)[0]

        assert json.loads(block) == {
            "primary_category": "OUT_OF_SCOPE",
            "confidence": 0.9,
            "reason": json.loads(block)["reason"],
            "ai_can_reply": False,
        }
        assert "- SALES" in text
        assert "- FORMSUB" in text
