"""
Tests for the role_catalog module.
"""

import json

import pytest

from src.taxonomy_compiler.errors import TemplateLoadError
from src.taxonomy_compiler.models import RoleDef
from src.taxonomy_compiler.role_catalog import RoleCatalog


@pytest.fixture
def catalog():
    """Create a small role catalog."""
    return RoleCatalog(
        [
            RoleDef(id="sales_manager", label="Sales Manager", keywords=["quote", "price"], routes=["SALES"]),
            RoleDef(id="owner", label="Owner", keywords=["legal", "Quote"], routes=["MANAGER", "URGENT"]),
            RoleDef(id="service_manager", label="Service Manager", keywords=["repair"], routes=["SUPPORT", "URGENT"]),
        ],
        version="1.0.0",
    )


class TestRoleCatalog:
    """Tests for role lookups."""

    def test_packaged_catalog_loads(self):
        """Test the packaged role catalog."""
        roles = RoleCatalog.load()

        assert "sales_manager" in roles
        assert roles.get_role("bookkeeper").routes_to_categories == ["BANKING"]
        assert roles.version

    def test_get_role_unknown_returns_none(self, catalog):
        """Test unknown role lookup."""
        assert catalog.get_role("astronaut") is None

    def test_known_roles_skips_unknown_and_duplicates(self, catalog):
        """Test known_roles filters and dedups in input order."""
        roles = catalog.known_roles(["owner", "astronaut", "sales_manager", "owner"])

        assert [r.id for r in roles] == ["owner", "sales_manager"]

    def test_keywords_for_roles_dedups_case_insensitively(self, catalog):
        """Test keyword union across roles."""
        assert catalog.keywords_for_roles(["sales_manager", "owner"]) == [
            "quote",
            "price",
            "legal",
        ]

    def test_routes_for_roles_union(self, catalog):
        """Test route union keeps first-seen order."""
        assert catalog.routes_for_roles(["owner", "service_manager"]) == [
            "MANAGER",
            "URGENT",
            "SUPPORT",
        ]

    def test_duplicate_role_ids_rejected(self):
        """Test duplicate ids are a catalog authoring error."""
        with pytest.raises(TemplateLoadError):
            RoleCatalog([RoleDef(id="owner", label="A"), RoleDef(id="owner", label="B")])

    def test_load_custom_path(self, tmp_path):
        """Test loading a role catalog from a custom file."""
        path = tmp_path / "roles.json"
        path.write_text(
            json.dumps({"version": "2", "roles": [{"id": "x", "label": "X", "routes": ["SALES"]}]}),
            encoding="utf-8",
        )

        catalog = RoleCatalog.load(path)

        assert len(catalog) == 1
        assert catalog.version == "2"
        assert catalog.roles[0].routes_to_categories == ["SALES"]

    def test_load_invalid_role(self, tmp_path):
        """Test a role missing its label fails to load."""
        path = tmp_path / "roles.json"
        path.write_text(json.dumps({"roles": [{"id": "x"}]}), encoding="utf-8")

        with pytest.raises(TemplateLoadError):
            RoleCatalog.load(path)
