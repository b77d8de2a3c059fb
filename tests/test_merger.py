"""
Tests for the merger module.
"""

import pytest

from src.taxonomy_compiler.errors import NoVerticalsError, UnknownVerticalError
from src.taxonomy_compiler.merger import merge, merge_business_types, union_keywords
from src.taxonomy_compiler.models import CategoryDef, LabelColor, VerticalTemplate, normalize_name
from src.taxonomy_compiler.template_store import TemplateStore


@pytest.fixture(scope="module")
def store():
    """Load the packaged catalog once."""
    return TemplateStore.load()


def _template(template_id, categories):
    return VerticalTemplate(id=template_id, display_name=template_id.title(), categories=categories)


@pytest.fixture
def aquatics():
    """Create two verticals sharing an industry category."""
    pools = _template(
        "pools",
        [
            CategoryDef(
                name="URGENT",
                is_standard=True,
                color=LabelColor(background_color="#fb4c2f"),
                intent="ai.emergency_request",
                keywords=["leak", "urgent"],
                sub=[{"name": "Leaks", "keywords": ["leak"]}, {"name": "Other"}],
            ),
            CategoryDef(
                name="SEASONAL",
                color=LabelColor(background_color="#2da2bb"),
                intent="ai.seasonal_service",
                keywords=["opening"],
                sub=[{"name": "Openings"}, {"name": "Winterization", "keywords": ["winterize"]}],
            ),
        ],
    )
    spas = _template(
        "spas",
        [
            CategoryDef(
                name="urgent",
                is_standard=True,
                color=LabelColor(background_color="#000000"),
                intent="ai.other",
                keywords=["Urgent", "no heat"],
                sub=[{"name": "other"}, {"name": "No Heat"}],
            ),
            CategoryDef(
                name="SEASONAL",
                color=LabelColor(background_color="#76a5af"),
                intent="ai.seasonal_care",
                keywords=["drain and fill", "opening"],
                sub=[
                    {"name": "WINTERIZATION", "keywords": ["freeze"]},
                    {"name": "Drain And Fill"},
                ],
            ),
            CategoryDef(name="WARRANTY", sub=[{"name": "Claims"}]),
        ],
    )
    return pools, spas


class TestMergeRules:
    """Tests for the fold rules."""

    def test_standard_categories_are_folded(self, aquatics):
        """Test standard categories collapse into one definition."""
        merged = merge(aquatics)
        urgent = merged.get("URGENT")

        assert merged.category_names.count("URGENT") == 1
        assert urgent.subcategory_names == ["Leaks", "Other", "No Heat"]
        assert urgent.keywords == ["leak", "urgent", "no heat"]

    def test_industry_collision_is_folded(self, aquatics):
        """Test an industry category shared by two verticals is unioned."""
        seasonal = merge(aquatics).get("SEASONAL")

        assert seasonal.subcategory_names == ["Openings", "Winterization", "Drain And Fill"]
        assert seasonal.keywords == ["opening", "drain and fill"]
        winterization = seasonal.subcategories[1]
        assert winterization.keywords == ["winterize", "freeze"]

    def test_first_seen_metadata_wins(self, aquatics):
        """Test color and intent come from the first source."""
        pools, spas = aquatics

        forward = merge([pools, spas])
        backward = merge([spas, pools])

        assert forward.get("SEASONAL").color.background_color == "#2da2bb"
        assert forward.get("SEASONAL").intent == "ai.seasonal_service"
        assert backward.get("SEASONAL").color.background_color == "#76a5af"
        assert backward.get("SEASONAL").intent == "ai.seasonal_care"
        # First spelling is kept as the display name
        assert backward.category_names[0] == "urgent"

    def test_name_set_is_order_independent(self, aquatics):
        """Test the set of names does not depend on input order."""
        pools, spas = aquatics

        forward = {normalize_name(n) for n in merge([pools, spas]).category_names}
        backward = {normalize_name(n) for n in merge([spas, pools]).category_names}

        assert forward == backward

    def test_first_appearance_order(self, aquatics):
        """Test categories keep first-appearance order."""
        assert merge(aquatics).category_names == ["URGENT", "SEASONAL", "WARRANTY"]

    def test_unique_industry_category_added_unmodified(self, aquatics):
        """Test a category contributed once is unchanged."""
        warranty = merge(aquatics).get("WARRANTY")

        assert warranty == aquatics[1].categories[2]

    def test_inputs_not_mutated(self, aquatics):
        """Test merge is pure."""
        pools, spas = aquatics
        before = [pools.model_dump(), spas.model_dump()]

        merge([pools, spas])

        assert [pools.model_dump(), spas.model_dump()] == before

    def test_duplicate_subcategories_within_template_collapse(self):
        """Test a template listing a subcategory twice yields it once."""
        template = _template(
            "demo", [CategoryDef(name="PROJECTS", sub=[{"name": "Bids"}, {"name": "bids"}])]
        )

        assert merge([template]).get("PROJECTS").subcategory_names == ["Bids"]

    def test_empty_input_rejected(self):
        """Test merge requires at least one vertical."""
        with pytest.raises(NoVerticalsError):
            merge([])

    def test_union_keywords(self):
        """Test keyword union is case-insensitive and order-preserving."""
        assert union_keywords(["a", "B"], ["b", "c", ""], ["A"]) == ["a", "B", "c"]


class TestMergePackagedVerticals:
    """Tests against the packaged catalog."""

    def test_single_template_is_unchanged(self, store):
        """Test merging one template keeps its content."""
        template = store.get("electrician")

        merged = merge([template])

        assert merged.categories == template.categories
        assert merged.source_verticals == ["electrician"]

    def test_electrician_and_plumber(self, store):
        """Test the electrician + plumber merge."""
        merged = merge_business_types(["Electrician", "Plumber"], store)
        names = merged.category_names

        assert "PERMITS" in names
        assert "INSPECTIONS" in names
        assert names.count("URGENT") == 1
        assert merged.get("URGENT").subcategory_names == [
            "Power Loss",
            "Burning Smell",
            "Sparking Outlet",
            "Other",
            "Burst Pipe",
            "Sewer Backup",
            "No Hot Water",
        ]

    def test_no_duplicate_names_for_any_pair(self, store):
        """Test no duplicate category or subcategory names across all pairs."""
        ids = [vertical_id for vertical_id, _ in store.list_verticals()]
        for first in ids:
            for second in ids:
                merged = merge_business_types([first, second], store)
                keys = [c.key for c in merged.categories]
                assert len(keys) == len(set(keys))
                for category in merged.categories:
                    sub_keys = [normalize_name(s) for s in category.subcategory_names]
                    assert len(sub_keys) == len(set(sub_keys))

    def test_unknown_vertical(self, store):
        """Test unknown vertical ids fail."""
        with pytest.raises(UnknownVerticalError):
            merge_business_types(["electrician", "astronaut"], store)
