"""Placeholder slot injection.

Objective:
    Replace template-authored placeholder slots (``{{Manager1}}``,
    ``{{Supplier3}}``, ...) with the business's actual managers and suppliers.

Slot policy (per category, per slot kind):
    - Entities fill slots in slot-index order.
    - Unused slots are removed; an empty placeholder is never rendered.
    - Entities beyond the slot count are appended right after the last slot,
      in input order.
    - An entity whose name matches an existing subcategory (case-insensitive)
      is skipped; the existing entry keeps its place.
    - Entities with blank names are ignored.

High-level call tree:
    - :func:`inject`
        - :func:`_inject_category`
            - :func:`parse_slot`
    - :func:`find_unresolved_placeholders`

Operational notes:
    - Tokens that look like placeholders but are not manager/supplier slots
      are left alone here; the prompt assembler rejects them.
"""

import logging
import re
from typing import Iterable, Optional, Sequence

from .models import CategoryDef, Manager, MergedSchema, SubcategoryDef, Supplier, normalize_name

logger = logging.getLogger(__name__)

SLOT_PATTERN = re.compile(r"^\s*\{\{\s*(Manager|Supplier)(\d+)\s*\}\}\s*$", re.IGNORECASE)
PLACEHOLDER_PATTERN = re.compile(r"\{\{.*?\}\}")

MANAGER_SLOT = "manager"
SUPPLIER_SLOT = "supplier"


def parse_slot(name: str) -> Optional[tuple[str, int]]:
    """
    Parse a subcategory name as a placeholder slot.

    Args:
        name: Subcategory name.

    Returns:
        Optional[tuple[str, int]]: ``(kind, index)`` where kind is
        ``"manager"`` or ``"supplier"``, or None for a literal name.
    """
    match = SLOT_PATTERN.match(name or "")
    if not match:
        return None
    return match.group(1).lower(), int(match.group(2))


def _clean_names(entities: Iterable[object], kind: str) -> list[str]:
    names: list[str] = []
    for entity in entities:
        name = (getattr(entity, "name", "") or "").strip()
        if not name:
            logger.warning(f"Ignoring {kind} with a blank name")
            continue
        names.append(name)
    return names


def _inject_category(
    category: CategoryDef, entities_by_kind: dict[str, list[str]]
) -> CategoryDef:
    """
    Resolve every slot of one category.

    Args:
        category: Category possibly containing slots.
        entities_by_kind: Entity names keyed by slot kind.

    Returns:
        CategoryDef: Category with slots resolved (input is not modified).
    """
    subs = category.subcategories
    slots_by_kind: dict[str, list[tuple[int, int]]] = {}
    for position, sub in enumerate(subs):
        slot = parse_slot(sub.name)
        if slot is not None:
            slots_by_kind.setdefault(slot[0], []).append((slot[1], position))

    if not slots_by_kind:
        return category

    # Literal names present before injection win over injected entities.
    taken = {normalize_name(s.name) for s in subs if parse_slot(s.name) is None}

    # Slot position -> names rendered in its place (overflow rides on the last slot)
    replacements: dict[int, list[str]] = {}
    for kind, slots in slots_by_kind.items():
        names = entities_by_kind.get(kind, [])
        ordered = sorted(slots)
        for offset, (_index, position) in enumerate(ordered):
            replacements[position] = [names[offset]] if offset < len(names) else []

        overflow = names[len(ordered):]
        if overflow:
            logger.warning(
                f"{category.name}: {len(overflow)} {kind}(s) exceed {len(ordered)} "
                f"template slot(s); appending {', '.join(overflow)}"
            )
            last_position = max(position for _index, position in ordered)
            replacements[last_position].extend(overflow)

    resolved: list[SubcategoryDef] = []
    for position, sub in enumerate(subs):
        if position not in replacements:
            resolved.append(sub.model_copy(deep=True))
            continue
        for name in replacements[position]:
            key = normalize_name(name)
            if key in taken:
                logger.debug(f"{category.name}: skipping duplicate entity {name}")
                continue
            taken.add(key)
            resolved.append(SubcategoryDef(name=name))

    logger.debug(
        f"Injected {category.name}: {len(subs)} template entries -> {len(resolved)} subcategories"
    )
    return category.model_copy(update={"subcategories": resolved})


def inject(
    schema: MergedSchema,
    managers: Sequence[Manager],
    suppliers: Sequence[Supplier],
) -> MergedSchema:
    """
    Resolve all manager and supplier slots in a merged schema.

    Args:
        schema: Merged schema with placeholder slots.
        managers: Managers in display order.
        suppliers: Suppliers in display order.

    Returns:
        MergedSchema: New schema without manager/supplier slots.
    """
    entities_by_kind = {
        MANAGER_SLOT: _clean_names(managers, MANAGER_SLOT),
        SUPPLIER_SLOT: _clean_names(suppliers, SUPPLIER_SLOT),
    }
    categories = [_inject_category(c, entities_by_kind) for c in schema.categories]

    logger.info(
        f"Injected {len(entities_by_kind[MANAGER_SLOT])} manager(s) and "
        f"{len(entities_by_kind[SUPPLIER_SLOT])} supplier(s)"
    )
    return MergedSchema(
        source_verticals=list(schema.source_verticals),
        categories=[c.model_copy(deep=True) for c in categories],
    )


def find_unresolved_placeholders(texts: Iterable[str]) -> list[str]:
    """
    Collect every ``{{...}}`` token found in the given strings.

    Args:
        texts: Strings to scan.

    Returns:
        list[str]: Sorted unique tokens (empty when everything is resolved).
    """
    found: set[str] = set()
    for text in texts:
        found.update(PLACEHOLDER_PATTERN.findall(text or ""))
    return sorted(found)
