"""Manager role catalog.

The catalog is fixed, versioned data: each role lists the keywords that signal
mail for it and the categories it routes to. The scope resolver uses the routes
to decide which managers survive a department restriction; the prompt
assembler renders the keywords in the team directory.
"""

import logging
from pathlib import Path
from typing import Iterable, Optional, Union

from pydantic import ValidationError

from .errors import TemplateLoadError
from .models import RoleDef, normalize_name
from .template_store import DEFAULT_CATALOG_DIR, read_catalog_json

logger = logging.getLogger(__name__)

DEFAULT_ROLE_CATALOG_PATH = DEFAULT_CATALOG_DIR / "roles.json"


class RoleCatalog:
    """
    Read-only lookup of :class:`~src.taxonomy_compiler.models.RoleDef` by id.

    Attributes:
        version: Catalog version string.
    """

    def __init__(self, roles: Iterable[RoleDef], version: str = "") -> None:
        self.version = version
        self._roles: dict[str, RoleDef] = {}
        for role in roles:
            if role.id in self._roles:
                raise TemplateLoadError("roles", f"duplicate role id {role.id!r}")
            self._roles[role.id] = role

    @classmethod
    def load(cls, path: Optional[Union[str, Path]] = None) -> "RoleCatalog":
        """
        Load the role catalog from JSON.

        Args:
            path: Catalog file (defaults to the packaged ``roles.json``).

        Returns:
            RoleCatalog: Loaded catalog.

        Raises:
            TemplateLoadError: If the file is missing or malformed.
        """
        source = Path(path) if path else DEFAULT_ROLE_CATALOG_PATH
        data = read_catalog_json(source)
        try:
            roles = [RoleDef.model_validate(r) for r in data.get("roles") or []]
        except ValidationError as e:
            raise TemplateLoadError(str(source), str(e)) from e

        logger.debug(f"Loaded {len(roles)} roles from {source}")
        return cls(roles, version=str(data.get("version", "")))

    def __contains__(self, role_id: str) -> bool:
        return role_id in self._roles

    def __len__(self) -> int:
        return len(self._roles)

    @property
    def roles(self) -> list[RoleDef]:
        """All roles in catalog order."""
        return list(self._roles.values())

    def get_role(self, role_id: str) -> Optional[RoleDef]:
        """Return a role by id, or None if the id is unknown."""
        return self._roles.get(role_id)

    def known_roles(self, role_ids: Iterable[str]) -> list[RoleDef]:
        """
        Resolve role ids, skipping unknown ones.

        Unknown ids can never route anywhere, so they are dropped with a
        warning rather than failing the compile.

        Args:
            role_ids: Role identifiers in manager order.

        Returns:
            list[RoleDef]: Known roles, deduplicated, in input order.
        """
        roles: list[RoleDef] = []
        for role_id in role_ids:
            role = self._roles.get(role_id)
            if role is None:
                logger.warning(f"Ignoring unknown manager role: {role_id}")
                continue
            if role not in roles:
                roles.append(role)
        return roles

    def keywords_for_roles(self, role_ids: Iterable[str]) -> list[str]:
        """Union of role keywords, order preserved."""
        keywords: list[str] = []
        seen: set[str] = set()
        for role in self.known_roles(role_ids):
            for keyword in role.keywords:
                if normalize_name(keyword) not in seen:
                    seen.add(normalize_name(keyword))
                    keywords.append(keyword)
        return keywords

    def routes_for_roles(self, role_ids: Iterable[str]) -> list[str]:
        """Union of routed categories, order preserved."""
        routes: list[str] = []
        for role in self.known_roles(role_ids):
            for category in role.routes_to_categories:
                if category not in routes:
                    routes.append(category)
        return routes
