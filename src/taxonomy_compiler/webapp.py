"""FastAPI web API for the taxonomy compiler.

Objective:
    Expose the compiler to the onboarding and deployment services over a small
    JSON API. This module keeps all compile logic inside
    :mod:`src.taxonomy_compiler.compiler` and only handles HTTP request parsing
    and response rendering.

High-level call tree:
    - :func:`create_app`:
        - defines routes:
            - ``GET /health`` -> :func:`health`
            - ``GET /api/verticals`` -> :func:`verticals`
            - ``POST /api/compile`` -> :func:`compile_api`
    - :func:`get_compiler`:
        - returns the process-wide
          :class:`src.taxonomy_compiler.compiler.TaxonomyCompiler`.

Data flow:
    - HTTP request -> BusinessProfile -> compiler.compile(...) -> JSON artifacts.

Operational notes:
    - Catalogs are loaded on the first request and reused; the compiler is
      stateless between calls.
    - Compiler errors map to HTTP 422 with the error's structured detail.
    - For tests, :func:`get_compiler` is overridden via
      ``app.dependency_overrides``.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Any

from fastapi import Depends, FastAPI
from fastapi.responses import JSONResponse

from .compiler import TaxonomyCompiler
from .config import get_settings
from .errors import CompilerError
from .models import BusinessProfile


@lru_cache(maxsize=1)
def get_compiler() -> TaxonomyCompiler:
    """Return the shared :class:`~src.taxonomy_compiler.compiler.TaxonomyCompiler`.

    This function exists primarily to support FastAPI dependency injection and
    testing. Tests can override this dependency with a stub object
    implementing ``compile(...)`` and ``list_verticals()``.

    Returns:
        TaxonomyCompiler: Compiler with catalogs loaded.
    """

    return TaxonomyCompiler.from_settings(get_settings())


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Routes:
        - ``GET /health``:
            Basic liveness check.
        - ``GET /api/verticals``:
            Lists selectable verticals.
        - ``POST /api/compile``:
            Compiles a business profile and returns the label plan, prompt
            text and manager view.

    Returns:
        FastAPI: FastAPI app.
    """

    app = FastAPI(title="Taxonomy Compiler")

    @app.get("/health")
    def health() -> dict[str, str]:
        """Health check endpoint.

        This is intentionally simple and does not load catalogs.

        Returns:
            dict[str, str]: Health payload.
        """

        return {"status": "ok"}

    @app.get("/api/verticals")
    def verticals(compiler: TaxonomyCompiler = Depends(get_compiler)) -> dict[str, Any]:
        """List available verticals.

        Args:
            compiler: Compiler dependency.

        Returns:
            dict[str, Any]: ``{"verticals": [{"id": ..., "display_name": ...}]}``.
        """

        return {
            "verticals": [
                {"id": vertical_id, "display_name": display_name}
                for vertical_id, display_name in compiler.list_verticals()
            ]
        }

    @app.post("/api/compile")
    def compile_api(
        profile: BusinessProfile,
        compiler: TaxonomyCompiler = Depends(get_compiler),
    ) -> Any:
        """Compile a business profile via JSON API.

        Expected request body: a :class:`BusinessProfile`, e.g.
            ``{"business_types": ["electrician"], "department_scope": "sales"}``

        Args:
            profile: Business profile.
            compiler: Compiler dependency.

        Returns:
            Any: Artifacts payload, or a 422 JSON error.
        """

        try:
            artifacts = compiler.compile(profile)
        except CompilerError as e:
            return JSONResponse(e.to_dict(), status_code=422)

        return {
            "label_plan": artifacts.label_plan.model_dump(),
            "label_paths": list(artifacts.label_plan.paths()),
            "prompt_text": artifacts.prompt_text,
            "manager_view": [m.model_dump() for m in artifacts.manager_view],
            "allowed_categories": artifacts.allowed_categories,
            "source_verticals": artifacts.source_verticals,
        }

    return app


app = create_app()
