"""Mailbox Taxonomy Compiler package.

Objective:
    Compile a business profile (selected industry verticals, managers,
    suppliers and a department-scope election) into two consistent
    artifacts:
        - A label taxonomy to provision in a mailbox.
        - A classification prompt for an LLM email classifier.

Key modules:
    - :mod:`src.taxonomy_compiler.template_store` /
      :mod:`src.taxonomy_compiler.role_catalog`:
        Read-only catalogs loaded at process start.
    - :mod:`src.taxonomy_compiler.merger`:
        Merges vertical templates into one deduplicated schema.
    - :mod:`src.taxonomy_compiler.injector`:
        Resolves manager and supplier placeholder slots.
    - :mod:`src.taxonomy_compiler.scope`:
        Narrows the schema to a department scope.
    - :mod:`src.taxonomy_compiler.validator`:
        Keeps the classifier config and label plan structurally identical.
    - :mod:`src.taxonomy_compiler.prompt_assembler`:
        Renders the label plan and prompt text.
    - :mod:`src.taxonomy_compiler.compiler`:
        End-to-end pipeline.
    - :mod:`src.taxonomy_compiler.cli` / :mod:`src.taxonomy_compiler.webapp`:
        User-facing entrypoints.
"""

__version__ = "0.1.0"
