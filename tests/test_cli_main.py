import json
from unittest.mock import MagicMock

import pytest

from src.taxonomy_compiler import cli
from src.taxonomy_compiler.config import Settings
from src.taxonomy_compiler.errors import UnknownVerticalError
from src.taxonomy_compiler.models import (
    ClassifierConfig,
    CompiledArtifacts,
    LabelNode,
    LabelPlan,
)


@pytest.fixture
def compiler_instance(monkeypatch):
    """Replace the compiler used by the CLI with a MagicMock."""

    instance = MagicMock()
    instance.compile.return_value = CompiledArtifacts(
        label_plan=LabelPlan(nodes=[LabelNode(name="SALES")]),
        prompt_text="You are an email classification assistant.",
        classifier_config=ClassifierConfig(),
        allowed_categories=["SALES"],
        source_verticals=["electrician"],
    )
    instance.list_verticals.return_value = [("electrician", "Electrician")]

    compiler_cls = MagicMock()
    compiler_cls.from_settings.return_value = instance
    monkeypatch.setattr(cli, "TaxonomyCompiler", compiler_cls)
    return instance


def test_cli_passes_verticals_and_scope_to_compiler(compiler_instance) -> None:
    """Ensure --vertical and --scope reach the compiled profile."""

    exit_code = cli.main(["-t", "electrician", "-t", "plumber", "--scope", "sales,support"])

    assert exit_code == 0
    profile = compiler_instance.compile.call_args.args[0]
    assert profile.business_types == ["electrician", "plumber"]
    assert profile.department_scope.mode == ["sales", "support"]


def test_cli_reads_profile_file(compiler_instance, tmp_path) -> None:
    """Ensure --profile loads a JSON business profile."""

    path = tmp_path / "profile.json"
    path.write_text(
        json.dumps(
            {
                "business_types": ["hvac"],
                "managers": [{"name": "Hailey", "roles": ["sales_manager"]}],
                "department_scope": "sales",
            }
        ),
        encoding="utf-8",
    )

    exit_code = cli.main(["--profile", str(path)])

    assert exit_code == 0
    profile = compiler_instance.compile.call_args.args[0]
    assert profile.business_types == ["hvac"]
    assert profile.managers[0].name == "Hailey"
    assert profile.department_scope.departments == ["sales"]


def test_cli_prints_prompt(compiler_instance, capsys) -> None:
    """Ensure --output prompt prints only the prompt text."""

    exit_code = cli.main(["-t", "electrician", "--output", "prompt"])

    assert exit_code == 0
    assert capsys.readouterr().out.strip() == "You are an email classification assistant."


def test_cli_prints_json_bundle(compiler_instance, capsys) -> None:
    """Ensure --output json prints parseable artifacts."""

    exit_code = cli.main(["-t", "electrician", "--output", "json"])

    assert exit_code == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["allowed_categories"] == ["SALES"]
    assert payload["label_plan"]["nodes"][0]["name"] == "SALES"


def test_cli_lists_verticals_without_compiling(compiler_instance, capsys) -> None:
    """Ensure --list-verticals exits before compiling."""

    exit_code = cli.main(["--list-verticals"])

    assert exit_code == 0
    assert "Electrician" in capsys.readouterr().out
    compiler_instance.compile.assert_not_called()


def test_cli_returns_1_on_compiler_error(compiler_instance, capsys) -> None:
    """Ensure compiler errors map to exit code 1 with a readable message."""

    compiler_instance.compile.side_effect = UnknownVerticalError("astronaut", ["electrician"])

    exit_code = cli.main(["-t", "astronaut"])

    assert exit_code == 1
    assert "Unknown vertical: 'astronaut'" in capsys.readouterr().err


def test_cli_returns_1_on_missing_profile(compiler_instance, tmp_path) -> None:
    """Ensure an unreadable profile file fails cleanly."""

    exit_code = cli.main(["--profile", str(tmp_path / "missing.json")])

    assert exit_code == 1
    compiler_instance.compile.assert_not_called()


def test_cli_compiles_packaged_catalog(capsys) -> None:
    """Run the real compiler end to end."""

    exit_code = cli.main(["-t", "Electrician", "-t", "Plumber", "--scope", "sales", "--log-level", "WARNING"])

    assert exit_code == 0
    out = capsys.readouterr().out
    assert "FORMSUB" in out
    assert "OUT_OF_SCOPE" in out


def test_cli_log_level_defaults_to_settings(compiler_instance, monkeypatch) -> None:
    """Ensure the configured log level applies when --log-level is omitted."""

    setup_logging = MagicMock()
    monkeypatch.setattr(cli, "setup_logging", setup_logging)
    monkeypatch.setattr(cli, "get_settings", lambda: Settings(_env_file=None, log_level="WARNING"))

    assert cli.main(["-t", "electrician"]) == 0
    setup_logging.assert_called_once_with("WARNING")


def test_cli_log_level_flag_beats_settings(compiler_instance, monkeypatch) -> None:
    """Ensure --log-level overrides the configured level."""

    setup_logging = MagicMock()
    monkeypatch.setattr(cli, "setup_logging", setup_logging)
    monkeypatch.setattr(cli, "get_settings", lambda: Settings(_env_file=None, log_level="WARNING"))

    assert cli.main(["-t", "electrician", "--log-level", "ERROR"]) == 0
    setup_logging.assert_called_once_with("ERROR")
