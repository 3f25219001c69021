from pathlib import Path

import pytest

from procroute.config import ProcrouteConfig, load_config, locate_config_file
from procroute.discovery import DiscoveryErrorKind, discover_from_config
from procroute.errors import ConfigError


def test_defaults_without_config_file(tmp_path: Path) -> None:
    config = load_config(tmp_path, environ={})
    assert config.source is None
    assert config.procedures_path == (tmp_path / "procedures").resolve()
    assert config.rest_prefix == "/api"
    assert config.rpc_prefix == "/trpc"
    assert config.naming_warnings is True
    options = config.discovery_options()
    assert options.on_invalid_export == "warn"
    assert options.max_workers == 1


def test_procroute_toml_table(tmp_path: Path) -> None:
    (tmp_path / "procroute.toml").write_text(
        "[procroute]\n"
        'procedures_dir = "src/procs"\n'
        "recursive = false\n"
        'on_invalid_export = "error"\n'
        'exclude = ["skip_*.py"]\n'
        "max_workers = 4\n"
        'rest_prefix = "/rest"\n'
        'naming_warnings = "strict"\n',
        encoding="utf-8",
    )

    config = load_config(tmp_path, environ={})

    assert config.source == tmp_path.resolve() / "procroute.toml"
    assert config.procedures_dir == Path("src/procs")
    assert config.recursive is False
    assert config.exclude == ("skip_*.py",)
    assert config.naming_warnings == "strict"
    options = config.discovery_options(recursive=True)
    assert options.recursive is True
    assert options.on_invalid_export == "error"
    assert options.max_workers == 4


def test_pyproject_tool_table(tmp_path: Path) -> None:
    (tmp_path / "pyproject.toml").write_text(
        '[project]\nname = "demo"\n\n[tool.procroute]\nrpc_prefix = "/rpc"\n',
        encoding="utf-8",
    )
    config = load_config(tmp_path, environ={})
    assert config.rpc_prefix == "/rpc"
    assert config.raw == {"rpc_prefix": "/rpc"}


def test_procroute_toml_wins_over_pyproject(tmp_path: Path) -> None:
    (tmp_path / "pyproject.toml").write_text('[tool.procroute]\nrest_prefix = "/py"\n', encoding="utf-8")
    (tmp_path / "procroute.toml").write_text('rest_prefix = "/toml"\n', encoding="utf-8")
    assert locate_config_file(tmp_path).name == "procroute.toml"
    assert load_config(tmp_path, environ={}).rest_prefix == "/toml"


def test_environment_overrides_file(tmp_path: Path) -> None:
    (tmp_path / "procroute.toml").write_text("[procroute]\nmax_workers = 2\n", encoding="utf-8")
    environ = {
        "PROCROUTE_MAX_WORKERS": "8",
        "PROCROUTE_RECURSIVE": "no",
        "PROCROUTE_EXTENSIONS": ".py, .pyw",
        "PROCROUTE_NAMING_WARNINGS": "false",
    }
    config = load_config(tmp_path, environ=environ)
    assert config.max_workers == 8
    assert config.recursive is False
    assert config.extensions == (".py", ".pyw")
    assert config.naming_warnings is False


@pytest.mark.parametrize(
    "body",
    [
        'on_invalid_export = "explode"\n',
        "max_workers = 0\n",
        'max_workers = "many"\n',
        "exclude = 3\n",
        "procroute = 3\n",
        "not toml = = =\n",
    ],
)
def test_invalid_values_raise_config_error(tmp_path: Path, body: str) -> None:
    (tmp_path / "procroute.toml").write_text(body, encoding="utf-8")
    with pytest.raises(ConfigError) as excinfo:
        load_config(tmp_path, environ={})
    assert excinfo.value.code == "E4201"


def test_explicit_missing_file_falls_back_to_defaults(tmp_path: Path) -> None:
    config = load_config(tmp_path, tmp_path / "nope.toml", environ={})
    assert config == ProcrouteConfig(root=tmp_path.resolve())


def test_discover_from_config(tmp_path: Path, write_module, users_source) -> None:
    write_module("procedures/users.py", users_source)
    write_module("procedures/bad.py", 'users = {"namespace": "users", "procedures": {}}\n')

    result = discover_from_config(load_config(tmp_path, environ={}))
    assert [collection.namespace for collection in result.collections] == ["users"]

    verbose = discover_from_config(
        load_config(tmp_path, environ={"PROCROUTE_ON_INVALID_EXPORT": "error"}), verbose=True
    )
    assert [w.kind for w in verbose.warnings] == [DiscoveryErrorKind.INVALID_EXPORT]
    assert verbose.has_errors


def test_discover_from_config_applies_naming_option(tmp_path: Path, write_module) -> None:
    write_module(
        "procedures/jobs.py",
        """
        from procroute import define_procedures, procedure

        jobs = define_procedures("jobs", {"runJob": procedure().mutation(lambda input, ctx: None)})
        """,
    )
    config = load_config(tmp_path, environ={"PROCROUTE_NAMING_WARNINGS": "strict"})

    result = discover_from_config(config)

    assert result.collections == ()
    assert [w.kind for w in result.warnings_of(DiscoveryErrorKind.FILE_LOAD_ERROR)] == [
        DiscoveryErrorKind.FILE_LOAD_ERROR
    ]
