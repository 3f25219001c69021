import logging
import os
import threading
from pathlib import Path

import pytest

from procroute.discovery import (
    DiscoveryError,
    DiscoveryErrorKind,
    DiscoveryOptions,
    discover_procedures,
    scan,
    scan_verbose,
)
from procroute.errors import ScanCancelledError

NEAR_MISS_MODULE = """
    users = {"namespace": "users", "procedures": {}}
"""

BROKEN_MODULE = """
    def broken(:
        pass
"""

POSTS_MODULE = """
    from procroute import define_procedures, procedure

    posts = define_procedures("posts", {
        "getPost": procedure().query(lambda input, ctx: None),
    })
    comments = define_procedures("comments", {
        "listComments": procedure().query(lambda input, ctx: []),
    })
    alias = posts
"""


def _namespaces(result):
    return [collection.namespace for collection in result.collections]


def test_scan_is_deterministic(tmp_path: Path, write_module, users_source, health_source) -> None:
    write_module("zeta/health.py", health_source)
    write_module("users.py", users_source)
    write_module("alpha.py", POSTS_MODULE)

    first = scan(tmp_path)
    second = scan(tmp_path)

    assert first.scanned_files == second.scanned_files
    assert _namespaces(first) == _namespaces(second)
    assert first.scanned_files == tuple(
        str(tmp_path / name) for name in ("alpha.py", "users.py", "zeta/health.py")
    )
    assert _namespaces(first) == ["posts", "comments", "users", "health"]


def test_scan_preserves_export_order_and_deduplicates(tmp_path: Path, write_module) -> None:
    path = write_module("posts.py", POSTS_MODULE)

    result = scan(tmp_path)

    assert _namespaces(result) == ["posts", "comments"]
    assert all(collection.source == str(path) for collection in result.collections)
    assert result.loaded_files == (str(path),)
    assert result.warnings == ()


def test_malformed_export_is_a_warning(tmp_path: Path, write_module, users_source, caplog) -> None:
    bad = write_module("bad.py", NEAR_MISS_MODULE)
    write_module("users.py", users_source)

    with caplog.at_level(logging.WARNING, logger="procroute.discovery"):
        result = scan(tmp_path)

    assert _namespaces(result) == ["users"]
    assert len(result.warnings) == 1
    warning = result.warnings[0]
    assert warning.kind is DiscoveryErrorKind.INVALID_EXPORT
    assert warning.code == "E4003"
    assert warning.path == str(bad)
    assert warning.export_name == "users"
    assert warning.severity == "warning"
    assert not result.has_errors
    events = [getattr(record, "procroute_event", None) for record in caplog.records]
    assert "discovery_warning" in events


def test_load_failures_do_not_abort_the_scan(tmp_path: Path, write_module, users_source) -> None:
    write_module("broken.py", BROKEN_MODULE)
    write_module("exits.py", "import sys\nsys.exit(3)\n")
    write_module("raises.py", "raise RuntimeError('boom')\n")
    write_module("users.py", users_source)

    result = scan(tmp_path)

    assert _namespaces(result) == ["users"]
    load_errors = result.warnings_of(DiscoveryErrorKind.FILE_LOAD_ERROR)
    assert [Path(w.path).name for w in load_errors] == ["broken.py", "exits.py", "raises.py"]
    assert "boom" in load_errors[2].message


def test_missing_root_raises(tmp_path: Path) -> None:
    with pytest.raises(DiscoveryError) as excinfo:
        scan(tmp_path / "missing")
    assert excinfo.value.kind is DiscoveryErrorKind.DIRECTORY_NOT_FOUND
    assert excinfo.value.hint


def test_file_root_raises(tmp_path: Path, write_module, users_source) -> None:
    path = write_module("users.py", users_source)
    with pytest.raises(DiscoveryError) as excinfo:
        scan(path)
    assert excinfo.value.kind is DiscoveryErrorKind.DIRECTORY_NOT_FOUND


@pytest.mark.skipif(
    os.name == "nt" or (hasattr(os, "geteuid") and os.geteuid() == 0),
    reason="directory permissions are not enforced for this user",
)
def test_unreadable_root_raises_permission_denied(tmp_path: Path) -> None:
    locked = tmp_path / "locked"
    locked.mkdir()
    (locked / "users.py").write_text("x = 1\n", encoding="utf-8")
    locked.chmod(0o000)
    try:
        with pytest.raises(DiscoveryError) as excinfo:
            scan(locked)
    finally:
        locked.chmod(0o755)

    assert excinfo.value.kind is DiscoveryErrorKind.PERMISSION_DENIED
    assert excinfo.value.code == "E4005"
    assert excinfo.value.path == str(locked)


def test_export_inspection_errors_stay_per_file(tmp_path: Path, write_module, users_source) -> None:
    write_module(
        "a_proxy.py",
        """
        class LazySettings:
            def __getattr__(self, name):
                raise RuntimeError("settings are not configured")


        class ExplodingMapping(dict):
            def __contains__(self, key):
                raise RuntimeError("lookup exploded")


        settings = LazySettings()
        registry = ExplodingMapping()
        """,
    )
    write_module("users.py", users_source)

    result = scan(tmp_path)

    assert _namespaces(result) == ["users"]
    invalid = result.warnings_of(DiscoveryErrorKind.INVALID_EXPORT)
    assert [w.export_name for w in invalid] == ["registry"]
    assert "RuntimeError" in invalid[0].message


def test_empty_directory_reports_no_procedures(tmp_path: Path) -> None:
    result = scan(tmp_path)
    assert result.collections == ()
    assert [w.kind for w in result.warnings] == [DiscoveryErrorKind.NO_PROCEDURES_FOUND]
    assert result.warnings[0].severity == "warning"


def test_error_policy_escalates_first_problem(tmp_path: Path, write_module, users_source) -> None:
    write_module("a_bad.py", NEAR_MISS_MODULE)
    write_module("b_broken.py", BROKEN_MODULE)
    write_module("users.py", users_source)

    with pytest.raises(DiscoveryError) as excinfo:
        scan(tmp_path, DiscoveryOptions(on_invalid_export="error"))
    assert excinfo.value.kind is DiscoveryErrorKind.INVALID_EXPORT
    assert excinfo.value.path.endswith("a_bad.py")


def test_scan_verbose_never_escalates(tmp_path: Path, write_module, users_source) -> None:
    write_module("a_bad.py", NEAR_MISS_MODULE)
    write_module("b_broken.py", BROKEN_MODULE)
    write_module("users.py", users_source)

    result = scan_verbose(tmp_path, DiscoveryOptions(on_invalid_export="error"))

    assert _namespaces(result) == ["users"]
    assert [w.kind for w in result.warnings] == [
        DiscoveryErrorKind.INVALID_EXPORT,
        DiscoveryErrorKind.FILE_LOAD_ERROR,
    ]
    assert all(w.severity == "error" for w in result.warnings)
    assert result.has_errors


def test_ignore_policy_drops_invalid_exports(tmp_path: Path, write_module, users_source) -> None:
    write_module("bad.py", NEAR_MISS_MODULE)
    write_module("broken.py", BROKEN_MODULE)
    write_module("users.py", users_source)

    result = scan(tmp_path, DiscoveryOptions(on_invalid_export="ignore"))

    assert _namespaces(result) == ["users"]
    assert [w.kind for w in result.warnings] == [DiscoveryErrorKind.FILE_LOAD_ERROR]


def test_non_recursive_scan(tmp_path: Path, write_module, users_source, health_source) -> None:
    write_module("users.py", users_source)
    write_module("nested/health.py", health_source)

    result = scan(tmp_path, DiscoveryOptions(recursive=False))

    assert _namespaces(result) == ["users"]
    assert result.scanned_files == (str(tmp_path / "users.py"),)


def test_excluded_files_and_directories(tmp_path: Path, write_module, users_source) -> None:
    write_module("users.py", users_source)
    write_module("test_users.py", "raise RuntimeError('never loaded')\n")
    write_module("users_test.py", "raise RuntimeError('never loaded')\n")
    write_module("__init__.py", "raise RuntimeError('never loaded')\n")
    write_module("tests/users.py", "raise RuntimeError('never loaded')\n")
    write_module("__pycache__/users.py", "raise RuntimeError('never loaded')\n")
    write_module("README.md", "# docs\n")

    result = scan(tmp_path)

    assert result.scanned_files == (str(tmp_path / "users.py"),)
    assert result.warnings == ()


def test_custom_file_filter(tmp_path: Path, write_module, users_source) -> None:
    write_module("users.py", users_source)
    write_module("skip_me.py", "raise RuntimeError('never loaded')\n")

    options = DiscoveryOptions(file_filter=lambda path: not path.name.startswith("skip"))
    result = scan(tmp_path, options)

    assert _namespaces(result) == ["users"]
    assert result.warnings == ()


def test_targeted_files_are_reported(tmp_path: Path, write_module, users_source) -> None:
    write_module("users.py", users_source)
    write_module("notes.txt", "not python\n")
    write_module("procs/test_extra.py", users_source)

    options = DiscoveryOptions(files=("notes.txt", "missing.py", "procs/test_extra.py"))
    result = scan(tmp_path, options)

    assert [w.kind for w in result.warnings] == [
        DiscoveryErrorKind.FILE_LOAD_ERROR,
        DiscoveryErrorKind.INVALID_FILE_TYPE,
        DiscoveryErrorKind.INVALID_FILE_TYPE,
    ]
    assert [Path(w.path).name for w in result.warnings] == ["missing.py", "notes.txt", "test_extra.py"]
    assert _namespaces(result) == ["users"]


def test_cancellation_discards_results(tmp_path: Path, write_module, users_source, health_source) -> None:
    write_module("health.py", health_source)
    write_module("users.py", users_source)
    event = threading.Event()
    event.set()

    with pytest.raises(ScanCancelledError):
        scan(tmp_path, DiscoveryOptions(cancel_event=event))


def test_concurrent_loading_matches_sequential(tmp_path: Path, write_module, users_source) -> None:
    for index in range(8):
        source = users_source.replace('"users"', f'"users{index}"')
        write_module(f"mod_{index}.py", source)
    write_module("mod_broken.py", BROKEN_MODULE)

    sequential = scan(tmp_path)
    concurrent = scan(tmp_path, DiscoveryOptions(max_workers=4))

    assert concurrent.scanned_files == sequential.scanned_files
    assert _namespaces(concurrent) == _namespaces(sequential)
    assert [w.path for w in concurrent.warnings] == [w.path for w in sequential.warnings]


def test_options_are_validated() -> None:
    with pytest.raises(ValueError):
        DiscoveryOptions(on_invalid_export="explode")
    with pytest.raises(ValueError):
        DiscoveryOptions(max_workers=0)


def test_discover_procedures_returns_collections(tmp_path: Path, write_module, users_source) -> None:
    write_module("users.py", users_source)
    collections = discover_procedures(tmp_path)
    assert [collection.namespace for collection in collections] == ["users"]
