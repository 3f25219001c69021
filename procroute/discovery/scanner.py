"""Filesystem scanning for procedure modules.

``scan`` walks a directory, loads every candidate module and keeps the
exports that validate as procedure collections. Per-file problems become
warnings; only an unusable root directory (or the ``"error"`` export policy)
stops a scan.

Ordering is always lexicographic by path, independent of the order the
operating system lists directory entries in and of how many files are
loaded concurrently.
"""

from __future__ import annotations

import contextvars
import logging
import os
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Iterator, List, Optional, Set, Tuple, Union

from procroute.discovery.errors import (
    DiscoveryError,
    DiscoveryErrorKind,
    directory_not_found,
    file_load_error,
    invalid_export,
    invalid_file_type,
    no_procedures_found,
    permission_denied,
)
from procroute.discovery.loader import exported_values, load_module
from procroute.discovery.types import DiscoveryOptions, DiscoveryResult, DiscoveryWarning
from procroute.discovery.validator import validate
from procroute.errors import ScanCancelledError
from procroute.naming import naming_warnings
from procroute.observability.logging import log_discovery_warning
from procroute.procedure import ProcedureCollection

if TYPE_CHECKING:
    from procroute.config import ProcrouteConfig

logger = logging.getLogger(__name__)

PathLike = Union[str, os.PathLike]


@dataclass(frozen=True)
class _FileOutcome:
    """Immutable result of loading one file."""

    path: str
    collections: Tuple[ProcedureCollection, ...] = ()
    problems: Tuple[DiscoveryError, ...] = ()


def _sort_key(path: Path) -> str:
    return path.as_posix()


class _Scan:
    def __init__(self, root_dir: PathLike, options: DiscoveryOptions, *, escalate: bool) -> None:
        self.root = Path(root_dir).expanduser().absolute()
        self.options = options
        self.escalate = escalate

    # -- root and file enumeration -----------------------------------------

    def _check_root(self) -> None:
        root = str(self.root)
        try:
            if not self.root.is_dir():
                raise directory_not_found(root)
        except PermissionError as exc:
            raise permission_denied(root) from exc
        try:
            with os.scandir(self.root) as entries:
                next(entries, None)
        except PermissionError as exc:
            raise permission_denied(root) from exc
        except FileNotFoundError as exc:
            raise directory_not_found(root) from exc

    def _walk(self, directory: Path, visited: Set[str]) -> Iterator[Path]:
        real = os.path.realpath(directory)
        if real in visited:
            return
        visited.add(real)
        try:
            with os.scandir(directory) as iterator:
                entries = sorted(iterator, key=lambda entry: entry.name)
        except OSError as exc:
            logger.debug("Skipping unreadable directory %s: %s", directory, exc)
            return
        for entry in entries:
            path = Path(entry.path)
            try:
                is_dir = entry.is_dir()
                is_file = entry.is_file()
            except OSError:
                continue
            if is_dir:
                if self.options.recursive and not self.options.skips_directory(entry.name):
                    yield from self._walk(path, visited)
            elif is_file and self.options.accepts(path):
                yield path

    def _candidates(self) -> Tuple[List[Path], List[_FileOutcome]]:
        found = {_sort_key(path): path for path in self._walk(self.root, set())}
        rejected: List[_FileOutcome] = []
        for relative in self.options.files:
            path = (self.root / relative).absolute()
            key = _sort_key(path)
            if key in found:
                continue
            if not path.is_file():
                error = file_load_error(str(path), FileNotFoundError(f"No such file: {path}"))
                rejected.append(_FileOutcome(path=str(path), problems=(error,)))
            elif not self.options.accepts(path):
                error = invalid_file_type(str(path), path.suffix, self.options.extensions)
                rejected.append(_FileOutcome(path=str(path), problems=(error,)))
            else:
                found[key] = path
        files = [found[key] for key in sorted(found)]
        return files, rejected

    # -- loading --------------------------------------------------------------

    def _load_file(self, path: Path) -> _FileOutcome:
        try:
            module = load_module(path)
        except (Exception, SystemExit) as exc:
            return _FileOutcome(path=str(path), problems=(file_load_error(str(path), exc),))

        collections: List[ProcedureCollection] = []
        problems: List[DiscoveryError] = []
        for export_name, value in exported_values(module):
            try:
                validation = validate(value)
            except Exception as exc:
                reason = f"inspecting the export raised {type(exc).__name__}: {exc}"
                problems.append(invalid_export(str(path), export_name, reason))
                continue
            if validation.ok:
                collections.append(validation.collection)
            elif validation.error is not None:
                problems.append(invalid_export(str(path), export_name, validation.reason or "invalid export"))
        return _FileOutcome(path=str(path), collections=tuple(collections), problems=tuple(problems))

    def _outcomes(self, files: List[Path]) -> Iterator[_FileOutcome]:
        if self.options.max_workers == 1 or len(files) <= 1:
            for path in files:
                yield self._load_file(path)
            return
        with ThreadPoolExecutor(max_workers=self.options.max_workers) as pool:
            futures: List[Future] = [
                pool.submit(contextvars.copy_context().run, self._load_file, path) for path in files
            ]
            try:
                for future in futures:
                    yield future.result()
            finally:
                for future in futures:
                    future.cancel()

    # -- collection -------------------------------------------------------------

    def _cancelled(self) -> bool:
        event = self.options.cancel_event
        return event is not None and event.is_set()

    def _record(self, error: DiscoveryError, warnings: List[DiscoveryWarning]) -> None:
        policy = self.options.on_invalid_export
        if error.kind == DiscoveryErrorKind.INVALID_EXPORT and policy == "ignore":
            return
        if self.escalate:
            raise error
        severity = "error" if policy == "error" else "warning"
        warning = DiscoveryWarning.from_error(error, severity=severity)
        warnings.append(warning)
        if policy == "warn" or error.kind != DiscoveryErrorKind.INVALID_EXPORT:
            log_discovery_warning(
                kind=warning.kind.value,
                path=warning.path,
                message=warning.message,
                export_name=warning.export_name,
            )

    def run(self) -> DiscoveryResult:
        self._check_root()
        files, rejected = self._candidates()

        merged: List[Tuple[str, _FileOutcome]] = [(outcome.path, outcome) for outcome in rejected]

        collections: List[ProcedureCollection] = []
        loaded_files: List[str] = []
        warnings: List[DiscoveryWarning] = []
        seen: Set[int] = set()

        # Outcomes arrive in path order; targeted files rejected up front are
        # interleaved by path so the final ordering never depends on where a
        # problem was detected.
        ordered: List[_FileOutcome] = []
        outcomes = self._outcomes(files)
        try:
            for outcome in outcomes:
                ordered.append(outcome)
                if self._cancelled():
                    raise ScanCancelledError(
                        f"Discovery of {self.root} was cancelled",
                        path=str(self.root),
                        hint="Partial results are discarded; run the scan again.",
                    )
        finally:
            outcomes.close()

        merged.extend((outcome.path, outcome) for outcome in ordered)
        merged.sort(key=lambda item: Path(item[0]).as_posix())

        for path, outcome in merged:
            for error in outcome.problems:
                self._record(error, warnings)
            accepted = 0
            for collection in outcome.collections:
                if id(collection) in seen:
                    continue
                seen.add(id(collection))
                collections.append(collection.with_source(path))
                accepted += 1
            if accepted:
                loaded_files.append(path)

        if not collections:
            error = no_procedures_found(str(self.root), len(merged))
            warnings.append(DiscoveryWarning.from_error(error))
            logger.warning("%s", error.format())

        logger.info(
            "Discovered %d procedure collection(s) in %d of %d file(s) under %s (%d warning(s))",
            len(collections),
            len(loaded_files),
            len(merged),
            self.root,
            len(warnings),
        )
        return DiscoveryResult(
            collections=tuple(collections),
            scanned_files=tuple(path for path, _ in merged),
            loaded_files=tuple(loaded_files),
            warnings=tuple(warnings),
        )


def scan(root_dir: PathLike, options: Optional[DiscoveryOptions] = None) -> DiscoveryResult:
    """Scan ``root_dir`` for procedure collections.

    Raises :class:`DiscoveryError` for a missing or unreadable root and, when
    ``on_invalid_export="error"``, for the first per-file problem in path
    order. Raises :class:`ScanCancelledError` when ``options.cancel_event`` is
    set during the scan.
    """

    options = options or DiscoveryOptions()
    return _Scan(root_dir, options, escalate=options.on_invalid_export == "error").run()


def scan_verbose(root_dir: PathLike, options: Optional[DiscoveryOptions] = None) -> DiscoveryResult:
    """Like :func:`scan`, but per-file errors are always returned as data.

    Under the ``"error"`` policy the problems that would have aborted
    :func:`scan` are recorded with ``severity="error"``.
    """

    return _Scan(root_dir, options or DiscoveryOptions(), escalate=False).run()


def discover_procedures(root_dir: PathLike, options: Optional[DiscoveryOptions] = None) -> List[ProcedureCollection]:
    """Return only the collections found by :func:`scan`."""

    return list(scan(root_dir, options).collections)


def discover_from_config(config: "ProcrouteConfig", *, verbose: bool = False) -> DiscoveryResult:
    """Scan the procedures directory named by ``config`` with its options."""

    runner = scan_verbose if verbose else scan
    with naming_warnings(config.naming_warnings):
        return runner(config.procedures_path, config.discovery_options())


__all__ = ["discover_from_config", "discover_procedures", "scan", "scan_verbose"]
