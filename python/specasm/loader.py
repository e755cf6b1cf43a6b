"""Document loaders used by the ``.arch``, ``.include`` and ``.module`` directives."""

from __future__ import annotations

import abc
import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from .errors import LoadError

LOGGER = logging.getLogger("specasm.loader")

SEARCH_PATH_ENV = "SPECASM_PATH"


class DocumentLoader(abc.ABC):
    """Collaborator supplying architecture specs and source documents."""

    @abc.abstractmethod
    def load_arch(self, name: str) -> Mapping[str, Any]:
        """Return the parsed architecture document for ``name``."""

    @abc.abstractmethod
    def load_include(self, name: str) -> str:
        """Return the source text of an included file."""

    @abc.abstractmethod
    def load_module(self, name: str) -> str:
        """Return the source text of a reusable module."""


def env_search_paths(environ: Optional[Mapping[str, str]] = None) -> List[Path]:
    environ = os.environ if environ is None else environ
    raw = environ.get(SEARCH_PATH_ENV, "")
    return [Path(part) for part in raw.split(os.pathsep) if part]


class FileSystemLoader(DocumentLoader):
    """Resolve documents against an ordered list of directories."""

    def __init__(
        self,
        search_paths: Iterable[str | Path] = (),
        *,
        arch_suffix: str = ".json",
        module_suffix: str = ".asm",
        module_dirs: Sequence[str] = ("modules",),
    ) -> None:
        self.search_paths: List[Path] = [Path(p).expanduser().resolve() for p in search_paths]
        if not self.search_paths:
            self.search_paths.append(Path.cwd().resolve())
        self.arch_suffix = arch_suffix
        self.module_suffix = module_suffix
        self.module_dirs = tuple(module_dirs)

    def _candidates(self, filename: str, subdirs: Sequence[str] = ()) -> List[Path]:
        requested = Path(filename).expanduser()
        if requested.is_absolute():
            return [requested]
        candidates: List[Path] = []
        for root in self.search_paths:
            candidates.append(root / requested)
            for sub in subdirs:
                candidates.append(root / sub / requested)
        return candidates

    def resolve(self, kind: str, filename: str, subdirs: Sequence[str] = ()) -> Path:
        if not filename:
            raise LoadError(kind, filename, "empty name")
        for candidate in self._candidates(filename, subdirs):
            if candidate.is_file():
                LOGGER.debug("resolved %s %r -> %s", kind, filename, candidate)
                return candidate
        searched = ", ".join(str(p) for p in self.search_paths)
        raise LoadError(kind, filename, f"not found in {searched}")

    def _read(self, kind: str, path: Path) -> str:
        try:
            return path.read_text(encoding="utf-8")
        except OSError as exc:
            raise LoadError(kind, str(path), str(exc)) from exc

    def load_arch(self, name: str) -> Mapping[str, Any]:
        filename = name if name.endswith(self.arch_suffix) else name + self.arch_suffix
        path = self.resolve("arch file", filename)
        try:
            data = json.loads(self._read("arch file", path))
        except json.JSONDecodeError as exc:
            raise LoadError("arch file", filename, f"invalid JSON: {exc}") from exc
        if not isinstance(data, dict) or "vars" not in data or "rules" not in data:
            raise LoadError("arch file", filename, 'expected an object with "vars" and "rules"')
        return data

    def load_include(self, name: str) -> str:
        return self._read("include", self.resolve("include", name))

    def load_module(self, name: str) -> str:
        filename = name if Path(name).suffix else name + self.module_suffix
        return self._read("module", self.resolve("module", filename, self.module_dirs))


class MemoryLoader(DocumentLoader):
    """Serve documents from in-memory mappings."""

    def __init__(
        self,
        *,
        archs: Optional[Mapping[str, Mapping[str, Any]]] = None,
        includes: Optional[Mapping[str, str]] = None,
        modules: Optional[Mapping[str, str]] = None,
    ) -> None:
        self.archs: Dict[str, Mapping[str, Any]] = dict(archs or {})
        self.includes: Dict[str, str] = dict(includes or {})
        self.modules: Dict[str, str] = dict(modules or {})

    @staticmethod
    def _lookup(kind: str, store: Mapping[str, Any], name: str) -> Any:
        if name not in store:
            raise LoadError(kind, name, "no such document")
        return store[name]

    def load_arch(self, name: str) -> Mapping[str, Any]:
        return self._lookup("arch", self.archs, name)

    def load_include(self, name: str) -> str:
        return self._lookup("include", self.includes, name)

    def load_module(self, name: str) -> str:
        return self._lookup("module", self.modules, name)
