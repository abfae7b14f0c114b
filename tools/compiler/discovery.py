# SPDX-License-Identifier: MIT
"""
FAF Discovery Provider

Collects facts about a project from a bounded set of files in its tree
(package manifests, lockfiles, hosting and CI configuration) and turns them
into DiscoveryFacts keyed by dotted slot id. The compiler only consumes the
resulting facts; it never walks the filesystem itself.

Detectors share one shape (``name``, ``candidate_files``, ``detect`` and
``generate_context``) and are kept in a registry keyed by name. Registration
order is precedence: when two detectors supply the same slot, the earlier
one wins.
"""

from __future__ import annotations

import json
import logging
import re
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Protocol, Tuple, Union

from .parser import get_path

logger = logging.getLogger(__name__)

DEFAULT_MAX_WORKERS = 4
DEFAULT_TIMEOUT = 2.0
DEFAULT_MAX_BYTES = 256 * 1024


@dataclass(frozen=True)
class DiscoveryFact:
    """A slot value inferred from the project tree."""

    key: str
    value: str
    source: str

    def to_dict(self) -> Dict[str, str]:
        return {"key": self.key, "value": self.value, "source": self.source}


def facts_from_mapping(
    mapping: Mapping[str, Any], source: str = "external"
) -> Tuple[DiscoveryFact, ...]:
    """
    Normalize a caller-supplied key->value map into sorted DiscoveryFacts.

    None values are dropped; everything else is converted to a string.
    """
    facts = [
        DiscoveryFact(key=str(key), value=str(value), source=source)
        for key, value in mapping.items()
        if value is not None
    ]
    return tuple(sorted(facts, key=lambda f: f.key))


# =============================================================================
# Project Files
# =============================================================================


@dataclass(frozen=True)
class ProjectFiles:
    """
    Snapshot of the candidate files read from a project tree.

    ``contents`` maps a relative path to its (possibly truncated) text.
    Directories that exist are recorded with empty text.
    """

    root: Path
    contents: Mapping[str, str]
    _json_cache: Dict[str, Any] = field(default_factory=dict, repr=False, compare=False)

    def exists(self, name: str) -> bool:
        return name in self.contents

    def text(self, name: str) -> Optional[str]:
        return self.contents.get(name)

    def json(self, name: str) -> Optional[Dict[str, Any]]:
        """Parse a JSON file once; None if absent or not a JSON object."""
        if name not in self._json_cache:
            data: Any = None
            content = self.contents.get(name)
            if content:
                try:
                    data = json.loads(content)
                except ValueError as e:
                    logger.debug(f"Ignoring malformed JSON in {name}: {e}")
            self._json_cache[name] = data if isinstance(data, dict) else None
        return self._json_cache[name]


def read_candidate(root: Path, name: str, max_bytes: int = DEFAULT_MAX_BYTES) -> Optional[str]:
    """
    Read one candidate file relative to the project root.

    Returns:
        The text (truncated to max_bytes characters), "" for an existing
        directory, or None when the path is missing or unreadable
    """
    path = root / name
    try:
        if path.is_dir():
            return ""
        if not path.is_file():
            return None
        with path.open("r", encoding="utf-8", errors="replace") as f:
            return f.read(max_bytes)
    except OSError as e:
        logger.debug(f"Cannot read discovery candidate {path}: {e}")
        return None


# =============================================================================
# Matchers
# =============================================================================

MATCHER_KINDS = ("file", "regex", "dependency", "field")


@dataclass(frozen=True)
class Matcher:
    """
    One way of extracting a value for a field.

    Kinds:
        file:       ``pattern`` is a relative path; matches when it exists
        regex:      ``pattern`` is searched in the text of ``source``
        dependency: ``pattern`` is a package name in the JSON manifest
                    ``source`` (dependencies or devDependencies)
        field:      ``pattern`` is a dotted path into the JSON ``source``

    When ``value`` is None the matched text is used instead (the first
    regex group, or the field's string value).
    """

    kind: str
    pattern: str
    source: str = ""
    value: Optional[str] = None

    def __post_init__(self) -> None:
        if self.kind not in MATCHER_KINDS:
            raise ValueError(f"Unknown matcher kind: {self.kind}")
        if self.kind != "file" and not self.source:
            raise ValueError(f"Matcher kind '{self.kind}' requires a source file")
        if self.kind in ("file", "dependency") and self.value is None:
            raise ValueError(f"Matcher kind '{self.kind}' requires a value")

    @property
    def files(self) -> Tuple[str, ...]:
        return (self.pattern,) if self.kind == "file" else (self.source,)

    def match(self, files: ProjectFiles) -> Optional[str]:
        if self.kind == "file":
            return self.value if files.exists(self.pattern) else None

        if self.kind == "regex":
            text = files.text(self.source)
            if not text:
                return None
            found = re.search(self.pattern, text, re.MULTILINE)
            if not found:
                return None
            if self.value is not None:
                return self.value
            captured = found.group(1) if found.groups() else found.group(0)
            return captured.strip() or None

        manifest = files.json(self.source)
        if manifest is None:
            return None

        if self.kind == "dependency":
            for section in ("dependencies", "devDependencies"):
                deps = manifest.get(section)
                if isinstance(deps, dict) and self.pattern in deps:
                    return self.value
            return None

        found_value = get_path(manifest, self.pattern)
        if isinstance(found_value, str) and found_value.strip():
            return self.value if self.value is not None else found_value.strip()
        return None


@dataclass(frozen=True)
class FieldRule:
    """A slot and its prioritized matchers; the first success wins."""

    key: str
    matchers: Tuple[Matcher, ...]

    def resolve(self, files: ProjectFiles) -> Optional[str]:
        for matcher in self.matchers:
            value = matcher.match(files)
            if value:
                return value
        return None


# =============================================================================
# Detectors
# =============================================================================


class Detector(Protocol):
    """Shape shared by every discovery detector."""

    name: str

    @property
    def candidate_files(self) -> Tuple[str, ...]: ...

    def detect(self, files: ProjectFiles) -> bool: ...

    def generate_context(self, files: ProjectFiles) -> Dict[str, str]: ...


@dataclass(frozen=True)
class RuleDetector:
    """Detector driven entirely by a table of field rules."""

    name: str
    markers: Tuple[str, ...]
    rules: Tuple[FieldRule, ...]

    @property
    def candidate_files(self) -> Tuple[str, ...]:
        names = list(self.markers)
        for rule in self.rules:
            for matcher in rule.matchers:
                for name in matcher.files:
                    if name not in names:
                        names.append(name)
        return tuple(names)

    def detect(self, files: ProjectFiles) -> bool:
        return any(files.exists(marker) for marker in self.markers)

    def generate_context(self, files: ProjectFiles) -> Dict[str, str]:
        if not self.detect(files):
            return {}
        context: Dict[str, str] = {}
        for rule in self.rules:
            value = rule.resolve(files)
            if value:
                context.setdefault(rule.key, value)
        return context


class DetectorRegistry:
    """Detectors keyed by name, iterated in registration order."""

    def __init__(self, detectors: Iterable[Detector] = ()) -> None:
        self._detectors: Dict[str, Detector] = {}
        for detector in detectors:
            self.register(detector)

    def register(self, detector: Detector) -> None:
        if detector.name in self._detectors:
            raise ValueError(f"Detector already registered: {detector.name}")
        self._detectors[detector.name] = detector

    def get(self, name: str) -> Optional[Detector]:
        return self._detectors.get(name)

    @property
    def names(self) -> List[str]:
        return list(self._detectors)

    @property
    def candidate_files(self) -> Tuple[str, ...]:
        names: List[str] = []
        for detector in self._detectors.values():
            for name in detector.candidate_files:
                if name not in names:
                    names.append(name)
        return tuple(names)

    def __iter__(self) -> Iterator[Detector]:
        return iter(list(self._detectors.values()))

    def __len__(self) -> int:
        return len(self._detectors)


# =============================================================================
# Built-in Detector Tables
# =============================================================================


def _deps(source: str, pairs: Iterable[Tuple[str, str]]) -> Tuple[Matcher, ...]:
    return tuple(Matcher("dependency", dep, source=source, value=value) for dep, value in pairs)


def _files(pairs: Iterable[Tuple[str, str]]) -> Tuple[Matcher, ...]:
    return tuple(Matcher("file", name, value=value) for name, value in pairs)


PY_DEPENDENCY_FILES = ("requirements.txt", "pyproject.toml", "Pipfile", "setup.py")


def _requirement(name: str, value: str) -> Tuple[Matcher, ...]:
    """Match a Python requirement line in any of the usual manifests."""
    pattern = rf"(?im)^\s*[\"']?{re.escape(name)}(?![\w.-])"
    return tuple(
        Matcher("regex", pattern, source=source, value=value) for source in PY_DEPENDENCY_FILES
    )


def _requirements(pairs: Iterable[Tuple[str, str]]) -> Tuple[Matcher, ...]:
    matchers: List[Matcher] = []
    for name, value in pairs:
        matchers.extend(_requirement(name, value))
    return tuple(matchers)


PKG = "package.json"

NODE_DETECTOR = RuleDetector(
    name="node",
    markers=(PKG,),
    rules=(
        FieldRule("project.name", (Matcher("field", "name", source=PKG),)),
        FieldRule("project.goal", (Matcher("field", "description", source=PKG),)),
        FieldRule(
            "project.main_language",
            _files([("tsconfig.json", "TypeScript")])
            + _deps(PKG, [("typescript", "TypeScript")])
            + _files([(PKG, "JavaScript")]),
        ),
        FieldRule(
            "project.type",
            _deps(PKG, [
                ("next", "Web application"),
                ("react", "Web application"),
                ("vue", "Web application"),
                ("@angular/core", "Web application"),
                ("svelte", "Web application"),
                ("@nestjs/core", "API service"),
                ("express", "API service"),
                ("fastify", "API service"),
            ]),
        ),
        FieldRule(
            "stack.frontend",
            _deps(PKG, [
                ("next", "Next.js"),
                ("@remix-run/react", "Remix"),
                ("gatsby", "Gatsby"),
                ("astro", "Astro"),
                ("nuxt", "Nuxt"),
                ("@sveltejs/kit", "SvelteKit"),
                ("@angular/core", "Angular"),
                ("vue", "Vue"),
                ("svelte", "Svelte"),
                ("solid-js", "SolidJS"),
                ("react", "React"),
            ]),
        ),
        FieldRule(
            "stack.css_framework",
            _deps(PKG, [
                ("tailwindcss", "Tailwind CSS"),
                ("bootstrap", "Bootstrap"),
                ("bulma", "Bulma"),
                ("styled-components", "styled-components"),
                ("@emotion/react", "Emotion"),
                ("sass", "Sass"),
            ]),
        ),
        FieldRule(
            "stack.ui_library",
            _deps(PKG, [
                ("@mui/material", "Material UI"),
                ("antd", "Ant Design"),
                ("@chakra-ui/react", "Chakra UI"),
                ("@mantine/core", "Mantine"),
                ("@headlessui/react", "Headless UI"),
            ]),
        ),
        FieldRule(
            "stack.state_management",
            _deps(PKG, [
                ("@reduxjs/toolkit", "Redux Toolkit"),
                ("redux", "Redux"),
                ("zustand", "Zustand"),
                ("mobx", "MobX"),
                ("jotai", "Jotai"),
                ("recoil", "Recoil"),
                ("pinia", "Pinia"),
                ("vuex", "Vuex"),
            ]),
        ),
        FieldRule(
            "stack.backend",
            _deps(PKG, [
                ("@nestjs/core", "NestJS"),
                ("express", "Express.js"),
                ("fastify", "Fastify"),
                ("koa", "Koa"),
                ("hono", "Hono"),
            ]),
        ),
        FieldRule(
            "stack.api_type",
            _deps(PKG, [
                ("@trpc/server", "tRPC"),
                ("@apollo/server", "GraphQL"),
                ("graphql", "GraphQL"),
                ("socket.io", "WebSocket"),
            ]),
        ),
        FieldRule(
            "stack.runtime",
            _files([("bun.lockb", "Bun"), (PKG, "Node.js")]),
        ),
        FieldRule(
            "stack.database",
            _deps(PKG, [
                ("pg", "PostgreSQL"),
                ("postgres", "PostgreSQL"),
                ("mysql2", "MySQL"),
                ("mongoose", "MongoDB"),
                ("mongodb", "MongoDB"),
                ("better-sqlite3", "SQLite"),
                ("sqlite3", "SQLite"),
                ("@supabase/supabase-js", "Supabase"),
                ("ioredis", "Redis"),
                ("redis", "Redis"),
            ]),
        ),
        FieldRule(
            "stack.connection",
            _deps(PKG, [
                ("@prisma/client", "Prisma"),
                ("prisma", "Prisma"),
                ("drizzle-orm", "Drizzle"),
                ("typeorm", "TypeORM"),
                ("sequelize", "Sequelize"),
                ("mongoose", "Mongoose"),
            ]),
        ),
        FieldRule(
            "stack.build",
            _deps(PKG, [
                ("vite", "Vite"),
                ("webpack", "Webpack"),
                ("esbuild", "esbuild"),
                ("rollup", "Rollup"),
                ("parcel", "Parcel"),
                ("tsup", "tsup"),
            ]),
        ),
        FieldRule(
            "stack.package_manager",
            _files([
                ("pnpm-lock.yaml", "pnpm"),
                ("yarn.lock", "Yarn"),
                ("bun.lockb", "Bun"),
                ("package-lock.json", "npm"),
            ]),
        ),
        FieldRule(
            "stack.testing",
            _deps(PKG, [
                ("vitest", "Vitest"),
                ("jest", "Jest"),
                ("mocha", "Mocha"),
                ("@playwright/test", "Playwright"),
                ("cypress", "Cypress"),
            ]),
        ),
        FieldRule(
            "stack.monorepo",
            _files([
                ("pnpm-workspace.yaml", "pnpm workspaces"),
                ("turbo.json", "Turborepo"),
                ("nx.json", "Nx"),
                ("lerna.json", "Lerna"),
            ]),
        ),
    ),
)

PYTHON_DETECTOR = RuleDetector(
    name="python",
    markers=("pyproject.toml", "requirements.txt", "setup.py", "setup.cfg", "Pipfile"),
    rules=(
        FieldRule(
            "project.name",
            (
                Matcher("regex", r"^name\s*=\s*[\"']([^\"']+)[\"']", source="pyproject.toml"),
                Matcher("regex", r"^name\s*=\s*(\S+)", source="setup.cfg"),
            ),
        ),
        FieldRule(
            "project.goal",
            (
                Matcher("regex", r"^description\s*=\s*[\"']([^\"']+)[\"']", source="pyproject.toml"),
                Matcher("regex", r"^description\s*=\s*(.+)$", source="setup.cfg"),
            ),
        ),
        FieldRule(
            "project.main_language",
            _files([
                ("pyproject.toml", "Python"),
                ("setup.py", "Python"),
                ("setup.cfg", "Python"),
                ("requirements.txt", "Python"),
                ("Pipfile", "Python"),
            ]),
        ),
        FieldRule(
            "project.type",
            (Matcher("regex", r"^\[project\.scripts\]", source="pyproject.toml", value="CLI tool"),)
            + _requirements([
                ("django", "Web application"),
                ("flask", "Web application"),
                ("fastapi", "API service"),
            ]),
        ),
        FieldRule(
            "stack.backend",
            _requirements([
                ("django", "Django"),
                ("fastapi", "FastAPI"),
                ("flask", "Flask"),
                ("starlette", "Starlette"),
                ("aiohttp", "aiohttp"),
                ("tornado", "Tornado"),
            ]),
        ),
        FieldRule(
            "stack.api_type",
            _requirements([
                ("graphene", "GraphQL"),
                ("strawberry-graphql", "GraphQL"),
                ("grpcio", "gRPC"),
                ("djangorestframework", "REST"),
            ]),
        ),
        FieldRule(
            "stack.database",
            _requirements([
                ("psycopg2", "PostgreSQL"),
                ("psycopg2-binary", "PostgreSQL"),
                ("psycopg", "PostgreSQL"),
                ("asyncpg", "PostgreSQL"),
                ("pymysql", "MySQL"),
                ("mysqlclient", "MySQL"),
                ("pymongo", "MongoDB"),
                ("motor", "MongoDB"),
                ("redis", "Redis"),
            ]),
        ),
        FieldRule(
            "stack.connection",
            _requirements([
                ("sqlalchemy", "SQLAlchemy"),
                ("flask-sqlalchemy", "SQLAlchemy"),
                ("peewee", "Peewee"),
                ("tortoise-orm", "Tortoise ORM"),
            ]),
        ),
        FieldRule(
            "stack.build",
            tuple(
                Matcher("regex", rf"build-backend\s*=\s*[\"']{re.escape(backend)}", source="pyproject.toml", value=value)
                for backend, value in (
                    ("hatchling", "Hatch"),
                    ("poetry.core", "Poetry"),
                    ("flit_core", "Flit"),
                    ("pdm.backend", "PDM"),
                    ("setuptools", "setuptools"),
                )
            ),
        ),
        FieldRule(
            "stack.package_manager",
            _files([
                ("uv.lock", "uv"),
                ("poetry.lock", "Poetry"),
                ("Pipfile.lock", "Pipenv"),
                ("pdm.lock", "PDM"),
                ("requirements.txt", "pip"),
            ]),
        ),
        FieldRule(
            "stack.testing",
            _files([("pytest.ini", "pytest"), ("conftest.py", "pytest")])
            + _requirements([("pytest", "pytest")])
            + _files([("tox.ini", "tox")]),
        ),
    ),
)

HOSTING_FILES = (
    ("vercel.json", "Vercel"),
    ("netlify.toml", "Netlify"),
    ("fly.toml", "Fly.io"),
    ("render.yaml", "Render"),
    ("app.yaml", "Google App Engine"),
    ("Procfile", "Heroku"),
    ("Dockerfile", "Docker"),
)

CICD_FILES = (
    (".github/workflows", "GitHub Actions"),
    (".gitlab-ci.yml", "GitLab CI"),
    (".circleci/config.yml", "CircleCI"),
    ("Jenkinsfile", "Jenkins"),
    ("azure-pipelines.yml", "Azure Pipelines"),
    (".travis.yml", "Travis CI"),
)

PLATFORM_DETECTOR = RuleDetector(
    name="platform",
    markers=tuple(name for name, _ in HOSTING_FILES + CICD_FILES),
    rules=(
        FieldRule("stack.hosting", _files(HOSTING_FILES)),
        FieldRule("stack.cicd", _files(CICD_FILES)),
    ),
)

BUILTIN_DETECTORS: Tuple[RuleDetector, ...] = (NODE_DETECTOR, PYTHON_DETECTOR, PLATFORM_DETECTOR)


def default_registry() -> DetectorRegistry:
    """A fresh registry holding the built-in detectors."""
    return DetectorRegistry(BUILTIN_DETECTORS)


# =============================================================================
# Provider
# =============================================================================


class DiscoveryProvider:
    """
    Reads candidate files and merges detector output into facts.

    Reads run concurrently with bounded parallelism. Each read has a
    timeout; a missing, unreadable or slow file simply contributes nothing.
    """

    def __init__(
        self,
        registry: Optional[DetectorRegistry] = None,
        max_workers: int = DEFAULT_MAX_WORKERS,
        timeout: float = DEFAULT_TIMEOUT,
        max_bytes: int = DEFAULT_MAX_BYTES,
    ) -> None:
        self.registry = registry if registry is not None else default_registry()
        self.max_workers = max(1, max_workers)
        self.timeout = timeout
        self.max_bytes = max_bytes

    def snapshot(self, project_root: Union[str, Path]) -> ProjectFiles:
        """Read every candidate file the registered detectors need."""
        root = Path(project_root)
        names = self.registry.candidate_files
        contents: Dict[str, str] = {}
        if not names:
            return ProjectFiles(root=root, contents=contents)

        pool = ThreadPoolExecutor(
            max_workers=min(self.max_workers, len(names)),
            thread_name_prefix="faf-discovery",
        )
        try:
            futures = {
                name: pool.submit(read_candidate, root, name, self.max_bytes)
                for name in names
            }
            for name, future in futures.items():
                try:
                    content = future.result(timeout=self.timeout)
                except FutureTimeoutError:
                    logger.warning(f"Timed out reading {root / name} after {self.timeout}s")
                    continue
                if content is not None:
                    contents[name] = content
        finally:
            pool.shutdown(wait=False, cancel_futures=True)

        logger.debug(f"Discovery read {len(contents)}/{len(names)} candidate files under {root}")
        return ProjectFiles(root=root, contents=contents)

    def discover(self, project_root: Union[str, Path]) -> Tuple[DiscoveryFact, ...]:
        """
        Run every registered detector against a project tree.

        Returns:
            Facts sorted by slot key; for a key supplied by several
            detectors the first registered detector wins
        """
        root = Path(project_root)
        if not root.is_dir():
            logger.debug(f"Discovery skipped, not a directory: {root}")
            return ()

        files = self.snapshot(root)
        merged: Dict[str, DiscoveryFact] = {}
        for detector in self.registry:
            try:
                if not detector.detect(files):
                    continue
                context = detector.generate_context(files)
            except Exception:
                logger.warning(f"Detector '{detector.name}' failed", exc_info=True)
                continue

            for key, value in context.items():
                if key in merged:
                    logger.debug(
                        f"Detector '{detector.name}' value for {key} shadowed by "
                        f"'{merged[key].source}'"
                    )
                    continue
                merged[key] = DiscoveryFact(key=key, value=value, source=f"{detector.name} detector")

        return tuple(merged[key] for key in sorted(merged))
