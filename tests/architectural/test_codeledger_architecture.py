"""Architectural tests for the code ledger service.

Static, file/AST-based checks on layering and error handling. They never
import application code, so a broken module shows up as a parse failure
rather than a collection error.
"""

from __future__ import annotations

import ast
import re
from pathlib import Path
from typing import Iterable, List, Set

import pytest


PROJECT_ROOT = Path(__file__).resolve().parents[2]
PKG_DIR = PROJECT_ROOT / "codeledger"
STORE_MODULES = ("store_memory.py", "store_sql.py", "store_github.py")
LAYERED_DIRS = ("logic", "models", "routes", "http")


# --------------------
# Helper utilities
# --------------------


def _parse(path: Path) -> ast.Module:
    try:
        return ast.parse(path.read_text(encoding="utf-8"), filename=str(path))
    except FileNotFoundError:
        pytest.fail(f"Expected module is missing: {path}")
    except SyntaxError as exc:
        pytest.fail(f"Module does not parse: {path}: {exc}")


def _imported_modules(tree: ast.AST) -> Set[str]:
    names: Set[str] = set()
    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            names.update(alias.name for alias in node.names)
        elif isinstance(node, ast.ImportFrom) and node.module:
            names.add(node.module)
            names.update(f"{node.module}.{alias.name}" for alias in node.names)
    return names


def _modules_in(*subdirs: str) -> Iterable[Path]:
    for sub in subdirs:
        yield from sorted((PKG_DIR / sub).glob("*.py"))


def _rel(path: Path) -> str:
    return str(path.relative_to(PROJECT_ROOT))


# --------------------
# Layering
# --------------------


def test_routes_do_not_import_store_backends():
    offenders: List[str] = []
    for path in _modules_in("routes"):
        imports = _imported_modules(_parse(path))
        for name in imports:
            if any(name.startswith(f"codeledger.logic.{m[:-3]}") for m in STORE_MODULES) or name.startswith("codeledger.db"):
                offenders.append(f"{_rel(path)} imports {name}")
    assert not offenders, offenders


def test_store_backends_do_not_depend_on_allocator_or_web_layer():
    offenders: List[str] = []
    for module in STORE_MODULES:
        path = PKG_DIR / "logic" / module
        for name in _imported_modules(_parse(path)):
            if name.startswith(("codeledger.logic.allocator", "codeledger.routes", "codeledger.http", "fastapi", "starlette")):
                offenders.append(f"{_rel(path)} imports {name}")
    assert not offenders, offenders


def test_logic_and_models_are_framework_free():
    offenders: List[str] = []
    for path in _modules_in("logic", "models"):
        for name in _imported_modules(_parse(path)):
            if name.startswith(("fastapi", "starlette", "uvicorn")):
                offenders.append(f"{_rel(path)} imports {name}")
    assert not offenders, offenders


def test_layered_modules_declare_public_api():
    missing: List[str] = []
    for path in _modules_in(*LAYERED_DIRS):
        tree = _parse(path)
        declared = any(
            isinstance(node, (ast.Assign, ast.AnnAssign))
            and any(isinstance(t, ast.Name) and t.id == "__all__" for t in (node.targets if isinstance(node, ast.Assign) else [node.target]))
            for node in tree.body
        )
        if not declared:
            missing.append(_rel(path))
    assert not missing, missing


# --------------------
# Error handling
# --------------------


def test_allocator_catches_only_typed_store_errors():
    tree = _parse(PKG_DIR / "logic" / "allocator.py")
    allowed = {"VersionConflict", "StoreTransportError", "LedgerInvalid"}
    caught: Set[str] = set()
    for node in ast.walk(tree):
        if isinstance(node, ast.ExceptHandler):
            assert node.type is not None, "bare except in allocator"
            types = node.type.elts if isinstance(node.type, ast.Tuple) else [node.type]
            caught.update(t.id for t in types if isinstance(t, ast.Name))
    assert caught and caught <= allowed, caught


def test_allocator_never_inspects_error_messages():
    source = (PKG_DIR / "logic" / "allocator.py").read_text(encoding="utf-8")
    # Conflicts are recognised by type, never by matching text or status codes
    assert not re.search(r"in\s+str\(\s*e\s*\)", source)
    assert ".status" not in source


def test_every_allocation_error_kind_has_a_problem_mapping():
    errors_tree = _parse(PKG_DIR / "logic" / "errors.py")
    kinds: Set[str] = set()
    for node in errors_tree.body:
        if isinstance(node, ast.ClassDef) and node.name == "AllocationErrorKind":
            for stmt in node.body:
                if isinstance(stmt, ast.Assign):
                    kinds.update(t.id for t in stmt.targets if isinstance(t, ast.Name))
    assert kinds, "AllocationErrorKind defines no kinds"

    factory_tree = _parse(PKG_DIR / "logic" / "problem_factory.py")
    mapped: Set[str] = set()
    for node in ast.walk(factory_tree):
        if isinstance(node, ast.Dict):
            for key in node.keys:
                if isinstance(key, ast.Attribute) and isinstance(key.value, ast.Name) and key.value.id == "AllocationErrorKind":
                    mapped.add(key.attr)
    assert kinds == mapped, kinds ^ mapped


def test_store_modules_raise_only_store_errors():
    allowed = {"VersionConflict", "StoreTransportError", "LedgerInvalid", "ValueError"}
    offenders: List[str] = []
    for module in STORE_MODULES:
        path = PKG_DIR / "logic" / module
        for node in ast.walk(_parse(path)):
            if isinstance(node, ast.Raise) and node.exc is not None:
                exc = node.exc.func if isinstance(node.exc, ast.Call) else node.exc
                if isinstance(exc, ast.Name) and exc.id not in allowed:
                    offenders.append(f"{_rel(path)}:{node.lineno} raises {exc.id}")
    assert not offenders, offenders


# --------------------
# Packaging
# --------------------


def test_sql_migrations_ship_with_the_package():
    migrations = sorted((PKG_DIR / "db" / "migrations").glob("*.sql"))
    assert migrations, "no SQL migrations found"
    assert all(re.match(r"^\d{3}_[a-z0-9_]+\.sql$", p.name) for p in migrations)
    pyproject = (PROJECT_ROOT / "pyproject.toml").read_text(encoding="utf-8")
    assert "migrations/*.sql" in pyproject


def test_package_metadata_does_not_use_design_documents_as_readme():
    pyproject = (PROJECT_ROOT / "pyproject.toml").read_text(encoding="utf-8")
    readme = re.search(r'^readme\s*=\s*"([^"]+)"', pyproject, flags=re.MULTILINE)
    if readme is not None:
        assert readme.group(1) not in {"SPEC_FULL.md", "spec.md", "DESIGN.md"}
        assert (PROJECT_ROOT / readme.group(1)).exists()
