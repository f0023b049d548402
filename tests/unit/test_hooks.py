from __future__ import annotations

import sys
from pathlib import Path
from types import ModuleType

from hotsplice.hooks import caller_path, imported_names, module_path


def test_absolute_import_names():
    assert imported_names("a.b", {"__name__": "x"}, (), 0) == ["a.b"]


def test_relative_import_with_submodule_fromlist(monkeypatch):
    monkeypatch.setitem(sys.modules, "pkgfixture.sub", ModuleType("pkgfixture.sub"))
    caller = {"__name__": "pkgfixture.mod", "__package__": "pkgfixture"}

    names = imported_names("", caller, ("sub", "helper"), 1)

    assert names == ["pkgfixture", "pkgfixture.sub"]


def test_parent_relative_import_without_package_attribute():
    caller = {"__name__": "pkgfixture.inner.mod"}

    assert imported_names("util", caller, None, 2) == ["pkgfixture.util"]


def test_star_import_records_only_the_base():
    assert imported_names("a", {"__name__": "x"}, ("*",), 0) == ["a"]


def test_relative_import_beyond_top_level_is_ignored():
    assert imported_names("x", {"__name__": "top", "__package__": ""}, (), 1) == []


def test_caller_path(tmp_path):
    source = tmp_path / "caller.py"

    assert caller_path(None) is None
    assert caller_path({"__name__": "__main__", "__file__": str(source)}) is None
    assert caller_path({"__name__": "caller"}) is None
    assert caller_path({"__name__": "caller", "__file__": str(source)}) == source.resolve()


def test_module_path():
    module = ModuleType("nofile")

    assert module_path(module) is None
    module.__file__ = "/app/x.py"
    assert module_path(module) == Path("/app/x.py").resolve()
