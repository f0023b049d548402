"""Reconcile old and new identities of reloaded classes.

When a module is re-executed it creates brand new class objects. Instances
created before the reload still point at the old class, and other modules may
hold references to it as well. :func:`patch_class` keeps every historical
identity of a class name in lockstep with the newest definition:

* plain class attributes (static state) flow from old identities to the new one;
* static/class methods, nested classes and other callables flow from the new
  identity onto the old ones;
* instance methods, properties and other descriptors flow from the new identity
  onto the old ones;
* the old identity's bases are re-pointed at the new identity's bases when
  the layouts allow it.

Slot descriptors belong to the class that created them and are never copied.

Old and new classes stay distinct objects, so ``isinstance`` checks against
any identity behave exactly as before.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Callable, Iterable, Sequence
from enum import Enum
from types import (
    CellType,
    FunctionType,
    GetSetDescriptorType,
    MemberDescriptorType,
    ModuleType,
)
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .hot import HotHandle

LOGGER = logging.getLogger(__name__)

# Attributes owned by the class object itself that must never be copied.
_SKIPPED = frozenset(
    {"__dict__", "__weakref__", "__module__", "__qualname__", "__doc__", "__slots__"}
)


def is_class_like(value: Any) -> bool:
    """Return True for user-defined classes.

    Enums are excluded: their members live in the class namespace and cannot
    be reassigned.
    """

    return (
        isinstance(value, type)
        and value.__module__ != "builtins"
        and not issubclass(value, Enum)
    )


def history_key(cls: type) -> str:
    return cls.__qualname__


def patch_class(history: list[type], new: type) -> None:
    """Patch every identity in ``history`` with ``new`` and append it."""

    if any(old is new for old in history):
        return
    for old in history:
        _assign(new, old, _is_static_state)
        _assign(old, new, _is_static_behavior, rebind=True)
        _assign(old, new, _is_member, rebind=True)
        if old.__bases__ != new.__bases__:
            try:
                old.__bases__ = new.__bases__
            except TypeError as exc:
                LOGGER.warning("Cannot re-point bases of %s: %s", old.__qualname__, exc)
        LOGGER.debug("Patched %s (id=%#x) from newer definition", old.__qualname__, id(old))
    history.append(new)


def patch_exports(module: ModuleType, handle: HotHandle) -> list[type]:
    """Patch the classes a freshly executed module defines.

    Only classes whose ``__module__`` is the module itself are considered, so
    names imported from elsewhere are left alone. A module that replaced
    itself in ``sys.modules`` with a class has that class patched instead.
    """

    exported = sys.modules.get(module.__name__, module)
    if is_class_like(exported):
        handle.patch(exported)
        return [exported]

    classes = _module_classes(module.__name__, vars(module).values())
    if classes:
        handle.patch(*classes)
    return classes


def _module_classes(module_name: str, values: Iterable[Any]) -> list[type]:
    seen: dict[int, type] = {}
    for value in values:
        if is_class_like(value) and value.__module__ == module_name:
            seen.setdefault(id(value), value)
    return list(seen.values())


def _is_dunder(name: str) -> bool:
    return name.startswith("__") and name.endswith("__")


def _is_slot(value: Any) -> bool:
    return isinstance(value, (MemberDescriptorType, GetSetDescriptorType))


def _is_behavior(value: Any) -> bool:
    if _is_slot(value):
        return False
    return callable(value) or hasattr(type(value), "__get__")


def _is_static_state(name: str, value: Any) -> bool:
    # _abc_impl holds the ABC registry of a single identity
    if _is_dunder(name) or name.startswith("_abc_") or _is_slot(value):
        return False
    return not _is_behavior(value)


def _is_member(name: str, value: Any) -> bool:
    # functions, properties, cached_property, partialmethod, ...
    if isinstance(value, (staticmethod, classmethod, type)) or _is_slot(value):
        return False
    return hasattr(type(value), "__get__")


def _is_static_behavior(name: str, value: Any) -> bool:
    return _is_behavior(value) and not _is_member(name, value)


def _slot_names(cls: type) -> set[str]:
    slots = vars(cls).get("__slots__", ())
    if isinstance(slots, str):
        return {slots}
    return set(slots)


def _assign(
    target: type,
    source: type,
    predicate: Callable[[str, Any], bool],
    *,
    rebind: bool = False,
) -> None:
    skipped = _SKIPPED | _slot_names(source) | _slot_names(target)
    for name, value in list(vars(source).items()):
        if name in skipped or not predicate(name, value):
            continue
        if rebind:
            value = _rebind(value, source, target)
        setattr(target, name, value)


def _rebind(value: Any, source: type, target: type) -> Any:
    """Point zero-argument ``super()`` cells in ``value`` at ``target``."""

    if isinstance(value, staticmethod):
        return staticmethod(_rebind(value.__func__, source, target))
    if isinstance(value, classmethod):
        return classmethod(_rebind(value.__func__, source, target))
    if type(value) is property:
        return property(
            _rebind(value.fget, source, target),
            _rebind(value.fset, source, target),
            _rebind(value.fdel, source, target),
            value.__doc__,
        )
    if isinstance(value, FunctionType):
        return _rebind_function(value, source, target)
    return value


def _rebind_function(func: FunctionType, source: type, target: type) -> FunctionType:
    freevars: Sequence[str] = func.__code__.co_freevars
    if func.__closure__ is None or "__class__" not in freevars:
        return func
    index = freevars.index("__class__")
    try:
        bound = func.__closure__[index].cell_contents
    except ValueError:
        return func
    if bound is not source:
        return func

    closure = list(func.__closure__)
    closure[index] = CellType(target)
    rebound = FunctionType(
        func.__code__,
        func.__globals__,
        func.__name__,
        func.__defaults__,
        tuple(closure),
    )
    rebound.__kwdefaults__ = func.__kwdefaults__
    rebound.__qualname__ = func.__qualname__
    rebound.__doc__ = func.__doc__
    rebound.__module__ = func.__module__
    rebound.__annotations__ = dict(func.__annotations__)
    rebound.__dict__.update(func.__dict__)
    return rebound


__all__ = ["is_class_like", "history_key", "patch_class", "patch_exports"]
