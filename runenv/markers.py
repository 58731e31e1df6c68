"""Declarative runtime requirements for consumers.

A consumer (class, function or module) declares what it needs with
decorators::

    @runtime_dependency("!org.jetbrains.kotlin:kotlin-stdlib:1.8.22", test="!kotlin")
    @runtime_resource(
        "https://example.com/assets/lang/zh_CN.yml",
        hash="5f1c0f0e3d7ab0d3a5ed2a1f1a8ddc2f7c6a9b10",
        name="lang/zh_CN.yml",
    )
    class Plugin:
        ...

Modules can assign the lists directly::

    __runtime_dependencies__ = [DependencyDeclaration(coordinate="g:a:1.0")]

``scan`` returns the declarations as plain data, in the order they are
written; the resolution pipeline never looks at how they were discovered.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from typing import Any, TypeVar

from runenv.models.requests import AssetDescriptor, DependencyDeclaration
from runenv.models.scopes import DEFAULT_SCOPES, DependencyScope

T = TypeVar("T")

DEPENDENCIES_ATTR = "__runtime_dependencies__"
RESOURCES_ATTR = "__runtime_resources__"


def _attach(target: Any, attr: str, record: Any) -> None:
    # Own declarations only; a subclass must not extend its base's list in place
    own = getattr(target, "__dict__", {}).get(attr)
    records = list(own or ())
    # Decorators apply bottom-up; prepend to keep the written order
    records.insert(0, record)
    setattr(target, attr, records)


def runtime_dependency(
    value: str,
    *,
    test: str = "",
    relocate: Iterable[str] = (),
    repository: str = "",
    ignore_optional: bool = True,
    ignore_exception: bool = False,
    transitive: bool = True,
    scopes: Iterable[DependencyScope] = DEFAULT_SCOPES,
) -> Callable[[T], T]:
    """Declare a library coordinate the decorated consumer needs at runtime."""
    declaration = DependencyDeclaration(
        coordinate=value,
        test=test,
        relocate=tuple(relocate),
        repository=repository,
        ignore_optional=ignore_optional,
        ignore_exception=ignore_exception,
        transitive=transitive,
        scopes=frozenset(scopes),
    )

    def decorator(target: T) -> T:
        _attach(target, DEPENDENCIES_ATTR, declaration)
        return target

    return decorator


def runtime_resource(
    value: str,
    *,
    hash: str,
    name: str = "",
    zip: bool = False,
) -> Callable[[T], T]:
    """Declare an asset file the decorated consumer needs at runtime."""
    asset = AssetDescriptor(name=name, checksum=hash, source_url=value, is_archived=zip)

    def decorator(target: T) -> T:
        _attach(target, RESOURCES_ATTR, asset)
        return target

    return decorator


def scan(consumer: Any) -> tuple[list[DependencyDeclaration], list[AssetDescriptor]]:
    """Return the consumer's declared dependencies and assets."""
    dependencies = list(getattr(consumer, DEPENDENCIES_ATTR, None) or ())
    resources = list(getattr(consumer, RESOURCES_ATTR, None) or ())
    return dependencies, resources
