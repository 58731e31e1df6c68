"""runenv core pipeline: cache, transport, descriptors, resolution, acquisition, injection."""

from runenv.core.injector import Injector
from runenv.core.resolver import Closure, ResolveOptions, TransitiveResolver

__all__ = ["Injector", "Closure", "ResolveOptions", "TransitiveResolver"]
