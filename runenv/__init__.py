"""runenv: runtime dependency provisioning.

Resolves Maven coordinates and their transitive closure at process runtime,
verifies and caches the binaries, relocates their namespaces to avoid
collisions with copies already loaded, and injects them into the running
interpreter's search path.
"""

__version__ = "0.1.0"

from runenv.config import RunEnvConfig
from runenv.core.injector import Injector
from runenv.markers import runtime_dependency, runtime_resource, scan

__all__ = [
    "Injector",
    "RunEnvConfig",
    "runtime_dependency",
    "runtime_resource",
    "scan",
    "__version__",
]
