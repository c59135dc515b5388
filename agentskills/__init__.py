"""agentskills package."""

from .config import InstallRequest
from .runtimes import Runtime, Scope

__version__ = "0.3.0"
__all__ = ["InstallRequest", "Runtime", "Scope", "__version__"]
