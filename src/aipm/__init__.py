"""Package manager for AI-assistant configuration artifacts."""

__version__ = "0.1.0"

# Export protocol interfaces for type hints and dependency injection
from aipm.protocols import (
    FileSystem,
    RegistryClient,
)

__all__ = [
    "__version__",
    "FileSystem",
    "RegistryClient",
]
