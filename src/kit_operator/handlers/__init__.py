"""Handler modules for CRD resources."""

# Import handlers to register them - all handlers register themselves via @kopf decorators
from . import controlplane  # noqa: F401
from . import substrate  # noqa: F401
