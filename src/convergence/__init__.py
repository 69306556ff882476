"""
CONVERGENCE

Noyau de connectivité et de synchronisation:
- resilience: retry classifié avec backoff exponentiel
- supervision: reconnexion des endpoints
- sync: synchronisation temporelle par chaîne hachée
- events, logging, core: notifications, logs structurés, configuration
"""

from .runtime import ConvergenceRuntime, build_runtime

__version__ = "1.0.0"

__all__ = ["ConvergenceRuntime", "build_runtime", "__version__"]
