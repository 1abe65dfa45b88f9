"""Probes for platform infrastructure (database engine lifecycle).

Bounded contexts keep their own probes next to the code they observe;
only the engine shared by every context is instrumented here.
"""

from shared_kernel.observability_context import ObservationContext
from infrastructure.observability.probes import DatabaseProbe, DefaultDatabaseProbe

__all__ = [
    "DatabaseProbe",
    "DefaultDatabaseProbe",
    "ObservationContext",
]
