from imgeval.monitoring.logging import configure_logging
from imgeval.monitoring.metrics import IngestMetrics, IngestSnapshot

__all__ = [
    "configure_logging",
    "IngestMetrics",
    "IngestSnapshot",
]
