from imgeval.dataset.ingest import DatasetIngestor, apply_upload_policy, backfill_model_name
from imgeval.dataset.matcher import ImagePathMatcher
from imgeval.dataset.types import DatasetConfiguration, DatasetEntry, WorkflowMode

__all__ = [
    "DatasetIngestor",
    "apply_upload_policy",
    "backfill_model_name",
    "ImagePathMatcher",
    "DatasetConfiguration",
    "DatasetEntry",
    "WorkflowMode",
]
