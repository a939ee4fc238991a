from imgeval.results.importer import import_results_jsonl
from imgeval.results.models import EvaluationItemResult, EvaluationResult, FolderStats
from imgeval.results.store import LocalFilesystemPersistence, PersistencePort, ResultsStore

__all__ = [
    "import_results_jsonl",
    "EvaluationItemResult",
    "EvaluationResult",
    "FolderStats",
    "LocalFilesystemPersistence",
    "PersistencePort",
    "ResultsStore",
]
