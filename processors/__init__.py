"""Processing stages for the ledger watcher.

Each stage lives in its own module so the watcher stays small and the stages
can be tested without a filesystem observer.
"""

__all__ = [
    "archiver",
    "config",
    "duplicate_guard",
    "errors",
    "hasher",
    "loader",
    "models",
    "pipeline",
    "report_writer",
    "row_validator",
    "single_flight",
    "storage",
]
