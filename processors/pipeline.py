"""Drives one input file through hashing, duplicate check, load, report and archive."""
from __future__ import annotations

import logging
import os
from typing import Optional

from sqlalchemy.orm import sessionmaker

from processors.archiver import delete_source, move_to_history
from processors.config import WatcherConfig
from processors.duplicate_guard import digest_exists
from processors.errors import ArchiveError, StorageError
from processors.hasher import compute_digest
from processors.loader import load_file
from processors.models import IngestFile, ProcessingOutcome
from processors.report_writer import write_summary
from processors.single_flight import KeyedLock

DUPLICATE_MESSAGE = "This file was already processed and its data exists in the database."


class IngestPipeline:
    """Processes single files; safe to call from several worker threads.

    Callers are expected to serialize calls per path. Calls for different
    paths with the same content are serialized here on the digest, so only
    one of them can pass the duplicate check.
    """

    def __init__(
        self,
        config: WatcherConfig,
        session_factory: sessionmaker,
        logger: logging.Logger,
        digest_locks: Optional[KeyedLock] = None,
    ) -> None:
        self.config = config
        self.session_factory = session_factory
        self.logger = logger
        self.digest_locks = digest_locks or KeyedLock()

    def process(self, path: str) -> Optional[ProcessingOutcome]:
        """Run every stage for `path`.

        Returns None when the file disappeared before it could be hashed.
        Never raises; unexpected errors become a failed outcome.
        """
        try:
            return self._process(path)
        except Exception:
            self.logger.exception("Unexpected error processing file %s", path)
            outcome = ProcessingOutcome(os.path.basename(path), False)
            self._report(path, outcome)
            return outcome

    def _process(self, path: str) -> Optional[ProcessingOutcome]:
        name = os.path.basename(path)
        try:
            size = os.path.getsize(path)
            digest = compute_digest(path)
        except FileNotFoundError:
            self.logger.warning("File not found: %s", path)
            return None
        except OSError as exc:
            self.logger.exception("Could not read file %s", path)
            outcome = ProcessingOutcome(name, False, f"Error reading file: {exc}")
            self._report(path, outcome)
            return outcome

        ingest = IngestFile(path=path, digest=digest, size=size)
        self.logger.info("Processing %s (%d bytes, sha256 %s)", path, size, digest)

        with self.digest_locks.hold(digest):
            try:
                duplicate = digest_exists(self.session_factory, digest)
            except StorageError as exc:
                self.logger.exception("Duplicate check failed for %s", path)
                outcome = ProcessingOutcome(name, False, f"{StorageError.__name__}: {exc}")
                self._report(path, outcome)
                return outcome

            if duplicate:
                return self._handle_duplicate(ingest)

            result = load_file(self.session_factory, path, digest, self.logger)

        outcome = ProcessingOutcome(name, result.success, result.message)
        self._report(path, outcome)
        if result.success:
            self._archive(ingest)
        return outcome

    def _handle_duplicate(self, ingest: IngestFile) -> ProcessingOutcome:
        self.logger.info(
            "File %s already processed (duplicate hash). Creating duplicate summary and removing file.",
            ingest.path,
        )
        outcome = ProcessingOutcome(
            os.path.basename(ingest.path), False, DUPLICATE_MESSAGE, duplicate=True
        )
        self._report(ingest.path, outcome)
        try:
            delete_source(ingest.path, logger=self.logger)
        except ArchiveError:
            self.logger.exception("Error removing duplicate file %s", ingest.path)
        return outcome

    def _archive(self, ingest: IngestFile) -> None:
        try:
            move_to_history(ingest.path, self.config.history_dir, logger=self.logger)
        except ArchiveError:
            # rows stay committed; the file is left where it is
            self.logger.exception("Error moving file %s to history folder", ingest.path)

    def _report(self, path: str, outcome: ProcessingOutcome) -> None:
        try:
            write_summary(
                path,
                self.config.output_dir,
                outcome.success,
                outcome.message,
                logger=self.logger,
            )
        except OSError:
            self.logger.exception("Could not write summary for %s", path)
