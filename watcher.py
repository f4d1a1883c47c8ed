from __future__ import annotations

import argparse
import fnmatch
import logging
import os
import signal
import sys
import threading
import time
from concurrent.futures import Executor, ThreadPoolExecutor
from logging.handlers import RotatingFileHandler
from typing import Iterable, Optional, Sequence

from sqlalchemy.engine import Engine

from processors.config import WatcherConfig
from processors.pipeline import IngestPipeline
from processors.single_flight import SingleFlight
from processors.storage import DEFAULT_DATABASE_URL, create_db_engine, init_schema, make_session_factory

try:
    from watchdog.observers import Observer
    from watchdog.events import FileSystemEventHandler
except ImportError:  # watchdog not available
    print("Required package 'watchdog' is not installed. Install with: python -m pip install watchdog")
    sys.exit(1)


class NewFileHandler(FileSystemEventHandler):
    """Turns watchdog notifications into pipeline runs, one at a time per path."""

    def __init__(
        self,
        pipeline: IngestPipeline,
        logger: logging.Logger,
        patterns: Sequence[str] = ("*.csv",),
        settle_seconds: float = 0.5,
        max_tries: int = 10,
        executor: Optional[Executor] = None,
    ) -> None:
        super().__init__()
        self.pipeline = pipeline
        self.logger = logger
        self.patterns = tuple(p.lower() for p in patterns)
        self.settle_seconds = settle_seconds
        self.max_tries = max_tries
        self.executor = executor
        self.in_flight = SingleFlight()

    def matches(self, path: str) -> bool:
        name = os.path.basename(path).lower()
        return any(fnmatch.fnmatch(name, pattern) for pattern in self.patterns)

    def on_created(self, event):
        if event.is_directory:
            return
        self._handle(event.src_path)

    def on_modified(self, event):
        if event.is_directory:
            return
        self._handle(event.src_path)

    def on_moved(self, event):
        # A file renamed into the watched folder arrives as a move
        if event.is_directory:
            return
        self._handle(event.dest_path)

    def _handle(self, path: str) -> None:
        if not self.matches(path):
            return
        self.dispatch_path(path)

    def dispatch_path(self, path: str) -> bool:
        """Queue `path` for processing unless it is already in flight."""
        path = os.path.abspath(path)
        if not self.in_flight.try_acquire(path):
            self.logger.debug("Already processing %s; dropping event", path)
            return False

        if self.executor is None:
            self._run(path)
            return True
        try:
            self.executor.submit(self._run, path)
        except RuntimeError:
            # executor is shutting down
            self.in_flight.release(path)
            self.logger.warning("Shutting down; not processing %s", path)
            return False
        return True

    def sweep(self, directory: str) -> int:
        """Dispatch every matching file already sitting in `directory`."""
        count = 0
        with os.scandir(directory) as it:
            entries = sorted(it, key=lambda e: e.name)
        for entry in entries:
            if entry.is_file() and self.matches(entry.path):
                if self.dispatch_path(entry.path):
                    count += 1
        return count

    def wait_for_settle(self, path: str) -> Optional[bool]:
        """Wait for the file size to stop changing.

        Returns True when stable, False when it was still changing after
        `max_tries` checks, None when the file is gone.
        """
        prev_size = -1
        missing = 0
        for _ in range(self.max_tries):
            try:
                size = os.path.getsize(path)
                missing = 0
            except FileNotFoundError:
                missing += 1
                if missing >= 2:
                    return None
                size = -1
            except OSError:
                size = -1
            if size == prev_size and size != -1:
                return True
            prev_size = size
            time.sleep(self.settle_seconds)
        if not os.path.exists(path):
            return None
        return False

    def _run(self, path: str) -> None:
        try:
            stable = self.wait_for_settle(path)
            if stable is None:
                self.logger.warning("File not found: %s", path)
                return
            if not stable:
                self.logger.info("New file detected (may be incomplete): %s", path)
            else:
                self.logger.info("New file detected: %s", path)

            outcome = self.pipeline.process(path)
            if outcome is not None:
                self.logger.info(
                    "Finished %s: %s",
                    outcome.file_name,
                    "duplicate" if outcome.duplicate else ("ok" if outcome.success else "failed"),
                )
        except Exception:
            self.logger.exception("Error processing file %s", path)
        finally:
            self.in_flight.release(path)


class IngestDaemon:
    """Watches the input folder until told to stop."""

    def __init__(self, config: WatcherConfig, logger: logging.Logger, engine: Optional[Engine] = None) -> None:
        self.config = config
        self.logger = logger
        self.owns_engine = engine is None
        self.engine = engine if engine is not None else create_db_engine(config.database_url)
        self.pipeline = IngestPipeline(config, make_session_factory(self.engine), logger)

    def start(self, stop_event: threading.Event) -> None:
        """Block until `stop_event` is set, then drain in-flight files and return."""
        for path in (self.config.input_dir, self.config.output_dir, self.config.history_dir):
            ensure_dir(path)
        init_schema(self.engine)

        executor = ThreadPoolExecutor(max_workers=self.config.max_workers, thread_name_prefix="ingest")
        handler = NewFileHandler(
            self.pipeline,
            self.logger,
            patterns=self.config.patterns,
            settle_seconds=self.config.settle_seconds,
            max_tries=self.config.max_tries,
            executor=executor,
        )
        observer = Observer()
        observer.schedule(handler, self.config.input_dir, recursive=False)
        observer.start()
        self.logger.info("Watching: %s", self.config.input_dir)

        try:
            if self.config.scan_existing:
                queued = handler.sweep(self.config.input_dir)
                if queued:
                    self.logger.info("Queued %d existing file(s)", queued)
            while not stop_event.wait(self.config.poll_interval):
                pass
            self.logger.info("Shutdown requested, stopping observer")
        finally:
            observer.stop()
            observer.join()
            executor.shutdown(wait=True)
            if self.owns_engine:
                self.engine.dispose()
        self.logger.info("Stopped")


def ensure_dir(path: str) -> None:
    os.makedirs(path, exist_ok=True)


def setup_logger(logfile: str) -> logging.Logger:
    logger = logging.getLogger("ledger_watcher")
    logger.setLevel(logging.INFO)
    formatter = logging.Formatter("%(asctime)s %(levelname)s %(message)s")

    # Rotating file handler to avoid unbounded log growth
    handler = RotatingFileHandler(logfile, maxBytes=10 * 1024 * 1024, backupCount=5, encoding="utf-8")
    handler.setFormatter(formatter)
    logger.addHandler(handler)

    # Also log to console for immediate feedback
    console = logging.StreamHandler()
    console.setFormatter(formatter)
    logger.addHandler(console)

    return logger


# Edit these defaults as needed
DEFAULT_WATCH_PATH = os.path.join("data", "in")
DEFAULT_OUTPUT_DIR = os.path.join("data", "out")
DEFAULT_HISTORY_DIR = os.path.join("data", "history")
DEFAULT_LOG_DIR = os.path.join("data", "logs")


def parse_args(argv: Optional[Iterable[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Watch a folder for ledger files and load them into the database")
    parser.add_argument(
        "--path", "-p",
        default=DEFAULT_WATCH_PATH,
        help=f"Directory to watch (default {DEFAULT_WATCH_PATH})"
    )
    parser.add_argument(
        "--output", "-o",
        default=DEFAULT_OUTPUT_DIR,
        help=f"Directory to write summary files to (default {DEFAULT_OUTPUT_DIR})"
    )
    parser.add_argument(
        "--history", "-H",
        default=DEFAULT_HISTORY_DIR,
        help=f"Directory to move loaded files to (default {DEFAULT_HISTORY_DIR})"
    )
    parser.add_argument(
        "--logdir", "-l",
        default=DEFAULT_LOG_DIR,
        help=f"Directory to write logs to (default {DEFAULT_LOG_DIR})"
    )
    parser.add_argument("--db-url", default=DEFAULT_DATABASE_URL, help=f"SQLAlchemy database URL (default {DEFAULT_DATABASE_URL})")
    parser.add_argument("--pattern", action="append", dest="patterns", help="Filename glob to process; repeatable (default *.csv)")
    parser.add_argument("--settle", type=float, default=0.5, help="Seconds to wait between file-size checks for settle heuristic")
    parser.add_argument("--tries", type=int, default=10, help="Number of settle checks before giving up")
    parser.add_argument("--poll", type=float, default=1.0, help="Seconds between checks of the stop signal")
    parser.add_argument("--workers", type=int, default=4, help="Files processed concurrently")
    parser.add_argument("--no-scan", action="store_true", help="Do not process files already present at startup")
    return parser.parse_args(argv)


def config_from_args(args: argparse.Namespace) -> WatcherConfig:
    return WatcherConfig(
        input_dir=os.path.abspath(args.path),
        output_dir=os.path.abspath(args.output),
        history_dir=os.path.abspath(args.history),
        database_url=args.db_url,
        patterns=tuple(args.patterns or ("*.csv",)),
        settle_seconds=args.settle,
        max_tries=args.tries,
        poll_interval=args.poll,
        max_workers=args.workers,
        scan_existing=not args.no_scan,
    )


def main(argv: Optional[Iterable[str]] = None) -> int:
    args = parse_args(argv)
    config = config_from_args(args)

    log_dir = os.path.abspath(args.logdir)
    ensure_dir(log_dir)
    logfile = os.path.join(log_dir, "ledger_watcher.log")
    logger = setup_logger(logfile)

    logger.info("Starting ledger watcher")
    logger.info("Logging to: %s", logfile)
    logger.info("Summaries: %s", config.output_dir)
    logger.info("History: %s", config.history_dir)

    stop_event = threading.Event()

    def request_stop(signum, frame):
        stop_event.set()

    signal.signal(signal.SIGINT, request_stop)
    signal.signal(signal.SIGTERM, request_stop)

    IngestDaemon(config, logger).start(stop_event)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
