"""Per-file summary written to the output directory.

The summary is the only outcome a user sees: one line holding either an
explicit message (duplicate notice, line-level error) or a generic
success/failure sentence.
"""
from __future__ import annotations

import logging
import os
from typing import Optional

SUMMARY_SUFFIX = "_summary.txt"


def summary_path(path: str, output_dir: str) -> str:
    stem = os.path.splitext(os.path.basename(path))[0]
    return os.path.join(output_dir, f"{stem}{SUMMARY_SUFFIX}")


def write_summary(
    path: str,
    output_dir: str,
    success: bool,
    message: Optional[str] = None,
    logger: Optional[logging.Logger] = None,
) -> str:
    """Write (or overwrite) the summary for `path` and return its location."""
    os.makedirs(output_dir, exist_ok=True)
    stem = os.path.splitext(os.path.basename(path))[0]
    dest = summary_path(path, output_dir)

    if message is not None:
        text = message
    elif success:
        text = f"File {stem} processed successfully and data loaded to database."
    else:
        text = f"File {stem} encountered errors during processing."

    with open(dest, "w", encoding="utf-8") as fh:
        fh.write(text + "\n")

    if logger:
        logger.info("Summary file created at %s", dest)
    return dest
