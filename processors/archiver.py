"""Relocation of source files once their outcome is known.

Successful loads go to the history directory under their own name;
duplicates are deleted from the input directory. Failed loads are never
touched here.
"""
from __future__ import annotations

import logging
import os
import shutil
from typing import Optional

from processors.errors import ArchiveError


def _copy_exclusive(path: str, dest: str) -> None:
    # "xb" fails if dest exists, so a collision cannot be overwritten
    with open(path, "rb") as src, open(dest, "xb") as dst:
        shutil.copyfileobj(src, dst)
    shutil.copystat(path, dest)


def move_to_history(path: str, history_dir: str, logger: Optional[logging.Logger] = None) -> str:
    """Move `path` into `history_dir` and return the destination path.

    - Creates `history_dir` if needed.
    - Refuses to overwrite an archived file of the same name.
    """
    dest = os.path.join(history_dir, os.path.basename(path))
    try:
        os.makedirs(history_dir, exist_ok=True)
        try:
            os.link(path, dest)
        except FileExistsError:
            raise
        except OSError:
            # no hard links here (other filesystem, unsupported)
            _copy_exclusive(path, dest)
        os.remove(path)
    except FileExistsError as exc:
        raise ArchiveError(f"{dest} already exists in history") from exc
    except OSError as exc:
        raise ArchiveError(f"Could not move {path} to {history_dir}: {exc}") from exc

    if logger:
        logger.info("File %s moved to history folder", os.path.basename(path))
    return dest


def delete_source(path: str, logger: Optional[logging.Logger] = None) -> None:
    try:
        os.remove(path)
    except OSError as exc:
        raise ArchiveError(f"Could not delete {path}: {exc}") from exc

    if logger:
        logger.info("Deleted duplicate file %s", path)
