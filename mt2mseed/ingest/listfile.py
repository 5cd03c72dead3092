from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, List

logger = logging.getLogger(__name__)

LIST_PREFIX = "@"


def read_list_file(path: str | Path) -> List[str]:
    """
    Read input file names from a list file.

    The file name is the last space-separated field of each line; lines with
    more than 3 fields are ignored, as are empty lines.
    """
    names: List[str] = []
    for raw_line in Path(path).read_text(errors="ignore").splitlines():
        fields = [f for f in raw_line.split(" ") if f]
        if not fields or len(fields) > 3:
            continue
        # the name stops at the first whitespace of the last field
        tokens = fields[-1].split()
        if not tokens:
            continue
        name = tokens[0]
        logger.debug("Adding '%s' to input file list", name)
        names.append(name)
    return names


def expand_inputs(args: Iterable[str]) -> List[str]:
    """
    Resolve command-line inputs into an ordered list of data files.

    Arguments prefixed with '@' are list files: they are removed from their
    position and their entries are appended after the plain file arguments,
    in the order the list files were given.  A list file that cannot be read
    is logged and contributes nothing.
    """
    files: List[str] = []
    lists: List[str] = []
    for arg in args:
        if arg.startswith(LIST_PREFIX):
            lists.append(arg[len(LIST_PREFIX):])
        else:
            files.append(arg)

    for list_path in lists:
        logger.info("Reading list of input files from %s", list_path)
        try:
            files.extend(read_list_file(list_path))
        except FileNotFoundError:
            logger.error("Could not find list file %s", list_path)
        except OSError as exc:
            logger.error("Error opening list file %s: %s", list_path, exc)
    return files
