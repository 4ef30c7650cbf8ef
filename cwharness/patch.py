"""Targeted text substitution in generated config files."""

import logging
import os
from collections.abc import Iterable
from pathlib import Path

logger = logging.getLogger(__name__)


def find_and_replace_in_file(path: str | os.PathLike, replacements: Iterable[tuple[str, str]]) -> int:
    """Replace every occurrence of each exact text in ``path``.

    Pairs are applied in order, so a later pair sees the result of earlier
    ones. Returns the total number of replacements made.
    """
    path = Path(path)
    text = path.read_text()
    total = 0
    for find, replace in replacements:
        count = text.count(find)
        if count == 0:
            logger.debug("%s: no match for %r", path.name, find)
            continue
        text = text.replace(find, replace)
        total += count
    path.write_text(text)
    return total
