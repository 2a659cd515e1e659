"""
Utility functions for AudioSort.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import List, Tuple, Union

_DIGITS = re.compile(r"(\d+)")


def natural_sort_key(value: str) -> List[Tuple[int, Union[int, str]]]:
    """
    Sort key comparing digit runs numerically and text case-insensitively.

    "take_2.wav" sorts before "take_10.wav".
    """
    key: List[Tuple[int, Union[int, str]]] = []
    for index, part in enumerate(_DIGITS.split(value)):
        if index % 2:
            key.append((0, int(part)))
        elif part:
            key.append((1, part.casefold()))
    return key


def to_posix_relative(path: Union[str, Path]) -> str:
    """Relative path with forward slashes, '' for the current directory."""
    text = str(path).replace("\\", "/")
    return "" if text == "." else text


def is_within(root: Path, candidate: Path) -> bool:
    """True when ``candidate`` resolves to ``root`` or a path below it."""
    try:
        candidate.resolve().relative_to(root.resolve())
        return True
    except ValueError:
        return False
