"""
Diff position resolver - Maps new-file line numbers to review comment positions.

GitHub anchors an inline review comment by its "position": a 1-based offset
over the lines of the file's patch, counted continuously across hunks. Hunk
headers do not take a slot; every other line does. A position is only valid
for the exact patch text served with the current head commit.
"""

import re
from typing import Optional

from codereview.models.review import DiffHunk, DiffLine, DiffLineKind

HUNK_NEW_START = re.compile(r"\+(\d+)")


def _kind(line: str) -> DiffLineKind:
    if line.startswith("+"):
        return DiffLineKind.ADDED
    if line.startswith(" "):
        return DiffLineKind.CONTEXT
    if line.startswith("-"):
        return DiffLineKind.REMOVED
    return DiffLineKind.META


def resolve_position(patch: str, target_line: int) -> Optional[int]:
    """
    Return the patch position of new-file line ``target_line``.

    Returns None when the line is not part of the diff; the caller drops the
    comment rather than failing the whole review.
    """
    new_line = 0
    position = 0

    for line in patch.split("\n"):
        if line.startswith("@@"):
            match = HUNK_NEW_START.search(line)
            if match:
                new_line = int(match.group(1)) - 1
            continue

        position += 1

        if line.startswith("+") or line.startswith(" "):
            new_line += 1
            if new_line == target_line:
                return position

    return None


def parse_hunks(patch: str) -> list[DiffHunk]:
    """Split a patch into hunks, annotating each body line with its position."""
    hunks: list[DiffHunk] = []
    new_line = 0
    position = 0

    for line in patch.split("\n"):
        if line.startswith("@@"):
            match = HUNK_NEW_START.search(line)
            start = int(match.group(1)) if match else new_line + 1
            new_line = start - 1
            hunks.append(DiffHunk(header=line, new_line_start=start))
            continue

        position += 1
        if not hunks:
            continue

        kind = _kind(line)
        line_no = None
        if kind in (DiffLineKind.ADDED, DiffLineKind.CONTEXT):
            new_line += 1
            line_no = new_line
        text = line if kind == DiffLineKind.META else line[1:]
        hunks[-1].lines.append(DiffLine(kind=kind, text=text, position=position, new_line=line_no))

    return hunks
