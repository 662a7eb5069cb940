"""
PhaseGrid Plan Parsing

Turns a markdown implementation plan into numbered task descriptors.

A task starts at a line of the form ``### Task <n>: <title>`` and its
description runs until the next task heading. Headings inside fenced code
blocks are examples, not tasks.
"""

import re
from typing import List, Set

from phasegrid.models.domain import ParsedTask

TASK_HEADING_RE = re.compile(r"^### Task (\d+): (.+)$")
FENCE_MARKER = "```"


def _fenced_lines(lines: List[str]) -> Set[int]:
    """Indexes of lines that sit inside (or delimit) a closed code fence."""
    markers = [i for i, line in enumerate(lines) if line.lstrip().startswith(FENCE_MARKER)]
    fenced: Set[int] = set()
    # An opening fence with no closing fence does not hide anything
    for start, end in zip(markers[0::2], markers[1::2]):
        fenced.update(range(start, end + 1))
    return fenced


def parse_plan(markdown: str) -> List[ParsedTask]:
    """
    Parse plan markdown into tasks, in document order.

    Descriptions are sliced from the original text, so their line endings
    come back as written. Task numbers are not checked for uniqueness or
    ordering. A document without task headings yields an empty list.
    """
    # Lines end at "\n" only; offsets[i] is where line i starts in the text
    lines = markdown.split("\n")
    offsets = [0]
    for line in lines[:-1]:
        offsets.append(offsets[-1] + len(line) + 1)
    fenced = _fenced_lines(lines)

    headings = []
    for index, line in enumerate(lines):
        if index in fenced:
            continue
        match = TASK_HEADING_RE.match(line.rstrip("\r"))
        if match:
            headings.append((index, int(match.group(1)), match.group(2).strip()))

    tasks: List[ParsedTask] = []
    for position, (index, number, title) in enumerate(headings):
        start = offsets[index] + len(lines[index])
        end = offsets[headings[position + 1][0]] if position + 1 < len(headings) else len(markdown)
        description = markdown[start:end].strip()
        tasks.append(ParsedTask(task_number=number, title=title, description=description))
    return tasks
