"""Local branch listing.

Parses the output of ``git branch -v --sort=-committerdate``::

    * main      1a2b3c4 Initial commit
      feature-x 5d6e7f8 Add feature

Each line has three fields: a status flag (``*`` for the checked-out
branch, ``+`` for a branch checked out in another worktree), the branch
name, and a free-text hint (abbreviated SHA and subject).
"""

import re
from dataclasses import dataclass

_BRANCH_LINE = re.compile(r"^([*+ ]) +(\S+) +(.+)$")


@dataclass(frozen=True)
class Branch:
    name: str
    is_current: bool
    hint: str


def parse_branch_listing(text: str) -> tuple[Branch, ...]:
    """Parse ``git branch -v`` output into branches, preserving order.

    Blank lines are ignored.  A detached HEAD shows up as
    ``* (HEAD detached at ...)``; it is not a branch and is skipped, so a
    listing taken in that state has no current branch.
    """
    branches = []
    for line in text.splitlines():
        if not line.strip():
            continue
        m = _BRANCH_LINE.match(line)
        if m is None:
            raise ValueError(f"Unrecognised branch listing line: {line!r}")
        flag, name, hint = m.groups()
        if name.startswith("("):
            continue
        branches.append(Branch(name=name, is_current=flag == "*", hint=hint.strip()))
    return tuple(branches)


def current_branch(branches: tuple[Branch, ...]) -> Branch | None:
    return next((b for b in branches if b.is_current), None)


def hint_for(branches: tuple[Branch, ...], name: str) -> str:
    """Return the hint of the branch called *name*, or ``""``."""
    for b in branches:
        if b.name == name:
            return b.hint
    return ""
