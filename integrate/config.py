"""Run configuration.

Nothing is read from disk or the environment: the values come from the
command line, and the defaults reproduce the plain ``git integrate``
behaviour.
"""

from dataclasses import dataclass, field
from pathlib import Path

DEFAULT_REMOTE = "origin"
DEFAULT_TAG_PREFIX = "integrated/"


@dataclass(frozen=True)
class IntegrateConfig:
    remote: str = DEFAULT_REMOTE
    tag_prefix: str = DEFAULT_TAG_PREFIX
    cwd: Path = field(default_factory=Path.cwd)

    def remote_ref(self, branch: str) -> str:
        """Remote-tracking name of *branch*, e.g. ``origin/main``."""
        return f"{self.remote}/{branch}"

    def tag_for(self, branch: str) -> str:
        return f"{self.tag_prefix}{branch}"
