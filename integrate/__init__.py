"""git-integrate — merge a feature branch into the current branch, safely."""
