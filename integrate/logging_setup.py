"""Logging configuration for git-integrate.

A ``contextvars.ContextVar`` carries the name of the workflow step being
run so every log line is attributed to it without per-step loggers.

Usage::

    from integrate.logging_setup import configure_logging, log_step

    configure_logging(verbose=True)     # call once at process startup
    log_step.set("fetch_remote")        # set per step in workflow.py
"""

import contextvars
import logging

# ---------------------------------------------------------------------------
# Context variable — identifies the running step
# ---------------------------------------------------------------------------

log_step: contextvars.ContextVar[str] = contextvars.ContextVar(
    "log_step", default="cli",
)


# ---------------------------------------------------------------------------
# Filter that injects %(step)s from the context var
# ---------------------------------------------------------------------------

class _StepFilter(logging.Filter):
    """Inject *step* into every log record from the context var."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.step = log_step.get()  # type: ignore[attr-defined]
        return True


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

_configured = False

LOG_FORMAT = "%(asctime)s [%(step)s] %(levelname)s: %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def configure_logging(*, verbose: bool = False) -> None:
    """Set up logging for one CLI run.

    * With *verbose*, DEBUG records (including every git invocation) go
      to stderr.
    * Without it, only a ``NullHandler`` is attached: the tool talks to
      the user through its own coloured output, not through logging.
    * Safe to call multiple times — only the first call takes effect.
    """
    global _configured
    if _configured:
        return
    _configured = True

    pkg = logging.getLogger("integrate")

    if not verbose:
        pkg.addHandler(logging.NullHandler())
        return

    pkg.setLevel(logging.DEBUG)
    ch = logging.StreamHandler()
    ch.setLevel(logging.DEBUG)
    ch.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT))
    ch.addFilter(_StepFilter())
    pkg.addHandler(ch)
