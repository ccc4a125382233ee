"""Interactive prompts and the abort protocol.

Two prompt shapes are needed: a single-select list whose entries may be
disabled and which shows a hint for the highlighted entry, and a yes/no
confirmation with a default.  The select list reads single keys with
``readchar`` and redraws itself with ``rich.live.Live``; the confirmation
is ``click.confirm``.

Aborting (Escape, Ctrl-C or end of input at a prompt, or SIGINT at any
other point of the run) raises :class:`IntegrationAborted`.  The caller
runs the abort protocol only when :meth:`AbortSignal.trigger` says it is
the first to do so.
"""

import logging
import signal
import threading
from collections.abc import Callable, Iterator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Protocol

import click
import readchar
from rich.console import Console
from rich.live import Live
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

logger = logging.getLogger(__name__)


class IntegrationAborted(Exception):
    """The user cancelled the run.  ``source`` is ``"prompt"`` or ``"signal"``."""

    def __init__(self, source: str):
        super().__init__(f"aborted by {source}")
        self.source = source


class AbortSignal:
    """Single-shot cancellation token.

    ``trigger()`` returns True only for the first caller; later triggers
    are ignored so the abort protocol runs exactly once.  The run is
    single-threaded, and the SIGINT handler runs on the same thread, so
    no lock is taken.
    """

    def __init__(self) -> None:
        self._source: str | None = None

    @property
    def triggered(self) -> bool:
        return self._source is not None

    @property
    def source(self) -> str | None:
        return self._source

    def trigger(self, source: str) -> bool:
        if self._source is not None:
            return False
        self._source = source
        logger.debug("Abort triggered by %s", source)
        return True


@contextmanager
def interrupt_handler(abort: AbortSignal) -> Iterator[None]:
    """Route SIGINT into an :class:`IntegrationAborted` for the block.

    Once *abort* has been triggered further interrupts are ignored, so a
    second Ctrl-C cannot cut the farewell short.  Signal handlers can only
    be installed from the main thread; elsewhere the block runs with
    Python's default KeyboardInterrupt behaviour.
    """
    if threading.current_thread() is not threading.main_thread():
        yield
        return

    def _on_sigint(signum, frame):
        if abort.triggered:
            return
        raise IntegrationAborted("signal")

    previous = signal.signal(signal.SIGINT, _on_sigint)
    try:
        yield
    finally:
        signal.signal(signal.SIGINT, previous)


# ---------------------------------------------------------------------------
# Select list
# ---------------------------------------------------------------------------

def get_key() -> str:
    """Read one keypress and name the ones the select list cares about."""
    try:
        key = readchar.readkey()
    except KeyboardInterrupt:
        return "interrupt"

    if key in (readchar.key.UP, readchar.key.CTRL_P):
        return "up"
    if key in (readchar.key.DOWN, readchar.key.CTRL_N):
        return "down"
    if key in (readchar.key.ENTER, readchar.key.CR, readchar.key.LF):
        return "enter"
    if key == readchar.key.ESC or key == "\x1b":
        return "escape"
    if key in (readchar.key.CTRL_C, readchar.key.CTRL_D):
        return "interrupt"
    return key


@dataclass(frozen=True)
class Choice:
    value: str
    disabled: bool = False


class Selection:
    """Highlight state of a select list.

    The highlight starts on the first enabled entry and moves over enabled
    entries only, wrapping at both ends.
    """

    def __init__(self, choices: Sequence[Choice]):
        if not any(not c.disabled for c in choices):
            raise ValueError("Select list has no enabled entries")
        self.choices = tuple(choices)
        self.index = next(i for i, c in enumerate(self.choices) if not c.disabled)

    @property
    def highlighted(self) -> Choice:
        return self.choices[self.index]

    def move(self, step: int) -> Choice:
        index = self.index
        while True:
            index = (index + step) % len(self.choices)
            if not self.choices[index].disabled:
                self.index = index
                return self.highlighted


def render_selection(
    selection: Selection,
    message: str,
    hint: Callable[[str], str],
    warn: str = "",
) -> Panel:
    """Draw the list with the highlighted entry's hint underneath."""
    table = Table.grid(padding=(0, 2))
    table.add_column(style="cyan", justify="left", width=3)
    table.add_column(style="white", justify="left")

    for i, choice in enumerate(selection.choices):
        marker = "▶" if i == selection.index else " "
        if choice.disabled:
            note = f" [yellow]({warn})[/yellow]" if warn else ""
            table.add_row(marker, f"[dim strike]{escape(choice.value)}[/dim strike]{note}")
        else:
            table.add_row(marker, f"[cyan]{escape(choice.value)}[/cyan]")

    table.add_row("", "")
    table.add_row("", f"[dim]{escape(hint(selection.highlighted.value))}[/dim]")
    table.add_row("", "[dim]Use ↑/↓ to navigate, Enter to select, Esc to cancel[/dim]")

    return Panel(
        table,
        title=f"[bold]{message}[/bold]",
        border_style="cyan",
        padding=(1, 2),
    )


class Prompter(Protocol):
    def select(
        self,
        message: str,
        choices: Sequence[Choice],
        hint: Callable[[str], str],
        warn: str = "",
    ) -> str: ...

    def confirm(self, message: str, default: bool = False) -> bool: ...


class ClickPrompter:
    """Terminal prompts.  Raises :class:`IntegrationAborted` on abort."""

    def __init__(self, console: Console | None = None):
        self.console = console or Console()

    def _aborted(self) -> IntegrationAborted:
        return IntegrationAborted("prompt")

    def select(
        self,
        message: str,
        choices: Sequence[Choice],
        hint: Callable[[str], str],
        warn: str = "",
    ) -> str:
        selection = Selection(choices)

        def panel() -> Panel:
            return render_selection(selection, message, hint, warn)

        with Live(panel(), console=self.console, transient=True, auto_refresh=False) as live:
            while True:
                key = get_key()
                if key == "up":
                    selection.move(-1)
                elif key == "down":
                    selection.move(1)
                elif key == "enter":
                    break
                elif key in ("escape", "interrupt"):
                    raise self._aborted()
                live.update(panel(), refresh=True)

        chosen = selection.highlighted.value
        self.console.print(f"[cyan]?[/cyan] [bold]{message}[/bold] {escape(chosen)}")
        return chosen

    def confirm(self, message: str, default: bool = False) -> bool:
        try:
            return click.confirm(
                click.style("? ", fg="cyan") + click.style(message, bold=True),
                default=default,
            )
        except click.Abort:
            raise self._aborted() from None
