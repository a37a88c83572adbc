"""User-facing output of a watch session."""

from rich.console import Console

from watch_rebuild.models import ChangeEvent, RebuildOutcome

WATCHING_MESSAGE = "Watching..."


class WatchReporter:
    """Writes change lines and rebuild status to the console."""

    def __init__(self, console: Console | None = None):
        # Paths are printed verbatim, so no markup or highlighting
        self.console = console or Console(markup=False, highlight=False, soft_wrap=True)

    def change_detected(self, event: ChangeEvent) -> None:
        self.console.print(event.format_line(), markup=False, highlight=False)

    def rebuild_finished(self, outcome: RebuildOutcome) -> None:
        if not outcome.success:
            self.console.print(f"Rebuild failed: {outcome.error}", markup=False, highlight=False, style="red")
        self.console.print(WATCHING_MESSAGE, markup=False, highlight=False)
