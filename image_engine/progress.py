from rich.progress import (
    Progress,
    SpinnerColumn,
    TextColumn,
    BarColumn,
    TaskProgressColumn,
    TimeRemainingColumn
)
from rich.console import Console
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

@dataclass
class ConversionProgress:
    total: int
    completed: int = 0
    failed: list[Path] = field(default_factory=list)

    @property
    def success_rate(self) -> float:
        return self.completed / self.total if self.total > 0 else 0.0

class ProgressManager:
    """Progress bar over a batch of conversions, drawn on stderr."""

    def __init__(self, total: int, enabled: bool = True):
        self.console = Console(stderr=True)
        self.progress = Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            TimeRemainingColumn(),
            console=self.console,
            disable=not enabled,
        )
        self.stats = ConversionProgress(total=total)
        self._task_id: Optional[int] = None

    def __enter__(self) -> 'ProgressManager':
        self.progress.start()
        self._task_id = self.progress.add_task("[cyan]Converting images...", total=self.stats.total)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.progress.stop()

    def update(self, source: Path, success: bool = True) -> None:
        if success:
            self.stats.completed += 1
        else:
            self.stats.failed.append(source)

        if self._task_id is not None:
            self.progress.update(
                self._task_id,
                advance=1,
                description=(
                    f"[cyan]{source.name} "
                    f"[green]{self.stats.completed} ok[/] [red]{len(self.stats.failed)} failed[/]"
                ),
            )
