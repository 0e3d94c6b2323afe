import sys
from dataclasses import dataclass, field
from time import time

@dataclass
class TransformStats:
    successful: int = 0
    failed: int = 0
    start_time: float = field(default_factory=time)

    def get_summary(self) -> str:
        elapsed = time() - self.start_time
        return (
            f"Operations: [{self.successful + self.failed} "
            f"✓{self.successful} ✗{self.failed}] "
            f"({elapsed:.1f}s)"
        )

class Logger:
    # stdout carries image data when showing, so everything goes to stderr
    def __init__(self, verbose: bool = True, show_logs: bool = False):
        self.verbose = verbose
        self.show_logs = show_logs
        self.stats = TransformStats()

    def update_stats(self, success: bool = True) -> None:
        if success:
            self.stats.successful += 1
        else:
            self.stats.failed += 1

    def summary(self) -> None:
        if self.verbose:
            print(self.stats.get_summary(), file=sys.stderr, flush=True)

    def info(self, message: str) -> None:
        if self.verbose and self.show_logs:
            print(f"[INFO] {message}", file=sys.stderr)

    def error(self, message: str) -> None:
        if self.show_logs:
            print(f"[ERROR] {message}", file=sys.stderr)

    def warning(self, message: str) -> None:
        if self.verbose and self.show_logs:
            print(f"[WARNING] {message}", file=sys.stderr)

    def debug(self, message: str) -> None:
        if self.verbose and self.show_logs:
            print(f"[DEBUG] {message}", file=sys.stderr)
