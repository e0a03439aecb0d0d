"""Interactive choice prompts."""

from __future__ import annotations

import re
from collections.abc import Sequence
from typing import IO, Protocol

from rich.console import Console
from rich.markup import escape
from rich.prompt import Confirm, Prompt
from rich.table import Table
from rich.text import Text

from canvas_cli.errors import EmptySelection, UserCancelled

CANCEL_ANSWERS = {"q", ":q", "quit"}
_RANGE_RE = re.compile(r"^(\d+)\s*-\s*(\d+)$")


class Selector(Protocol):
    """Asks the user to pick among labelled options."""

    def select_one(self, prompt: str, labels: Sequence[str]) -> int: ...

    def select_many(self, prompt: str, labels: Sequence[str]) -> set[int]: ...

    def confirm(self, prompt: str) -> bool: ...


def parse_indices(answer: str, count: int) -> set[int] | None:
    """Parse ``1,3,5-7`` or ``all`` into zero-based indices.

    Returns None when the answer is not a selection at all, so callers
    can treat it as a filter. Raises ValueError for out-of-range numbers.
    """
    text = answer.strip().lower()
    if text in {"all", "*"}:
        return set(range(count))

    chosen: set[int] = set()
    for part in filter(None, (p.strip() for p in text.split(","))):
        m = _RANGE_RE.match(part)
        if part.isdigit():
            numbers = [int(part)]
        elif m is not None:
            lo, hi = int(m.group(1)), int(m.group(2))
            if lo > hi:
                lo, hi = hi, lo
            numbers = list(range(lo, hi + 1))
        else:
            return None
        for n in numbers:
            if not 1 <= n <= count:
                raise ValueError(f"{n} is not between 1 and {count}")
            chosen.add(n - 1)
    return chosen or None


class RichSelector:
    """Selector backed by rich prompts on a terminal."""

    def __init__(self, console: Console | None = None, stream: IO[str] | None = None) -> None:
        self.console = console or Console(stderr=True)
        self._stream = stream

    def _render(self, title: str, labels: Sequence[str], visible: Sequence[int]) -> None:
        table = Table(title=title, show_header=True, header_style="bold cyan")
        table.add_column("#", style="dim", justify="right", width=4)
        table.add_column("Name", min_width=20)
        for idx in visible:
            table.add_row(str(idx + 1), Text(labels[idx]))
        self.console.print(table)

    def _ask(self, prompt: str) -> str:
        try:
            answer = Prompt.ask(prompt, console=self.console, stream=self._stream)
        except (EOFError, KeyboardInterrupt):
            raise UserCancelled("Selection aborted") from None
        if answer.strip().lower() in CANCEL_ANSWERS:
            raise UserCancelled("Selection aborted")
        return answer

    def _choose(self, prompt: str, labels: Sequence[str], many: bool) -> set[int]:
        if not labels:
            raise EmptySelection(f"Nothing to choose from for '{prompt}'")

        visible = list(range(len(labels)))
        hint = "numbers, ranges or 'all'" if many else "a number"
        self._render(prompt, labels, visible)
        while True:
            answer = self._ask(f"{prompt} [dim]({hint}, text to filter, q to quit)[/dim]")
            try:
                chosen = parse_indices(answer, len(labels))
            except ValueError as e:
                self.console.print(f"[red]{e}[/red]")
                continue

            if chosen is None:
                needle = answer.strip().lower()
                visible = [i for i, label in enumerate(labels) if needle in label.lower()]
                if not needle:
                    visible = list(range(len(labels)))
                if not visible:
                    self.console.print(f"[yellow]No option matches {escape(answer.strip())!r}[/yellow]")
                    visible = list(range(len(labels)))
                self._render(prompt, labels, visible)
                continue

            if not many and len(chosen) != 1:
                self.console.print("[red]Pick exactly one option[/red]")
                continue
            return chosen

    def select_one(self, prompt: str, labels: Sequence[str]) -> int:
        return next(iter(self._choose(prompt, labels, many=False)))

    def select_many(self, prompt: str, labels: Sequence[str]) -> set[int]:
        return self._choose(prompt, labels, many=True)

    def confirm(self, prompt: str) -> bool:
        try:
            return Confirm.ask(prompt, console=self.console, stream=self._stream, default=True)
        except (EOFError, KeyboardInterrupt):
            raise UserCancelled("Confirmation aborted") from None
