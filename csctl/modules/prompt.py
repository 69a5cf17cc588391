"""
Terminal prompts for collecting install settings.
"""
from typing import List, Optional, Sequence, TextIO

from rich.console import Console
from rich.prompt import Confirm, IntPrompt, Prompt


class Prompter:
    """Asks the operator for values, or hands back the default when not interactive.

    Args:
        interactive: Read answers from the terminal (or ``stream``)
        console: Console used to render prompts
        stream: Optional file to read answers from instead of stdin
    """

    def __init__(self, interactive: bool = True, console: Optional[Console] = None, stream: Optional[TextIO] = None):
        self.interactive = interactive
        self.console = console or Console()
        self.stream = stream

    def section(self, title: str) -> None:
        if self.interactive:
            self.console.print(f"\n[bold]=== {title} ===[/bold]")

    def string(self, prompt: str, default: str = "") -> str:
        if not self.interactive:
            return default
        answer = Prompt.ask(
            prompt,
            console=self.console,
            default=default,
            show_default=bool(default),
            stream=self.stream,
        )
        return answer.strip() or default

    def integer(self, prompt: str, default: int = 0) -> int:
        if not self.interactive:
            return default
        return IntPrompt.ask(prompt, console=self.console, default=default, stream=self.stream)

    def confirm(self, prompt: str, default: bool = False) -> bool:
        if not self.interactive:
            return default
        return Confirm.ask(prompt, console=self.console, default=default, stream=self.stream)

    def choice(self, prompt: str, choices: Sequence[str], default: str) -> str:
        if not self.interactive:
            return default
        answer = Prompt.ask(
            prompt,
            console=self.console,
            choices=list(choices),
            case_sensitive=False,
            default=default,
            stream=self.stream,
        )
        for choice in choices:
            if choice.lower() == answer.strip().lower():
                return choice
        return default

    def string_list(self, prompt: str, default: Sequence[str] = ()) -> List[str]:
        """Comma separated answer; an empty answer keeps the default."""
        if not self.interactive:
            return list(default)
        answer = self.string(f"{prompt} (comma-separated)", ", ".join(default))
        values = [part.strip() for part in answer.split(",") if part.strip()]
        return values or list(default)
