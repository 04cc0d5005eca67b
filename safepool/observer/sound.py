"""Audible alert cue."""

import sys
from typing import Protocol, TextIO


class AlertSound(Protocol):
    """Plays the cue for a new alert."""

    def play(self) -> None:
        ...


class TerminalBell:
    """Rings the terminal bell."""

    def __init__(self, stream: TextIO = sys.stdout):
        self.stream = stream

    def play(self) -> None:
        self.stream.write("\a")
        self.stream.flush()
