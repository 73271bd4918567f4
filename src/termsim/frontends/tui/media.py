"""Ambient media device for the terminal shell.

There is no audio in a terminal; MediaState keeps the stream's state so the
prompt toolbar can show it, which is all ``stream`` steps need.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass
class MediaState:
    """DeviceController that records play state, position, volume and mute."""

    playing: bool = False
    position: float = 0.0  # seconds
    volume: int = 70  # percent
    muted: bool = False

    def command(self, action: str, value: float | None = None) -> None:
        if action == "play":
            self.playing = True
        elif action == "pause":
            self.playing = False
        elif action == "stop":
            self.playing = False
            self.position = 0.0
        elif action == "seek":
            if value is not None:
                self.position = max(0.0, float(value))
        elif action == "volume":
            if value is not None:
                self.volume = max(0, min(100, int(value)))
        elif action == "mute":
            self.muted = True
        elif action == "unmute":
            self.muted = False
        elif action == "status":
            pass
        else:
            logger.warning("Ignoring unknown media action: %s", action)
            return
        logger.debug("Media %s -> %s", action, self.describe())

    def describe(self) -> str:
        """One-line status for the toolbar."""
        if not self.playing and self.position == 0:
            state = "stopped"
        else:
            state = "playing" if self.playing else "paused"
        volume = "muted" if self.muted else f"vol {self.volume}%"
        minutes, seconds = divmod(int(self.position), 60)
        return f"stream: {state}  {minutes:02d}:{seconds:02d}  {volume}"
