"""Ambient music widget — playback cursor over a once-fetched track list.

States: ``loading`` → ``error`` | ``ready`` | ``empty``.

While ``ready`` the widget keeps ``(current_index, is_playing, list_visible)``.
Every change of ``current_index`` or ``is_playing`` commands the audio output:
play the current track when playing, pause otherwise.  A rejected play command
(browser autoplay policy and the like) is swallowed.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import OrderedDict
from enum import Enum
from typing import Any, Awaitable, Callable, Protocol

from core.errors import NetworkError
from core.models import Track

logger = logging.getLogger(__name__)


class PlayerState(str, Enum):
    LOADING = "loading"
    READY = "ready"
    EMPTY = "empty"
    ERROR = "error"


class PlaybackRejected(Exception):
    """The audio output refused to start playing."""


class PlayerNotReady(RuntimeError):
    """A transport control was used before the track list was ready."""


class AudioOutput(Protocol):
    def play(self, track: Track) -> None: ...

    def pause(self) -> None: ...


class CommandAudioOutput:
    """Records the last command for the browser's ``<audio>`` element."""

    def __init__(self) -> None:
        self.command: dict[str, Any] = {"action": "pause"}

    def play(self, track: Track) -> None:
        self.command = {"action": "play", "src": track.audio_url, "track_id": track.id}

    def pause(self) -> None:
        self.command = {"action": "pause"}


TrackFetcher = Callable[[], Awaitable[list[Track]]]


class PlaybackWidget:
    """Transport controls with wraparound over a fixed track list."""

    def __init__(self, output: AudioOutput, fetch_tracks: TrackFetcher):
        self.output = output
        self._fetch_tracks = fetch_tracks
        self._generation = 0
        self._mounting: asyncio.Future | None = None
        self.state = PlayerState.LOADING
        self.tracks: list[Track] = []
        self.current_index = 0
        self.is_playing = True
        self.list_visible = False

    # -- lifecycle -----------------------------------------------------------

    async def mount(self) -> None:
        """Fetch the track list once.  Results arriving after unmount are dropped."""
        generation = self._generation
        self.state = PlayerState.LOADING
        try:
            tracks = await self._fetch_tracks()
        except NetworkError as exc:
            if generation != self._generation:
                return
            logger.warning("Could not load ambient tracks: %s", exc)
            self.state = PlayerState.ERROR
            return

        if generation != self._generation:
            logger.debug("Discarding stale track list (generation %d)", generation)
            return

        self.tracks = list(tracks)
        self.current_index = 0
        if not self.tracks:
            self.state = PlayerState.EMPTY
            return
        self.state = PlayerState.READY
        self._sync_output()

    async def ensure_mounted(self) -> None:
        """Mount once.  Concurrent callers wait for the same in-flight fetch."""
        if self._mounting is None:
            self._mounting = asyncio.ensure_future(self.mount())
        if not self._mounting.done():
            await asyncio.shield(self._mounting)

    def unmount(self) -> None:
        self._generation += 1
        if self.state is PlayerState.READY:
            self.output.pause()

    # -- transport -----------------------------------------------------------

    @property
    def current_track(self) -> Track | None:
        if self.state is not PlayerState.READY:
            return None
        return self.tracks[self.current_index]

    def select_track(self, index: int) -> None:
        self._require_ready()
        if not 0 <= index < len(self.tracks):
            raise IndexError(f"track index {index} out of range")
        self.current_index = index
        self.is_playing = True
        self._sync_output()

    def next(self) -> None:
        self._require_ready()
        self.current_index = (self.current_index + 1) % len(self.tracks)
        self.is_playing = True
        self._sync_output()

    def prev(self) -> None:
        self._require_ready()
        self.current_index = (self.current_index - 1) % len(self.tracks)
        self.is_playing = True
        self._sync_output()

    def toggle_play(self) -> None:
        self._require_ready()
        self.is_playing = not self.is_playing
        self._sync_output()

    def toggle_list_visible(self) -> None:
        self._require_ready()
        self.list_visible = not self.list_visible

    def on_track_ended(self) -> None:
        self.next()

    # -- internals -----------------------------------------------------------

    def _require_ready(self) -> None:
        if self.state is not PlayerState.READY:
            raise PlayerNotReady(f"player is {self.state.value}")

    def _sync_output(self) -> None:
        if not self.is_playing:
            self.output.pause()
            return
        try:
            self.output.play(self.tracks[self.current_index])
        except PlaybackRejected:
            pass

    def to_status_dict(self) -> dict[str, Any]:
        """Serialize for the player API."""
        status: dict[str, Any] = {"state": self.state.value}
        if self.state is not PlayerState.READY:
            return status
        status.update(
            {
                "current_index": self.current_index,
                "is_playing": self.is_playing,
                "list_visible": self.list_visible,
                "current_track": self.tracks[self.current_index].model_dump(),
                "tracks": [t.model_dump() for t in self.tracks],
            }
        )
        command = getattr(self.output, "command", None)
        if command is not None:
            status["audio"] = command
        return status


class PlayerRegistry:
    """Widgets keyed by session slot key, least recently used first.

    ``prune()`` unmounts widgets idle for *idle_after* seconds, then the
    oldest ones beyond *max_size*.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._widgets: OrderedDict[str, tuple[PlaybackWidget, float]] = OrderedDict()

    def get(self, key: str) -> PlaybackWidget | None:
        entry = self._widgets.get(key)
        if entry is None:
            return None
        self._widgets[key] = (entry[0], self._clock())
        self._widgets.move_to_end(key)
        return entry[0]

    def add(self, key: str, widget: PlaybackWidget) -> None:
        self._widgets[key] = (widget, self._clock())
        self._widgets.move_to_end(key)

    def pop(self, key: str) -> PlaybackWidget | None:
        entry = self._widgets.pop(key, None)
        return None if entry is None else entry[0]

    def prune(self, idle_after: float, max_size: int) -> None:
        now = self._clock()
        stale = [key for key, (_, seen) in self._widgets.items() if now - seen >= idle_after]
        overflow = len(self._widgets) - len(stale) - max_size
        if overflow > 0:
            stale += [key for key in self._widgets if key not in stale][:overflow]
        for key in stale:
            widget, _ = self._widgets.pop(key)
            widget.unmount()
        if stale:
            logger.debug("Pruned %d idle player(s), %d left", len(stale), len(self._widgets))

    def clear(self) -> None:
        self._widgets.clear()

    def __contains__(self, key: str) -> bool:
        return key in self._widgets

    def __len__(self) -> int:
        return len(self._widgets)
