from __future__ import annotations

import logging
import os

from rich.markup import escape
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.widgets import Footer, Static

from controller import PlaybackController
from models import SessionSnapshot

logger = logging.getLogger(__name__)

KEY_HELP = (
    ("n", "open"),
    ("q", "queue files"),
    ("d", "queue folder"),
    ("space", "play/pause"),
    ("s", "skip"),
    ("up/down", "volume"),
    ("left/right", "seek"),
    ("l", "loop"),
    ("esc", "quit"),
)


def render_player(snap: SessionSnapshot) -> str:
    lines = [
        escape(snap.track_title),
        f"{snap.position_text} / {snap.duration_text}",
        "Loading..." if snap.loading else snap.status.value,
        escape(snap.loop_text),
        snap.volume_text,
    ]
    return "\n".join(lines)


def render_queue(snap: SessionSnapshot) -> str:
    if not snap.queue:
        return "(empty)"
    return "\n".join(
        f"{i:>2}. {escape(os.path.basename(path))}" for i, path in enumerate(snap.queue, start=1)
    )


def render_control(snap: SessionSnapshot) -> str:
    keys = "  ".join(f"[b]{key}[/b] {label}" for key, label in KEY_HELP)
    return f"{escape(snap.message)}\n\n{keys}" if snap.message else keys


class FireflyApp(App):
    """Terminal front end: ticks the controller, renders the session, maps keys."""

    TITLE = "Firefly Player"

    CSS = """
    #body { height: 1fr; }
    #queue { width: 25%; border: round white; border-title-align: left; padding: 0 1; }
    #main { width: 75%; }
    #player { height: 60%; border: round white; border-title-align: right; content-align: center middle; text-align: center; }
    #control { height: 40%; border: round white; border-title-align: right; padding: 0 1; }
    """

    BINDINGS = [
        Binding("escape", "quit_player", "Quit"),
        Binding("n", "open_file", "Open"),
        Binding("q", "enqueue_files", "Queue"),
        Binding("d", "enqueue_folder", "Folder"),
        Binding("space", "toggle_pause", "Play/Pause"),
        Binding("s", "skip", "Skip"),
        Binding("up", "volume_up", "Vol+", show=False),
        Binding("down", "volume_down", "Vol-", show=False),
        Binding("right", "forward", "Fwd", show=False),
        Binding("left", "rewind", "Rew", show=False),
        Binding("l", "toggle_loop", "Loop"),
    ]

    def __init__(self, controller: PlaybackController, poll_interval: float = 0.016):
        super().__init__()
        self.controller = controller
        self._poll_interval = poll_interval

    def compose(self) -> ComposeResult:
        with Horizontal(id="body"):
            yield Static(id="queue")
            with Vertical(id="main"):
                yield Static(id="player")
                yield Static(id="control")
        yield Footer()

    def on_mount(self) -> None:
        self.query_one("#queue", Static).border_title = "Queue"
        self.query_one("#player", Static).border_title = "Player"
        self.query_one("#control", Static).border_title = "Control"
        self._refresh_view()
        self.set_interval(self._poll_interval, self._on_tick)

    def _on_tick(self) -> None:
        self.controller.tick()
        if self.controller.session.exit_requested:
            self.exit()
            return
        self._refresh_view()

    def _refresh_view(self) -> None:
        snap = self.controller.session.snapshot(loading=self.controller.loading)
        self.query_one("#player", Static).update(render_player(snap))
        self.query_one("#queue", Static).update(render_queue(snap))
        self.query_one("#control", Static).update(render_control(snap))

    # Actions

    def action_quit_player(self) -> None:
        self.controller.request_exit()
        self.exit()

    def action_open_file(self) -> None:
        self.controller.open_file()
        self._refresh_view()

    def action_enqueue_files(self) -> None:
        self.controller.enqueue_files()
        self._refresh_view()

    def action_enqueue_folder(self) -> None:
        self.controller.enqueue_folder()
        self._refresh_view()

    def action_toggle_pause(self) -> None:
        self.controller.toggle_pause()

    def action_skip(self) -> None:
        self.controller.play_next()
        self._refresh_view()

    def action_volume_up(self) -> None:
        self.controller.volume_up()
        self._refresh_view()

    def action_volume_down(self) -> None:
        self.controller.volume_down()
        self._refresh_view()

    def action_forward(self) -> None:
        self.controller.forward()

    def action_rewind(self) -> None:
        self.controller.rewind()

    def action_toggle_loop(self) -> None:
        self.controller.toggle_loop()
        self._refresh_view()
