"""Terminal collaborators: link editor, fuzzy selector and image previewer.

Each is a small interface so the service and search engine can be driven
by scripted fakes in tests and by fzf / chafa / $EDITOR for real use.
"""

import logging
import shlex
import shutil
import subprocess
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

import typer

from thumbtube.config import settings
from thumbtube.models import Form

logger = logging.getLogger(__name__)


class DependencyError(Exception):
    """Raised when an external program needed for a command is not installed."""


def require_program(name: str) -> str:
    """Absolute path of an installed program.

    Raises:
        DependencyError: If the program is not on PATH.
    """
    path = shutil.which(name)
    if path is None:
        raise DependencyError(f"Missing dependency: {name}")
    return path


class TextEditor(ABC):
    @abstractmethod
    def edit(self, text: str = "") -> str:
        """Let the user edit a buffer; return its final contents."""


class ClickEditor(TextEditor):
    """Opens $VISUAL / $EDITOR (or settings.editor) on a temporary buffer."""

    def __init__(self, editor: str | None = None) -> None:
        self._editor = editor or settings.editor

    def edit(self, text: str = "") -> str:
        result = typer.edit(text, editor=self._editor, extension=".txt", require_save=False)
        return result or ""


@dataclass
class SelectorRow:
    """One selectable line: a hidden key, an image path for preview and a label."""

    key: str
    label: str
    preview_path: str = ""


@dataclass
class Selection:
    """What the user chose and what they want done with it."""

    keys: list[str] = field(default_factory=list)
    action: str = "accept"  # "accept" or "delete"


class InteractiveSelector(ABC):
    @abstractmethod
    def select(self, rows: list[SelectorRow], *, multi: bool = True, prompt: str = "") -> Selection:
        """Present rows for fuzzy matching. An empty selection means aborted."""


class ImageRenderer(ABC):
    @abstractmethod
    def preview_command(self, path_placeholder: str) -> str:
        """Shell command rendering the image at path_placeholder to the terminal."""


class ChafaRenderer(ImageRenderer):
    """Renders previews with chafa, sized to the fzf preview pane.

    With a crop command (ImageMagick ``convert``), images from the shorts
    store are cut to their centered 9:16 frame first; the vertical video
    sits pillarboxed inside a 16:9 thumbnail.
    """

    def __init__(self, command: str | None = None, crop_command: str | None = None) -> None:
        self._command = command or settings.chafa_command
        self._crop_command = crop_command

    def preview_command(self, path_placeholder: str) -> str:
        chafa = (
            f"{shlex.quote(self._command)} "
            "--view-size ${FZF_PREVIEW_COLUMNS}x${FZF_PREVIEW_LINES} --align center,center"
        )
        if self._crop_command is None:
            return f"{chafa} {path_placeholder}"
        crop = f"{shlex.quote(self._crop_command)} {path_placeholder} -gravity center -crop 9:16 -"
        return (
            f"case {path_placeholder} in "
            f"*/{Form.SHORT.store_name}/*) {crop} | {chafa} - ;; "
            f"*) {chafa} {path_placeholder} ;; esac"
        )


class FzfSelector(InteractiveSelector):
    """Runs fzf over tab-separated rows; ctrl-d requests deletion.

    Rows are written as ``key<TAB>path<TAB>label`` and only the label is
    shown and searched.
    """

    DELETE_KEY = "ctrl-d"

    def __init__(self, renderer: ImageRenderer | None = None, command: str | None = None) -> None:
        self._renderer = renderer
        self._command = command or settings.fzf_command

    def select(self, rows: list[SelectorRow], *, multi: bool = True, prompt: str = "") -> Selection:
        cmd = [
            self._command,
            "--delimiter", "\t",
            "--with-nth", "3..",
            "--expect", self.DELETE_KEY,
            "--header", f"enter: select   tab: mark   {self.DELETE_KEY}: delete",
        ]
        if multi:
            cmd.append("--multi")
        if prompt:
            cmd += ["--prompt", f"{prompt}> "]
        if self._renderer is not None and any(row.preview_path for row in rows):
            cmd += [
                "--preview", self._renderer.preview_command("{2}"),
                "--bind", "ctrl-space:refresh-preview",
            ]

        lines = "\n".join(
            f"{row.key}\t{row.preview_path}\t{self._clean(row.label)}" for row in rows
        )
        try:
            # stderr stays attached to the terminal; fzf draws its UI there
            result = subprocess.run(cmd, input=lines, stdout=subprocess.PIPE, text=True)
        except FileNotFoundError:
            raise DependencyError(f"Missing dependency: {self._command}")

        # 1 = no match, 130 = aborted with ctrl-c / esc
        if result.returncode != 0:
            logger.info("Selection aborted (fzf exit %d)", result.returncode)
            return Selection()

        out = result.stdout.splitlines()
        key_pressed, picked = (out[0], out[1:]) if out else ("", [])
        return Selection(
            keys=[line.split("\t", 1)[0] for line in picked if line],
            action="delete" if key_pressed == self.DELETE_KEY else "accept",
        )

    @staticmethod
    def _clean(label: str) -> str:
        return label.replace("\t", " ").replace("\n", " ")
