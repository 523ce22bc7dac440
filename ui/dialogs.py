from __future__ import annotations

import logging
import os
from typing import Optional

from PySide6 import QtWidgets

from audio.formats import dialog_filters

logger = logging.getLogger(__name__)


def _ensure_app():
    app = QtWidgets.QApplication.instance()
    if app is None:
        app = QtWidgets.QApplication([])
    return app


class FileSelector:
    """
    Native file pickers for a terminal session.

    Remembers the last directory used. Every picker returns None when the
    user cancels.
    """

    def __init__(self, start_dir: Optional[str] = None):
        self.last_dir = start_dir or os.path.expanduser("~")

    def _remember(self, path: str) -> None:
        folder = path if os.path.isdir(path) else os.path.dirname(path)
        if folder:
            self.last_dir = folder

    def pick_one(self) -> Optional[str]:
        _ensure_app()
        path, _ = QtWidgets.QFileDialog.getOpenFileName(
            None, "Select audio file", self.last_dir, ";;".join(dialog_filters())
        )
        if not path:
            return None
        self._remember(path)
        logger.info("Selected file: %s", path)
        return path

    def pick_many(self) -> Optional[list[str]]:
        _ensure_app()
        paths, _ = QtWidgets.QFileDialog.getOpenFileNames(
            None, "Select audio files", self.last_dir, ";;".join(dialog_filters())
        )
        if not paths:
            return None
        self._remember(paths[0])
        logger.info("Selected %d file(s)", len(paths))
        return list(paths)

    def pick_folder(self) -> Optional[str]:
        _ensure_app()
        folder = QtWidgets.QFileDialog.getExistingDirectory(None, "Select folder", self.last_dir)
        if not folder:
            return None
        self._remember(folder)
        logger.info("Selected folder: %s", folder)
        return folder
