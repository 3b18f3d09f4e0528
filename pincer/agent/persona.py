"""Persona document (SOUL.md) loading."""

from pathlib import Path

from loguru import logger

DEFAULT_PERSONA = "You are Pincer, a helpful AI assistant."


class PersonaDocument:
    """
    The assistant's persona, read from a markdown file.

    The file is re-read whenever its modification time changes, so edits
    take effect on the next turn without a restart.
    """

    def __init__(self, path: Path | str):
        self.path = Path(path).expanduser()
        self._content = ""
        self._mtime: float | None = None

    def load(self) -> str:
        if not self.path.exists():
            if self._mtime is not None or not self._content:
                logger.warning(f"{self.path.name} not found at {self.path}, using default persona")
            self._content = DEFAULT_PERSONA
            self._mtime = None
            return self._content

        self._mtime = self.path.stat().st_mtime
        self._content = self.path.read_text(encoding="utf-8")
        logger.info(f"Persona loaded from {self.path}")
        return self._content

    def get_content(self) -> str:
        try:
            mtime = self.path.stat().st_mtime
        except OSError:
            mtime = None
        if not self._content or mtime != self._mtime:
            return self.load()
        return self._content
