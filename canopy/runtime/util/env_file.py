"""Read-only ``.env`` file parser used by :class:`Settings`."""

from __future__ import annotations

from pathlib import Path


class EnvFile:
    """Parses a ``KEY=VALUE`` file, tolerating ``export`` prefixes and quotes.

    The file is re-read whenever its modification time changes, so edits made
    while the daemon is running are picked up on the next ``Settings.reload()``.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._mtime: float | None = None
        self._values: dict[str, str] = {}

    def read(self, key: str) -> str:
        """Return the value for *key*, or ``""`` if absent."""
        return self.read_all().get(key, "")

    def read_all(self) -> dict[str, str]:
        try:
            mtime = self.path.stat().st_mtime
        except OSError:
            self._mtime = None
            self._values = {}
            return {}
        if mtime != self._mtime:
            self._values = self._parse(self.path.read_text())
            self._mtime = mtime
        return dict(self._values)

    @staticmethod
    def _parse(text: str) -> dict[str, str]:
        result: dict[str, str] = {}
        for line in text.splitlines():
            line = line.strip()
            if not line or line.startswith("#") or "=" not in line:
                continue
            if line.startswith("export "):
                line = line[len("export "):]
            key, _, value = line.partition("=")
            value = value.strip()
            if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
                value = value[1:-1]
            result[key.strip()] = value
        return result
