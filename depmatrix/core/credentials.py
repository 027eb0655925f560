"""GitHub credential storage for depmatrix.

A single optional token raises the GitHub API quota and may make private
repositories visible. Changing it does not change what public content
looks like, but derived results (tag lists, manifests, resolutions) are
still invalidated on every change: listeners registered through
:meth:`TokenStore.subscribe` are notified by :meth:`set` and
:meth:`clear`.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Callable, List, Optional

from depmatrix.utils.logger import get_logger
from depmatrix.constants import TOKEN_ENV_VAR
from depmatrix.utils.filesystem import (
    PathLike,
    atomic_write_bytes,
    expand_path,
    read_bytes_if_exists,
    remove_file,
)

logger = get_logger("credentials")

TokenListener = Callable[[Optional[str]], None]


class TokenStore:
    """Holds the current GitHub token and broadcasts changes.

    Lookup order for :meth:`get`: a token set in this process, then the
    token file, then the ``GITHUB_TOKEN`` environment variable.

    Args:
        path: Token file. ``None`` keeps the token in memory only.
        env_var: Environment variable consulted as a fallback.
    """

    def __init__(
        self,
        path: Optional[PathLike] = None,
        *,
        env_var: Optional[str] = TOKEN_ENV_VAR,
    ) -> None:
        self.path: Optional[Path] = expand_path(path) if path is not None else None
        self.env_var = env_var
        self._token: Optional[str] = None
        self._loaded = False
        self._listeners: List[TokenListener] = []

    def get(self) -> Optional[str]:
        """Return the current token, or ``None`` when none is configured."""
        if not self._loaded:
            self._token = self._read_file()
            self._loaded = True
        if self._token:
            return self._token
        if self.env_var:
            return os.environ.get(self.env_var) or None
        return None

    def set(self, token: str) -> None:
        """Store a new token (persisted when a path is configured).

        Raises:
            ValueError: ``token`` is empty after stripping whitespace.
        """
        cleaned = token.strip()
        if not cleaned:
            raise ValueError("Token must not be empty")

        if self.path is not None:
            atomic_write_bytes(self.path, cleaned.encode("utf-8"), mode=0o600)
        self._token = cleaned
        self._loaded = True
        logger.info("GitHub token updated")
        self._notify(cleaned)

    def clear(self) -> None:
        """Forget the stored token (the environment variable is untouched)."""
        if self.path is not None:
            remove_file(self.path)
        self._token = None
        self._loaded = True
        logger.info("GitHub token cleared")
        self._notify(None)

    def masked(self) -> str:
        """Return the token with all but its last four characters hidden."""
        token = self.get()
        if not token:
            return ""
        visible = token[-4:] if len(token) > 4 else ""
        return "•" * (len(token) - len(visible)) + visible

    def subscribe(self, listener: TokenListener) -> Callable[[], None]:
        """Register ``listener`` for token changes.

        Returns:
            A callable that removes the listener again.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, token: Optional[str]) -> None:
        for listener in list(self._listeners):
            listener(token)

    def _read_file(self) -> Optional[str]:
        if self.path is None:
            return None
        raw = read_bytes_if_exists(self.path)
        if raw is None:
            return None
        try:
            return raw.decode("utf-8").strip() or None
        except UnicodeDecodeError:
            logger.warning("Ignoring unreadable token file %s", self.path)
            return None
