"""Frontmost-application probe (macOS)."""

from __future__ import annotations

import logging
from typing import Iterable, Optional

try:
    import AppKit
except Exception:  # pragma: no cover
    AppKit = None  # type: ignore

logger = logging.getLogger("voxterm.focus")


class FrontmostAppProbe:
    """Reports whether the frontmost app is a known terminal.

    Matching is per application bundle id. An editor with an embedded
    terminal pane counts as a terminal only if its bundle id is listed.
    """

    def frontmost_bundle_id(self) -> Optional[str]:
        if AppKit is None:
            return None
        app = AppKit.NSWorkspace.sharedWorkspace().frontmostApplication()
        if app is None:
            return None
        bundle_id = app.bundleIdentifier()
        return str(bundle_id) if bundle_id else None

    def is_terminal_focused(self, terminal_apps: Iterable[str]) -> bool:
        bundle_id = self.frontmost_bundle_id()
        if bundle_id is None:
            return False
        focused = bundle_id in set(terminal_apps)
        logger.debug("frontmost app %s (terminal=%s)", bundle_id, focused)
        return focused
