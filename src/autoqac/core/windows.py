"""Windows message-pump liveness checks using ctypes."""

from __future__ import annotations

import ctypes
import os


def windows_responding(pid: int) -> bool | None:
    """Check whether the visible top-level windows of *pid* pump messages.

    Uses ``IsHungAppWindow``, the same test Windows applies before it
    greys out a window as "Not Responding". Returns None off Windows or
    when the process has no visible window, so callers can fall back to
    other signals.
    """
    if os.name != "nt":
        return None
    from ctypes import wintypes

    user32 = ctypes.windll.user32  # type: ignore[attr-defined]
    found: list[int] = []

    def _visit(hwnd: int, _lparam: int) -> bool:
        owner = wintypes.DWORD()
        user32.GetWindowThreadProcessId(hwnd, ctypes.byref(owner))
        if owner.value == pid and user32.IsWindowVisible(hwnd):
            found.append(hwnd)
        return True

    enum_proc = ctypes.WINFUNCTYPE(wintypes.BOOL, wintypes.HWND, wintypes.LPARAM)(_visit)  # type: ignore[attr-defined]
    user32.EnumWindows(enum_proc, 0)
    if not found:
        return None
    return not any(user32.IsHungAppWindow(hwnd) for hwnd in found)
