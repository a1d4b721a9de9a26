"""Matchday lifecycle operations."""

from quiniela.matchdays.service import auto_close_matchdays, refresh_concluded, set_current_matchday

__all__ = ["auto_close_matchdays", "refresh_concluded", "set_current_matchday"]
