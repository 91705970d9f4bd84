"""
Logging helper for AutoCal components: consistent logger names (autocal.<name>).
"""

from __future__ import annotations

import logging


def get_logger(component_name: str) -> logging.Logger:
    """
    Return a logger with a consistent name for the given component.
    Use in components so logs appear under autocal.<component_name>.

    Args:
        component_name: Short name of the component (e.g. "session", "filters", "capture").

    Returns:
        logging.Logger with name "autocal." + component_name.
    """
    name = (component_name or "").strip() or "component"
    return logging.getLogger(f"autocal.{name}")


__all__ = ["get_logger"]
