"""Package-local structured logging utilities.

All components log through structlog. Loggers are injectable so tests and
host applications can supply their own bound logger.
"""

import structlog
from typing import Any, Optional


def get_component_logger(component: str, logger: Optional[Any] = None) -> Any:
    """Get logger bound to a component name.

    Args:
        component: Component name (e.g., "Session", "Orchestrator")
        logger: Optional injected logger. If None, uses default structlog logger.

    Returns:
        Logger bound to the component name
    """
    base = logger or structlog.get_logger()
    return base.bind(component=component)
