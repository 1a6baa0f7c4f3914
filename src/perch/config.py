"""Router configuration.

``RouterConfig`` is passed once to ``StateRouter`` and shared with the engine
and the default template loader.
"""

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True, slots=True)
class RouterConfig:
    """Router configuration. Immutable after creation.

    All fields have sensible defaults. Override what you need::

        config = RouterConfig(html5_mode=True, cancel_superseded=True)
    """

    # URLs
    html5_mode: bool = False  # When False, href() prefixes URLs with hash_prefix
    hash_prefix: str = "#"

    # Templates
    template_dir: str | Path = "templates"

    # Transitions
    cancel_superseded: bool = False  # Abandon resolver work of preempted transitions

    # Events
    event_queue_size: int = 256  # Per-subscriber buffer for TransitionEventBus.subscribe()

    # Logging
    lifecycle_logging: bool = True
