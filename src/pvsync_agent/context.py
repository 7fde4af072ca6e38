"""
State shared by the trigger callbacks of one running agent.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from pvsync_agent.collector.collection import BoundedCollection
from pvsync_agent.config.settings import ScheduleConfig
from pvsync_agent.sync.uploader import Uploader
from pvsync_agent.utils.ids import generate_entry_key


@dataclass
class AgentContext:
    """Owned by the Agent and passed explicitly to the scheduler; there is no global."""

    schedule: ScheduleConfig
    record_path: Path
    collection: BoundedCollection
    uploader: Uploader
    logger: logging.Logger
    key_factory: Callable[[], str] = field(default=generate_entry_key)
