"""
Kill Switch Module.

File-based trigger for the emergency stop: the risk engine checks the switch on
every monitoring tick and liquidates as soon as the trigger file exists.
"""
import os
from pathlib import Path
from typing import Union

from ..utils.logging import get_logger

LOGGER = get_logger(__name__)

DEFAULT_TRIGGER_FILE = "data/STOP"


class KillSwitch:
    """
    Monitors for a kill signal (file existence).
    """
    def __init__(self, trigger_file: Union[str, Path] = DEFAULT_TRIGGER_FILE):
        self.trigger_file = Path(trigger_file)

    def is_active(self) -> bool:
        """Check if the kill switch is activated."""
        if self.trigger_file.exists():
            LOGGER.critical(f"KILL SWITCH ACTIVATED: Found {self.trigger_file}")
            return True
        return False

    def activate(self) -> None:
        """Manually activate the kill switch."""
        self.trigger_file.parent.mkdir(parents=True, exist_ok=True)
        self.trigger_file.touch()
        LOGGER.critical(f"Kill switch manually activated ({self.trigger_file})")

    def deactivate(self) -> None:
        """Deactivate the kill switch."""
        if self.trigger_file.exists():
            os.remove(self.trigger_file)
            LOGGER.info("Kill switch deactivated.")
