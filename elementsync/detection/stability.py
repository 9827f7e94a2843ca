# elementsync/detection/stability.py
from __future__ import annotations

"""Element stability probe
-------------------------
"Stable" means visible, with the same bounding box and no running
animations/transitions across consecutive polls. The probe keeps its own
streak, so every stable condition owns a fresh instance.
"""

from dataclasses import dataclass, field
from typing import Dict, Optional

from elementsync.selectors.driver import DomDriver, Handle
from elementsync.utils.logger import get_logger

log = get_logger(__name__)

Box = Dict[str, float]


def _same_box(a: Optional[Box], b: Optional[Box], tolerance_px: float) -> bool:
    if a is None or b is None:
        return False
    for k in ("x", "y", "width", "height"):
        if abs(float(a.get(k, 0.0)) - float(b.get(k, 0.0))) > tolerance_px:
            return False
    return True


@dataclass
class StabilityProbe:
    driver: DomDriver
    required_polls: int = 2
    tolerance_px: float = 0.0
    _last_box: Optional[Box] = field(default=None, init=False, repr=False)
    _streak: int = field(default=0, init=False, repr=False)

    def reset(self) -> None:
        self._last_box = None
        self._streak = 0

    async def observe(self, handle: Handle) -> bool:
        """Take one sample. True once `required_polls` consecutive samples agree."""
        if not await self.driver.is_visible(handle):
            self.reset()
            return False

        box = await self.driver.bounding_box(handle)
        running = await self.driver.get_animations(handle)

        if box is None:
            self.reset()
            return False

        if running:
            # movement in progress; this sample can still anchor the next comparison
            log.debug(f"stability: {len(running)} running animation(s)")
            self._last_box = box
            self._streak = 0
            return False

        if _same_box(self._last_box, box, self.tolerance_px):
            self._streak += 1
        else:
            self._streak = 1
        self._last_box = box
        return self._streak >= self.required_polls


__all__ = ["StabilityProbe"]
