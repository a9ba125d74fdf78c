"""
Drag-to-reorder state machine for the platform list.

A vertical drag arrives as a stream of small deltas. The engine accumulates
them for the dragged card and, whenever the running total crosses half of a
neighbour's height plus the card spacing, moves the card by whole positions.
The final order is handed to a persistence callback when the drag ends.
"""

import logging
from typing import Callable, Dict, Iterable, List, Optional, Sequence, TypeVar

from . import config

logger = logging.getLogger(__name__)

T = TypeVar('T')


class ReorderEngine:
    """
    Converts drag deltas into list position swaps.

    Only the gesture handlers on the UI thread call into this object; it holds
    no locks.
    """

    def __init__(self,
                 persist: Optional[Callable[[List[int]], None]] = None,
                 spacing: float = config.REORDER_ITEM_SPACING_PX,
                 default_height: int = config.REORDER_DEFAULT_ITEM_HEIGHT_PX):
        self.persist = persist
        self.spacing = spacing
        self.default_height = default_height

        self.state = config.STATE_IDLE
        self.ordered_ids: List[int] = []
        self.heights: Dict[int, float] = {}
        self.offsets: Dict[int, float] = {}
        self.dragging_id: Optional[int] = None
        self.start_index: Optional[int] = None

    @property
    def is_dragging(self) -> bool:
        return self.state == config.STATE_DRAGGING

    def begin_drag(self, item_id: int, rendered_ids: Sequence[int], can_reorder: bool = True) -> bool:
        """
        Start dragging `item_id`.
        Args:
            item_id: Platform id under the pointer
            rendered_ids: Platform ids in their current on-screen order
            can_reorder: False while a type filter or any search is active
        Returns:
            True if the drag was started
        """
        if not can_reorder:
            logger.debug(f"Drag of {item_id} ignored: list is filtered")
            return False

        if not self.ordered_ids:
            self.ordered_ids = list(rendered_ids)

        self.dragging_id = item_id
        self.start_index = self.ordered_ids.index(item_id) if item_id in self.ordered_ids else None
        self.offsets[item_id] = 0.0
        self.state = config.STATE_DRAGGING
        logger.debug(f"Drag started for {item_id} at index {self.start_index}")
        return True

    def drag_by(self, dy: float) -> None:
        """Feed one vertical delta (pixels, positive is down)."""
        if not self.is_dragging or self.dragging_id is None:
            return

        item_id = self.dragging_id
        acc = self.offsets.get(item_id, 0.0) + dy
        self.offsets[item_id] = acc

        if item_id not in self.ordered_ids:
            return
        current = self.ordered_ids.index(item_id)
        last = len(self.ordered_ids) - 1

        above_id = self.ordered_ids[current - 1] if current > 0 else None
        below_id = self.ordered_ids[current + 1] if current < last else None
        fallback = self._fallback_height(item_id)
        above_height = self.heights.get(above_id, fallback) if above_id is not None else fallback
        below_height = self.heights.get(below_id, fallback) if below_id is not None else fallback

        threshold_down = below_height / 2 + self.spacing
        threshold_up = above_height / 2 + self.spacing

        if acc >= threshold_down:
            threshold = threshold_down
        elif acc <= -threshold_up:
            threshold = threshold_up
        else:
            return

        # int() truncates toward zero in both directions: -250 / 116 gives -2
        steps = int(acc / threshold)
        if steps == 0:
            return

        target = max(0, min(current + steps, last))
        if target == current:
            return

        self.ordered_ids.pop(current)
        self.ordered_ids.insert(target, item_id)
        self.offsets[item_id] = acc - steps * threshold
        logger.debug(
            f"Moved {item_id} from {current} to {target} "
            f"(steps={steps}, threshold={threshold}, residual={self.offsets[item_id]})"
        )

    def end_drag(self) -> Optional[List[int]]:
        """
        Finish the drag and hand the order to the persistence callback.
        Only a drag that was actually started is persisted.
        Returns:
            The persisted order, or None when there was nothing to persist
        """
        if not self.is_dragging:
            return None

        persisted = None
        if self.ordered_ids:
            persisted = list(self.ordered_ids)
            logger.debug(f"Drag of {self.dragging_id} ended, order {persisted}")
            if self.persist is not None:
                self.persist(list(persisted))

        self.dragging_id = None
        self.start_index = None
        self.offsets.clear()
        self.state = config.STATE_IDLE
        return persisted

    def cancel_drag(self) -> Optional[List[int]]:
        # A cancelled drag keeps the position it reached
        return self.end_drag()

    def report_height(self, item_id: int, height: float) -> None:
        self.heights[item_id] = height

    def offset_for(self, item_id: int) -> float:
        """Accumulated offset to render for `item_id`; 0 for cards at rest."""
        if item_id != self.dragging_id:
            return 0.0
        return self.offsets.get(item_id, 0.0)

    def arrange(self, items: Iterable[T], key: Callable[[T], int] = lambda item: item.id) -> List[T]:
        """
        Order `items` by the current drag order. Items unknown to the engine
        keep their relative order after the known ones.
        """
        items = list(items)
        if not self.is_dragging or not self.ordered_ids:
            return items
        position = {item_id: i for i, item_id in enumerate(self.ordered_ids)}
        ranked = sorted(enumerate(items), key=lambda pair: (position.get(key(pair[1]), len(position)), pair[0]))
        return [item for _, item in ranked]

    def sync(self, ids: Iterable[int]) -> None:
        """
        Drop the stored order when the platform set changed outside a drag,
        so the next drag snapshots the fresh list.
        """
        if self.is_dragging or not self.ordered_ids:
            return
        if set(ids) != set(self.ordered_ids):
            logger.debug("Platform set changed, discarding stored order")
            self.ordered_ids = []

    def _fallback_height(self, item_id: int) -> float:
        own = self.heights.get(item_id)
        if own is not None:
            return own
        if self.heights:
            return int(sum(self.heights.values()) / len(self.heights))
        return self.default_height
