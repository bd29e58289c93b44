"""Slot selection strategies over resolver output.

Both calendars (single-click list and click-and-drag week grid) consume the
same resolver output through the `SlotPicker` interface; only the way a
pointer gesture turns into a chosen `BookingSlot` differs.
"""

import logging
from abc import ABC, abstractmethod
from collections import defaultdict
from collections.abc import Callable, Iterable
from datetime import date

from tutorbook.schemas.scheduling import BookingSlot
from tutorbook.scheduling.timeutils import to_minutes

logger = logging.getLogger(__name__)

SlotCallback = Callable[[BookingSlot], None]


class SlotGrid:
    """Index of resolver output by (day, start), ordered within each day."""

    def __init__(self, slots: Iterable[BookingSlot]) -> None:
        self._by_key: dict[tuple[date, str], BookingSlot] = {}
        by_day: dict[date, list[BookingSlot]] = defaultdict(list)
        for slot in slots:
            self._by_key[slot.key] = slot
            by_day[slot.day].append(slot)
        self._by_day = {
            day: sorted(day_slots, key=lambda s: to_minutes(s.start))
            for day, day_slots in by_day.items()
        }

    def slot_at(self, day: date, time: str) -> BookingSlot | None:
        return self._by_key.get((day, time))

    def is_available(self, day: date, time: str) -> bool:
        slot = self.slot_at(day, time)
        return slot is not None and slot.available

    def day_slots(self, day: date) -> list[BookingSlot]:
        return list(self._by_day.get(day, []))

    @property
    def days(self) -> list[date]:
        return sorted(self._by_day)

    def contiguous_run(self, anchor: BookingSlot, day: date, time: str) -> list[BookingSlot]:
        """Walk from `anchor` toward (day, time) and return the valid run.

        The walk stops before the first unavailable cell or gap between
        cells. A target on another day leaves just the anchor.
        """
        if day != anchor.day:
            return [anchor]

        cells = self._by_day.get(anchor.day, [])
        index = next(i for i, cell in enumerate(cells) if cell.key == anchor.key)
        target = to_minutes(time)
        run = [anchor]

        if target > to_minutes(anchor.start):
            for cell in cells[index + 1 :]:
                if to_minutes(cell.start) > target:
                    break
                if not cell.available or cell.start != run[-1].end:
                    break
                run.append(cell)
        elif target < to_minutes(anchor.start):
            for cell in reversed(cells[:index]):
                if to_minutes(cell.start) < target:
                    break
                if not cell.available or cell.end != run[0].start:
                    break
                run.insert(0, cell)
        return run


def dates_with_slots(slots: Iterable[BookingSlot]) -> list[date]:
    """Dates that have at least one available slot, ascending."""
    return sorted({slot.day for slot in slots if slot.available})


def slots_for_day(slots: Iterable[BookingSlot], day: date) -> list[BookingSlot]:
    """Available slots on `day`, ordered by start time."""
    return sorted(
        (slot for slot in slots if slot.day == day and slot.available),
        key=lambda s: to_minutes(s.start),
    )


class SlotPicker(ABC):
    """Pointer-driven slot selection over a `SlotGrid`.

    Gestures map to: pointer-down -> begin_selection, pointer-move ->
    extend_selection, pointer-up -> end_selection, pointer-leave ->
    pointer_leave. A finished selection is passed to `on_select`.
    """

    def __init__(
        self, slots: Iterable[BookingSlot] | SlotGrid, on_select: SlotCallback | None = None
    ) -> None:
        self.grid = slots if isinstance(slots, SlotGrid) else SlotGrid(slots)
        self._on_select = on_select
        self._selected: BookingSlot | None = None

    @property
    def selected_slot(self) -> BookingSlot | None:
        return self._selected

    @abstractmethod
    def begin_selection(self, day: date, time: str) -> None: ...

    @abstractmethod
    def extend_selection(self, day: date, time: str) -> None: ...

    @abstractmethod
    def end_selection(self) -> BookingSlot | None: ...

    @abstractmethod
    def is_selected(self, day: date, time: str) -> bool: ...

    def pointer_leave(self) -> BookingSlot | None:
        """Leaving the grid finalizes at the last valid position."""
        return self.end_selection()

    def clear(self) -> None:
        self._selected = None

    def _emit(self, slot: BookingSlot) -> BookingSlot:
        self._selected = slot
        if self._on_select is not None:
            self._on_select(slot)
        return slot


class ClassicSlotPicker(SlotPicker):
    """One click picks exactly one available unit."""

    def __init__(
        self, slots: Iterable[BookingSlot] | SlotGrid, on_select: SlotCallback | None = None
    ) -> None:
        super().__init__(slots, on_select)
        self._pressed: BookingSlot | None = None

    def begin_selection(self, day: date, time: str) -> None:
        slot = self.grid.slot_at(day, time)
        self._pressed = slot if slot is not None and slot.available else None

    def extend_selection(self, day: date, time: str) -> None:
        # Clicks do not track movement
        return None

    def end_selection(self) -> BookingSlot | None:
        pressed, self._pressed = self._pressed, None
        if pressed is None:
            return None
        return self._emit(pressed)

    def is_selected(self, day: date, time: str) -> bool:
        return self._selected is not None and self._selected.key == (day, time)


class DragSlotPicker(SlotPicker):
    """Click and drag across contiguous available units of one day.

    The run collapses into a single synthetic slot from the first unit's
    start to the last unit's end.
    """

    def __init__(
        self, slots: Iterable[BookingSlot] | SlotGrid, on_select: SlotCallback | None = None
    ) -> None:
        super().__init__(slots, on_select)
        self._anchor: BookingSlot | None = None
        self._run: list[BookingSlot] = []

    @property
    def is_dragging(self) -> bool:
        return self._anchor is not None

    @property
    def drag_range(self) -> list[BookingSlot]:
        return list(self._run)

    def begin_selection(self, day: date, time: str) -> None:
        slot = self.grid.slot_at(day, time)
        if slot is None or not slot.available:
            return
        self._anchor = slot
        self._run = [slot]

    def extend_selection(self, day: date, time: str) -> None:
        if self._anchor is None:
            return
        if day != self._anchor.day:
            # Keep the run clamped at the last valid cell
            return
        self._run = self.grid.contiguous_run(self._anchor, day, time)

    def end_selection(self) -> BookingSlot | None:
        if self._anchor is None or not self._run:
            self._reset_drag()
            return None
        first, last = self._run[0], self._run[-1]
        merged = BookingSlot(
            day=first.day,
            start=first.start,
            end=last.end,
            available=True,
            tutor_id=first.tutor_id,
        )
        self._reset_drag()
        logger.debug("Drag selection finalized: %s %s-%s", merged.day, merged.start, merged.end)
        return self._emit(merged)

    def is_selected(self, day: date, time: str) -> bool:
        if self._run:
            return any(cell.key == (day, time) for cell in self._run)
        if self._selected is None or self._selected.day != day:
            return False
        minute = to_minutes(time)
        return to_minutes(self._selected.start) <= minute < to_minutes(self._selected.end)

    def _reset_drag(self) -> None:
        self._anchor = None
        self._run = []
