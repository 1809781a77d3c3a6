"""Frame-size aware capacity checks for a class.

Every reservation occupies one place in the class and one place in the bucket
of its frame size. A request is admitted only while its own bucket has room
and the class as a whole is below its declared capacity.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable, Mapping
from dataclasses import dataclass

from ..db.models.reservation import FrameSize


@dataclass(slots=True)
class FrameDistribution:
    small: int = 0
    medium: int = 0
    large: int = 0

    @property
    def total(self) -> int:
        return self.small + self.medium + self.large

    def count(self, frame_size: FrameSize) -> int:
        return getattr(self, frame_size.value)

    def as_dict(self) -> dict[str, int]:
        return {
            "small": self.small,
            "medium": self.medium,
            "large": self.large,
            "total": self.total,
        }


@dataclass(slots=True)
class CapacityResult:
    has_capacity: bool
    distribution: FrameDistribution
    available: dict[str, int]
    available_spots: int
    message: str = ""


def _as_frame_size(value: FrameSize | str) -> FrameSize:
    if isinstance(value, FrameSize):
        return value
    return FrameSize(str(value).lower())


def calculate_class_capacity(
    existing_sizes: Iterable[FrameSize | str],
    capacities: Mapping[str, int],
    requested: FrameSize | str | None = None,
    total_capacity: int | None = None,
) -> CapacityResult:
    counts = Counter(_as_frame_size(size) for size in existing_sizes)
    distribution = FrameDistribution(
        small=counts[FrameSize.small],
        medium=counts[FrameSize.medium],
        large=counts[FrameSize.large],
    )
    available = {
        size.value: max(0, int(capacities.get(size.value, 0)) - distribution.count(size))
        for size in FrameSize
    }
    if total_capacity is None:
        available_spots = sum(available.values())
    else:
        available_spots = max(0, total_capacity - distribution.total)

    if requested is None:
        has_capacity = available_spots > 0
        message = _remaining_message(available_spots)
        return CapacityResult(has_capacity, distribution, available, available_spots, message)

    frame_size = _as_frame_size(requested)
    message = ""
    if available[frame_size.value] <= 0:
        has_capacity = False
        message = (
            f"No {frame_size.value} frames available "
            f"({distribution.count(frame_size)}/{capacities.get(frame_size.value, 0)})."
        )
    elif available_spots <= 0:
        has_capacity = False
        message = (
            f"Class is at capacity ({distribution.total}/{total_capacity}). "
            f"Cannot add {frame_size.value} frame."
        )
    else:
        has_capacity = True
        message = _remaining_message(available_spots)
    return CapacityResult(has_capacity, distribution, available, available_spots, message)


def _remaining_message(available_spots: int) -> str:
    if available_spots == 0:
        return "Class is full"
    if available_spots == 1:
        return "Only 1 spot remaining"
    if available_spots <= 3:
        return f"{available_spots} spots remaining"
    return ""


__all__ = ["CapacityResult", "FrameDistribution", "calculate_class_capacity"]
