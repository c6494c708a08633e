"""Default building layout used to seed an empty room table."""

from __future__ import annotations

from housing.domain.models import RoomDefinition, RoomKind, RoomTier


# (wing, first residential suffix, last residential suffix, storage suffix)
WING_LAYOUT: tuple[tuple[str, int, int, int], ...] = (
    ("A", 1, 6, 7),
    ("B", 8, 12, 13),
    ("C", 14, 19, 20),
    ("D", 21, 25, 26),
)


def room_number_for(floor: int, suffix: int) -> str:
    return f"{floor}{suffix:02d}"


def generate_building_layout(
    floor_count: int = 6,
    room_capacity: int = 3,
    room_type: RoomTier = RoomTier.STANDARD,
) -> list[RoomDefinition]:
    """Rooms X01..X26 per floor: four wings, each closed by a zero-capacity storage room."""
    definitions: list[RoomDefinition] = []
    for floor in range(1, floor_count + 1):
        for wing, first, last, storage in WING_LAYOUT:
            for suffix in range(first, last + 1):
                definitions.append(
                    RoomDefinition(
                        room_number=room_number_for(floor, suffix),
                        floor=floor,
                        wing=wing,
                        kind=RoomKind.ROOM,
                        capacity=room_capacity,
                        room_type=room_type,
                    )
                )
            definitions.append(
                RoomDefinition(
                    room_number=room_number_for(floor, storage),
                    floor=floor,
                    wing=wing,
                    kind=RoomKind.STORAGE,
                    capacity=0,
                    room_type=room_type,
                )
            )
    return definitions
