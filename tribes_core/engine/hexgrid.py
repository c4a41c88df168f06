"""Axial hex coordinate helpers."""

from tribes_core.schemas.game_state import HexCoord

HEX_DIRECTIONS = [(1, 0), (1, -1), (0, -1), (-1, 0), (-1, 1), (0, 1)]


def hex_key(coord: HexCoord) -> str:
    return f"{coord.q},{coord.r}"


def hex_distance(a: HexCoord, b: HexCoord) -> int:
    """Number of steps between two hexes (cube distance)."""
    dq = a.q - b.q
    dr = a.r - b.r
    ds = (-a.q - a.r) - (-b.q - b.r)
    return max(abs(dq), abs(dr), abs(ds))


def hex_neighbors(coord: HexCoord) -> list[HexCoord]:
    return [HexCoord(q=coord.q + dq, r=coord.r + dr) for dq, dr in HEX_DIRECTIONS]


def hex_range(center: HexCoord, radius: int) -> list[HexCoord]:
    """All hexes within radius of center, center included."""
    results = []
    for dq in range(-radius, radius + 1):
        for dr in range(max(-radius, -dq - radius), min(radius, -dq + radius) + 1):
            results.append(HexCoord(q=center.q + dq, r=center.r + dr))
    return results
