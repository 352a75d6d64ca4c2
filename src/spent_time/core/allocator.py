"""Collision-free sphere names and unused palette colors."""

from typing import TYPE_CHECKING, Sequence

from spent_time.core.models import GRID_PALETTE, Sphere, normalize_hex

if TYPE_CHECKING:
    from spent_time.core.store import DataStore

DEFAULT_SPHERE_NAME = "Other"


def unique_sphere_name(name: str, spheres: Sequence[Sphere]) -> str:
    """Resolve a display name that no existing sphere uses.

    The name is trimmed and falls back to "Other" when empty. On a
    case-insensitive collision the spelling of the first matching sphere gets
    a numeric suffix, starting at 2.

    Example:
        >>> unique_sphere_name("work", [Sphere("Work", "#000000")])
        'Work 2'
    """
    trimmed = name.strip() or DEFAULT_SPHERE_NAME

    taken: dict[str, str] = {}
    for sphere in spheres:
        taken.setdefault(sphere.name.casefold(), sphere.name)
    if trimmed.casefold() not in taken:
        return trimmed

    base = taken[trimmed.casefold()]
    suffix = 2
    candidate = f"{base} {suffix}"
    while candidate.casefold() in taken:
        suffix += 1
        candidate = f"{base} {suffix}"
    return candidate


def create_unique_sphere(
    store: "DataStore",
    name: str,
    color: str,
    favorite: bool = False,
) -> Sphere:
    """Add a sphere whose name does not collide with existing spheres.

    Args:
        store: State container that performs the insert
        name: Requested display name
        color: Hex color
        favorite: Favorite flag

    Returns:
        Created sphere
    """
    resolved = unique_sphere_name(name, store.spheres)
    return store.add_sphere(resolved, color, favorite)


def is_color_used(spheres: Sequence[Sphere], color: str) -> bool:
    """Check whether any sphere uses exactly this color."""
    target = normalize_hex(color)
    return any(s.color == target for s in spheres)


def available_palette_colors(spheres: Sequence[Sphere], exclude_used: bool = True) -> list[str]:
    """Palette colors in palette order, minus those in use unless told otherwise."""
    if not exclude_used:
        return list(GRID_PALETTE)
    return [c for c in GRID_PALETTE if not is_color_used(spheres, c)]


def next_palette_color(spheres: Sequence[Sphere]) -> str:
    """First unused palette color, or the first palette color once all are taken."""
    available = available_palette_colors(spheres)
    return available[0] if available else GRID_PALETTE[0]
