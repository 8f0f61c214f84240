"""Location-key provenance and content URL templates.

An explicit identifier names its own asset folder unless it carries a
reserved prefix; otherwise the key is the computed location code picked by
the code type. URLs follow "{folder}{key}_{slot}.{ext}", or the argument
form "{urlbase}&arg={key}&p={slot}" for urltype "arg".
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from pinpoint.layers.layer import ContentPaths, DisplayMode, LocationCodeType, UrlType

IMAGE_EXTENSION = "png"
DOCUMENT_EXTENSION = "html"


@dataclass(frozen=True)
class LocationKey:
    """Key used in content file names, plus where it came from.

    Attributes:
        key: The identifier or location code, or None when there is none.
        use_id_folder: True when the key is an explicit identifier, so the
            id-keyed folders apply.
    """

    key: str | None
    use_id_folder: bool = False


def resolve_location_key(
    identifier: str | None,
    code_type: LocationCodeType,
    mesh_code: int | str | None = None,
    world_grid_key: str | None = None,
    reserved_prefixes: Sequence[str] = ("odn_", "grid"),
) -> LocationKey:
    """Pick the content key for a location.

    "shop_12" is used as-is (id folders); "grid_1" carries a reserved
    prefix, so the computed code for *code_type* is used instead.
    """
    if identifier and not str(identifier).startswith(tuple(reserved_prefixes)):
        return LocationKey(key=str(identifier), use_id_folder=True)

    if code_type is LocationCodeType.MESH_CODE:
        key = str(mesh_code) if mesh_code is not None else None
    elif code_type is LocationCodeType.WORLD_GRID:
        key = world_grid_key or None
    else:
        key = None
    return LocationKey(key=key, use_id_folder=False)


def resolve_content_paths(paths: ContentPaths, location: LocationKey) -> tuple[str, str]:
    """(image folder, document folder) for the key's provenance.

    *paths* should already have its defaults merged in.
    """
    if location.use_id_folder:
        return paths.id_basedir or "", paths.id_base_url or ""
    return paths.basedir or "", paths.base_url or ""


def build_content_url(
    location: LocationKey,
    slot: int,
    mode: DisplayMode,
    paths: ContentPaths,
    urltype: UrlType = UrlType.RAW,
    urlbase: str | None = None,
    spec_prefix: str = "spec",
) -> str | None:
    """URL of the content for one tab slot, or None without a key.

    Image mode always uses the path template. Embedded mode uses the
    argument form for urltype "arg", except for keys carrying the spec
    prefix, which keep the path template.
    """
    if not location.key:
        return None

    image_folder, document_folder = resolve_content_paths(paths, location)
    key = location.key

    if mode is DisplayMode.IMAGE:
        return f"{image_folder}{key}_{slot}.{IMAGE_EXTENSION}"

    if urltype is UrlType.ARG and not key.startswith(spec_prefix):
        return f"{urlbase or document_folder}&arg={key}&p={slot}"
    return f"{document_folder}{key}_{slot}.{DOCUMENT_EXTENSION}"
