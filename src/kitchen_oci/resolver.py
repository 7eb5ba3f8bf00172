"""Resolve compartment and image names to OCIDs"""

from __future__ import annotations

import re
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from rich.console import Console

from kitchen_oci.errors import ResolutionError, ValidationError, translate_errors

CONSOLE: Console = Console()

ARM_FLEX_SHAPE = re.compile(r"^VM\.Standard\.A\d+\.Flex$")
ARCHITECTURE_MARKER = "aarch64"

FetchPage = Callable[[Optional[str]], Tuple[Sequence[Any], Optional[str]]]


def list_all(fetch_page: FetchPage) -> list[Any]:
    """Accumulate every page returned by `fetch_page` until no cursor remains"""
    items: list[Any] = []
    cursor: Optional[str] = None
    while True:
        page, cursor = fetch_page(cursor)
        items.extend(page)
        if cursor is None:
            return items


def oci_pages(list_call: Callable[..., Any], *args: Any, **kwargs: Any) -> FetchPage:
    """Adapt an OCI `list_*` call into a `fetch_page` function"""

    def _fetch(cursor: Optional[str]) -> Tuple[Sequence[Any], Optional[str]]:
        if cursor is not None:
            response = list_call(*args, page=cursor, **kwargs)
        else:
            response = list_call(*args, **kwargs)
        return response.data, response.next_page

    return _fetch


def image_name_pattern(name: str, shape: str | None) -> str:
    """Literal image name with spaces hyphenated and the ARM marker appended for ARM shapes"""
    pattern = name.replace(" ", "-")
    if shape and ARM_FLEX_SHAPE.match(shape) and ARCHITECTURE_MARKER not in pattern:
        pattern = f"{pattern}-{ARCHITECTURE_MARKER}"
    return pattern


def select_image(images: Sequence[Any], name: str, shape: str | None) -> Any:
    """Pick the most recent image whose display name matches `name`.

    When more than one image contains the pattern, only names followed by a
    release-date suffix (``<pattern>-YYYY.MM.DD``) remain eligible.
    """
    pattern = image_name_pattern(name, shape)
    candidates: List[Any] = [i for i in images if pattern in i.display_name]
    if len(candidates) > 1:
        dated = re.compile(rf"^{re.escape(pattern)}-\d{{4}}\.\d{{2}}\.\d{{2}}")
        candidates = [i for i in candidates if dated.match(i.display_name)]
    if not candidates:
        raise ResolutionError(f"No image found matching '{pattern}'")

    newest = candidates[0]
    for image in candidates[1:]:
        if image.time_created > newest.time_created:
            newest = image
    return newest


class ResourceResolver:
    """Name to id lookups against the identity and compute APIs"""

    def __init__(self, api: Any, console: Console | None = None) -> None:
        self.api: Any = api
        self.console: Console = console or CONSOLE
        self._compartments: Dict[str, str] = {}

    def compartment_id_by_name(self, name: str) -> str:
        tenancy: str = self.api.tenancy
        with translate_errors("compartment list", tenancy):
            compartments = list_all(oci_pages(self.api.identity.list_compartments, tenancy))
        for compartment in compartments:
            if compartment.name == name:
                return compartment.id
        raise ResolutionError(f"Compartment '{name}' not found in tenancy <{tenancy}>")

    def compartment(self, compartment_id: str | None, compartment_name: str | None) -> str:
        """Compartment OCID, resolving the name only when no id was given"""
        if compartment_id:
            return compartment_id
        if not compartment_name:
            raise ValidationError("must specify either compartment_id or compartment_name")
        if compartment_name not in self._compartments:
            self.console.print(f"[yellow]Looking up compartment '{compartment_name}'...[/yellow]")
            self._compartments[compartment_name] = self.compartment_id_by_name(compartment_name)
        return self._compartments[compartment_name]

    def image_id_by_name(self, name: str, shape: str | None, compartment_id: str) -> str:
        with translate_errors("image list", compartment_id):
            images = list_all(oci_pages(self.api.compute.list_images, compartment_id))
        image = select_image(images, name, shape)
        self.console.print(f"[dim]Selected image {image.display_name} <{image.id}>[/dim]")
        return image.id

    def image(self, image_id: str | None, image_name: str | None, shape: str | None, compartment_id: str) -> str:
        if image_id:
            return image_id
        if not image_name:
            raise ValidationError("must specify either image_id or image_name")
        return self.image_id_by_name(image_name, shape, compartment_id)
