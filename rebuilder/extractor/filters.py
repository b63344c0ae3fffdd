"""Visibility and duplicate filtering for captured descriptors.

Duplicates are detected by comparing a fixed-length prefix of each element's
outer markup.  The match is approximate: two elements whose markup agrees up
to the prefix length count as duplicates even if they differ later on.
"""

from __future__ import annotations

from typing import Iterable, List, Optional

from rebuilder.config import settings
from rebuilder.extractor.models import ElementDescriptor


def is_visible(descriptor: ElementDescriptor) -> bool:
    """Return ``True`` if the element has a rendered box and is not hidden."""
    return (
        descriptor.width > 0
        and descriptor.height > 0
        and descriptor.display != "none"
        and descriptor.visibility != "hidden"
        and descriptor.opacity > 0
    )


def dedup_key(descriptor: ElementDescriptor, prefix_length: int) -> str:
    return descriptor.outer_html[:prefix_length]


def filter_descriptors(
    descriptors: Iterable[ElementDescriptor],
    *,
    max_count: Optional[int] = None,
    prefix_length: Optional[int] = None,
) -> List[ElementDescriptor]:
    """Keep visible, first-seen-unique descriptors, capped at *max_count*.

    Capture order is preserved.  The cap is applied after de-duplication.
    """
    max_count = settings.max_components if max_count is None else max_count
    prefix_length = settings.dedup_prefix_length if prefix_length is None else prefix_length

    seen: set[str] = set()
    kept: List[ElementDescriptor] = []
    for d in descriptors:
        if len(kept) >= max_count:
            break
        if not is_visible(d):
            continue
        key = dedup_key(d, prefix_length)
        if key in seen:
            continue
        seen.add(key)
        kept.append(d)
    return kept
