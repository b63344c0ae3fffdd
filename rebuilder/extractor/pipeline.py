"""Extraction pipeline: driver -> filter -> synthesizer."""

from __future__ import annotations

import logging
from typing import Iterable, Optional

from rebuilder.extractor.driver import SessionFactory, extract_elements
from rebuilder.extractor.filters import filter_descriptors
from rebuilder.extractor.models import ElementDescriptor, ExtractionSummary
from rebuilder.extractor.synthesizer import synthesize

logger = logging.getLogger(__name__)


def summarize(url: str, descriptors: Iterable[ElementDescriptor]) -> ExtractionSummary:
    """Filter *descriptors* and synthesise the job's artifact set."""
    kept = filter_descriptors(descriptors)
    components = tuple(synthesize(d, i) for i, d in enumerate(kept))
    return ExtractionSummary(
        url=url,
        components=components,
        css_file="\n\n".join(c.css for c in components),
        react_file="\n\n".join(c.react_snippet for c in components),
    )


async def run_extraction(
    url: str,
    session_factory: Optional[SessionFactory] = None,
) -> ExtractionSummary:
    """Load *url*, capture its controls and return the synthesised summary."""
    descriptors = await extract_elements(url, session_factory=session_factory)
    summary = summarize(url, descriptors)
    logger.info(
        "Synthesised %d component(s) from %d captured element(s) for %s",
        summary.component_count,
        len(descriptors),
        url,
    )
    return summary
