"""Extractor package: page capture, filtering and component synthesis."""

from rebuilder.extractor.driver import extract_elements
from rebuilder.extractor.models import Component, ElementDescriptor, ExtractionSummary
from rebuilder.extractor.pipeline import run_extraction
from rebuilder.extractor.synthesizer import synthesize

__all__ = [
    "extract_elements",
    "run_extraction",
    "synthesize",
    "ElementDescriptor",
    "Component",
    "ExtractionSummary",
]
