"""UI Component Rebuilder: page controls to reusable CSS/HTML/React components."""

__version__ = "1.0.0"
