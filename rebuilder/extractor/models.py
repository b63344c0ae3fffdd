"""Data models for the extraction pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Dict, Mapping, Tuple

INTERACTIVE_TAGS: Tuple[str, ...] = ("button", "input", "label", "a", "select", "textarea")

# Computed-style properties captured in the page and emitted into CSS rules,
# in emission order.
CSS_WHITELIST: Tuple[str, ...] = (
    "display", "position", "top", "left", "right", "bottom",
    "width", "height",
    "margin", "margin-top", "margin-bottom", "margin-left", "margin-right",
    "padding", "padding-top", "padding-bottom", "padding-left", "padding-right",
    "font-size", "font-weight", "line-height", "color", "background-color",
    "border", "border-radius", "box-shadow", "text-align",
)

# Computed values that carry no information for a generated stylesheet.
CAPTURE_SKIP_VALUES = frozenset({"", "auto", "normal"})


def _text(value: Any) -> str:
    # Host objects such as SVGAnimatedString serialise to {} and carry nothing.
    if value is None or isinstance(value, (Mapping, list)):
        return ""
    return value if isinstance(value, str) else str(value)


def _number(value: Any, default: float = 0.0) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


@dataclass(frozen=True)
class ElementDescriptor:
    """Snapshot of one captured DOM element.

    Built once by the extraction driver from the in-page capture and never
    mutated afterwards.
    """

    tag: str
    outer_html: str = ""
    inner_text: str = ""
    value: str = ""
    id: str = ""
    name: str = ""
    aria_label: str = ""
    type: str = ""
    placeholder: str = ""
    href: str = ""
    src: str = ""
    alt: str = ""
    class_name: str = ""
    styles: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    width: float = 0.0
    height: float = 0.0
    display: str = ""
    visibility: str = ""
    opacity: float = 1.0

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any]) -> "ElementDescriptor":
        """Build a descriptor from one capture-script record.

        Missing or malformed fields degrade to empty values instead of
        raising, so a partially broken page still yields components.
        """
        raw_styles = raw.get("styles")
        styles: Dict[str, str] = {}
        if isinstance(raw_styles, Mapping):
            for prop, val in raw_styles.items():
                text = _text(val).strip()
                if text not in CAPTURE_SKIP_VALUES:
                    styles[_text(prop)] = text

        box = raw.get("box") if isinstance(raw.get("box"), Mapping) else {}
        return cls(
            tag=_text(raw.get("tagName")).lower(),
            outer_html=_text(raw.get("outerHTML")),
            inner_text=_text(raw.get("innerText")),
            value=_text(raw.get("value")),
            id=_text(raw.get("id")),
            name=_text(raw.get("name")),
            aria_label=_text(raw.get("ariaLabel")),
            type=_text(raw.get("type")),
            placeholder=_text(raw.get("placeholder")),
            href=_text(raw.get("href")),
            src=_text(raw.get("src")),
            alt=_text(raw.get("alt")),
            class_name=_text(raw.get("className")),
            styles=MappingProxyType(styles),
            width=_number(box.get("width")),
            height=_number(box.get("height")),
            display=_text(box.get("display")),
            visibility=_text(box.get("visibility")),
            opacity=_number(box.get("opacity"), default=1.0),
        )


@dataclass(frozen=True)
class Component:
    """HTML/CSS/scaffold artifact synthesised from one descriptor."""

    index: int
    kind: str
    cleaned_html: str
    html_snippet: str
    class_name: str
    css: str
    react_snippet: str
    original_outer_html: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "index": self.index,
            "kind": self.kind,
            "cleanedHtml": self.cleaned_html,
            "htmlSnippet": self.html_snippet,
            "className": self.class_name,
            "css": self.css,
            "reactSnippet": self.react_snippet,
            "originalOuterHTML": self.original_outer_html,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Component":
        """Inverse of :meth:`to_dict`, used by clients reading API responses."""
        return cls(
            index=int(data.get("index", 0)),
            kind=_text(data.get("kind")),
            cleaned_html=_text(data.get("cleanedHtml")),
            html_snippet=_text(data.get("htmlSnippet")),
            class_name=_text(data.get("className")),
            css=_text(data.get("css")),
            react_snippet=_text(data.get("reactSnippet")),
            original_outer_html=_text(data.get("originalOuterHTML")),
        )


@dataclass(frozen=True)
class ExtractionSummary:
    """Aggregate result attached to a completed job."""

    url: str
    components: Tuple[Component, ...] = ()
    css_file: str = ""
    react_file: str = ""
    completed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def component_count(self) -> int:
        return len(self.components)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "url": self.url,
            "componentCount": self.component_count,
            "components": [c.to_dict() for c in self.components],
            "cssFile": self.css_file,
            "reactFile": self.react_file,
            "completedAt": self.completed_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ExtractionSummary":
        completed = data.get("completedAt")
        return cls(
            url=_text(data.get("url")),
            components=tuple(Component.from_dict(c) for c in data.get("components") or ()),
            css_file=_text(data.get("cssFile")),
            react_file=_text(data.get("reactFile")),
            completed_at=(
                datetime.fromisoformat(completed) if completed else datetime.now(timezone.utc)
            ),
        )
