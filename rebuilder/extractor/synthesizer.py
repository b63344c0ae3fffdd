"""Turn a captured element into a reusable component.

Everything here is pure: the same descriptor and ordinal always produce a
byte-identical :class:`Component`.
"""

from __future__ import annotations

import html
import re
from typing import List, Mapping, Tuple

from rebuilder.extractor.models import CSS_WHITELIST, Component, ElementDescriptor

_CLASS_UNSAFE = re.compile(r"[^a-zA-Z0-9\-_]")
_WHITESPACE = re.compile(r"\s+")
_FIRST_TAG = re.compile(r"^<([a-z0-9-]+)")

VOID_TAGS = frozenset({"input", "img"})
TYPED_TAGS = frozenset({"input", "button"})
CSS_NOOP_VALUES = frozenset({"", "auto", "0px", "normal"})
OUTER_HTML_PREVIEW = 200


def sanitize_class_name(base: str, n: int) -> str:
    return _CLASS_UNSAFE.sub("-", f"{base}-{n}")


def _attributes(d: ElementDescriptor, tag: str) -> List[Tuple[str, str]]:
    attrs = [
        ("id", d.id),
        ("name", d.name),
        ("type", d.type if tag in TYPED_TAGS else ""),
        ("placeholder", d.placeholder),
        ("src", d.src),
        ("href", d.href),
        ("alt", d.alt),
        ("aria-label", d.aria_label),
    ]
    return [(k, v) for k, v in attrs if v]


def build_clean_html(d: ElementDescriptor) -> str:
    """Rebuild the element with allowlisted attributes and its visible text."""
    tag = d.tag or "span"
    attr_str = " ".join(f'{k}="{html.escape(v, quote=True)}"' for k, v in _attributes(d, tag))
    opening = f"{tag} {attr_str}" if attr_str else tag

    if tag in VOID_TAGS:
        return _WHITESPACE.sub(" ", f"<{opening} />").strip()

    text = html.escape((d.inner_text or d.value).strip(), quote=False)
    return _WHITESPACE.sub(" ", f"<{opening}>{text}</{tag}>")


def annotate(cleaned_html: str, class_name: str) -> str:
    """Insert ``class="<class_name>"`` right after the first tag name."""
    return _FIRST_TAG.sub(lambda m: f'<{m.group(1)} class="{class_name}"', cleaned_html, count=1)


def build_css(class_name: str, styles: Mapping[str, str]) -> str:
    lines = [
        f"{prop}: {styles[prop]};"
        for prop in CSS_WHITELIST
        if styles.get(prop, "") not in CSS_NOOP_VALUES
    ]
    if not lines:
        return f"/* no significant styles captured for .{class_name} */"
    body = "\n".join(lines)
    return f".{class_name} {{\n{body}\n}}"


def build_react_snippet(class_name: str, snippet: str) -> str:
    identifier = class_name.replace("-", "_")
    return (
        'import React from "react";\n'
        'import "./styles.css";\n'
        "\n"
        f"export function {identifier}() {{\n"
        "  return (\n"
        f"    {snippet}\n"
        "  );\n"
        "}\n"
    )


def _truncate_markup(outer_html: str) -> str:
    if len(outer_html) > OUTER_HTML_PREVIEW:
        return outer_html[:OUTER_HTML_PREVIEW] + "..."
    return outer_html


def synthesize(d: ElementDescriptor, ordinal: int) -> Component:
    """Build the component for the *ordinal*-th (0-based) surviving element."""
    kind = d.tag or "span"
    class_name = sanitize_class_name(f"gen-{kind}", ordinal + 1)
    cleaned = build_clean_html(d)
    snippet = annotate(cleaned, class_name)
    return Component(
        index=ordinal + 1,
        kind=kind,
        cleaned_html=cleaned,
        html_snippet=snippet,
        class_name=class_name,
        css=build_css(class_name, d.styles),
        react_snippet=build_react_snippet(class_name, snippet),
        original_outer_html=_truncate_markup(d.outer_html),
    )
