"""Self-contained HTML preview of a summary's components."""

from __future__ import annotations

import html
import json

from rebuilder.extractor.models import ExtractionSummary

_PAGE_STYLE = """\
    body{font-family:system-ui,Segoe UI,Arial;padding:18px}
    .preview-item{border:1px solid #eee;padding:12px;margin:12px 0}
    .preview-item .render{margin-top:8px}
    .preview-item pre{background:#f7f7f7;padding:8px;overflow:auto}"""


def render_preview(summary: ExtractionSummary, *, show_meta: bool = False) -> str:
    """Return one HTML document rendering every component with its CSS inlined.

    Each component's JSON record is embedded (escaped) below its rendering;
    it is hidden unless *show_meta* is set.
    """
    meta_style = "" if show_meta else ' style="display:none"'
    items = []
    for c in summary.components:
        record = html.escape(json.dumps(c.to_dict(), indent=2))
        items.append(
            '<div class="preview-item">\n'
            f"  <h4>Component {c.index} — {html.escape(c.kind)}</h4>\n"
            f'  <div class="render">{c.html_snippet}</div>\n'
            f"  <pre{meta_style}>{record}</pre>\n"
            "</div>"
        )

    title = html.escape(summary.url)
    body = "\n".join(items)
    return (
        "<!doctype html>\n"
        "<html>\n"
        "<head>\n"
        '  <meta charset="utf-8" />\n'
        '  <meta name="viewport" content="width=device-width,initial-scale=1" />\n'
        f"  <title>Preview — {title}</title>\n"
        "  <style>\n"
        f"{_PAGE_STYLE}\n"
        f"{summary.css_file}\n"
        "  </style>\n"
        "</head>\n"
        "<body>\n"
        f"  <h2>Preview — {title}</h2>\n"
        f"{body}\n"
        f"  <footer><small>{summary.component_count} components</small></footer>\n"
        "</body>\n"
        "</html>\n"
    )
