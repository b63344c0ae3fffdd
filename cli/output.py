"""Write a finished job's artifacts to a local directory."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List

from rebuilder.extractor.models import ExtractionSummary
from rebuilder.extractor.preview import render_preview


def write_artifacts(summary: Dict[str, Any], out_dir: Path) -> List[Path]:
    """Write ``components.json``, ``styles.css``, ``Components.jsx`` and ``preview.html``.

    Args:
        summary: The ``summary`` object from a ``done`` ``/result`` response.
        out_dir: Target directory, created if missing.

    Returns:
        The written paths, in the order above.
    """
    out_dir.mkdir(parents=True, exist_ok=True)
    parsed = ExtractionSummary.from_dict(summary)

    files = {
        "components.json": json.dumps(summary, indent=2),
        "styles.css": parsed.css_file or "/* no styles captured */",
        "Components.jsx": f"// Auto-generated Components.jsx\n\n{parsed.react_file}",
        "preview.html": render_preview(parsed, show_meta=True),
    }

    written: List[Path] = []
    for name, contents in files.items():
        path = out_dir / name
        path.write_text(contents, encoding="utf-8")
        written.append(path)
    return written
