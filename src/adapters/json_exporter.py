"""JSON export of a snapshot.

Why JSON:
- Other tools (spreadsheets, notebooks, dashboards) can read it directly.
- Keeps a point-in-time copy of the site without re-fetching.
"""

from __future__ import annotations

import json
from pathlib import Path

from core.domain.models import Snapshot


def export_snapshot_json(*, snapshot: Snapshot, output_path: Path) -> Path:
    """Write `snapshot` as UTF-8 JSON with stable key order."""

    output_path.parent.mkdir(parents=True, exist_ok=True)
    payload = snapshot.model_dump(mode="json", by_alias=True)
    output_path.write_text(
        json.dumps(payload, ensure_ascii=False, indent=2, sort_keys=True) + "\n",
        encoding="utf-8",
    )
    return output_path
