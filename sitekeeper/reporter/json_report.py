"""JSON result document output."""

from __future__ import annotations

import json
from pathlib import Path

from sitekeeper.models.verdict import ComparisonVerdict


def write_result_document(verdict: ComparisonVerdict, output_path: Path) -> None:
    """Write the machine-readable comparison result, replacing any previous one."""
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w") as f:
        json.dump(verdict.to_document(), f, indent=2)
