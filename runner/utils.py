from __future__ import annotations

import base64
import json
from pathlib import Path

from runner.types import Exported, SmokeError

# Small but covers every property kind the serializer knows about.
SAMPLE_SCENE: dict = {
    "objects": [
        {
            "ClassName": "Model",
            "Name": "SmokeModel",
            "Properties": {},
            "Children": [
                {
                    "ClassName": "Part",
                    "Name": "Base & Top <1>",
                    "Properties": {
                        "Size": {"type": "Vector3", "x": 4, "y": 1, "z": 2},
                        "CFrame": {"type": "CFrame", "components": []},
                        "Color": {"type": "Color3", "r": 0.5, "g": 0.25, "b": 1},
                        "Anchored": True,
                        "Material": {"value": "Plastic"},
                    },
                }
            ],
        }
    ]
}

_EXPECTED_TAGS = ("<Vector3 ", "<CoordinateFrame ", "<Color3 ", "&amp;", "&lt;1&gt;")


def load_scene(path: str | None) -> dict:
    """Return the scene from a JSON file, or the built-in sample."""
    if path is None:
        return SAMPLE_SCENE
    p = Path(path)
    if not p.is_file():
        raise SmokeError(f"scene file not found: {p}")
    try:
        return json.loads(p.read_text(encoding="utf-8"))
    except ValueError as e:
        raise SmokeError(f"scene file is not valid JSON: {p}") from e


def summarize(
    *, exported: Exported, reimported: dict, deleted: bool, check_tags: bool
) -> tuple[dict, int]:
    """Compare exported and re-imported bytes; return summary and exit code."""
    sent = base64.b64decode(exported.file_data)
    back = base64.b64decode(reimported.get("data", ""))
    xml = sent.decode("utf-8", errors="replace")

    failures: list[str] = []
    if not xml.startswith('<?xml version="1.0" encoding="UTF-8"?>'):
        failures.append("export is missing the XML declaration")
    if len(sent) != exported.file_size:
        failures.append("fileSize does not match decoded fileData")
    if back != sent:
        failures.append("re-imported bytes differ from exported bytes")
    if not deleted:
        failures.append("API key was not deleted")
    if check_tags:
        failures.extend(f"missing {tag!r} in export" for tag in _EXPECTED_TAGS if tag not in xml)

    summary = {
        "component": "runner",
        "event": "summary",
        "file_name": exported.file_name,
        "file_size": exported.file_size,
        "reimported_size": len(back),
        "key_deleted": deleted,
        "failures": failures,
    }
    return summary, (0 if not failures else 1)
