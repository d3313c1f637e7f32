"""Single-document JSON export and import of projects.

Exported files use camelCase keys and embed all media as base64, so one
file is a complete project. Import tolerates older or partial files by
filling missing fields from defaults before validation.
"""

import json
import time
from pathlib import Path
from typing import Any, Dict

from storystudio.schemas.story import Project


def _migrate_scene_dict(scene: Dict[str, Any], number: int) -> Dict[str, Any]:
    scene = dict(scene or {})
    scene.setdefault("sceneNumber", number)
    scene.setdefault("narrative", "")
    scene.setdefault("imagePrompt", "")
    scene.setdefault("motionPrompt", "")
    if not isinstance(scene.get("characterNames"), list):
        scene["characterNames"] = []
    return scene


def _migrate_project_dict(data: Dict[str, Any]) -> Dict[str, Any]:
    data = dict(data or {})
    for section in ("config", "mediaSettings", "imageStyle", "voiceConfig"):
        if not isinstance(data.get(section), dict):
            data.pop(section, None)

    output = data.get("output")
    if isinstance(output, dict):
        output = dict(output)
        output.setdefault("title", data.get("title") or "")
        output.setdefault("summary", "")
        scenes = output.get("scenes") if isinstance(output.get("scenes"), list) else []
        output["scenes"] = [
            _migrate_scene_dict(s, i) for i, s in enumerate(scenes, start=1)
        ]
        data["output"] = output
    else:
        data["output"] = None
    return data


def export_project(project: Project, touch: bool = True) -> str:
    """Serialize a project to one JSON document.

    Args:
        project: Project to export
        touch: Stamp lastSaved with the current time
    """
    if touch:
        project = project.model_copy(update={"last_saved": int(time.time() * 1000)})
    return project.model_dump_json(by_alias=True, indent=2)


def import_project(text: str) -> Project:
    """Parse an exported project, filling any missing optional field.

    Raises:
        ValueError: Not a JSON object
        pydantic.ValidationError: Fields present but invalid
    """
    raw = json.loads(text)
    if not isinstance(raw, dict):
        raise ValueError("Project file must contain a JSON object")
    return Project.model_validate(_migrate_project_dict(raw))


def save_project_file(project: Project, path: Path) -> Path:
    path = Path(path)
    path.write_text(export_project(project), encoding="utf-8")
    return path


def load_project_file(path: Path) -> Project:
    return import_project(Path(path).read_text(encoding="utf-8"))
