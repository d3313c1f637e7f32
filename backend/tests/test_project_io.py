"""Project export / import tests."""

import json

import pytest
from conftest import make_scripted_project

from storystudio.orchestrator.state import merge_scene
from storystudio.project_io import export_project, import_project, load_project_file, save_project_file
from storystudio.schemas.story import Project


def _without_last_saved(text: str) -> dict:
    data = json.loads(text)
    data.pop("lastSaved", None)
    return data


def test_01_export_uses_camel_case_and_description_key():
    project = merge_scene(make_scripted_project(), 0, {"audio_data": "UklGRg=="})
    data = json.loads(export_project(project))

    assert data["config"]["sceneCount"] == 3
    assert data["mediaSettings"]["aspectRatio"] == "16:9"
    assert data["config"]["characters"][0]["description"].startswith("young woman")
    scene = data["output"]["scenes"][0]
    assert scene["audioData"] == "UklGRg=="
    assert scene["imageUrl"] is None
    assert isinstance(data["lastSaved"], int)


def test_02_export_import_export_is_stable():
    project = merge_scene(make_scripted_project(), 1, {"image_url": "data:image/png;base64,AAAA"})
    project = project.model_copy(update={"api_key": "k-1"})

    first = export_project(project)
    second = export_project(import_project(first))

    assert _without_last_saved(first) == _without_last_saved(second)


def test_03_import_fills_missing_fields():
    minimal = {
        "id": "abc",
        "config": {"premise": "A quiet town", "characters": [{"name": "Omar"}]},
        "output": {"title": "Quiet", "scenes": [{"narrative": "Once"}, {}]},
    }

    project = import_project(json.dumps(minimal))

    assert project.id == "abc"
    assert project.config.scene_count == 3
    assert project.voice_config.voice_type == "man_soft"
    assert project.image_style.art_style == "Cinematic Realistic"
    assert project.config.characters[0].visual_signature == ""
    assert [s.scene_number for s in project.output.scenes] == [1, 2]
    assert project.output.scenes[1].character_names == []
    assert project.output.summary == ""


def test_04_import_rejects_non_object():
    with pytest.raises(ValueError):
        import_project("[1, 2, 3]")


def test_05_file_round_trip(tmp_path):
    project = make_scripted_project()
    path = save_project_file(project, tmp_path / "story.json")

    loaded = load_project_file(path)

    assert isinstance(loaded, Project)
    assert loaded.output.model_dump() == project.output.model_dump()
    assert loaded.config.model_dump() == project.config.model_dump()
