"""Project state merging and session epoch tests."""

import pytest
from conftest import make_scripted_project

from storystudio.orchestrator.state import (
    StudioSession,
    merge_scene,
    set_character_signature,
)
from storystudio.schemas.story import Project


def test_01_merge_replaces_one_slot_and_keeps_other_scenes():
    project = make_scripted_project()
    before = project.output.scenes

    merged = merge_scene(project, 1, {"image_url": "data:image/png;base64,AAAA"})

    after = merged.output.scenes
    assert after[1].image_url == "data:image/png;base64,AAAA"
    assert after[0] is before[0]
    assert after[2] is before[2]
    # input snapshot untouched
    assert project.output.scenes[1].image_url is None


def test_02_merge_replaces_rather_than_appends():
    project = make_scripted_project()
    first = merge_scene(project, 0, {"audio_data": "one"})
    second = merge_scene(first, 0, {"audio_data": "two"})
    assert second.output.scenes[0].audio_data == "two"


def test_03_merge_rejects_script_fields_and_bad_index():
    project = make_scripted_project()
    with pytest.raises(ValueError):
        merge_scene(project, 0, {"narrative": "rewritten"})
    with pytest.raises(IndexError):
        merge_scene(project, 3, {"audio_data": "x"})
    with pytest.raises(ValueError):
        merge_scene(Project(), 0, {"audio_data": "x"})


def test_04_set_character_signature_is_copy_on_write():
    project = make_scripted_project()
    updated = set_character_signature(project, "char_voss", "bald, eye patch")

    assert updated.config.characters[1].visual_signature == "bald, eye patch"
    assert project.config.characters[1].visual_signature != "bald, eye patch"
    with pytest.raises(KeyError):
        set_character_signature(project, "char_missing", "x")


def test_05_stale_epoch_commit_is_dropped():
    session = StudioSession(make_scripted_project())
    epoch = session.epoch
    session.start_over()

    assert not session.commit_scene(epoch, 0, {"audio_data": "late"})
    assert session.project.output is None


def test_06_start_over_keeps_only_api_key():
    project = make_scripted_project().model_copy(update={"api_key": "k-123"})
    session = StudioSession(project)
    session.report_error("Image failed: boom")

    session.start_over()

    assert session.project.api_key == "k-123"
    assert session.project.output is None
    assert session.project.id != project.id
    assert session.error is None
    assert session.epoch == 1


def test_07_error_persists_until_dismissed_or_replaced():
    session = StudioSession(make_scripted_project())
    session.report_error("Audio failed: one")
    session.commit_scene(session.epoch, 0, {"audio_data": "x"})
    assert session.error == "Audio failed: one"

    session.report_error("Image failed: two")
    assert session.error == "Image failed: two"
    session.dismiss_error()
    assert session.error is None
