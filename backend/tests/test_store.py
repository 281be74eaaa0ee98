import asyncio
import json

import pytest
from pydantic import ValidationError

from conftest import run
from survey_bot.models import Survey
from survey_bot.services.store import SettingsStore


def make_survey(form_id="f1"):
    return Survey(
        form_id=form_id,
        item_id="item-1",
        conv_id="conv-1",
        question="Lunch?",
        answers=["Pizza", "Salad"],
        answer_user_ids=[["a@x.com"], []],
    )


def test_init_creates_empty_data_file(storage, tmp_path):
    store = SettingsStore(storage, "db/data.json")
    store.init()

    assert json.loads((tmp_path / "db" / "data.json").read_text()) == {}
    assert store.get_users() == []


def test_missing_user_has_no_surveys(store):
    assert store.get_settings("nobody") == []
    assert store.get_token("nobody") is None


def test_surveys_round_trip_through_file(store, storage):
    surveys = [make_survey("f1"), make_survey("f2")]
    run(store.save_settings("u1", surveys))

    reloaded = SettingsStore(storage, "db/data.json")
    reloaded.init()

    assert reloaded.get_settings("u1") == surveys
    assert reloaded.get_users() == ["u1"]


def test_token_and_settings_live_side_by_side(store, storage, tmp_path):
    run(store.save_token("u1", {"access_token": "abc"}))
    run(store.save_settings("u1", [make_survey()]))

    data = json.loads((tmp_path / "db" / "data.json").read_text())
    assert data["u1"]["token"] == {"access_token": "abc"}
    assert data["u1"]["settings"][0]["form_id"] == "f1"


def test_returned_values_are_copies(store):
    run(store.save_token("u1", {"access_token": "abc"}))

    token = store.get_token("u1")
    token["access_token"] = "changed"

    assert store.get_token("u1") == {"access_token": "abc"}


def test_malformed_settings_count_as_empty(storage, tmp_path):
    (tmp_path / "db").mkdir()
    (tmp_path / "db" / "data.json").write_text(json.dumps({
        "u1": {"settings": [{"question": "no ids"}]},
        "u2": {"settings": "garbage"},
    }))
    store = SettingsStore(storage, "db/data.json")
    store.init()

    assert store.get_settings("u1") == []
    assert store.get_settings("u2") == []


def test_non_object_data_file_is_ignored(storage, tmp_path):
    (tmp_path / "db").mkdir()
    (tmp_path / "db" / "data.json").write_text("[]")
    store = SettingsStore(storage, "db/data.json")
    store.init()

    assert store.get_users() == []


def test_truncated_data_file_is_ignored(storage, tmp_path):
    (tmp_path / "db").mkdir()
    (tmp_path / "db" / "data.json").write_text('{"u1": {"settings": [')
    store = SettingsStore(storage, "db/data.json")
    store.init()

    assert store.get_users() == []
    assert store.get_settings("u1") == []


def test_concurrent_saves_for_many_users_all_land(store, storage, tmp_path):
    user_ids = [f"u{i}" for i in range(30)]
    scopes = ["ALL"] * 2000

    async def save_all():
        await asyncio.gather(*(
            store.save_token(user_id, {"access_token": user_id, "scope": scopes})
            for user_id in user_ids
        ))

    run(save_all())

    reloaded = SettingsStore(storage, "db/data.json")
    reloaded.init()
    assert sorted(reloaded.get_users()) == sorted(user_ids)
    assert all(reloaded.get_token(u)["access_token"] == u for u in user_ids)
    assert not (tmp_path / "db" / "data.json.tmp").exists()


def test_survey_needs_one_respondent_list_per_answer():
    with pytest.raises(ValidationError):
        Survey(form_id="f1", item_id="item-1", conv_id="conv-1", question="Lunch?",
               answers=["Pizza", "Salad", "Soup"], answer_user_ids=[[], []])


def test_stored_survey_with_missing_respondent_list_counts_as_empty(storage, tmp_path):
    (tmp_path / "db").mkdir()
    (tmp_path / "db" / "data.json").write_text(json.dumps({
        "u1": {"settings": [{
            "form_id": "f1", "item_id": "item-1", "conv_id": "conv-1", "question": "Lunch?",
            "answers": ["Pizza", "Salad", "Soup"], "answer_user_ids": [[], []],
        }]},
    }))
    store = SettingsStore(storage, "db/data.json")
    store.init()

    assert store.get_settings("u1") == []
