import pytest

from cmdvault.errors import DuplicateLabel, NotFound


def test_set_and_get(variables):
    variable = variables.set("production", label="env")
    assert variables.get(variable.ref_id) == "production"
    assert variables.resolve_label("env") == variable.ref_id
    assert variables.label_for(variable.ref_id) == "env"


def test_set_with_existing_ref_id_updates(variables):
    variable = variables.set("one")
    updated = variables.set("two", ref_id=variable.ref_id)
    assert updated.ref_id == variable.ref_id
    assert variables.get(variable.ref_id) == "two"
    assert len(variables.list()) == 1


def test_set_with_unknown_ref_id_creates_under_that_id(variables):
    variables.set("value", ref_id="HOST")
    assert variables.get("HOST") == "value"


def test_duplicate_label_rejected(variables):
    variables.create_with_label("env", "prod")
    with pytest.raises(DuplicateLabel):
        variables.create_with_label("env", "staging")
    assert [v.value for v in variables.list()] == ["prod"]


def test_update_and_relabel(variables):
    ref_id = variables.create_with_label("region", "us-east-1")
    other = variables.create_with_label("zone", "a")

    variables.update_value(ref_id, "eu-west-1")
    assert variables.get(ref_id) == "eu-west-1"
    with pytest.raises(DuplicateLabel):
        variables.set_label(other, "region")
    variables.set_label(ref_id, None)
    assert variables.resolve_label("region") is None


def test_missing_variable(variables):
    assert variables.get("zzzzzz") is None
    with pytest.raises(NotFound):
        variables.update_value("zzzzzz", "x")
    assert variables.delete("zzzzzz") is False


def test_generate_id_avoids_existing(variables, monkeypatch):
    variables.set("taken", ref_id="aaaaaa")
    picks = iter("aaaaaa" + "bbbbbb")
    monkeypatch.setattr("cmdvault.utils.id.secrets.choice", lambda alphabet: next(picks))
    assert variables.generate_id() == "bbbbbb"
