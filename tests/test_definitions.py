import json

from ausfallticker.lines.definitions import (
    DefinitionStore,
    TrainLineObservations,
    slugify_line_id,
    sort_train_numbers,
)
from ausfallticker.lines.knowledge_base import TrainLineKnowledgeBase


def test_slugify_line_id():
    assert slugify_line_id(" S5 ") == "s5"
    assert slugify_line_id("RE 45/S3") == "re-45-s3"


def test_sort_train_numbers_is_numeric():
    assert sort_train_numbers(["10010", "9", "10002", "10010"]) == ["9", "10002", "10010"]


def test_observations_normalize_and_dedupe():
    obs = TrainLineObservations()
    obs.record(" S5 ", " 84888 ")
    obs.record("S5", "84888")
    obs.record("", "1")
    obs.record("S4", "  ")

    assert len(obs) == 1
    assert obs.get("S5") == frozenset({"84888"})


def test_merge_observations_adds_sorted_numbers(write_definition):
    path = write_definition("S5", ["85010"], connected=["S51"])
    store = DefinitionStore(write_definition.directory)
    obs = TrainLineObservations()
    for n in ("85003", "85010", "85100"):
        obs.record("S5", n)
    obs.record("S4", "70010")

    report = store.merge_observations(obs)

    assert report.added == {"S5": ["85003", "85100"], "S4": ["70010"]}
    assert report.conflicts == []
    assert json.loads(path.read_text(encoding="utf-8")) == {
        "line": "S5",
        "trainNumbers": ["85003", "85010", "85100"],
        "connectedLines": ["S51"],
    }
    s4 = json.loads((write_definition.directory / "s4.json").read_text(encoding="utf-8"))
    assert s4 == {"line": "S4", "trainNumbers": ["70010"]}


def test_merge_skips_file_owned_by_another_line(write_definition):
    path = write_definition("S-5", ["1"], name="s5.json")
    before = path.read_text(encoding="utf-8")
    store = DefinitionStore(write_definition.directory)
    obs = TrainLineObservations()
    obs.record("S5", "2")

    assert store.merge_observations(obs).added == {}
    assert path.read_text(encoding="utf-8") == before


def test_malformed_file_is_treated_as_empty_on_merge(write_definition):
    write_definition.directory.mkdir(parents=True)
    path = write_definition.directory / "s5.json"
    path.write_text("{not json", encoding="utf-8")
    store = DefinitionStore(write_definition.directory)

    assert store.add_train_numbers("S5", ["84888"]).added == ["84888"]
    assert json.loads(path.read_text(encoding="utf-8"))["trainNumbers"] == ["84888"]


def test_read_all_reports_malformed_files(write_definition):
    write_definition("S4", ["70010"])
    (write_definition.directory / "broken.json").write_text("[1, 2", encoding="utf-8")
    (write_definition.directory / "noline.json").write_text('{"trainNumbers": []}', encoding="utf-8")

    definitions, problems = DefinitionStore(write_definition.directory).read_all()

    assert [d.line for d in definitions] == ["S4"]
    assert sorted(p.path.name for p in problems) == ["broken.json", "noline.json"]


def test_read_all_without_directory(tmp_path):
    assert DefinitionStore(tmp_path / "missing").read_all() == ([], [])


def test_merge_leaves_out_number_of_unconnected_line(write_definition):
    write_definition("S4", ["10050"])
    s5 = write_definition("S5", ["85001"])
    store = DefinitionStore(write_definition.directory)
    obs = TrainLineObservations()
    obs.record("S5", "10050")
    obs.record("S5", "85003")

    report = store.merge_observations(obs)

    assert report.added == {"S5": ["85003"]}
    assert [(c.train_number, c.existing_line, c.new_line) for c in report.conflicts] == [("10050", "S4", "S5")]
    assert json.loads(s5.read_text(encoding="utf-8"))["trainNumbers"] == ["85001", "85003"]

    snapshot = TrainLineKnowledgeBase(store).load()
    assert snapshot.lookup("10050").lines == ("S4",)
    assert snapshot.lookup("85003").lines == ("S5",)


def test_merge_shares_number_with_connected_line(write_definition):
    write_definition("S4", ["10050"])
    write_definition("S5", ["85001"], connected=["S4"])
    store = DefinitionStore(write_definition.directory)
    obs = TrainLineObservations()
    obs.record("S5", "10050")

    report = store.merge_observations(obs)

    assert report.added == {"S5": ["10050"]}
    assert report.conflicts == []
    assert TrainLineKnowledgeBase(store).load().lookup("10050").lines == ("S4", "S5")


def test_new_line_file_cannot_take_number_of_unconnected_line(write_definition):
    write_definition("S4", ["10050"])
    store = DefinitionStore(write_definition.directory)

    update = store.add_train_numbers("S7", ["10050"])

    assert update.added == []
    assert update.conflicts[0].existing_line == "S4"
    assert not (write_definition.directory / "s7.json").exists()
