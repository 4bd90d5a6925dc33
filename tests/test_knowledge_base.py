import pytest

from ausfallticker.errors import KnowledgeBaseConflict
from ausfallticker.lines.definitions import DefinitionStore
from ausfallticker.lines.knowledge_base import TrainLineKnowledgeBase, build_snapshot
from ausfallticker.models.train_line_definition import TrainLineDefinition


def _def(line, numbers, connected=None):
    return TrainLineDefinition(line=line, train_numbers=numbers, connected_lines=connected)


def test_unconnected_lines_sharing_a_number_conflict():
    with pytest.raises(KnowledgeBaseConflict) as exc:
        build_snapshot([_def("S1", ["10050"]), _def("S2", ["10050", "10051"])])

    assert exc.value.train_number == "10050"
    assert (exc.value.existing_line, exc.value.new_line) == ("S1", "S2")


def test_connected_lines_may_share_numbers_either_direction():
    snapshot = build_snapshot([_def("S1", ["10050"]), _def("S11", ["10050"], connected=["S1"])])

    entry = snapshot.lookup("10050")
    assert entry.primary_line == "S1"
    assert entry.lines == ("S1", "S11")


def test_connection_is_not_transitive():
    with pytest.raises(KnowledgeBaseConflict):
        build_snapshot(
            [
                _def("S1", ["10050"], connected=["S11"]),
                _def("S11", [], connected=["S12"]),
                _def("S12", ["10050"]),
            ]
        )


def test_lookup_line_prefers_mentioned_then_smallest_line():
    snapshot = build_snapshot(
        [
            _def("S3", ["1", "2", "3"], connected=["S31", "S32"]),
            _def("S31", ["1", "2"]),
            _def("S32", ["1"]),
        ]
    )

    assert snapshot.lookup_line("1") == "S3"
    assert snapshot.lookup_line("1", ["S4"]) == "S3"
    assert snapshot.lookup_line("1", ["s31"]) == "S31"
    assert snapshot.lookup_line("1", ["S3", "S31", "S32"]) == "S32"
    assert snapshot.lookup_line("99", ["S3"]) is None


def test_load_from_disk_and_record_fallback(write_definition):
    path = write_definition("S4", ["70010"])
    kb = TrainLineKnowledgeBase(DefinitionStore(write_definition.directory))

    before = kb.load()
    after = kb.record_fallback("S4", "70019")

    assert after.version == before.version + 1
    assert before.lookup("70019") is None
    assert after.lookup("70019").primary_line == "S4"
    assert after.line_train_count["S4"] == 2
    assert kb.current is after
    assert '"70019"' in path.read_text(encoding="utf-8")


def test_record_fallback_without_persistence(write_definition):
    path = write_definition("S4", ["70010"])
    before = path.read_text(encoding="utf-8")
    kb = TrainLineKnowledgeBase(DefinitionStore(write_definition.directory), persist_fallback=False)
    kb.load()

    assert kb.record_fallback("S4", "70019").lookup("70019") is not None
    assert path.read_text(encoding="utf-8") == before


def test_load_raises_on_conflicting_files(write_definition):
    write_definition("S1", ["10050"])
    write_definition("S2", ["10050"])
    kb = TrainLineKnowledgeBase(DefinitionStore(write_definition.directory))

    with pytest.raises(KnowledgeBaseConflict):
        kb.load()
    assert len(kb.use_empty()) == 0
