import pytest

from study_viewer.index.schema import RankedResult
from study_viewer.ingest.sections import SectionIndexer
from study_viewer.navigate.controller import NavigationController

# section starts: overview=0, setup=81, usage=159; length 237
DOC1 = (
    "# Overview\n" + "a line\n" * 10
    + "# Setup\n" + "b line\n" * 10
    + "# Usage\n" + "c line\n" * 10
)
DOC2 = "# Alpha\nfirst\n# Beta\nsecond\n"


@pytest.fixture
def indexer():
    idx = SectionIndexer()
    idx.index("doc1", DOC1)
    idx.index("doc2", DOC2)
    return idx


@pytest.fixture
def nav(indexer):
    n = NavigationController(indexer, hysteresis=0.01)
    assert n.open_document("doc1")
    return n


def test_fixture_layout(indexer):
    assert [s.start_offset for s in indexer.sections("doc1")] == [0, 81, 159]
    assert indexer.document_length("doc1") == 237


def test_starts_closed(indexer):
    n = NavigationController(indexer)
    assert not n.is_open
    assert n.state.open_document_id is None
    assert n.on_scroll(0.5) is None
    assert n.next_section() is None
    assert n.prev_section() is None


def test_open_document_starts_at_first_section(nav):
    st = nav.state
    assert (st.open_document_id, st.visible_section_id, st.scroll_progress_ratio) == (
        "doc1",
        "overview",
        0.0,
    )


def test_open_unknown_document_is_noop(indexer):
    n = NavigationController(indexer)
    assert n.open_document("nope") is False
    assert not n.is_open


def test_scroll_tracks_sections(nav):
    assert nav.on_scroll(0.5) == "setup"
    assert nav.on_scroll(0.9) == "usage"
    assert nav.on_scroll(0.6) == "setup"
    assert nav.on_scroll(0.1) == "overview"
    assert nav.state.scroll_progress_ratio == 0.1


def test_hysteresis_holds_at_boundary(nav):
    nav.on_scroll(0.5)
    # offset 79: just above setup's start (81) minus the margin (2.37) -> hold
    assert nav.on_scroll(0.335) == "setup"
    assert nav.on_scroll(0.3) == "overview"
    # offset 81: at setup's start but not past it by the margin -> hold
    assert nav.on_scroll(0.3425) == "overview"
    assert nav.on_scroll(0.36) == "setup"


def test_large_jump_commits_immediately(nav):
    assert nav.on_scroll(1.0) == "usage"
    assert nav.on_scroll(0.0) == "overview"


def test_scroll_ratio_is_clamped(nav):
    nav.on_scroll(7.5)
    assert nav.state.scroll_progress_ratio == 1.0
    nav.on_scroll(-2)
    assert nav.state.scroll_progress_ratio == 0.0


def test_jump_to_unknown_section_leaves_state_unchanged(nav):
    nav.on_scroll(0.5)
    before = nav.state
    assert nav.jump_to_section("doc1", "nonexistent") is False
    assert nav.state == before
    assert nav.jump_to_section("ghost-doc", "overview") is False
    assert nav.state == before


def test_jump_within_document(nav):
    assert nav.jump_to_section("doc1", "usage")
    st = nav.state
    assert st.visible_section_id == "usage"
    assert st.scroll_progress_ratio == pytest.approx(159 / 237)


def test_jump_across_documents(nav):
    nav.on_scroll(0.9)
    assert nav.jump_to_section("doc2", "beta")
    st = nav.state
    assert st.open_document_id == "doc2"
    assert st.visible_section_id == "beta"


def test_jump_to_search_result(nav):
    hit = RankedResult(
        document_id="doc2", section_id="alpha", heading_text="Alpha", score=1, matched_terms=["first"]
    )
    assert nav.jump_to_result(hit)
    assert nav.state.open_document_id == "doc2"


def test_next_prev_are_clamped(nav):
    assert nav.prev_section() == "overview"
    assert nav.next_section() == "setup"
    assert nav.next_section() == "usage"
    assert nav.next_section() == "usage"
    assert nav.state.scroll_progress_ratio == pytest.approx(159 / 237)
    assert nav.prev_section() == "setup"


def test_reopen_discards_scroll_state(nav):
    nav.on_scroll(0.9)
    nav.open_document("doc1")
    assert nav.state.visible_section_id == "overview"
    assert nav.state.scroll_progress_ratio == 0.0


def test_state_is_a_copy(nav):
    st = nav.state
    st.visible_section_id = "usage"
    assert nav.state.visible_section_id == "overview"


def test_close(nav):
    nav.close()
    assert not nav.is_open
    assert nav.on_scroll(0.5) is None


def test_reindexed_document_falls_back_to_first_section(indexer, nav):
    nav.jump_to_section("doc1", "usage")
    indexer.index("doc1", "# Fresh\nx\n# Later\ny\n")
    assert nav.next_section() == "later"


def test_jump_to_result_in_unloaded_document_is_a_noop(nav):
    before = nav.state
    hit = RankedResult(
        document_id="ghost-doc", section_id="overview", heading_text="Overview", score=1, matched_terms=["x"]
    )
    assert nav.jump_to_result(hit) is False
    assert nav.state == before
