import pytest

from study_viewer.errors import UnknownSectionReference
from study_viewer.ingest.sections import ROOT_SECTION_ID, SectionIndexer, slugify

DOC = "# Overview\nIntro text.\n# Setup\nInstall it.\n# Usage\nRun it.\n"


def _ids(secs):
    return [s.section_id for s in secs]


def test_uniform_headings_partition_text():
    secs = SectionIndexer().index("intro", DOC)
    assert _ids(secs) == ["overview", "setup", "usage"]

    starts = [s.start_offset for s in secs]
    assert all(a < b for a, b in zip(starts, starts[1:]))
    assert secs[0].start_offset == 0
    assert secs[-1].end_offset == len(DOC)
    for a, b in zip(secs, secs[1:]):
        assert a.end_offset == b.start_offset
    assert "".join(DOC[s.start_offset : s.end_offset] for s in secs) == DOC
    assert DOC[secs[1].start_offset :].startswith("# Setup")


def test_deeper_headings_become_anchors():
    text = "# A\n## A one\ntext\n## A two\n# B\nmore\n"
    secs = SectionIndexer().index("d", text)
    assert _ids(secs) == ["a", "b"]
    assert [a.anchor_id for a in secs[0].anchors] == ["a-one", "a-two"]
    assert secs[0].anchors[0].level == 2
    assert secs[0].anchors[0].offset == text.index("## A one")
    assert secs[1].anchors == []


def test_first_heading_sets_the_section_level():
    secs = SectionIndexer().index("d", "## A\nx\n# B\ny\n## C\nz\n")
    assert _ids(secs) == ["a", "b"]
    assert [a.heading_text for a in secs[1].anchors] == ["C"]


def test_duplicate_headings_get_suffixes():
    secs = SectionIndexer().index("d", "## Notes\na\n## Notes\nb\n## Notes\nc\n")
    assert _ids(secs) == ["notes", "notes-1", "notes-2"]

    secs = SectionIndexer().index("d", "## Setup\n## Setup 1\n## Setup\n")
    ids = _ids(secs)
    assert ids == ["setup", "setup-1", "setup-2"]
    assert len(set(ids)) == len(ids)


def test_no_headings_yields_root_section():
    text = "just some notes\nwith no structure\n"
    secs = SectionIndexer().index("d", text)
    assert len(secs) == 1
    root = secs[0]
    assert root.section_id == ROOT_SECTION_ID
    assert (root.start_offset, root.end_offset) == (0, len(text))
    assert root.level == 0
    assert "with no structure" in root.plain_text


def test_empty_document():
    secs = SectionIndexer().index("d", "")
    assert _ids(secs) == [ROOT_SECTION_ID]
    assert (secs[0].start_offset, secs[0].end_offset) == (0, 0)


def test_malformed_heading_markers_are_plain_text():
    for text in ["#nospace\nbody\n", "#\nbody\n", "####### seven\nbody\n"]:
        secs = SectionIndexer().index("d", text)
        assert _ids(secs) == [ROOT_SECTION_ID], text


def test_headings_inside_code_fences_are_ignored():
    text = "# Real\n```bash\n# not a heading\necho hi\n```\nafter\n"
    secs = SectionIndexer().index("d", text)
    assert _ids(secs) == ["real"]
    assert "# not a heading" in secs[0].plain_text
    assert "echo hi" in secs[0].plain_text
    assert "```" not in secs[0].plain_text


def test_preamble_belongs_to_first_section():
    text = "intro line\n\n# First\nx\n# Second\ny\n"
    secs = SectionIndexer().index("d", text)
    assert _ids(secs) == ["first", "second"]
    assert secs[0].start_offset == 0
    assert "intro line" in secs[0].plain_text


def test_plain_text_strips_markdown_syntax():
    text = "# Title ##\nSome **bold** and [a link](http://x.io) and `code`.\n> quoted\n- item\n"
    sec = SectionIndexer().index("d", text)[0]
    assert sec.heading_text == "Title"
    assert sec.plain_text == "Title\nSome bold and a link and code.\nquoted\nitem"


def test_crlf_is_normalized():
    raw = "# A\r\nx\r\n# B\r\ny\r\n"
    secs = SectionIndexer().index("d", raw)
    assert _ids(secs) == ["a", "b"]
    assert secs[-1].end_offset == len(raw.replace("\r\n", "\n"))


def test_reindex_replaces_sections():
    idx = SectionIndexer()
    idx.index("d", "# Old\n")
    idx.index("d", "# New\n")
    assert _ids(idx.sections("d")) == ["new"]
    assert not idx.has_section("d", "old")


def test_section_at_binary_search():
    idx = SectionIndexer()
    secs = idx.index("intro", DOC)
    assert idx.section_at("intro", 0) == "overview"
    assert idx.section_at("intro", secs[1].start_offset) == "setup"
    assert idx.section_at("intro", secs[1].start_offset - 1) == "overview"
    assert idx.section_at("intro", len(DOC) - 1) == "usage"
    assert idx.section_at("intro", -5) == "overview"
    assert idx.section_at("intro", 10**6) == "usage"
    assert idx.section_at("nope", 0) is None


def test_slugify():
    assert slugify("Getting Started!") == "getting-started"
    assert slugify("  C++ & Rust  ") == "c-rust"
    assert slugify("???") == "section"


def test_section_lookup_in_unindexed_document_raises_unknown_reference():
    idx = SectionIndexer()
    with pytest.raises(UnknownSectionReference):
        idx.section("ghost-doc", "overview")
    with pytest.raises(KeyError):
        idx.position("ghost-doc", "overview")
