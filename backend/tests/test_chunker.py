import math

import pytest

from codereview.models.repo import RepoFile
from codereview.services.chunker import Chunker, chunk_text


def _rebuild(chunks, stride):
    return "".join(c[:stride] for c in chunks[:-1]) + chunks[-1]


def test_short_text_is_single_chunk():
    assert chunk_text("def main():\n    pass\n", 1000, 200) == ["def main():\n    pass\n"]


def test_empty_text_has_no_chunks():
    assert chunk_text("", 1000, 200) == []


@pytest.mark.parametrize("length", [1, 799, 800, 801, 1000, 2600, 5123])
def test_chunk_count_follows_stride(length):
    text = "a" * length
    assert len(chunk_text(text, 1000, 200)) == math.ceil(length / 800)


def test_windows_overlap_and_cover_the_text():
    text = "".join(chr(ord("a") + i % 26) for i in range(2600))
    chunks = chunk_text(text, 1000, 200)

    assert [len(c) for c in chunks] == [1000, 1000, 1000, 200]
    assert chunks[0][800:] == chunks[1][:200]
    assert chunks[1][800:] == chunks[2][:200]
    assert _rebuild(chunks, 800) == text


def test_last_chunks_may_be_shorter():
    text = "0123456789" * 25  # 250 chars
    chunks = chunk_text(text, 100, 20)

    assert [len(c) for c in chunks] == [100, 100, 90, 10]
    assert _rebuild(chunks, 80) == text


def test_overlap_not_smaller_than_window_still_terminates():
    chunks = chunk_text("abcdef", 3, 5)
    assert chunks == ["abc", "bcd", "cde", "def", "ef", "f"]


def test_zero_overlap_gives_disjoint_windows():
    assert chunk_text("abcdefg", 3, 0) == ["abc", "def", "g"]


@pytest.mark.parametrize("window_size,overlap", [(0, 0), (-5, 0), (10, -1)])
def test_invalid_parameters_raise(window_size, overlap):
    with pytest.raises(ValueError):
        chunk_text("text", window_size, overlap)


def test_chunk_file_uses_blob_sha_for_ids():
    chunker = Chunker(window_size=10, overlap=2)
    file = RepoFile(path="src/app/main.py", sha="abc123", size=25)

    chunks = chunker.chunk_file("acme/shop", file, "a" * 25)

    assert [c.chunk_id for c in chunks] == [f"abc123-chunk-{i}" for i in range(4)]
    assert all(c.total_chunks == 4 for c in chunks)
    meta = chunks[1].metadata
    assert meta.repo == "acme/shop"
    assert meta.path == "src/app/main.py"
    assert meta.file_type == "py"
    assert meta.chunk_index == 1


def test_chunk_file_is_deterministic():
    chunker = Chunker(window_size=50, overlap=10)
    file = RepoFile(path="lib/util.js", sha="f00d", size=120)
    content = "function f() { return 1; }\n" * 5

    first = chunker.chunk_file("acme/shop", file, content)
    second = chunker.chunk_file("acme/shop", file, content)

    assert [(c.chunk_id, c.text) for c in first] == [(c.chunk_id, c.text) for c in second]


def test_chunker_rejects_invalid_configuration():
    with pytest.raises(ValueError):
        Chunker(window_size=100, overlap=-1)


def test_chunker_rejects_zero_window():
    with pytest.raises(ValueError):
        Chunker(window_size=0, overlap=0)
