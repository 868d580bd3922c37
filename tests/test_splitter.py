import pytest

from prettystream.splitter import compute_chunk_boundaries, iter_chunks


def _lines(count, width=8):
    return "".join(f"line{i:0{width - 5}d}\n" for i in range(count))


class TestComputeChunkBoundaries:

    def test_short_text_is_one_chunk(self):
        assert compute_chunk_boundaries("abc", 10) == [0, 3]
        assert compute_chunk_boundaries("abc", 3) == [0, 3]

    def test_empty_text_still_yields_one_chunk(self):
        assert compute_chunk_boundaries("", 10) == [0, 0]

    def test_rejects_non_positive_target(self):
        with pytest.raises(ValueError):
            compute_chunk_boundaries("abc", 0)

    def test_cuts_snap_forward_to_line_starts(self):
        text = _lines(100)
        bounds = compute_chunk_boundaries(text, 50)
        assert bounds[0] == 0 and bounds[-1] == len(text)
        # raw cut at 50 lies inside "line006\n" (48..55)
        assert bounds[1] == 56
        for b in bounds[1:-1]:
            assert text[b - 1] == "\n"

    def test_snaps_backward_when_nothing_ahead(self):
        text = "aaaaaaa\n" + "x" * 100
        bounds = compute_chunk_boundaries(text, 9, window=5)
        assert bounds[1] == 8

    def test_falls_back_to_raw_offset_without_newlines(self):
        assert compute_chunk_boundaries("x" * 25, 10) == [0, 10, 20, 25]

    def test_backward_search_never_crosses_previous_boundary(self):
        text = "\n" + "x" * 30
        bounds = compute_chunk_boundaries(text, 10, window=50)
        assert bounds == sorted(set(bounds))
        assert bounds[-1] == len(text)

    @pytest.mark.parametrize("target", [1, 3, 7, 64, 1000])
    def test_boundaries_cover_text_exactly(self, target):
        text = '{\n  "a": "' + "z" * 300 + '",\n  "b": [\n    1,\n    2\n  ]\n}'
        bounds = compute_chunk_boundaries(text, target, window=20)
        assert bounds[0] == 0 and bounds[-1] == len(text)
        assert all(a < b for a, b in zip(bounds, bounds[1:]))
        assert "".join(piece for _, _, _, piece in iter_chunks(text, bounds)) == text

    def test_is_deterministic(self):
        text = _lines(500)
        assert compute_chunk_boundaries(text, 97) == compute_chunk_boundaries(text, 97)


class TestIterChunks:

    def test_yields_index_and_offsets(self):
        text = "ab\ncd\nef"
        bounds = [0, 3, 6, 8]
        assert list(iter_chunks(text, bounds)) == [
            (0, 0, 3, "ab\n"),
            (1, 3, 6, "cd\n"),
            (2, 6, 8, "ef"),
        ]
