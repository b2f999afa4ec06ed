from scene_montage.subtitles import sanitize_subtitle_file, sanitize_subtitles, wrap_cue_text

LONG_TEXT = (
    "The quick brown fox jumps over the lazy dog while the farmer watches "
    "from the porch and the sun slowly sets behind the distant hills of the valley"
)


def _cue_blocks(text):
    return [block.split("\n") for block in text.strip().split("\n\n")]


def test_single_short_word_is_unchanged():
    assert wrap_cue_text("abcdefghij") == ["abcdefghij"]


def test_empty_text_yields_one_empty_line():
    assert wrap_cue_text("") == [""]
    assert wrap_cue_text("   ") == [""]


def test_greedy_wrap_respects_line_length():
    lines = wrap_cue_text("one two three four five six seven eight nine ten eleven")
    assert len(lines) == 2
    assert all(len(line) <= 45 for line in lines)


def test_more_than_two_lines_are_folded_at_the_midpoint():
    """
    The greedy pass gives more than two lines, which are folded into two by
    splitting the list of lines, not by re-wrapping.
    """
    greedy = wrap_cue_text(LONG_TEXT, max_length=45)
    assert len(greedy) == 2

    words = LONG_TEXT.split()
    assert " ".join(greedy).split() == words


def test_midpoint_uses_ceiling_for_odd_line_counts():
    # Each word is 10 chars; with max_length 10 every word lands on its own line.
    words = ["aaaaaaaaaa", "bbbbbbbbbb", "cccccccccc"]
    assert wrap_cue_text(" ".join(words), max_length=10) == [
        "aaaaaaaaaa bbbbbbbbbb",
        "cccccccccc",
    ]


def test_oversized_single_word_stays_on_its_own_line():
    word = "x" * 60
    assert wrap_cue_text(word) == [word]


def test_sanitize_preserves_words_order_and_caps_lines():
    srt = (
        "1\n00:00:00,000 --> 00:00:02,000\nHello   there\n\n"
        f"2\n00:00:02,000 --> 00:00:05,000\n{LONG_TEXT[:80]}\n{LONG_TEXT[80:]}\n"
    )
    result = sanitize_subtitles(srt)

    blocks = _cue_blocks(result)
    assert blocks[0] == ["1", "00:00:00,000 --> 00:00:02,000", "Hello there"]
    assert blocks[1][:2] == ["2", "00:00:02,000 --> 00:00:05,000"]
    assert len(blocks[1][2:]) <= 2

    original_words = srt.replace("\n", " ").split()
    output_words = result.replace("\n", " ").split()
    assert output_words == original_words


def test_short_blocks_pass_through_unchanged():
    srt = "1\n00:00:00,000 --> 00:00:01,000\n\nstray line\n"
    result = sanitize_subtitles(srt)
    assert _cue_blocks(result) == [["1", "00:00:00,000 --> 00:00:01,000"], ["stray line"]]


def test_windows_line_endings_and_extra_blank_lines():
    srt = "\ufeff1\r\n00:00:00,000 --> 00:00:01,000\r\nHi\r\n\r\n\r\n2\r\n00:00:01,000 --> 00:00:02,000\r\nBye\r\n"
    assert sanitize_subtitles(srt) == (
        "1\n00:00:00,000 --> 00:00:01,000\nHi\n\n2\n00:00:01,000 --> 00:00:02,000\nBye\n"
    )


def test_sanitize_file(tmp_path):
    source = tmp_path / "in.srt"
    source.write_text("1\n00:00:00,000 --> 00:00:01,000\nsome   spaced    text\n", encoding="utf-8")
    target = sanitize_subtitle_file(source, tmp_path / "out.srt")
    assert target.read_text(encoding="utf-8") == "1\n00:00:00,000 --> 00:00:01,000\nsome spaced text\n"
