from pitchai.backend.metrics import count_filler_words, count_words, words_per_minute


def test_count_filler_words_counts_each_occurrence():
    stats = count_filler_words("I was, like, really like this")

    assert stats.count == 2
    assert stats.breakdown == {"like": 2}
    # two fillers out of six whitespace tokens
    assert stats.percentage == 33.0


def test_count_filler_words_respects_word_boundaries():
    stats = count_filler_words("It is likely that the product sounds unlike others")
    assert stats.count == 0
    assert stats.percentage == 0.0
    assert stats.breakdown == {}


def test_count_filler_words_is_case_insensitive_and_matches_phrases():
    stats = count_filler_words("Um, you know, we basically SO wanted this. Uh, You Know?")

    assert stats.breakdown["you know"] == 2
    assert stats.breakdown["um"] == 1
    assert stats.breakdown["uh"] == 1
    assert stats.breakdown["basically"] == 1
    assert stats.breakdown["so"] == 1
    assert stats.count == 6


def test_count_filler_words_matches_phrase_across_line_break():
    assert count_filler_words("you\nknow what I mean").breakdown == {"you know": 1}


def test_count_filler_words_empty_transcript():
    for transcript in ("", "   ", None):
        stats = count_filler_words(transcript)
        assert stats.count == 0
        assert stats.percentage == 0.0


def test_count_words_splits_on_whitespace():
    assert count_words("one  two\nthree\tfour") == 4
    assert count_words("") == 0


def test_words_per_minute():
    transcript = " ".join(["word"] * 150)
    assert words_per_minute(transcript, 60) == 150
    assert words_per_minute(transcript, 120) == 75


def test_words_per_minute_with_zero_duration():
    assert words_per_minute("some words here", 0) == 0
    assert words_per_minute("some words here", -5) == 0


def test_filler_percentage_is_capped_when_fillers_share_a_token():
    # "um,um,um" is one whitespace token holding three fillers
    stats = count_filler_words("um,um,um okay")

    assert stats.count == 3
    assert stats.breakdown == {"um": 3}
    assert stats.percentage == 100.0
