from structlog.testing import CapturingLogger

from conftest import make_session
from worldclass_scheduler.matching import filter_sessions, find_matching_session, matches
from worldclass_scheduler.models import Interest


def _events(logger: CapturingLogger) -> list[str]:
    return [call.args[0] for call in logger.calls]


def test_full_title_matches_case_insensitively_without_logging():
    logger = CapturingLogger()
    session = make_session(title="Pilates Mat")
    interest = Interest(club="Titan", day="luni", time="09:00-10:00", title="PILATES MAT")

    assert matches(session, interest, logger) is True
    assert _events(logger) == []


def test_partial_title_matches_and_is_logged():
    logger = CapturingLogger()
    session = make_session(title="Pilates Mat")
    interest = Interest(club="Titan", title="pilates")

    assert matches(session, interest, logger) is True
    assert _events(logger) == ["match.partial_title"]
    assert logger.calls[0].kwargs["interest_title"] == "pilates"


def test_absent_title_does_not_match():
    session = make_session(title="Pilates Mat")
    assert matches(session, Interest(club="Titan", title="Yoga"), CapturingLogger()) is False


def test_empty_title_matches_anything_and_is_logged():
    logger = CapturingLogger()
    assert matches(make_session(title="Body Pump"), Interest(club="Titan"), logger) is True
    assert _events(logger) == ["match.any_title"]


def test_day_is_a_substring_filter():
    session = make_session(day="Luni 19.10")
    assert matches(session, Interest(club="Titan", day=" LUNI ", title="Pilates Mat"), CapturingLogger())
    assert not matches(session, Interest(club="Titan", day="Marti", title="Pilates Mat"), CapturingLogger())


def test_time_must_match_exactly_after_trimming():
    session = make_session(time=" 09:00-10:00 ")
    assert matches(session, Interest(club="Titan", time="09:00-10:00", title="Pilates"), CapturingLogger())
    assert not matches(session, Interest(club="Titan", time="09:00", title="Pilates"), CapturingLogger())


def test_find_matching_session_only_considers_the_interest_club():
    other_club = make_session(club_name="Downtown", class_id="other")
    own_club = make_session(class_id="mine")
    interest = Interest(club="Titan", title="Pilates Mat")

    assert find_matching_session([other_club, own_club], interest, CapturingLogger()) == own_club
    assert find_matching_session([other_club], interest, CapturingLogger()) is None


def test_filter_sessions_keeps_sessions_matching_any_interest_of_their_club():
    pilates = make_session(title="Pilates Mat", class_id="p")
    spinning = make_session(title="Spinning", class_id="s")
    elsewhere = make_session(club_name="Downtown", title="Pilates Mat", class_id="d")

    kept = filter_sessions(
        [pilates, spinning, elsewhere],
        {"Titan": [Interest(club="Titan", title="Pilates Mat")], "Downtown": []},
        CapturingLogger(),
    )

    assert kept == [pilates]


def test_interest_identity_ignores_english_day_name():
    first = Interest(club="Titan", day="Luni", time="09:00-10:00", title="Pilates", day_english="Monday")
    second = Interest(club="Titan", day="Luni", time="09:00-10:00", title="Pilates", day_english="monday")
    assert first == second
    assert hash(first) == hash(second)


def test_filters_fold_case_beyond_ascii():
    session = make_session(day="Luni 19.10", title="Straße Pilates")
    interest = Interest(club="Titan", day="LUNI", title="STRASSE")

    assert matches(session, interest, CapturingLogger()) is True
