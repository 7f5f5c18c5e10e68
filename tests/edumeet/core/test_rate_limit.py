from edumeet.core.rate_limit import check_rate_limit


def test_check_rate_limit_blocks_after_limit() -> None:
    results = [check_rate_limit('login:1.2.3.4', limit=2, window_seconds=60, now=100.0) for _ in range(3)]

    assert [allowed for allowed, _, _ in results] == [True, True, False]
    assert results[-1][1] == 3
    assert results[-1][2] == 60


def test_check_rate_limit_resets_after_window() -> None:
    check_rate_limit('login:1.2.3.4', limit=1, window_seconds=60, now=100.0)
    blocked, _, _ = check_rate_limit('login:1.2.3.4', limit=1, window_seconds=60, now=130.0)

    allowed, count, _ = check_rate_limit('login:1.2.3.4', limit=1, window_seconds=60, now=161.0)

    assert blocked is False
    assert allowed is True
    assert count == 1


def test_check_rate_limit_tracks_keys_separately() -> None:
    check_rate_limit('login:1.2.3.4', limit=1, window_seconds=60, now=100.0)

    allowed, _, _ = check_rate_limit('login:5.6.7.8', limit=1, window_seconds=60, now=100.0)

    assert allowed is True
