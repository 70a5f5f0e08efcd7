from app.services.lifecycle import RequestLifecycleGuard


def test_guard_only_latest_token_is_current() -> None:
    guard = RequestLifecycleGuard()
    first = guard.begin("batman")
    second = guard.begin("batman begins")

    assert guard.is_current(first) is False
    assert guard.is_current(second) is True
    assert second.generation > first.generation

    guard.invalidate()
    assert guard.is_current(second) is False


def test_tokens_carry_query_and_increasing_generations() -> None:
    guard = RequestLifecycleGuard()

    tokens = [guard.begin(query) for query in ("ba", "bat", "batman")]

    assert [token.query for token in tokens] == ["ba", "bat", "batman"]
    assert [token.generation for token in tokens] == [1, 2, 3]
    assert guard.latest == 3


def test_invalidate_then_begin_issues_a_fresh_current_token() -> None:
    guard = RequestLifecycleGuard()
    stale = guard.begin("alien")

    guard.invalidate()
    fresh = guard.begin("aliens")

    assert guard.is_current(stale) is False
    assert guard.is_current(fresh) is True
    assert fresh.generation == stale.generation + 2
