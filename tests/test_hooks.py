"""Tests for request interceptors and transform hooks."""

from __future__ import annotations

import pytest

from conftest import run
from restforge.hooks import InterceptorChain, RequestDraft, json_transformer, maybe_await


def _draft(**overrides) -> RequestDraft:
    values = dict(endpoint_name="getUser", method="GET", path="/users/{id}", body={"id": 1})
    values.update(overrides)
    return RequestDraft(**values)


class TestInterceptorChain:
    def test_empty_chain_returns_draft(self) -> None:
        draft = _draft()
        assert run(InterceptorChain().run(draft)) is draft

    def test_in_place_mutation_kept(self) -> None:
        def add_header(draft: RequestDraft) -> None:
            draft.headers["X-Trace"] = "abc"

        result = run(InterceptorChain([add_header]).run(_draft()))
        assert result.headers == {"X-Trace": "abc"}

    def test_returned_draft_replaces_current(self) -> None:
        def reroute(draft: RequestDraft) -> RequestDraft:
            return RequestDraft(endpoint_name=draft.endpoint_name, method="POST", path="/v2/users")

        result = run(InterceptorChain([reroute]).run(_draft()))
        assert result.method == "POST"
        assert result.path == "/v2/users"

    def test_interceptors_compose_in_order(self) -> None:
        calls = []

        def first(draft: RequestDraft) -> None:
            calls.append("first")
            draft.params["a"] = "1"

        async def second(draft: RequestDraft) -> None:
            calls.append("second")
            draft.params["b"] = draft.params["a"] + "2"

        chain = InterceptorChain([first])
        chain.add(second)
        result = run(chain.run(_draft()))
        assert calls == ["first", "second"]
        assert result.params == {"a": "1", "b": "12"}
        assert len(chain) == 2

    def test_original_draft_untouched(self) -> None:
        def add_header(draft: RequestDraft) -> None:
            draft.headers["X"] = "1"

        draft = _draft()
        run(InterceptorChain([add_header]).run(draft))
        assert draft.headers == {}

    def test_interceptor_error_propagates(self) -> None:
        def boom(draft: RequestDraft) -> None:
            raise ValueError("bad draft")

        with pytest.raises(ValueError, match="bad draft"):
            run(InterceptorChain([boom]).run(_draft()))


class TestTransformHelpers:
    def test_json_transformer_marks_dicts(self) -> None:
        assert json_transformer({"id": 1}) == {"id": 1, "transformed": True}

    def test_json_transformer_passes_other_values(self) -> None:
        assert json_transformer([1, 2]) == [1, 2]
        assert json_transformer(None) is None

    def test_maybe_await(self) -> None:
        async def coro() -> int:
            return 5

        assert run(maybe_await(3)) == 3
        assert run(maybe_await(coro())) == 5
