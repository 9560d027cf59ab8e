"""Unit tests for actor attribution applied by the audit middleware."""

from __future__ import annotations

from typing import Any

import pytest

from packages.taskosaur_shared.request_context import request_context
from resources.substrates.postgres.audit import (
    AUDITABLE_MODELS,
    SYSTEM_USER_ID,
    create_audit_middleware,
    get_current_user_for_audit,
    has_audit_fields,
)
from resources.substrates.postgres.operations import Action, OperationParams

ACTOR = "3f2b8c1e-5d7a-4e61-9b0c-2a4d6e8f1c3b"


class _RecordingNext:
    """Terminal handler double that records what it was handed."""

    def __init__(self) -> None:
        self.calls: list[OperationParams] = []

    def __call__(self, params: OperationParams) -> str:
        self.calls.append(params)
        return "downstream-result"


def _run(
    model: str | None, action: Action, args: dict[str, Any], actor: str | None = ACTOR
) -> tuple[OperationParams, _RecordingNext, object]:
    middleware = create_audit_middleware(actor_resolver=lambda: actor)
    downstream = _RecordingNext()
    params = OperationParams(model=model, action=action, args=args)
    result = middleware(params, downstream)
    return params, downstream, result


@pytest.mark.parametrize("model", sorted(AUDITABLE_MODELS - {"User"}))
def test_create_stamps_both_fields_for_every_tracked_model(model: str) -> None:
    """Create without explicit attribution should stamp creator and updater."""
    params, _, _ = _run(model, Action.CREATE, {"data": {"name": "x"}})

    assert params.args["data"]["created_by"] == ACTOR
    assert params.args["data"]["updated_by"] == ACTOR


def test_create_user_never_stamps_updated_by() -> None:
    """The identity model gets a creator but no auto updater on creation."""
    params, _, _ = _run("User", Action.CREATE, {"data": {"email": "a@b.c"}})

    assert params.args["data"] == {"email": "a@b.c", "created_by": ACTOR}


def test_create_preserves_explicit_values_including_none() -> None:
    """Explicitly provided keys are left alone, even when set to None."""
    data = {"title": "x", "created_by": "someone", "updated_by": None}
    params, _, _ = _run("Task", Action.CREATE, {"data": data})

    assert params.args["data"] == {
        "title": "x",
        "created_by": "someone",
        "updated_by": None,
    }


def test_create_without_actor_falls_back_to_system_user() -> None:
    """No ambient actor means the system sentinel id is used."""
    params, _, _ = _run("Task", Action.CREATE, {"data": {"title": "x"}}, actor=None)

    assert params.args["data"] == {
        "title": "x",
        "created_by": SYSTEM_USER_ID,
        "updated_by": SYSTEM_USER_ID,
    }


def test_default_resolver_reads_request_context() -> None:
    """Without an injected resolver the bound request actor is used."""
    middleware = create_audit_middleware()
    downstream = _RecordingNext()
    params = OperationParams(model="Project", action=Action.CREATE, args={"data": {}})

    with request_context(ACTOR):
        middleware(params, downstream)

    assert params.args["data"] == {"created_by": ACTOR, "updated_by": ACTOR}


@pytest.mark.parametrize("action", [Action.UPDATE, Action.UPDATE_MANY])
def test_timestamp_only_update_is_not_attributed(action: Action) -> None:
    """Updates touching only excluded fields do not set updated_by."""
    params, _, _ = _run("Task", action, {"data": {"updated_at": "2026-01-01"}})

    assert params.args["data"] == {"updated_at": "2026-01-01"}


@pytest.mark.parametrize("action", [Action.UPDATE, Action.UPDATE_MANY])
def test_meaningful_update_sets_updated_by(action: Action) -> None:
    """Any field outside the excluded set triggers attribution."""
    params, _, _ = _run(
        "Task", action, {"where": {"id": "t1"}, "data": {"title": "renamed"}}
    )

    assert params.args["data"]["updated_by"] == ACTOR
    assert "created_by" not in params.args["data"]


def test_update_keeps_explicit_updated_by() -> None:
    """An explicit updater wins over the ambient actor."""
    params, _, _ = _run(
        "Task", Action.UPDATE, {"data": {"title": "t", "updated_by": "other"}}
    )

    assert params.args["data"]["updated_by"] == "other"


def test_update_of_user_is_attributed() -> None:
    """The identity-model exclusion applies to creation only."""
    params, _, _ = _run("User", Action.UPDATE, {"data": {"bio": "hi"}})

    assert params.args["data"]["updated_by"] == ACTOR


def test_upsert_stamps_branches_independently() -> None:
    """Create branch follows the create rule; update branch the update rule."""
    params, _, _ = _run(
        "Workspace",
        Action.UPSERT,
        {
            "where": {"id": "w1"},
            "create": {"name": "W"},
            "update": {"updated_at": "2026-01-01"},
        },
    )

    assert params.args["create"] == {
        "name": "W",
        "created_by": ACTOR,
        "updated_by": ACTOR,
    }
    assert params.args["update"] == {"updated_at": "2026-01-01"}


def test_upsert_user_create_branch_skips_updated_by() -> None:
    params, _, _ = _run(
        "User",
        Action.UPSERT,
        {"where": {"id": "u1"}, "create": {"email": "e"}, "update": {"bio": "b"}},
    )

    assert params.args["create"] == {"email": "e", "created_by": ACTOR}
    assert params.args["update"] == {"bio": "b", "updated_by": ACTOR}


def test_create_many_stamps_each_item_and_keeps_explicit_values() -> None:
    """Every item is defaulted; explicit per-item values survive."""
    items = [{"title": "a"}, {"title": "b", "created_by": "u2"}, {"title": "c"}]
    params, _, _ = _run("Task", Action.CREATE_MANY, {"data": items}, actor=None)

    assert params.args["data"] == [
        {"title": "a", "created_by": SYSTEM_USER_ID, "updated_by": SYSTEM_USER_ID},
        {"title": "b", "created_by": "u2", "updated_by": SYSTEM_USER_ID},
        {"title": "c", "created_by": SYSTEM_USER_ID, "updated_by": SYSTEM_USER_ID},
    ]


def test_create_many_for_user_omits_updated_by() -> None:
    params, _, _ = _run("User", Action.CREATE_MANY, {"data": [{"email": "a"}]})

    assert params.args["data"] == [{"email": "a", "created_by": ACTOR}]


def test_create_many_treats_null_audit_values_as_unset() -> None:
    params, _, _ = _run(
        "Task", Action.CREATE_MANY, {"data": [{"title": "a", "created_by": None}]}
    )

    assert params.args["data"][0]["created_by"] == ACTOR


@pytest.mark.parametrize(
    ("model", "action", "args"),
    [
        ("Setting", Action.CREATE, {"data": {"key": "k", "value": "v"}}),
        (None, Action.CREATE, {"data": {"title": "x"}}),
        ("Task", Action.DELETE, {"where": {"id": "t1"}}),
        ("Task", Action.FIND_MANY, {"where": {}}),
    ],
)
def test_untracked_models_and_actions_pass_through(
    model: str | None, action: Action, args: dict[str, Any]
) -> None:
    """Non-auditable models and non-write actions are forwarded untouched."""
    expected = {key: dict(value) for key, value in args.items()}
    params, downstream, result = _run(model, action, args)

    assert params.args == expected
    assert downstream.calls == [params]
    assert result == "downstream-result"


def test_middleware_always_forwards_once_and_returns_downstream_result() -> None:
    params, downstream, result = _run("Task", Action.CREATE, {"data": {"title": "x"}})

    assert downstream.calls == [params]
    assert result == "downstream-result"


def test_helpers_report_tracking_and_current_actor() -> None:
    assert has_audit_fields("Task") is True
    assert has_audit_fields("Setting") is False

    assert get_current_user_for_audit() is None
    with request_context(ACTOR):
        assert get_current_user_for_audit() == ACTOR
