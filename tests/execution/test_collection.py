"""Tests for statespine.execution.collection (the transition pipeline)."""

from __future__ import annotations

import pytest
from structlog.testing import capture_logs

from statespine.core.errors import InvalidOptionError, InvalidTransitionSetError, TransitionError
from statespine.core.result import Err, Ok
from statespine.core.settings import clear_settings_cache
from statespine.execution.collection import TransitionCollection
from statespine.framework.logging import get_context
from statespine.testing import (
    CallLog,
    RecordingTransition,
    StubSubject,
    assert_hook_sequence,
    assert_rolled_back,
)

HOOK_SOURCES = ("state", "status", "alarm")


def _transitions(log, subject, *specs):
    """Build recording transitions from ``(attribute, kwargs)`` pairs."""
    return [RecordingTransition(attribute, log, subject=subject, **kwargs) for attribute, kwargs in specs]


# ── Construction ────────────────────────────────────────────────────


class TestConstruction:
    """Tests for building a collection."""

    def test_defaults(self, log, subject):
        collection = TransitionCollection(_transitions(log, subject, ("state", {})))
        assert collection.skip_actions is False
        assert collection.skip_after is False
        assert collection.use_transaction is True
        assert collection.results == {}
        assert collection.success is None

    def test_options_from_keywords(self, log, subject):
        collection = TransitionCollection(
            _transitions(log, subject, ("state", {})),
            actions=False,
            after=False,
            transaction=False,
        )
        assert collection.skip_actions is True
        assert collection.skip_after is True
        assert collection.use_transaction is False

    def test_options_from_mapping_ignores_unknown_keys(self, log, subject):
        collection = TransitionCollection(
            _transitions(log, subject, ("state", {})),
            {"after": False, "validate": True},
        )
        assert collection.skip_after is True
        assert collection.skip_actions is False

    def test_keyword_overrides_mapping(self, log, subject):
        collection = TransitionCollection(
            _transitions(log, subject, ("state", {})),
            {"actions": False},
            actions=True,
        )
        assert collection.skip_actions is False

    def test_transaction_default_follows_settings(self, log, subject, monkeypatch):
        monkeypatch.setenv("STATESPINE_USE_TRANSACTIONS", "false")
        clear_settings_cache()
        collection = TransitionCollection(_transitions(log, subject, ("state", {})))
        assert collection.use_transaction is False

    def test_explicit_transaction_beats_settings(self, log, subject, monkeypatch):
        monkeypatch.setenv("STATESPINE_USE_TRANSACTIONS", "false")
        clear_settings_cache()
        collection = TransitionCollection(_transitions(log, subject, ("state", {})), transaction=True)
        assert collection.use_transaction is True

    def test_duplicate_attributes_rejected(self, log, subject):
        transitions = _transitions(log, subject, ("state", {}), ("status", {}), ("state", {}))
        with pytest.raises(InvalidTransitionSetError) as excinfo:
            TransitionCollection(transitions)
        assert excinfo.value.duplicates == ["state"]
        assert log.calls == []

    def test_duplicate_attributes_is_a_value_error(self, log, subject):
        with pytest.raises(ValueError, match="same state machine attribute"):
            TransitionCollection(_transitions(log, subject, ("state", {}), ("state", {})))

    def test_invalid_option_rejected(self, log, subject):
        with pytest.raises(InvalidOptionError) as excinfo:
            TransitionCollection(_transitions(log, subject, ("state", {})), actions="no")
        assert excinfo.value.key == "actions"
        assert log.calls == []

    def test_sequence_access(self, log, subject):
        transitions = _transitions(log, subject, ("state", {}), ("status", {}))
        collection = TransitionCollection(transitions)
        assert len(collection) == 2
        assert list(collection) == transitions
        assert collection[1] is transitions[1]
        assert collection.first is transitions[0]
        assert collection.object is subject
        assert collection.attributes == ["state", "status"]

    def test_actions_deduplicated_in_order(self, log, subject):
        collection = TransitionCollection(
            _transitions(
                log,
                subject,
                ("state", {"action": "save"}),
                ("status", {}),
                ("alarm", {"action": "save"}),
            )
        )
        assert collection.actions == ["save", None]

    def test_empty_collection_has_no_anchor(self):
        collection = TransitionCollection([])
        with pytest.raises(TransitionError, match="empty"):
            collection.first


# ── Successful runs ─────────────────────────────────────────────────


class TestSuccessfulPerform:
    """Tests for runs where every phase succeeds."""

    def test_two_attributes_without_actions(self, log, subject):
        collection = TransitionCollection(_transitions(log, subject, ("state", {}), ("status", {})))

        assert collection.perform() is True
        assert collection.success is True
        assert collection.results == {}
        assert_hook_sequence(
            log,
            [
                ("state", "before"),
                ("status", "before"),
                ("state", "persist"),
                ("status", "persist"),
                ("state", "after"),
                ("status", "after"),
            ],
            sources=HOOK_SOURCES,
        )
        assert [call.args for call in log.of("state") if call.name == "after"] == [(None, True)]
        assert [call.args for call in log.of("status") if call.name == "after"] == [(None, True)]
        assert log.count("state", "rollback") == 0
        assert log.count("status", "rollback") == 0

    def test_runs_inside_committed_transaction(self, log, subject):
        TransitionCollection(_transitions(log, subject, ("state", {}))).perform()

        assert subject.transactions == ["committed"]
        sequence = log.sequence()
        assert sequence[0] == ("subject", "transaction.begin")
        assert sequence[-1] == ("subject", "transaction.commit")

    def test_action_result_recorded(self, log):
        subject = StubSubject({"save": "saved"}, log=log)
        collection = TransitionCollection(_transitions(log, subject, ("state", {"action": "save"})))

        assert collection.perform() is True
        assert collection.results == {"save": "saved"}
        assert log.of("state")[-1].args == ("saved", True)

    def test_action_runs_after_persist_and_before_after_hooks(self, log):
        subject = StubSubject({"save": True}, log=log)
        TransitionCollection(_transitions(log, subject, ("state", {"action": "save"}))).perform()

        sequence = [pair for pair in log.sequence() if not pair[1].startswith("transaction.")]
        assert sequence == [
            ("state", "before"),
            ("state", "persist"),
            ("subject", "invoke"),
            ("state", "after"),
        ]

    def test_shared_action_invoked_once(self, log):
        subject = StubSubject({"save": True}, log=log)
        collection = TransitionCollection(
            _transitions(log, subject, ("state", {"action": "save"}), ("status", {"action": "save"}))
        )

        assert collection.perform() is True
        assert subject.invocations == ["save"]
        assert log.of("state")[-1].args == (True, True)
        assert log.of("status")[-1].args == (True, True)

    def test_distinct_actions_each_invoked(self, log):
        subject = StubSubject({"save": True, "notify": 1}, log=log)
        collection = TransitionCollection(
            _transitions(log, subject, ("state", {"action": "save"}), ("status", {"action": "notify"}))
        )

        assert collection.perform() is True
        assert subject.invocations == ["save", "notify"]
        assert collection.results == {"save": True, "notify": 1}

    def test_transition_without_action_gets_none(self, log):
        subject = StubSubject({"save": True}, log=log)
        collection = TransitionCollection(
            _transitions(log, subject, ("state", {"action": "save"}), ("status", {}))
        )

        collection.perform()
        assert None not in collection.results
        assert log.of("status")[-1].args == (None, True)

    def test_skip_actions(self, log):
        subject = StubSubject({"save": False}, log=log)
        collection = TransitionCollection(
            _transitions(log, subject, ("state", {"action": "save"})),
            actions=False,
        )

        assert collection.perform() is True
        assert subject.invocations == []
        assert collection.results == {}
        assert log.of("state")[-1].args == (None, True)

    def test_skip_after_on_success(self, log, subject):
        collection = TransitionCollection(_transitions(log, subject, ("state", {}), ("status", {})), after=False)

        assert collection.perform() is True
        assert log.count("state", "after") == 0
        assert log.count("status", "after") == 0
        assert log.count("state", "rollback") == 0

    def test_without_transaction(self, log, subject):
        collection = TransitionCollection(_transitions(log, subject, ("state", {})), transaction=False)

        assert collection.perform() is True
        assert subject.transactions == []

    def test_transaction_choice_does_not_change_hooks(self):
        def run(use_transaction):
            log = CallLog()
            subject = StubSubject({"save": True, "notify": False}, log=log)
            collection = TransitionCollection(
                _transitions(log, subject, ("state", {"action": "save"}), ("status", {"action": "notify"})),
                transaction=use_transaction,
            )
            outcome = collection.perform()
            hooks = [(call.source, call.name, call.args) for call in log.calls if call.source in HOOK_SOURCES]
            return outcome, collection.results, collection.success, hooks, subject.invocations

        assert run(True) == run(False)


# ── Failing runs ────────────────────────────────────────────────────


class TestFailedPerform:
    """Tests for runs that fail without raising."""

    def test_first_before_halts(self, log, subject):
        transitions = _transitions(
            log,
            subject,
            ("state", {"before_result": False}),
            ("status", {}),
            ("alarm", {}),
        )
        collection = TransitionCollection(transitions)

        assert collection.perform() is False
        assert collection.success is False
        assert collection.results == {}
        assert log.count("status", "before") == 0
        assert log.count("alarm", "before") == 0
        for attribute in ("state", "status", "alarm"):
            assert log.count(attribute, "persist") == 0
        assert_rolled_back(log, ["state", "status", "alarm"])

    def test_middle_before_halts(self, log, subject):
        transitions = _transitions(
            log,
            subject,
            ("state", {}),
            ("status", {"before_result": False}),
            ("alarm", {}),
        )

        assert TransitionCollection(transitions).perform() is False
        assert [pair for pair in log.sequence() if pair[1] == "before"] == [
            ("state", "before"),
            ("status", "before"),
        ]

    def test_halt_skips_actions(self, log):
        subject = StubSubject({"save": True}, log=log)
        collection = TransitionCollection(
            _transitions(log, subject, ("state", {"action": "save", "before_result": None}))
        )

        assert collection.perform() is False
        assert subject.invocations == []
        assert collection.results == {}

    def test_halt_still_runs_after_hooks_with_failure(self, log, subject):
        collection = TransitionCollection(
            _transitions(log, subject, ("state", {"before_result": False}), ("status", {})),
            after=False,
        )

        collection.perform()
        assert log.of("state")[-2].name == "after"
        assert log.of("state")[-2].args == (None, False)
        assert log.of("status")[0].name == "after"

    def test_halt_rolls_back_transaction(self, log, subject):
        TransitionCollection(_transitions(log, subject, ("state", {"before_result": False}))).perform()
        assert subject.transactions == ["rolled_back"]

    def test_falsy_action_fails(self, log):
        subject = StubSubject({"save": False}, log=log)
        collection = TransitionCollection(
            _transitions(log, subject, ("state", {"action": "save"}), ("status", {}))
        )

        assert collection.perform() is False
        assert collection.results == {"save": False}
        assert log.of("state")[-2].args == (False, False)
        assert log.of("status")[-2].args == (None, False)
        assert_rolled_back(log, ["state", "status"])
        assert subject.transactions == ["rolled_back"]

    def test_every_action_runs_even_after_a_failure(self, log):
        subject = StubSubject({"save": None, "notify": True}, log=log)
        collection = TransitionCollection(
            _transitions(log, subject, ("state", {"action": "save"}), ("status", {"action": "notify"}))
        )

        assert collection.perform() is False
        assert subject.invocations == ["save", "notify"]

    def test_rollback_runs_after_after_hooks(self, log):
        subject = StubSubject({"save": False}, log=log)
        TransitionCollection(_transitions(log, subject, ("state", {"action": "save"}))).perform()

        assert [call.name for call in log.of("state")] == ["before", "persist", "after", "rollback"]

    def test_skip_after_ignored_on_failure(self, log):
        subject = StubSubject({"save": False}, log=log)
        collection = TransitionCollection(
            _transitions(log, subject, ("state", {"action": "save"}), ("status", {})),
            after=False,
        )

        assert collection.perform() is False
        assert log.count("state", "after") == 1
        assert log.count("status", "after") == 1


# ── Exceptions ──────────────────────────────────────────────────────


class TestExceptionalPerform:
    """Tests for actions and blocks that raise."""

    def test_action_exception_propagates_after_rollback(self, log):
        boom = RuntimeError("ship failed")
        subject = StubSubject({"ship": boom}, log=log)
        collection = TransitionCollection(_transitions(log, subject, ("state", {"action": "ship"})))

        with pytest.raises(RuntimeError) as excinfo:
            collection.perform()

        assert excinfo.value is boom
        assert log.count("state", "rollback") == 1
        assert log.count("state", "after") == 0
        assert collection.success is False

    def test_rollback_happens_before_transaction_sees_exception(self, log):
        subject = StubSubject({"ship": ValueError}, log=log)
        collection = TransitionCollection(
            _transitions(log, subject, ("state", {"action": "ship"}), ("status", {}))
        )

        with pytest.raises(ValueError):
            collection.perform()

        sequence = log.sequence()
        assert sequence.index(("status", "rollback")) < sequence.index(("subject", "transaction.raised"))
        assert_rolled_back(log, ["state", "status"])
        assert subject.transactions == ["raised"]

    def test_block_exception_propagates_after_rollback(self, log, subject):
        collection = TransitionCollection(_transitions(log, subject, ("state", {})))

        def block():
            raise KeyError("missing")

        with pytest.raises(KeyError):
            collection.perform(block)
        assert log.count("state", "rollback") == 1

    def test_exception_in_before_is_not_guarded(self, log, subject):
        collection = TransitionCollection(_transitions(log, subject, ("state", {"raise_on": "before"})))

        with pytest.raises(RuntimeError, match="state.before failed"):
            collection.perform()
        assert log.count("state", "rollback") == 0

    def test_run_actions_returns_err(self, log):
        boom = RuntimeError("boom")
        subject = StubSubject({"ship": boom}, log=log)
        collection = TransitionCollection(_transitions(log, subject, ("state", {"action": "ship"})))

        outcome = collection.run_actions()
        assert isinstance(outcome, Err)
        assert outcome.error is boom
        assert log.count("state", "rollback") == 1

    def test_run_actions_returns_ok(self, log):
        subject = StubSubject({"save": True}, log=log)
        collection = TransitionCollection(_transitions(log, subject, ("state", {"action": "save"})))

        assert collection.run_actions() == Ok(True)
        assert collection.success is True

    def test_keyboard_interrupt_rolls_back(self, log):
        subject = StubSubject({"ship": KeyboardInterrupt}, log=log)
        collection = TransitionCollection(
            _transitions(log, subject, ("state", {"action": "ship"}), ("status", {})),
            transaction=False,
        )

        with pytest.raises(KeyboardInterrupt):
            collection.perform()

        assert_rolled_back(log, ["state", "status"])
        assert log.count("state", "after") == 0
        assert collection.success is False

    def test_system_exit_from_block_rolls_back(self, log, subject):
        collection = TransitionCollection(_transitions(log, subject, ("state", {})))

        def block():
            raise SystemExit(3)

        with pytest.raises(SystemExit):
            collection.perform(block)

        assert log.count("state", "rollback") == 1
        assert subject.transactions == ["raised"]

    def test_interrupt_rollback_precedes_transaction_exit(self, log):
        subject = StubSubject({"ship": KeyboardInterrupt}, log=log)
        collection = TransitionCollection(_transitions(log, subject, ("state", {"action": "ship"})))

        with pytest.raises(KeyboardInterrupt):
            collection.perform()

        sequence = log.sequence()
        assert sequence.index(("state", "rollback")) < sequence.index(("subject", "transaction.raised"))


class TransactionFailingSubject(StubSubject):
    """Subject whose transaction provider raises on begin or on commit."""

    def __init__(self, error, fail_on, **kwargs):
        super().__init__(**kwargs)
        self.error = error
        self.fail_on = fail_on

    def within_transaction(self, block):
        if self.fail_on == "begin":
            raise self.error
        super().within_transaction(block)
        raise self.error


class TestTransactionProviderErrors:
    """Errors raised by the transaction provider itself."""

    def test_commit_failure_propagates_unchanged(self, log):
        error = ConnectionError("commit lost")
        subject = TransactionFailingSubject(error, "commit", actions={"save": True}, log=log)
        collection = TransitionCollection(_transitions(log, subject, ("state", {"action": "save"})))

        with pytest.raises(ConnectionError) as excinfo:
            collection.perform()

        assert excinfo.value is error
        assert collection.success is True
        assert subject.transactions == ["committed"]
        assert log.count("state", "after") == 1
        assert log.count("state", "rollback") == 0

    def test_begin_failure_runs_no_hooks(self, log):
        error = ConnectionError("no connection")
        subject = TransactionFailingSubject(error, "begin", log=log)
        collection = TransitionCollection(_transitions(log, subject, ("state", {})))

        with pytest.raises(ConnectionError) as excinfo:
            collection.perform()

        assert excinfo.value is error
        assert collection.success is None
        assert log.of("state") == []


# ── Block mode ──────────────────────────────────────────────────────


class TestBlockMode:
    """Tests for perform(block)."""

    def test_block_replaces_actions(self, log):
        subject = StubSubject({"save": True}, log=log)
        calls = []

        def block():
            calls.append("block")
            return "done"

        collection = TransitionCollection(
            _transitions(log, subject, ("state", {"action": "save"}), ("status", {}))
        )

        assert collection.perform(block) is True
        assert calls == ["block"]
        assert subject.invocations == []
        assert collection.results == {"save": "done", None: "done"}
        assert log.of("state")[-1].args == ("done", True)
        assert log.of("status")[-1].args == ("done", True)

    def test_falsy_block_fails(self, log, subject):
        collection = TransitionCollection(_transitions(log, subject, ("state", {"action": "save"})))

        assert collection.perform(lambda: 0) is False
        assert collection.results == {"save": 0}
        assert_rolled_back(log, ["state"])

    def test_block_runs_even_when_skipping_actions(self, log, subject):
        collection = TransitionCollection(_transitions(log, subject, ("state", {})), actions=False)
        assert collection.perform(lambda: True) is True

    def test_block_not_called_when_before_halts(self, log, subject):
        calls = []
        collection = TransitionCollection(_transitions(log, subject, ("state", {"before_result": False})))

        assert collection.perform(lambda: calls.append("block")) is False
        assert calls == []


# ── Lifecycle ───────────────────────────────────────────────────────


class TestLifecycle:
    """Tests for reuse and edge cases."""

    def test_second_perform_rejected(self, log, subject):
        collection = TransitionCollection(_transitions(log, subject, ("state", {})))
        collection.perform()

        with pytest.raises(TransitionError, match="already been performed"):
            collection.perform()
        assert log.count("state", "before") == 1

    def test_empty_collection_succeeds(self):
        collection = TransitionCollection([])
        assert collection.perform() is True
        assert collection.results == {}

    def test_empty_collection_block_mode(self):
        calls = []
        collection = TransitionCollection([])
        assert collection.perform(lambda: calls.append("block") or "x") is True
        assert calls == ["block"]
        assert collection.results == {}

    def test_repr(self, log, subject):
        collection = TransitionCollection(_transitions(log, subject, ("state", {})))
        assert repr(collection) == "TransitionCollection(attributes=['state'], success=None)"


# ── Logging ─────────────────────────────────────────────────────────


class TestLogging:
    """Tests for the structured log events emitted while performing."""

    def test_success_events(self, log, subject):
        with capture_logs() as logs:
            TransitionCollection(_transitions(log, subject, ("state", {}))).perform()

        events = [entry["event"] for entry in logs]
        assert events == ["transition_collection.perform.start", "transition_collection.perform.done"]
        assert logs[-1]["success"] is True
        assert "duration_ms" in logs[-1]

    def test_halt_logged(self, log, subject):
        with capture_logs() as logs:
            TransitionCollection(_transitions(log, subject, ("state", {"before_result": False}))).perform()

        halted = [entry for entry in logs if entry["event"] == "transition_collection.before.halted"]
        assert len(halted) == 1
        assert halted[0]["log_level"] == "info"
        assert halted[0]["attributes"] == ["state"]

    def test_failed_actions_logged(self, log):
        subject = StubSubject({"save": False, "notify": True}, log=log)
        with capture_logs() as logs:
            TransitionCollection(
                _transitions(log, subject, ("state", {"action": "save"}), ("status", {"action": "notify"}))
            ).perform()

        failed = [entry for entry in logs if entry["event"] == "transition_collection.actions.failed"]
        assert failed[0]["failed"] == ["save"]

    def test_context_visible_inside_actions(self, log, subject):
        seen = []
        collection = TransitionCollection(_transitions(log, subject, ("state", {"event": "ignite"})))

        collection.perform(lambda: seen.append(get_context().to_dict()) or True)

        assert seen == [
            {
                "collection_id": collection.collection_id,
                "collection": "TransitionCollection",
                "machine": "state_machine",
                "attribute": "state",
                "event": "ignite",
                "phase": "actions",
            }
        ]
        assert get_context().to_dict() == {}

    def test_multi_transition_context_omits_attribute(self, log, subject):
        seen = []
        TransitionCollection(_transitions(log, subject, ("state", {}), ("status", {}))).perform(
            lambda: seen.append(get_context().to_dict()) or True
        )
        assert "attribute" not in seen[0]
        assert seen[0]["phase"] == "actions"

    def test_nested_collection_does_not_inherit_transition_fields(self, log, subject):
        seen = []
        inner = TransitionCollection(_transitions(log, subject, ("status", {}), ("alarm", {})))
        outer = TransitionCollection(_transitions(log, subject, ("state", {"event": "ignite"})))

        def outer_block():
            inner.perform(lambda: seen.append(get_context().to_dict()) or True)
            seen.append(get_context().to_dict())
            return True

        outer.perform(outer_block)

        inner_context, outer_context = seen
        assert inner_context["collection_id"] == inner.collection_id
        assert "machine" not in inner_context
        assert "attribute" not in inner_context
        assert "event" not in inner_context
        assert outer_context["attribute"] == "state"
        assert outer_context["event"] == "ignite"

    def test_interrupt_logged(self, log):
        subject = StubSubject({"ship": KeyboardInterrupt}, log=log)
        with capture_logs() as logs:
            with pytest.raises(KeyboardInterrupt):
                TransitionCollection(_transitions(log, subject, ("state", {"action": "ship"}))).perform()

        interrupted = [entry for entry in logs if entry["event"] == "transition_collection.actions.interrupted"]
        assert interrupted[0]["error_type"] == "KeyboardInterrupt"

    def test_raised_action_logged_as_warning(self, log):
        subject = StubSubject({"ship": RuntimeError("boom")}, log=log)
        with capture_logs() as logs:
            with pytest.raises(RuntimeError):
                TransitionCollection(_transitions(log, subject, ("state", {"action": "ship"}))).perform()

        raised = [entry for entry in logs if entry["event"] == "transition_collection.actions.raised"]
        assert raised[0]["log_level"] == "warning"
        assert raised[0]["error_type"] == "RuntimeError"
