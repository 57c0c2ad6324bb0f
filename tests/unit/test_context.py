"""Tests for ConversationContext and ContextStore."""

from agent_delegation.core import ContextStore, ConversationContext
from agent_delegation.models import DelegationRecord, Message, Response


def _record(agent_id: str, success: bool = True) -> DelegationRecord:
    return DelegationRecord(
        to_agent_id=agent_id,
        message=Message(content="task", conversation_id="c1"),
        success=success,
        response=Response(content="done") if success else None,
        error=None if success else "failed",
    )


def _filled_context() -> ConversationContext:
    context = ConversationContext("c1")
    context.add_participant("analyst")
    context.set_topic("budgets")
    context.add_goal("Plan Q3")
    context.add_constraint("No overtime")
    context.set_shared_knowledge("budget", {"total": 100})
    context.set_metadata("channel", "cli")
    context.add_message(
        Message(content="hi", conversation_id="c1"),
        Response(content="hello", metadata={"response_time": 0.5}),
        agent_id="analyst",
    )
    context.add_delegation(_record("analyst"))
    context.add_delegation(_record("writer", success=False))
    return context


class TestConversationContext:
    """Tests for ConversationContext."""

    def test_set_like_collections(self):
        context = ConversationContext("c1")
        context.add_participant("a")
        context.add_participant("a")
        context.add_goal("g")
        context.add_goal("g")
        context.add_constraint("x")
        context.add_constraint("x")
        summary = context.get_context_summary()
        assert summary["participants"] == ["a"]
        assert summary["goals"] == ["g"]
        assert summary["constraints"] == ["x"]

        context.remove_participant("a")
        context.remove_goal("g")
        context.remove_constraint("x")
        assert context.get_context_summary()["participants"] == []
        assert not context.has_participant("a")

    def test_shared_knowledge_is_copied(self):
        context = ConversationContext("c1")
        value = {"items": [1]}
        context.set_shared_knowledge("k", value)
        value["items"].append(2)
        assert context.get_shared_knowledge("k") == {"items": [1]}

        snapshot = context.get_shared_knowledge()
        snapshot["k"]["items"].append(3)
        assert context.get_shared_knowledge("k") == {"items": [1]}
        assert context.get_shared_knowledge("missing") is None

    def test_remove_shared_knowledge_and_metadata(self):
        context = ConversationContext("c1")
        context.set_shared_knowledge("k", None)
        assert context.remove_shared_knowledge("k") is True
        assert context.remove_shared_knowledge("k") is False
        context.set_metadata("m", 1)
        assert context.get_metadata() == {"m": 1}
        assert context.remove_metadata("m") is True
        assert context.remove_metadata("m") is False

    def test_history_readers_return_copies(self):
        context = _filled_context()
        history = context.get_conversation_history()
        history[0].response.metadata["response_time"] = 99
        history.clear()
        assert len(context.get_conversation_history()) == 1
        assert (
            context.get_conversation_history()[0].response.metadata["response_time"]
            == 0.5
        )

        delegations = context.get_delegation_history()
        delegations.clear()
        assert len(context.get_delegation_history()) == 2

    def test_shared_context(self):
        shared = _filled_context().get_shared_context()
        assert shared["conversation_id"] == "c1"
        assert shared["topic"] == "budgets"
        assert shared["shared_knowledge"] == {"budget": {"total": 100}}
        assert shared["message_count"] == 1

    def test_summary_counts(self):
        summary = _filled_context().get_context_summary()
        assert summary["message_count"] == 1
        assert summary["delegation_count"] == 2
        assert summary["shared_knowledge_keys"] == ["budget"]

    def test_stats(self):
        stats = _filled_context().get_conversation_stats()
        assert stats["total_messages"] == 1
        assert stats["total_delegations"] == 2
        assert stats["successful_delegations"] == 1
        assert stats["failed_delegations"] == 1
        assert stats["average_response_time"] == 0.5
        assert stats["responding_agents"] == ["analyst"]
        assert stats["delegated_agents"] == ["analyst", "writer"]

    def test_stats_empty(self):
        stats = ConversationContext("c1").get_conversation_stats()
        assert stats["average_response_time"] == 0.0
        assert stats["delegated_agents"] == []

    def test_clear_operations(self):
        context = _filled_context()
        context.clear_delegations()
        assert context.get_context_summary()["delegation_count"] == 0
        assert context.get_context_summary()["message_count"] == 1

        context.clear_history()
        context.clear_shared_knowledge()
        context.clear_metadata()
        summary = context.get_context_summary()
        assert summary["message_count"] == 0
        assert summary["shared_knowledge_keys"] == []
        assert context.get_metadata() == {}
        assert summary["participants"] == ["analyst"]

    def test_reset_keeps_id(self):
        context = _filled_context()
        context.reset()
        summary = context.get_context_summary()
        assert summary["conversation_id"] == "c1"
        assert summary["participants"] == []
        assert summary["topic"] == ""

    def test_export_import_round_trip(self):
        original = _filled_context()
        restored = ConversationContext("other")
        restored.import_state(original.export())

        assert restored.conversation_id == "c1"
        assert restored.get_context_summary() == original.get_context_summary()
        assert restored.get_conversation_stats() == original.get_conversation_stats()
        assert restored.get_metadata() == {"channel": "cli"}
        assert restored.get_delegation_history()[1].error == "failed"

    def test_import_replaces_state(self):
        context = _filled_context()
        context.import_state({"topic": "new"})
        summary = context.get_context_summary()
        assert summary["conversation_id"] == "c1"
        assert summary["topic"] == "new"
        assert summary["participants"] == []
        assert summary["delegation_count"] == 0


class TestContextStore:
    """Tests for ContextStore."""

    def test_get_or_create(self):
        store = ContextStore()
        first = store.get_or_create("c1")
        assert store.get_or_create("c1") is first
        assert store.get("c2") is None
        assert "c1" in store
        assert len(store) == 1

    def test_remove_and_iterate(self):
        store = ContextStore()
        store.get_or_create("c1")
        store.get_or_create("c2")
        assert store.conversation_ids() == ["c1", "c2"]
        assert [c.conversation_id for c in store] == ["c1", "c2"]
        assert store.remove("c1") is True
        assert store.remove("c1") is False
        assert store.conversation_ids() == ["c2"]
