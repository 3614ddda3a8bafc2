"""Tests for the Intent Router, classifier and entity resolver."""

from datetime import datetime, timezone

from chat_kernel.models.config import PipelineConfig
from chat_kernel.models.context import AccumulatedContext, RecentEntity
from chat_kernel.models.plan import (
    ConfidenceLevel,
    EntityType,
    IntentCategory,
    MatchCandidate,
)
from chat_kernel.router.intent_router import IntentRouter
from chat_kernel.router.resolver import EntityResolver, sort_candidates
from chat_kernel.tools.catalog import build_default_registry
from chat_kernel.workspace.seed import seed_demo_workspace

T0 = datetime(2026, 3, 2, 9, 0, 0, tzinfo=timezone.utc)


def _make_router(**config) -> IntentRouter:
    workspace = seed_demo_workspace(current_time=T0)
    return IntentRouter(build_default_registry(), workspace, config=PipelineConfig(**config))


class TestClassification:
    def setup_method(self):
        self.router = _make_router()

    def test_pending_reviews(self):
        result = self.router.classify("Show me pending reviews")
        plan = result.plan
        assert plan.intent == IntentCategory.READ
        assert plan.tool == "list_tasks"
        assert plan.arguments == {"status": "needs-review"}
        assert not plan.requires_confirmation
        assert result.ready_for_execution

    def test_delete_requires_confirmation(self):
        result = self.router.classify("delete client Acme")
        plan = result.plan
        assert plan.tool == "delete_client"
        assert plan.requires_confirmation
        assert plan.arguments["id"] == "cli_acme"
        assert plan.affected_entity.name == "Acme Holdings"
        assert not result.ready_for_execution
        assert result.confirmation_message == (
            'Are you sure you want to delete client "Acme Holdings"?'
        )

    def test_ambiguous_name_yields_multi_match(self):
        result = self.router.classify("show Chen's portfolio")
        multi = result.plan.multi_match
        assert multi is not None
        assert [m.display_name for m in multi.matches] == ["David Chen", "Sarah Chen"]
        assert result.plan.clarification_needed is None
        assert result.needs_user_input
        assert not result.ready_for_execution

    def test_unique_name_resolves(self):
        plan = self.router.classify("tell me about Sarah Chen").plan
        assert plan.tool == "get_client"
        assert plan.arguments["id"] == "cli_sarah_chen"
        assert plan.multi_match is None

    def test_misspelled_name_resolves_fuzzily(self):
        plan = self.router.classify("delete client Acme Holdngs").plan
        assert plan.arguments["id"] == "cli_acme"

    def test_unknown_name_asks_for_clarification(self):
        result = self.router.classify("show client Zed")
        clarification = result.plan.clarification_needed
        assert clarification.field == "id"
        assert "Zed" in clarification.question
        assert "Acme Holdings" in clarification.options

    def test_missing_required_parameter(self):
        result = self.router.classify("create a task")
        clarification = result.plan.clarification_needed
        assert clarification.field == "title"
        assert clarification.question == "What should the task say?"
        assert result.user_prompt == clarification.question

    def test_delete_without_entity_type(self):
        result = self.router.classify("delete something")
        assert result.plan.intent == IntentCategory.DELETE
        assert result.plan.clarification_needed.options == ["client", "task", "opportunity"]

    def test_create_task_with_client_and_date(self):
        plan = self.router.classify(
            "create a task to call Sarah Chen tomorrow", current_time=T0
        ).plan
        assert plan.tool == "create_task"
        assert plan.arguments["title"] == "Call Sarah Chen"
        assert plan.arguments["due_date"] == "2026-03-03"
        assert plan.arguments["client_id"] == "cli_sarah_chen"

    def test_ambiguous_client_filter(self):
        plan = self.router.classify("show Chen's tasks").plan
        assert plan.tool == "list_tasks"
        assert plan.multi_match.entity_type == EntityType.CLIENT

    def test_bulk_update_counts_tasks(self):
        result = self.router.classify("mark all needs review tasks as completed")
        plan = result.plan
        assert plan.tool == "bulk_update_tasks"
        assert plan.arguments == {"status": "completed", "filter_status": "needs-review"}
        assert result.confirmation_message == "Are you sure you want to update 2 tasks?"

    def test_reads_never_need_confirmation(self):
        for message in ("list clients", "show my tasks", "pipeline summary", "list workflows"):
            assert not self.router.classify(message).plan.requires_confirmation

    def test_special_intents_bypass_tools(self):
        assert self.router.classify("undo").plan.intent == IntentCategory.UNDO
        assert self.router.classify("cancel").plan.intent == IntentCategory.CANCEL
        assert self.router.classify("yes").plan.intent == IntentCategory.CONFIRM

    def test_alternatives_are_reported(self):
        plan = self.router.classify("give me a task summary").plan
        assert plan.tool == "get_task_stats"
        assert plan.alternatives == ["list_tasks"]

    def test_snooze_reads_the_duration_unit(self):
        cases = {
            'snooze "Family trust setup" for 2 weeks': 14,
            'snooze "Family trust setup" for 3 days': 3,
            'snooze "Family trust setup" for a month': 30,
        }
        for message, days in cases.items():
            plan = self.router.classify(message).plan
            assert plan.tool == "snooze_opportunity"
            assert plan.arguments["id"] == "opp_trust"
            assert plan.arguments["days"] == days

    def test_create_client_keeps_full_name(self):
        result = self.router.classify("create client Mark Johnson")
        assert result.plan.tool == "create_client"
        assert result.plan.arguments["name"] == "Mark Johnson"
        assert result.ready_for_execution

    def test_impossible_date_asks_for_a_real_one(self):
        result = self.router.classify("create a task to prepare the agenda on 2026-02-30")
        clarification = result.plan.clarification_needed
        assert result.plan.tool == "create_task"
        assert clarification.field == "due_date"
        assert "2026-02-30" in result.user_prompt
        assert "due_date" not in result.plan.arguments
        assert not result.ready_for_execution


class TestConfidence:
    def test_fallback_is_low_and_informational(self):
        result = _make_router().classify("what's the weather like on mars")
        assert result.plan.tool == "general_response"
        assert result.plan.confidence_level == ConfidenceLevel.LOW
        assert result.ready_for_execution

    def test_low_confidence_can_force_clarification(self):
        result = _make_router(clarify_low_confidence=True).classify("what's the weather like on mars")
        assert result.plan.clarification_needed.field == "intent"
        assert not result.ready_for_execution

    def test_levels_follow_thresholds(self):
        router = _make_router()
        assert router.confidence_level(0.75) == ConfidenceLevel.HIGH
        assert router.confidence_level(0.5) == ConfidenceLevel.MEDIUM
        assert router.confidence_level(0.44) == ConfidenceLevel.LOW


class TestReferences:
    def setup_method(self):
        self.router = _make_router()

    def test_pronoun_resolves_to_most_recent_entity(self):
        context = AccumulatedContext(
            last_entity_type=EntityType.CLIENT,
            recent_entities=[
                RecentEntity(id="cli_john_smith", type=EntityType.CLIENT, name="John Smith", mentioned_at=T0),
                RecentEntity(id="cli_acme", type=EntityType.CLIENT, name="Acme Holdings", mentioned_at=T0),
            ],
        )
        plan = self.router.classify("delete it", context).plan
        assert plan.tool == "delete_client"
        assert plan.arguments["id"] == "cli_john_smith"
        assert plan.requires_confirmation

    def test_focused_entity_is_the_fallback(self):
        context = AccumulatedContext(focused_task_id="task_call_john")
        plan = self.router.classify("complete the task", context).plan
        assert plan.tool == "complete_task"
        assert plan.arguments["id"] == "task_call_john"

    def test_no_context_asks(self):
        result = self.router.classify("complete the task")
        assert result.plan.clarification_needed.field == "id"


class TestResolver:
    def setup_method(self):
        self.resolver = EntityResolver(seed_demo_workspace(current_time=T0))

    def test_exact_match_wins_over_partial(self):
        matches = self.resolver.match(EntityType.CLIENT, "sarah chen")
        assert [m.id for m in matches] == ["cli_sarah_chen"]

    def test_archived_clients_are_excluded(self):
        workspace = seed_demo_workspace(current_time=T0)
        acme = workspace.get(EntityType.CLIENT, "cli_acme")
        workspace.put(EntityType.CLIENT, acme.model_copy(update={"status": "archived"}))
        assert EntityResolver(workspace).match(EntityType.CLIENT, "Acme") == []

    def test_ordering_is_stable(self):
        candidates = [
            MatchCandidate(id="3", display_name="Zoe", score=0.7),
            MatchCandidate(id="1", display_name="Bob", score=0.85),
            MatchCandidate(id="2", display_name="Amy", score=0.85),
        ]
        ordered = sort_candidates(candidates)
        assert [c.display_name for c in ordered] == ["Amy", "Bob", "Zoe"]
        assert sort_candidates(list(reversed(candidates))) == ordered
