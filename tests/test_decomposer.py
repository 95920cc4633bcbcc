"""Tests for plancraft.decomposer: features, templates, rules, priorities."""

from __future__ import annotations

import pytest

from plancraft.decomposer import (
    DATABASE_ID,
    DEPLOYMENT_ID,
    SETUP_ID,
    TESTING_ID,
    calculate_priorities,
    decompose,
    decompose_project,
    extract_features,
    generate_tasks,
)
from plancraft.errors import NoFeaturesFoundError, ValidationError
from plancraft.graph import detect_cycles
from plancraft.tasks.model import MAX_HOURS, MIN_HOURS, Constraints, Task


# ── Helpers ─────────────────────────────────────────────────────────


SHOP = "Build a shop with login and payment"


def _by_id(tasks: list[Task]) -> dict[str, Task]:
    return {t.id: t for t in tasks}


# ═══════════════════════════════════════════════════════════════════
#  Feature extraction
# ═══════════════════════════════════════════════════════════════════


class TestExtractFeatures:
    """Tests for extract_features()."""

    def test_matches_keywords(self):
        keys = [f.key for f in extract_features(SHOP)]
        assert keys == ["auth", "payment"]

    def test_mentions_drive_importance(self):
        features = extract_features("login, signup and auth; the login page")
        auth = next(f for f in features if f.key == "auth")
        assert auth.mentions == 4
        assert auth.importance == 4
        assert auth.multiplier == pytest.approx(0.96)

    def test_most_mentioned_first(self):
        features = extract_features("payment api, rest api, graphql api")
        assert features[0].key == "api"

    def test_word_boundaries(self):
        """'authentication' is not the 'auth' keyword."""
        keys = [f.key for f in extract_features("authentication via oauth")]
        assert "auth" not in keys
        assert "oauth" in keys

    def test_case_insensitive(self):
        assert [f.key for f in extract_features("LOGIN")] == ["auth"]

    def test_importance_capped_at_ten(self):
        feature = extract_features("login " * 25)[0]
        assert feature.mentions == 25
        assert feature.importance == 10
        assert feature.multiplier == pytest.approx(1.2)

    def test_empty(self):
        assert extract_features("") == []


# ═══════════════════════════════════════════════════════════════════
#  Task generation
# ═══════════════════════════════════════════════════════════════════


class TestGenerateTasks:
    """Tests for generate_tasks()."""

    def test_always_has_setup_and_database(self):
        tasks = _by_id(generate_tasks(extract_features("login")))
        assert tasks[SETUP_ID].dependencies == []
        assert tasks[DATABASE_ID].dependencies == [SETUP_ID]

    def test_library_templates(self):
        tasks = _by_id(generate_tasks(extract_features("login")))
        design = tasks["auth-design"]
        assert design.title == "Authentication System Design"
        assert design.dependencies == [DATABASE_ID]
        assert design.estimated_hours == pytest.approx(2.5)
        assert tasks["auth-backend"].dependencies == ["auth-design"]

    def test_derived_templates_chain_by_stage(self):
        tasks = _by_id(generate_tasks(extract_features("shopping cart")))
        assert tasks["cart-design"].dependencies == [SETUP_ID]
        assert tasks["cart-backend"].dependencies == ["cart-design"]
        assert tasks["cart-frontend"].dependencies == ["cart-backend"]
        assert tasks["cart-testing"].dependencies == ["cart-frontend"]
        assert tasks["cart-backend"].title == "Cart Backend"
        assert tasks["cart-frontend"].category == "frontend"

    def test_missing_library_dependencies_are_dropped(self):
        """deployment-setup names a template that is never generated."""
        tasks = _by_id(generate_tasks(extract_features("docker deploy")))
        assert tasks["deployment-setup"].dependencies == [SETUP_ID]

    def test_adds_testing_when_not_requested(self):
        tasks = _by_id(generate_tasks(extract_features("login")))
        qa = tasks[TESTING_ID]
        assert set(qa.dependencies) == {"auth-design", "auth-backend", "auth-frontend"}
        assert qa.estimated_hours == pytest.approx(2.0)

    def test_no_extra_testing_when_requested(self):
        tasks = _by_id(generate_tasks(extract_features("api and testing")))
        assert TESTING_ID not in tasks
        assert "unit-tests" in tasks

    def test_adds_deployment_when_no_devops(self):
        tasks = _by_id(generate_tasks(extract_features("login")))
        assert set(tasks[DEPLOYMENT_ID].dependencies) == {"auth-testing", TESTING_ID}

    def test_no_extra_deployment_with_devops_feature(self):
        tasks = _by_id(generate_tasks(extract_features("docker deploy")))
        assert DEPLOYMENT_ID not in tasks

    def test_shared_templates_created_once(self):
        """'inventory' matches catalog and products; each template appears once."""
        ids = [t.id for t in generate_tasks(extract_features("products inventory"))]
        assert len(ids) == len(set(ids))

    def test_hours_stay_in_domain(self):
        tasks = generate_tasks(extract_features("login " * 40 + "payment api dashboard"))
        assert all(MIN_HOURS <= t.estimated_hours <= MAX_HOURS for t in tasks)


# ═══════════════════════════════════════════════════════════════════
#  Priorities
# ═══════════════════════════════════════════════════════════════════


class TestCalculatePriorities:
    """Tests for calculate_priorities()."""

    def test_weighted_score(self):
        task = Task(id="s", estimated_hours=2, category="setup")
        assert calculate_priorities([task])[0].priority == 4

    def test_urgency_keywords(self):
        task = Task(id="s", estimated_hours=2, category="setup")
        assert calculate_priorities([task], "Urgent: ship ASAP")[0].priority == 5

    def test_dependents_raise_priority(self):
        base = Task(id="base", estimated_hours=2, category="setup")
        users = [Task(id=f"u{i}", estimated_hours=2, category="setup", dependencies=["base"]) for i in range(4)]
        result = _by_id(calculate_priorities([base] + users))
        assert result["base"].priority > result["u0"].priority

    def test_sorted_most_urgent_first_and_copied(self):
        tasks = generate_tasks(extract_features(SHOP))
        before = [t.priority for t in tasks]
        result = calculate_priorities(tasks)
        assert [t.priority for t in result] == sorted((t.priority for t in result), reverse=True)
        assert [t.priority for t in tasks] == before
        assert all(1 <= t.priority <= 10 for t in result)


# ═══════════════════════════════════════════════════════════════════
#  End-to-end decomposition
# ═══════════════════════════════════════════════════════════════════


class TestDecompose:
    """Tests for decompose_project() and decompose()."""

    def test_plan_is_a_sound_dag(self):
        tasks = decompose(SHOP)
        index = _by_id(tasks)
        assert len(index) == len(tasks)
        assert detect_cycles(tasks).has_cycles is False
        for task in tasks:
            for dep in task.dependencies:
                assert dep in index
                assert task.level > index[dep].level
        assert index[SETUP_ID].level == 0

    def test_implicit_rules_add_edges(self):
        result = decompose_project(SHOP)
        added = {(a.task_id, a.depends_on) for a in result.added}
        assert ("auth-frontend", "auth-backend") not in added
        assert ("auth-frontend", "payment-backend") in added
        assert {a.kind for a in result.added} == {"category", "keyword"}
        pay = _by_id(result.tasks)["payment-backend"]
        assert DATABASE_ID in pay.dependencies

    def test_payment_waits_for_auth_backend(self):
        """The payment keyword rule applies alongside the frontend rule."""
        result = decompose_project(SHOP)
        keyword_edges = {(a.task_id, a.depends_on) for a in result.added if a.kind == "keyword"}
        assert ("payment-backend", "auth-backend") in keyword_edges
        assert ("payment-integration", "auth-backend") in keyword_edges
        assert ("payment-design", "auth-backend") not in keyword_edges
        assert all(dep == "auth-backend" for _, dep in keyword_edges)
        assert result.rejected_rules == []
        index = _by_id(result.tasks)
        assert index["payment-backend"].level > index["auth-backend"].level

    def test_profiles_wait_for_auth_backend(self):
        """Profile tasks wait on the auth backend rather than the auth UI."""
        result = decompose_project("User profile pages behind a login")
        keyword_edges = {(a.task_id, a.depends_on) for a in result.added if a.kind == "keyword"}
        assert ("profile-backend", "auth-backend") in keyword_edges
        assert "User profiles need registration" not in [r.reason for r in result.rejected_rules]

    def test_conflicting_rule_is_skipped(self):
        """deployment-testing waits on CI/CD, so 'devops needs testing' would loop."""
        result = decompose_project("Deploy the API with docker")
        reasons = [r.reason for r in result.rejected_rules]
        assert "Deployment requires testing" in reasons
        assert detect_cycles(result.tasks).has_cycles is False

    def test_features_and_total(self):
        result = decompose_project(SHOP)
        assert [f.key for f in result.features] == ["auth", "payment"]
        assert result.total_hours == pytest.approx(sum(t.estimated_hours for t in result.tasks), abs=0.05)

    def test_deterministic(self):
        assert decompose(SHOP) == decompose(SHOP)

    def test_accepts_constraints(self):
        tasks = decompose(SHOP, Constraints(max_tasks=3))
        assert len(tasks) > 3

    @pytest.mark.parametrize("description", ["", "   "])
    def test_empty_description(self, description):
        with pytest.raises(ValidationError):
            decompose(description)

    def test_no_features(self):
        with pytest.raises(NoFeaturesFoundError, match="auth, payment"):
            decompose("hello world")
