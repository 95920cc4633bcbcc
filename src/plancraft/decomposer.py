"""Keyword-driven decomposition of a project description into tasks.

Matching is plain word-boundary regex over the lowercased text.  Each matched
feature expands into task templates; templates missing from the explicit
library are derived from their id suffix (``cart-backend`` -> a backend stage
task).  The resulting task list is wired through the graph engine for
implicit dependencies, cycle repair, and levels before priorities are scored.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import NamedTuple

from plancraft import graph, log
from plancraft.errors import NoFeaturesFoundError, ValidationError
from plancraft.graph import AddedDependency, DependencyRule
from plancraft.tasks.model import Complexity, Constraints, Task, clamp_hours


class FeatureSpec(NamedTuple):
    name: str
    category: str
    templates: tuple[str, ...]
    base_estimate: float
    keywords: tuple[str, ...]


class TaskTemplate(NamedTuple):
    title: str
    category: str
    hours: float
    priority: int
    dependencies: tuple[str, ...] = ()


FEATURES: dict[str, FeatureSpec] = {
    # authentication
    "auth": FeatureSpec(
        "User Authentication", "authentication",
        ("auth-design", "auth-backend", "auth-frontend", "auth-testing"), 8,
        ("auth", "login", "signin", "logout", "signup", "registration", "password", "session"),
    ),
    "oauth": FeatureSpec(
        "OAuth Integration", "authentication",
        ("oauth-setup", "oauth-backend", "oauth-frontend"), 6,
        ("oauth", "google login", "github login", "third-party", "sso"),
    ),
    "mfa": FeatureSpec(
        "Multi-Factor Authentication", "authentication",
        ("mfa-design", "mfa-backend", "mfa-frontend"), 10,
        ("mfa", "two-factor", "otp", "authenticator", "2fa"),
    ),
    # commerce
    "payment": FeatureSpec(
        "Payment Processing", "payment",
        ("payment-design", "payment-backend", "payment-integration", "payment-testing"), 12,
        ("payment", "checkout", "stripe", "paypal", "billing", "invoice", "transactions"),
    ),
    "cart": FeatureSpec(
        "Shopping Cart", "ecommerce",
        ("cart-design", "cart-backend", "cart-frontend", "cart-testing"), 8,
        ("cart", "shopping cart", "checkout", "items", "order"),
    ),
    "catalog": FeatureSpec(
        "Product Catalog", "ecommerce",
        ("catalog-design", "catalog-backend", "catalog-frontend", "catalog-api"), 10,
        ("catalog", "products", "inventory", "listing", "browse", "search"),
    ),
    "products": FeatureSpec(
        "Product Management", "ecommerce",
        ("product-crud", "product-api", "product-ui"), 8,
        ("product", "products", "sku", "pricing", "inventory"),
    ),
    # users
    "users": FeatureSpec(
        "User Management", "user-management",
        ("user-design", "user-backend", "user-frontend", "user-testing"), 8,
        ("users", "user management", "profiles", "accounts", "admin", "permissions"),
    ),
    "profile": FeatureSpec(
        "User Profiles", "user-management",
        ("profile-backend", "profile-frontend", "profile-api"), 6,
        ("profile", "user profile", "account settings", "personal info"),
    ),
    "roles": FeatureSpec(
        "Role-Based Access Control", "authorization",
        ("rbac-design", "rbac-backend", "rbac-frontend"), 8,
        ("roles", "permissions", "rbac", "access control", "admin", "user roles"),
    ),
    # data
    "database": FeatureSpec(
        "Database Design", "database",
        ("db-design", "db-schema", "db-migration"), 4,
        ("database", "db", "schema", "migration", "sql", "mongo", "postgresql"),
    ),
    "data": FeatureSpec(
        "Data Management", "data-management",
        ("data-design", "data-backend", "data-api"), 6,
        ("data", "import", "export", "sync", "cache"),
    ),
    # frontend
    "dashboard": FeatureSpec(
        "Dashboard", "frontend",
        ("dashboard-design", "dashboard-frontend", "dashboard-testing"), 8,
        ("dashboard", "analytics", "metrics", "charts", "reporting"),
    ),
    "responsive": FeatureSpec(
        "Responsive Design", "frontend",
        ("responsive-design", "mobile-frontend", "tablet-frontend"), 6,
        ("responsive", "mobile", "mobile-first", "responsive design"),
    ),
    "ui": FeatureSpec(
        "User Interface", "frontend",
        ("ui-design", "ui-frontend", "ui-testing"), 6,
        ("ui", "interface", "design", "component", "layout"),
    ),
    "search": FeatureSpec(
        "Search Functionality", "frontend",
        ("search-backend", "search-frontend", "search-indexing"), 6,
        ("search", "filter", "query", "full-text", "elasticsearch"),
    ),
    # backend / integration
    "api": FeatureSpec(
        "API Development", "backend",
        ("api-design", "api-implementation", "api-testing", "api-documentation"), 8,
        ("api", "rest", "graphql", "endpoints", "integration"),
    ),
    "webhooks": FeatureSpec(
        "Webhooks", "backend",
        ("webhook-design", "webhook-backend"), 5,
        ("webhooks", "events", "notifications", "event-driven"),
    ),
    "notifications": FeatureSpec(
        "Notifications", "backend",
        ("notification-design", "notification-backend", "notification-frontend"), 6,
        ("notifications", "email", "sms", "push", "alerts"),
    ),
    "scaling": FeatureSpec(
        "Scalability", "backend",
        ("caching", "optimization", "load-balancing"), 8,
        ("scalable", "scale", "performance", "optimization", "caching"),
    ),
    # operations
    "deployment": FeatureSpec(
        "Deployment", "devops",
        ("deployment-setup", "deployment-automation", "deployment-testing"), 4,
        ("deployment", "deploy", "docker", "kubernetes", "ci/cd", "devops"),
    ),
    "monitoring": FeatureSpec(
        "Monitoring & Logging", "devops",
        ("monitoring-setup", "logging-setup", "alerts"), 5,
        ("monitoring", "logging", "metrics", "performance", "alerts"),
    ),
    "testing": FeatureSpec(
        "Testing Strategy", "testing",
        ("unit-tests", "integration-tests", "e2e-tests"), 6,
        ("testing", "test", "unit", "integration", "e2e", "qa"),
    ),
    "documentation": FeatureSpec(
        "Documentation", "documentation",
        ("api-docs", "user-docs", "dev-docs"), 4,
        ("documentation", "docs", "readme", "api-docs"),
    ),
}

TEMPLATES: dict[str, TaskTemplate] = {
    "auth-design": TaskTemplate("Authentication System Design", "backend", 3, 8, ("database-design",)),
    "auth-backend": TaskTemplate("Authentication Backend Implementation", "backend", 6, 8, ("auth-design",)),
    "auth-frontend": TaskTemplate("Authentication UI Implementation", "frontend", 4, 8, ("auth-backend",)),
    "auth-testing": TaskTemplate("Authentication Testing", "testing", 3, 8, ("auth-frontend",)),
    "db-schema": TaskTemplate("Database Schema Implementation", "database", 2, 9, ("database-design",)),
    "db-migration": TaskTemplate("Database Migration Setup", "database", 2, 7, ("db-schema",)),
    "payment-design": TaskTemplate("Payment Flow Design", "backend", 3, 8, ("database-design", "auth-backend")),
    "payment-backend": TaskTemplate("Payment Backend Implementation", "backend", 8, 8, ("payment-design",)),
    "payment-integration": TaskTemplate("Payment Gateway Integration", "backend", 5, 8, ("payment-backend",)),
    "payment-testing": TaskTemplate("Payment Testing", "testing", 4, 8, ("payment-integration",)),
    "api-design": TaskTemplate("API Design & Specification", "backend", 3, 8, ("database-design",)),
    "api-implementation": TaskTemplate("API Implementation", "backend", 8, 8, ("api-design",)),
    "api-testing": TaskTemplate("API Testing", "testing", 4, 7, ("api-implementation",)),
    "api-documentation": TaskTemplate("API Documentation", "documentation", 3, 6, ("api-implementation",)),
    "ui-design": TaskTemplate("UI/UX Design", "frontend", 4, 7),
    "ui-frontend": TaskTemplate("Frontend Components Implementation", "frontend", 8, 7, ("ui-design", "api-design")),
    "responsive-design": TaskTemplate("Responsive Design Implementation", "frontend", 4, 7, ("ui-frontend",)),
    "unit-tests": TaskTemplate("Unit Tests", "testing", 6, 6, ("api-implementation",)),
    "integration-tests": TaskTemplate("Integration Tests", "testing", 5, 6, ("unit-tests", "api-implementation")),
    "e2e-tests": TaskTemplate("End-to-End Tests", "testing", 5, 6, ("integration-tests", "ui-frontend")),
    "deployment-setup": TaskTemplate("Deployment Environment Setup", "devops", 3, 5, ("environment-config",)),
    "deployment-automation": TaskTemplate("CI/CD Pipeline Setup", "devops", 4, 5, ("deployment-setup",)),
    "monitoring-setup": TaskTemplate("Monitoring & Logging Setup", "devops", 3, 5, ("deployment-automation",)),
}


class _Stage(NamedTuple):
    order: int
    category: str | None  # None -> derived from the feature
    hours: float
    priority: int


# id suffix -> pipeline stage for templates outside the explicit library
STAGES: dict[str, _Stage] = {
    "design": _Stage(0, None, 3, 7),
    "setup": _Stage(0, None, 2, 6),
    "crud": _Stage(1, "backend", 6, 7),
    "backend": _Stage(1, "backend", 6, 7),
    "implementation": _Stage(1, "backend", 6, 7),
    "indexing": _Stage(1, "backend", 4, 6),
    "automation": _Stage(1, "devops", 4, 5),
    "api": _Stage(2, "backend", 4, 7),
    "integration": _Stage(2, "backend", 5, 7),
    "frontend": _Stage(3, "frontend", 5, 7),
    "ui": _Stage(3, "frontend", 5, 7),
    "testing": _Stage(4, "testing", 3, 6),
    "tests": _Stage(4, "testing", 3, 6),
    "docs": _Stage(4, "documentation", 3, 5),
    "documentation": _Stage(4, "documentation", 3, 5),
}

_TASK_CATEGORY_FOR_FEATURE = {
    "database": "database",
    "frontend": "frontend",
    "devops": "devops",
    "testing": "testing",
    "documentation": "documentation",
}

SETUP_ID = "setup-project"
DATABASE_ID = "database-design"
TESTING_ID = "testing-qa"
DEPLOYMENT_ID = "deployment"

# auth UI and test tasks sit downstream of every backend task, so keyword
# rules may only point at auth backends
AUTH_BACKEND_TITLES = ("authentication backend", "oauth backend")

DEFAULT_RULES: tuple[DependencyRule, ...] = (
    DependencyRule("category", ("backend",), ("database",), "API requires database design"),
    DependencyRule("category", ("frontend",), ("backend",), "Frontend requires API specification"),
    DependencyRule("category", ("devops",), ("testing",), "Deployment requires testing"),
    DependencyRule("category", ("documentation",), ("backend",), "Documentation needs implementation"),
    DependencyRule(
        "keyword", ("payment", "checkout", "stripe", "paypal"), AUTH_BACKEND_TITLES,
        "Payment flows need authentication first",
    ),
    DependencyRule(
        "keyword", ("profile", "account"), AUTH_BACKEND_TITLES,
        "User profiles need registration",
    ),
)

CATEGORY_WEIGHTS: dict[str, int] = {
    "setup": 10,
    "database": 9,
    "backend": 8,
    "frontend": 7,
    "testing": 6,
    "devops": 5,
    "documentation": 4,
}
COMPLEXITY_WEIGHTS: dict[Complexity, int] = {
    Complexity.COMPLEX: 10,
    Complexity.MODERATE: 5,
    Complexity.SIMPLE: 2,
}
URGENCY_KEYWORDS = ("urgent", "asap", "critical", "priority", "first", "immediately")


@dataclass(frozen=True)
class Feature:
    key: str
    name: str
    category: str
    templates: tuple[str, ...]
    base_estimate: float
    mentions: int
    importance: int

    @property
    def multiplier(self) -> float:
        """Estimate scale between 0.8 and 1.2 driven by importance."""
        return 0.8 + (self.importance / 10) * 0.4

    def to_dict(self) -> dict:
        return {
            "key": self.key,
            "featureName": self.name,
            "category": self.category,
            "taskTemplates": list(self.templates),
            "baseEstimate": self.base_estimate,
            "mentions": self.mentions,
            "importance": self.importance,
        }


@dataclass(frozen=True)
class Decomposition:
    tasks: list[Task]
    features: list[Feature]
    added: list[AddedDependency] = field(default_factory=list)
    rejected_rules: list[DependencyRule] = field(default_factory=list)
    removed_edges: list[tuple[str, str]] = field(default_factory=list)

    @property
    def total_hours(self) -> float:
        return round(sum(t.estimated_hours for t in self.tasks), 1)


# ── Feature extraction ───────────────────────────────────────────────


def extract_features(description: str) -> list[Feature]:
    """Return matched features, most-mentioned first."""
    if not description:
        return []
    text = description.lower()
    found: list[Feature] = []
    for key, entry in FEATURES.items():
        mentions = 0
        for keyword in entry.keywords:
            mentions += len(re.findall(rf"\b{re.escape(keyword)}\b", text))
        if mentions:
            found.append(Feature(
                key=key,
                name=entry.name,
                category=entry.category,
                templates=entry.templates,
                base_estimate=entry.base_estimate,
                mentions=mentions,
                importance=min(mentions, 10),
            ))
    found.sort(key=lambda f: -f.importance)
    return found


# ── Task generation ──────────────────────────────────────────────────


def _stage_for(template_id: str) -> _Stage | None:
    return STAGES.get(template_id.rsplit("-", 1)[-1])


def _title_for(template_id: str) -> str:
    return " ".join(part.capitalize() for part in template_id.split("-"))


def _derived_template(template_id: str, feature: Feature) -> TaskTemplate:
    stage = _stage_for(template_id)
    fallback_category = _TASK_CATEGORY_FOR_FEATURE.get(feature.category, "backend")
    if stage is None:
        return TaskTemplate(_title_for(template_id), fallback_category, feature.base_estimate / 2, 6)
    category = stage.category or fallback_category
    return TaskTemplate(_title_for(template_id), category, stage.hours, stage.priority)


def _stage_dependencies(template_id: str, feature: Feature, created: set[str]) -> tuple[str, ...]:
    """Depend on the closest earlier-stage template of the same feature."""
    stage = _stage_for(template_id)
    order = stage.order if stage else 1
    best: tuple[int, str] | None = None
    for other in feature.templates:
        if other == template_id or other not in created:
            continue
        other_stage = _stage_for(other)
        other_order = other_stage.order if other_stage else 1
        if other_order < order and (best is None or other_order >= best[0]):
            best = (other_order, other)
    return (best[1],) if best else ()


def generate_tasks(features: list[Feature]) -> list[Task]:
    """Expand features into tasks, always including setup and database design."""
    tasks: list[Task] = [
        Task(
            id=SETUP_ID,
            title="Project Setup",
            description="Initial project setup and configuration",
            estimated_hours=2,
            priority=10,
            category="setup",
        ),
        Task(
            id=DATABASE_ID,
            title="Database Design",
            description="Design and plan database schema",
            estimated_hours=3,
            priority=9,
            category="database",
            dependencies=[SETUP_ID],
        ),
    ]
    created = {SETUP_ID, DATABASE_ID}
    wanted: list[tuple[str, Feature, TaskTemplate]] = []

    for feature in features:
        for template_id in feature.templates:
            if template_id in created:
                continue
            created.add(template_id)
            template = TEMPLATES.get(template_id) or _derived_template(template_id, feature)
            wanted.append((template_id, feature, template))

    for template_id, feature, template in wanted:
        if template_id in TEMPLATES:
            deps = [d for d in template.dependencies if d in created]
        else:
            deps = list(_stage_dependencies(template_id, feature, created))
        if not deps:
            deps = [SETUP_ID]
        hours = clamp_hours(round(template.hours * feature.multiplier, 1))
        tasks.append(Task(
            id=template_id,
            title=template.title,
            description=f"{feature.name}: {template.title}",
            estimated_hours=hours,
            priority=template.priority,
            category=template.category,
            dependencies=deps,
        ))

    if not any(f.key == "testing" for f in features):
        dev = [t for t in tasks if t.category in ("backend", "frontend")]
        dev_hours = sum(t.estimated_hours for t in dev)
        tasks.append(Task(
            id=TESTING_ID,
            title="Testing & QA",
            description="Comprehensive testing including unit, integration, and E2E tests",
            estimated_hours=clamp_hours(max(1.0, round(dev_hours * 0.2))),
            priority=6,
            category="testing",
            dependencies=[t.id for t in dev] or [SETUP_ID],
        ))

    if not any(t.category == "devops" for t in tasks):
        testing = [t.id for t in tasks if t.category == "testing"]
        tasks.append(Task(
            id=DEPLOYMENT_ID,
            title="Deployment & DevOps",
            description="Setup deployment pipeline, CI/CD, and production environment",
            estimated_hours=4,
            priority=5,
            category="devops",
            dependencies=testing or [SETUP_ID],
        ))

    return tasks


# ── Priorities ───────────────────────────────────────────────────────


def calculate_priorities(tasks: list[Task], description: str = "") -> list[Task]:
    """Recompute priorities and return copies sorted most-urgent first.

    score = 0.3 * dependents + 0.4 * category + 0.2 * complexity + 0.1 * urgency
    """
    dependents: dict[str, int] = {t.id: 0 for t in tasks}
    for task in tasks:
        for dep in task.dependencies:
            if dep in dependents:
                dependents[dep] += 1

    text = description.lower()
    urgency = 3 if any(k in text for k in URGENCY_KEYWORDS) else 0

    scored: list[Task] = []
    for task in tasks:
        dependency_factor = min(dependents[task.id] * 1.5, 10)
        category_factor = CATEGORY_WEIGHTS.get(task.category, 5)
        complexity_factor = COMPLEXITY_WEIGHTS[task.complexity]
        score = (
            dependency_factor * 0.3
            + category_factor * 0.4
            + complexity_factor * 0.2
            + urgency * 0.1
        )
        priority = min(10, max(1, int(score + 0.5)))
        scored.append(task.copy(priority=priority))

    scored.sort(key=lambda t: -t.priority)
    return scored


# ── Entry points ─────────────────────────────────────────────────────


def decompose_project(
    description: str,
    constraints: Constraints | None = None,
    *,
    rules: tuple[DependencyRule, ...] | list[DependencyRule] = DEFAULT_RULES,
) -> Decomposition:
    """Full decomposition with the intermediate details kept."""
    if not isinstance(description, str) or not description.strip():
        raise ValidationError("Description must be a non-empty string")

    features = extract_features(description)
    if not features:
        raise NoFeaturesFoundError(
            "No recognized features found in description. "
            "Include keywords like: auth, payment, api, database."
        )
    log.debug(f"Matched features: {', '.join(f.key for f in features)}")

    tasks = generate_tasks(features)

    added: list[AddedDependency] = []
    rejected: list[DependencyRule] = []
    for rule in rules:
        result = graph.add_implicit_dependencies(tasks, [rule])
        if result.conflict_detected:
            log.debug(f"Skipped rule '{rule.reason}': it would create a cycle")
            rejected.append(rule)
            continue
        tasks = result.tasks
        added.extend(result.added)

    repair = graph.repair_cycles(tasks)
    tasks = graph.assign_levels(repair.tasks)
    tasks = calculate_priorities(tasks, description)

    if constraints is not None and len(tasks) > constraints.max_tasks:
        log.debug(f"Decomposition produced {len(tasks)} tasks (limit {constraints.max_tasks})")

    return Decomposition(
        tasks=tasks,
        features=features,
        added=added,
        rejected_rules=rejected,
        removed_edges=repair.removed_edges,
    )


def decompose(
    description: str,
    constraints: Constraints | None = None,
    *,
    rules: tuple[DependencyRule, ...] | list[DependencyRule] = DEFAULT_RULES,
) -> list[Task]:
    """Map *description* to a leveled, prioritized task list.

    Raises NoFeaturesFoundError when no keyword matches.
    """
    return decompose_project(description, constraints, rules=rules).tasks
