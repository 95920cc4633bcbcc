"""Requirement-text collaborators: contradiction detection and ambiguity scoring.

Both are keyword-table driven and independent of the task graph; the
orchestrator runs them next to the planning pipeline and merges their
findings into its recommendations.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import NamedTuple

# ── Contradictions ───────────────────────────────────────────────────


class _Keyword(NamedTuple):
    category: str
    conflicts: tuple[str, ...]
    severity: float
    suggestion: str


KEYWORDS: dict[str, _Keyword] = {
    "simple": _Keyword("scope", ("comprehensive", "premium", "advanced", "full-featured", "enterprise"), 0.8,
                       "Define MVP vs phase 2 deliverables"),
    "quick": _Keyword("timeline", ("thorough", "high-quality", "premium", "rigorous-testing", "comprehensive"), 0.85,
                      "Establish a phased delivery timeline"),
    "fast": _Keyword("timeline", ("robust", "thorough", "security-hardened", "comprehensive-testing"), 0.85,
                     "Plan iterative delivery with a quick MVP first"),
    "cheap": _Keyword("budget", ("scalable", "enterprise", "premium", "high-performance", "redundant"), 0.9,
                      "Prioritize features by business value"),
    "low-budget": _Keyword("budget", ("enterprise", "scalable", "redundant", "premium", "high-performance"), 0.9,
                           "Start with an MVP, plan for scaling later"),
    "high-quality": _Keyword("quality", ("quick", "fast", "cheap"), 0.8,
                             "Define quality standards and timeline separately"),
    "premium": _Keyword("quality", ("simple", "quick", "cheap", "low-budget"), 0.85,
                        "Clarify premium features vs standard features"),
    "thorough": _Keyword("quality", ("quick", "fast", "cheap"), 0.8,
                         "Schedule a quality phase separately"),
    "scalable": _Keyword("infrastructure", ("cheap", "low-budget", "simple", "quick"), 0.85,
                         "Plan architecture for future scaling"),
    "enterprise": _Keyword("infrastructure", ("cheap", "low-budget", "simple", "quick"), 0.9,
                           "Build enterprise-grade features incrementally"),
    "robust": _Keyword("reliability", ("quick", "simple", "cheap"), 0.8,
                       "Implement robustness patterns gradually"),
    "mobile-first": _Keyword("platform", ("desktop-heavy", "feature-rich", "complex-ui"), 0.75,
                             "Use responsive design and progressive enhancement"),
    "desktop-heavy": _Keyword("platform", ("mobile-first", "responsive", "lightweight"), 0.75,
                              "Adopt a responsive design framework"),
    "lightweight": _Keyword("performance", ("feature-rich", "comprehensive", "enterprise"), 0.7,
                            "Modularize features and lazy-load"),
    "feature-rich": _Keyword("scope", ("simple", "lightweight", "quick"), 0.75,
                             "Separate core features from nice-to-haves"),
    "high-performance": _Keyword("performance", ("cheap", "simple", "quick"), 0.8,
                                 "Identify critical performance paths"),
    "security-hardened": _Keyword("security", ("fast", "quick", "simple"), 0.85,
                                  "Implement security by design, not after"),
    "microservices": _Keyword("architecture", ("simple", "quick", "cheap", "monolithic"), 0.85,
                              "Start monolithic, migrate to microservices later"),
    "monolithic": _Keyword("architecture", ("scalable", "enterprise", "modular"), 0.8,
                           "Design for modularity even in a monolith"),
    "comprehensive-testing": _Keyword("quality", ("quick", "fast", "cheap"), 0.8,
                                      "Plan testing phases with risk-based prioritization"),
    "rigorous-testing": _Keyword("quality", ("quick", "fast"), 0.75,
                                 "Automate testing to reduce timeline impact"),
    "redundant": _Keyword("infrastructure", ("cheap", "simple", "quick"), 0.8,
                          "Plan for high availability in phases"),
}

# (keyword, keyword, severity, explanation, suggestion)
PATTERNS: tuple[tuple[str, str, float, str, str], ...] = (
    ("fast", "high-quality", 0.9,
     "Cannot deliver high-quality work quickly without adequate resources",
     "Choose speed (MVP) or quality (thorough testing), or add budget for more people"),
    ("cheap", "premium", 0.95,
     "Premium features require significant investment to implement and maintain",
     "Either increase budget or reduce scope to core features only"),
    ("quick", "comprehensive", 0.88,
     "Comprehensive solutions require substantial development and testing time",
     "Phase the project: MVP first, then add comprehensive features"),
    ("fast", "security-hardened", 0.92,
     "Security hardening cannot be rushed without introducing vulnerabilities",
     "Plan a security review phase or build security features incrementally"),
    ("quick", "rigorous-testing", 0.85,
     "Rigorous testing takes time incompatible with quick delivery",
     "Use automated or risk-based testing, or extend the timeline"),
    ("low-budget", "scalable", 0.9,
     "Scalable architecture requires investment in infrastructure and design",
     "Build for current load, refactor for scale when budget allows"),
    ("cheap", "enterprise", 0.95,
     "Enterprise solutions require significant investment in features, support, and infrastructure",
     "Focus on SMB features first, plan enterprise features as revenue grows"),
    ("mobile-first", "desktop-heavy", 0.9,
     "Mobile-first and desktop-heavy are opposing design philosophies",
     "Adopt responsive design that works well on both platforms"),
    ("microservices", "quick", 0.88,
     "Microservices architecture adds complexity and development overhead",
     "Start with a monolith for speed, migrate when needed"),
    ("monolithic", "scalable", 0.8,
     "Monolithic architecture becomes difficult to scale at enterprise level",
     "Design the monolith for modularity, plan for eventual migration"),
    ("simple", "enterprise", 0.9,
     "Enterprise solutions require complexity in features, security, and scalability",
     "Focus on core enterprise features, phase additional capabilities"),
    ("low-budget", "redundant", 0.92,
     "Redundancy requires significant infrastructure investment",
     "Tolerate single points of failure now, add redundancy when budget allows"),
)


def contradiction_level(severity: float) -> str:
    if severity >= 0.85:
        return "critical"
    if severity >= 0.7:
        return "warning"
    return "info"


@dataclass(frozen=True)
class Contradiction:
    keywords: tuple[str, str]
    severity: float
    kind: str
    description: str
    suggestion: str

    @property
    def level(self) -> str:
        return contradiction_level(self.severity)

    def to_dict(self) -> dict:
        return {
            "type": f"{self.kind}-contradiction",
            "keywords": list(self.keywords),
            "severity": self.severity,
            "level": self.level,
            "description": self.description,
            "suggestion": self.suggestion,
        }


@dataclass(frozen=True)
class ContradictionReport:
    contradictions: list[Contradiction] = field(default_factory=list)
    keywords_found: list[str] = field(default_factory=list)

    @property
    def severity(self) -> str:
        if not self.contradictions:
            return "none"
        return self.contradictions[0].level

    @property
    def has_critical(self) -> bool:
        return any(c.level == "critical" for c in self.contradictions)

    def to_dict(self) -> dict:
        return {
            "contradictions": [c.to_dict() for c in self.contradictions],
            "keywordsFound": list(self.keywords_found),
            "severity": self.severity,
            "hasCritical": self.has_critical,
        }


def _has_term(text: str, term: str) -> bool:
    return re.search(rf"(?<![\w-]){re.escape(term)}(?![\w-])", text) is not None


def detect_contradictions(description: str) -> ContradictionReport:
    text = (description or "").lower()
    found = [k for k in KEYWORDS if _has_term(text, k)]

    by_pair: dict[tuple[str, ...], Contradiction] = {}
    for i, first in enumerate(found):
        for second in found[i + 1:]:
            a, b = KEYWORDS[first], KEYWORDS[second]
            if second in a.conflicts or first in b.conflicts:
                by_pair[tuple(sorted((first, second)))] = Contradiction(
                    keywords=(first, second),
                    severity=round((a.severity + b.severity) / 2, 3),
                    kind="keyword",
                    description=f'"{first}" conflicts with "{second}"',
                    suggestion=a.suggestion,
                )
    # explicit patterns override the generic pairing
    for first, second, severity, explanation, suggestion in PATTERNS:
        if first in found and second in found:
            by_pair[tuple(sorted((first, second)))] = Contradiction(
                keywords=(first, second),
                severity=severity,
                kind="pattern",
                description=explanation,
                suggestion=suggestion,
            )

    contradictions = sorted(by_pair.values(), key=lambda c: -c.severity)
    return ContradictionReport(contradictions, found)


# ── Ambiguity ────────────────────────────────────────────────────────


VAGUE_QUALIFIERS: dict[str, tuple[float, str, str]] = {
    "fast": (0.8, "performance", "What is the target response time in milliseconds?"),
    "quick": (0.75, "timeline", 'How many hours/days/weeks is "quick"?'),
    "good": (0.85, "quality", 'What quality metrics define "good" (test coverage, defect rate)?'),
    "user-friendly": (0.8, "usability", 'How will you measure "user-friendliness"?'),
    "intuitive": (0.85, "usability", 'What does "intuitive" mean for this interface?'),
    "modern": (0.8, "aesthetics", 'What design trends or examples define "modern"?'),
    "simple": (0.75, "complexity", "What should be simplified (features, interface, documentation)?"),
    "robust": (0.8, "reliability", 'What uptime % or reliability target defines "robust"?'),
    "scalable": (0.8, "performance", "How many users, transactions, or data volume must it scale to?"),
    "reliable": (0.8, "reliability", "What uptime percentage or MTBF is required?"),
    "secure": (0.85, "security", "What security standards or compliance requirements apply?"),
    "accessible": (0.75, "accessibility", "What accessibility standard (e.g. WCAG 2.1 AA) is required?"),
    "comprehensive": (0.75, "scope", "What specific features or scenarios must be included?"),
    "seamless": (0.8, "integration", "What metrics define seamless integration (latency, error rate)?"),
}

SUBJECTIVE_TERMS: dict[str, float] = {
    "beautiful": 0.95,
    "elegant": 0.9,
    "natural": 0.85,
    "professional": 0.8,
    "awesome": 0.9,
    "cool": 0.85,
    "slick": 0.8,
    "trendy": 0.8,
}

UNCLEAR_SCOPE: tuple[tuple[re.Pattern[str], float, str], ...] = (
    (re.compile(r"\bhandle\s+(?:this|that|various|different)\b", re.I), 0.8,
     "Specifically, what scenarios or cases must be handled?"),
    (re.compile(r"\bwork\s+(?:well|properly|correctly|fine)\b", re.I), 0.75,
     'How will you measure if it "works well"?'),
    (re.compile(r"\bsupport\s+(?:everything|all|various)\b", re.I), 0.8,
     "What specifically needs to be supported?"),
    (re.compile(r"\bmake\s+(?:sure|certain)\b", re.I), 0.75,
     "How will you verify this (tests, reviews, metrics)?"),
    (re.compile(r"\betc\b\.?|\band\s+so\s+on\b|\bsuch\s+as\b", re.I), 0.8,
     'Please provide the complete list without "etc" or "such as"'),
)

MODAL_TERMS: dict[str, float] = {
    "should": 0.65,
    "may": 0.75,
    "might": 0.75,
    "could": 0.7,
    "possibly": 0.8,
    "maybe": 0.85,
    "ideally": 0.75,
    "hopefully": 0.8,
    "probably": 0.8,
}

MEASURABLE = (
    re.compile(r"\d+\s*(?:seconds?|ms|milliseconds?|minutes?|hours?|days?|weeks?|months?)\b", re.I),
    re.compile(r"\d+\s*(?:%|percent)", re.I),
    re.compile(r"\d+\s*(?:users?|requests?|concurrent)\b", re.I),
    re.compile(r"\d+\s*(?:gb|mb|kb|bytes?)\b", re.I),
)
DEFINITIVE = re.compile(r"\b(?:must|will|shall|required|mandatory)\b", re.I)


@dataclass(frozen=True)
class AmbiguityIssue:
    type: str
    term: str
    severity: float
    category: str
    question: str

    @property
    def deduction(self) -> float:
        rate = 0.05 if self.type == "modal-language" else 0.08
        return round(self.severity * rate, 4)

    def to_dict(self) -> dict:
        return {
            "type": self.type,
            "term": self.term,
            "severity": self.severity,
            "category": self.category,
            "question": self.question,
            "deduction": self.deduction,
        }


@dataclass(frozen=True)
class ClarifyingQuestion:
    priority: str
    category: str
    question: str
    context: str
    severity: float

    def to_dict(self) -> dict:
        return {
            "priority": self.priority,
            "category": self.category,
            "question": self.question,
            "context": self.context,
            "severity": self.severity,
        }


@dataclass(frozen=True)
class AmbiguityReport:
    score: float
    level: str
    issues: list[AmbiguityIssue] = field(default_factory=list)
    questions: list[ClarifyingQuestion] = field(default_factory=list)
    measurable_criteria: int = 0

    def to_dict(self) -> dict:
        return {
            "score": self.score,
            "level": self.level,
            "issues": [i.to_dict() for i in self.issues],
            "questions": [q.to_dict() for q in self.questions],
            "measurableCriteria": self.measurable_criteria,
        }


def clarity_level(score: float) -> str:
    if score >= 0.9:
        return "excellent"
    if score >= 0.7:
        return "good"
    if score >= 0.5:
        return "fair"
    if score >= 0.2:
        return "poor"
    return "critical"


_PRIORITY_ORDER = {"critical": 0, "high": 1, "medium": 2, "low": 3}


def score_ambiguity(description: str) -> AmbiguityReport:
    """Clarity score in [0, 1] plus clarifying questions, most urgent first."""
    text = description or ""
    lower = text.lower()
    issues: list[AmbiguityIssue] = []

    for term, (severity, category, question) in VAGUE_QUALIFIERS.items():
        if _has_term(lower, term):
            issues.append(AmbiguityIssue("vague-qualifier", term, severity, category, question))
    for term, severity in SUBJECTIVE_TERMS.items():
        if _has_term(lower, term):
            issues.append(AmbiguityIssue(
                "subjective-term", term, severity, "acceptance-criteria",
                f'Define what "{term}" means for this project',
            ))
    for pattern, severity, question in UNCLEAR_SCOPE:
        for match in pattern.finditer(text):
            issues.append(AmbiguityIssue("unclear-scope", match.group(0), severity, "scope", question))
    for term, severity in MODAL_TERMS.items():
        for _ in re.finditer(rf"\b{term}\b", lower):
            issues.append(AmbiguityIssue(
                "modal-language", term, severity, "language",
                "Replace with definitive language (must, will, shall)",
            ))

    measurable = sum(len(p.findall(text)) for p in MEASURABLE)
    definitive = len(DEFINITIVE.findall(text))

    score = 1.0 - sum(i.deduction for i in issues)
    score += min(measurable * 0.02, 0.15)
    score += min(definitive * 0.01, 0.1)
    score = round(max(0.0, min(1.0, score)), 2)

    issues.sort(key=lambda i: -i.deduction)
    return AmbiguityReport(
        score=score,
        level=clarity_level(score),
        issues=issues,
        questions=_clarifying_questions(issues, score),
        measurable_criteria=measurable,
    )


def _clarifying_questions(issues: list[AmbiguityIssue], score: float) -> list[ClarifyingQuestion]:
    questions: list[ClarifyingQuestion] = []
    asked: set[str] = set()
    for issue in issues:
        if issue.question in asked:
            continue
        asked.add(issue.question)
        questions.append(ClarifyingQuestion(
            priority="medium" if issue.type == "modal-language" else "high",
            category=issue.category,
            question=issue.question,
            context=f'Found "{issue.term}" in requirements',
            severity=issue.deduction,
        ))

    if score < 0.5:
        questions.append(ClarifyingQuestion(
            "critical", "scope", "What are the 5 most critical success criteria for this project?",
            "Overall requirement clarity is low", 1.0,
        ))
    if any(i.type == "unclear-scope" for i in issues):
        questions.append(ClarifyingQuestion(
            "critical", "scope", "What is the minimum viable feature set (MVP)?",
            "Scope appears unbounded or unclear", 0.95,
        ))
    if any(i.type == "subjective-term" for i in issues):
        questions.append(ClarifyingQuestion(
            "high", "acceptance-criteria",
            "Can you provide 3-5 reference examples or mockups for subjective goals?",
            "Project has subjective terms needing definition", 0.9,
        ))
    if len(issues) > 5:
        questions.append(ClarifyingQuestion(
            "critical", "general",
            "Can you rewrite the requirements using specific numbers, dates, or measurable criteria?",
            "Multiple ambiguities detected", 0.95,
        ))

    questions.sort(key=lambda q: (_PRIORITY_ORDER[q.priority], -q.severity))
    return questions
