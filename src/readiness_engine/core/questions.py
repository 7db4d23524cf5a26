"""Built-in AI Readiness question catalog.

Contains 24 agreement statements across 8 categories used by the default
readiness survey. Respondents answer each statement on the five-level
agreement scale (-2 Strongly Disagree .. 2 Strongly Agree).

Categories:
    Strategy & Vision             - AI ambition, leadership sponsorship
    Financial & Resources         - budget and funding for AI
    Culture & Change-Readiness    - appetite for experimentation and change
    Governance, Ethics & Risk     - policy, oversight, responsible AI
    Skills & Literacy             - AI skills and training
    Process & Operations          - process documentation and automation
    Data & Information            - data quality, access and ownership
    Technology & Integration      - platforms, tooling and integration
"""

from dataclasses import dataclass

from readiness_engine.core.domain import Question


@dataclass(frozen=True)
class SurveyDefinition:
    """A survey template served by the question catalog.

    Attributes:
        survey_id: Stable survey template id.
        title: Display title, used to name new attempts.
        version: Catalog version stamped onto attempts at creation.
        questions: Ordered question list.
        completion_limit: Maximum attempts one owner may hold, or None.
    """

    survey_id: int
    title: str
    version: str
    questions: tuple[Question, ...]
    completion_limit: int | None = None


CATEGORIES: list[str] = [
    "Strategy & Vision",
    "Financial & Resources",
    "Culture & Change-Readiness",
    "Governance, Ethics & Risk",
    "Skills & Literacy",
    "Process & Operations",
    "Data & Information",
    "Technology & Integration",
]

QUESTION_BANK: list[Question] = [
    # -----------------------------------------------------------------------
    # Strategy & Vision
    # -----------------------------------------------------------------------
    Question(
        id=1,
        category="Strategy & Vision",
        text="Our organisation has a documented AI strategy that is linked to business goals.",
        details="A strategy counts if it names target outcomes, owners and a time horizon.",
    ),
    Question(
        id=2,
        category="Strategy & Vision",
        text="Senior leadership actively sponsors and communicates our AI initiatives.",
    ),
    Question(
        id=3,
        category="Strategy & Vision",
        text="We have identified and prioritised concrete AI use cases for the next 12 months.",
    ),
    # -----------------------------------------------------------------------
    # Financial & Resources
    # -----------------------------------------------------------------------
    Question(
        id=4,
        category="Financial & Resources",
        text="A dedicated budget exists for AI pilots and their move into production.",
    ),
    Question(
        id=5,
        category="Financial & Resources",
        text="We measure the return on investment of AI projects against agreed criteria.",
    ),
    Question(
        id=6,
        category="Financial & Resources",
        text="We can allocate people and time to AI work without stalling core operations.",
    ),
    # -----------------------------------------------------------------------
    # Culture & Change-Readiness
    # -----------------------------------------------------------------------
    Question(
        id=7,
        category="Culture & Change-Readiness",
        text="Employees are encouraged to experiment with AI tools in their daily work.",
    ),
    Question(
        id=8,
        category="Culture & Change-Readiness",
        text="Failed experiments are treated as learning rather than as performance issues.",
    ),
    Question(
        id=9,
        category="Culture & Change-Readiness",
        text="Teams adapt quickly when new tools change the way work is done.",
    ),
    # -----------------------------------------------------------------------
    # Governance, Ethics & Risk
    # -----------------------------------------------------------------------
    Question(
        id=10,
        category="Governance, Ethics & Risk",
        text="We have a published policy covering acceptable use of AI.",
    ),
    Question(
        id=11,
        category="Governance, Ethics & Risk",
        text="AI systems are reviewed for bias, privacy and security risks before release.",
    ),
    Question(
        id=12,
        category="Governance, Ethics & Risk",
        text="Clear accountability exists for decisions made or supported by AI systems.",
    ),
    # -----------------------------------------------------------------------
    # Skills & Literacy
    # -----------------------------------------------------------------------
    Question(
        id=13,
        category="Skills & Literacy",
        text="Most employees understand what AI can and cannot do for their role.",
    ),
    Question(
        id=14,
        category="Skills & Literacy",
        text="We offer structured AI training paths for technical and non-technical staff.",
    ),
    Question(
        id=15,
        category="Skills & Literacy",
        text="We have in-house specialists able to build, evaluate and maintain AI solutions.",
    ),
    # -----------------------------------------------------------------------
    # Process & Operations
    # -----------------------------------------------------------------------
    Question(
        id=16,
        category="Process & Operations",
        text="Our core business processes are documented well enough to be automated.",
    ),
    Question(
        id=17,
        category="Process & Operations",
        text="We track process performance with metrics that AI improvements could move.",
    ),
    Question(
        id=18,
        category="Process & Operations",
        text="There is a repeatable path for taking an AI pilot into day-to-day operations.",
    ),
    # -----------------------------------------------------------------------
    # Data & Information
    # -----------------------------------------------------------------------
    Question(
        id=19,
        category="Data & Information",
        text="Our key business data is accurate, complete and kept up to date.",
    ),
    Question(
        id=20,
        category="Data & Information",
        text="Teams can find and access the data they need without lengthy manual requests.",
    ),
    Question(
        id=21,
        category="Data & Information",
        text="Data ownership and stewardship responsibilities are clearly assigned.",
    ),
    # -----------------------------------------------------------------------
    # Technology & Integration
    # -----------------------------------------------------------------------
    Question(
        id=22,
        category="Technology & Integration",
        text="Our systems expose APIs that allow AI services to be integrated.",
    ),
    Question(
        id=23,
        category="Technology & Integration",
        text="We have approved AI platforms or tools available to teams today.",
    ),
    Question(
        id=24,
        category="Technology & Integration",
        text="Our infrastructure can scale to support AI workloads in production.",
    ),
]

QUESTIONS_BY_ID: dict[int, Question] = {q.id: q for q in QUESTION_BANK}

QUESTIONS_BY_CATEGORY: dict[str, list[Question]] = {
    category: [q for q in QUESTION_BANK if q.category == category]
    for category in CATEGORIES
}

AI_READINESS_SURVEY: SurveyDefinition = SurveyDefinition(
    survey_id=1,
    title="AI Readiness Assessment",
    version="2024.1",
    questions=tuple(QUESTION_BANK),
)


def category_order(questions: list[Question] | tuple[Question, ...]) -> list[str]:
    """Return the distinct categories of a question list in first-seen order."""
    seen: dict[str, None] = {}
    for question in questions:
        seen.setdefault(question.category, None)
    return list(seen)
