"""AI Readiness assessment engine.

Answer-state management, category and overall readiness scoring, the
draft → in-progress → completed lifecycle for account and guest owners,
and industry/global benchmark comparison across completed assessments.
"""

__version__ = "0.1.0"
