"""
agents.definitions - Static configuration of the builtin agents.

Loaded once at startup into the AgentCatalog, which validates every
tool name and handoff target against the tool catalog and each other.
"""

from __future__ import annotations

from domain.models import AgentDefinition, AgentRole, RiskLevel

FINANCIAL_ADVISOR = "financial_advisor"
BUDGET_COACH = "budget_coach"
TRANSACTION_ANALYST = "transaction_analyst"
INSIGHT_GENERATOR = "insight_generator"

_MEMORY_TOOLS = ("get_user_memory_profile", "store_insight")

DEFAULT_AGENTS: tuple[AgentDefinition, ...] = (
    AgentDefinition(
        name=FINANCIAL_ADVISOR,
        display_name="Financial Advisor",
        role=AgentRole.COORDINATOR,
        instructions=(
            "You are a warm, practical financial coach. Answer general money questions, "
            "keep the big picture in view and help the user set and prioritise goals. "
            "When a question needs detailed envelope work, transaction analysis or trend "
            "reports, hand the conversation to the matching specialist."
        ),
        tools=(
            "get_user_memory_profile",
            "get_contextual_recommendations",
            "store_user_preference",
            "store_insight",
            "generate_recommendations",
            "track_goal_progress",
            "request_handoff",
        ),
        handoff_targets=(BUDGET_COACH, TRANSACTION_ANALYST, INSIGHT_GENERATOR),
        risk_level=RiskLevel.LOW,
        priority=8,
        requires_auth=True,
        estimated_duration_ms=4000,
        specializations=("general guidance", "goal setting", "escalations"),
    ),
    AgentDefinition(
        name=BUDGET_COACH,
        display_name="Budget Coach",
        role=AgentRole.BUDGETING,
        instructions=(
            "You specialise in envelope budgeting. Analyse how envelopes are funded "
            "against real spending, explain variances plainly and suggest concrete "
            "allocations. Never move money yourself; propose changes for the user to make."
        ),
        tools=(
            "budget_analysis",
            "variance_calculation",
            "envelope_balance",
            "suggest_allocation",
            *_MEMORY_TOOLS,
            "request_handoff",
        ),
        handoff_targets=(FINANCIAL_ADVISOR, TRANSACTION_ANALYST, INSIGHT_GENERATOR),
        risk_level=RiskLevel.MEDIUM,
        priority=7,
        estimated_duration_ms=5000,
        specializations=("envelope budgeting", "allocation", "variance"),
    ),
    AgentDefinition(
        name=TRANSACTION_ANALYST,
        display_name="Transaction Analyst",
        role=AgentRole.TRANSACTIONS,
        instructions=(
            "You analyse individual transactions and spending behaviour. Categorise "
            "transactions, explain where the money went and flag anything unusual."
        ),
        tools=(
            "spending_patterns",
            "categorize_transaction",
            "detect_anomalies",
            *_MEMORY_TOOLS,
            "request_handoff",
        ),
        handoff_targets=(FINANCIAL_ADVISOR, BUDGET_COACH, INSIGHT_GENERATOR),
        risk_level=RiskLevel.LOW,
        priority=6,
        estimated_duration_ms=4000,
        specializations=("categorisation", "spending patterns", "anomalies"),
    ),
    AgentDefinition(
        name=INSIGHT_GENERATOR,
        display_name="Insight Generator",
        role=AgentRole.INSIGHTS,
        instructions=(
            "You turn financial data into insight: month-over-month trends, progress "
            "toward goals and prioritised recommendations. Be specific and encouraging."
        ),
        tools=(
            "analyze_trends",
            "generate_recommendations",
            "track_goal_progress",
            *_MEMORY_TOOLS,
            "request_handoff",
        ),
        handoff_targets=(FINANCIAL_ADVISOR, BUDGET_COACH, TRANSACTION_ANALYST),
        risk_level=RiskLevel.LOW,
        priority=5,
        estimated_duration_ms=6000,
        specializations=("trends", "forecasts", "goal progress"),
    ),
)
