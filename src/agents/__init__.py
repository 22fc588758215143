"""
agents - Multi-agent orchestration layer.

Contains the agent and tool catalogs, the tool executor, routing,
handoffs, lifecycle tracking and the orchestrator that ties them together.
Depends on domain/ and application/. Never imports from infrastructure/.
"""
