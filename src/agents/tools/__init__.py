"""
agents.tools - Tool interface, catalog, executor and builtin financial tools.
"""
