"""Agent and tool catalogs validate at load time and stay read-only."""

from dataclasses import FrozenInstanceError, replace

import pytest

from agents.catalog import AgentCatalog
from agents.definitions import BUDGET_COACH, DEFAULT_AGENTS, FINANCIAL_ADVISOR
from agents.tools.budget import VarianceCalculationTool
from agents.tools.catalog import ToolCatalog
from agents.tools.executor import ToolExecutor
from domain.exceptions import AgentNotFoundError, CatalogError, ToolNotFoundError
from domain.models import AgentDefinition, AgentRole, ToolCategory
from conftest import builtin_catalogs, make_ctx


def _agent(name, **overrides):
    fields = dict(name=name, role=AgentRole.COORDINATOR, instructions="Help.")
    fields.update(overrides)
    return AgentDefinition(**fields)


def test_builtin_catalogs_load():
    tools, agents = builtin_catalogs()
    assert len(tools.names()) == 15
    assert agents.names()[0] == FINANCIAL_ADVISOR
    for definition in agents.list():
        for target in definition.handoff_targets:
            assert target in agents


def test_list_filters_by_role_and_category():
    tools, agents = builtin_catalogs()
    assert [a.name for a in agents.list("budgeting")] == [BUDGET_COACH]
    assert {t.name for t in tools.list(ToolCategory.ENVELOPE)} == {"envelope_balance", "suggest_allocation"}
    with pytest.raises(ValueError):
        agents.list("astrology")


def test_unknown_lookups_raise_not_found():
    tools, agents = builtin_catalogs()
    with pytest.raises(AgentNotFoundError):
        agents.get("nobody")
    with pytest.raises(ToolNotFoundError):
        tools.get("nothing")
    assert agents.find(None) is None


def test_unknown_tool_reference_aborts_load():
    tools, _ = builtin_catalogs()
    catalog = AgentCatalog(tools)
    with pytest.raises(CatalogError, match="unknown tool"):
        catalog.load([_agent("a", tools=("budget_analysis", "teleport"))])


def test_load_is_all_or_nothing():
    tools, _ = builtin_catalogs()
    catalog = AgentCatalog(tools)
    with pytest.raises(CatalogError, match="handoff target"):
        catalog.load([_agent("a", handoff_targets=("b",)), _agent("c")])
    assert len(catalog) == 0
    assert catalog.find("a") is None


@pytest.mark.parametrize("bad", [
    _agent("", ),
    _agent("x", priority=11),
    _agent("x", instructions="   "),
    _agent("x", handoff_targets=("x",)),
    _agent("x", tools=("variance_calculation", "variance_calculation")),
])
def test_malformed_definitions_are_rejected(bad):
    tools, _ = builtin_catalogs()
    with pytest.raises(CatalogError):
        AgentCatalog(tools).load([bad])


def test_duplicate_and_empty_catalogs_are_rejected():
    tools, _ = builtin_catalogs()
    with pytest.raises(CatalogError):
        AgentCatalog(tools).load([_agent("a"), _agent("a")])
    with pytest.raises(CatalogError):
        AgentCatalog(tools).load([])


def test_agent_catalog_loads_once():
    _, agents = builtin_catalogs()
    with pytest.raises(CatalogError):
        agents.load(DEFAULT_AGENTS)


def test_require_configured_agents():
    _, agents = builtin_catalogs()
    agents.require(FINANCIAL_ADVISOR, BUDGET_COACH)
    with pytest.raises(CatalogError):
        agents.require("escalation_desk")


def test_frozen_tool_catalog_rejects_registration():
    tools, _ = builtin_catalogs()
    assert tools.frozen
    with pytest.raises(CatalogError):
        tools.register(VarianceCalculationTool())


def test_duplicate_tool_registration():
    catalog = ToolCatalog([VarianceCalculationTool()])
    with pytest.raises(CatalogError):
        catalog.register(VarianceCalculationTool())


def test_tool_without_description_is_rejected():
    tool = VarianceCalculationTool()
    tool.description = ""
    with pytest.raises(CatalogError):
        ToolCatalog([tool])


def test_definitions_are_immutable():
    definition = DEFAULT_AGENTS[0]
    with pytest.raises(FrozenInstanceError):
        definition.priority = 1
    assert replace(definition, priority=1).priority == 1


async def test_langchain_export_routes_through_executor():
    tools, agents = builtin_catalogs()
    executor = ToolExecutor(tools)
    ctx = make_ctx(agent_name=BUDGET_COACH)
    exported = tools.to_langchain_tools(agents.get(BUDGET_COACH).tools, executor, ctx)
    assert [t.name for t in exported] == list(agents.get(BUDGET_COACH).tools)

    variance = next(t for t in exported if t.name == "variance_calculation")
    payload = await variance.ainvoke({"budgeted": 10, "actual": 4})
    assert '"success": true' in payload
    assert executor.stats("variance_calculation").calls == 1
