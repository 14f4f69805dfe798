import sys
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[1]))

import pytest

from engine.assembler import (
    AssemblyOptions,
    FeatureToggles,
    GlobalNodeOptions,
    KnowledgeBaseEntry,
    PathwayAssembler,
    TransferTarget,
    WebhookIntegration,
    assemble_pathway,
)
from engine.concepts import extract_concepts
from engine.conversation import PathwayGraph
from engine.nodes import NodeType
from engine.persona import Persona

FAMILY_TEXT = "Insurance agency helping a family of four, spouse and children, find affordable options"

DESCRIPTIONS = [
    "",
    FAMILY_TEXT,
    "I need insurance right away for my family",
    "Software support line for login problems, outages and billing questions",
    "A firm called greenleaf handling complaints and quote requests",
]


def full_options() -> AssemblyOptions:
    return AssemblyOptions(
        webhooks=[WebhookIntegration(name="CRM Sync", url="https://crm.example.com/leads")],
        knowledge_bases=[
            KnowledgeBaseEntry(name="Plan FAQ", content="Plans renew yearly.", trigger_phrases=["plan details", "renewal"])
        ],
        transfers=[TransferTarget(name="Licensed Agent", number="+14155550123", conditions=["wants to enroll"])],
    )


def assert_well_formed(graph: PathwayGraph) -> None:
    ids = [n.id for n in graph.nodes]
    assert len(ids) == len(set(ids))
    assert len([n for n in graph.nodes if n.is_start]) == 1
    assert graph.of_type(NodeType.END_CALL)
    for edge in graph.edges:
        assert edge.source in ids
        assert edge.target in ids
    reachable = graph.reachable_from(graph.start.id)
    for node in graph.nodes:
        assert node.is_global or node.id in reachable


@pytest.mark.parametrize("description", DESCRIPTIONS)
@pytest.mark.parametrize("with_options", [False, True])
def test_generated_graphs_are_well_formed(description, with_options):
    options = full_options() if with_options else None
    result = PathwayAssembler().assemble("Test Line", description, options)
    assert_well_formed(result.graph)


def test_degenerate_graph_has_three_nodes():
    graph = PathwayAssembler().assemble("", "").graph
    assert [n.name for n in graph.nodes] == ["Intelligent Start", "Resolution & Wrap-up", "End Call"]
    hub, resolution, end = graph.nodes
    assert {(e.source, e.target) for e in graph.edges} == {
        (hub.id, resolution.id),
        (resolution.id, end.id),
        (resolution.id, hub.id),
    }
    assert graph.traverse(["request handled", "satisfied"])[-1] == "End Call"


def test_fan_out_count_and_completion_edges():
    k = len(extract_concepts(FAMILY_TEXT, "Family Line").concepts)
    result = PathwayAssembler().assemble("Family Line", FAMILY_TEXT, full_options())
    graph = result.graph
    assert len(graph.nodes) == 1 + k + 1 + 1 + 1 + 2

    hub = graph.start
    resolution = graph.find("Resolution & Wrap-up")
    end = graph.of_type(NodeType.END_CALL)[0]
    branches = [n for n in graph.nodes if n.id not in (hub.id, resolution.id, end.id)]
    assert len(branches) == k + 3
    for node in branches:
        into_resolution = [e for e in graph.outgoing(node.id) if e.target == resolution.id]
        assert len(into_resolution) == 1
        assert into_resolution[0].label == f"{node.name} complete"
    assert result.report.requested == result.report.wired


def test_resolution_loops_back_to_hub():
    graph = PathwayAssembler().assemble("Family Line", FAMILY_TEXT).graph
    resolution = graph.find("Resolution & Wrap-up")
    labels = {e.label: e.target for e in graph.outgoing(resolution.id)}
    assert labels["additional needs"] == graph.start.id
    assert graph.node(labels["satisfied"]).type is NodeType.END_CALL


def test_family_scenario_concept_nodes_have_domain_variables():
    graph = PathwayAssembler().assemble("Family Line", FAMILY_TEXT).graph
    family = graph.find("Family Coverage Planning")
    budget = graph.find("Budget-Friendly Options")
    assert {"family_size", "ages_of_dependents"} <= set(family.variable_names)
    assert "monthly_budget" in budget.variable_names
    assert "coverage_need" in graph.start.variable_names
    assert family.features.flow_control.max_retries == 3


def test_hub_edges_follow_concept_priority():
    graph = PathwayAssembler().assemble("Urgent", "I need insurance right away for my family").graph
    targets = [graph.node(e.target).name for e in graph.outgoing(graph.start.id)]
    assert targets[:2] == ["Urgent Assistance", "Family Coverage Planning"]
    urgent = graph.find("Urgent Assistance")
    assert urgent.features.flow_control.escalation_threshold == 1


def test_integration_edge_labels():
    graph = PathwayAssembler().assemble("Line", "", full_options()).graph
    labels = {graph.node(e.target).name: e.label for e in graph.outgoing(graph.start.id)}
    assert labels["CRM Sync"] == "needs CRM Sync"
    assert labels["Plan FAQ"] == "plan details or renewal"
    assert labels["Licensed Agent"] == "wants to enroll"

    bare = AssemblyOptions(
        knowledge_bases=[KnowledgeBaseEntry(name="Hours", content="9-5")],
        transfers=[TransferTarget(name="Billing", number="+14155550100")],
    )
    graph = PathwayAssembler().assemble("Line", "", bare).graph
    labels = {graph.node(e.target).name: e.label for e in graph.outgoing(graph.start.id)}
    assert labels["Hours"] == "questions about Hours"
    assert labels["Billing"] == "needs to speak with Billing"


def test_malformed_integrations_are_skipped_and_reported():
    options = AssemblyOptions(
        webhooks=[WebhookIntegration(name="Broken Hook"), WebhookIntegration(name="Good Hook", url="https://x.example.com")],
        knowledge_bases=[KnowledgeBaseEntry(name="Empty KB", content="  ")],
        transfers=[TransferTarget(name="Bad Number", number="555-1234"), TransferTarget(name="No Number")],
    )
    result = PathwayAssembler().assemble("Line", "", options)
    report = result.report
    assert report.requested == {"concepts": 0, "webhooks": 2, "knowledge_bases": 1, "transfers": 2}
    assert report.wired == {"concepts": 0, "webhooks": 1, "knowledge_bases": 0, "transfers": 0}
    assert [(s.kind, s.name, s.reason) for s in report.skipped] == [
        ("webhooks", "Broken Hook", "missing url"),
        ("knowledge_bases", "Empty KB", "missing content"),
        ("transfers", "Bad Number", "number is not E.164"),
        ("transfers", "No Number", "missing number"),
    ]
    assert not report.complete
    assert len(result.graph.nodes) == 4
    assert_well_formed(result.graph)


def test_assembly_is_deterministic():
    first = assemble_pathway("Family Line", FAMILY_TEXT, full_options()).to_payload()
    second = assemble_pathway("Family Line", FAMILY_TEXT, full_options()).to_payload()
    assert first == second


def test_payload_summary_counts():
    payload = assemble_pathway("Family Line", FAMILY_TEXT, full_options()).to_payload()
    summary = payload["summary"]
    assert summary["domain"] == "insurance"
    assert summary["total_nodes"] == len(payload["nodes"])
    assert summary["total_edges"] == len(payload["edges"])
    assert summary["skipped"] == []
    for node in payload["nodes"]:
        assert node["data"]["type"] == node["type"]


def test_feature_toggles_enrich_concept_nodes():
    options = AssemblyOptions(
        features=FeatureToggles(dynamic_data=True, custom_tools=True, ai_features=True, fine_tuning=True, analytics=True),
        data_source_url="https://data.example.com/",
    )
    graph = PathwayAssembler().assemble("Family Line", FAMILY_TEXT, options).graph
    family = graph.find("Family Coverage Planning")
    data = family.to_payload()["data"]
    assert data["dynamic_data"][0]["url"] == "https://data.example.com/insurance/family_coverage"
    tool = data["custom_tools"][0]
    assert set(tool["input_schema"]["properties"]) == set(family.variable_names)
    assert tool["input_schema"]["properties"]["family_size"]["type"] == "integer"
    assert data["ai_features"]["sentiment_analysis"] is True
    assert data["conditionExamples"][0]["conditionMet"] is True
    assert "family_coverage" in data["analytics"]["custom_metrics"]

    hub = graph.start.to_payload()["data"]
    assert [ex["pathway"] for ex in hub["pathwayExamples"]] == ["Family Coverage Planning", "Budget-Friendly Options"]


def test_dynamic_data_needs_a_source_url():
    options = AssemblyOptions(features=FeatureToggles(dynamic_data=True))
    graph = PathwayAssembler().assemble("Family Line", FAMILY_TEXT, options).graph
    assert "dynamic_data" not in graph.find("Family Coverage Planning").to_payload()["data"]


def test_persona_shapes_hub():
    options = AssemblyOptions(persona=Persona(name="Ava", voice="maya", tone="warm", speed=1.1))
    hub = PathwayAssembler().assemble("Family Line", FAMILY_TEXT, options).graph.start
    assert hub.prompt.startswith("You are Ava. Your tone is warm.")
    assert hub.to_payload()["data"]["voice_settings"]["voice_id"] == "maya"


def test_global_nodes_are_opt_in():
    plain = PathwayAssembler().assemble("Line", FAMILY_TEXT).graph
    assert not [n for n in plain.nodes if n.is_global]

    options = AssemblyOptions(global_nodes=GlobalNodeOptions(help=True, escalation=True))
    graph = PathwayAssembler().assemble("Line", FAMILY_TEXT, options).graph
    globals_ = [n for n in graph.nodes if n.is_global]
    assert [n.name for n in globals_] == ["Universal Help", "Escalation Request"]
    assert len(graph.nodes) == len(plain.nodes) + 2
    assert_well_formed(graph)


def test_extra_hub_variables_are_appended():
    options = AssemblyOptions(variables=[{"name": "policy_number", "description": "Existing policy"}])
    hub = PathwayAssembler().assemble("Line", FAMILY_TEXT, options).graph.start
    assert hub.variable_names[-1] == "policy_number"


def test_formatted_transfer_numbers_are_normalized():
    options = AssemblyOptions(transfers=[TransferTarget(name="Agent", number="+1 (415) 555-0123")])
    result = PathwayAssembler().assemble("Line", "", options)
    assert result.report.complete
    assert result.graph.find("Agent").transfer_number == "+14155550123"
