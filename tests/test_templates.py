import sys
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[1]))

import pytest
from pydantic import ValidationError

from engine.nodes import NodeType
from engine.templates import (
    AppointmentTemplate,
    SalesTemplate,
    SupportTemplate,
    WorkflowIntegration,
    WorkflowTemplate,
    build_appointment_pathway,
    build_sales_pathway,
    build_support_pathway,
    build_workflow_pathway,
    slugify,
)

TO_SCORING = ["interested and has time", "qualified prospect with clear need", "understands value proposition"]


def single_end(graph):
    ends = graph.of_type(NodeType.END_CALL)
    assert len(ends) == 1
    return ends[0]


def test_sales_high_value_and_nurture_paths_share_terminal():
    graph = build_sales_pathway(SalesTemplate(company_name="Acme", product_or_service="CloudSync")).graph
    end = single_end(graph)

    high_value = graph.traverse(TO_SCORING + ["lead_score >= 50", "commitment confirmed"])
    nurture = graph.traverse(TO_SCORING + ["lead_score < 40", "nurture preferences recorded"])
    qualified = graph.traverse(TO_SCORING + ["lead_score >= 40", "follow-up scheduled"])
    assert "Proposal & Commitment" in high_value
    assert "Nurture Enrollment" in nurture
    assert high_value[-1] == nurture[-1] == qualified[-1] == end.name


def test_sales_routes_hot_leads_through_crm_and_transfer():
    template = SalesTemplate(
        company_name="Acme",
        product_or_service="CloudSync",
        price_range="$500/month",
        webhook_url="https://crm.example.com/leads",
        transfer_number="+14155550123",
    )
    result = build_sales_pathway(template)
    graph = result.graph
    path = graph.traverse(
        ["interested and has time", "qualified prospect with clear need", "understands value proposition",
         "pricing discussion complete", "lead_score >= 50", "lead processed", "commitment confirmed"]
    )
    assert path[3:] == [
        "Investment Discussion",
        "Qualification Assessment",
        "Lead Processing",
        "Proposal & Commitment",
        "Professional Closing",
    ]
    crm = graph.find("Lead Processing")
    assert crm.webhook.body["lead_score"] == "{{lead_score}}"
    assert graph.find("Transfer to Senior Sales").transfer_number == "+14155550123"
    assert result.report.wired == {"webhooks": 1, "transfers": 1}


def test_sales_skips_invalid_transfer_number():
    result = build_sales_pathway(
        SalesTemplate(company_name="Acme", product_or_service="CloudSync", transfer_number="555-0100")
    )
    assert [s.reason for s in result.report.skipped] == ["number is not E.164"]
    assert not result.graph.of_type(NodeType.TRANSFER)


def test_sales_globals():
    graph = build_sales_pathway(SalesTemplate(company_name="Acme", product_or_service="CloudSync")).graph
    labels = {n.name: n.global_label for n in graph.nodes if n.is_global}
    assert labels["Objection Resolution"] == "customer has objections or concerns"
    assert "General Assistance" in labels

    without = build_sales_pathway(
        SalesTemplate(company_name="Acme", product_or_service="CloudSync", objection_handling=False, lead_scoring=False)
    ).graph
    assert "Objection Resolution" not in [n.name for n in without.nodes]
    assert without.traverse(TO_SCORING[:2] + ["ready to move forward", "commitment confirmed"])[-1] == "Professional Closing"


def test_support_branches_per_service_type():
    result = build_support_pathway(
        SupportTemplate(
            company_name="Acme",
            service_types=["billing", "Technical"],
            knowledge_base_content="Reset your router first.",
            escalation_number="+14155550199",
            resolution_webhook="https://cases.example.com/log",
        )
    )
    graph = result.graph
    end = single_end(graph)
    triage = graph.find("Issue Classification")
    labels = {e.label: graph.node(e.target).name for e in graph.outgoing(triage.id)}
    assert labels["issue_type is billing"] == "Billing Support"
    assert labels["issue_type is Technical"] == "Technical Support"
    assert labels["question answered by help articles"] == "Knowledge Base Resolution"

    path = graph.traverse(
        ["customer identified", "issue_type is billing", "billing issue addressed",
         "issue resolved", "case logged", "survey complete"]
    )
    assert path[-1] == end.name
    escalation = graph.find("Escalation to a Specialist")
    assert escalation.is_global and escalation.type is NodeType.TRANSFER
    assert result.report.complete


def test_support_without_extras_still_ends_once():
    result = build_support_pathway(
        SupportTemplate(company_name="Acme", satisfaction_tracking=False, escalation_number="nope")
    )
    graph = result.graph
    end = single_end(graph)
    confirmation = graph.find("Resolution Confirmation")
    assert {e.label for e in graph.outgoing(confirmation.id)} == {"has another issue", "issue resolved"}
    assert graph.find("Escalation to a Specialist").type is NodeType.DEFAULT
    assert result.report.skipped[0].kind == "transfers"
    assert end.name == "Service Completion"


def test_appointment_with_booking_webhook():
    result = build_appointment_pathway(
        AppointmentTemplate(
            business_name="Bright Dental",
            service_types=["cleaning", "whitening"],
            booking_webhook="https://book.example.com/slots",
        )
    )
    graph = result.graph
    availability = graph.find("Availability Check")
    assert availability.type is NodeType.WEBHOOK
    assert availability.webhook.method == "GET"
    assert graph.find("Appointment Booking").webhook.method == "POST"
    assert result.report.wired == {"webhooks": 2}

    retry = {e.label: e.target for e in graph.outgoing(availability.id)}
    assert graph.node(retry["no availability, need different preferences"]).name == "Customer Information"
    path = graph.traverse(
        ["wants to book appointment", "contact information collected", "service selected",
         "availability found", "appointment confirmed", "booking processed", "all details provided"]
    )
    assert path[-1] == single_end(graph).name


def test_appointment_globals_and_plain_availability():
    graph = build_appointment_pathway(
        AppointmentTemplate(business_name="Bright Dental", service_types=["cleaning"], rescheduling_allowed=False)
    ).graph
    assert graph.find("Availability Check").type is NodeType.DEFAULT
    assert [n.name for n in graph.nodes if n.is_global] == ["Business Information"]
    single_end(graph)


def test_appointment_requires_services():
    with pytest.raises(ValidationError):
        AppointmentTemplate(business_name="Bright Dental", service_types=[])


def test_workflow_chains_steps_and_reports_skips():
    template = WorkflowTemplate(
        name="Claims Intake",
        workflow_description="Collect claim details from the caller. File the claim. Confirm next steps",
        required_data_points=["Policy Number", "Incident Date"],
        decision_points=["claim eligibility"],
        integrations=[
            WorkflowIntegration(type="webhook", description="File claim", endpoint="https://claims.example.com"),
            WorkflowIntegration(type="webhook", description="Notify adjuster"),
            WorkflowIntegration(type="knowledge_base", description="Claims policy"),
            WorkflowIntegration(type="transfer", description="Adjuster line", endpoint="+14155550111"),
        ],
    )
    result = build_workflow_pathway(template)
    graph = result.graph

    path = graph.traverse(
        ["ready to collect data", "previous data collected", "data collection complete",
         "requires webhook integration", "requires knowledge_base integration",
         "workflow steps complete", "user satisfied and ready to end"]
    )
    assert path == [
        "Workflow Initialization",
        "Collect Policy Number",
        "Collect Incident Date",
        "Decision: claim eligibility",
        "File claim",
        "Claims policy",
        "Workflow Completion",
        "Process Complete",
    ]
    assert graph.find("Collect Policy Number").variable_names == ["policy_number", "policy_number_complete"]
    assert graph.find("Claims policy").knowledge_base == "Claims policy"
    assert graph.find("Adjuster line").type is NodeType.TRANSFER
    assert [(s.kind, s.name) for s in result.report.skipped] == [("webhooks", "Notify adjuster")]
    assert result.report.requested == {"webhooks": 2, "knowledge_bases": 1, "transfers": 1}
    assert graph.find("General Assistance").is_global


def test_minimal_workflow():
    graph = build_workflow_pathway(
        WorkflowTemplate(name="Survey", workflow_description="Ask three questions", global_fallbacks=False)
    ).graph
    assert [n.name for n in graph.nodes] == ["Workflow Initialization", "Workflow Completion", "Process Complete"]
    assert "Ask three questions." in graph.start.prompt


def test_slugify():
    assert slugify("Policy Number") == "policy_number"
    assert slugify("  Date of birth (DOB) ") == "date_of_birth_dob"
    assert slugify("???") == "value"


def test_workflow_skips_knowledge_base_without_content():
    template = WorkflowTemplate(
        name="Intake",
        workflow_description="Collect details",
        integrations=[
            WorkflowIntegration(type="knowledge_base", description=""),
            WorkflowIntegration(type="knowledge_base", description="   "),
            WorkflowIntegration(type="knowledge_base", description="Policy guide", endpoint="  "),
        ],
    )
    result = build_workflow_pathway(template)
    assert [(s.kind, s.reason) for s in result.report.skipped] == [
        ("knowledge_bases", "missing content"),
        ("knowledge_bases", "missing content"),
    ]
    assert result.graph.find("Policy guide").knowledge_base == "Policy guide"
    assert result.report.wired == {"knowledge_bases": 1}


def test_workflow_transfer_number_is_normalized():
    template = WorkflowTemplate(
        name="Intake",
        workflow_description="Collect details",
        integrations=[WorkflowIntegration(type="transfer", description="Adjuster", endpoint="+1 (415) 555-0111")],
    )
    graph = build_workflow_pathway(template).graph
    assert graph.find("Adjuster").transfer_number == "+14155550111"


def test_blank_template_urls_are_treated_as_missing():
    sales = build_sales_pathway(
        SalesTemplate(company_name="Acme", product_or_service="CloudSync", webhook_url="   ")
    )
    assert "Lead Processing" not in [n.name for n in sales.graph.nodes]

    support = build_support_pathway(
        SupportTemplate(company_name="Acme", knowledge_base_content="  ", resolution_webhook=" \t")
    )
    names = [n.name for n in support.graph.nodes]
    assert "Knowledge Base Resolution" not in names
    assert "Case Logging" not in names

    appointment = build_appointment_pathway(
        AppointmentTemplate(business_name="Bright Dental", service_types=["cleaning"], booking_webhook="  ")
    )
    assert appointment.graph.find("Availability Check").type is NodeType.DEFAULT
    assert "webhooks" not in appointment.report.requested


def test_template_urls_are_stripped():
    template = SalesTemplate(
        company_name="Acme", product_or_service="CloudSync", webhook_url=" https://crm.example.com/leads "
    )
    assert template.webhook_url == "https://crm.example.com/leads"
    crm = build_sales_pathway(template).graph.find("Lead Processing")
    assert crm.webhook.url == "https://crm.example.com/leads"
