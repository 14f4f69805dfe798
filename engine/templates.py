"""Fixed-topology pathway templates.

Unlike :mod:`engine.assembler` these builders do not classify any text; each
one lays out a hand-designed conversation for a common call type and is
parameterized only by structured fields (company name, service list, ...).
Branching rules are carried in edge labels for the execution platform to
evaluate at runtime.
"""

from __future__ import annotations

import logging
import re
from typing import List, Literal, Optional, Tuple

from pydantic import BaseModel, Field, field_validator

from .assembler import AssemblyReport, AssemblyResult, is_e164, normalize_phone, var
from .conversation import PathwayBuilder
from .nodes import ConditionExample, DialogueExample

logger = logging.getLogger("voicepath.templates")


class SalesTemplate(BaseModel):
    name: str = "Enterprise Sales System"
    company_name: str
    product_or_service: str
    price_range: Optional[str] = None
    qualification_criteria: str = "budget, authority, need, timeline"
    objection_handling: bool = True
    transfer_number: Optional[str] = None
    webhook_url: Optional[str] = None
    lead_scoring: bool = True

    @field_validator("webhook_url")
    @classmethod
    def _strip_url(cls, v: Optional[str]) -> Optional[str]:
        return (v or "").strip() or None


class SupportTemplate(BaseModel):
    name: str = "AI Customer Service System"
    company_name: str
    service_types: List[str] = Field(default_factory=lambda: ["billing", "technical", "general", "account"])
    knowledge_base_content: Optional[str] = None
    escalation_number: Optional[str] = None
    resolution_webhook: Optional[str] = None
    satisfaction_tracking: bool = True

    @field_validator("knowledge_base_content", "resolution_webhook")
    @classmethod
    def _strip_optional(cls, v: Optional[str]) -> Optional[str]:
        return (v or "").strip() or None


class AppointmentTemplate(BaseModel):
    name: str = "Intelligent Appointment System"
    business_name: str
    service_types: List[str] = Field(min_length=1)
    business_hours: str = "9 AM to 5 PM, Monday to Friday"
    booking_webhook: Optional[str] = None
    confirmation_method: Literal["email", "sms", "both"] = "both"
    automated_reminders: bool = True
    rescheduling_allowed: bool = True

    @field_validator("booking_webhook")
    @classmethod
    def _strip_url(cls, v: Optional[str]) -> Optional[str]:
        return (v or "").strip() or None


class WorkflowIntegration(BaseModel):
    type: Literal["webhook", "knowledge_base", "transfer"]
    description: str
    endpoint: Optional[str] = None


class WorkflowTemplate(BaseModel):
    name: str
    workflow_description: str
    required_data_points: List[str] = Field(default_factory=list)
    decision_points: List[str] = Field(default_factory=list)
    integrations: List[WorkflowIntegration] = Field(default_factory=list)
    global_fallbacks: bool = True
    fine_tuning_examples: bool = False


def slugify(text: str) -> str:
    """Turn a free-form label into a variable name (``"Policy Number"`` -> ``policy_number``)."""

    slug = re.sub(r"[^a-z0-9]+", "_", text.lower()).strip("_")
    return slug or "value"


def _help_node(builder: PathwayBuilder, node_id: str, subject: str):
    return (
        builder.node("General Assistance", node_id=node_id)
        .as_global("user needs help or has questions")
        .with_prompt(
            f"I'm here to help with any questions about {subject}. What specific assistance do you need? "
            f"Previous context: {var('prevNodePrompt')}"
        )
    )


def build_sales_pathway(template: SalesTemplate) -> AssemblyResult:
    """Outbound B2B sales call with BANT qualification and lead-score routing.

    Leads scoring 50 or more go to the proposal path (CRM update and senior
    transfer when configured), 40 to 49 get a scheduled follow-up and the rest
    are enrolled in nurturing. Every path ends at the same closing node.
    """

    t = template
    report = AssemblyReport(purpose="sales")
    b = PathwayBuilder()
    product = t.product_or_service

    greeting = b.add(
        b.node("Professional Sales Greeting", node_id="sales_greeting")
        .as_start()
        .with_prompt(
            f"Hello! This is a call from {t.company_name} regarding {product}. "
            "I'd like to discuss how we can help your business. Do you have a few minutes to talk?"
        )
        .with_condition("Must confirm they have time and interest before proceeding")
        .with_variables(
            [
                ("availability", "string", "Whether they have time now (yes/no/schedule)"),
                ("initial_interest", "string", "Level of initial interest (high/medium/low/none)"),
            ]
        )
    )
    qualification = b.add(
        b.node("BANT Qualification Process", node_id="bant_qualification")
        .with_prompt(
            f"I'd like to understand your current situation to see if {product} is a good fit. "
            f"Let me ask a few questions about your {t.qualification_criteria}."
        )
        .with_condition("Must gather Budget, Authority, Need, and Timeline information")
        .with_variables(
            [
                ("budget_range", "string", "Their budget range or constraints"),
                ("decision_authority", "string", "Who makes the final decision"),
                ("business_need", "string", "Specific pain points or needs"),
                ("timeline", "string", "When they need to implement"),
                ("current_solution", "string", "What they use currently", False),
            ]
        )
    )
    demo = b.add(
        b.node("Needs Assessment & Value Demonstration", node_id="needs_demo")
        .with_prompt(
            f"Based on their need for {var('business_need')} and timeline of {var('timeline')}, "
            f"explain how {product} addresses these challenges."
        )
        .with_variables(
            [
                ("pain_severity", "string", "How severe their current pain points are"),
                ("value_understanding", "string", "How well they understand the value proposition"),
                ("questions_concerns", "string", "Any questions or concerns raised", False),
            ]
        )
    )
    b.connect(greeting, qualification, "interested and has time",
              name="Engaged Prospect", description="Customer is interested and available")
    b.connect(qualification, demo, "qualified prospect with clear need",
              name="Qualified Lead", description="BANT qualification shows fit")

    after_demo = demo
    if t.price_range:
        pricing = b.add(
            b.node("Investment Discussion", node_id="pricing_presentation")
            .with_prompt(
                f"Given their budget of {var('budget_range')} and the value discussed, explain that the "
                f"investment for {product} is {t.price_range}, tied back to {var('business_need')}."
            )
            .with_variables(
                [
                    ("price_reaction", "string", "Reaction to pricing (positive/neutral/concerned/shocked)"),
                    ("budget_fit", "string", "How well it fits their budget (perfect/tight/over/way_over)"),
                ]
            )
        )
        b.connect(demo, pricing, "understands value proposition",
                  name="Value Demonstrated", description="Customer sees value in solution")
        after_demo = pricing

    proposal = b.add(
        b.node("Proposal & Commitment", node_id="proposal_commitment")
        .with_prompt(
            f"Summarize how {product} meets {var('business_need')} and agree on concrete next steps "
            "toward a purchase decision."
        )
        .with_condition("Must confirm the prospect's commitment to next steps")
        .with_variables([("commitment_level", "string", "How committed they are (ready/likely/undecided)")])
    )
    followup = b.add(
        b.node("Next Steps & Follow-up", node_id="followup_scheduling")
        .with_prompt(
            f"Schedule a follow-up around {var('timeline')} to check on their decision, and offer to send "
            f"information about {var('business_need')} solutions. Ask for the best way to reach them."
        )
        .with_variables(
            [
                ("followup_date", "string", "When to follow up"),
                ("preferred_contact", "string", "How they prefer to be contacted"),
                ("decision_timeline", "string", "When they plan to make a decision"),
            ]
        )
    )
    closing = b.add(
        b.node("Professional Closing", node_id="sales_end")
        .as_end_call()
        .with_prompt(
            f"Thank you for your time today. I'm confident {product} can help with {var('business_need')}. "
            "Please feel free to call with any questions."
        )
    )

    if t.lead_scoring:
        scoring = b.add(
            b.node("Qualification Assessment", node_id="lead_scoring")
            .with_prompt(
                f"Confirm the next steps that make sense given {var('business_need')} and {var('timeline')}."
            )
            .with_variables(
                [
                    ("lead_score", "integer", "Lead score 0-100 based on BANT qualification"),
                    ("next_step_preference", "string", "What next step they prefer"),
                    ("urgency_level", "string", "How urgent their need is"),
                ]
            )
        )
        b.connect(after_demo, scoring, "pricing discussion complete" if t.price_range else "understands value proposition")
        nurture = b.add(
            b.node("Nurture Enrollment", node_id="nurture_enrollment")
            .with_prompt(
                f"Offer to keep them informed with helpful resources about {product} and ask permission to "
                "check back in a few months."
            )
            .with_variables([("nurture_consent", "boolean", "Whether they agreed to receive updates")])
        )
        high_value_source, high_value_label = scoring, "lead_score >= 50"
        b.connect(scoring, followup, "lead_score >= 40",
                  name="Warm Lead", description="Qualified but needs follow-up")
        b.connect(scoring, nurture, "lead_score < 40",
                  name="Nurture Lead", description="Not ready; keep in touch")
        b.connect(nurture, closing, "nurture preferences recorded")
    else:
        high_value_source, high_value_label = after_demo, "ready to move forward"
        b.connect(after_demo, followup, "needs time to decide")

    if t.webhook_url:
        report.request("webhooks")
        crm = b.add(
            b.node("Lead Processing", node_id="crm_integration")
            .as_webhook(t.webhook_url, "POST")
            .with_prompt("Let me update our system with your information...")
            .with_webhook_body(
                {
                    "company": t.company_name,
                    "lead_score": var("lead_score"),
                    "budget_range": var("budget_range"),
                    "decision_authority": var("decision_authority"),
                    "business_need": var("business_need"),
                    "timeline": var("timeline"),
                    "next_step": var("next_step_preference"),
                }
            )
        )
        report.wire("webhooks")
        b.connect(high_value_source, crm, high_value_label,
                  name="Hot Lead", description="High-value prospect ready to buy")
        b.connect(crm, proposal, "lead processed", name="CRM Updated", description="Lead saved to CRM")
    else:
        b.connect(high_value_source, proposal, high_value_label,
                  name="Hot Lead", description="High-value prospect ready to buy")

    if t.transfer_number is not None:
        report.request("transfers")
        if is_e164(t.transfer_number):
            transfer = b.add(
                b.node("Transfer to Senior Sales", node_id="sales_transfer")
                .as_transfer(normalize_phone(t.transfer_number))
                .with_prompt(
                    f"Given their strong interest and {var('timeline')} timeline, connect them with a senior "
                    "sales specialist who can finalize the details."
                )
            )
            report.wire("transfers")
            b.connect(proposal, transfer, "wants to finalize with a senior specialist now")
        else:
            report.skip("transfers", "Transfer to Senior Sales", "number is not E.164")

    b.connect(proposal, closing, "commitment confirmed")
    b.connect(followup, closing, "follow-up scheduled",
              name="Follow-up Set", description="Next contact scheduled")
    b.connect(greeting, followup, "not available now but interested",
              name="Schedule Later", description="Customer interested but busy")
    b.connect(greeting, closing, "not interested")

    if t.objection_handling:
        b.add(
            b.node("Objection Resolution", node_id="objection_handling")
            .as_global("customer has objections or concerns")
            .with_prompt(
                f"Acknowledge the concern about {var('lastUserMessage')} and address it directly "
                "(price, features, timing, authority or competition), then ask what other questions they have. "
                f"Previous goal: {var('prevNodePrompt')}"
            )
            .with_fine_tuning(
                dialogue_examples=[
                    DialogueExample(
                        scenario="Prospect says it is too expensive",
                        expected_response="Relate the price to the cost of their current problem before discussing options.",
                    )
                ]
            )
        )
    b.add(_help_node(b, "sales_help", product))

    graph = b.build(t.name, f"Enterprise sales pathway for {t.company_name}")
    logger.info("Built sales pathway for %s: %d nodes", t.company_name, len(graph.nodes))
    return AssemblyResult(graph=graph, report=report)


def build_support_pathway(template: SupportTemplate) -> AssemblyResult:
    t = template
    report = AssemblyReport(purpose="customer support")
    b = PathwayBuilder()
    # one branch per distinct service slug
    by_slug: dict = {}
    for service in t.service_types:
        if service.strip():
            by_slug.setdefault(slugify(service), service.strip())
    services = list(by_slug.values()) or ["general"]

    greeting = b.add(
        b.node("Customer Service Greeting", node_id="service_greeting")
        .as_start()
        .with_prompt(
            f"Hello! Welcome to {t.company_name} customer service. I'm here to help you today. "
            "To better assist you, may I have your account number, email, or phone number on file?"
        )
        .with_variables(
            [
                ("customer_identifier", "string", "Account number, email, or phone number"),
                ("issue_category", "string", "Initial categorization of their issue"),
                ("customer_tone", "string", "Emotional state (calm/frustrated/angry/urgent)"),
            ]
        )
    )
    triage = b.add(
        b.node("Issue Classification", node_id="issue_triage")
        .with_prompt(
            f"The caller is calling about {var('issue_category')}. Get the specific details of the problem "
            f"so you can route them. We handle {', '.join(services)} issues."
        )
        .with_condition("Must clearly understand and categorize the issue before proceeding")
        .with_variables(
            [
                ("issue_type", "string", f"Specific type: {', '.join(services)}"),
                ("issue_severity", "string", "Severity level: low, medium, high, critical"),
                ("issue_description", "string", "Detailed description of the problem"),
            ]
        )
    )
    confirmation = b.add(
        b.node("Resolution Confirmation", node_id="resolution_confirmation")
        .with_prompt(
            f"Recap what was done about {var('issue_description')} and confirm the issue is resolved. "
            "Ask if there is anything else."
        )
        .with_condition("Must confirm whether the issue is resolved")
        .with_variables(
            [
                ("issue_resolved", "boolean", "Whether the issue is resolved"),
                ("additional_issue", "boolean", "Whether the caller has another issue"),
            ]
        )
    )
    end = b.add(
        b.node("Service Completion", node_id="service_end")
        .as_end_call()
        .with_prompt(
            f"Thank you for contacting {t.company_name}. Your {var('issue_type')} issue has been addressed. "
            "If you need any further assistance, please don't hesitate to call back."
        )
    )

    b.connect(greeting, triage, "customer identified")
    for service in services:
        slug = slugify(service)
        node = b.add(
            b.node(f"{service.title()} Support", node_id=f"{slug}_support")
            .with_prompt(
                f"Resolve the caller's {service} issue: {var('issue_description')}. "
                "Walk through the fix one step at a time."
            )
            .with_variables([(f"{slug}_resolution", "string", f"What was done to resolve the {service} issue")])
        )
        b.connect(triage, node, f"issue_type is {service}")
        b.connect(node, confirmation, f"{service} issue addressed")

    if t.knowledge_base_content:
        kb = b.add(
            b.node("Knowledge Base Resolution", node_id="kb_resolution")
            .as_knowledge_base(t.knowledge_base_content)
            .with_prompt(
                f"Check the knowledge base for the best solution to this {var('issue_type')} issue: "
                f"{var('issue_description')}."
            )
            .with_condition("Must attempt knowledge base resolution before escalation")
            .with_variables(
                [
                    ("kb_solution_found", "boolean", "Whether the knowledge base provided a viable solution"),
                    ("customer_satisfaction", "string", "Satisfaction with the suggested solution"),
                ]
            )
        )
        b.connect(triage, kb, "question answered by help articles")
        b.connect(kb, confirmation, "resolution attempted")

    b.connect(confirmation, triage, "has another issue")

    tail, tail_label = confirmation, "issue resolved"
    if t.resolution_webhook:
        report.request("webhooks")
        logging_node = b.add(
            b.node("Case Logging", node_id="case_logging")
            .as_webhook(t.resolution_webhook, "POST")
            .with_prompt("Let me record the outcome of your case...")
            .with_webhook_body(
                {
                    "customer": var("customer_identifier"),
                    "issue_type": var("issue_type"),
                    "severity": var("issue_severity"),
                    "resolved": var("issue_resolved"),
                }
            )
        )
        report.wire("webhooks")
        b.connect(tail, logging_node, tail_label)
        tail, tail_label = logging_node, "case logged"
    if t.satisfaction_tracking:
        survey = b.add(
            b.node("Satisfaction Survey", node_id="satisfaction_survey")
            .with_prompt("Ask the caller to rate today's service from 1 to 5 and whether they have any feedback.")
            .with_variables(
                [
                    ("csat_score", "integer", "Satisfaction score from 1 to 5"),
                    ("feedback", "string", "Free-form feedback", False),
                ]
            )
        )
        b.connect(tail, survey, tail_label)
        tail, tail_label = survey, "survey complete"
    b.connect(tail, end, tail_label)

    b.add(_help_node(b, "support_help", f"{t.company_name} support"))
    escalation = (
        b.node("Escalation to a Specialist", node_id="escalation")
        .as_global("customer is frustrated or asks for a human or supervisor")
        .with_prompt(
            "Apologize for the trouble and let the caller know you are connecting them with a specialist."
        )
    )
    if t.escalation_number is not None:
        report.request("transfers")
        if is_e164(t.escalation_number):
            escalation = escalation.as_transfer(normalize_phone(t.escalation_number))
            report.wire("transfers")
        else:
            report.skip("transfers", "Escalation to a Specialist", "number is not E.164")
    b.add(escalation)

    graph = b.build(t.name, f"Advanced customer service for {t.company_name}")
    logger.info("Built support pathway for %s: %d nodes", t.company_name, len(graph.nodes))
    return AssemblyResult(graph=graph, report=report)


def build_appointment_pathway(template: AppointmentTemplate) -> AssemblyResult:
    t = template
    report = AssemblyReport(purpose="appointment booking")
    b = PathwayBuilder()
    services = ", ".join(t.service_types)

    greeting = b.add(
        b.node("Appointment Booking Greeting", node_id="appointment_greeting")
        .as_start()
        .with_prompt(
            f"Hello! Thank you for calling {t.business_name} appointment booking. I can help you schedule "
            f"an appointment for our {services} services. Are you a new or existing customer?"
        )
        .with_variables(
            [
                ("customer_type", "string", "new or existing customer"),
                ("preferred_service", "string", "Which service they're interested in"),
                ("urgency", "string", "How soon they need the appointment"),
            ]
        )
    )
    info = b.add(
        b.node("Customer Information", node_id="customer_info")
        .with_prompt(
            f"Collect the caller's name, phone number and email address for the {var('preferred_service')} appointment."
        )
        .with_condition("Must collect complete contact information")
        .with_variables(
            [
                ("customer_name", "string", "Full name"),
                ("phone_number", "string", "Contact phone number"),
                ("email_address", "string", "Email address"),
                ("previous_customer", "boolean", "Whether they've been here before"),
            ]
        )
    )
    selection = b.add(
        b.node("Service Selection", node_id="service_selection")
        .with_prompt(
            f"We offer {services}. Ask which specific service they would like and any special requirements."
        )
        .with_variables(
            [
                ("selected_service", "string", "Specific service selected"),
                ("service_duration", "string", "Expected duration needed"),
                ("special_requests", "string", "Any special requirements or notes", False),
            ]
        )
    )
    availability = (
        b.node("Availability Check", node_id="availability_check")
        .with_variables(
            [
                ("available_slots", "string", "Available time slots"),
                ("preferred_date", "string", "Customer preferred date"),
                ("preferred_time", "string", "Customer preferred time"),
                ("booking_possible", "boolean", "Whether booking can be made"),
            ]
        )
    )
    if t.booking_webhook:
        report.request("webhooks", 2)
        availability = (
            availability.as_webhook(t.booking_webhook, "GET")
            .with_prompt(f"Let me check our real-time availability for {var('selected_service')}...")
            .with_webhook_body(
                {
                    "service": var("selected_service"),
                    "duration": var("service_duration"),
                    "customer_preference": var("preferred_time"),
                }
            )
        )
        report.wire("webhooks")
    else:
        availability = availability.with_prompt(
            f"We are open {t.business_hours}. Ask what days and times work best for {var('selected_service')}."
        )
    availability_id = b.add(availability)
    confirm = b.add(
        b.node("Appointment Confirmation", node_id="appointment_confirmation")
        .with_prompt(
            f"Confirm the {var('selected_service')} appointment for {var('preferred_date')} at "
            f"{var('preferred_time')} for {var('customer_name')} at {t.business_name}. Ask to confirm the booking."
        )
        .with_condition("Must get explicit confirmation before finalizing")
        .with_variables(
            [
                ("final_confirmation", "boolean", "Customer confirms the appointment"),
                ("payment_method", "string", "How they want to handle payment", False),
                ("reminder_preference", "string", "How they want appointment reminders"),
            ]
        )
        .with_fine_tuning(
            condition_examples=[
                ConditionExample(user_input="Yes, book it", condition_met=True),
                ConditionExample(user_input="Hmm, let me think about it", condition_met=False),
            ]
        )
    )
    reminders = " We'll also send you reminders before your appointment." if t.automated_reminders else ""
    details = b.add(
        b.node("Booking Confirmation", node_id="confirmation_details")
        .with_prompt(
            f"Your appointment is confirmed! Service: {var('selected_service')}. Date and time: "
            f"{var('preferred_date')} at {var('preferred_time')}. Location: {t.business_name}. "
            f"You'll receive {t.confirmation_method} confirmation shortly.{reminders}"
        )
        .with_variables(
            [
                ("confirmation_sent", "boolean", "Confirmation sent successfully"),
                ("needs_directions", "boolean", "Whether they need directions"),
                ("has_questions", "boolean", "Whether they have additional questions"),
            ]
        )
    )
    end = b.add(
        b.node("Appointment Booking Complete", node_id="appointment_end")
        .as_end_call()
        .with_prompt(
            f"Thank you for booking with {t.business_name}, {var('customer_name')}! We look forward to seeing "
            f"you on {var('preferred_date')} at {var('preferred_time')}. Have a great day!"
        )
    )

    b.connect(greeting, info, "wants to book appointment")
    b.connect(info, selection, "contact information collected")
    b.connect(selection, availability_id, "service selected")
    b.connect(availability_id, confirm, "availability found")
    b.connect(availability_id, info, "no availability, need different preferences")
    if t.booking_webhook:
        finalize = b.add(
            b.node("Appointment Booking", node_id="booking_finalization")
            .as_webhook(t.booking_webhook, "POST")
            .with_prompt("Finalizing your appointment booking...")
            .with_webhook_body(
                {
                    "customer_name": var("customer_name"),
                    "phone": var("phone_number"),
                    "email": var("email_address"),
                    "service": var("selected_service"),
                    "date": var("preferred_date"),
                    "time": var("preferred_time"),
                    "special_requests": var("special_requests"),
                    "confirmation_method": t.confirmation_method,
                }
            )
        )
        report.wire("webhooks")
        b.connect(confirm, finalize, "appointment confirmed")
        b.connect(finalize, details, "booking processed")
    else:
        b.connect(confirm, details, "appointment confirmed")
    b.connect(details, end, "all details provided")

    if t.rescheduling_allowed:
        b.add(
            b.node("Rescheduling Assistance", node_id="rescheduling_help")
            .as_global("customer wants to reschedule or cancel")
            .with_prompt(
                "Look up the caller's current booking and ask whether they want to reschedule, cancel or modify it."
            )
            .with_variables(
                [
                    ("reschedule_action", "string", "What they want to do (reschedule/cancel/modify)"),
                    ("new_preferences", "string", "New date/time preferences if rescheduling", False),
                ]
            )
        )
    b.add(
        b.node("Business Information", node_id="business_info")
        .as_global("customer asks about hours, location, services, or pricing")
        .with_prompt(
            f"Provide information about {t.business_name}. Our hours are {t.business_hours}. "
            f"We offer {services}. Ask what specific information they need."
        )
        .with_variables([("info_provided", "string", "What information was requested and provided")])
    )

    graph = b.build(t.name, f"Intelligent appointment system for {t.business_name}")
    logger.info("Built appointment pathway for %s: %d nodes", t.business_name, len(graph.nodes))
    return AssemblyResult(graph=graph, report=report)


def build_workflow_pathway(template: WorkflowTemplate) -> AssemblyResult:
    """Linear custom workflow: data points, then decisions, then integrations.

    Webhook and knowledge-base integrations are chained in order; transfers
    branch off the chain since the call leaves the pathway there.
    """

    t = template
    report = AssemblyReport(purpose="custom workflow")
    b = PathwayBuilder()
    sentences = [s.strip() for s in t.workflow_description.split(".") if s.strip()]
    intro = sentences[0] + "." if sentences else ""
    outro = sentences[-1] + "." if sentences else ""

    current = start = b.add(
        b.node("Workflow Initialization", node_id="workflow_start")
        .as_start()
        .with_prompt(f"Welcome! I'll guide you through our {t.name} process. {intro} Let's get started!")
        .with_variables(
            [
                ("user_ready", "boolean", "Whether user is ready to proceed"),
                ("initial_context", "string", "Initial context or information provided", False),
            ]
        )
    )

    for i, point in enumerate(t.required_data_points):
        slug = slugify(point)
        node = b.node(f"Collect {point}", node_id=f"data_{i}").with_prompt(
            f"Collect information about {point}. Ask for the relevant details."
        ).with_condition(f"Must collect complete information about {point}").with_variables(
            [
                (slug, "string", f"Information about {point}"),
                (f"{slug}_complete", "boolean", f"Whether {point} collection is complete"),
            ]
        )
        if t.fine_tuning_examples:
            node = node.with_fine_tuning(
                condition_examples=[
                    ConditionExample(user_input=f"Here is my {point.lower()}", condition_met=True),
                    ConditionExample(user_input="I don't have that with me", condition_met=False),
                ]
            )
        node_id = b.add(node)
        b.connect(current, node_id, "ready to collect data" if i == 0 else "previous data collected")
        current = node_id

    for i, point in enumerate(t.decision_points):
        node_id = b.add(
            b.node(f"Decision: {point}", node_id=f"decision_{i}")
            .with_prompt(f"Based on the information collected, decide about {point} and explain the outcome.")
            .with_variables(
                [
                    (f"decision_{i}_outcome", "string", f"Decision made for {point}"),
                    (f"decision_{i}_confidence", "string", "Confidence level in this decision"),
                ]
            )
        )
        label = "data collection complete" if i == 0 else "previous decision made"
        b.connect(current, node_id, label)
        current = node_id

    completion = b.node("Workflow Completion", node_id="workflow_completion").with_prompt(
        f"We've completed the {t.name} process. {outro} Is there anything else you need assistance with?"
    ).with_variables(
        [
            ("completion_status", "string", "Status of workflow completion"),
            ("user_satisfaction", "string", "User satisfaction with the process"),
            ("additional_needs", "boolean", "Whether user has additional needs"),
        ]
    )

    transfers: List[Tuple[str, str]] = []
    for i, integration in enumerate(t.integrations):
        kind = {"webhook": "webhooks", "knowledge_base": "knowledge_bases", "transfer": "transfers"}[integration.type]
        report.request(kind)
        endpoint = (integration.endpoint or "").strip()
        node = b.node(integration.description, node_id=f"integration_{i}")
        if integration.type == "webhook":
            if not endpoint:
                report.skip(kind, integration.description, "missing url")
                continue
            node = node.as_webhook(endpoint, "POST").with_prompt(f"Processing {integration.description}...")
            node = node.with_webhook_body(
                {"workflow_name": t.name, "integration_type": integration.type, "description": integration.description}
            )
        elif integration.type == "knowledge_base":
            content = endpoint or integration.description.strip()
            if not content:
                report.skip(kind, integration.description, "missing content")
                continue
            node = node.as_knowledge_base(content).with_prompt(
                f"Accessing knowledge base for {integration.description}..."
            )
        else:
            if not is_e164(endpoint):
                report.skip(kind, integration.description, "missing number" if not endpoint else "number is not E.164")
                continue
            node = node.as_transfer(normalize_phone(endpoint)).with_prompt(
                f"Transferring for {integration.description}..."
            )
        node_id = b.add(node)
        report.wire(kind)
        if integration.type == "transfer":
            transfers.append((node_id, integration.description))
            continue
        b.connect(current, node_id, f"requires {integration.type} integration")
        current = node_id

    completion_id = b.add(completion)
    end = b.add(
        b.node("Process Complete", node_id="workflow_end")
        .as_end_call()
        .with_prompt(f"Thank you for using our {t.name} service. The process is now complete. Have a great day!")
    )
    for node_id, description in transfers:
        b.connect(current, node_id, f"requires transfer: {description}")
    b.connect(current, completion_id, "workflow steps complete")
    b.connect(completion_id, end, "user satisfied and ready to end")
    b.connect(completion_id, start, "has additional needs")

    if t.global_fallbacks:
        b.add(_help_node(b, "global_fallback", f"our {t.name} process"))

    graph = b.build(t.name, t.workflow_description)
    logger.info("Built workflow pathway %r: %d nodes, %d skipped", t.name, len(graph.nodes), len(report.skipped))
    return AssemblyResult(graph=graph, report=report)


__all__ = [
    "AppointmentTemplate",
    "SalesTemplate",
    "SupportTemplate",
    "WorkflowIntegration",
    "WorkflowTemplate",
    "build_appointment_pathway",
    "build_sales_pathway",
    "build_support_pathway",
    "build_workflow_pathway",
    "slugify",
]
