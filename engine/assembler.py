"""Assembles a complete pathway graph from a natural-language description.

The assembler runs the concept extractor, builds a start hub, fans out to one
node per concept and per configured integration, and converges every branch
into a shared resolution node and a single End Call node::

    hub ──condition──▶ concept / webhook / kb / transfer ──complete──▶ resolution ──satisfied──▶ end
     ▲                                                                    │
     └───────────────────────────── additional needs ────────────────────┘

Malformed integrations are skipped and listed in the returned report instead
of failing the whole build.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, Field

from .concepts import Concept, ConceptAnalysis, extract_concepts, need_field
from .conversation import PathwayBuilder, PathwayGraph
from .nodes import (
    AIFeatures,
    Analytics,
    ConditionExample,
    CustomToolSpec,
    DynamicDataSpec,
    FlowControl,
    ModelOptions,
    NodeBuilder,
    PathwayExample,
    ResponseMapping,
    VariableSpec,
)
from .persona import Persona

logger = logging.getLogger("voicepath.assembler")

E164_RE = re.compile(r"^\+\d{8,15}$")
_PHONE_SEPARATORS_RE = re.compile(r"[\s().-]")


def normalize_phone(phone: Optional[str]) -> str:
    """Drop spaces, dots, dashes and parentheses (``+1 (415) 555-0123`` -> ``+14155550123``)."""
    return _PHONE_SEPARATORS_RE.sub("", phone or "")


def is_e164(phone: Optional[str]) -> bool:
    return bool(E164_RE.match(normalize_phone(phone)))


def var(name: str) -> str:
    """Reference a conversation variable inside a prompt."""
    return "{{" + name + "}}"


class WebhookIntegration(BaseModel):
    name: str
    url: str = ""
    method: str = "POST"
    body: Optional[dict] = None
    headers: Optional[Dict[str, str]] = None


class KnowledgeBaseEntry(BaseModel):
    name: str
    content: str = ""
    trigger_phrases: List[str] = Field(default_factory=list)


class TransferTarget(BaseModel):
    name: str
    number: str = ""
    conditions: List[str] = Field(default_factory=list)


class FeatureToggles(BaseModel):
    dynamic_data: bool = False
    custom_tools: bool = False
    ai_features: bool = False
    fine_tuning: bool = False
    analytics: bool = False


class GlobalNodeOptions(BaseModel):
    help: bool = False
    escalation: bool = False


class AssemblyOptions(BaseModel):
    webhooks: List[WebhookIntegration] = Field(default_factory=list)
    knowledge_bases: List[KnowledgeBaseEntry] = Field(default_factory=list)
    transfers: List[TransferTarget] = Field(default_factory=list)
    variables: List[VariableSpec] = Field(default_factory=list)
    features: FeatureToggles = Field(default_factory=FeatureToggles)
    global_nodes: GlobalNodeOptions = Field(default_factory=GlobalNodeOptions)
    data_source_url: Optional[str] = None
    persona: Optional[Persona] = None
    model: Optional[ModelOptions] = None


@dataclass(frozen=True)
class SkippedIntegration:
    kind: str
    name: str
    reason: str


@dataclass
class AssemblyReport:
    """What was requested versus what actually made it into the graph."""

    domain: str = ""
    purpose: str = ""
    concepts: List[str] = field(default_factory=list)
    requested: Dict[str, int] = field(default_factory=dict)
    wired: Dict[str, int] = field(default_factory=dict)
    skipped: List[SkippedIntegration] = field(default_factory=list)

    def request(self, kind: str, count: int = 1) -> None:
        self.requested[kind] = self.requested.get(kind, 0) + count
        self.wired.setdefault(kind, 0)

    def wire(self, kind: str) -> None:
        self.wired[kind] = self.wired.get(kind, 0) + 1

    def skip(self, kind: str, name: str, reason: str) -> None:
        logger.warning("Skipping %s %r: %s", kind, name, reason)
        self.skipped.append(SkippedIntegration(kind=kind, name=name, reason=reason))

    @property
    def complete(self) -> bool:
        return not self.skipped

    def to_summary(self) -> Dict[str, object]:
        return {
            "domain": self.domain,
            "purpose": self.purpose,
            "concepts": list(self.concepts),
            "requested": dict(self.requested),
            "wired": dict(self.wired),
            "skipped": [{"kind": s.kind, "name": s.name, "reason": s.reason} for s in self.skipped],
        }


@dataclass
class AssemblyResult:
    graph: PathwayGraph
    report: AssemblyReport

    def to_payload(self) -> Dict[str, object]:
        payload = self.graph.to_payload()
        payload["summary"] = {
            **self.report.to_summary(),
            "total_nodes": len(self.graph.nodes),
            "total_edges": len(self.graph.edges),
        }
        return payload


@dataclass(frozen=True)
class ConceptProfile:
    node_name: str
    focus: str
    condition: str
    variables: Tuple[Tuple[str, str, str], ...]


CONCEPT_PROFILES: Dict[str, ConceptProfile] = {
    "urgent_assistance": ConceptProfile(
        "Urgent Assistance",
        "The caller needs help right away. Acknowledge the urgency, capture the essentials quickly and "
        "move straight to the fastest resolution available.",
        "Must capture the nature of the emergency before proceeding",
        (
            ("urgent_issue", "string", "What the caller needs help with immediately"),
            ("time_constraint", "string", "Deadline or how soon help is needed"),
            ("callback_number", "string", "Number to reach the caller if disconnected"),
        ),
    ),
    "individual_plans": ConceptProfile(
        "Individual Plan Options",
        "Help the caller find an individual plan that fits their situation.",
        "Must know the caller's age and coverage priorities before recommending a plan",
        (
            ("applicant_age", "integer", "Age of the person seeking coverage"),
            ("coverage_priorities", "string", "What matters most in the plan"),
            ("current_coverage", "string", "Any existing coverage"),
        ),
    ),
    "family_coverage": ConceptProfile(
        "Family Coverage Planning",
        "Help the caller find coverage for their whole family.",
        "Must know family size and dependents' ages before quoting",
        (
            ("family_size", "integer", "Number of people to cover"),
            ("ages_of_dependents", "string", "Ages of spouse and children to be covered"),
            ("spouse_coverage_needed", "boolean", "Whether a spouse needs coverage"),
            ("current_coverage", "string", "Any existing family coverage"),
        ),
    ),
    "group_coverage": ConceptProfile(
        "Group Coverage",
        "Help the caller explore group coverage for their organization.",
        "Must know the number of employees before discussing group plans",
        (
            ("company_name", "string", "Name of the employer"),
            ("employee_count", "integer", "Number of employees to cover"),
            ("employer_contribution", "string", "How much the employer plans to contribute"),
        ),
    ),
    "senior_coverage": ConceptProfile(
        "Senior Coverage",
        "Walk the caller through senior and Medicare options clearly and patiently.",
        "Must confirm Medicare eligibility before comparing plans",
        (
            ("medicare_eligible", "boolean", "Whether the caller is Medicare eligible"),
            ("current_medications", "string", "Medications the plan must cover"),
            ("preferred_doctors", "string", "Doctors the caller wants to keep"),
        ),
    ),
    "special_needs": ConceptProfile(
        "Special Health Needs",
        "Help the caller find coverage that handles their ongoing health needs.",
        "Must understand the ongoing conditions before recommending coverage",
        (
            ("health_conditions", "string", "Pre-existing or chronic conditions"),
            ("ongoing_treatments", "string", "Treatments or therapies in progress"),
            ("specialist_needs", "string", "Specialists the caller sees"),
        ),
    ),
    "budget_plans": ConceptProfile(
        "Budget-Friendly Options",
        "Find the most affordable options that still meet the caller's needs.",
        "Must know the monthly budget before presenting options",
        (
            ("monthly_budget", "string", "Maximum the caller can spend per month"),
            ("deductible_preference", "string", "Preferred deductible level"),
            ("must_have_benefits", "string", "Benefits the caller cannot go without"),
        ),
    ),
    "premium_plans": ConceptProfile(
        "Premium Plan Options",
        "Present the most comprehensive options and their benefits.",
        "Must understand which premium benefits matter before recommending",
        (
            ("desired_benefits", "string", "Benefits the caller wants included"),
            ("network_preference", "string", "Preferred provider network"),
            ("budget_ceiling", "string", "Upper limit the caller is comfortable with"),
        ),
    ),
    "technical_support": ConceptProfile(
        "Technical Troubleshooting",
        "Diagnose the technical problem step by step.",
        "Must reproduce or clearly describe the problem before troubleshooting",
        (
            ("error_description", "string", "What the caller sees going wrong"),
            ("affected_feature", "string", "Which part of the product is affected"),
            ("steps_tried", "string", "What the caller already tried"),
        ),
    ),
    "account_access": ConceptProfile(
        "Account Access Recovery",
        "Verify the caller's identity and help them regain access.",
        "Must verify identity before changing account access",
        (
            ("account_email", "string", "Email address on the account"),
            ("identity_verified", "boolean", "Whether identity verification passed"),
        ),
    ),
    "billing_questions": ConceptProfile(
        "Billing Questions",
        "Answer the caller's billing question and resolve any incorrect charges.",
        "Must identify the charge in question before resolving",
        (
            ("invoice_reference", "string", "Invoice or charge being discussed"),
            ("billing_issue", "string", "What is wrong with the bill"),
            ("refund_requested", "boolean", "Whether the caller wants a refund"),
        ),
    ),
    "appointment_scheduling": ConceptProfile(
        "Appointment Scheduling",
        "Find a time that works and book the visit.",
        "Must agree on a date and time before booking",
        (
            ("visit_reason", "string", "Reason for the visit"),
            ("preferred_date", "string", "Preferred date"),
            ("preferred_time", "string", "Preferred time"),
        ),
    ),
    "order_status": ConceptProfile(
        "Order Tracking",
        "Look up the caller's order and explain where it is.",
        "Must have an order number or email before looking up the order",
        (
            ("order_number", "string", "Order number"),
            ("order_email", "string", "Email used for the order"),
        ),
    ),
    "returns_exchanges": ConceptProfile(
        "Returns and Exchanges",
        "Help the caller return or exchange an item.",
        "Must identify the item and reason before starting a return",
        (
            ("order_number", "string", "Order number"),
            ("return_reason", "string", "Why the item is being returned"),
            ("wants_exchange", "boolean", "Whether the caller prefers an exchange"),
        ),
    ),
    "loan_application": ConceptProfile(
        "Loan Application",
        "Gather what is needed to start a loan application.",
        "Must know the loan amount and purpose before prequalifying",
        (
            ("loan_amount", "string", "Amount the caller wants to borrow"),
            ("loan_purpose", "string", "What the loan is for"),
            ("annual_income", "string", "Caller's annual income"),
        ),
    ),
    "buying_property": ConceptProfile(
        "Property Purchase",
        "Understand what the caller is looking to buy.",
        "Must know location and price range before suggesting properties",
        (
            ("target_location", "string", "Where the caller wants to buy"),
            ("price_range", "string", "Price range"),
            ("preapproved", "boolean", "Whether the caller is pre-approved for a mortgage"),
        ),
    ),
    "selling_property": ConceptProfile(
        "Property Listing",
        "Gather the details needed to list the caller's property.",
        "Must have the property address before discussing a listing",
        (
            ("property_address", "string", "Address of the property"),
            ("property_type", "string", "Type of property"),
            ("desired_timeline", "string", "When the caller wants to sell"),
        ),
    ),
    "complaint_handling": ConceptProfile(
        "Complaint Handling",
        "Listen carefully, apologize where appropriate and agree on a fix.",
        "Must understand the complaint fully before proposing a resolution",
        (
            ("complaint_details", "string", "What went wrong"),
            ("desired_outcome", "string", "What the caller wants done about it"),
        ),
    ),
}

_JSON_TYPES = {"string": "string", "integer": "integer", "boolean": "boolean", "number": "number"}


def profile_for(concept: Concept) -> ConceptProfile:
    profile = CONCEPT_PROFILES.get(concept.type)
    if profile is not None:
        return profile
    label = concept.type.replace("_", " ")
    return ConceptProfile(
        node_name=concept.description or label.title(),
        focus=f"Help the caller with {label}.",
        condition=f"Must understand the caller's {label} request before proceeding",
        variables=(
            (f"{concept.type}_details", "string", f"Details about the caller's {label} request"),
            (f"{concept.type}_resolved", "boolean", f"Whether the {label} request was resolved"),
        ),
    )


def tool_schema(variables: Tuple[VariableSpec, ...]) -> Dict[str, object]:
    return {
        "type": "object",
        "properties": {
            v.name: {"type": _JSON_TYPES.get(v.type, "string"), "description": v.description} for v in variables
        },
        "required": [v.name for v in variables if v.required],
    }


def _domain_label(domain: str) -> str:
    return domain.replace("_", " ")


class PathwayAssembler:
    """Builds one pathway graph per :meth:`assemble` call.

    Each call uses a fresh :class:`PathwayBuilder`, so ids never leak between
    graphs and one assembler can be reused.
    """

    def assemble(
        self,
        name: str,
        description: str,
        options: Optional[AssemblyOptions] = None,
    ) -> AssemblyResult:
        options = options or AssemblyOptions()
        analysis = extract_concepts(description, name)
        report = AssemblyReport(
            domain=analysis.domain,
            purpose=analysis.purpose,
            concepts=analysis.concept_types,
        )
        builder = PathwayBuilder()

        hub_id = builder.add(self._hub(builder, name, analysis, options))
        branches: List[Tuple[str, str]] = []

        report.request("concepts", len(analysis.concepts))
        for concept in analysis.concepts:
            node_id = builder.add(self._concept_node(builder, concept, analysis, options))
            builder.connect(
                hub_id,
                node_id,
                concept.condition,
                name=concept.description,
                description=f"Route to {profile_for(concept).node_name}",
            )
            branches.append((node_id, profile_for(concept).node_name))
            report.wire("concepts")

        report.request("webhooks", len(options.webhooks))
        for webhook in options.webhooks:
            if not webhook.url.strip():
                report.skip("webhooks", webhook.name, "missing url")
                continue
            node = (
                builder.node(webhook.name)
                .as_webhook(webhook.url.strip(), webhook.method)
                .with_prompt(f"Processing {webhook.name}...")
                .with_webhook_body(webhook.body or {})
            )
            if webhook.headers:
                node = node.with_webhook_headers(webhook.headers)
            node_id = builder.add(node)
            builder.connect(hub_id, node_id, f"needs {webhook.name}")
            branches.append((node_id, webhook.name))
            report.wire("webhooks")

        report.request("knowledge_bases", len(options.knowledge_bases))
        for kb in options.knowledge_bases:
            if not kb.content.strip():
                report.skip("knowledge_bases", kb.name, "missing content")
                continue
            node_id = builder.add(
                builder.node(kb.name)
                .as_knowledge_base(kb.content)
                .with_prompt(f"Let me search our {kb.name} for the best answer to your question.")
            )
            phrases = [p.strip() for p in kb.trigger_phrases if p.strip()]
            label = " or ".join(phrases) if phrases else f"questions about {kb.name}"
            builder.connect(hub_id, node_id, label)
            branches.append((node_id, kb.name))
            report.wire("knowledge_bases")

        report.request("transfers", len(options.transfers))
        for transfer in options.transfers:
            if not is_e164(transfer.number):
                reason = "missing number" if not transfer.number.strip() else "number is not E.164"
                report.skip("transfers", transfer.name, reason)
                continue
            node_id = builder.add(
                builder.node(transfer.name)
                .as_transfer(normalize_phone(transfer.number))
                .with_prompt(f"I'm transferring you to {transfer.name} for specialized assistance.")
            )
            conditions = [c.strip() for c in transfer.conditions if c.strip()]
            label = " or ".join(conditions) if conditions else f"needs to speak with {transfer.name}"
            builder.connect(hub_id, node_id, label)
            branches.append((node_id, transfer.name))
            report.wire("transfers")

        resolution_id = builder.add(self._resolution(builder, options))
        end_id = builder.add(
            builder.node("End Call")
            .as_end_call()
            .with_prompt(f"Thank you for calling about {name or 'your request'}. Have a great day!")
        )

        for node_id, branch_name in branches:
            builder.connect(node_id, resolution_id, f"{branch_name} complete")
        if not branches:
            builder.connect(hub_id, resolution_id, "request handled")
        builder.connect(
            resolution_id,
            end_id,
            "satisfied",
            name="Resolution Complete",
            description="Caller is satisfied and has no further requests",
        )
        builder.connect(
            resolution_id,
            hub_id,
            "additional needs",
            name="Additional Needs",
            description="Caller has more requests",
        )

        self._add_global_nodes(builder, name, options)

        graph = builder.build(name, description)
        logger.info(
            "Assembled pathway %r (domain=%s, purpose=%s): %d nodes, %d edges, %d skipped",
            name,
            analysis.domain,
            analysis.purpose,
            len(graph.nodes),
            len(graph.edges),
            len(report.skipped),
        )
        return AssemblyResult(graph=graph, report=report)

    def _hub(
        self,
        builder: PathwayBuilder,
        name: str,
        analysis: ConceptAnalysis,
        options: AssemblyOptions,
    ) -> NodeBuilder:
        need = need_field(analysis.domain)
        preamble = options.persona.system_prompt() + " " if options.persona else ""
        if analysis.concepts:
            offers = "; ".join(c.description for c in analysis.concepts)
            routing = f"We can help with: {offers}. Work out which of these applies and route accordingly."
        else:
            routing = "Find out what the caller needs and route them to the right place."
        prompt = (
            f"{preamble}You are a {analysis.purpose} assistant for {name or 'this'} "
            f"({_domain_label(analysis.domain)}). Greet the caller warmly and ask how you can help. {routing}"
        )
        variables: List[VariableSpec] = [
            VariableSpec(name=need, type="string", description=f"The caller's main {_domain_label(analysis.domain)} need"),
            VariableSpec(name="customer_type", type="string", description="Customer category (new/existing/business)"),
            VariableSpec(name="urgency_level", type="string", description="How urgent the request is (low/medium/high)"),
            VariableSpec(name="budget_range", type="string", description="Budget range if mentioned", required=False),
        ]
        variables.extend(options.variables)

        node = (
            builder.node("Intelligent Start")
            .as_start()
            .with_prompt(prompt)
            .with_condition("You must understand what the caller needs before proceeding")
            .with_variables(variables)
        )
        if options.persona:
            node = node.with_voice(options.persona.voice_settings())
        if options.model:
            node = node.with_model(options.model)
        if options.features.ai_features:
            node = node.with_ai_features(
                AIFeatures(sentiment_analysis=True, emotion_detection=True, predictive_routing=True)
            )
        if options.features.fine_tuning and analysis.concepts:
            node = node.with_fine_tuning(
                pathway_examples=[
                    PathwayExample(
                        user_input=f"I'm calling about {c.keyword or c.type.replace('_', ' ')}",
                        pathway=profile_for(c).node_name,
                    )
                    for c in analysis.concepts
                ]
            )
        if options.features.analytics:
            node = node.with_analytics(
                Analytics(events=("node_entry", "variable_extraction"), conversion_goal=analysis.purpose)
            )
        return node

    def _concept_node(
        self,
        builder: PathwayBuilder,
        concept: Concept,
        analysis: ConceptAnalysis,
        options: AssemblyOptions,
    ) -> NodeBuilder:
        profile = profile_for(concept)
        need = need_field(analysis.domain)
        prompt = (
            f"{profile.focus} Keep the caller's need ({var(need)}) and urgency ({var('urgency_level')}) in mind. "
            "Ask one question at a time."
        )
        urgent = concept.type == "urgent_assistance"
        node = (
            builder.node(profile.node_name)
            .with_prompt(prompt)
            .with_condition(profile.condition)
            .with_variables(profile.variables)
            .with_flow_control(
                FlowControl(max_retries=1 if urgent else 3, timeout_seconds=30, escalation_threshold=1 if urgent else 2)
            )
        )
        variables = node.build().variables
        features = options.features

        if features.dynamic_data:
            if options.data_source_url:
                node = node.with_dynamic_data([self._data_spec(concept, analysis, options.data_source_url)])
            else:
                logger.warning("Dynamic data enabled without data_source_url; skipping for %s", concept.type)
        if features.custom_tools:
            node = node.with_custom_tools(
                [
                    CustomToolSpec(
                        name=f"lookup_{concept.type}",
                        description=f"Look up {concept.description.lower()} for the caller",
                        input_schema=tool_schema(variables),
                        speech="One moment while I look that up.",
                        response_data=(ResponseMapping(name=f"{concept.type}_result", data="$.result"),),
                    )
                ]
            )
        if options.model:
            node = node.with_model(options.model)
        if features.ai_features:
            node = node.with_ai_features(
                AIFeatures(sentiment_analysis=True, emotion_detection=True, real_time_coaching=urgent)
            )
        if features.fine_tuning:
            node = node.with_fine_tuning(
                condition_examples=[
                    ConditionExample(user_input=f"Sure, here are the details for {concept.description.lower()}", condition_met=True),
                    ConditionExample(user_input="I'd rather not say right now", condition_met=False),
                ]
            )
        if features.analytics:
            node = node.with_analytics(Analytics(events=("node_entry", "variable_extraction"), custom_metrics=(concept.type,)))
        return node

    @staticmethod
    def _data_spec(concept: Concept, analysis: ConceptAnalysis, base_url: str) -> DynamicDataSpec:
        need = need_field(analysis.domain)
        return DynamicDataSpec(
            url=f"{base_url.rstrip('/')}/{analysis.domain}/{concept.type}",
            method="GET",
            query={"customer_type": var("customer_type"), "urgency": var("urgency_level"), need: var(need)},
            cache=concept.type != "urgent_assistance",
            response_data=(
                ResponseMapping(
                    name=f"{concept.type}_options",
                    data="$.options",
                    context="Options to present to the caller",
                ),
                ResponseMapping(name=f"{concept.type}_summary", data="$.summary"),
            ),
            fallback_response="I'm having trouble pulling that up right now, but I can still help you.",
        )

    def _resolution(self, builder: PathwayBuilder, options: AssemblyOptions) -> NodeBuilder:
        node = (
            builder.node("Resolution & Wrap-up")
            .with_prompt(
                "Summarize what was accomplished and confirm the caller is satisfied. "
                "Ask whether there is anything else you can help with."
            )
            .with_condition("Ensure caller satisfaction before ending")
            .with_variables(
                [
                    ("satisfaction_level", "string", "How satisfied the caller is (very/somewhat/not satisfied)"),
                    ("additional_needs", "boolean", "Whether the caller has additional needs"),
                    ("next_step", "string", "Agreed next step or follow-up", False),
                ]
            )
        )
        if options.features.analytics:
            node = node.with_analytics(Analytics(events=("call_resolved",), conversion_goal="caller satisfied"))
        return node

    def _add_global_nodes(self, builder: PathwayBuilder, name: str, options: AssemblyOptions) -> None:
        if options.global_nodes.help:
            builder.add(
                builder.node("Universal Help")
                .as_global("user needs help or has questions")
                .with_prompt(
                    f"I'm here to help! What specific assistance do you need with {name or 'your request'}? "
                    f"Previous context: {var('prevNodePrompt')}"
                )
            )
        if options.global_nodes.escalation:
            builder.add(
                builder.node("Escalation Request")
                .as_global("caller asks for a human, a manager or a supervisor")
                .with_prompt(
                    "Acknowledge the request, apologize for any frustration and explain how the caller "
                    "will be connected with a person."
                )
                .with_variables([("escalation_reason", "string", "Why the caller wants a person")])
            )


def assemble_pathway(name: str, description: str, options: Optional[AssemblyOptions] = None) -> AssemblyResult:
    return PathwayAssembler().assemble(name, description, options)


__all__ = [
    "AssemblyOptions",
    "AssemblyReport",
    "AssemblyResult",
    "FeatureToggles",
    "GlobalNodeOptions",
    "KnowledgeBaseEntry",
    "PathwayAssembler",
    "SkippedIntegration",
    "TransferTarget",
    "WebhookIntegration",
    "assemble_pathway",
    "is_e164",
    "normalize_phone",
    "var",
]
