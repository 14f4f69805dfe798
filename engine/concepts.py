"""Keyword-driven classification of workflow descriptions.

The extractor maps free text to a business domain, a call purpose and an
ordered list of concepts (sub-intents).  Every rule lives in a data table so
the tables can be extended and tested without touching the control flow.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from functools import lru_cache
from typing import List, Optional, Sequence, Tuple

FALLBACK_DOMAIN = "general_services"
FALLBACK_PURPOSE = "specialized assistance"
URGENT_PRIORITY = 1


@dataclass(frozen=True)
class Concept:
    """A detected sub-intent that becomes one specialized node."""

    type: str
    condition: str
    description: str
    priority: int
    keyword: str = ""


@dataclass(frozen=True)
class ConceptRule:
    type: str
    keywords: Tuple[str, ...]
    condition: str
    description: str
    priority: int


@dataclass(frozen=True)
class ConceptAnalysis:
    domain: str
    purpose: str
    concepts: Tuple[Concept, ...]

    @property
    def concept_types(self) -> List[str]:
        return [c.type for c in self.concepts]


DOMAIN_KEYWORDS: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("insurance", ("insur*", "coverage", "policy", "policies", "deductible", "medicare")),
    ("healthcare", ("patient", "clinic", "doctor", "dental", "dentist", "medical", "hospital", "therapy")),
    ("real_estate", ("real estate", "realtor", "property", "properties", "house", "home buyer", "mortgage", "apartment", "listing")),
    ("financial", ("bank", "loan", "credit", "invest*", "financ*", "retirement", "tax")),
    ("retail", ("store", "shop*", "retail", "ecommerce", "e-commerce", "order", "merchandise")),
    ("software", ("software", "saas", "app", "platform", "api", "login", "subscription")),
)

PURPOSE_KEYWORDS: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("sales", ("sell", "sales", "lead", "quote", "pricing", "prospect*")),
    ("customer support", ("support", "troubleshoot*", "issue", "problem", "complaint", "help desk")),
    ("appointment booking", ("book", "appointment", "schedul*", "reservation")),
    ("consultation", ("consult*", "advice", "advise", "guidance")),
    ("information", ("information", "faq", "question", "inquiry", "inquiries", "learn about")),
)

# Domain-specific "need" slot captured by the hub node.
DOMAIN_NEED_FIELDS = {
    "insurance": "coverage_need",
    "healthcare": "care_need",
    "real_estate": "property_need",
    "financial": "financial_goal",
    "retail": "product_interest",
    "software": "technical_need",
}

URGENCY_RULE = ConceptRule(
    type="urgent_assistance",
    keywords=("urgent", "urgency", "emergency", "emergencies", "asap", "right away", "immediately", "as soon as possible"),
    condition="caller needs immediate help",
    description="Urgent assistance for time-sensitive requests",
    priority=URGENT_PRIORITY,
)

CONCEPT_RULES = {
    "insurance": (
        ConceptRule("individual_plans", ("individual", "myself", "just me", "single person", "personal plan"),
                    "caller wants coverage for themselves only", "Individual insurance plans", 3),
        ConceptRule("family_coverage", ("family", "families", "spouse", "children", "child", "kids", "dependent"),
                    "caller needs coverage for family members", "Family coverage options", 2),
        ConceptRule("group_coverage", ("business", "group", "employer", "employees", "company"),
                    "caller is asking about group or employer coverage", "Group and employer plans", 3),
        ConceptRule("senior_coverage", ("medicare", "senior", "65", "retiree"),
                    "caller is a senior or asking about medicare", "Senior and Medicare coverage", 2),
        ConceptRule("special_needs", ("pre-existing", "preexisting", "chronic", "disability"),
                    "caller has pre-existing or chronic conditions", "Coverage for special health needs", 2),
        ConceptRule("budget_plans", ("budget", "affordable", "cheap", "low cost", "low-cost", "inexpensive"),
                    "caller is price sensitive", "Budget-friendly plans", 4),
        ConceptRule("premium_plans", ("premium", "comprehensive", "best coverage", "top tier", "platinum"),
                    "caller wants the most complete coverage", "Premium comprehensive plans", 4),
    ),
    "healthcare": (
        ConceptRule("appointment_scheduling", ("appointment", "schedul*", "book", "visit", "checkup"),
                    "caller wants to schedule a visit", "Appointment scheduling", 2),
        ConceptRule("prescription_refill", ("prescription", "refill", "medication", "pharmacy"),
                    "caller needs a prescription refill", "Prescription refills", 2),
        ConceptRule("test_results", ("result", "lab", "test"),
                    "caller is asking about test results", "Lab and test results", 3),
        ConceptRule("billing_questions", ("bill", "invoice", "copay", "payment"),
                    "caller has a billing question", "Patient billing questions", 4),
    ),
    "real_estate": (
        ConceptRule("buying_property", ("buy", "purchas*", "first home", "first-time", "home buyer"),
                    "caller wants to buy a property", "Property purchase assistance", 2),
        ConceptRule("selling_property", ("sell", "list my", "listing"),
                    "caller wants to sell a property", "Selling and listing properties", 2),
        ConceptRule("rental_inquiry", ("rent", "rental", "lease", "tenant"),
                    "caller is looking to rent", "Rental inquiries", 3),
        ConceptRule("investment_property", ("invest*", "rental income", "flip*"),
                    "caller is interested in investment properties", "Investment properties", 3),
        ConceptRule("property_valuation", ("valuation", "apprais*", "worth", "market value"),
                    "caller wants a property valuation", "Property valuation", 4),
    ),
    "financial": (
        ConceptRule("loan_application", ("loan", "borrow", "financing", "refinanc*"),
                    "caller wants to apply for a loan", "Loan applications", 2),
        ConceptRule("credit_services", ("credit", "score", "card"),
                    "caller has a credit question", "Credit services", 3),
        ConceptRule("investment_advice", ("invest*", "portfolio", "stock", "retirement"),
                    "caller wants investment advice", "Investment and retirement advice", 3),
        ConceptRule("account_services", ("account", "balance", "statement", "deposit"),
                    "caller needs help with an account", "Account services", 3),
        ConceptRule("debt_relief", ("debt", "consolidat*", "collection"),
                    "caller is struggling with debt", "Debt relief options", 2),
    ),
    "retail": (
        ConceptRule("order_status", ("order status", "track", "shipping", "delivery"),
                    "caller wants to know where an order is", "Order tracking", 2),
        ConceptRule("returns_exchanges", ("return", "refund", "exchange"),
                    "caller wants to return or exchange an item", "Returns and exchanges", 2),
        ConceptRule("product_inquiry", ("product", "in stock", "availability", "price"),
                    "caller is asking about a product", "Product questions", 3),
        ConceptRule("loyalty_program", ("loyalty", "reward", "points", "member"),
                    "caller is asking about rewards", "Loyalty program", 4),
    ),
    "software": (
        ConceptRule("technical_support", ("bug", "error", "crash", "not working", "broken", "outage"),
                    "caller is reporting a technical problem", "Technical troubleshooting", 2),
        ConceptRule("account_access", ("login", "password", "locked out", "sign in", "access"),
                    "caller cannot access their account", "Account access recovery", 2),
        ConceptRule("billing_questions", ("billing", "invoice", "charge", "subscription", "payment"),
                    "caller has a billing question", "Billing and subscription questions", 3),
        ConceptRule("feature_request", ("feature", "integration", "roadmap"),
                    "caller is asking for new functionality", "Feature requests", 4),
        ConceptRule("onboarding", ("onboard", "setup", "set up", "getting started", "demo"),
                    "caller is getting started with the product", "Onboarding help", 3),
    ),
}

GENERIC_RULES: Tuple[ConceptRule, ...] = (
    ConceptRule("general_inquiry", ("question", "information", "hours", "location"),
                "caller has a general question", "General inquiries", 3),
    ConceptRule("service_request", ("request", "quote", "estimate"),
                "caller wants to request a service", "Service requests", 2),
    ConceptRule("complaint_handling", ("complain*", "unhappy", "dissatisf*"),
                "caller is unhappy with the service", "Complaint handling", 2),
)

_GENERIC_DOMAIN_RE = re.compile(r"\b(?:business|company|service|agency|firm)\s+(?:called\s+|named\s+)?([a-z][a-z-]+)")
_STOP_WORDS = frozenset(
    "a an the that which who is are was we our to and or of for in on with that's it its "
    "will can should would this these those be by as at from".split()
)


@lru_cache(maxsize=None)
def _keyword_pattern(keyword: str) -> re.Pattern[str]:
    # "stem*" matches any word starting with the stem; plain keywords match
    # whole words plus common inflections ("urgent" -> "urgently").
    keyword = keyword.lower()
    if keyword.endswith("*"):
        return re.compile(r"(?<![a-z0-9])" + re.escape(keyword[:-1]))
    return re.compile(r"(?<![a-z0-9])" + re.escape(keyword) + r"(?:s|es|d|ed|ly|ing)?(?![a-z0-9])")


def _first_match(text: str, keywords: Sequence[str]) -> Optional[str]:
    for keyword in keywords:
        if _keyword_pattern(keyword).search(text):
            return keyword
    return None


def detect_domain(text: str) -> str:
    lowered = text.lower()
    for domain, keywords in DOMAIN_KEYWORDS:
        if _first_match(lowered, keywords):
            return domain
    for match in _GENERIC_DOMAIN_RE.finditer(lowered):
        noun = match.group(1)
        if noun not in _STOP_WORDS:
            return noun.replace("-", "_")
    return FALLBACK_DOMAIN


def detect_purpose(text: str) -> str:
    lowered = text.lower()
    for purpose, keywords in PURPOSE_KEYWORDS:
        if _first_match(lowered, keywords):
            return purpose
    return FALLBACK_PURPOSE


def rules_for(domain: str) -> Tuple[ConceptRule, ...]:
    return CONCEPT_RULES.get(domain, GENERIC_RULES)


def detect_concepts(text: str, domain: str) -> List[Concept]:
    """Return concepts for ``domain`` found in ``text``, urgent ones first."""

    lowered = text.lower()
    found: List[Concept] = []
    for rule in (URGENCY_RULE,) + rules_for(domain):
        keyword = _first_match(lowered, rule.keywords)
        if keyword is None:
            continue
        found.append(
            Concept(
                type=rule.type,
                condition=rule.condition,
                description=rule.description,
                priority=rule.priority,
                keyword=keyword,
            )
        )
    # sorted() is stable, so equal priorities keep table order.
    return sorted(found, key=lambda c: c.priority)


def need_field(domain: str) -> str:
    return DOMAIN_NEED_FIELDS.get(domain, "primary_need")


def extract_concepts(description: str, name: str = "") -> ConceptAnalysis:
    """Classify a workflow description.

    ``name`` only contributes to domain and purpose detection; concepts come
    from the description alone.
    """

    combined = f"{description or ''} {name or ''}"
    domain = detect_domain(combined)
    purpose = detect_purpose(combined)
    concepts = detect_concepts(description or "", domain)
    return ConceptAnalysis(domain=domain, purpose=purpose, concepts=tuple(concepts))


__all__ = [
    "Concept",
    "ConceptAnalysis",
    "ConceptRule",
    "extract_concepts",
    "detect_domain",
    "detect_purpose",
    "detect_concepts",
    "need_field",
    "FALLBACK_DOMAIN",
    "FALLBACK_PURPOSE",
]
