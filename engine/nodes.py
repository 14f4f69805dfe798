"""Typed conversation nodes and the immutable builder that produces them."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field


class NodeType(str, Enum):
    """Node variants understood by the execution platform (wire values)."""

    DEFAULT = "Default"
    WEBHOOK = "Webhook"
    KNOWLEDGE_BASE = "Knowledge Base"
    TRANSFER = "Transfer Node"
    END_CALL = "End Call"
    WAIT_FOR_RESPONSE = "Wait for Response"


VariableTuple = Union[Tuple[str, str, str], Tuple[str, str, str, bool]]


class _Record(BaseModel):
    model_config = ConfigDict(frozen=True, protected_namespaces=())


class VariableSpec(_Record):
    """A value the conversation must capture while in a node."""

    name: str
    type: str = "string"
    description: str = ""
    required: bool = True

    def to_payload(self) -> List[Any]:
        return [self.name, self.type, self.description, self.required]


class WebhookSpec(_Record):
    url: str
    method: str = "POST"
    body: Dict[str, Any] = Field(default_factory=dict)
    headers: Dict[str, str] = Field(default_factory=dict)


class ResponseMapping(_Record):
    """Binds part of a JSON response (JSONPath) to a conversation variable."""

    name: str
    data: str
    context: Optional[str] = None


class DynamicDataSpec(_Record):
    url: str
    method: str = "GET"
    headers: Dict[str, str] = Field(default_factory=dict)
    query: Dict[str, Any] = Field(default_factory=dict)
    body: Optional[Any] = None
    cache: bool = True
    response_data: Tuple[ResponseMapping, ...] = ()
    fallback_response: Optional[str] = None

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"url": self.url, "method": self.method, "cache": self.cache}
        if self.headers:
            payload["headers"] = dict(self.headers)
        if self.query:
            payload["query"] = dict(self.query)
        if self.body is not None:
            payload["body"] = self.body
        payload["response_data"] = [m.model_dump(exclude_none=True) for m in self.response_data]
        if self.fallback_response:
            payload["fallback_response"] = self.fallback_response
        return payload


class CustomToolSpec(_Record):
    name: str
    description: str
    input_schema: Dict[str, Any] = Field(default_factory=lambda: {"type": "object", "properties": {}})
    speech: Optional[str] = None
    response_data: Tuple[ResponseMapping, ...] = ()

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "name": self.name,
            "description": self.description,
            "input_schema": self.input_schema,
        }
        if self.speech:
            payload["speech"] = self.speech
        payload["response_data"] = [{"name": m.name, "data": m.data} for m in self.response_data]
        return payload


class VoiceSettings(_Record):
    voice_id: Optional[Union[str, int]] = None
    speed: Optional[float] = Field(default=None, ge=0.5, le=2.0)
    interruption_threshold: Optional[int] = Field(default=None, ge=0, le=100)
    reduce_latency: Optional[bool] = None
    dynamic_voice_switching: Optional[bool] = None


class ModelOptions(_Record):
    model_name: Optional[str] = None
    interruption_threshold: Optional[int] = None
    temperature: Optional[float] = Field(default=None, ge=0.0, le=1.0)

    def to_payload(self) -> Dict[str, Any]:
        payload = {
            "modelName": self.model_name,
            "interruptionThreshold": self.interruption_threshold,
            "temperature": self.temperature,
        }
        return {k: v for k, v in payload.items() if v is not None}


class AIFeatures(_Record):
    sentiment_analysis: bool = False
    emotion_detection: bool = False
    language_detection: bool = False
    cultural_adaptation: bool = False
    real_time_coaching: bool = False
    predictive_routing: bool = False


class FlowControl(_Record):
    max_retries: int = Field(default=3, ge=0)
    timeout_seconds: Optional[int] = Field(default=None, gt=0)
    escalation_threshold: Optional[int] = Field(default=None, ge=1)


class Analytics(_Record):
    events: Tuple[str, ...] = ()
    conversion_goal: Optional[str] = None
    custom_metrics: Tuple[str, ...] = ()


class PathwayExample(_Record):
    user_input: str
    pathway: str


class ConditionExample(_Record):
    user_input: str
    condition_met: bool


class DialogueExample(_Record):
    scenario: str
    expected_response: str


class FineTuning(_Record):
    pathway_examples: Tuple[PathwayExample, ...] = ()
    condition_examples: Tuple[ConditionExample, ...] = ()
    dialogue_examples: Tuple[DialogueExample, ...] = ()


class NodeFeatures(_Record):
    """Optional feature blocks attached to a node, one per feature family."""

    dynamic_data: Tuple[DynamicDataSpec, ...] = ()
    custom_tools: Tuple[CustomToolSpec, ...] = ()
    voice: Optional[VoiceSettings] = None
    model: Optional[ModelOptions] = None
    ai: Optional[AIFeatures] = None
    flow_control: Optional[FlowControl] = None
    analytics: Optional[Analytics] = None
    fine_tuning: Optional[FineTuning] = None

    def to_payload(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {}
        if self.dynamic_data:
            data["dynamic_data"] = [spec.to_payload() for spec in self.dynamic_data]
        if self.custom_tools:
            data["custom_tools"] = [tool.to_payload() for tool in self.custom_tools]
        if self.voice is not None:
            data["voice_settings"] = self.voice.model_dump(exclude_none=True)
        if self.model is not None:
            data["modelOptions"] = self.model.to_payload()
        if self.ai is not None:
            data["ai_features"] = self.ai.model_dump()
        if self.flow_control is not None:
            data["flow_control"] = self.flow_control.model_dump(exclude_none=True)
        if self.analytics is not None:
            data["analytics"] = {
                "events": list(self.analytics.events),
                "custom_metrics": list(self.analytics.custom_metrics),
            }
            if self.analytics.conversion_goal:
                data["analytics"]["conversion_goal"] = self.analytics.conversion_goal
        if self.fine_tuning is not None:
            ft = self.fine_tuning
            if ft.pathway_examples:
                data["pathwayExamples"] = [
                    {"userInput": ex.user_input, "pathway": ex.pathway} for ex in ft.pathway_examples
                ]
            if ft.condition_examples:
                data["conditionExamples"] = [
                    {"userInput": ex.user_input, "conditionMet": ex.condition_met} for ex in ft.condition_examples
                ]
            if ft.dialogue_examples:
                data["dialogueExamples"] = [
                    {"scenario": ex.scenario, "expectedResponse": ex.expected_response}
                    for ex in ft.dialogue_examples
                ]
        return data


class Node(_Record):
    """A conversation state in a pathway."""

    id: str
    type: NodeType = NodeType.DEFAULT
    name: str = ""
    is_start: bool = False
    is_global: bool = False
    global_label: Optional[str] = None
    text: Optional[str] = None
    prompt: Optional[str] = None
    condition: Optional[str] = None
    variables: Tuple[VariableSpec, ...] = ()
    webhook: Optional[WebhookSpec] = None
    knowledge_base: Optional[str] = None
    transfer_number: Optional[str] = None
    features: NodeFeatures = Field(default_factory=NodeFeatures)

    @property
    def variable_names(self) -> List[str]:
        return [v.name for v in self.variables]

    def missing_payload(self) -> Optional[str]:
        """Describe the missing type-specific payload, if any."""

        if self.type is NodeType.WEBHOOK and not (self.webhook and self.webhook.url.strip()):
            return "webhook url"
        if self.type is NodeType.KNOWLEDGE_BASE and not (self.knowledge_base or "").strip():
            return "knowledge base content"
        if self.type is NodeType.TRANSFER and not (self.transfer_number or "").strip():
            return "transfer number"
        return None

    def to_payload(self) -> Dict[str, Any]:
        """Serialize to the JSON shape the pathway service expects."""

        data: Dict[str, Any] = {"name": self.name or "", "type": self.type.value}
        if self.is_start:
            data["isStart"] = True
        if self.is_global:
            data["isGlobal"] = True
            data["globalLabel"] = self.global_label or ""
        if self.text is not None:
            data["text"] = self.text
        if self.prompt is not None:
            data["prompt"] = self.prompt
        if self.condition is not None:
            data["condition"] = self.condition
        if self.variables:
            data["extractVars"] = [v.to_payload() for v in self.variables]
        if self.webhook is not None:
            data["webhookUrl"] = self.webhook.url
            data["webhookMethod"] = self.webhook.method
            data["webhookData"] = dict(self.webhook.body)
            if self.webhook.headers:
                data["webhookHeaders"] = [{"key": k, "value": v} for k, v in self.webhook.headers.items()]
        if self.knowledge_base is not None:
            data["kb"] = self.knowledge_base
        if self.transfer_number is not None:
            data["transferNumber"] = self.transfer_number
        data.update(self.features.to_payload())
        return {"id": self.id, "type": self.type.value, "data": data}


def _variable(spec: Union[VariableSpec, VariableTuple]) -> VariableSpec:
    if isinstance(spec, VariableSpec):
        return spec
    name, type_, description, *rest = spec
    return VariableSpec(name=name, type=type_, description=description, required=rest[0] if rest else True)


_PAYLOAD_FIELDS = ("webhook", "knowledge_base", "transfer_number")


@dataclass(frozen=True)
class NodeBuilder:
    """Chainable node construction.

    Every call returns a new builder, so partially configured builders can be
    shared and extended without affecting each other::

        base = NodeBuilder("node_1", "Greeting").as_start()
        node = base.with_prompt("Hello!").build()
    """

    node_id: str
    name: str = ""
    node_type: NodeType = NodeType.DEFAULT
    fields: Dict[str, Any] = field(default_factory=dict)
    features: Dict[str, Any] = field(default_factory=dict)

    def _set(self, **values: Any) -> "NodeBuilder":
        return replace(self, fields={**self.fields, **values})

    def _feature(self, **values: Any) -> "NodeBuilder":
        return replace(self, features={**self.features, **values})

    def _retype(self, node_type: NodeType, **payload: Any) -> "NodeBuilder":
        # a node carries at most one type-specific payload
        fields = {k: v for k, v in self.fields.items() if k not in _PAYLOAD_FIELDS}
        return replace(self, node_type=node_type, fields={**fields, **payload})

    # node type selectors
    def as_default(self) -> "NodeBuilder":
        return self._retype(NodeType.DEFAULT)

    def as_webhook(self, url: str, method: str = "POST") -> "NodeBuilder":
        current: Optional[WebhookSpec] = self.fields.get("webhook")
        spec = WebhookSpec(
            url=url,
            method=method.upper(),
            body=current.body if current else {},
            headers=current.headers if current else {},
        )
        return self._retype(NodeType.WEBHOOK, webhook=spec)

    def as_knowledge_base(self, content: str) -> "NodeBuilder":
        return self._retype(NodeType.KNOWLEDGE_BASE, knowledge_base=content)

    def as_transfer(self, phone_number: str) -> "NodeBuilder":
        return self._retype(NodeType.TRANSFER, transfer_number=phone_number)

    def as_end_call(self) -> "NodeBuilder":
        return self._retype(NodeType.END_CALL)

    def as_wait_for_response(self) -> "NodeBuilder":
        return self._retype(NodeType.WAIT_FOR_RESPONSE)

    # flags and content
    def as_start(self) -> "NodeBuilder":
        return self._set(is_start=True)

    def as_global(self, label: str) -> "NodeBuilder":
        return self._set(is_global=True, global_label=label)

    def with_text(self, text: str) -> "NodeBuilder":
        return self._set(text=text)

    def with_prompt(self, prompt: str) -> "NodeBuilder":
        return self._set(prompt=prompt)

    def with_condition(self, condition: str) -> "NodeBuilder":
        return self._set(condition=condition)

    def with_variables(self, variables: Sequence[Union[VariableSpec, VariableTuple]]) -> "NodeBuilder":
        return self._set(variables=tuple(_variable(v) for v in variables))

    def with_webhook_body(self, body: Dict[str, Any]) -> "NodeBuilder":
        spec: Optional[WebhookSpec] = self.fields.get("webhook")
        if spec is None:
            raise ValueError("with_webhook_body() requires as_webhook() first")
        return self._set(webhook=spec.model_copy(update={"body": dict(body)}))

    def with_webhook_headers(self, headers: Dict[str, str]) -> "NodeBuilder":
        spec: Optional[WebhookSpec] = self.fields.get("webhook")
        if spec is None:
            raise ValueError("with_webhook_headers() requires as_webhook() first")
        return self._set(webhook=spec.model_copy(update={"headers": {k: str(v) for k, v in headers.items()}}))

    # feature blocks
    def with_dynamic_data(self, specs: Sequence[DynamicDataSpec]) -> "NodeBuilder":
        return self._feature(dynamic_data=tuple(specs))

    def with_custom_tools(self, tools: Sequence[CustomToolSpec]) -> "NodeBuilder":
        return self._feature(custom_tools=tuple(tools))

    def with_voice(self, settings: VoiceSettings) -> "NodeBuilder":
        return self._feature(voice=settings)

    def with_model(self, options: ModelOptions) -> "NodeBuilder":
        return self._feature(model=options)

    def with_ai_features(self, features: AIFeatures) -> "NodeBuilder":
        return self._feature(ai=features)

    def with_flow_control(self, limits: FlowControl) -> "NodeBuilder":
        return self._feature(flow_control=limits)

    def with_analytics(self, analytics: Analytics) -> "NodeBuilder":
        return self._feature(analytics=analytics)

    def with_fine_tuning(
        self,
        pathway_examples: Sequence[PathwayExample] = (),
        condition_examples: Sequence[ConditionExample] = (),
        dialogue_examples: Sequence[DialogueExample] = (),
    ) -> "NodeBuilder":
        return self._feature(
            fine_tuning=FineTuning(
                pathway_examples=tuple(pathway_examples),
                condition_examples=tuple(condition_examples),
                dialogue_examples=tuple(dialogue_examples),
            )
        )

    def build(self) -> Node:
        return Node(
            id=self.node_id,
            type=self.node_type,
            name=self.name or "",
            features=NodeFeatures(**self.features),
            **self.fields,
        )


__all__ = [
    "AIFeatures",
    "Analytics",
    "ConditionExample",
    "CustomToolSpec",
    "DialogueExample",
    "DynamicDataSpec",
    "FineTuning",
    "FlowControl",
    "ModelOptions",
    "Node",
    "NodeBuilder",
    "NodeFeatures",
    "NodeType",
    "PathwayExample",
    "ResponseMapping",
    "VariableSpec",
    "VoiceSettings",
    "WebhookSpec",
]
