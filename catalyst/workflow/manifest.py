"""
Workflow Manifest Schema - Declarative JSON format for Catalyst workflows.
The manifest is the bridge between the visual canvas and the workflow
compiler. Every canvas graph serializes to this format; keys are camelCase
on the wire and snake_case on the models.
"""

from typing import Optional, Dict, List, Any, Literal
from enum import Enum
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ManifestModel(BaseModel):
    """Base for manifest models: camelCase aliases, snake_case attributes."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class NodeCategory(str, Enum):
    """Palette categories."""
    TRIGGERS = "triggers"
    LLM = "llm"
    DATA = "data"
    HTTP = "http"
    CONTROL = "control"
    TRANSFORM = "transform"
    STREAMING = "streaming"
    UTILITIES = "utilities"


class NodeType(str, Enum):
    """Every node kind the canvas palette can place."""
    # Triggers
    HTTP_ENDPOINT = "httpEndpoint"
    WEBHOOK_RECEIVER = "webhookReceiver"
    SCHEDULED_TASK = "scheduledTask"
    SUBWORKFLOW_TRIGGER = "subworkflowTrigger"
    WEBSOCKET_ENDPOINT = "websocketEndpoint"
    QUEUE_CONSUMER = "queueConsumer"
    # LLM / AI
    ANTHROPIC_COMPLETION = "anthropicCompletion"
    OPENAI_COMPLETION = "openaiCompletion"
    GROQ_COMPLETION = "groqCompletion"
    AZURE_OPENAI_COMPLETION = "azureOpenaiCompletion"
    EMBEDDING_GENERATE = "embeddingGenerate"
    PROMPT_TEMPLATE = "promptTemplate"
    AGENTIC_TOOL_CALL = "agenticToolCall"
    LLM_ROUTER = "llmRouter"
    # Data sources
    QDRANT_SEARCH = "qdrantSearch"
    QDRANT_UPSERT = "qdrantUpsert"
    QDRANT_SCROLL = "qdrantScroll"
    QDRANT_PAYLOAD = "qdrantPayload"
    POSTGRES_QUERY = "postgresQuery"
    DIRECTUS_QUERY = "directusQuery"
    GRAPHQL_QUERY = "graphqlQuery"
    REDIS_OPERATION = "redisOperation"
    # HTTP / external
    HTTP_REQUEST = "httpRequest"
    GMAIL_OPERATION = "gmailOperation"
    WEBHOOK_SEND = "webhookSend"
    GRAPHQL_MUTATION = "graphqlMutation"
    # Control flow
    CONDITION = "condition"
    SWITCH = "switch"
    LOOP = "loop"
    PARALLEL = "parallel"
    AGGREGATE = "aggregate"
    RETRY = "retry"
    DELAY = "delay"
    EARLY_RETURN = "earlyReturn"
    # Transform
    EDIT_FIELDS = "editFields"
    JAVASCRIPT_FUNCTION = "javascriptFunction"
    PYTHON_FUNCTION = "pythonFunction"
    JSON_TRANSFORM = "jsonTransform"
    MAP_ARRAY = "mapArray"
    FILTER_ARRAY = "filterArray"
    REDUCE_ARRAY = "reduceArray"
    SPLIT_ARRAY = "splitArray"
    # Streaming
    STREAM_START = "streamStart"
    STREAM_CHUNK = "streamChunk"
    STREAM_END = "streamEnd"
    STREAM_MERGE = "streamMerge"
    STREAM_BUFFER = "streamBuffer"
    # Utilities
    CRYPTO_GENERATE = "cryptoGenerate"
    EXECUTION_DATA = "executionData"
    GLOBAL_VARIABLE = "globalVariable"
    ERROR_HANDLER = "errorHandler"
    LOG = "log"
    METRICS = "metrics"
    RATE_LIMIT = "rateLimit"
    VALIDATE = "validate"


TRIGGER_TYPES = {
    NodeType.HTTP_ENDPOINT.value,
    NodeType.WEBHOOK_RECEIVER.value,
    NodeType.SCHEDULED_TASK.value,
    NodeType.SUBWORKFLOW_TRIGGER.value,
    NodeType.WEBSOCKET_ENDPOINT.value,
    NodeType.QUEUE_CONSUMER.value,
}


class CacheConfig(ManifestModel):
    """Per-node cache settings. Reserved: not applied by generated code."""
    enabled: bool = False
    ttl: int = 0
    key: Optional[str] = None


class PinnedData(ManifestModel):
    """Frozen output used instead of running the node in test mode."""
    enabled: bool = False
    data: Any = None
    timestamp: Optional[str] = None


class NodeDefinition(ManifestModel):
    """A single step in a workflow."""
    id: str
    type: str
    name: str = ""
    description: str = ""
    position: Dict[str, float] = Field(default_factory=lambda: {"x": 0, "y": 0})
    config: Dict[str, Any] = Field(default_factory=dict)
    timeout: Optional[int] = None  # milliseconds
    retries: Optional[int] = None
    cache: Optional[CacheConfig] = None
    on_error: Literal["throw", "continue", "fallback"] = "throw"
    fallback_value: Any = None
    pinned_data: Optional[PinnedData] = None

    @property
    def display_name(self) -> str:
        return self.name or self.id


class EdgeDefinition(ManifestModel):
    """A directed edge between two nodes."""
    id: str
    source: str
    target: str
    source_handle: Optional[str] = None
    target_handle: Optional[str] = None
    condition: Optional[str] = None


class TriggerDefinition(ManifestModel):
    type: str = NodeType.HTTP_ENDPOINT.value
    config: Dict[str, Any] = Field(default_factory=dict)


class InputField(ManifestModel):
    type: Literal["string", "number", "boolean", "object", "array"] = "string"
    required: bool = False
    description: Optional[str] = None
    default: Any = None


class OutputDefinition(ManifestModel):
    type: Literal["json", "stream"] = "json"
    format: Optional[Literal["sse", "websocket"]] = None


class ExecutionConfig(ManifestModel):
    """Workflow-level execution policy."""
    timeout: Optional[int] = None  # milliseconds, whole run
    retries: int = 0  # default node retries
    retry_delay: int = 1000  # milliseconds
    retry_backoff: Literal["linear", "exponential"] = "linear"


class WorkflowDefinition(ManifestModel):
    """
    One compilable unit - a trigger, a node map keyed by node id and the
    edges between those nodes. Consumed read-only by the compiler.
    """
    id: str
    name: str
    description: str = ""
    trigger: TriggerDefinition = Field(default_factory=TriggerDefinition)
    input: Dict[str, InputField] = Field(default_factory=dict)
    output: OutputDefinition = Field(default_factory=OutputDefinition)
    nodes: Dict[str, NodeDefinition] = Field(default_factory=dict)
    edges: List[EdgeDefinition] = Field(default_factory=list)
    execution_config: ExecutionConfig = Field(default_factory=ExecutionConfig)

    def get_node(self, node_id: str) -> Optional[NodeDefinition]:
        return self.nodes.get(node_id)

    def get_outgoing_edges(self, node_id: str) -> List[EdgeDefinition]:
        return [e for e in self.edges if e.source == node_id]

    def get_incoming_edges(self, node_id: str) -> List[EdgeDefinition]:
        return [e for e in self.edges if e.target == node_id]


class SecretDefinition(ManifestModel):
    required: bool = True
    description: Optional[str] = None
    default: Optional[str] = None


class CorsConfig(ManifestModel):
    origins: List[str] = Field(default_factory=lambda: ["*"])
    credentials: bool = False


class RuntimeConfig(ManifestModel):
    runtime: Literal["python"] = "python"
    python_version: str = "3.11"
    framework: Literal["fastapi"] = "fastapi"
    port: int = 8000
    cors: Optional[CorsConfig] = None


class ProjectMetadata(ManifestModel):
    project_name: str = ""
    description: str = ""
    author: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class Manifest(ManifestModel):
    """
    Complete project manifest - every workflow in a project plus the
    runtime settings, secret declarations and global variables they share.
    """
    schema_version: str = "1.0.0"
    project_type: Literal["workflow"] = "workflow"
    metadata: ProjectMetadata = Field(default_factory=ProjectMetadata)
    config: RuntimeConfig = Field(default_factory=RuntimeConfig)
    secrets: Dict[str, SecretDefinition] = Field(default_factory=dict)
    global_variables: Dict[str, Any] = Field(default_factory=dict)
    workflows: Dict[str, WorkflowDefinition] = Field(default_factory=dict)

    def get_workflow(self, workflow_id: str) -> Optional[WorkflowDefinition]:
        return self.workflows.get(workflow_id)
