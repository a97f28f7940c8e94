"""Node Emitters - one pure function per implemented node type"""
from typing import Dict

from catalyst.compiler.fragments import Emitter
from catalyst.workflow.manifest import NodeType

from .control import emit_condition
from .data import emit_postgres_query, emit_qdrant_search
from .llm import (
    emit_anthropic_completion,
    emit_embedding_generate,
    emit_groq_completion,
    emit_llm_router,
    emit_openai_completion,
    emit_prompt_template,
)
from .transform import emit_edit_fields
from .triggers import emit_http_endpoint, emit_scheduled_task
from .utilities import emit_log

EMITTERS: Dict[NodeType, Emitter] = {
    NodeType.HTTP_ENDPOINT: emit_http_endpoint,
    NodeType.SCHEDULED_TASK: emit_scheduled_task,
    NodeType.ANTHROPIC_COMPLETION: emit_anthropic_completion,
    NodeType.OPENAI_COMPLETION: emit_openai_completion,
    NodeType.GROQ_COMPLETION: emit_groq_completion,
    NodeType.EMBEDDING_GENERATE: emit_embedding_generate,
    NodeType.PROMPT_TEMPLATE: emit_prompt_template,
    NodeType.LLM_ROUTER: emit_llm_router,
    NodeType.QDRANT_SEARCH: emit_qdrant_search,
    NodeType.POSTGRES_QUERY: emit_postgres_query,
    NodeType.CONDITION: emit_condition,
    NodeType.EDIT_FIELDS: emit_edit_fields,
    NodeType.LOG: emit_log,
}

__all__ = ["EMITTERS"]
