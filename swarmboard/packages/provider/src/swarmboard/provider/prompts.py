"""生成器 prompt 构建

要求模型只输出严格 JSON：summary（≤160 字符）+ 小型 payload，
CHECKPOINT 步骤额外要求 artifactUpdate.latestSummary。
"""

from .models import GenerationRequest

# prompt 中展示的上下文条数上限
PROMPT_CONTEXT_LINES = 8

SYSTEM_PROMPT = (
    "You are a multi-agent workflow simulator. Generate realistic event data for agent workflows.\n"
    "Output STRICT JSON ONLY. No markdown, no code blocks, no explanation.\n"
    "Keep summaries under 160 characters. Keep payload small (<500 bytes)."
)

KIND_GUIDANCE: dict[str, str] = {
    "PLAN": "This is a planning event. Describe the mission initialization or planning decision.",
    "ASSIGN": "This is a task assignment. Describe what task is being delegated and to whom.",
    "TOOL_CALL": (
        "This is a tool invocation. "
        "Describe which tool/API is being called and with what parameters."
    ),
    "TOOL_RESULT": "This is a tool result. Describe what data was returned from the tool.",
    "CHECKPOINT": (
        "This is a checkpoint. Summarize progress so far. "
        "Include artifactUpdate with latestSummary."
    ),
    "NOTE": "This is an observation or note. Describe an insight or status update.",
    "FAIL": "This is a failure event. Describe what went wrong (timeout, error, etc).",
    "RETRY": "This is a retry attempt. Describe the retry strategy being used.",
    "DONE": "This is the completion event. Summarize the mission outcome.",
}


def build_messages(request: GenerationRequest) -> list[dict[str, str]]:
    """构建 chat completion 的 messages"""
    context = "\n".join(request.ranked_context[-PROMPT_CONTEXT_LINES:])

    output_format = (
        "{\n"
        '  "summary": "Brief description of what happened (max 160 chars)",\n'
        '  "payload": { relevant data as key-value pairs }'
    )
    if request.kind == "CHECKPOINT":
        output_format += ',\n  "artifactUpdate": { "latestSummary": "checkpoint summary" }'
    output_format += "\n}"

    user_prompt = (
        f'Mission: "{request.mission_title}"\n\n'
        f"Recent events:\n{context or '(No previous events)'}\n\n"
        "Generate the next event for:\n"
        f"- Step: {request.step}\n"
        f"- Agent: {request.agent}\n"
        f"- Event Type: {request.kind}\n\n"
        f"{KIND_GUIDANCE.get(request.kind, '')}\n\n"
        f"Output JSON format:\n{output_format}"
    )

    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": user_prompt},
    ]
