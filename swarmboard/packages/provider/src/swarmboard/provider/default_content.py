"""DefaultContentProvider -- 确定性的默认内容表

覆盖整个步骤表的 step -> {summary, payload, delay_ms}。
生成器未配置或失败时使用；脚本驱动也按此表逐步写入事件。
agent / kind 不在此表中，始终由调用方按 Step Schedule 传入。
"""

from typing import Any, NamedTuple

from .models import GeneratedContent


class ScriptedContent(NamedTuple):
    """单个步骤的默认内容"""

    summary: str
    payload: dict[str, Any]
    delay_ms: int


DEFAULT_SCRIPT: dict[int, ScriptedContent] = {
    1: ScriptedContent(
        "Mission initialized: Research and summarize latest AI trends",
        {"objective": "AI Trends Research", "estimatedSteps": 16},
        0,
    ),
    2: ScriptedContent(
        "Assigned Researcher to gather data from academic sources",
        {"assignee": "Researcher", "task": "academic_search"},
        2500,
    ),
    3: ScriptedContent(
        "Querying ArXiv API for recent transformer papers",
        {"tool": "arxiv_search", "query": "transformers 2024"},
        2000,
    ),
    4: ScriptedContent(
        "Found 47 relevant papers on attention mechanisms",
        {
            "resultCount": 47,
            "topPapers": [
                "Attention Is Still All You Need",
                "Mamba: Linear-Time Sequence Modeling",
            ],
        },
        3000,
    ),
    5: ScriptedContent(
        "Key trend identified: State-space models challenging transformers",
        {"insight": "SSM architectures gaining traction"},
        2000,
    ),
    6: ScriptedContent(
        "Checkpoint: Research phase 1 complete. 47 papers collected, SSM trend identified.",
        {"phase": 1, "papersCollected": 47},
        2500,
    ),
    7: ScriptedContent(
        "Summarizing top 10 papers using extraction pipeline",
        {"tool": "summarizer", "inputCount": 10},
        3000,
    ),
    8: ScriptedContent(
        "Generated summaries for all 10 papers",
        {"summariesGenerated": 10, "avgLength": 250},
        2500,
    ),
    9: ScriptedContent(
        "Failed to connect to external citation service (timeout)",
        {"error": "ETIMEDOUT", "service": "citation_api"},
        3000,
    ),
    10: ScriptedContent(
        "Retrying citation lookup with fallback service",
        {"attempt": 2, "fallback": "semantic_scholar"},
        2000,
    ),
    11: ScriptedContent(
        "Successfully retrieved citations via Semantic Scholar",
        {"citations": 156, "successfulRetry": True},
        2500,
    ),
    12: ScriptedContent(
        "Reviewing summary quality: 8/10 papers meet standards",
        {"approved": 8, "needsRevision": 2},
        2500,
    ),
    13: ScriptedContent(
        "Checkpoint: Analysis complete. 8 quality summaries, 156 citations mapped.",
        {"phase": 2, "qualitySummaries": 8, "totalCitations": 156},
        3000,
    ),
    14: ScriptedContent(
        "Generating final report with trend analysis",
        {"tool": "report_generator", "format": "markdown"},
        2500,
    ),
    15: ScriptedContent(
        "Final report generated: 2,400 words with visualizations",
        {"wordCount": 2400, "charts": 3, "tables": 2},
        3000,
    ),
    16: ScriptedContent(
        "Final review passed. Report is comprehensive and well-structured.",
        {"qualityScore": 9.2, "recommendation": "approved"},
        2000,
    ),
    17: ScriptedContent(
        "Mission complete: AI Trends Report delivered successfully",
        {"totalDuration": "45s", "eventsProcessed": 17},
        2500,
    ),
}

# 表外步骤的默认延迟
GENERIC_DELAY_MS = 2000


class DefaultContentProvider:
    """按步骤查表的默认内容提供方（纯函数式，无 I/O）"""

    def __init__(self, script: dict[int, ScriptedContent] | None = None) -> None:
        self._script = script if script is not None else DEFAULT_SCRIPT

    def content_for(self, step: int, agent: str, kind: str) -> GeneratedContent:
        """返回指定步骤的默认内容

        表外步骤返回通用描述，保证任何步骤都有内容可写。
        """
        entry = self._script.get(step)
        if entry is None:
            return GeneratedContent(
                summary=f"{agent} completed {kind} for step {step}",
                payload={"step": step, "agent": agent, "kind": kind},
            )
        # payload 复制一份，避免调用方修改共享的表数据
        return GeneratedContent(summary=entry.summary, payload=dict(entry.payload))

    def delay_ms_for(self, step: int) -> int:
        """脚本驱动在写入该步骤前等待的毫秒数"""
        entry = self._script.get(step)
        return entry.delay_ms if entry is not None else GENERIC_DELAY_MS
