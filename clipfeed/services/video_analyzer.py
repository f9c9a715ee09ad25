"""Multimodal video analysis through a pydantic-ai agent."""

from __future__ import annotations

from pydantic_ai import Agent, BinaryContent

from clipfeed.core.logging import get_logger
from clipfeed.services.llm_models import build_pydantic_model
from clipfeed.services.video_content import VideoContent

logger = get_logger(__name__)

VIDEO_ANALYSIS_SYSTEM_PROMPT = (
    "You are a senior software engineer reviewing short screen recordings of "
    "apps and code. Describe how the software shown is implemented. Answer "
    "with a single JSON object and nothing else."
)

ANALYSIS_RESPONSE_SHAPE = """{
  "implementationOverview": "2-3 sentences on what is built and how",
  "technicalDetails": "notable implementation details, data flow, integrations",
  "techStack": ["languages, frameworks, services"],
  "architecturePatterns": ["patterns such as MVC, event sourcing, pub/sub"],
  "bestPractices": ["practices the implementation follows or should follow"]
}"""


def build_analysis_prompt(title: str | None, description: str | None) -> str:
    """Build the per-video instruction sent alongside the video bytes."""
    lines = [
        "Analyze the attached video and explain its technical implementation.",
        "",
        f"TITLE: {title or 'Unknown'}",
    ]
    if description:
        lines.append(f"DESCRIPTION: {description.strip()[:2000]}")
    lines.extend(
        [
            "",
            "Respond with JSON using exactly these keys:",
            ANALYSIS_RESPONSE_SHAPE,
            "",
            "Use plain strings in the arrays, one item per entry, without bullets.",
        ]
    )
    return "\n".join(lines)


class VideoAnalyzer:
    """Send a video and an instruction to the analysis model and return its raw text."""

    def __init__(self, model_spec: str, agent: Agent[None, str] | None = None) -> None:
        self.model_spec = model_spec
        self._agent = agent

    def _get_agent(self) -> Agent[None, str]:
        if self._agent is None:
            model, model_settings = build_pydantic_model(self.model_spec)
            self._agent = Agent(
                model,
                output_type=str,
                system_prompt=VIDEO_ANALYSIS_SYSTEM_PROMPT,
                model_settings=model_settings,
            )
        return self._agent

    def analyze(self, content: VideoContent, prompt: str) -> str:
        """Return the model's free-text response for ``content``."""
        agent = self._get_agent()
        result = agent.run_sync(
            [prompt, BinaryContent(data=content.data, media_type=content.media_type)]
        )
        logger.info(
            "Model analysis complete for %s",
            content.source_url,
            extra={
                "component": "video_analyzer",
                "operation": "analyze",
                "context_data": {
                    "model": self.model_spec,
                    "video_bytes": len(content.data),
                    "response_length": len(result.output or ""),
                },
            },
        )
        return result.output
