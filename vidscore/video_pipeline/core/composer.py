import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from vidscore.video_pipeline.core.models import AnalysisContext, ScoreReport, ScoringMetric
from vidscore.video_pipeline.prompts_and_description import (
    METRIC_LINE_TEMPLATE,
    SCORING_SYSTEM_PROMPT,
    SCORING_USER_TEMPLATE,
)

# Normalised niche substring -> how forgiving the scorer should be
NICHE_RULES = {
    "fitness": "Raw, handheld gym footage is normal here. Do not penalise imperfect lighting "
               "if form and movement are clearly visible; penalise unclear demonstrations.",
    "gaming": "Screen captures and facecam overlays are expected. Judge commentary energy and "
              "clip payoff over camera quality.",
    "beauty": "Lighting and colour accuracy matter a lot; penalise poor lighting and soft focus strictly.",
    "food": "Close-up texture and colour are essential; penalise dark or blurry food shots strictly.",
    "education": "Clarity of explanation outweighs production value; penalise dead air and rambling.",
    "comedy": "Timing is everything; judge the setup-to-punchline rhythm over polish.",
    "tech": "On-screen detail must be legible; penalise out-of-focus product shots.",
    "travel": "Scenery and motion are the draw; allow some camera shake in action shots.",
    "music": "Audio quality dominates; penalise muffled or noisy audio strictly.",
}

GENERIC_RULE = "Apply standard short-form video quality expectations for the platform."


def niche_rule(niche: Optional[str]) -> str:
    """Look up the tolerance rule whose key occurs in the normalised niche."""
    normalized = (niche or "").strip().lower()
    for key, rule in NICHE_RULES.items():
        if key in normalized:
            return rule
    return GENERIC_RULE


@dataclass
class ScoringRequest:
    messages: List[Dict[str, str]]
    metrics: List[ScoringMetric]
    response_format: Dict[str, Any] = field(default_factory=lambda: {"type": "json_object"})


class PromptComposer:
    """Merges caller context and extracted signals into one scoring request."""

    def __init__(
        self,
        system_prompt: str = SCORING_SYSTEM_PROMPT,
        user_template: str = SCORING_USER_TEMPLATE,
    ):
        self.system_prompt = system_prompt
        self.user_template = user_template

    def compose(
        self,
        context: AnalysisContext,
        audience: str,
        platform: str,
        goal: str,
        metrics: Sequence[ScoringMetric],
    ) -> ScoringRequest:
        context = context.consume()
        prompt = self.user_template.format(
            goal=goal,
            audience=audience,
            platform=platform,
            niche=context.niche.niche,
            niche_rule=niche_rule(context.niche.niche),
            signals=self._format_signals(context),
            analysis=self._format_analysis(context.analysis),
            metrics="\n".join(
                METRIC_LINE_TEMPLATE.format(key=m.key, name=m.name, context=m.context or m.name)
                for m in metrics
            ),
            schema=json.dumps(self._response_schema(), indent=2),
        )
        return ScoringRequest(
            messages=[
                {"role": "system", "content": self.system_prompt},
                {"role": "user", "content": prompt},
            ],
            metrics=list(metrics),
        )

    @staticmethod
    def _format_signals(context: AnalysisContext) -> str:
        lines = [f"Pacing: {context.pacing.describe()}"]
        if context.pacing.has_speech and context.pacing.dead_air_events:
            lines.append(
                f"Pacing issue: {context.pacing.dead_air_events} dead air gap(s) slow the video down."
            )
        if context.defects:
            lines.extend(f"Technical defect: {defect.describe()}" for defect in context.defects)
        else:
            lines.append("Technical defects: none detected with high confidence.")
        if context.topics.topics:
            lines.append(f"Detected topics: {', '.join(context.topics.topics)}")
        return "\n".join(lines)

    @staticmethod
    def _format_analysis(analysis: Dict[str, str]) -> str:
        if not analysis:
            return "No perceptual analysis available."
        return "\n\n".join(f"[{axis.upper()}]\n{text}" for axis, text in analysis.items())

    @staticmethod
    def _response_schema() -> Dict[str, Any]:
        schema = ScoreReport.model_json_schema()
        schema.get("properties", {}).pop("degraded", None)
        return schema
