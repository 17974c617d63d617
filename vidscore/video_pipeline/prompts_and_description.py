"""
Prompt templates sent to the video intelligence and scoring services.

All templates are plain ``str.format`` strings and can be overridden by
passing a different template to the component that uses them.
"""

NICHE_CATALOGUE = (
    "fitness",
    "gaming",
    "beauty",
    "food",
    "education",
    "comedy",
    "tech",
    "travel",
    "music",
    "lifestyle",
)

GENERIC_NICHE = "general"

NICHE_CLASSIFICATION_PROMPT = """Classify the content niche of this video.
Answer with exactly one word from this list: {labels}.
If none of them fits, answer "{fallback}".
Do not add any explanation."""


ANALYSIS_PROMPTS = {
    "narrative": """Describe the narrative of this video: the opening hook in the first
three seconds, the story or argument structure, the call to action, and how well
the ending lands. Be specific and reference timestamps.""",
    "technical": """Assess the technical execution of this video: lighting, focus,
stability, framing, audio clarity, background noise and editing rhythm. Reference
timestamps for any problem you find.""",
    "visual": """Describe the visual style of this video: composition, colour, on-screen
text, transitions, faces and movement, and how visually engaging each part is.
Reference timestamps.""",
}

CONSOLIDATED_ANALYSIS_PROMPT = """Analyse this video in three labelled sections.
NARRATIVE: opening hook, structure, call to action and ending.
TECHNICAL: lighting, focus, stability, audio clarity and editing rhythm.
VISUAL: composition, colour, on-screen text and transitions.
Reference timestamps throughout."""


SCORING_SYSTEM_PROMPT = """You are an expert creative director for social media.
You judge short-form videos and return strict JSON only."""

SCORING_USER_TEMPLATE = """=== YOUR GOAL ===
{goal}

=== CONTEXT ===
Target Audience: "{audience}"
Platform: "{platform}"
Content Niche: "{niche}"

=== NICHE SCORING RULE ===
{niche_rule}

=== MEASURED SIGNALS ===
{signals}

=== PERCEPTUAL ANALYSIS ===
{analysis}

=== SCORING TASKS ===
Evaluate the video on the following CUSTOM METRICS. Return one entry per metric
under "scores", keeping the exact "key" identifiers below.

{metrics}

=== INSTRUCTIONS ===
1. Weigh the measured signals and the perceptual analysis against each metric.
2. Give every metric an integer score from 0 to 100 and a 10-15 word reason.
3. Give an integer "overall" score from 0 to 100, a target audience analysis,
   and lists of strengths, weaknesses and tips, each item with a title and description.
4. Suggest a caption and between 3 and 10 hashtags under "metadata".
5. Output pure JSON matching this schema:
{schema}"""

METRIC_LINE_TEMPLATE = """- Metric Key: "{key}"
   - Display Name: "{name}"
   - Evaluation Logic: {context}"""
