"""Prompt templates for episode and series enrichment.

Bump a prompt version whenever its wording changes; the version is stored
on every cache entry.
"""

import json

from jinja2 import Template

from podarc.catalog.models import ProgrammaticEpisode, ProgrammaticSeries
from podarc.enrichment.clients import ChatMessage

EPISODE_PROMPT_VERSION = "episode.enrichment.v2"
SERIES_PROMPT_VERSION = "series.enrichment.v1"

EPISODE_SYSTEM_PROMPT = (
    "You are an expert historical analyst working on a narrative history podcast. "
    "Your task is to extract specific structured metadata from an episode's title "
    "and synopsis. You must adhere strictly to the output format."
)

SERIES_SYSTEM_PROMPT = (
    "You are a skilled editor tasked with creating a compelling title and summary "
    "for a multi-part podcast series based on the titles and synopses of its "
    "individual episodes."
)

JSON_ONLY_REMINDER = (
    "Your previous reply was not valid JSON. Reply with the JSON object only, "
    "with no prose and no code fences."
)

EPISODE_TEMPLATE = Template(
    """Analyze the following podcast episode details:
Title: {{ title }}
Synopsis: {{ synopsis }}
From the text provided, perform the following tasks:
1. Identify key historical figures mentioned.{% if hosts %} Do NOT include the hosts, {{ hosts | join(" and ") }}.{% endif %} Do NOT include producer or staff names mentioned in a credits list.
2. Identify key geographical places or locations central to the narrative.
3. Infer a numeric year span (yearFrom, yearTo) for the main historical period discussed. If the episode covers multiple distinct periods or no specific historical period (e.g., mythology, ghosts), you MUST return `null` for both yearFrom and yearTo.
4. Extract up to five short, key themes that summarize the episode's subject matter.
Return your analysis ONLY as a single, valid JSON object with the following schema:
{
  "keyPeople": ["string"],
  "keyPlaces": ["string"],
  "keyThemes": ["string"],
  "yearFrom": number | null,
  "yearTo": number | null,
  "yearConfidence": "high" | "medium" | "low" | "unknown"
}
Example:
Title: 612. Nelson: The Final Showdown (Part 5)
Synopsis: "After two years at sea chasing the combined fleet of France and Spain, what was Nelson's next step? Upon returning to his beloved Emma, how was the heroic Nelson received? What was Napoleon Bonaparte scheming for his fleet across the seas? And would Britain finally face an imminent French invasion?"
Expected Output:
{
  "keyPeople": ["Horatio Nelson", "Emma Hamilton", "Napoleon Bonaparte"],
  "keyPlaces": ["Britain", "France", "Spain", "Trafalgar"],
  "keyThemes": ["napoleonic-wars", "naval-warfare", "british-navy", "french-invasion-threat", "trafalgar-campaign"],
  "yearFrom": 1803,
  "yearTo": 1805,
  "yearConfidence": "high"
}
If a span cannot be determined, both `yearFrom` and `yearTo` must be returned as `null`:
{
  "keyPeople": ["Perseus", "Medusa"],
  "keyPlaces": ["Ancient Greece"],
  "keyThemes": ["mythology", "heroic-quests", "monsters"],
  "yearFrom": null,
  "yearTo": null,
  "yearConfidence": "unknown"
}"""
)

SERIES_TEMPLATE = Template(
    """Analyze the following collection of podcast episodes, which belong to a single series:
JSON
{{ summaries_json }}
Based on the provided episodes, generate a single, consolidated `seriesTitle` and a short `narrativeSummary` (2-3 sentences) for the entire series. The title should be a human-friendly, overarching name for the arc, derived from the common themes in the episode titles. Optionally add up to five `tonalDescriptors` (single words describing the tone).
Return your analysis ONLY as a single, valid JSON object with the following schema:
{
  "seriesTitle": "string",
  "narrativeSummary": "string",
  "tonalDescriptors": ["string"]
}"""
)


def build_episode_messages(
    episode: ProgrammaticEpisode, hosts: list[str] | None = None
) -> list[ChatMessage]:
    """Build the chat messages asking for one episode's metadata."""
    prompt = EPISODE_TEMPLATE.render(
        title=episode.clean_title,
        synopsis=episode.clean_description_text,
        hosts=hosts or [],
    )
    return [
        ChatMessage(role="system", content=EPISODE_SYSTEM_PROMPT),
        ChatMessage(role="user", content=prompt),
    ]


def build_series_messages(series: ProgrammaticSeries) -> list[ChatMessage]:
    """Build the chat messages asking for a series title and summary."""
    summaries = [
        {
            "part": summary.part,
            "cleanTitle": summary.clean_title,
            "cleanDescriptionText": summary.clean_description_text,
        }
        for summary in series.derived.episode_summaries
    ]
    prompt = SERIES_TEMPLATE.render(
        summaries_json=json.dumps(summaries, indent=2, ensure_ascii=False)
    )
    return [
        ChatMessage(role="system", content=SERIES_SYSTEM_PROMPT),
        ChatMessage(role="user", content=prompt),
    ]


def with_json_reminder(messages: list[ChatMessage], previous_reply: str) -> list[ChatMessage]:
    """Append the unparseable reply and a JSON-only reminder."""
    followup = [ChatMessage(role="user", content=JSON_ONLY_REMINDER)]
    if previous_reply.strip():
        followup.insert(0, ChatMessage(role="assistant", content=previous_reply))
    return [*messages, *followup]
