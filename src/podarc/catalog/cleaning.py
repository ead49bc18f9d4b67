"""Programmatic episode derivation: title and show-note cleanup.

Show notes arrive as HTML. They are split into paragraph blocks, stripped of
ad boilerplate, and production credits ("Producer: Jane Doe") are lifted
out into a structured mapping.
"""

import html
import logging

import regex

from podarc.catalog.fingerprints import episode_fingerprint
from podarc.catalog.models import ProgrammaticEpisode
from podarc.feeds.models import RawEpisode

logger = logging.getLogger(__name__)

# Bump when the cleanup rules change so downstream consumers can tell
CLEANUP_VERSION = 1

BLOCK_BREAK = regex.compile(r"<\s*br\s*/?\s*>|</\s*(?:p|div|li|h[1-6])\s*>", regex.IGNORECASE)
LINK = regex.compile(r"<a\s[^>]*href=[\"']([^\"']+)[\"'][^>]*>(.*?)</a\s*>", regex.IGNORECASE | regex.DOTALL)
BOLD = regex.compile(r"<\s*(?:strong|b)\s*>(.*?)<\s*/\s*(?:strong|b)\s*>", regex.IGNORECASE | regex.DOTALL)
ITALIC = regex.compile(r"<\s*(?:em|i)\s*>(.*?)<\s*/\s*(?:em|i)\s*>", regex.IGNORECASE | regex.DOTALL)
TAG = regex.compile(r"<[^>]+>")
WHITESPACE = regex.compile(r"\s+")
MARKDOWN_SYNTAX = regex.compile(r"\*\*|\*|\[([^\]]*)\]\([^)]*\)")

AD_BOILERPLATE = (
    regex.compile(r"learn more about your ad choices", regex.IGNORECASE),
    regex.compile(r"megaphone\.fm/adchoices", regex.IGNORECASE),
)

CREDIT_LINE = regex.compile(
    r"^\s*(?P<role>(?:senior\s+|exec(?:utive)?\.?\s+|assistant\s+)?producers?|researchers?|editors?|sound\s+design(?:ers?)?)"
    r"\s*:\s*(?P<names>.+?)\s*\.?\s*$",
    regex.IGNORECASE,
)
CREDIT_NAME_SPLIT = regex.compile(r"\s*(?:,|&|\band\b)\s*", regex.IGNORECASE)

CREDIT_ROLE_KEYS = {
    "producer": "producer",
    "senior producer": "seniorProducer",
    "exec producer": "execProducer",
    "executive producer": "execProducer",
    "assistant producer": "assistantProducer",
    "researcher": "researcher",
    "editor": "editor",
    "sound design": "soundDesign",
    "sound designer": "soundDesign",
}


def clean_title(title: str) -> str:
    """Unescape entities and collapse whitespace."""
    return WHITESPACE.sub(" ", html.unescape(title or "")).strip()


def _inline_markdown(fragment: str) -> str:
    fragment = LINK.sub(lambda m: f"[{TAG.sub('', m.group(2)).strip()}]({m.group(1)})", fragment)
    fragment = BOLD.sub(r"**\1**", fragment)
    fragment = ITALIC.sub(r"*\1*", fragment)
    fragment = TAG.sub("", fragment)
    return WHITESPACE.sub(" ", html.unescape(fragment)).strip()


def _plain_text(markdown_block: str) -> str:
    return MARKDOWN_SYNTAX.sub(lambda m: m.group(1) or "", markdown_block).strip()


def _role_key(role: str) -> str:
    normalised = WHITESPACE.sub(" ", role.lower().replace(".", "")).strip()
    if normalised.endswith("s") and normalised.rstrip("s") in CREDIT_ROLE_KEYS:
        normalised = normalised.rstrip("s")
    return CREDIT_ROLE_KEYS.get(normalised, normalised.replace(" ", ""))


def _parse_credit(block: str) -> tuple[str, list[str]] | None:
    match = CREDIT_LINE.match(block)
    if not match:
        return None
    names = [name.strip() for name in CREDIT_NAME_SPLIT.split(match.group("names")) if name.strip()]
    if not names:
        return None
    return _role_key(match.group("role")), names


def clean_description(description: str) -> tuple[list[str], str, str, dict[str, list[str]]]:
    """Split HTML show notes into blocks and pull out credits.

    Args:
        description: Raw description (HTML or plain text)

    Returns:
        ``(blocks, markdown, text, credits)`` where blocks are markdown
        paragraphs, markdown and text join the blocks with blank lines and
        credits map a camelCase role to names
    """
    marked = BLOCK_BREAK.sub("\n", description or "")
    blocks: list[str] = []
    credits: dict[str, list[str]] = {}

    for line in marked.split("\n"):
        block = _inline_markdown(line)
        if not block:
            continue
        if any(pattern.search(block) for pattern in AD_BOILERPLATE):
            continue

        credit = _parse_credit(_plain_text(block))
        if credit is not None:
            role, names = credit
            existing = credits.setdefault(role, [])
            existing.extend(name for name in names if name not in existing)
            continue

        blocks.append(block)

    markdown = "\n\n".join(blocks)
    text = "\n\n".join(_plain_text(block) for block in blocks)
    return blocks, markdown, text, credits


def build_programmatic_episode(raw: RawEpisode) -> ProgrammaticEpisode:
    """Derive the programmatic record for one raw episode.

    Grouping fields start empty; the grouper fills them in.
    """
    title = clean_title(raw.title)
    blocks, markdown, text, credits = clean_description(raw.description)

    return ProgrammaticEpisode(
        episode_id=raw.episode_id,
        title=raw.title,
        published_at=raw.published_at,
        description=raw.description,
        audio_url=raw.audio_url,
        clean_title=title,
        clean_description_markdown=markdown,
        clean_description_text=text,
        description_blocks=blocks,
        credits=credits,
        fingerprint=episode_fingerprint(title, text),
        cleanup_version=CLEANUP_VERSION,
        rss_last_seen_at=raw.rss_last_seen_at,
        itunes_episode=raw.source.itunes_episode,
    )


def build_programmatic_episodes(raw_episodes: list[RawEpisode]) -> dict[str, ProgrammaticEpisode]:
    """Derive programmatic records keyed by episode id.

    When the raw list holds the same id twice the later record wins.
    """
    episodes: dict[str, ProgrammaticEpisode] = {}
    for raw in raw_episodes:
        if raw.episode_id in episodes:
            logger.warning(f"Duplicate raw episode id {raw.episode_id}; keeping the later record")
        episodes[raw.episode_id] = build_programmatic_episode(raw)
    return episodes
