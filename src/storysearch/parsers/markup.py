#  Copyright (c) 2025 Tom Villani, Ph.D.
#
# src/storysearch/parsers/markup.py
"""Parser for the bracketed story script markup.

Story scripts are line oriented. A line whose trimmed form starts with ``[``
is a command line::

    [name="杜宾"]  可恶......
    [Decision(options="A;B;C", values="1;2;3")]
    [PopupDialog(dialogHead="$avatar_sys")] 请尽可能多地与其他组织建立良好关系

The text between the first ``[`` and the first ``]`` is the command body and
whatever follows the ``]`` is the remainder. Every other non-blank line is
narration.

The markup is produced upstream and drifts between releases, so parsing never
raises: a malformed line, an unknown command without text or a command whose
payload cleans down to nothing is dropped and parsing continues.

"""

from __future__ import annotations

import logging
import re
from typing import Callable, Mapping, Optional

from storysearch.constants import (
    DEFAULT_NICKNAME_LABEL,
    MEANINGLESS_PUNCTUATION_MAX_LENGTH,
    NICKNAME_PLACEHOLDER,
    SPEAKER_ID_PREFIXES,
)
from storysearch.models import (
    Decision,
    Dialogue,
    Header,
    Narration,
    ParsedStoryContent,
    Sticker,
    StorySegment,
    Subtitle,
    System,
)
from storysearch.utils.text import is_ascii_punctuation

logger = logging.getLogger(__name__)

ATTR_PATTERN = re.compile(r'([a-z0-9_]+)\s*=\s*"([^"]*)"', re.IGNORECASE)
DECISION_OPTION_PATTERN = re.compile(r'option\d+="([^"]+)"', re.IGNORECASE)
PARAGRAPH_TAG_PATTERN = re.compile(r"<p[^>]*>", re.IGNORECASE)
GENERIC_TAG_PATTERN = re.compile(r"<[^>]+>")

_COMMAND_NAME_TERMINATORS = ("(", " ", "=")

Attributes = Mapping[str, str]


def clean_text(text: str, nickname_label: str = DEFAULT_NICKNAME_LABEL) -> str:
    """Normalize markup text for display.

    Line breaks (including escaped ``\\n`` sequences) become ``\\n``,
    ideographic and non-breaking spaces become ASCII spaces, ``<p ...>`` tags
    become line breaks and every other tag is removed. The nickname
    placeholder is replaced with ``nickname_label``. Multi-line results are
    trimmed line by line with blank lines dropped.

    Parameters
    ----------
    text : str
        Raw text from a remainder or attribute value
    nickname_label : str, default "博士"
        Replacement for the ``{@nickname}`` placeholder

    Returns
    -------
    str
        Cleaned text, possibly empty

    """
    if not text:
        return ""
    cleaned = (
        text.replace("\\r\\n", "\n")
        .replace("\\n", "\n")
        .replace("\r", "\n")
        .replace("\u3000", " ")
        .replace("\u00a0", " ")
    )
    cleaned = PARAGRAPH_TAG_PATTERN.sub("\n", cleaned)
    cleaned = GENERIC_TAG_PATTERN.sub("", cleaned)
    cleaned = cleaned.replace(NICKNAME_PLACEHOLDER, nickname_label).strip()

    if "\n" in cleaned:
        lines = (line.strip() for line in cleaned.split("\n"))
        return "\n".join(line for line in lines if line)
    return cleaned


def has_meaningful_content(text: str) -> bool:
    """Return False for blank text and for short runs of ASCII punctuation such as ``"."`` or ``")"``."""
    trimmed = text.strip()
    if not trimmed:
        return False
    if len(trimmed) <= MEANINGLESS_PUNCTUATION_MAX_LENGTH and all(is_ascii_punctuation(ch) for ch in trimmed):
        return False
    return True


def humanize_identifier(raw: str) -> str:
    """Turn an internal speaker id into a readable name.

    >>> humanize_identifier("char_356_broca")
    'Broca'
    >>> humanize_identifier("npc_1028_texas2_1")
    'Texas2'

    A leading ``$`` and one known prefix (``char_``, ``npc_``, ...) are
    removed, the rest is split on ``_`` and ``#``, numeric parts are dropped,
    each part gets an upper-cased first letter and consecutive duplicates
    collapse. Falls back to the trimmed input when nothing survives.
    """
    value = raw.strip().strip('"').lstrip("$")
    for prefix in SPEAKER_ID_PREFIXES:
        if value.startswith(prefix):
            value = value[len(prefix) :]
            break

    parts: list[str] = []
    for part in re.split(r"[_#]", value):
        if not part.strip() or (part.isascii() and part.isdigit()):
            continue
        part = part[0].upper() + part[1:]
        if parts and parts[-1] == part:
            continue
        parts.append(part)

    if not parts:
        return raw.strip()
    return " ".join(parts)


def parse_attributes(source: str) -> dict[str, str]:
    """Extract ``key="value"`` pairs. Keys are lower-cased; later duplicates win."""
    return {match.group(1).lower(): match.group(2) for match in ATTR_PATTERN.finditer(source)}


def split_command(body: str) -> tuple[str, Optional[str]]:
    """Split a command body into its name and the attribute source after it."""
    body = body.strip()
    if not body:
        return "", None
    end = len(body)
    for idx, ch in enumerate(body):
        if ch in _COMMAND_NAME_TERMINATORS:
            end = idx
            break
    if end < len(body):
        return body[:end], body[end:].strip()
    return body, None


def resolve_speaker(attrs: Attributes, nickname_label: str = DEFAULT_NICKNAME_LABEL) -> Optional[str]:
    """Pick a speaker from ``name``, then a humanized ``head``, then a humanized ``avatarid``."""
    name = attrs.get("name")
    if name is not None:
        cleaned = clean_text(name, nickname_label)
        if has_meaningful_content(cleaned):
            return cleaned

    for key in ("head", "avatarid"):
        value = attrs.get(key)
        if value is None:
            continue
        humanized = humanize_identifier(value)
        if has_meaningful_content(humanized):
            return humanized

    return None


class _CommandLine:
    """One command line split into its parts."""

    __slots__ = ("name", "body", "attr_source", "attrs", "remainder")

    def __init__(self, name: str, body: str, attr_source: Optional[str], attrs: dict[str, str], remainder: str):
        self.name = name
        self.body = body
        self.attr_source = attr_source
        self.attrs = attrs
        self.remainder = remainder


class MarkupParser:
    """Converts story script text into an ordered list of segments.

    Parameters
    ----------
    nickname_label : str, default "博士"
        Replacement text for the player nickname placeholder

    """

    def __init__(self, nickname_label: str = DEFAULT_NICKNAME_LABEL) -> None:
        self.nickname_label = nickname_label
        self._handlers: dict[str, Callable[[_CommandLine], Optional[StorySegment]]] = {
            "name": self._parse_named_dialogue,
            "multiline": self._parse_named_dialogue,
            "decision": self._parse_decision,
            "popupdialog": self._parse_popup,
            "tutorial": self._parse_popup,
            "subtitle": self._parse_subtitle,
            "sticker": self._parse_sticker,
            "header": self._parse_header,
            "title": self._parse_title,
            "dialog": self._parse_dialog_like,
            "voicewithin": self._parse_dialog_like,
            "narration": self._parse_narration,
            "animtext": self._parse_animtext,
            "div": self._parse_div,
            "avatarid": self._parse_avatar,
            "isavatarright": self._parse_avatar,
        }

    def parse(self, content: str) -> ParsedStoryContent:
        """Parse a whole script.

        Parameters
        ----------
        content : str
            Script text. ``\\n`` and ``\\r\\n`` line endings are both accepted.

        Returns
        -------
        ParsedStoryContent
            Segments in reading order

        """
        segments: list[StorySegment] = []
        for raw_line in content.split("\n"):
            line = raw_line.strip()
            if not line:
                continue

            if line.startswith("["):
                segment = self.parse_command_line(line)
                if segment is not None:
                    segments.append(segment)
                continue

            text = self._clean(line)
            if text:
                segments.append(Narration(text=text))

        return ParsedStoryContent(segments=segments)

    def parse_command_line(self, line: str) -> Optional[StorySegment]:
        """Parse one ``[...]`` line; returns None when the line yields no segment."""
        end = line.find("]")
        if end < 0:
            logger.debug("Skipping unterminated command line: %.40s", line)
            return None

        body = line[1:end]
        name, attr_source = split_command(body)
        command = _CommandLine(
            name=name.lower(),
            body=body,
            attr_source=attr_source,
            attrs=parse_attributes(body),
            remainder=line[end + 1 :].strip(),
        )
        handler = self._handlers.get(command.name, self._parse_unknown)
        return handler(command)

    def _clean(self, text: str) -> str:
        return clean_text(text, self.nickname_label)

    def _remainder_or_text_attr(self, command: _CommandLine) -> str:
        if command.remainder:
            return self._clean(command.remainder)
        return self._clean(command.attrs.get("text", ""))

    def _parse_named_dialogue(self, command: _CommandLine) -> Optional[StorySegment]:
        speaker = command.attrs.get("name")
        if speaker is None:
            return None
        text = self._clean(command.remainder)
        if not text:
            return None
        return Dialogue(speaker=speaker.strip(), text=text)

    def _parse_decision(self, command: _CommandLine) -> Optional[StorySegment]:
        raw_options = command.attrs.get("options")
        if raw_options is not None:
            candidates = raw_options.split(";")
        else:
            source = command.attr_source if command.attr_source is not None else command.body
            candidates = [match.group(1) for match in DECISION_OPTION_PATTERN.finditer(source)]

        options = tuple(option for option in (self._clean(c) for c in candidates) if option)
        if not options:
            return None
        return Decision(options=options)

    def _parse_popup(self, command: _CommandLine) -> Optional[StorySegment]:
        text = self._clean(command.remainder)
        if not text:
            return None
        speaker = None
        dialog_head = command.attrs.get("dialoghead")
        if dialog_head is not None and dialog_head.strip():
            speaker = humanize_identifier(dialog_head.strip()) or None
        return System(text=text, speaker=speaker)

    def _attribute_text_with_alignment(self, command: _CommandLine) -> Optional[tuple[str, Optional[str]]]:
        text = self._clean(command.attrs.get("text", ""))
        if not text:
            return None
        alignment = command.attrs.get("alignment")
        return text, alignment.strip() if alignment is not None else None

    def _parse_subtitle(self, command: _CommandLine) -> Optional[StorySegment]:
        payload = self._attribute_text_with_alignment(command)
        if payload is None:
            return None
        return Subtitle(text=payload[0], alignment=payload[1])

    def _parse_sticker(self, command: _CommandLine) -> Optional[StorySegment]:
        payload = self._attribute_text_with_alignment(command)
        if payload is None:
            return None
        return Sticker(text=payload[0], alignment=payload[1])

    def _parse_header(self, command: _CommandLine) -> Optional[StorySegment]:
        title = self._clean(command.remainder)
        if not title:
            return None
        return Header(title=title)

    def _parse_title(self, command: _CommandLine) -> Optional[StorySegment]:
        title = self._clean(command.remainder)
        if not has_meaningful_content(title):
            return None
        return Header(title=title)

    def _parse_dialog_like(self, command: _CommandLine) -> Optional[StorySegment]:
        text = self._remainder_or_text_attr(command)
        if not has_meaningful_content(text):
            return None
        speaker = resolve_speaker(command.attrs, self.nickname_label)
        if speaker is None:
            return Narration(text=text)
        return Dialogue(speaker=speaker, text=text)

    def _parse_narration(self, command: _CommandLine) -> Optional[StorySegment]:
        text = self._remainder_or_text_attr(command)
        if not has_meaningful_content(text):
            return None
        return Narration(text=text)

    def _parse_animtext(self, command: _CommandLine) -> Optional[StorySegment]:
        text = self._clean(command.remainder)
        if not text.strip():
            text = self._clean(command.attrs.get("text", ""))
        text = text.strip()
        if not has_meaningful_content(text):
            return None
        return Sticker(text=text)

    def _parse_div(self, command: _CommandLine) -> Optional[StorySegment]:
        text = self._clean(command.remainder)
        if not has_meaningful_content(text):
            return None
        return Subtitle(text=text)

    def _parse_avatar(self, command: _CommandLine) -> Optional[StorySegment]:
        text = self._clean(command.remainder)
        if not has_meaningful_content(text):
            return None
        return System(text=text, speaker=resolve_speaker(command.attrs, self.nickname_label))

    def _parse_unknown(self, command: _CommandLine) -> Optional[StorySegment]:
        text = self._clean(command.remainder)
        if not has_meaningful_content(text):
            return None
        return Narration(text=text)


_DEFAULT_PARSER = MarkupParser()


def parse_story_text(content: str, nickname_label: str = DEFAULT_NICKNAME_LABEL) -> ParsedStoryContent:
    """Parse story script text into segments.

    Parameters
    ----------
    content : str
        Raw script text
    nickname_label : str, default "博士"
        Replacement for the player nickname placeholder

    Returns
    -------
    ParsedStoryContent
        Segments in reading order. Never raises for malformed markup.

    Examples
    --------
    >>> parse_story_text('[name="杜宾"]  可恶......').segments
    [Dialogue(speaker='杜宾', text='可恶......')]

    """
    parser = _DEFAULT_PARSER if nickname_label == DEFAULT_NICKNAME_LABEL else MarkupParser(nickname_label)
    return parser.parse(content)


__all__ = [
    "MarkupParser",
    "parse_story_text",
    "clean_text",
    "has_meaningful_content",
    "humanize_identifier",
    "parse_attributes",
    "split_command",
    "resolve_speaker",
]
