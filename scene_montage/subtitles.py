"""
Reflows SRT cue text so every cue fits in two short lines before burn-in.
"""

import math
import re
from dataclasses import dataclass
from pathlib import Path
from typing import List, Union

from scene_montage.config import MAX_SUBTITLE_LINE_LENGTH, MAX_SUBTITLE_LINES

_BLOCK_SEPARATOR = re.compile(r"\n(?:[ \t]*\n)+")


@dataclass
class SubtitleCue:
    index: str
    timecode: str
    lines: List[str]

    def render(self) -> str:
        return "\n".join([self.index, self.timecode, *self.lines])


def wrap_cue_text(text: str, max_length: int = MAX_SUBTITLE_LINE_LENGTH) -> List[str]:
    """Greedy word wrap, then fold anything longer than two lines into two."""
    words = text.split()
    if not words:
        return [""]

    lines: List[str] = []
    current = ""
    for word in words:
        candidate = f"{current} {word}" if current else word
        if current and len(candidate) > max_length:
            lines.append(current)
            current = word
        else:
            current = candidate
    lines.append(current)

    if len(lines) > MAX_SUBTITLE_LINES:
        # Split the list of wrapped lines in half, not the text by width.
        middle = math.ceil(len(lines) / 2)
        lines = [" ".join(lines[:middle]), " ".join(lines[middle:])]
    return lines


def sanitize_subtitles(text: str) -> str:
    """Rewrap every complete cue block; blocks with fewer than 3 lines are kept as-is."""
    text = text.lstrip("\ufeff").replace("\r\n", "\n").replace("\r", "\n").strip()
    if not text:
        return ""

    blocks = []
    for block in _BLOCK_SEPARATOR.split(text):
        lines = block.split("\n")
        if len(lines) < 3:
            blocks.append(block)
            continue
        cue = SubtitleCue(lines[0], lines[1], wrap_cue_text(" ".join(lines[2:])))
        blocks.append(cue.render())
    return "\n\n".join(blocks) + "\n"


def sanitize_subtitle_file(source: Union[str, Path], destination: Union[str, Path]) -> Path:
    text = Path(source).read_text(encoding="utf-8", errors="replace")
    destination = Path(destination)
    destination.write_text(sanitize_subtitles(text), encoding="utf-8")
    return destination
