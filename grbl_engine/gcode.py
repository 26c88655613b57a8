import re
from typing import Iterable

PAREN_COMMENT_PAT = re.compile(r"\(.*?\)")
WORD_PAT = re.compile(r"([A-Z])([-+]?(?:\d+(?:\.\d*)?|\.\d+))")


def clean_gcode_line(line: str) -> str:
    """Strip comments and whitespace; keep simple + safe."""
    line = line.replace("\ufeff", "")
    line = PAREN_COMMENT_PAT.sub("", line)
    if ";" in line:
        line = line.split(";", 1)[0]
    line = line.strip()
    if line.startswith("%"):
        return ""
    return line


def clean_program(lines: Iterable[str]) -> list[str]:
    """Cleaned, non-empty lines ready to stream."""
    cleaned = []
    for raw in lines:
        line = clean_gcode_line(raw)
        if line:
            cleaned.append(line)
    return cleaned


def collect_g_codes(words: list[tuple[str, str]]) -> set[float]:
    g_codes: set[float] = set()
    for w, val in words:
        if w != "G":
            continue
        try:
            g_codes.add(round(float(val), 3))
        except ValueError:
            continue
    return g_codes


def format_float(value: float, max_decimals: int) -> str:
    text = f"{value:.{max_decimals}f}"
    text = text.rstrip("0").rstrip(".")
    if text in ("-0", ""):
        text = "0"
    return text
