"""
Readability rewriting for generated section HTML.

Deterministic, offline transform aimed at a Flesch-style reading-ease score
of 60+: long sentences are split, long paragraphs are broken in two, wordy
connectors and formal vocabulary are replaced with plainer Spanish, and the
resulting punctuation is normalised.

Usage:
    from geo_writer.readability import improve_readability
    html = improve_readability("<p>...</p>")
"""

from __future__ import annotations

import math
import re
from typing import Dict, List, Optional

MAX_SENTENCE_WORDS = 20
MAX_PARAGRAPH_SENTENCES = 4

# Single-line on purpose: a paragraph spanning lines is left untouched.
_PARAGRAPH_RE = re.compile(r"<p>(.*?)</p>")
_SENTENCE_SPLIT_RE = re.compile(r"\.\s+")

CONNECTOR_SIMPLIFICATIONS: Dict[str, str] = {
    ", que ": ". ",
    ", donde ": ". ",
    ", mediante ": ". ",
    ", para que ": ". Para ",
    ", lo que ": ". Esto ",
    ", el cual ": ". Este ",
    ", la cual ": ". Esta ",
    ", los cuales ": ". Estos ",
    ", las cuales ": ". Estas ",
    "debido a que": "porque",
    "a pesar de que": "aunque",
    "con el fin de": "para",
    "en el caso de que": "si",
    "de tal manera que": "así",
}

WORD_SIMPLIFICATIONS: Dict[str, str] = {
    "utilizar": "usar",
    "efectuar": "hacer",
    "realizar": "hacer",
    "implementar": "aplicar",
    "optimizar": "mejorar",
    "incrementar": "aumentar",
    "disminuir": "bajar",
    "adicionalmente": "además",
    "posteriormente": "después",
    "anteriormente": "antes",
    "aproximadamente": "cerca de",
    "específicamente": "en concreto",
}

_CONNECTOR_PATTERNS = [
    (re.compile(re.escape(phrase), re.IGNORECASE), simple)
    for phrase, simple in CONNECTOR_SIMPLIFICATIONS.items()
]
_WORD_PATTERNS = [
    (re.compile(rf"\b{re.escape(word)}\b", re.IGNORECASE), simple)
    for word, simple in WORD_SIMPLIFICATIONS.items()
]

_MULTI_SPACE_RE = re.compile(r"\s{2,}")
_MULTI_PERIOD_RE = re.compile(r"\.{2,}")
_SPACED_PERIODS_RE = re.compile(r"\.\s*\.")
_PERIOD_BEFORE_CAPITAL_RE = re.compile(r"\.([A-ZÁÉÍÓÚÑ])")


def _match_case(replacement: str, matched: str) -> str:
    """Keep a leading capital from the replaced text."""
    first = matched.lstrip(", ")[:1]
    if first and first.isupper() and replacement[:1].islower():
        return replacement[0].upper() + replacement[1:]
    return replacement


def _split_long_sentences(match: "re.Match[str]") -> str:
    sentences = _SENTENCE_SPLIT_RE.split(match.group(1))
    processed: List[str] = []
    for sentence in sentences:
        words = sentence.split()
        if len(words) > MAX_SENTENCE_WORDS:
            mid = len(words) // 2
            processed.append(f"{' '.join(words[:mid])}. {' '.join(words[mid:])}")
        else:
            processed.append(sentence)
    return f"<p>{'. '.join(processed).strip()}</p>"


def _split_long_paragraph(match: "re.Match[str]") -> str:
    text = match.group(1)
    sentences = [s for s in _SENTENCE_SPLIT_RE.split(text) if s.strip()]
    if len(sentences) <= MAX_PARAGRAPH_SENTENCES:
        return f"<p>{text}</p>"
    mid = math.ceil(len(sentences) / 2)
    first = ". ".join(sentences[:mid]) + "."
    second = ". ".join(sentences[mid:]) + "."
    return f"<p>{first}</p><p>{second}</p>"


def _simplify(html: str, patterns) -> str:
    for pattern, simple in patterns:
        html = pattern.sub(lambda m, s=simple: _match_case(s, m.group(0)), html)
    return html


def _clean_punctuation(html: str) -> str:
    html = _MULTI_SPACE_RE.sub(" ", html)
    html = _MULTI_PERIOD_RE.sub(".", html)
    html = _SPACED_PERIODS_RE.sub(".", html)
    return _PERIOD_BEFORE_CAPITAL_RE.sub(r". \1", html)


def improve_readability(html: Optional[str]) -> Optional[str]:
    """Rewrite section HTML for readability.

    Steps run in a fixed order: sentence splitting, paragraph splitting,
    connector simplification, vocabulary simplification, then punctuation
    cleanup. Empty input is returned unchanged.
    """
    if not html:
        return html

    improved = _PARAGRAPH_RE.sub(_split_long_sentences, html)
    improved = _PARAGRAPH_RE.sub(_split_long_paragraph, improved)
    improved = _simplify(improved, _CONNECTOR_PATTERNS)
    improved = _simplify(improved, _WORD_PATTERNS)
    return _clean_punctuation(improved)
