"""
Text generation backend for SEO/AEO/GEO blog articles.

Wraps the Anthropic Messages API for the three text calls the pipeline
needs: keywords from a brief context, an article outline, and the HTML
prose of one section. Transient API failures are retried with exponential
backoff (see ``geo_writer.retry``); malformed outlines are returned as
``None`` so the caller can fall back to a deterministic outline.

Usage:
    from geo_writer.content_generator import ContentGenerator

    generator = ContentGenerator(api_key="sk-ant-...")
    keywords = await generator.generate_keywords(context)
    outline = await generator.generate_outline(keywords[0], keywords, "on-page")
    html = await generator.generate_section_content("¿Qué es X?", ["x"], "Guía sobre X")
"""

from __future__ import annotations

import json
import re
import time
from typing import Any, List, Optional, Sequence

import anthropic

from geo_writer.config import DEFAULT_TEXT_MODEL
from geo_writer.exceptions import ConfigurationError, GenerationError, KeywordGenerationError
from geo_writer.retry import BASE_DELAY, MAX_ATTEMPTS, call_with_retry
from geo_writer.run_log import get_logger

logger = get_logger("content_generator")

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

MAX_KEYWORDS = 5
KEYWORD_CONTEXT_CHARS = 2000
OUTLINE_CONTEXT_CHARS = 2000

MAX_TOKENS_KEYWORDS = 500
MAX_TOKENS_OUTLINE = 2000
MAX_TOKENS_SECTION = 4096

TEMPERATURE_KEYWORDS = 0.3
TEMPERATURE_OUTLINE = 0.4
TEMPERATURE_SECTION = 0.7

SYSTEM_PROMPT = (
    "Eres un Ingeniero SEO Senior especializado en contenido web.\n"
    "Idioma: Español (formal y profesional), adaptado al país del brief.\n"
    "Formato: Texto limpio sin markdown, excepto <strong> para énfasis.\n"
    "Tono: Profesional, directo y orientado a resultados.\n"
    "Objetivo: Crear contenido optimizado para SEO que sea valioso para "
    "usuarios y motores de búsqueda."
)

ARTICLE_RULES = """\
ROLE
You are a Senior SEO, AEO and Generative Content Strategist producing blog
articles at scale. Each article answers ONE real, frequent and specific user
doubt about a product or service from the business brief, so that it ranks
in search engines (SEO), can be quoted as a direct answer (AEO) and reused by
generative AI systems (GEO).

LANGUAGE
- Use only the language of the brief; adapt vocabulary to its country.
- Spanish follows RAE grammar, with opening ¿ and ¡.
- Use feminine forms only if the audience is stated to be female.

STRUCTURE
- One H1: a clear question or direct statement about the main doubt,
  sentence case, 45-65 characters, never ending with a period.
- Exactly 4 H2 sections, each a question or statement covering a distinct,
  complementary angle. No overlap, no reformulated repeats.
- Titles never end with a period.

UNBREAKABLE RULES
- No generic marketing language and no invented data.
- No repeated ideas between sections.
- Content must be clear, useful and reusable.
"""

SECTION_RULES = """\
ESTRUCTURA (OBLIGATORIO)
1. Párrafo introductorio (2-3 oraciones) que responde directamente al H2.
2. Lista <ul><li> solo si hay 3 a 6 elementos relacionados (beneficios,
   pasos, opciones); cada item de 1-2 oraciones cortas.
3. Párrafo de cierre (1-2 oraciones) que conecta con el siguiente tema.

LEGIBILIDAD (FLESCH-KINCAID > 60)
- Máximo 15-20 palabras por oración. Una oración, una idea.
- Máximo 3-4 oraciones por párrafo.
- Palabras simples: "usar" (no "utilizar"), "hacer" (no "realizar"),
  "mejorar" (no "optimizar"), "aumentar" (no "incrementar").
- Voz activa. Evita ", que", ", donde", ", lo cual", "debido a que".

FORMATO
- HTML limpio. Etiquetas permitidas: <p>, <strong>, <ul>, <li>, <a>.
- <strong> con moderación. Sin markdown, sin emojis, sin datos inventados.
"""

_CODE_FENCE_OPEN_RE = re.compile(r"^```(?:html|json)?\s*\n?")
_CODE_FENCE_CLOSE_RE = re.compile(r"\n?```\s*$")
_JSON_SPAN_RE = re.compile(r"\{[\s\S]*\}|\[[\s\S]*\]")


# ---------------------------------------------------------------------------
# Response helpers
# ---------------------------------------------------------------------------


def _strip_code_fences(text: str) -> str:
    text = text.strip()
    text = _CODE_FENCE_OPEN_RE.sub("", text)
    return _CODE_FENCE_CLOSE_RE.sub("", text).strip()


def extract_json(text: str) -> Any:
    """Parse JSON from a model response, tolerating fences and surrounding prose.

    Returns None when no JSON value can be recovered.
    """
    if not text:
        return None
    candidate = _strip_code_fences(text)
    try:
        return json.loads(candidate)
    except json.JSONDecodeError:
        pass

    match = _JSON_SPAN_RE.search(candidate)
    if match:
        try:
            return json.loads(match.group(0))
        except json.JSONDecodeError:
            pass

    logger.warning("Failed to extract JSON from response (%d chars)", len(text))
    return None


def unique_keywords(values: Sequence[Any], limit: int = MAX_KEYWORDS) -> List[str]:
    """De-duplicate keywords in order and cap the list."""
    result: List[str] = []
    for value in values:
        keyword = str(value).strip()
        if keyword and keyword not in result:
            result.append(keyword)
    return result[:limit]


# ---------------------------------------------------------------------------
# Anthropic client wrapper
# ---------------------------------------------------------------------------


class _AnthropicClient:
    """Thin async wrapper around the Anthropic SDK."""

    def __init__(self, api_key: str, model: str = DEFAULT_TEXT_MODEL, client: Any = None):
        self.model = model
        self._client = client or anthropic.AsyncAnthropic(api_key=api_key)

    async def generate(
        self,
        user_prompt: str,
        *,
        system_prompt: str = SYSTEM_PROMPT,
        max_tokens: int = MAX_TOKENS_SECTION,
        temperature: float = 0.7,
    ) -> str:
        """Send one message and return the concatenated text blocks."""
        logger.debug(
            "API call: model=%s max_tokens=%d temperature=%.1f user_len=%d",
            self.model, max_tokens, temperature, len(user_prompt),
        )
        start_time = time.monotonic()
        response = await self._client.messages.create(
            model=self.model,
            max_tokens=max_tokens,
            temperature=temperature,
            system=system_prompt,
            messages=[{"role": "user", "content": user_prompt}],
        )
        text = "".join(
            getattr(block, "text", "") for block in (response.content or [])
        )
        logger.debug(
            "API response: %d chars in %.1fs", len(text), time.monotonic() - start_time
        )
        return text


# ---------------------------------------------------------------------------
# Generator
# ---------------------------------------------------------------------------


class ContentGenerator:
    """Keyword, outline and section generation with transient-error retry."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = DEFAULT_TEXT_MODEL,
        client: Any = None,
        max_attempts: int = MAX_ATTEMPTS,
        retry_base_delay: float = BASE_DELAY,
    ):
        if not api_key and client is None:
            raise ConfigurationError(
                "ANTHROPIC_API_KEY is not set; text generation is unavailable",
                missing=["ANTHROPIC_API_KEY"],
            )
        self._client = _AnthropicClient(api_key or "", model=model, client=client)
        self.max_attempts = max_attempts
        self.retry_base_delay = retry_base_delay

    async def _generate(
        self, prompt: str, *, label: str, max_tokens: int, temperature: float
    ) -> str:
        async def attempt() -> str:
            text = await self._client.generate(
                prompt, max_tokens=max_tokens, temperature=temperature
            )
            if not text or not text.strip():
                raise GenerationError(f"Empty response from model ({label})")
            return text

        return await call_with_retry(
            attempt,
            label=label,
            max_attempts=self.max_attempts,
            base_delay=self.retry_base_delay,
        )

    async def generate_keywords(self, context: str) -> List[str]:
        """Return up to five de-duplicated SEO keywords for a brief context."""
        prompt = (
            "Genera 5 keywords SEO principales para el siguiente contexto.\n\n"
            f"CONTEXTO:\n{context[:KEYWORD_CONTEXT_CHARS]}\n\n"
            'RESPONDE SOLO EN JSON:\n{ "keywords": ["k1","k2","k3","k4","k5"] }'
        )
        text = await self._generate(
            prompt,
            label="keywords",
            max_tokens=MAX_TOKENS_KEYWORDS,
            temperature=TEMPERATURE_KEYWORDS,
        )
        data = extract_json(text)
        raw = data.get("keywords") if isinstance(data, dict) else None
        keywords = unique_keywords(raw) if isinstance(raw, list) else []
        if not keywords:
            raise KeywordGenerationError("Could not generate keywords from the brief context")
        logger.info("Keywords generated: %s", ", ".join(keywords))
        return keywords

    async def generate_outline(
        self,
        topic: str,
        keywords: Sequence[str],
        content_type: str,
        brief_context: str = "",
    ) -> Optional[dict]:
        """Request an outline ``{title, metaDescription, sections: [{title, keywords}]}``.

        The parsed JSON object is returned as-is; None means the response held
        no JSON object at all. Validation is left to ``geo_writer.outline``.
        """
        business = ""
        if brief_context:
            business = f"Contexto del negocio: {brief_context[:OUTLINE_CONTEXT_CHARS]}\n"
        prompt = (
            f"{ARTICLE_RULES}\n"
            "BUSINESS INPUT\n"
            f"Tema principal: {topic}\n"
            f"Keywords detectadas: {', '.join(keywords)}\n"
            "Idioma: Español (según brief)\n"
            f"Tipo de contenido: {content_type}\n"
            f"{business}\n"
            "TASK\n"
            "Define la estructura completa del artículo cumpliendo TODAS las reglas anteriores.\n\n"
            "OUTPUT FORMAT (JSON ONLY):\n"
            '{"title": "H1 en forma de pregunta", '
            '"metaDescription": "Meta descripción optimizada", '
            '"sections": [{"title": "Pregunta H2 1", "keywords": ["keyword1", "keyword2"]}, '
            '{"title": "Pregunta H2 2", "keywords": ["keyword3"]}, '
            '{"title": "Pregunta H2 3", "keywords": ["keyword4"]}, '
            '{"title": "Pregunta H2 4", "keywords": ["keyword5"]}]}'
        )
        text = await self._generate(
            prompt,
            label="outline",
            max_tokens=MAX_TOKENS_OUTLINE,
            temperature=TEMPERATURE_OUTLINE,
        )
        data = extract_json(text)
        if not isinstance(data, dict):
            logger.warning("Outline response is not a JSON object")
            return None
        return data

    async def generate_section_content(
        self,
        section_title: str,
        section_keywords: Sequence[str],
        article_title: str,
    ) -> str:
        """Write the HTML body of one H2 section."""
        if isinstance(section_keywords, str):
            keywords_text = section_keywords
        else:
            keywords_text = ", ".join(section_keywords or [])
        prompt = (
            f"CONTEXTO DEL ARTÍCULO:\n{article_title}\n\n"
            f"SECCIÓN (H2):\n{section_title}\n\n"
            f"PALABRAS CLAVE DE LA SECCIÓN:\n{keywords_text}\n\n"
            "TAREA:\nRedacta el contenido completo de esta sección.\n\n"
            f"{SECTION_RULES}"
        )
        text = await self._generate(
            prompt,
            label=f"section '{section_title[:40]}'",
            max_tokens=MAX_TOKENS_SECTION,
            temperature=TEMPERATURE_SECTION,
        )
        return _strip_code_fences(text)
