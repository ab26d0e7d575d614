"""Tests for outline validation, fallback and title de-duplication."""

import pytest

from geo_writer.exceptions import EmptyArticleError
from geo_writer.outline import (
    TITLE_SUFFIXES,
    build_article_outline,
    content_type_for,
    dedupe_title,
    fallback_sections,
    fallback_title,
    has_valid_sections,
)

KEYWORDS = ["seo local", "google maps", "reseñas", "ficha de empresa", "citas"]


class TestValidation:

    @pytest.mark.unit
    @pytest.mark.parametrize("raw", [
        None,
        [],
        {"title": "x"},
        {"sections": []},
        {"sections": [{"title": "Bien"}, {"title": "  "}]},
        {"sections": ["no es un objeto"]},
    ])
    def test_invalid_outlines(self, raw):
        assert has_valid_sections(raw) is False

    @pytest.mark.unit
    def test_valid_outline(self):
        assert has_valid_sections({"sections": [{"title": "¿Qué es?"}]}) is True

    @pytest.mark.unit
    def test_content_type_rotation(self):
        assert [content_type_for(n) for n in range(1, 6)] == [
            "on-page", "comprehensive-guide", "quick-tips", "deep-dive", "deep-dive",
        ]


class TestFallback:

    @pytest.mark.unit
    def test_fallback_sections(self):
        sections = fallback_sections(KEYWORDS)
        assert [s.title for s in sections] == [
            "¿Qué es seo local?",
            "Beneficios de google maps",
            "Cómo funciona reseñas",
            "Tipos de ficha de empresa",
        ]
        assert sections[0].id == "section-1"
        assert sections[1].keywords == ["google maps"]

    @pytest.mark.unit
    def test_fallback_title_skips_used_variations(self):
        previous = ["Guía completa sobre seo local"]
        assert fallback_title(KEYWORDS, previous, 2) == "seo local: Todo lo que necesitas saber"

    @pytest.mark.unit
    def test_fallback_title_keeps_unused_proposal(self):
        assert fallback_title(KEYWORDS, [], 1, proposed="Mi título.") == "Mi título"


class TestDedupe:

    @pytest.mark.unit
    def test_unique_title_kept(self):
        assert dedupe_title("Guía sobre X", ["Otra"], 1) == "Guía sobre X"

    @pytest.mark.unit
    def test_suffix_added(self):
        assert dedupe_title("Guía sobre X", ["Guía sobre X"], 2) == "Guía sobre X" + TITLE_SUFFIXES[0]

    @pytest.mark.unit
    def test_ordinal_when_suffixes_exhausted(self):
        previous = ["Guía sobre X"] + [f"Guía sobre X{s}" for s in TITLE_SUFFIXES] + ["Guía sobre X (3)"]
        assert dedupe_title("Guía sobre X", previous, 3) == "Guía sobre X (4)"


class TestBuildArticleOutline:

    @pytest.mark.unit
    def test_backend_outline_used(self):
        raw = {
            "title": "¿Cómo mejorar tu SEO local?",
            "metaDescription": "Meta",
            "sections": [
                {"title": "¿Qué es el SEO local?.", "keywords": "seo local, google maps"},
                {"id": "custom", "title": "¿Por qué importan las reseñas?", "keywords": ["reseñas"]},
            ],
        }
        article, used_fallback = build_article_outline(raw, KEYWORDS)
        assert used_fallback is False
        assert article.title == "¿Cómo mejorar tu SEO local?"
        assert article.meta_description == "Meta"
        assert article.content_type == "on-page"
        assert [s.id for s in article.sections] == ["section-1", "custom"]
        assert article.sections[0].title == "¿Qué es el SEO local?"
        assert article.sections[0].keywords == ["seo local", "google maps"]
        assert all(s.content == "" for s in article.sections)

    @pytest.mark.unit
    def test_duplicate_title_against_memory(self):
        raw = {"title": "Guía sobre X", "sections": [{"title": "¿Qué es X?"}]}
        article, _ = build_article_outline(raw, ["x"], 2, previous_titles=["Guía sobre X"])
        assert article.title != "Guía sobre X"
        assert article.title not in ["Guía sobre X"]

    @pytest.mark.unit
    def test_fallback_used_for_empty_sections(self):
        article, used_fallback = build_article_outline({"title": "T", "sections": []}, KEYWORDS, 3)
        assert used_fallback is True
        assert len(article.sections) == 4
        assert article.title == "T"
        assert article.content_type == "quick-tips"

    @pytest.mark.unit
    def test_no_outline_no_keywords(self):
        with pytest.raises(EmptyArticleError):
            build_article_outline(None, [])
