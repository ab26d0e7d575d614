"""Tests for the readability rewriting transform."""

import re

import pytest

from geo_writer.readability import MAX_SENTENCE_WORDS, improve_readability


def _sentences(html):
    text = re.sub(r"<[^>]+>", " ", html)
    return [s.strip() for s in re.split(r"\.\s*", text) if s.strip()]


class TestSentenceSplitting:

    @pytest.mark.unit
    def test_long_sentence_is_split(self):
        words = [f"palabra{i}" for i in range(24)]
        html = f"<p>{' '.join(words)}</p>"
        result = improve_readability(html)
        sentences = _sentences(result)
        assert len(sentences) >= 2
        assert all(len(s.split()) <= 24 for s in sentences)
        assert "palabra11. Palabra12" not in result
        assert "palabra11. palabra12" in result

    @pytest.mark.unit
    def test_short_sentences_unchanged(self):
        html = "<p>Una frase corta. Otra frase breve.</p>"
        assert improve_readability(html) == html

    @pytest.mark.unit
    def test_multiline_paragraph_left_alone(self):
        words = " ".join(f"w{i}" for i in range(MAX_SENTENCE_WORDS + 5))
        html = f"<p>{words}\n{words}</p>"
        assert improve_readability(html) == html


class TestParagraphSplitting:

    @pytest.mark.unit
    def test_paragraph_with_many_sentences_split_in_two(self):
        html = "<p>Uno es así. Dos es así. Tres es así. Cuatro es así. Cinco es así.</p>"
        result = improve_readability(html)
        paragraphs = re.findall(r"<p>(.*?)</p>", result)
        assert len(paragraphs) == 2
        assert paragraphs[0] == "Uno es así. Dos es así. Tres es así."
        assert paragraphs[1] == "Cuatro es así. Cinco es así."

    @pytest.mark.unit
    def test_four_sentences_kept_together(self):
        html = "<p>Uno. Dos. Tres. Cuatro.</p>"
        assert improve_readability(html).count("<p>") == 1


class TestSimplification:

    @pytest.mark.unit
    def test_connector_replaced(self):
        result = improve_readability("<p>Lo hacemos debido a que funciona.</p>")
        assert "porque funciona" in result
        assert "debido a que" not in result

    @pytest.mark.unit
    def test_comma_connector_becomes_new_sentence(self):
        result = improve_readability("<p>Tenemos un plan, lo que mejora todo.</p>")
        assert result == "<p>Tenemos un plan. Esto mejora todo.</p>"

    @pytest.mark.unit
    def test_vocabulary_simplified_whole_words_only(self):
        result = improve_readability("<p>Vamos a utilizar la herramienta para realizarlo.</p>")
        assert "usar la herramienta" in result
        # "realizarlo" is not the whole word "realizar"
        assert "realizarlo" in result

    @pytest.mark.unit
    def test_leading_capital_preserved(self):
        result = improve_readability("<p>Utilizar esto es fácil.</p>")
        assert result.startswith("<p>Usar esto")


class TestPunctuationCleanup:

    @pytest.mark.unit
    def test_double_periods_and_spaces(self):
        result = improve_readability("<p>Hola..  mundo.</p>")
        assert ".." not in result
        assert "  " not in result

    @pytest.mark.unit
    def test_space_added_after_period_before_capital(self):
        result = improve_readability("<p>Primero.Segundo.Él llega.</p>")
        assert "Primero. Segundo. Él llega." in result


class TestEdgeCases:

    @pytest.mark.unit
    def test_empty_input_returned_unchanged(self):
        assert improve_readability("") == ""
        assert improve_readability(None) is None

    @pytest.mark.unit
    def test_idempotent_for_compliant_input(self):
        html = "<p>Una frase corta. Otra frase breve.</p><ul><li>Punto</li></ul>"
        once = improve_readability(html)
        assert improve_readability(once) == once
