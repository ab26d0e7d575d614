"""
Tests for the WordPress publish target.

Tests cover WordPressClient with mocked HTTP responses.
"""

from unittest.mock import patch

import pytest

from geo_writer.exceptions import ConfigurationError, MediaUploadError, PublishError
from geo_writer.image_generator import to_data_uri
from geo_writer.models import Article, FeaturedImage, Section
from geo_writer.wordpress_client import WordPressClient


@pytest.fixture
def client():
    return WordPressClient("https://blog.test/", auth_token="Basic abc", retry_base_delay=0)


@pytest.fixture
def article():
    return Article(
        title="¿Qué es el SEO local?",
        sections=[Section(id="section-1", title="Definición", content="<p>Texto</p>")],
        primary_keywords=["seo local"],
        featured_image=FeaturedImage(
            prompt="p",
            alt_text="¿Qué es el SEO local? - seo local",
            base64=to_data_uri(b"\xff\xd8jpegbytes", "image/jpeg"),
        ),
    )


def _calls(session):
    return [(c.args[0], c.args[1], c.kwargs) for c in session.request.call_args_list]


class TestConfiguration:

    @pytest.mark.unit
    def test_missing_token(self):
        with pytest.raises(ConfigurationError):
            WordPressClient("https://blog.test", auth_token="")

    @pytest.mark.unit
    def test_api_url(self, client):
        assert client.api_url == "https://blog.test/wp-json/wp/v2"


class TestRequests:

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_retry_on_server_error(self, client, mock_session, mock_aiohttp_response):
        session = mock_session(
            mock_aiohttp_response(503, {"message": "busy"}),
            mock_aiohttp_response(201, {"id": 42, "link": "https://blog.test/p"}),
        )
        with patch.object(client, "_get_session", return_value=session):
            post = await client.create_post("Título", "<p>x</p>")
        assert post["id"] == 42
        assert session.request.call_count == 2

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_client_error_carries_server_message(self, client, mock_session, mock_aiohttp_response):
        session = mock_session(mock_aiohttp_response(403, {"code": "rest_forbidden", "message": "Sin permiso"}))
        with patch.object(client, "_get_session", return_value=session):
            with pytest.raises(PublishError) as exc_info:
                await client.create_post("Título", "<p>x</p>")
        assert exc_info.value.status_code == 403
        assert exc_info.value.server_message == "Sin permiso"
        assert session.request.call_count == 1


class TestMedia:

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_upload_sets_metadata(self, client, mock_session, mock_aiohttp_response):
        session = mock_session(
            mock_aiohttp_response(201, {"id": 7}),
            mock_aiohttp_response(200, {"id": 7}),
        )
        with patch.object(client, "_get_session", return_value=session):
            media_id = await client.upload_media(b"img", "cover.jpg", title="T", alt_text="Alt")

        assert media_id == 7
        (m1, url1, kw1), (m2, url2, kw2) = _calls(session)
        assert (m1, url1) == ("POST", "https://blog.test/wp-json/wp/v2/media")
        assert kw1["data"] == b"img"
        assert kw1["headers"]["Content-Disposition"] == 'attachment; filename="cover.jpg"'
        assert url2 == "https://blog.test/wp-json/wp/v2/media/7"
        assert kw2["json"] == {"title": "T", "alt_text": "Alt"}

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_upload_rejected(self, client, mock_session, mock_aiohttp_response):
        session = mock_session(mock_aiohttp_response(413, {"message": "Demasiado grande"}))
        with patch.object(client, "_get_session", return_value=session):
            with pytest.raises(MediaUploadError) as exc_info:
                await client.upload_media(b"img", "cover.jpg")
        assert "Demasiado grande" in str(exc_info.value)


class TestCategories:

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_exact_match(self, client, mock_session, mock_aiohttp_response):
        categories = [{"id": 2, "name": "SEO On page"}, {"id": 3, "name": "SEO On page - Blog"}]
        session = mock_session(mock_aiohttp_response(200, categories))
        with patch.object(client, "_get_session", return_value=session):
            assert await client.find_category_id() == 3
        params = session.request.call_args.kwargs["params"]
        assert params == {"search": "SEO On page - Blog", "per_page": 100}

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_lookup_failure_is_not_fatal(self, client, mock_session, mock_aiohttp_response):
        session = mock_session(mock_aiohttp_response(401, {"message": "no"}))
        with patch.object(client, "_get_session", return_value=session):
            assert await client.find_category_id() is None


class TestPublish:

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_publish_article(self, client, article, mock_session, mock_aiohttp_response):
        session = mock_session(
            mock_aiohttp_response(201, {"id": 7}),
            mock_aiohttp_response(200, {"id": 7}),
            mock_aiohttp_response(200, [{"id": 3, "name": "SEO On page - Blog"}]),
            mock_aiohttp_response(201, {"id": 42, "link": "https://blog.test/que-es-seo-local/"}),
        )
        with patch.object(client, "_get_session", return_value=session):
            url = await client.publish_article(article)

        assert url == "https://blog.test/que-es-seo-local/"
        calls = _calls(session)
        assert calls[0][2]["headers"]["Content-Type"] == "image/jpeg"
        assert calls[0][2]["data"] == b"\xff\xd8jpegbytes"
        assert calls[1][2]["json"]["alt_text"] == "¿Qué es el SEO local? - seo local"
        method, post_url, kwargs = calls[3]
        assert post_url.endswith("/posts")
        assert kwargs["json"] == {
            "title": "¿Qué es el SEO local?",
            "content": "<h2>Definición</h2><div><p>Texto</p></div>",
            "status": "publish",
            "featured_media": 7,
            "categories": [3],
        }

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_publish_without_image_or_category(self, client, article, mock_session, mock_aiohttp_response):
        article.featured_image = None
        session = mock_session(
            mock_aiohttp_response(200, []),
            mock_aiohttp_response(201, {"id": 42, "link": "https://blog.test/p/"}),
        )
        with patch.object(client, "_get_session", return_value=session):
            url = await client.publish_article(article)
        assert url == "https://blog.test/p/"
        payload = session.request.call_args.kwargs["json"]
        assert "featured_media" not in payload
        assert "categories" not in payload

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_missing_link(self, client, article, mock_session, mock_aiohttp_response):
        article.featured_image = None
        session = mock_session(
            mock_aiohttp_response(200, []),
            mock_aiohttp_response(201, {"id": 42}),
        )
        with patch.object(client, "_get_session", return_value=session):
            with pytest.raises(PublishError):
                await client.publish_article(article)
