"""
Shared fixtures for the GEO Writer test suite.

Provides mock HTTP sessions, a mocked Anthropic client, sample briefs and
sections so that all tests run WITHOUT any external services.
"""

import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from geo_writer.config import PacingConfig
from geo_writer.models import Section


# ---------------------------------------------------------------------------
# aiohttp mock fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def mock_aiohttp_response():
    """Create a mock aiohttp response factory."""

    def _make(status=200, json_data=None, text=None, headers=None):
        resp = AsyncMock()
        resp.status = status
        if text is None:
            text = json.dumps(json_data) if json_data is not None else ""
        if json_data is None:
            resp.json = AsyncMock(side_effect=ValueError("not json"))
        else:
            resp.json = AsyncMock(return_value=json_data)
        resp.text = AsyncMock(return_value=text)
        resp.headers = headers or {"Content-Type": "application/json"}
        return resp

    return _make


@pytest.fixture
def mock_session():
    """Create a mock aiohttp session whose .request() yields responses in order.

    The clients use ``async with session.request(method, url, **kwargs) as resp``
    so ``session.request`` returns an async context manager per call. The last
    response is repeated once the list runs out.
    """

    def _make(*responses):
        session = AsyncMock()
        remaining = list(responses)

        def _request(method, url, **kwargs):
            resp = remaining.pop(0) if len(remaining) > 1 else remaining[0]
            ctx = AsyncMock()
            ctx.__aenter__ = AsyncMock(return_value=resp)
            ctx.__aexit__ = AsyncMock(return_value=False)
            return ctx

        session.request = MagicMock(side_effect=_request)
        session.close = AsyncMock()
        session.closed = False
        return session

    return _make


# ---------------------------------------------------------------------------
# Anthropic mock fixtures
# ---------------------------------------------------------------------------

def _anthropic_message(text):
    return SimpleNamespace(content=[SimpleNamespace(text=text)])


@pytest.fixture
def anthropic_reply():
    """Factory for a messages.create() result carrying one text block."""
    return _anthropic_message


@pytest.fixture
def mock_anthropic():
    """Mock AsyncAnthropic client; set ``messages.create`` return/side effects per test."""
    client = MagicMock()
    client.messages.create = AsyncMock(return_value=_anthropic_message("Generated content here"))
    return client


# ---------------------------------------------------------------------------
# Domain fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def no_pacing():
    return PacingConfig.disabled()


LONG_PARAGRAPH = (
    "<p>El posicionamiento local ayuda a que los clientes cercanos encuentren "
    "tu negocio cuando buscan servicios similares en su zona de forma rápida</p>"
)


@pytest.fixture
def written_sections():
    """Three written sections, each with one long paragraph."""
    return [
        Section(id=f"section-{i + 1}", title=f"Sección {i + 1}", content=LONG_PARAGRAPH)
        for i in range(3)
    ]


@pytest.fixture
def html_brief():
    """An HTML intake form with the website question answered."""
    filler = "Somos una clínica dental familiar con más de veinte años de experiencia " \
             "atendiendo pacientes de todas las edades en el centro de la ciudad."
    return (
        "<!DOCTYPE html><html><head><style>body{color:red}</style></head><body>"
        "<nav><p>Inicio Servicios Contacto y otros enlaces de navegación que no aportan "
        "contexto al negocio ni deberían aparecer nunca</p></nav>"
        "<h1>Clínica Dental Sonrisa</h1>"
        f"<p>{filler}</p>"
        "<h3>¿Tienes página web?</h3><p>Sí, visita midominio.com</p>"
        "<footer><p>Todos los derechos reservados</p></footer>"
        "</body></html>"
    )
