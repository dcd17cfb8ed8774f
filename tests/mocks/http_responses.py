import json
from unittest.mock import AsyncMock, MagicMock

from app.core.enums import PlatformName
from app.schemas.platform.common import PlatformCredentials


def mock_response(status_code=200, payload=None, content=None):
    """Stand-in for an httpx.Response"""
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = payload if payload is not None else {}
    response.text = json.dumps(payload) if payload is not None else ""
    response.content = content if content is not None else response.text.encode()
    response.headers = {}
    return response


def mock_token_manager(platform: PlatformName, access_token="test-token", store_id=None):
    token_manager = MagicMock()
    token_manager.ensure_valid_credentials = AsyncMock(
        return_value=PlatformCredentials(platform=platform, access_token=access_token, store_id=store_id)
    )
    return token_manager


def mock_text_response(status_code=200, text=""):
    """Response whose body is not JSON, such as a maintenance page"""
    response = mock_response(status_code)
    response.json.side_effect = ValueError("Expecting value")
    response.text = text
    response.content = text.encode()
    return response
