# tests/conftest.py
"""Pytest configuration and fixtures"""
import pytest
import sys
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from tests.fakes import RecordingBot, make_button_event, make_text_event  # noqa: E402


@pytest.fixture
def bot():
    return RecordingBot()


@pytest.fixture
def chat_id():
    """Default conversation id for tests"""
    return "123"


@pytest.fixture
def text_event():
    return make_text_event


@pytest.fixture
def button_event():
    return make_button_event


@pytest.fixture
def sample_meta_payload():
    """Cloud API webhook delivery with two messages and a status update"""
    return {
        "object": "whatsapp_business_account",
        "entry": [{
            "id": "WABA_ID",
            "changes": [{
                "field": "messages",
                "value": {
                    "messaging_product": "whatsapp",
                    "metadata": {"display_phone_number": "15550000000", "phone_number_id": "PNID"},
                    "contacts": [{"profile": {"name": "Ann"}, "wa_id": "972500000001"}],
                    "messages": [
                        {
                            "from": "972500000001",
                            "id": "wamid.1",
                            "timestamp": "1700000000",
                            "type": "text",
                            "text": {"body": "/start"},
                        },
                        {
                            "from": "972500000002",
                            "id": "wamid.2",
                            "timestamp": "1700000001",
                            "type": "image",
                            "image": {"id": "MEDIA1", "mime_type": "image/jpeg"},
                        },
                    ],
                    "statuses": [{"id": "wamid.out", "status": "delivered"}],
                },
            }],
        }],
    }
