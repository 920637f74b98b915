from functools import lru_cache

from openai import OpenAI

from qticraft.core.config import get_settings
from qticraft.services.qti_client import QtiClient


@lru_cache
def get_openai_client() -> OpenAI:
    settings = get_settings()
    return OpenAI(api_key=settings.openai_api_key)


@lru_cache
def get_qti_client() -> QtiClient:
    return QtiClient.from_settings(get_settings())
