# comic_studio/lib/openai_client.py
from openai import OpenAI

from comic_studio.errors import ConfigurationError

def make_client(api_key: str) -> OpenAI:
    """One client per call site; the caller's key is never kept on module state."""
    if not api_key or not api_key.strip():
        raise ConfigurationError("An API key is required for the structured backend.")
    return OpenAI(api_key=api_key.strip(), max_retries=0)
