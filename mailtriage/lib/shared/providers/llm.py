from google import genai
from google.genai import types

from mailtriage.config import SamplingParams, TriageConfig
from mailtriage.exceptions import ConfigError

def get_llm_provider(config: TriageConfig) -> genai.Client:
    """Returns a Gemini client for the configured API key"""
    if not config.gemini_api_key:
        raise ConfigError("GEMINI_API_KEY is not set in environment variables")
    return genai.Client(api_key=config.gemini_api_key)

def get_generation_config(sampling: SamplingParams) -> types.GenerateContentConfig:
    return types.GenerateContentConfig(
        temperature=sampling.temperature,
        top_p=sampling.top_p,
        top_k=sampling.top_k,
        max_output_tokens=sampling.max_output_tokens,
    )
