"""
Configuration module for Studio Agent.
Handles environment variables, model selection, and orchestration settings.
"""

import os
from dataclasses import dataclass
from typing import List, Dict, Any, Optional
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


@dataclass
class AWSConfig:
    """AWS-specific configuration"""
    region: str = os.getenv("AWS_REGION", "us-east-1")
    access_key_id: str = os.getenv("AWS_ACCESS_KEY_ID", "")
    secret_access_key: str = os.getenv("AWS_SECRET_ACCESS_KEY", "")
    session_token: str = os.getenv("AWS_SESSION_TOKEN", "")
    profile_name: str = os.getenv("AWS_PROFILE", "")

    def has_explicit_credentials(self) -> bool:
        return bool(self.access_key_id and self.secret_access_key)

    def has_session_token(self) -> bool:
        return bool(self.session_token)

    def has_profile(self) -> bool:
        return bool(self.profile_name)


@dataclass
class ModelConfig:
    """Model-specific configuration"""
    # Foreground conversations get the stronger model, background tasks the fast one
    conversation_model_id: str = os.getenv("CONVERSATION_MODEL_ID", "us.anthropic.claude-sonnet-4-20250514-v1:0")
    background_model_id: str = os.getenv("BACKGROUND_MODEL_ID", "us.anthropic.claude-haiku-4-5-20251001-v1:0")
    summary_model_id: str = os.getenv("SUMMARY_MODEL_ID", "us.anthropic.claude-haiku-4-5-20251001-v1:0")
    conversation_max_tokens: int = int(os.getenv("CONVERSATION_MAX_TOKENS", "1024"))
    background_max_tokens: int = int(os.getenv("BACKGROUND_MAX_TOKENS", "512"))
    temperature: Optional[float] = float(os.getenv("TEMPERATURE", "1")) if os.getenv("TEMPERATURE") else None
    # Model steps per turn (tool round-trips included)
    max_steps: int = int(os.getenv("MAX_STEPS", "5"))


@dataclass
class AppConfig:
    """Application-specific configuration"""
    title: str = "Studio Agent"
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    debug_mode: bool = os.getenv("DEBUG_MODE", "false").lower() == "true"
    data_dir: str = os.getenv("STUDIO_AGENT_DATA_DIR", os.path.join(os.path.expanduser("~"), ".studio-agent"))
    # Background task queue
    task_auto_dismiss_ms: int = int(os.getenv("TASK_AUTO_DISMISS_MS", "4000"))
    task_history_cap: int = int(os.getenv("TASK_HISTORY_CAP", "50"))
    # Scene highlight for objects the agent just touched
    ai_highlight_ms: int = int(os.getenv("AI_HIGHLIGHT_MS", "2000"))
    # Plan execution: trailing text shorter than this after the last tool call means cut off
    cutoff_text_threshold: int = int(os.getenv("CUTOFF_TEXT_THRESHOLD", "20"))
    max_auto_resumes: int = int(os.getenv("MAX_AUTO_RESUMES", "10"))
    # Conversation persistence
    persist_debounce_ms: int = int(os.getenv("PERSIST_DEBOUNCE_MS", "500"))
    summary_enabled: bool = os.getenv("SUMMARY_ENABLED", "true").lower() == "true"
    summary_min_messages: int = int(os.getenv("SUMMARY_MIN_MESSAGES", "3"))
    title_max_chars: int = int(os.getenv("TITLE_MAX_CHARS", "40"))


# ============================================================
# Model Specifications -- Anthropic Claude on Bedrock
# Only models with tool_use support can drive the scene tools.
# ============================================================
AVAILABLE_MODELS: List[Dict[str, Any]] = [
    {
        "id": "us.anthropic.claude-sonnet-4-20250514-v1:0",
        "base_id": "anthropic.claude-sonnet-4-20250514-v1:0",
        "name": "Claude Sonnet 4",
        "description": "Balanced model for conversations and plan execution",
        "provider": "anthropic",
        "context_window": 200000,
        "max_output_tokens": 64000,
        "requires_profile": True,
    },
    {
        "id": "us.anthropic.claude-haiku-4-5-20251001-v1:0",
        "base_id": "anthropic.claude-haiku-4-5-20251001-v1:0",
        "name": "Claude Haiku 4.5",
        "description": "Fast model for background tasks and summaries",
        "provider": "anthropic",
        "context_window": 200000,
        "max_output_tokens": 64000,
        "requires_profile": True,
    },
    {
        "id": "anthropic.claude-3-5-haiku-20241022-v1:0",
        "base_id": "anthropic.claude-3-5-haiku-20241022-v1:0",
        "name": "Claude 3.5 Haiku",
        "description": "Legacy fast model",
        "provider": "anthropic",
        "context_window": 200000,
        "max_output_tokens": 8192,
        "requires_profile": True,
    },
]


# Create global config instances
aws_config = AWSConfig()
model_config = ModelConfig()
app_config = AppConfig()


def get_model_by_id(model_id: str) -> Optional[Dict[str, Any]]:
    """Get model configuration by ID"""
    for model in AVAILABLE_MODELS:
        if model["id"] == model_id or model.get("base_id") == model_id:
            return model
    return None


def get_model_name(model_id: str) -> str:
    """Get the display name for a model ID"""
    model = get_model_by_id(model_id)
    return model["name"] if model else model_id


def get_model_config(model_id: str) -> Dict[str, Any]:
    """Get the full configuration for a model. Unknown IDs get a minimal Anthropic fallback."""
    model = get_model_by_id(model_id)
    if model:
        return model
    return {
        "id": model_id,
        "base_id": model_id,
        "name": model_id,
        "provider": "anthropic",
        "context_window": 200000,
        "max_output_tokens": 4096,
        "requires_profile": False,
    }


def requires_inference_profile(model_id: str) -> bool:
    return get_model_config(model_id).get("requires_profile", False)


def get_max_output_tokens(model_id: str) -> int:
    return get_model_config(model_id).get("max_output_tokens", 4096)


def get_credentials_info() -> str:
    if aws_config.has_profile():
        return f"Using AWS profile: {aws_config.profile_name}"
    elif aws_config.has_explicit_credentials():
        if aws_config.has_session_token():
            return "Using temporary credentials (with session token)"
        return "Using explicit credentials"
    return "Using default AWS credential chain"
