"""Default configuration values"""

DEFAULT_ASSISTANT_CONTEXT = """You are a brainstorming partner for business ideas.
Listen to the user's spoken idea and help them sharpen it.

Focus on:
- The problem being solved and for whom
- The value proposition and revenue model
- Risks, open questions and next steps

Keep responses short enough to be read aloud (under 150 words). Ask at most one question per reply."""

DEFAULT_SETTINGS = {
    "audio": {
        "device_index": None,
        "sample_rate": 16000,
        "chunk_duration_ms": 100,
        "mime_hint": "audio/wav,audio/L16",
        "max_duration_seconds": 60,
    },
    "speech": {
        "api_model": "whisper-1",
        "local_model": "base",  # tiny/base/small for faster-whisper
        "language": "en",
        "use_api": True,
        "tts_enabled": True,  # read assistant replies aloud
        "tts_model": "tts-1",
        "tts_voice": "alloy",
    },
    "assistant": {
        "default_provider": "openai",
        "context": DEFAULT_ASSISTANT_CONTEXT,
        "max_tokens": 1024,
        "temperature": 0.3,
        "timeout_seconds": 30,
    },
    "api": {
        "openai": {
            "model": "gpt-4o-mini",
            "enabled": True,
        },
        "demo": {
            "enabled": True,
        },
    },
    "export": {
        "vault_name": "",
        "file_prefix": "idea",
        "max_uri_length": 2000,
        "safety_margin": 100,
        "enrichment_timeout_seconds": 5,
        "summary_max_length": 1000,
        "download_dir": "~/IdeaCapture/exports",
    },
    "hotkeys": {
        "hold_to_talk": "ctrl+shift+space",
        "export_linked_app": "ctrl+shift+o",
        "export_file": "ctrl+shift+d",
        "toggle_speech": "ctrl+shift+s",
        "quit": "ctrl+shift+q",
    },
    "logging": {
        "level": "INFO",
        "session_dir": "~/IdeaCapture/sessions",
    },
}
