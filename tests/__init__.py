"""
Langbridge Test Suite

Tests for:
- Provider selection, caching and single-flight revalidation
- Fallback between translation providers and between TTS engines
- Voice catalog matching
- HTTP adapters (DeepL, LibreTranslate, Piper, Kokoro) against local servers
- Capability facade end-to-end

Run tests with:
    pytest tests/ -v

Run without the local HTTP server tests:
    pytest tests/ -v --skip-integration
"""
