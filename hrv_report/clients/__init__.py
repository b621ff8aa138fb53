"""Text-generation backends for report generation.

Choose one via the ``llm_provider`` config key:
  - ``gemini``      -- Google Gemini
  - ``claude``      -- Anthropic Claude (alternative to Gemini)
  - ``llm_base``    -- Abstract base class and the ``TextGenerator`` protocol
  - ``llm_factory`` -- Factory to create the configured client
"""
