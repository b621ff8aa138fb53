"""Global constants for the HRV report pipeline."""

# ---------------------------------------------------------------------------
# LLM base URLs (report generation)
# ---------------------------------------------------------------------------
GEMINI_BASE_URL: str = "https://generativelanguage.googleapis.com/v1beta"
CLAUDE_BASE_URL: str = "https://api.anthropic.com/v1"

# ---------------------------------------------------------------------------
# Measurement phases
# ---------------------------------------------------------------------------
PHASE_BEFORE: str = "before"
PHASE_AFTER: str = "after"

# ---------------------------------------------------------------------------
# Self-report scores (0-10 sliders)
# ---------------------------------------------------------------------------
SCORE_MIN: int = 0
SCORE_MAX: int = 10

# Thresholds used by the rule-based next-action fallback
HIGH_STRESS_THRESHOLD: int = 6
POOR_SLEEP_THRESHOLD: int = 4
HIGH_HEAVINESS_THRESHOLD: int = 6

# ---------------------------------------------------------------------------
# Human-readable deltas
# ---------------------------------------------------------------------------
INSUFFICIENT_DATA: str = "データ不足"

# ---------------------------------------------------------------------------
# Persisted report text
# ---------------------------------------------------------------------------
NEXT_ACTION_TRAILER: str = "次回までの1アクション："
