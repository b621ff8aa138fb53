"""HRV post-treatment report pipeline.

Builds a before/after snapshot of a salon visit (HRV measurements plus
self-reported wellbeing), drives a text-generation backend under a fixed
report contract, validates the output, retries once with a stricter
contract and falls back to deterministic text where the backend does not
comply.
"""

__version__ = "0.1.0"
