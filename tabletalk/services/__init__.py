"""
Services package.

Subpackages:
    oracle  - natural-language oracle (Gemini, scripted, disabled)
    chat    - chat turn pipeline
    orders  - order numbering, reconciliation and lifecycle
"""
