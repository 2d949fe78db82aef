"""
Conversational ordering: guardrail, action extraction, cart reduction,
reply narration and the chat turn handler.
"""
