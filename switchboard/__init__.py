"""
Switchboard — route chat turns to the right LLM provider.
Direct provider keys first, OpenRouter as the fallback line.
"""
