"""
LLM Mux - OpenAI-compatible model multiplexing gateway
"""

__version__ = "0.1.0"
