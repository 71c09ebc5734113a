"""
REST API module for codeshift.

Provides FastAPI endpoints for:
- Running migrations against an indexed session
- Session statistics and chunk search
- LLM usage metrics
"""
