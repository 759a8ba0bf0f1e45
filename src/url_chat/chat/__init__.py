"""Chat completion pipeline.

Sub-modules:
- ``config``       : system prompt, model and endpoint defaults, error texts
- ``prompt``       : two-message completion request assembly
- ``_completion``  : OpenAI-compatible completion provider (httpx)
- ``orchestrator`` : validation → rate limit → fetch → prompt → completion
- ``metrics``      : prometheus counters for pipeline outcomes
- ``router``       : FastAPI router (``POST /chat``)
"""
