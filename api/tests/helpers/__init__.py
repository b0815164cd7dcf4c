"""
Test helpers package for the Tsugi API

Provides reusable helpers for:
- Test data factories (factories.py)
- A scripted LLM client (llm.py)
"""
