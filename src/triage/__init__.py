"""Automatic triage of GitHub issues.

This package implements the issue triage service, providing:
- GitHub webhook authentication and event parsing
- Content normalization for issue bodies and comments
- LLM-based classification of issues, comments and closed-issue follow-ups
- Context gathering from recent comments and the status timeline
- A pure decision engine mapping classifications to tracker actions
- Concurrent action execution with a declared failure policy per action
"""
