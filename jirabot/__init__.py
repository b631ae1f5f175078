"""
JiraBot - Jira Assistant for Slack
==================================

A Slack bot that helps people find, inspect, create and assign Jira
tickets from a conversation.

This package provides:
- Agent loop with one round of parallel capability calls
- Jira capabilities (similar-issue search, lookup, field values, users,
  creation and assignment) behind a closed registry
- Semantic retrieval over a local vector index of past issues
- Slack Events API webhook and Socket Mode runners
"""

__version__ = "1.0.0"
