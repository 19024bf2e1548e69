"""Exceptions raised by the prompt delivery services.

An empty result (nothing to deliver) is not an error: resolvers return ``None``.
"""
from __future__ import annotations

from typing import Optional


class PromptDeliveryError(Exception):
    """Base class for prompt delivery failures."""


class ProjectNotFound(PromptDeliveryError):
    """Unknown project, or the caller holds no active role on it."""

    def __init__(self, project_id: int, caller_id: Optional[int] = None):
        self.project_id = project_id
        self.caller_id = caller_id
        super().__init__(f"Project {project_id} not found or access denied")


class PromptStateConflict(PromptDeliveryError):
    """Another caller changed the project's prompt state between our read and write."""

    def __init__(self, project_id: int, detail: str = ""):
        self.project_id = project_id
        msg = f"Concurrent prompt state change for project {project_id}"
        super().__init__(f"{msg}: {detail}" if detail else msg)


class PromptStateError(PromptDeliveryError):
    """A required prompt state write could not be persisted."""

    def __init__(self, project_id: int, detail: str = "Failed to persist prompt state"):
        self.project_id = project_id
        super().__init__(f"{detail} (project {project_id})")


class InvalidUserPrompt(PromptDeliveryError, ValueError):
    """A user prompt was rejected before reaching the queue."""


__all__ = [
    "PromptDeliveryError",
    "ProjectNotFound",
    "PromptStateConflict",
    "PromptStateError",
    "InvalidUserPrompt",
]
