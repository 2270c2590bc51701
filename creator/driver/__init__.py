"""Aider subprocess driver: resolver, credentials, environment, supervisor, streaming."""

from creator.driver.credentials import CredentialProvider, Credentials
from creator.driver.environment import EnvironmentBuilder
from creator.driver.models import MODEL_FAMILIES, SUPPORTED_MODELS, ModelFamily, family_for
from creator.driver.resolver import (
    DEFAULT_CANDIDATES,
    ExecutableResolver,
    Invocation,
    InvocationCandidate,
)
from creator.driver.streaming import ChatMessage, ChatTurn, StreamingAdapter
from creator.driver.supervisor import ProcessSupervisor, Session, SupervisorState
from creator.driver.transcript import TranscriptBuffer, strip_ansi

__all__ = [
    "ChatMessage",
    "ChatTurn",
    "CredentialProvider",
    "Credentials",
    "DEFAULT_CANDIDATES",
    "EnvironmentBuilder",
    "ExecutableResolver",
    "Invocation",
    "InvocationCandidate",
    "MODEL_FAMILIES",
    "ModelFamily",
    "ProcessSupervisor",
    "SUPPORTED_MODELS",
    "Session",
    "StreamingAdapter",
    "SupervisorState",
    "TranscriptBuffer",
    "family_for",
    "strip_ansi",
]
