"""Agent dispatch policy: agent identifier + prompt + token to a command line."""

from __future__ import annotations

from enum import Enum


class AgentKind(str, Enum):
    """Agents pit knows how to invoke."""

    CLAUDE = "claude"
    PI = "pi"
    CODEX = "codex"
    AIDER = "aider"
    AMP = "amp"
    GOOSE = "goose"
    CUSTOM = "custom"


DEFAULT_AGENT = AgentKind.CLAUDE
SUPPORTED_AGENTS = tuple(kind.value for kind in AgentKind)
RESUMABLE_AGENTS = frozenset({AgentKind.CLAUDE, AgentKind.PI})

_CUSTOM_PLACEHOLDER = "echo 'No agent configured. Type your command.'; exec ${SHELL:-/bin/sh}"


def resolve_agent(agent: str) -> AgentKind:
    """Map an identifier to a known agent, falling back to the default agent."""

    normalized = agent.strip().lower()
    try:
        return AgentKind(normalized)
    except ValueError:
        return DEFAULT_AGENT


def supports_resume(agent: str) -> bool:
    return resolve_agent(agent) in RESUMABLE_AGENTS


def build_agent_command(
    agent: str,
    prompt: str,
    resume_token: str | None = None,
    *,
    session_token: str | None = None,
) -> list[str]:
    """Return the argv that runs ``agent`` as a tmux session's only process.

    With ``resume_token`` the agent's resume shape is used; agents that cannot
    resume get their fresh shape instead. ``session_token`` is the token a
    fresh invocation should register under, for agents that accept one.
    Unknown agents are invoked the way the default agent is.
    """

    kind = resolve_agent(agent)
    if resume_token is not None and kind in RESUMABLE_AGENTS:
        return _resume_command(kind, resume_token)
    return _fresh_command(kind, prompt, session_token)


def _fresh_command(kind: AgentKind, prompt: str, session_token: str | None) -> list[str]:
    if kind is AgentKind.CLAUDE:
        command = ["claude"]
        if session_token:
            command.extend(["--session-id", session_token])
        return [*command, prompt] if prompt else command
    if kind is AgentKind.AIDER:
        return ["aider", "--message", prompt] if prompt else ["aider"]
    if kind is AgentKind.AMP:
        return ["amp", "--prompt", prompt] if prompt else ["amp"]
    if kind is AgentKind.CUSTOM:
        # The prompt is the command line itself.
        return ["sh", "-c", prompt or _CUSTOM_PLACEHOLDER]
    # pi, codex and goose take the prompt as a positional argument.
    return [kind.value, prompt] if prompt else [kind.value]


def _resume_command(kind: AgentKind, resume_token: str) -> list[str]:
    if kind is AgentKind.CLAUDE:
        return ["claude", "-r", resume_token]
    if kind is AgentKind.PI:
        return ["pi", "--continue"]
    raise ValueError(f"Agent {kind.value!r} has no resume invocation.")
