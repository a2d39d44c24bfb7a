"""Run multiple coding agents in parallel, each in its own worktree and tmux session."""

__version__ = "0.4.0"
