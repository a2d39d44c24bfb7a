"""Task lifecycle core.

A task is the unit of work for one coding agent: a row in the SQLite task
store, a git branch plus worktree, and at most one live tmux session. The
pieces are bound by name only (``pit/<task>``, ``.pit/worktrees/<task>``,
``pit-<task>``) and brought back in line by reconciliation rather than by
holding handles:

- ``repository`` persists tasks with compare-and-set status updates;
- ``workspace`` provisions and tears down branch + worktree pairs;
- ``sessions`` drives the dedicated tmux server;
- ``reaper`` flips running tasks whose session died back to idle;
- ``services`` orders the side effects of create/launch/stop/delete.
"""
