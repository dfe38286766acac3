# Taskboard: ordered Kanban columns, drag-and-drop reordering, resilient persistence
#
# Components:
#   schema.py      - Data model (Task, TaskStatus, TaskPriority, PositionUpdate)
#   snapshot.py    - Versioned in-memory task snapshot
#   grouping.py    - Column grouping and sorting
#   search.py      - Substring search over a snapshot
#   reorder.py     - Move planning and position re-densification
#   dispatcher.py  - Per-task async persistence with retry and stale-write guard
#   events.py      - Subscribe/emit bus for board signals
#   roles.py       - Workspace roles and task permission checks
#   service.py     - Task service interface and HTTP transport
#   store.py       - SQLite backing store
#   board.py       - KanbanBoard facade
#   config.py      - YAML/env configuration
#   server.py      - JSON API over the SQLite store
#   cli.py         - Command-line front end

__version__ = "0.1.0"
