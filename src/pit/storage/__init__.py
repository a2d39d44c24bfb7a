"""SQLite storage layer: engine policy, ORM tables and schema migrations."""
