"""Secondary indexes."""

ALL = [
    "CREATE INDEX idx_artifacts_owner_created "
    "ON saved_artifacts (owner_identifier, created_at DESC);",
    "CREATE INDEX idx_messages_created ON support_messages (created_at);",
    "CREATE INDEX idx_accounts_created ON accounts (created_at DESC);",
]
