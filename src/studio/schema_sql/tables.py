"""CREATE TABLE statements for accounts, artifacts, messages, and site config."""

ACCOUNTS = """
CREATE TABLE accounts (
    identifier          VARCHAR(320) PRIMARY KEY,
    display_name        VARCHAR(80)  NOT NULL,
    password_hash       VARCHAR(255) NOT NULL,
    role                VARCHAR(20)  NOT NULL DEFAULT 'standard'
                        CONSTRAINT ck_accounts_role_standard
                        CHECK (role = 'standard'),
    balance             INTEGER
                        CONSTRAINT ck_accounts_balance_non_negative
                        CHECK (balance >= 0),
    has_ever_purchased  BOOLEAN NOT NULL DEFAULT FALSE,
    created_at          TIMESTAMPTZ NOT NULL DEFAULT now(),
    sign_in_count       INTEGER NOT NULL DEFAULT 0,
    plan_group          VARCHAR(30),
    max_generations     INTEGER,
    max_edits           INTEGER,
    generation_count    INTEGER,
    edit_count          INTEGER,
    schema_version      INTEGER NOT NULL DEFAULT 1
);
"""

SAVED_ARTIFACTS = """
CREATE TABLE saved_artifacts (
    artifact_id       UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    owner_identifier  VARCHAR(320) NOT NULL,
    image_data        BYTEA NOT NULL,
    mime_type         VARCHAR(50) NOT NULL,
    prompt            TEXT NOT NULL,
    mode              VARCHAR(30) NOT NULL,
    created_at        TIMESTAMPTZ NOT NULL DEFAULT now()
);
"""

SUPPORT_MESSAGES = """
CREATE TABLE support_messages (
    message_id            UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    sender_identifier     VARCHAR(320) NOT NULL,
    recipient_identifier  VARCHAR(320) NOT NULL,
    sender_role           VARCHAR(20)  NOT NULL
                          CHECK (sender_role IN ('standard', 'administrator')),
    body                  TEXT NOT NULL,
    created_at            TIMESTAMPTZ NOT NULL DEFAULT now()
);
"""

SITE_CONFIG = """
CREATE TABLE site_config (
    config_key    VARCHAR(30) PRIMARY KEY,
    title         VARCHAR(200) NOT NULL,
    description   TEXT NOT NULL,
    keywords      TEXT NOT NULL,
    author        VARCHAR(200) NOT NULL,
    support_link  VARCHAR(500),
    updated_at    TIMESTAMPTZ NOT NULL DEFAULT now()
);
"""

ALL = [ACCOUNTS, SAVED_ARTIFACTS, SUPPORT_MESSAGES, SITE_CONFIG]
