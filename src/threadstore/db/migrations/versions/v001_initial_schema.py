"""Initial schema: threads, messages and the message search index

Version: 1

messages.thread_id carries no foreign key; the caller guarantees the thread
exists before inserting so bulk inserts stay cheap.
"""

import sqlalchemy as sa

from threadstore.db.migrations.operations import (
    CreateIndex,
    CreateSearchIndex,
    CreateTable,
)

version = 1
description = "initial schema"

NOW = sa.text("(CURRENT_TIMESTAMP)")


def _thread_columns():
    return (
        sa.Column("id", sa.Text, primary_key=True, nullable=False),
        sa.Column("name", sa.Text, nullable=True, unique=True),
        sa.Column("title", sa.Text, nullable=False),
        sa.Column("source_url", sa.Text, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=NOW),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=NOW),
    )


def _message_columns():
    return (
        sa.Column("id", sa.Text, primary_key=True, nullable=False),
        sa.Column("thread_id", sa.Text, nullable=False),
        sa.Column("session_id", sa.Text, nullable=True),
        sa.Column("sender", sa.Text, nullable=True),
        sa.Column("role", sa.Text, nullable=False, server_default="user"),
        sa.Column("content", sa.Text, nullable=False, server_default=""),
        sa.Column("metadata", sa.Text, nullable=True, server_default="{}"),
        sa.Column("parent_id", sa.Text, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=NOW),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=NOW),
    )


def operations():
    return [
        CreateTable("threads", _thread_columns),
        CreateTable("messages", _message_columns),
        CreateIndex("idx_messages_thread_id", "messages", ["thread_id"]),
        CreateIndex("idx_messages_session_id", "messages", ["session_id"]),
        CreateIndex("idx_messages_created_at", "messages", ["created_at"]),
        CreateIndex("idx_messages_sender", "messages", ["sender"]),
        CreateSearchIndex("messages_fts", content_table="messages", column="content"),
    ]
