"""Add provenance tag to messages

Version: 2
"""

import sqlalchemy as sa

from threadstore.db.migrations.operations import AddColumn, CreateIndex

version = 2
description = "add messages.source"


def operations():
    return [
        AddColumn("messages", lambda: sa.Column("source", sa.Text, nullable=True)),
        CreateIndex("idx_messages_source", "messages", ["source"]),
    ]
