"""Add open/closed status to threads

Version: 3

Existing threads become 'open'.
"""

import sqlalchemy as sa

from threadstore.db.migrations.operations import AddColumn, CreateIndex

version = 3
description = "add threads.status"


def operations():
    return [
        AddColumn(
            "threads",
            lambda: sa.Column("status", sa.Text, nullable=False, server_default="open"),
        ),
        CreateIndex("idx_threads_status", "threads", ["status"]),
    ]
