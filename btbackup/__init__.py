# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Bigtable Backup - Create, list, restore and delete Cloud Bigtable backups.

Backups are SequenceFile exports written to Cloud Storage by Dataflow
template jobs. This package resolves which tables to act on, derives the
storage layout, discovers existing backups by listing the bucket, and
drives the export/import jobs. Package name: btbackup.
"""

__version__ = "0.1.0"

# Configuration
from btbackup.config import (
    CreateBackupConfig,
    DeleteBackupConfig,
    ListBackupsConfig,
    OutputFormat,
    PollPolicy,
    RestoreBackupConfig,
    parse_duration,
)

# Orchestrators
from btbackup.core import (
    run_create_backup,
    run_list_backups,
    run_restore_backup,
    run_delete_backup,
)

# Service clients
from btbackup.clients import Clients, build_clients

__all__ = [
    # Version
    "__version__",
    # Configuration
    "CreateBackupConfig",
    "DeleteBackupConfig",
    "ListBackupsConfig",
    "OutputFormat",
    "PollPolicy",
    "RestoreBackupConfig",
    "parse_duration",
    # Orchestrators
    "run_create_backup",
    "run_list_backups",
    "run_restore_backup",
    "run_delete_backup",
    # Clients
    "Clients",
    "build_clients",
]
