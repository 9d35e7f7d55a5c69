#!/usr/bin/env python3
"""
Services - Orchestration over the analytics and storage layers
"""

from .snapshot_service import SnapshotService, BackfillResult
from .dedup_service import DeduplicationService, DuplicateVerdict, ResolutionResult
from .history_service import FitnessHistoryService

__all__ = [
    'SnapshotService',
    'BackfillResult',
    'DeduplicationService',
    'DuplicateVerdict',
    'ResolutionResult',
    'FitnessHistoryService',
]
