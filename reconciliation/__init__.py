"""Reconciliation package for detecting deleted user accounts."""
from reconciliation.identity import ACCOUNT_ID_PREFIX, is_account_id
from reconciliation.reconciler import (
    CallbackError,
    DeletionReconciler,
    IdentityProvider,
    OnDeletedCallback,
    RunSummary,
)
from reconciliation.scheduler import ReconciliationState, RunLease, RunStateRecorder

__all__ = [
    'ACCOUNT_ID_PREFIX',
    'is_account_id',
    'CallbackError',
    'DeletionReconciler',
    'IdentityProvider',
    'OnDeletedCallback',
    'RunSummary',
    'ReconciliationState',
    'RunLease',
    'RunStateRecorder',
]
