"""Story verification: dispatch to the compute network and on-chain result caching."""

from istory.services.verification.dispatch_queue import BackgroundDispatchQueue, TemporalDispatchQueue
from istory.services.verification.dispatcher import VerificationDispatcher
from istory.services.verification.metrics_cache import VerifiedMetricsService
from istory.services.verification.network_client import VerificationNetworkClient
from istory.services.verification.reconciler import VerificationReconciler

__all__ = [
    "BackgroundDispatchQueue",
    "TemporalDispatchQueue",
    "VerificationDispatcher",
    "VerificationNetworkClient",
    "VerificationReconciler",
    "VerifiedMetricsService",
]
