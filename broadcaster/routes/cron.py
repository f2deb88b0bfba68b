"""
Scheduler trigger routes, called by an external cron with a shared secret.

Registered ahead of the broadcast routes so ``/cron`` is never read as a
broadcast id.
"""
from fastapi import APIRouter, Depends

from ..auth import require_cron_secret
from ..dependencies import get_poller, get_reconciler
from ..worker.reconciler import StuckSendingReconciler
from ..worker.scheduler import SchedulerPoller

router = APIRouter(
    prefix="/api/broadcasts/cron",
    tags=["cron"],
    dependencies=[Depends(require_cron_secret)],
)


@router.api_route("", methods=["GET", "POST"])
async def run_scheduler(poller: SchedulerPoller = Depends(get_poller)):
    """Deliver every scheduled broadcast that is due."""
    summary = await poller.poll()
    return summary.to_dict()


@router.post("/reconcile")
def run_reconcile(reconciler: StuckSendingReconciler = Depends(get_reconciler)):
    """Fail broadcasts stuck in 'sending' past the grace period."""
    return reconciler.sweep().to_dict()
