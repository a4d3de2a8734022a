from fastapi import APIRouter, Depends

from ...api.deps import get_print_queue, get_receptionist_session
from ...services.printing import PrintQueue
from ...schemas.registration import PrintTaskResponse

router = APIRouter(
    prefix="/print-jobs",
    tags=["Printing"],
    dependencies=[Depends(get_receptionist_session)],
)

@router.get("/{task_id}", response_model=PrintTaskResponse)
async def get_print_job(
    task_id: str,
    print_queue: PrintQueue = Depends(get_print_queue),
):
    """Status of a prescription print job."""
    return PrintTaskResponse.from_task(print_queue.get(task_id))

@router.post("/{task_id}/retry", response_model=PrintTaskResponse)
async def retry_print_job(
    task_id: str,
    print_queue: PrintQueue = Depends(get_print_queue),
):
    """Run a failed print job again. The registration is not resubmitted."""
    return PrintTaskResponse.from_task(print_queue.retry(task_id))
