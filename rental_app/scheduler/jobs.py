# rental_app/scheduler/jobs.py
import logging

from rental_app.core.rentals import sweep_overdue
from rental_app.core.utils import today_local

logger = logging.getLogger("scheduler_jobs")


async def mark_overdue_rentals():
    """Job berkala: transaksi sedang_disewa yang lewat jatuh tempo -> menunggu_pengembalian.

    Dijalankan di event loop aplikasi, jadi Beanie sudah diinisialisasi oleh lifespan.
    """
    today = today_local()
    logger.info(f"Running mark_overdue_rentals job for {today}")
    try:
        moved = await sweep_overdue(today)
    except Exception:
        # Job berikutnya akan mencoba lagi; jangan matikan scheduler
        logger.error("mark_overdue_rentals job failed.", exc_info=True)
        return 0
    logger.info(f"Job finished. Moved to awaiting return: {moved}")
    return moved
