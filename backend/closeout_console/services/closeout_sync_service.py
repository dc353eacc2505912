"""
Service Layer per la sincronizzazione dei cierres
Progetto: Hospitality Console (Cierres Teóricos)

Sincronizza con il POS un intervallo di giorni, un giorno alla volta e mai
in parallelo, pubblicando snapshot immutabili dell'avanzamento con stima
del tempo residuo. Un giorno fallito non interrompe mai il batch.
"""

import asyncio
import datetime
import inspect
import logging
import uuid
from typing import Any, Awaitable, Callable, Optional, Union

from closeout_console.core.exceptions import ConflictError, NotFoundError
from closeout_console.schemas.closeout import SyncDayResult, SyncJobState, SyncProgress
from closeout_console.utils.dates import days_in_range, validate_sync_range

# Logger per questo modulo
logger = logging.getLogger(__name__)

SyncDayCall = Callable[[str], Awaitable[Union[SyncDayResult, bool]]]
ProgressCallback = Callable[[SyncProgress], Any]
RefreshCallback = Callable[[], Any]


async def _maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


def utc_today() -> datetime.date:
    """Giorno corrente in UTC, come il giorno operativo del backend."""
    return datetime.datetime.now(datetime.timezone.utc).date()


class CancellationToken:
    """Token di annullamento esplicito di un batch di sincronizzazione."""

    def __init__(self) -> None:
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled


class SyncJob:
    """
    Stato effimero di un batch di sincronizzazione.

    Appartiene esclusivamente all'orchestratore per tutta la sua durata;
    gli osservatori ricevono solo snapshot immutabili (`SyncProgress`).
    `completed_count` cresce di uno per ogni giorno tentato, riuscito
    o fallito.
    """

    def __init__(self, days: list[str], job_id: Optional[str] = None) -> None:
        self.job_id = job_id or uuid.uuid4().hex
        self.days: tuple[str, ...] = tuple(days)
        self.total_count = len(self.days)
        self.completed_count = 0
        self.elapsed_seconds = 0
        self.estimated_remaining_seconds: Optional[int] = None
        self.state = SyncJobState.IDLE
        self.current_day: Optional[str] = None
        self.fetched_total = 0
        self.upserted_total = 0
        self.failed_count = 0
        self.cancelled = False
        self.started_at: Optional[datetime.datetime] = None
        self.finished_at: Optional[datetime.datetime] = None
        self.message: Optional[str] = None

    @property
    def percentage(self) -> int:
        if self.state == SyncJobState.COMPLETED:
            return 100
        if self.total_count == 0:
            return 0
        # round() half-up in aritmetica intera
        return (self.completed_count * 200 + self.total_count) // (2 * self.total_count)

    def mark_started(self) -> None:
        self.state = SyncJobState.RUNNING
        self.started_at = datetime.datetime.now(datetime.timezone.utc)

    def tick(self) -> None:
        """Avanza di un secondo il tempo trascorso (chiamato dal ticker a 1 Hz)."""
        self.elapsed_seconds += 1

    def record_attempt(self, result: SyncDayResult) -> None:
        """Registra l'esito di un giorno e ricalcola la stima del tempo residuo."""
        self.completed_count += 1
        if result.ok:
            self.fetched_total += result.fetched
            self.upserted_total += result.upserted
        else:
            self.failed_count += 1
        remaining = self.total_count - self.completed_count
        if 0 < self.completed_count < self.total_count:
            # media semplice ricalcolata a ogni giorno: ceil(elapsed / completed * remaining)
            self.estimated_remaining_seconds = -(-self.elapsed_seconds * remaining // self.completed_count)
        elif remaining <= 0:
            self.estimated_remaining_seconds = 0

    def mark_completed(self) -> None:
        self.state = SyncJobState.COMPLETED
        self.estimated_remaining_seconds = 0
        self.current_day = None
        self.finished_at = datetime.datetime.now(datetime.timezone.utc)
        ok_days = self.completed_count - self.failed_count
        if self.total_count > 1:
            self.message = (
                f"{ok_days} de {self.total_count} días sincronizados. "
                f"Total: {self.fetched_total} obtenidos, {self.upserted_total} guardados."
            )
        else:
            self.message = f"Sincronizados: {self.fetched_total} obtenidos, {self.upserted_total} guardados."
        if self.failed_count:
            self.message += f" {self.failed_count} con errores."

    def mark_abandoned(self) -> None:
        self.state = SyncJobState.IDLE
        self.cancelled = True
        self.current_day = None
        self.finished_at = datetime.datetime.now(datetime.timezone.utc)
        self.message = f"Sincronización cancelada tras {self.completed_count} de {self.total_count} días."

    def snapshot(self) -> SyncProgress:
        return SyncProgress(
            job_id=self.job_id,
            state=self.state,
            date_from=self.days[0] if self.days else None,
            date_to=self.days[-1] if self.days else None,
            total_count=self.total_count,
            completed_count=self.completed_count,
            percentage=self.percentage,
            elapsed_seconds=self.elapsed_seconds,
            estimated_remaining_seconds=self.estimated_remaining_seconds,
            current_day=self.current_day,
            fetched_total=self.fetched_total,
            upserted_total=self.upserted_total,
            failed_count=self.failed_count,
            cancelled=self.cancelled,
            started_at=self.started_at,
            finished_at=self.finished_at,
            message=self.message,
        )


class DateRangeSyncOrchestrator:
    """
    Orchestratore della sincronizzazione giorno per giorno.

    Stati: Idle -> Running -> {Completed, Idle}. Non esiste uno stato
    Failed: i giorni falliti vengono contati come completati. Al termine
    ferma il ticker, porta l'avanzamento al 100%, la stima a 0 e chiede
    all'host un refetch silenzioso dei cierres.
    """

    def __init__(
        self,
        sync_day: SyncDayCall,
        on_refresh: Optional[RefreshCallback] = None,
        on_progress: Optional[ProgressCallback] = None,
        day_timeout: Optional[float] = None,
        tick_interval: float = 1.0,
        lock: Optional[asyncio.Lock] = None,
    ) -> None:
        self.sync_day = sync_day
        self.on_refresh = on_refresh
        self.on_progress = on_progress
        self.day_timeout = day_timeout
        self.tick_interval = tick_interval
        # serializza le chiamate al POS con chi condivide il lock
        self.lock = lock or asyncio.Lock()

    def create_job(self, date_from: str, date_to: str) -> SyncJob:
        """Enumera i giorni inclusi tra gli estremi (intervallo già validato dal chiamante)."""
        return SyncJob(days_in_range(date_from, date_to))

    async def _publish(self, job: SyncJob) -> None:
        if self.on_progress is None:
            return
        try:
            await _maybe_await(self.on_progress(job.snapshot()))
        except Exception:
            logger.exception("Osservatore di avanzamento fallito per il job %s", job.job_id)

    async def _ticker(self, job: SyncJob) -> None:
        while True:
            await asyncio.sleep(self.tick_interval)
            job.tick()
            await self._publish(job)

    async def _attempt_day(self, day: str) -> SyncDayResult:
        try:
            async with self.lock:
                call = self.sync_day(day)
                if self.day_timeout is not None:
                    result = await asyncio.wait_for(call, timeout=self.day_timeout)
                else:
                    result = await call
        except asyncio.TimeoutError:
            logger.warning("Sincronizzazione del giorno %s scaduta dopo %ss", day, self.day_timeout)
            return SyncDayResult(business_day=day, ok=False, error="timeout")
        except Exception as exc:
            # un giorno fallito non deve mai interrompere il batch
            logger.warning("Sincronizzazione del giorno %s fallita: %s", day, exc)
            return SyncDayResult(business_day=day, ok=False, error=str(exc) or exc.__class__.__name__)

        if isinstance(result, SyncDayResult):
            if not result.ok:
                logger.warning("Sincronizzazione del giorno %s fallita: %s", day, result.error)
            return result
        return SyncDayResult(business_day=day, ok=bool(result))

    async def _refresh(self) -> None:
        if self.on_refresh is None:
            return
        try:
            await _maybe_await(self.on_refresh())
        except Exception:
            logger.exception("Refetch dei cierres dopo la sincronizzazione fallito")

    async def run(self, job: SyncJob, token: Optional[CancellationToken] = None) -> SyncProgress:
        """
        Esegue il batch in modo strettamente sequenziale.

        Args:
            job: Job creato con `create_job`
            token: Token di annullamento opzionale, verificato prima di ogni giorno

        Returns:
            Lo snapshot finale del job
        """
        token = token or CancellationToken()
        if job.started_at is None:
            job.mark_started()
        logger.info("Avvio sincronizzazione %s: %s giorni", job.job_id, job.total_count)
        await self._publish(job)

        ticker = asyncio.create_task(self._ticker(job))
        try:
            for day in job.days:
                if token.is_cancelled:
                    break
                job.current_day = day
                await self._publish(job)
                result = await self._attempt_day(day)
                job.record_attempt(result)
                await self._publish(job)
        except asyncio.CancelledError:
            job.mark_abandoned()
            logger.info("Sincronizzazione %s interrotta", job.job_id)
            raise
        finally:
            ticker.cancel()
            try:
                await ticker
            except asyncio.CancelledError:
                pass

        if token.is_cancelled and job.completed_count < job.total_count:
            job.mark_abandoned()
            logger.info(
                "Sincronizzazione %s annullata dopo %s/%s giorni",
                job.job_id, job.completed_count, job.total_count,
            )
            await self._publish(job)
            return job.snapshot()

        job.mark_completed()
        logger.info(
            "Sincronizzazione %s completata: %s giorni, %s falliti, %s obtenidos, %s guardados",
            job.job_id, job.total_count, job.failed_count, job.fetched_total, job.upserted_total,
        )
        await self._publish(job)
        await self._refresh()
        return job.snapshot()

    async def sync_range(
        self,
        date_from: str,
        date_to: str,
        token: Optional[CancellationToken] = None,
    ) -> SyncProgress:
        return await self.run(self.create_job(date_from, date_to), token)


class SyncManager:
    """
    Gestisce al massimo un job di sincronizzazione alla volta per l'API.

    Conserva solo l'ultimo snapshot pubblicato: l'oggetto job viene
    rilasciato quando il batch termina o viene annullato.
    """

    def __init__(
        self,
        sync_day: SyncDayCall,
        on_refresh: Optional[RefreshCallback] = None,
        day_timeout: Optional[float] = None,
        max_days: int = 365,
        tick_interval: float = 1.0,
    ) -> None:
        self.max_days = max_days
        # condiviso con la sincronizzazione automatica: una sola chiamata al POS alla volta
        self.lock = asyncio.Lock()
        self._orchestrator = DateRangeSyncOrchestrator(
            sync_day=sync_day,
            on_refresh=on_refresh,
            on_progress=self._store_snapshot,
            day_timeout=day_timeout,
            tick_interval=tick_interval,
            lock=self.lock,
        )
        self._task: Optional[asyncio.Task] = None
        self._token: Optional[CancellationToken] = None
        self._last: Optional[SyncProgress] = None

    def _store_snapshot(self, progress: SyncProgress) -> None:
        self._last = progress

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self, date_from: str, date_to: Optional[str] = None) -> SyncProgress:
        """
        Valida l'intervallo e avvia il batch in background.

        Raises:
            BusinessValidationError: Intervallo non valido
            ConflictError: Una sincronizzazione è già in corso
        """
        if self.is_running:
            raise ConflictError(
                "Ya hay una sincronización en curso",
                error_code="SYNC_ALREADY_RUNNING",
            )
        days = validate_sync_range(date_from, date_to, self.max_days)
        job = self._orchestrator.create_job(days[0], days[-1])
        self._token = CancellationToken()
        job.mark_started()
        self._last = job.snapshot()
        self._task = asyncio.create_task(self._orchestrator.run(job, self._token))
        self._task.add_done_callback(self._on_done)
        return self._last

    def _on_done(self, task: asyncio.Task) -> None:
        self._token = None
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Job di sincronizzazione terminato con errore: %s", exc, exc_info=exc)

    def current(self) -> SyncProgress:
        if self._last is None:
            raise NotFoundError("No hay ninguna sincronización", error_code="SYNC_JOB_NOT_FOUND")
        return self._last

    def cancel(self) -> SyncProgress:
        """Richiede l'annullamento: il batch si ferma prima del giorno successivo."""
        if not self.is_running or self._token is None:
            raise NotFoundError("No hay ninguna sincronización en curso", error_code="SYNC_JOB_NOT_FOUND")
        self._token.cancel()
        logger.info("Annullamento richiesto per la sincronizzazione in corso")
        return self.current()

    async def wait(self) -> Optional[SyncProgress]:
        if self._task is not None:
            await asyncio.shield(self._task)
        return self._last

    async def shutdown(self) -> None:
        """Ferma il job in corso alla chiusura dell'applicazione (nessun timer orfano)."""
        if self._task is not None and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass


class AutoSyncService:
    """
    Sincronizzazione automatica del giorno corrente e refetch periodico.

    Ogni `sync_interval` secondi sincronizza il giorno corrente e, se
    l'esito è positivo, rilegge i cierres in silenzio; ogni
    `refresh_interval` secondi esegue solo il refetch silenzioso.
    Salta il giro se è in corso un batch manuale.
    """

    def __init__(
        self,
        sync_day: SyncDayCall,
        refresh: RefreshCallback,
        manager: Optional[SyncManager] = None,
        sync_interval: float = 60.0,
        refresh_interval: float = 15.0,
        today: Callable[[], datetime.date] = utc_today,
    ) -> None:
        self.sync_day = sync_day
        self.refresh = refresh
        self.manager = manager
        self.lock = manager.lock if manager is not None else asyncio.Lock()
        self.sync_interval = sync_interval
        self.refresh_interval = refresh_interval
        self.today = today
        self._tasks: list[asyncio.Task] = []

    async def sync_today(self) -> Optional[SyncDayResult]:
        if self.manager is not None and self.manager.is_running:
            logger.debug("Sincronizzazione automatica saltata: batch manuale in corso")
            return None
        day = self.today().isoformat()
        try:
            async with self.lock:
                result = await self.sync_day(day)
        except Exception as exc:
            logger.warning("Sincronizzazione automatica di %s fallita: %s", day, exc)
            return SyncDayResult(business_day=day, ok=False, error=str(exc))
        if not isinstance(result, SyncDayResult):
            result = SyncDayResult(business_day=day, ok=bool(result))
        if result.ok:
            await self._silent_refresh()
        return result

    async def _silent_refresh(self) -> None:
        try:
            await _maybe_await(self.refresh())
        except Exception as exc:
            logger.warning("Refetch automatico fallito: %s", exc)

    async def _sync_loop(self) -> None:
        while True:
            await self.sync_today()
            await asyncio.sleep(self.sync_interval)

    async def _refresh_loop(self) -> None:
        while True:
            await asyncio.sleep(self.refresh_interval)
            await self._silent_refresh()

    def start(self) -> None:
        if self._tasks:
            return
        self._tasks = [
            asyncio.create_task(self._sync_loop()),
            asyncio.create_task(self._refresh_loop()),
        ]
        logger.info(
            "Sincronizzazione automatica attiva (sync ogni %ss, refetch ogni %ss)",
            self.sync_interval, self.refresh_interval,
        )

    async def stop(self) -> None:
        tasks, self._tasks = self._tasks, []
        for task in tasks:
            task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
