"""
GracefulShutdown - Manejo de señales SIGINT y SIGTERM para cierre limpio.

Gestiona la parada del skill manager de forma ordenada:
- Primer SIGINT/SIGTERM: marca el flag y despierta a quien espere en wait()
- Segundo SIGINT/SIGTERM: salida inmediata con código 130

El coordinador espera en wait() y, al despertar, para todos los procesos
supervisados antes de salir para no dejar hijos huérfanos.
"""

import asyncio
import signal
import sys

import structlog

logger = structlog.get_logger()

EXIT_INTERRUPTED = 130  # Estándar POSIX: 128 + SIGINT(2)

_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class GracefulShutdown:
    """Gestiona señales de shutdown dentro del event loop.

    Crear una vez dentro del loop en ejecución y esperar con wait().

    Attributes:
        should_stop: True cuando se ha recibido una señal de terminación.

    Uso:
        shutdown = GracefulShutdown()
        await shutdown.wait()
        await coordinator.shutdown()
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        """Instala los handlers de señales en el loop."""
        self._loop = loop or asyncio.get_running_loop()
        self._event = asyncio.Event()
        self._interrupted = False

        for sig in _SIGNALS:
            try:
                self._loop.add_signal_handler(sig, self._handler, sig)
            except NotImplementedError:
                # Plataformas sin add_signal_handler (Windows)
                signal.signal(
                    sig,
                    lambda signum, frame: self._loop.call_soon_threadsafe(self._handler, signum),
                )

        logger.debug("graceful_shutdown.installed")

    def _handler(self, signum: int) -> None:
        """Handler compartido para SIGINT y SIGTERM.

        Primer disparo: marca el flag y despierta wait().
        Segundo disparo: salida inmediata.
        """
        signal_name = signal.Signals(signum).name

        if self._interrupted:
            logger.warning("graceful_shutdown.forced", signal=signal_name)
            sys.exit(EXIT_INTERRUPTED)

        self._interrupted = True
        self._event.set()
        logger.warning(
            "graceful_shutdown.requested",
            signal=signal_name,
            message="Parando skills. Repite la señal para salir ya.",
        )

        sys.stderr.write(
            f"\n⚠️  {signal_name} recibido. Parando skills...\n"
            "   (Ctrl+C de nuevo para salida inmediata)\n"
        )
        sys.stderr.flush()

    @property
    def should_stop(self) -> bool:
        """True si se ha recibido una señal de terminación."""
        return self._interrupted

    async def wait(self) -> None:
        """Bloquea hasta la primera señal."""
        await self._event.wait()

    def trigger(self) -> None:
        """Simula la llegada de SIGTERM (útil para testing)."""
        self._handler(signal.SIGTERM)

    def restore_defaults(self) -> None:
        """Retira los handlers y restaura los de por defecto."""
        for sig in _SIGNALS:
            try:
                self._loop.remove_signal_handler(sig)
            except NotImplementedError:
                signal.signal(sig, signal.SIG_DFL)
        logger.debug("graceful_shutdown.restored_defaults")
