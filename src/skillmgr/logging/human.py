"""
Human Log: formatter y helper para logs de progreso del skill manager.

Produce output legible para el operador: qué skills arrancan, qué se
instala y qué se para, sin el ruido técnico de INFO/DEBUG.

Formato de ejemplo:
    ─── skillmgr · 3 skills ──────────────────

      ▶ greeter (pid 4121)
      ✗ weather: no entry point found
    Installing acme/timer...
    Starting acme/timer...
      ✓ acme-timer instalado en skills/acme-timer

    ■ Parando 2 skills
"""

import logging
import sys

from .levels import HUMAN

# Atributos estándar de LogRecord que no son kwargs del evento
_RECORD_ATTRS = frozenset({
    "msg", "args", "levelname", "levelno", "pathname",
    "filename", "module", "exc_info", "exc_text", "stack_info",
    "lineno", "funcName", "created", "msecs", "relativeCreated",
    "thread", "threadName", "processName", "process", "message",
    "taskName", "name", "event",
})


class HumanFormatter:
    """Formateador de eventos de progreso.

    Convierte eventos estructurados a texto legible. Cada tipo de evento
    tiene su formato propio; los eventos sin formato se ignoran.
    """

    def format_event(self, event: str, **kw) -> str | None:
        """Formatea un evento a texto legible.

        Args:
            event: Nombre del evento (ej: "skill.boot.started")
            **kw: Parámetros del evento

        Returns:
            Texto formateado o None si el evento no tiene formato definido
        """
        match event:

            # ── BOOT ─────────────────────────────────────────────────────
            case "skill.boot.start":
                count = kw.get("count", "?")
                header = f"─── skillmgr · {count} skills "
                return header + "─" * max(0, 50 - len(header))

            case "skill.boot.started":
                skill = kw.get("skill", "?")
                pid = kw.get("pid")
                return f"  ▶ {skill} (pid {pid})" if pid else f"  ▶ {skill}"

            case "skill.boot.failed":
                skill = kw.get("skill", "?")
                error = kw.get("error", "desconocido")
                return f"  ✗ {skill}: {error}"

            case "skill.boot.skipped_root":
                path = kw.get("path", "?")
                return f"  ⚠  Directorio no disponible: {path}"

            # ── INSTALL ──────────────────────────────────────────────────
            case "skill.install.progress":
                return str(kw.get("text", ""))

            case "skill.install.done":
                skill = kw.get("skill", "?")
                path = kw.get("path", "?")
                return f"  ✓ {skill} instalado en {path}"

            case "skill.install.failed":
                package = kw.get("package", "?")
                error = kw.get("error", "desconocido")
                return f"  ✗ {package}: {error}"

            # ── LIFECYCLE ────────────────────────────────────────────────
            case "skill.gateway.ready":
                key = kw.get("key", "?")
                return f"\n→ Escuchando peticiones en {key}"

            case "skill.shutdown":
                count = kw.get("count", 0)
                return f"\n■ Parando {count} skills"

            case _:
                return None


class HumanLogHandler(logging.Handler):
    """Handler que solo emite eventos de nivel HUMAN, formateados."""

    def __init__(self, stream=None) -> None:
        super().__init__(level=HUMAN)
        self.stream = stream or sys.stderr
        self.formatter_inst = HumanFormatter()

    def emit(self, record: logging.LogRecord) -> None:
        try:
            if record.levelno != HUMAN:
                return

            event = getattr(record, "event", None) or record.getMessage()
            kw = {
                k: v for k, v in record.__dict__.items()
                if not k.startswith("_") and k not in _RECORD_ATTRS
            }

            formatted = self.formatter_inst.format_event(event, **kw)
            if formatted is not None:
                self.stream.write(formatted + "\n")
                self.stream.flush()
        except Exception:
            self.handleError(record)


class HumanLog:
    """Helper tipado para emitir logs de nivel HUMAN desde el código.

    En lugar de llamar log.log(HUMAN, "event", extra=...) directamente,
    usa métodos con nombres semánticos claros.

    Uso:
        hlog = HumanLog()
        hlog.progress("Installing acme/greeter...")
        hlog.install_done("acme-greeter", "skills/acme-greeter")
    """

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._log = logger or logging.getLogger("skillmgr.human")

    def _emit(self, event: str, **kw) -> None:
        self._log.log(HUMAN, event, extra=kw)

    def boot_start(self, count: int) -> None:
        self._emit("skill.boot.start", count=count)

    def boot_started(self, skill: str, pid: int | None) -> None:
        self._emit("skill.boot.started", skill=skill, pid=pid)

    def boot_failed(self, skill: str, error: str) -> None:
        self._emit("skill.boot.failed", skill=skill, error=error)

    def root_skipped(self, path: str) -> None:
        self._emit("skill.boot.skipped_root", path=path)

    def progress(self, text: str) -> None:
        self._emit("skill.install.progress", text=text)

    def install_done(self, skill: str, path: str) -> None:
        self._emit("skill.install.done", skill=skill, path=path)

    def install_failed(self, package: str, error: str) -> None:
        self._emit("skill.install.failed", package=package, error=error)

    def gateway_ready(self, key: str) -> None:
        self._emit("skill.gateway.ready", key=key)

    def shutdown(self, count: int) -> None:
        self._emit("skill.shutdown", count=count)
