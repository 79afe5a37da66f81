from __future__ import annotations

import os
import signal
import subprocess
import time

from .core import AgentCore
from .parser import ParseError, parse
from .pluginApi import Instance, PluginMetadata, PluginOutput

REAP_TIMEOUT_SEC = 5.0


def killProcess(proc: subprocess.Popen) -> None:
    # the child leads its own session, so the whole group goes down with it
    try:
        os.killpg(proc.pid, signal.SIGKILL)
    except (ProcessLookupError, PermissionError):
        proc.kill()


def reapProcess(proc: subprocess.Popen) -> None:
    try:
        proc.communicate(timeout=REAP_TIMEOUT_SEC)
    except subprocess.TimeoutExpired:
        if proc.stdout is not None:
            proc.stdout.close()
        proc.wait()


def runProcess(argv: list[str], deadlineSec: float) -> tuple[int | None, str, str]:
    """
    Run argv with one wall-clock deadline.

    Returns (returncode, stdout, error). error is empty when the process ran to
    completion; otherwise returncode is None and nothing should be parsed.
    """
    try:
        proc = subprocess.Popen(
            argv,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.DEVNULL,
            start_new_session=True,
        )
    except OSError as exc:
        return None, "", f"cannot run {argv[0]}: {type(exc).__name__}: {exc}"

    try:
        outBytes, _ = proc.communicate(timeout=max(0.1, float(deadlineSec)))
    except subprocess.TimeoutExpired:
        killProcess(proc)
        reapProcess(proc)
        return None, "", f"{argv[0]} killed because it took more than {deadlineSec:g}s to execute"
    except BaseException:
        killProcess(proc)
        reapProcess(proc)
        raise

    return int(proc.returncode), (outBytes or b"").decode("utf-8", errors="replace"), ""


class ProcessRunner:
    def __init__(self, core: AgentCore) -> None:
        self.core = core

    def buildArgv(self, plugin: PluginMetadata, instance: Instance) -> list[str]:
        return [plugin.statusPath] + instance.argv()

    def run(self, plugin: PluginMetadata, instance: Instance, deadlineSec: float) -> tuple[PluginOutput | None, str]:
        argv = self.buildArgv(plugin, instance)
        self.core.logDebug(f"running command {' '.join(argv)}")

        rc, outStr, err = runProcess(argv, deadlineSec)
        if err:
            return None, err

        if rc is None or rc < 0:
            return None, f"{argv[0]} didn't exit gracefully (signal {-(rc or 0)})"

        captureTs = time.time()
        lines = outStr.replace("\r\n", "\n").split("\n")
        firstLine = lines[0]

        self.core.logDebug(f"output of plugin {argv[0]} is {firstLine!r}")
        extra = [ln for ln in lines[1:] if ln.strip()]
        if extra:
            self.core.logDebug(f"plugin {argv[0]} printed {len(extra)} more line(s): {extra[:3]!r}")

        try:
            output = parse(plugin.outputFormat, rc, firstLine, timestamp=captureTs, logFn=self.core.logDebug)
        except ParseError as exc:
            return None, f"cannot parse plugin {argv[0]} output. Output: {firstLine!r}. Error: {exc}"

        return output, ""
