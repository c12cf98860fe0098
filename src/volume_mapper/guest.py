"""WinRM session to a Windows guest: PowerShell execution and file staging."""

from __future__ import annotations

import base64
import logging

import winrm

from .config import GuestConfig
from .errors import GuestCommandError

logger = logging.getLogger(__name__)

# run_ps() sends the script UTF-16 encoded and base64'd on a command line
# capped near 8K characters; keep each staged chunk well below that.
STAGE_CHUNK_BYTES = 1500


def ps_quote(value: str) -> str:
    return "'" + value.replace("'", "''") + "'"


class WinRMGuest:
    """PowerShell runner bound to one guest."""

    def __init__(self, host: str, cfg: GuestConfig) -> None:
        self.host = host
        self.cfg = cfg
        url = f"{cfg.scheme}://{host}:{cfg.port}/wsman"
        self._session = winrm.Session(url, auth=(cfg.username, cfg.password),
                                      transport=cfg.transport)

    def run_ps(self, script: str) -> str:
        """Execute a PowerShell script and return stdout."""
        result = self._session.run_ps(script)
        out = result.std_out.decode("utf-8", errors="replace")
        if result.status_code != 0:
            err = result.std_err.decode("utf-8", errors="replace")
            raise GuestCommandError(self.host, result.status_code, err)
        return out

    def stage_file(self, content: str, remote_dir: str, remote_name: str) -> str:
        """Write ``content`` to ``remote_dir\\remote_name`` and return the path."""
        path = remote_dir.rstrip("\\") + "\\" + remote_name
        data = content.encode("utf-8")
        logger.debug("Staging %d bytes to %s:%s", len(data), self.host, path)

        self.run_ps(f"[IO.File]::WriteAllBytes({ps_quote(path)}, [byte[]]@())")
        try:
            for start in range(0, len(data), STAGE_CHUNK_BYTES):
                chunk = base64.b64encode(data[start:start + STAGE_CHUNK_BYTES]).decode("ascii")
                self.run_ps(
                    f"$b = [Convert]::FromBase64String('{chunk}'); "
                    f"$f = [IO.File]::Open({ps_quote(path)}, [IO.FileMode]::Append); "
                    "$f.Write($b, 0, $b.Length); $f.Close()"
                )
        except GuestCommandError:
            # A partial script must not be left behind in the staging directory.
            self.remove_file(path)
            raise
        return path

    def remove_file(self, path: str) -> None:
        try:
            self.run_ps(f"Remove-Item -LiteralPath {ps_quote(path)} -Force -ErrorAction SilentlyContinue")
        except GuestCommandError as exc:
            logger.debug("Could not remove %s on %s: %s", path, self.host, exc)
