"""Process table reader.

Reads every process with its controlling terminal, foreground marker and
full command line via ``ps``.
"""

import logging
import subprocess

from tabwatch.models.snapshot import ProcessRecord

logger = logging.getLogger(__name__)

PS_COMMAND = ["ps", "-axo", "tty=,stat=,args="]

# ps prints these when a process has no controlling terminal
NO_TTY = ("??", "-", "?")


def normalize_tty(tty: str) -> str:
    """Return the /dev path for a TTY name as printed by ps."""
    tty = tty.strip()
    if not tty or tty.startswith("/dev/"):
        return tty
    return f"/dev/{tty}"


def parse_process_table(output: str) -> list[ProcessRecord]:
    """Parse ``ps -axo tty=,stat=,args=`` output.

    A ``+`` in the STAT column marks membership of the terminal's foreground
    process group. Processes without a controlling terminal are skipped.

    Args:
        output: Raw ps stdout.

    Returns:
        List of ProcessRecord in ps order.
    """
    records = []
    for line in output.splitlines():
        parts = line.split(None, 2)
        if len(parts) < 3:
            continue
        tty, stat, args = parts
        if tty in NO_TTY:
            continue
        records.append(
            ProcessRecord(
                tty=normalize_tty(tty),
                foreground="+" in stat,
                command_line=args.strip(),
            )
        )
    return records


def list_processes(timeout: int = 5) -> list[ProcessRecord]:
    """Read the process table.

    Args:
        timeout: Command timeout in seconds.

    Returns:
        Parsed process records, or an empty list on failure.
    """
    try:
        result = subprocess.run(
            PS_COMMAND,
            capture_output=True,
            text=True,
            timeout=timeout,
        )
    except subprocess.TimeoutExpired:
        logger.debug("Process table query timed out")
        return []
    except Exception as e:
        logger.debug(f"Failed to read process table: {e}")
        return []

    if result.returncode != 0:
        logger.debug(f"ps exited with {result.returncode}: {result.stderr}")
        return []
    return parse_process_table(result.stdout)
