# app/deploy_log.py
"""
Append-only markdown transcript for deploy / verify runs.

Every deploy and every wiring call is one line: a ✅ / ❌ glyph, the title,
the tx hash and gas used, or the error message.
"""
from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from web3 import Web3

from chain.models import TransactionRecord

NATIVE_SYMBOL = "TLOS"


def _ts(now: datetime) -> str:
    return now.strftime("%Y%m%d_%H%M%S")


def fmt_addr(label: str, address: str) -> str:
    return f"- **{label}**: `{address}`"


def fmt_wei(value: int) -> str:
    sign = "-" if value < 0 else ""
    return f"{sign}{Web3.from_wei(abs(value), 'ether')}"


class Transcript:
    def __init__(self, path: Path):
        self.path = Path(path)

    @classmethod
    def start(cls, directory: Path, network: str, kind: str = "deployment",
              now: Optional[datetime] = None) -> "Transcript":
        now = now or datetime.now()
        directory = Path(directory)
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / f"{kind}_{_ts(now)}.md"
        header = "\n".join([
            f"# {kind.capitalize()} Log",
            "",
            f"- Network: `{network}`",
            f"- Timestamp: `{now.astimezone(timezone.utc).isoformat()}`",
            "",
            "",
        ])
        path.write_text(header, encoding="utf-8")
        return cls(path)

    def append(self, line: str) -> None:
        with self.path.open("a", encoding="utf-8") as f:
            f.write(f"{line}\n")

    def section(self, title: str) -> None:
        self.append(f"\n## {title}")

    def subsection(self, title: str) -> None:
        self.append(f"\n### {title}")

    def address(self, label: str, address: str) -> None:
        self.append(fmt_addr(label, address))

    def balance(self, balance: int, previous: Optional[int] = None) -> int:
        if previous is None:
            self.append(f"> **Balance**: `{fmt_wei(balance)} {NATIVE_SYMBOL}`")
        else:
            diff = balance - previous
            sign = "+" if diff > 0 else ""
            self.append(
                f"> **Balance**: `{fmt_wei(balance)} {NATIVE_SYMBOL}`  "
                f"(**Δ** `{sign}{fmt_wei(diff)} {NATIVE_SYMBOL}`)"
            )
        return balance

    def record(self, record: TransactionRecord) -> None:
        if record.ok:
            gas = f", gasUsed: `{record.gas_used}`" if record.gas_used is not None else ""
            self.append(f"- ✅ {record.action} — tx: `{record.tx_hash}`{gas}")
        else:
            self.append(f"- ❌ {record.action} — error: `{record.error}`")

    def read(self) -> str:
        return self.path.read_text(encoding="utf-8")
