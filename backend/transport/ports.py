"""Serial port discovery."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any

from serial.tools import list_ports as _list_ports


@dataclass(frozen=True)
class PortInfo:
    """One enumerated serial port."""
    path: str
    description: str | None = None
    manufacturer: str | None = None
    serial_number: str | None = None
    vendor_id: int | None = None
    product_id: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def list_ports() -> list[PortInfo]:
    """
    Enumerate serial ports visible to the host, sorted by path.

    Blocking (touches the OS device tree); call through asyncio.to_thread
    from async code.
    """
    ports = [
        PortInfo(
            path=p.device,
            description=p.description if p.description != "n/a" else None,
            manufacturer=p.manufacturer,
            serial_number=p.serial_number,
            vendor_id=p.vid,
            product_id=p.pid,
        )
        for p in _list_ports.comports()
    ]
    return sorted(ports, key=lambda p: p.path)
