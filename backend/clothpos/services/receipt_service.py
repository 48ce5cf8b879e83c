# Overview: Service-layer operations for receipts; snapshot, text layout and printer backends.

"""
Receipt/Print Gateway

Printing happens after a sale has committed and never feeds back into it:
print_receipt() reports failure as False and logs, it does not raise.

Backends (setting "printerType"):
- "usb": raw ESC/POS bytes over a serial/USB-serial port (pyserial)
- "system": plain text piped to the CUPS spool with `lp`

list_printers() offers both kinds for the settings screen: serial ports from
pyserial and CUPS destinations from `lpstat -e`.
"""
from __future__ import annotations

import subprocess
from dataclasses import dataclass

from flask import current_app
from serial import Serial
from serial.tools import list_ports

from clothpos.time_utils import parse_iso_datetime
from . import sales_service

PAPER_COLUMNS = {"80mm": 48, "58mm": 32}

DEFAULT_STORE_NAME = "Clothing POS"
DEFAULT_CURRENCY = "GH₵"
DEFAULT_FOOTER = "Thank you for your purchase!"

CODE39_CHARS = set("0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ $%*+-./")

ESC_INIT = b"\x1b@"
ESC_CENTER = b"\x1ba\x01"
ESC_LEFT = b"\x1ba\x00"
GS_CUT = b"\x1dV\x00"


@dataclass(frozen=True)
class PrinterSettings:
    printer_name: str = ""
    printer_type: str = "system"
    paper_width: str = "80mm"
    store_name: str = DEFAULT_STORE_NAME
    store_address: str = ""
    store_phone: str = ""
    currency: str = DEFAULT_CURRENCY
    receipt_footer: str = DEFAULT_FOOTER

    @property
    def columns(self) -> int:
        return PAPER_COLUMNS.get(self.paper_width, 48)


def printer_settings(settings_map: dict[str, str | None]) -> PrinterSettings:
    """Map stored settings keys onto PrinterSettings, falling back to defaults."""
    def pick(key: str, default: str) -> str:
        value = settings_map.get(key)
        return value if value else default

    printer_type = pick("printerType", "system")
    if printer_type not in ("usb", "system"):
        printer_type = "system"
    paper_width = pick("printerPaperWidth", "80mm")
    if paper_width not in PAPER_COLUMNS:
        paper_width = "80mm"

    return PrinterSettings(
        printer_name=pick("printerName", ""),
        printer_type=printer_type,
        paper_width=paper_width,
        store_name=pick("storeName", DEFAULT_STORE_NAME),
        store_address=pick("storeAddress", ""),
        store_phone=pick("storePhone", ""),
        currency=pick("currency", DEFAULT_CURRENCY),
        receipt_footer=pick("receiptFooter", DEFAULT_FOOTER),
    )


def build_receipt(sale_id: int) -> dict:
    """Finalized sale: header fields plus "items" (with name/size/color)."""
    snapshot = sales_service.get_sale(sale_id)
    snapshot["items"] = sales_service.get_sale_details(sale_id)
    return snapshot


def _two_col(left: str, right: str, width: int) -> str:
    space = width - len(right)
    if len(left) >= space:
        left = left[: max(space - 1, 0)]
    return left + " " * (width - len(left) - len(right)) + right


def _money(currency: str, amount) -> str:
    return f"{currency}{float(amount or 0):,.2f}"


def _item_lines(item: dict, settings: PrinterSettings) -> list[str]:
    width = settings.columns
    name = item.get("name") or f"Item #{item.get('product_id')}"
    if item.get("size") and item.get("color"):
        name = f"{name} ({item['size']}/{item['color']})"
    qty = item.get("qty") or 0
    price = item.get("price_at_sale") or 0
    return [
        name[:width],
        _two_col(
            f"  {qty} x {_money(settings.currency, price)}",
            _money(settings.currency, qty * price),
            width,
        ),
    ]


def render_text(snapshot: dict, settings: PrinterSettings) -> str:
    """Plain-text receipt laid out for the configured paper width."""
    width = settings.columns
    rule = "-" * width

    lines = [settings.store_name.center(width).rstrip()]
    for extra in (settings.store_address, settings.store_phone):
        if extra:
            lines.append(extra.center(width).rstrip())
    lines.append(rule)

    ts = parse_iso_datetime(snapshot.get("timestamp")) if snapshot.get("timestamp") else None
    if ts:
        lines.append(_two_col("Date:", ts.strftime("%Y-%m-%d"), width))
        lines.append(_two_col("Time:", ts.strftime("%H:%M:%S"), width))
    lines.append(f"Receipt: {snapshot['receipt_number']}")
    lines.append(rule)

    for item in snapshot.get("items", []):
        lines.extend(_item_lines(item, settings))
    lines.append(rule)

    lines.append(_two_col("TOTAL", _money(settings.currency, snapshot.get("total")), width))
    lines.append(_two_col("Payment", str(snapshot.get("payment_method", "")).upper(), width))
    lines.append(rule)

    if settings.receipt_footer:
        lines.append(settings.receipt_footer.center(width).rstrip())
    return "\n".join(lines) + "\n"


def code39_sanitize(value: str) -> str:
    """Uppercase and strip characters Code 39 cannot encode."""
    return "".join(c for c in (value or "").upper() if c in CODE39_CHARS)


def code39_barcode(value: str, height: int = 80, width: int = 2, hri: int = 2) -> bytes:
    """
    ESC/POS commands for a Code 39 barcode.
    hri: 0=none, 1=above, 2=below, 3=both
    """
    data = code39_sanitize(value).encode("ascii")
    return (
        bytes([0x1D, 0x68, height])   # GS h n
        + bytes([0x1D, 0x77, width])  # GS w n
        + bytes([0x1D, 0x48, hri])    # GS H n
        + b"\x1dk\x04" + data + b"\x00"
    )


def escpos_bytes(snapshot: dict, settings: PrinterSettings, line_feeds: int = 3) -> bytes:
    text = render_text(snapshot, settings)
    out = bytearray(ESC_INIT)
    out += text.encode("ascii", errors="ignore")
    out += ESC_CENTER + code39_barcode(snapshot["receipt_number"]) + ESC_LEFT
    out += b"\n" * line_feeds
    out += GS_CUT
    return bytes(out)


def _print_usb(snapshot: dict, settings: PrinterSettings) -> None:
    port = current_app.config.get("RECEIPT_SERIAL_PORT", "/dev/usb/lp0")
    baud = current_app.config.get("RECEIPT_SERIAL_BAUD", 9600)
    with Serial(port, baud, timeout=1) as ser:
        ser.write(escpos_bytes(snapshot, settings))


def _print_system(snapshot: dict, settings: PrinterSettings) -> None:
    cmd = ["lp"]
    if settings.printer_name:
        cmd += ["-d", settings.printer_name]
    subprocess.run(
        cmd,
        input=render_text(snapshot, settings).encode("utf-8"),
        capture_output=True,
        check=True,
        timeout=30,
    )


def print_receipt(snapshot: dict, settings: PrinterSettings) -> bool:
    """Send a receipt to the configured printer. True on success; failures are logged."""
    try:
        if settings.printer_type == "usb":
            _print_usb(snapshot, settings)
        else:
            _print_system(snapshot, settings)
    except (OSError, subprocess.SubprocessError):
        # SerialException is an OSError
        current_app.logger.exception(
            "Printing receipt %s via %s failed", snapshot.get("receipt_number"), settings.printer_type
        )
        return False

    current_app.logger.info(
        "Printed receipt %s via %s", snapshot.get("receipt_number"), settings.printer_type
    )
    return True


# Discovery

def _system_printers() -> list[dict]:
    try:
        result = subprocess.run(
            ["lpstat", "-e"],
            capture_output=True,
            check=True,
            text=True,
            timeout=10,
        )
    except (OSError, subprocess.SubprocessError) as e:
        current_app.logger.warning("System printer discovery failed: %s", e)
        return []

    names = [line.strip() for line in result.stdout.splitlines() if line.strip()]
    return [
        {
            "name": name,
            "display_name": name,
            "description": "System printer (CUPS)",
            "type": "system",
        }
        for name in names
    ]


def _serial_printers() -> list[dict]:
    try:
        ports = list_ports.comports()
    except OSError as e:
        current_app.logger.warning("Serial port discovery failed: %s", e)
        return []

    return [
        {
            "name": port.device,
            "display_name": port.description or port.device,
            "description": port.hwid or "Serial/USB port",
            "type": "usb",
        }
        for port in ports
    ]


def list_printers() -> list[dict]:
    """Serial/USB ports first, then system printers. A source that fails contributes nothing."""
    return _serial_printers() + _system_printers()


def printer_available() -> bool:
    return bool(list_printers())
