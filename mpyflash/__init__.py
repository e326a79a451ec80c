"""mpyflash - MicroPython code and firmware uploader.

This package drives external flashing tools (obmpy, esptool, kflash) to
copy user code onto a MicroPython board, reflashing the firmware when the
board cannot be probed or has run out of space.
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
