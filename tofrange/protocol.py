"""Command codes and packers of the PSLab firmware.

The PSLab acts as the I2C master for the ranging sensor. Every request starts
with a header byte selecting a command group, followed by a command byte and
its arguments, and is answered with an ACK byte whose lowest bit is set on
success. For I2C commands, bits 4-7 of the ACK byte hold the acknowledge
status of the addressed device.
"""

import struct

# Link-level packers are little-endian, matching the PSLab MCU.
Byte = struct.Struct("B")

# Register addresses and register contents on the I2C side are big-endian.
RegisterAddress = struct.Struct(">H")

ACKNOWLEDGE = Byte.pack(0x01)
CLOCK_RATE = 64e6

# Common
COMMON = Byte.pack(11)
GET_VERSION = Byte.pack(5)

# I2C
I2C_HEADER = Byte.pack(4)
I2C_SEND = Byte.pack(1)
I2C_START = Byte.pack(2)
I2C_STOP = Byte.pack(3)
I2C_RESTART = Byte.pack(4)
I2C_READ_END = Byte.pack(5)
I2C_READ_MORE = Byte.pack(6)
I2C_CONFIG = Byte.pack(9)
I2C_WRITE_BULK = Byte.pack(12)
I2C_INIT = Byte.pack(14)
