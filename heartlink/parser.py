"""Heart rate measurement decoder for the BLE Heart Rate Measurement characteristic.

Only the BPM field is extracted. Sensor contact, energy expended and RR
interval fields are never parsed.
"""

# Bit 0 of the flags byte: HR value format (0 = uint8, 1 = uint16)
HR_FORMAT_UINT16 = 0b1


def decode_heart_rate(data: bytes) -> int | None:
    """Decode the BPM value from a Heart Rate Measurement payload.

    Args:
        data: Raw bytes from HR measurement characteristic (0x2A37)

    Returns:
        Heart rate in BPM, or None if the payload is empty or too short
    """
    if not data:
        return None

    flags = data[0]

    if flags & HR_FORMAT_UINT16:
        if len(data) < 3:
            return None
        return int.from_bytes(data[1:3], "little")

    if len(data) < 2:
        return None
    return data[1]
