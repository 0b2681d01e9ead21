"""Wire format of the control records sent by the execution agent."""

from devicetest.protocol.records import (
    TICKS_PER_MILLISECOND,
    WIRE_NAMES,
    Communication,
    ProtocolRecord,
    RecordWriter,
    Scope,
    decode_record,
    format_record,
)

__all__ = [
    "Communication",
    "ProtocolRecord",
    "RecordWriter",
    "Scope",
    "TICKS_PER_MILLISECOND",
    "WIRE_NAMES",
    "decode_record",
    "format_record",
]
