"""Master-data kernel: identifier conventions and the stored list codec."""

from .codec import CanonicalJsonTypeError, canonical_dumps, decode_record_list, records_digest
from .record_ids import generate_record_id, id_field_candidates, record_identifier, storage_key

__all__ = [
    "CanonicalJsonTypeError",
    "canonical_dumps",
    "decode_record_list",
    "generate_record_id",
    "id_field_candidates",
    "record_identifier",
    "records_digest",
    "storage_key",
]
