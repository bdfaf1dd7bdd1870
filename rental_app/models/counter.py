# rental_app/models/counter.py
from beanie import Document


class SequenceCounter(Document):
    """Holds the last issued value for a named sequence."""
    # _id dipakai sebagai nama sequence agar unik secara default oleh MongoDB
    id: str
    value: int = 0

    class Settings:
        name = "sequence_counters"
