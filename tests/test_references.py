import re

import pytest

from bookery.domain.bookings.references import build_reference, generate_order_reference
from bookery.errors import ConflictError


def test_reference_format():
    assert re.fullmatch(r"LDR-\d{8}-[0-9A-F]{6}", build_reference("LDR"))


def test_collision_is_retried(db):
    seen = []

    def exists(session, reference):
        seen.append(reference)
        return len(seen) < 3

    reference = generate_order_reference(db, "cleaning_order", exists=exists)

    assert reference == seen[-1]
    assert reference.startswith("CLN-")
    assert len(seen) == 3


def test_gives_up_after_repeated_collisions(db):
    with pytest.raises(ConflictError) as exc_info:
        generate_order_reference(db, "appointment", exists=lambda session, reference: True)

    assert exc_info.value.code == "REFERENCE_EXHAUSTED"
